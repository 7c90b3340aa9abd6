import pytest

from solarsite.core.models import FinancialInputs
from solarsite.pv.finance import efficiency_adjustment, financial_analysis


def _inputs(**overrides):
    kwargs = dict(
        energy_cost_per_kwh=0.8,
        installation_cost_per_watt=4.0,
        panel_capacity_watts=500,
        panel_count=10,
        incentives_percent=10,
        annual_energy_cost_increase_percent=0,
        discount_rate_percent=0,
    )
    kwargs.update(overrides)
    return FinancialInputs(**kwargs)


def test_flat_prices_without_discounting():
    summary = financial_analysis(5000.0, _inputs())
    assert summary.total_system_watts == 5000.0
    assert summary.total_system_cost == pytest.approx(20000.0)
    assert summary.net_system_cost == pytest.approx(18000.0)
    assert summary.annual_savings == pytest.approx(4000.0)
    assert summary.simple_payback_years == pytest.approx(4.5)
    assert summary.lifetime_savings == pytest.approx(100000.0)
    assert summary.npv == pytest.approx(82000.0)
    assert summary.roi_percent == pytest.approx((100000.0 - 18000.0) / 18000.0 * 100.0)


def test_lifetime_savings_is_a_geometric_sum():
    summary = financial_analysis(5000.0, _inputs(annual_energy_cost_increase_percent=5))
    expected = 4000.0 * (1.05 ** 25 - 1) / 0.05
    assert summary.lifetime_savings == pytest.approx(expected)


def test_npv_discounts_each_year():
    summary = financial_analysis(5000.0, _inputs(discount_rate_percent=6, system_lifetime_years=2))
    expected = -18000.0 + 4000.0 / 1.06 + 4000.0 / 1.06 ** 2
    assert summary.npv == pytest.approx(expected)


def test_zero_production_has_no_payback():
    summary = financial_analysis(0.0, _inputs())
    assert summary.simple_payback_years is None
    assert summary.to_dict()["simplePaybackYears"] is None


def test_full_incentive_has_no_roi():
    summary = financial_analysis(5000.0, _inputs(incentives_percent=100))
    assert summary.roi_percent is None


def test_to_dict_keys():
    data = financial_analysis(5000.0, _inputs()).to_dict()
    assert set(data) == {
        "totalSystemWatts",
        "totalSystemCost",
        "netSystemCost",
        "incentivesApplied",
        "annualSavings",
        "simplePaybackYears",
        "npv",
        "totalLifetimeSavings",
        "roi",
    }


def test_efficiency_adjustment_is_capped():
    assert efficiency_adjustment(10, 500, 25.0, 0.2) == pytest.approx(1.0)
    assert efficiency_adjustment(40, 500, 25.0, 0.2) == 1.5
    assert efficiency_adjustment(1, 500, 0.0, 0.2) == 1.5
