"""Financial summary for an installed-system proposal."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from solarsite.core.models import FinancialInputs

EFFICIENCY_ADJUSTMENT_CAP = 1.5


@dataclass(frozen=True)
class FinancialSummary:
    total_system_watts: float
    total_system_cost: float
    net_system_cost: float
    incentives_percent: float
    annual_savings: float
    simple_payback_years: Optional[float]
    npv: float
    lifetime_savings: float
    roi_percent: Optional[float]

    def to_dict(self) -> dict:
        return {
            "totalSystemWatts": self.total_system_watts,
            "totalSystemCost": round(self.total_system_cost, 2),
            "netSystemCost": round(self.net_system_cost, 2),
            "incentivesApplied": self.incentives_percent,
            "annualSavings": round(self.annual_savings, 2),
            "simplePaybackYears": None if self.simple_payback_years is None else round(self.simple_payback_years, 2),
            "npv": round(self.npv, 2),
            "totalLifetimeSavings": round(self.lifetime_savings, 2),
            "roi": None if self.roi_percent is None else round(self.roi_percent, 2),
        }


def efficiency_adjustment(
    panel_count: int, panel_capacity_watts: float, usable_area_m2: float, module_efficiency: float
) -> float:
    """Ratio of installed DC capacity to the area-based estimate (1 kW/m² at STC), capped at 1.5."""
    installed_kw = panel_count * panel_capacity_watts / 1000.0
    area_based_kw = max(usable_area_m2 * module_efficiency, 0.1)
    return min(installed_kw / area_based_kw, EFFICIENCY_ADJUSTMENT_CAP)


def financial_analysis(annual_production_kwh: float, inputs: FinancialInputs) -> FinancialSummary:
    """Cost, savings, payback, NPV and ROI over the system lifetime.

    Energy prices escalate yearly by ``annual_energy_cost_increase_percent``;
    year ``n`` savings are discounted by ``(1 + discount_rate)^n``.
    """

    watts = inputs.panel_capacity_watts * inputs.panel_count
    total_cost = watts * inputs.installation_cost_per_watt
    net_cost = total_cost * (1.0 - inputs.incentives_percent / 100.0)
    annual_savings = annual_production_kwh * inputs.energy_cost_per_kwh

    years = np.arange(1, inputs.system_lifetime_years + 1)
    growth = inputs.annual_energy_cost_increase_percent / 100.0
    discount = inputs.discount_rate_percent / 100.0
    yearly_savings = annual_savings * (1.0 + growth) ** (years - 1)
    npv = -net_cost + float(np.sum(yearly_savings / (1.0 + discount) ** years))
    lifetime_savings = float(np.sum(yearly_savings))

    payback = net_cost / annual_savings if annual_savings > 0 else None
    roi = (lifetime_savings - net_cost) / net_cost * 100.0 if net_cost > 0 else None
    return FinancialSummary(
        total_system_watts=float(watts),
        total_system_cost=float(total_cost),
        net_system_cost=float(net_cost),
        incentives_percent=float(inputs.incentives_percent),
        annual_savings=float(annual_savings),
        simple_payback_years=payback,
        npv=npv,
        lifetime_savings=lifetime_savings,
        roi_percent=roi,
    )


__all__ = ["FinancialSummary", "efficiency_adjustment", "financial_analysis"]
