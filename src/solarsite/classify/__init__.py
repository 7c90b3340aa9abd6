"""Suitability classification."""

from .verdict import DEFAULT_THRESHOLDS, ClassifierThresholds, Verdict, classify

__all__ = ["DEFAULT_THRESHOLDS", "ClassifierThresholds", "Verdict", "classify"]
