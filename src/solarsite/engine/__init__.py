"""Engine package assembling a full rooftop analysis."""

from .analyze import AnalysisRecord, analyze
from .collaborators import AnalysisStore, Footprint, FootprintLookup, save_analysis

__all__ = ["analyze", "AnalysisRecord", "AnalysisStore", "Footprint", "FootprintLookup", "save_analysis"]
