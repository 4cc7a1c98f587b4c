"""Data models for Tonal Analyzer."""

from tonal_analyzer.models.analysis import (
    CadenceEvent,
    ChordEvent,
    HarmonicAnalysis,
    KeyEstimate,
    KeyRegion,
    NoteEvent,
    PitchClassWindow,
    TensionComponents,
    TensionSample,
)
from tonal_analyzer.models.pipeline import AnalysisContext, AnalysisResult, StageResult

__all__ = [
    "AnalysisContext",
    "AnalysisResult",
    "CadenceEvent",
    "ChordEvent",
    "HarmonicAnalysis",
    "KeyEstimate",
    "KeyRegion",
    "NoteEvent",
    "PitchClassWindow",
    "StageResult",
    "TensionComponents",
    "TensionSample",
]
