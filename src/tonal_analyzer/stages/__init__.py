"""Analysis stages for Tonal Analyzer."""

from tonal_analyzer.stages.aggregation import AggregationStage
from tonal_analyzer.stages.cadence import CadenceStage
from tonal_analyzer.stages.chord_detection import ChordDetectionStage
from tonal_analyzer.stages.export import ExportStage
from tonal_analyzer.stages.harmonic_function import HarmonicFunctionStage
from tonal_analyzer.stages.ingest import IngestStage
from tonal_analyzer.stages.key_estimation import KeyEstimationStage
from tonal_analyzer.stages.tension import TensionStage

__all__ = [
    "AggregationStage",
    "CadenceStage",
    "ChordDetectionStage",
    "ExportStage",
    "HarmonicFunctionStage",
    "IngestStage",
    "KeyEstimationStage",
    "TensionStage",
]
