"""Pipeline module for Tonal Analyzer."""

from tonal_analyzer.pipeline.base import PipelineStage
from tonal_analyzer.pipeline.orchestrator import Pipeline, create_default_pipeline

__all__ = ["Pipeline", "PipelineStage", "create_default_pipeline"]
