"""Export stage - assembles the HarmonicAnalysis and writes analysis.json."""

import json
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path

from tonal_analyzer import __version__
from tonal_analyzer.config import Settings
from tonal_analyzer.models.analysis import HarmonicAnalysis
from tonal_analyzer.models.pipeline import AnalysisContext, StageResult
from tonal_analyzer.pipeline.base import PipelineStage


class ExportStage(PipelineStage):
    """Stage 7: Export.

    Collects every output stream from the AnalysisContext into a
    HarmonicAnalysis. When the context has an output directory the analysis
    is serialized to JSON there, with camelCase keys:

    {output_dir}/
    └── analysis.json   # HarmonicAnalysis serialized
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @property
    def name(self) -> str:
        return "export"

    def execute(self, context: AnalysisContext) -> StageResult:
        """Build the analysis and write analysis.json."""
        warnings: list[str] = []

        analysis = self._build_analysis(context, warnings)
        context.analysis = analysis

        if context.output_dir is None:
            return self._ok(warnings)

        try:
            # Ensure output directory exists
            context.output_dir.mkdir(parents=True, exist_ok=True)

            analysis_path = context.output_dir / "analysis.json"
            with open(analysis_path, "w", encoding="utf-8") as f:
                json.dump(to_serializable(analysis), f, indent=2, ensure_ascii=False)
        except OSError as e:
            return self._fail(f"Failed to write analysis: {e}")

        context.analysis_path = analysis_path
        warnings.append(f"Wrote {analysis_path}")
        return self._ok(warnings)

    def _build_analysis(
        self, context: AnalysisContext, warnings: list[str]
    ) -> HarmonicAnalysis:
        """Build HarmonicAnalysis from AnalysisContext.

        Args:
            context: Analysis context with all stage outputs
            warnings: List to append warnings to

        Returns:
            Populated HarmonicAnalysis object
        """
        global_key = context.global_key
        analysis = HarmonicAnalysis(
            source_file=context.source_path.name if context.source_path else "",
            duration=context.end_time,
            tempo_bpm=context.tempo_bpm or self.settings.tempo_bpm,
            time_signature=context.time_signature or (self.settings.beats_per_bar, 4),
            profile=self.settings.profile,
            analysis_date=self.settings.analysis_date
            or datetime.now(timezone.utc).isoformat(),
            analyzer_version=__version__,
            key_tonic=global_key.tonic if global_key else None,
            key_mode=global_key.mode if global_key else None,
            key_confidence=global_key.confidence if global_key else None,
            key_regions=list(context.key_regions),
            chords=list(context.chords),
            tension=list(context.tension),
            cadences=list(context.cadences),
        )

        # Add warnings for missing data
        if not context.key_regions:
            warnings.append("No key regions available")
        if not context.chords:
            warnings.append("No chords available")

        return analysis


def to_serializable(obj) -> dict:
    """Convert a dataclass hierarchy to a JSON-serializable dict.

    Converts all snake_case field names to camelCase.
    """
    if hasattr(obj, "__dataclass_fields__"):
        return _convert_dict_keys(asdict(obj))
    elif isinstance(obj, dict):
        return _convert_dict_keys(obj)
    else:
        return obj


def _convert_dict_keys(d: dict) -> dict:
    """Recursively convert dict keys from snake_case to camelCase."""
    result = {}
    for key, value in d.items():
        if isinstance(key, str) and "_" in key:
            camel_key = to_camel_case(key)
        else:
            camel_key = key

        result[camel_key] = _process_value(value)
    return result


def _process_value(value):
    if hasattr(value, "__dataclass_fields__"):
        return to_serializable(value)
    elif isinstance(value, dict):
        return _convert_dict_keys(value)
    elif isinstance(value, (list, tuple)):
        return [_process_value(item) for item in value]
    elif isinstance(value, Path):
        return str(value)
    else:
        return value


def to_camel_case(snake_str: str) -> str:
    """Convert snake_case to camelCase."""
    components = snake_str.split("_")
    return components[0] + "".join(x.title() for x in components[1:])
