"""Pipeline orchestrator for Tonal Analyzer."""

import time
from pathlib import Path
from typing import Sequence

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from tonal_analyzer.config import Settings
from tonal_analyzer.models.analysis import NoteEvent
from tonal_analyzer.models.pipeline import AnalysisContext, AnalysisResult
from tonal_analyzer.pipeline.base import PipelineStage

console = Console()


class Pipeline:
    """Orchestrates the execution of analysis stages."""

    def __init__(self, stages: list[PipelineStage], settings: Settings) -> None:
        """Initialize the pipeline.

        Args:
            stages: Ordered list of stages to execute.
            settings: Application settings.
        """
        self.stages = stages
        self.settings = settings

    def run(self, source_path: Path, output_dir: Path | None = None) -> AnalysisResult:
        """Run the full pipeline on a MIDI file, reporting progress.

        Args:
            source_path: Path to the input MIDI file.
            output_dir: Directory for analysis.json (None = don't write).

        Returns:
            AnalysisResult with success status and details.
        """
        context = AnalysisContext(source_path=source_path, output_dir=output_dir)
        return self._execute(context, show_progress=True)

    def analyze(
        self,
        notes: Sequence[NoteEvent],
        tempo_bpm: float | None = None,
        time_signature: tuple[int, int] | None = None,
    ) -> AnalysisResult:
        """Run the pipeline quietly on notes already in memory.

        Args:
            notes: Note events to analyze.
            tempo_bpm: Tempo used to size bars (default: settings).
            time_signature: Meter used to size bars (default: settings).

        Returns:
            AnalysisResult with the HarmonicAnalysis attached.
        """
        context = AnalysisContext(
            notes=list(notes),
            tempo_bpm=tempo_bpm,
            time_signature=time_signature,
        )
        return self._execute(context, show_progress=False)

    def _execute(self, context: AnalysisContext, show_progress: bool) -> AnalysisResult:
        start_time = time.time()
        result = AnalysisResult(success=True)

        if show_progress:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                TimeElapsedColumn(),
                console=console,
            ) as progress:
                for stage in self.stages:
                    task = progress.add_task(f"[cyan]{stage.name}[/cyan]...", total=None)
                    ok = self._run_stage(stage, context, result, show_progress)
                    progress.remove_task(task)
                    if not ok:
                        break
        else:
            for stage in self.stages:
                if not self._run_stage(stage, context, result, show_progress):
                    break

        if result.success:
            result.analysis = context.analysis
            result.output_path = context.analysis_path

        result.total_duration = time.time() - start_time
        return result

    def _run_stage(
        self,
        stage: PipelineStage,
        context: AnalysisContext,
        result: AnalysisResult,
        show_progress: bool,
    ) -> bool:
        stage_result = stage.run(context)

        if stage_result.success:
            result.stages_completed.append(stage.name)
            result.warnings.extend(stage_result.warnings)
            if show_progress:
                console.print(
                    f"  [green]{stage.name}[/green] "
                    f"({stage_result.duration_seconds * 1000:.1f}ms)"
                )
            return True

        result.success = False
        result.errors.append(f"{stage.name}: {stage_result.error_message}")
        if show_progress:
            console.print(
                f"  [red]{stage.name}[/red] failed: {stage_result.error_message}"
            )
        return False


def create_default_pipeline(settings: Settings) -> Pipeline:
    """Create a pipeline with all default stages.

    Args:
        settings: Application settings.

    Returns:
        Configured Pipeline instance.
    """
    from tonal_analyzer.stages import (
        AggregationStage,
        CadenceStage,
        ChordDetectionStage,
        ExportStage,
        HarmonicFunctionStage,
        IngestStage,
        KeyEstimationStage,
        TensionStage,
    )

    stages: list[PipelineStage] = [
        IngestStage(settings),
        AggregationStage(settings),
        KeyEstimationStage(settings),
        ChordDetectionStage(settings),
        HarmonicFunctionStage(),
        TensionStage(),
        CadenceStage(settings),
        ExportStage(settings),
    ]

    return Pipeline(stages, settings)
