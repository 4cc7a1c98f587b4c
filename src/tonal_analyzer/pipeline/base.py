"""Base classes for analysis stages."""

from abc import ABC, abstractmethod
import time

from tonal_analyzer.models.pipeline import AnalysisContext, StageResult


class PipelineStage(ABC):
    """Abstract base class for analysis stages.

    Each stage implements execute() which receives an AnalysisContext,
    derives its output from what earlier stages left there, stores the
    result back on the context, and returns a StageResult.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique name for this stage."""
        ...

    @abstractmethod
    def execute(self, context: AnalysisContext) -> StageResult:
        """Execute this stage.

        Args:
            context: Mutable analysis context that accumulates results.

        Returns:
            StageResult indicating success/failure and any warnings.
        """
        ...

    def run(self, context: AnalysisContext) -> StageResult:
        """Run the stage with timing.

        This is the public entry point that wraps execute() with timing
        and turns unexpected exceptions into a failed StageResult.
        """
        start_time = time.perf_counter()
        try:
            result = self.execute(context)
            result.duration_seconds = time.perf_counter() - start_time
            return result
        except Exception as e:
            return StageResult(
                success=False,
                stage_name=self.name,
                duration_seconds=time.perf_counter() - start_time,
                error_message=f"Unexpected error: {e}",
            )

    def _ok(self, warnings: list[str] | None = None) -> StageResult:
        return StageResult(
            success=True,
            stage_name=self.name,
            duration_seconds=0,
            warnings=warnings or [],
        )

    def _fail(self, message: str) -> StageResult:
        return StageResult(
            success=False,
            stage_name=self.name,
            duration_seconds=0,
            error_message=message,
        )
