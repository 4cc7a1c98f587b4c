"""Tension stage - Lerdahl-inspired harmonic tension per chord.

Based on: Lerdahl & Krumhansl, "Modeling Tonal Tension" (2007).
Tension = hierarchical distance + surface dissonance + harmonic motion
+ tendency of applied chords, weighted 40/25/20/15.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Sequence

from tonal_analyzer.models.analysis import ChordEvent, TensionComponents, TensionSample
from tonal_analyzer.models.pipeline import AnalysisContext, StageResult
from tonal_analyzer.pipeline.base import PipelineStage
from tonal_analyzer.theory.chords import QUALITY_DISSONANCE

# Distance of each degree from the tonic in the key's hierarchy
HIERARCHICAL_TENSION: Mapping[int, float] = MappingProxyType(
    {
        0: 0.50,  # chromatic root
        1: 0.00,
        2: 0.35,
        3: 0.45,
        4: 0.25,
        5: 0.60,
        6: 0.20,
        7: 0.85,
    }
)

# Shortest root interval (semitones) to the previous chord.
# Fourths/fifths move smoothly, seconds and the tritone jar.
MOTION_TENSION: Mapping[int, float] = MappingProxyType(
    {
        0: 0.00,
        1: 0.30,
        2: 0.25,
        3: 0.15,
        4: 0.15,
        5: 0.05,
        6: 0.40,
    }
)


@dataclass(frozen=True)
class TensionWeights:
    hierarchical: float = 0.40
    dissonance: float = 0.25
    motion: float = 0.20
    tendency: float = 0.15


class TensionEngine:
    """Combines the four tension components into one value per chord."""

    SECONDARY_BONUS = 0.15
    SECONDARY_TO_DOMINANT_RELIEF = 0.05

    def __init__(
        self,
        weights: TensionWeights | None = None,
        hierarchical_table: Mapping[int, float] = HIERARCHICAL_TENSION,
        dissonance_table: Mapping[str, float] = QUALITY_DISSONANCE,
        motion_table: Mapping[int, float] = MOTION_TENSION,
    ) -> None:
        self.weights = weights or TensionWeights()
        self.hierarchical_table = hierarchical_table
        self.dissonance_table = dissonance_table
        self.motion_table = motion_table

    def hierarchical(self, degree: int) -> float:
        return self.hierarchical_table.get(degree, self.hierarchical_table.get(0, 0.5))

    def dissonance(self, quality: str) -> float:
        return self.dissonance_table.get(quality, 0.0)

    def motion(self, previous_root: int | None, root: int) -> float:
        """Root motion from the previous chord; the first chord has none."""
        if previous_root is None:
            return 0.0
        interval = (root - previous_root) % 12
        return self.motion_table.get(min(interval, 12 - interval), 0.0)

    def tendency(self, chord: ChordEvent) -> float:
        """Pull of applied chords toward their target."""
        if not chord.is_secondary_dominant:
            return 0.0
        value = self.SECONDARY_BONUS
        if chord.secondary_target == 5:
            value -= self.SECONDARY_TO_DOMINANT_RELIEF
        return value

    def sample(self, chord: ChordEvent, previous: ChordEvent | None) -> TensionSample:
        components = TensionComponents(
            hierarchical=self.hierarchical(chord.degree),
            dissonance=self.dissonance(chord.quality),
            motion=self.motion(previous.root if previous else None, chord.root),
            tendency=self.tendency(chord),
        )
        w = self.weights
        value = (
            w.hierarchical * components.hierarchical
            + w.dissonance * components.dissonance
            + w.motion * components.motion
            + w.tendency * components.tendency
        )
        return TensionSample(
            time=chord.time,
            value=min(1.0, max(0.0, value)),
            components=components,
        )

    def samples(self, chords: Sequence[ChordEvent]) -> list[TensionSample]:
        """One sample per chord, in chord order."""
        return [
            self.sample(chord, chords[i - 1] if i > 0 else None)
            for i, chord in enumerate(chords)
        ]


class TensionStage(PipelineStage):
    """Stage 5: Tension.

    Emits exactly one TensionSample per chord.
    """

    def __init__(self, engine: TensionEngine | None = None) -> None:
        self.engine = engine or TensionEngine()

    @property
    def name(self) -> str:
        return "tension"

    def execute(self, context: AnalysisContext) -> StageResult:
        """Compute tension for every chord."""
        context.tension = self.engine.samples(context.chords)

        warnings = []
        if context.tension:
            peak = max(context.tension, key=lambda s: s.value)
            warnings.append(f"Peak tension {peak.value:.2f} at {peak.time:.1f}s")
        return self._ok(warnings)
