"""Cadence stage - classifies chord-pair closures."""

from typing import Sequence

from tonal_analyzer.config import Settings
from tonal_analyzer.models.analysis import CadenceEvent, ChordEvent
from tonal_analyzer.models.pipeline import AnalysisContext, StageResult
from tonal_analyzer.pipeline.base import PipelineStage


def _root_position(chord: ChordEvent) -> bool | None:
    """Whether the bass is the chord root, None when unknown."""
    if chord.bass is None:
        return None
    return chord.bass == chord.root


def _voiced_authentic_type(previous: ChordEvent, current: ChordEvent) -> str:
    """PAC unless voicing shows an inversion or a non-tonic soprano.

    Without bass/soprano information every V-I is treated as perfect.
    """
    inverted = _root_position(previous) is False or _root_position(current) is False
    soprano_off_tonic = current.soprano is not None and current.soprano != current.key_tonic
    return "IAC" if inverted or soprano_off_tonic else "PAC"


def classify_cadence(
    previous: ChordEvent, current: ChordEvent, use_voicing: bool = False
) -> str | None:
    """Cadence type for an ordered chord pair, or None.

    V-I is always PAC unless `use_voicing` is set, in which case an inverted
    chord or a soprano off the tonic makes it IAC.
    """
    prev_degree, degree = previous.degree, current.degree

    if prev_degree == 5 and degree == 1:
        return _voiced_authentic_type(previous, current) if use_voicing else "PAC"
    if prev_degree == 7 and degree == 1:
        return "IAC"
    if prev_degree == 4 and degree == 1:
        return "PC"
    if prev_degree == 5 and degree == 6:
        return "DC"
    if degree == 5 and prev_degree != 5:
        return "HC"
    return None


def detect_cadences(
    chords: Sequence[ChordEvent], use_voicing: bool = False
) -> list[CadenceEvent]:
    """Cadence events at the arrival chord of every matching pair."""
    cadences = []
    for previous, current in zip(chords, chords[1:]):
        cadence_type = classify_cadence(previous, current, use_voicing)
        if cadence_type is not None:
            cadences.append(
                CadenceEvent(
                    time=current.time,
                    type=cadence_type,  # type: ignore[arg-type]
                    from_degree=previous.degree,
                    to_degree=current.degree,
                )
            )
    return cadences


class CadenceStage(PipelineStage):
    """Stage 6: Cadence Detection.

    State-free: looks only at consecutive chord pairs.
    - PAC: V -> I
    - IAC: vii° -> I (and voiced V -> I with voicing_cadences)
    - HC: any -> V
    - PC: IV -> I
    - DC: V -> vi
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.use_voicing = settings.voicing_cadences if settings is not None else False

    @property
    def name(self) -> str:
        return "cadence"

    def execute(self, context: AnalysisContext) -> StageResult:
        """Detect cadences between consecutive chords."""
        context.cadences = detect_cadences(context.chords, self.use_voicing)
        return self._ok([f"{len(context.cadences)} cadences"])
