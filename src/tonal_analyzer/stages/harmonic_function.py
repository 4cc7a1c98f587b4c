"""Harmonic function stage - functional labels, applied and borrowed chords."""

from dataclasses import replace
from types import MappingProxyType
from typing import Mapping, Sequence

from tonal_analyzer.models.analysis import ChordEvent
from tonal_analyzer.models.pipeline import AnalysisContext, StageResult
from tonal_analyzer.pipeline.base import PipelineStage
from tonal_analyzer.theory.chords import (
    DIMINISHED_QUALITIES,
    DOMINANT_QUALITIES,
    MINOR_QUALITIES,
)
from tonal_analyzer.theory.scales import (
    ROMAN_NUMERALS,
    is_diatonic_chord,
    parallel_mode,
    roman_numeral,
    scale_degree,
)

# Degree 3 sits between tonic and dominant and is left unlabelled
FUNCTION_BY_DEGREE: Mapping[int, str] = MappingProxyType(
    {
        1: "tonic",
        6: "tonic",
        2: "subdominant",
        4: "subdominant",
        5: "dominant",
        7: "dominant",
    }
)

# Root motion (semitones up, mod 12) from an applied chord to its target
_DOMINANT_RESOLUTION = 5
_LEADING_TONE_RESOLUTION = 1


def harmonic_function(degree: int) -> str:
    """tonic / subdominant / dominant for a scale degree, 'none' otherwise."""
    return FUNCTION_BY_DEGREE.get(degree, "none")


def secondary_resolution(
    chord: ChordEvent, following: ChordEvent | None
) -> tuple[int, str] | None:
    """Detect an applied chord from the chord that follows it.

    Returns:
        (target degree, "dominant" | "leading_tone"), or None
    """
    if following is None or following.degree in (0, 1):
        return None
    if is_diatonic_chord(chord.root, chord.quality, chord.key_tonic, chord.key_mode):
        return None

    interval = (following.root - chord.root) % 12
    if chord.quality in DOMINANT_QUALITIES and interval == _DOMINANT_RESOLUTION:
        return (following.degree, "dominant")
    if chord.quality in DIMINISHED_QUALITIES and interval == _LEADING_TONE_RESOLUTION:
        return (following.degree, "leading_tone")
    return None


def is_borrowed(chord: ChordEvent) -> bool:
    """Non-diatonic chord that belongs to the parallel mode (modal mixture)."""
    if is_diatonic_chord(chord.root, chord.quality, chord.key_tonic, chord.key_mode):
        return False
    return is_diatonic_chord(
        chord.root, chord.quality, chord.key_tonic, parallel_mode(chord.key_mode)
    )


def applied_numeral(chord: ChordEvent, target: int, kind: str, target_quality: str) -> str:
    """Numeral for an applied chord, e.g. 'V/V', 'V7/ii', 'vii°/vi'."""
    target_numeral = ROMAN_NUMERALS[target]
    if target_quality in MINOR_QUALITIES:
        target_numeral = target_numeral.lower()

    if kind == "leading_tone":
        head = roman_numeral(7, chord.quality)
    else:
        head = "V7" if chord.quality == "dom7" else "V"
    return f"{head}/{target_numeral}"


def chord_numeral(chord: ChordEvent, borrowed: bool) -> str:
    """Roman numeral in the chord's key; borrowed chords get b/# accidentals."""
    if chord.degree > 0:
        return roman_numeral(chord.degree, chord.quality)
    if not borrowed:
        return ""

    other_mode = parallel_mode(chord.key_mode)
    degree = scale_degree(chord.root, chord.key_tonic, other_mode)
    accidental = "b" if chord.key_mode == "major" else "#"
    return accidental + roman_numeral(degree, chord.quality)


def classify_chords(chords: Sequence[ChordEvent]) -> list[ChordEvent]:
    """Attach function, applied-chord and mixture labels to a chord sequence."""
    labelled: list[ChordEvent] = []
    for i, chord in enumerate(chords):
        following = chords[i + 1] if i + 1 < len(chords) else None
        resolution = secondary_resolution(chord, following)
        borrowed = is_borrowed(chord)

        if resolution is not None and following is not None:
            target, kind = resolution
            labelled.append(
                replace(
                    chord,
                    function=harmonic_function(chord.degree),
                    is_secondary_dominant=True,
                    secondary_target=target,
                    secondary_kind=kind,
                    is_borrowed=borrowed,
                    numeral=applied_numeral(chord, target, kind, following.quality),
                )
            )
        else:
            labelled.append(
                replace(
                    chord,
                    function=harmonic_function(chord.degree),
                    is_secondary_dominant=False,
                    secondary_target=None,
                    secondary_kind=None,
                    is_borrowed=borrowed,
                    numeral=chord_numeral(chord, borrowed),
                )
            )
    return labelled


class HarmonicFunctionStage(PipelineStage):
    """Stage 4: Function & Secondary-Dominant Classification.

    Labels each chord tonic / subdominant / dominant from its scale degree
    and inspects each chord with its successor to find applied dominants
    (V/x, resolving down a fifth) and applied leading-tone chords (vii°/x,
    resolving up a semitone). Chords borrowed from the parallel mode are
    flagged as well.
    """

    @property
    def name(self) -> str:
        return "harmonic_function"

    def execute(self, context: AnalysisContext) -> StageResult:
        """Classify chord functions."""
        warnings: list[str] = []

        context.chords = classify_chords(context.chords)

        applied = sum(1 for c in context.chords if c.is_secondary_dominant)
        borrowed = sum(1 for c in context.chords if c.is_borrowed)
        if applied:
            warnings.append(f"{applied} applied chords")
        if borrowed:
            warnings.append(f"{borrowed} borrowed chords")

        return self._ok(warnings)
