"""Chord detection stage - template matching biased by the current key."""

from dataclasses import dataclass, replace
from typing import Mapping, Sequence

import numpy as np

from tonal_analyzer.config import Settings
from tonal_analyzer.models.analysis import ChordEvent, KeyRegion, PitchClassWindow
from tonal_analyzer.models.pipeline import AnalysisContext, StageResult
from tonal_analyzer.pipeline.base import PipelineStage
from tonal_analyzer.stages.key_estimation import region_at
from tonal_analyzer.theory.chords import CHORD_TEMPLATES, QUALITY_PREFERENCE
from tonal_analyzer.theory.scales import chord_name, scale_degree, scale_pitch_classes


@dataclass(frozen=True)
class ChordMatch:
    """Winning (root, quality) pair for a histogram."""

    root: int
    quality: str
    score: float


class ChordDetector:
    """Scores every (root, quality) pair against a pitch-class histogram.

    score = match / total
            - non_chord_penalty * non_chord / total
            + diatonic_bonus (root inside the key's scale)
            + quality preference
            - missing_tone_penalty * template tones without energy

    The last term keeps supersets (maj7, add9, ...) from tying with the
    triad they contain when their extra tone is not sounding.
    """

    def __init__(
        self,
        templates: Mapping[str, tuple[int, ...]] = CHORD_TEMPLATES,
        preferences: Mapping[str, float] = QUALITY_PREFERENCE,
        diatonic_bonus: float = 0.15,
        non_chord_penalty: float = 0.3,
        missing_tone_penalty: float = 0.05,
    ) -> None:
        if not templates:
            raise ValueError("At least one chord template is required")
        for quality, intervals in templates.items():
            if not intervals or any(not 0 <= i < 12 for i in intervals):
                raise ValueError(f"Invalid intervals for chord quality '{quality}': {intervals}")

        self.templates = templates
        self.preferences = preferences
        self.diatonic_bonus = diatonic_bonus
        self.non_chord_penalty = non_chord_penalty
        self.missing_tone_penalty = missing_tone_penalty

        # qualities x roots x pitch classes
        self._qualities = list(templates)
        masks = np.zeros((len(self._qualities), 12, 12), dtype=bool)
        for q, quality in enumerate(self._qualities):
            base = np.zeros(12, dtype=bool)
            base[list(templates[quality])] = True
            for root in range(12):
                masks[q, root] = np.roll(base, root)
        self._masks = masks
        self._sizes = np.array([len(set(templates[q])) for q in self._qualities])
        self._preference = np.array([preferences.get(q, 0.0) for q in self._qualities])

    def scores(
        self, histogram: Sequence[float], scale: frozenset[int] | None = None
    ) -> np.ndarray:
        """Score matrix of shape (qualities, 12 roots), all zeros when silent."""
        h = np.asarray(histogram, dtype=float)
        total = float(h.sum())
        if total <= 0:
            return np.zeros(self._masks.shape[:2])

        match = self._masks @ h
        non_chord = total - match
        absent = (self._masks & (h <= total * 1e-9)).sum(axis=2)

        bonus = np.zeros(12)
        if scale:
            bonus[list(scale)] = self.diatonic_bonus

        return (
            match / total
            - self.non_chord_penalty * non_chord / total
            + bonus[np.newaxis, :]
            + self._preference[:, np.newaxis]
            - self.missing_tone_penalty * absent
        )

    def match(
        self, histogram: Sequence[float], scale: frozenset[int] | None = None
    ) -> ChordMatch | None:
        """Best chord for a histogram, or None for silence.

        Ties go to the template with fewer tones, then to the earlier
        template in the table, then to the lower root.
        """
        if float(np.sum(histogram)) <= 0:
            return None

        scores = self.scores(histogram, scale)
        best = max(
            (
                (float(scores[q, root]), -int(self._sizes[q]), -q, -root)
                for q in range(len(self._qualities))
                for root in range(12)
            )
        )
        score, _, neg_q, neg_root = best
        return ChordMatch(root=-neg_root, quality=self._qualities[-neg_q], score=score)

    def detect(
        self, window: PitchClassWindow, region: KeyRegion | None
    ) -> ChordEvent | None:
        """ChordEvent for one window, labelled against the region's key."""
        scale = scale_pitch_classes(region.tonic, region.mode) if region else None
        found = self.match(window.histogram, scale)
        if found is None:
            return None

        return ChordEvent(
            time=window.onset if window.onset is not None else window.start,
            end=window.end,
            root=found.root,
            quality=found.quality,  # type: ignore[arg-type]
            degree=scale_degree(found.root, region.tonic, region.mode) if region else 0,
            score=found.score,
            name=chord_name(found.root, found.quality),
            key_tonic=region.tonic if region else 0,
            key_mode=region.mode if region else "major",
            bass=window.bass,
            soprano=window.soprano,
        )


def detect_chords(
    windows: Sequence[PitchClassWindow],
    regions: Sequence[KeyRegion],
    detector: ChordDetector,
    collapse_repeats: bool = True,
) -> list[ChordEvent]:
    """Detect a chord per window.

    Silent windows emit nothing. With `collapse_repeats`, a window holding
    the same chord in the same key as the directly preceding window extends
    that chord instead of emitting a new one.
    """
    chords: list[ChordEvent] = []
    previous_end: float | None = None

    for window in windows:
        if window.is_silent:
            previous_end = None
            continue

        time = window.onset if window.onset is not None else window.start
        chord = detector.detect(window, region_at(regions, time))
        if chord is None:
            continue

        prev = chords[-1] if chords else None
        if (
            collapse_repeats
            and prev is not None
            and previous_end is not None
            and abs(previous_end - window.start) < 1e-9
            and (prev.root, prev.quality, prev.key_tonic, prev.key_mode)
            == (chord.root, chord.quality, chord.key_tonic, chord.key_mode)
        ):
            chords[-1] = replace(prev, end=window.end)
        else:
            chords.append(chord)
        previous_end = window.end

    return chords


class ChordDetectionStage(PipelineStage):
    """Stage 3: Chord Detection.

    Matches every chord window against the chord template table, biasing
    roots that are diatonic in the key region the chord falls in. The
    chord's time is the first note attack inside its window.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.detector = ChordDetector(
            diatonic_bonus=settings.diatonic_bonus,
            non_chord_penalty=settings.non_chord_penalty,
            missing_tone_penalty=settings.missing_tone_penalty,
        )

    @property
    def name(self) -> str:
        return "chord_detection"

    def execute(self, context: AnalysisContext) -> StageResult:
        """Detect chords in every chord window."""
        warnings: list[str] = []

        context.chords = detect_chords(
            context.chord_windows,
            context.key_regions,
            self.detector,
            collapse_repeats=self.settings.collapse_repeated_chords,
        )

        chromatic = sum(1 for c in context.chords if c.degree == 0)
        warnings.append(f"{len(context.chords)} chords detected")
        if chromatic:
            warnings.append(f"{chromatic} chords with chromatic roots")

        return self._ok(warnings)
