"""Key estimation stage - correlates windows with key profiles and tracks modulations."""

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from tonal_analyzer.config import Settings
from tonal_analyzer.models.analysis import KeyEstimate, KeyRegion, PitchClassWindow
from tonal_analyzer.models.pipeline import AnalysisContext, StageResult
from tonal_analyzer.pipeline.base import PipelineStage
from tonal_analyzer.stages.aggregation import bar_duration
from tonal_analyzer.theory.profiles import KeyProfile, get_profile
from tonal_analyzer.theory.scales import key_name

MODES = ("major", "minor")


class KeyEstimator:
    """Krumhansl-Schmuckler key finding against a single key profile.

    The histogram is correlated (Pearson r) with all 24 rotations of the
    profile. Index i < 12 of the correlation vector is the major key on
    tonic i, index 12 + i the minor key on tonic i.
    """

    EPSILON = 1e-10

    def __init__(self, profile: KeyProfile) -> None:
        self.profile = profile
        templates = np.array(
            [np.roll(profile.major, tonic) for tonic in range(12)]
            + [np.roll(profile.minor, tonic) for tonic in range(12)],
            dtype=float,
        )
        self._centered = templates - templates.mean(axis=1, keepdims=True)
        self._norms = np.linalg.norm(self._centered, axis=1)

    def correlations(self, histogram: Sequence[float]) -> np.ndarray:
        """Pearson r of the histogram with every key (24 values).

        A histogram with no variance (silence, or equal energy everywhere)
        correlates 0 with every key.
        """
        h = np.asarray(histogram, dtype=float)
        centered = h - h.mean()
        norm = float(np.linalg.norm(centered))
        if norm == 0.0:
            return np.zeros(24)
        return (self._centered @ centered) / (self._norms * norm + self.EPSILON)

    def estimate(self, window: PitchClassWindow) -> KeyEstimate:
        """Best key, runner-up, confidence and ambiguity for one window."""
        return self.estimate_histogram(
            window.histogram, start=window.start, end=window.end, is_silent=window.is_silent
        )

    def estimate_histogram(
        self,
        histogram: Sequence[float],
        start: float = 0.0,
        end: float = 0.0,
        is_silent: bool = False,
    ) -> KeyEstimate:
        r = self.correlations(histogram)

        # Highest r first; ties go to major before minor, then lower tonic
        ranked = sorted(range(24), key=lambda i: (-r[i], i))
        best, second = ranked[0], ranked[1]
        best_r = float(r[best])
        second_r = float(r[second])

        return KeyEstimate(
            start=start,
            end=end,
            tonic=best % 12,
            mode=MODES[best // 12],
            correlation=best_r,
            confidence=(best_r + 1.0) / 2.0,
            ambiguity=ambiguity(best_r, second_r, self.EPSILON),
            second_tonic=second % 12,
            second_mode=MODES[second // 12],
            second_correlation=second_r,
            correlations=tuple(float(x) for x in r),
            is_silent=is_silent,
        )


def separation(best_r: float, other_r: float, epsilon: float = 1e-10) -> float:
    """How clearly one key beats another: 0 for a tie, 1 once the gap reaches half of |best_r|."""
    return min(1.0, max(0.0, 2.0 * (best_r - other_r) / (abs(best_r) + epsilon)))


def ambiguity(best_r: float, second_r: float, epsilon: float = 1e-10) -> float:
    """1 when the runner-up ties the winner, 0 when it trails by half of |best|."""
    return 1.0 - separation(best_r, second_r, epsilon)


def _centre(estimate: KeyEstimate) -> float:
    return (estimate.start + estimate.end) / 2.0


def _key_index(key: tuple[int, str]) -> int:
    tonic, mode = key
    return tonic % 12 + (12 if mode == "minor" else 0)


@dataclass
class _Candidate:
    """A key waiting for enough consecutive support to take over."""

    tonic: int
    mode: str
    first_index: int
    count: int = 1


@dataclass
class _Segment:
    """A closed region that a short successor may still fold back into."""

    key: tuple[int, str]
    start: float
    first_index: int


class KeyTracker:
    """Hysteresis-gated key region tracking.

    A window supports a new key when its best key differs from the current
    one and the separation between the two correlations on that window
    exceeds `confidence_threshold`. The separation is scaled by the best
    correlation, so leaving a key and coming back to it are judged alike.
    Only `min_stable_windows` consecutive supporting windows for the same
    key commit a change, which keeps brief tonicizations from splitting the
    timeline. The committed change is back-dated to the centre of the first
    supporting window.

    A region shorter than `min_region_seconds` folds into the region before
    it. When the key then returns to that earlier region's key, the earlier
    region simply resumes. A closed region therefore only becomes final once
    its successor can no longer end up short.

    Silent windows carry no evidence: they neither support nor reset a
    pending candidate.
    """

    def __init__(
        self,
        min_stable_windows: int = 3,
        confidence_threshold: float = 0.15,
        start_time: float | None = None,
        min_region_seconds: float = 0.0,
    ) -> None:
        if min_stable_windows < 1:
            raise ValueError(f"min_stable_windows must be >= 1, got {min_stable_windows}")
        if confidence_threshold < 0:
            raise ValueError(
                f"confidence_threshold must be >= 0, got {confidence_threshold}"
            )
        if min_region_seconds < 0:
            raise ValueError(f"min_region_seconds must be >= 0, got {min_region_seconds}")
        self.min_stable_windows = min_stable_windows
        self.confidence_threshold = confidence_threshold
        self.start_time = start_time
        self.min_region_seconds = min_region_seconds

        self.estimates: list[KeyEstimate] = []
        self.regions: list[KeyRegion] = []  # committed, final
        self._key: tuple[int, str] | None = None
        self._region_start: float | None = start_time
        self._region_first_index = 0
        self._held: _Segment | None = None
        self._candidate: _Candidate | None = None
        # Running sums over voiced windows: 24 key confidences, ambiguity, count
        self._totals: list[np.ndarray] = [np.zeros(26)]

    @property
    def current_key(self) -> tuple[int, str] | None:
        return self._key

    @property
    def pending(self) -> tuple[int, str, int] | None:
        """(tonic, mode, supporting windows) of the pending candidate."""
        if self._candidate is None:
            return None
        return (self._candidate.tonic, self._candidate.mode, self._candidate.count)

    @property
    def key_final_until(self) -> float | None:
        """Time before which the key at any instant can no longer change.

        Region boundaries and confidences may still move; only the key
        covering each earlier instant is fixed. None while nothing is.
        """
        if self._key is None or self._region_start is None:
            return None
        if self._held is not None:
            # The current region may still fold back into the held one
            return self._region_start
        return self._earliest_change(self.estimates[-1])

    def push(self, estimate: KeyEstimate) -> list[KeyRegion]:
        """Feed the next window estimate.

        Returns:
            Regions that became final with this window
        """
        index = len(self.estimates)
        self.estimates.append(estimate)
        self._totals.append(self._totals[-1] + self._evidence(estimate))
        if self._region_start is None:
            self._region_start = (
                self.start_time if self.start_time is not None else estimate.start
            )

        if estimate.is_silent:
            return []

        key = (estimate.tonic, estimate.mode)
        if self._key is None:
            self._key = key
            return []

        finalized: list[KeyRegion] = []
        if key == self._key:
            self._candidate = None
        elif (
            separation(estimate.correlation, estimate.correlation_for(*self._key))
            <= self.confidence_threshold
        ):
            self._candidate = None
        else:
            candidate = self._candidate
            if candidate is not None and (candidate.tonic, candidate.mode) == key:
                candidate.count += 1
            else:
                candidate = _Candidate(tonic=key[0], mode=key[1], first_index=index)
                self._candidate = candidate

            if candidate.count >= self.min_stable_windows:
                finalized.extend(self._commit(candidate))

        finalized.extend(self._settle(estimate))
        return finalized

    def _commit(self, candidate: _Candidate) -> list[KeyRegion]:
        assert self._key is not None and self._region_start is not None
        change_time = max(_centre(self.estimates[candidate.first_index]), self._region_start)
        new_key = (candidate.tonic, candidate.mode)
        self._candidate = None

        finalized = []
        held = self._held
        if held is not None and change_time - self._region_start < self.min_region_seconds:
            # The closing region is too short: the held region absorbs it
            if held.key == new_key:
                self._key = held.key
                self._region_start = held.start
                self._region_first_index = held.first_index
                self._held = None
                return finalized
        else:
            if held is not None:
                finalized.append(self._finalize_held())
            self._held = _Segment(self._key, self._region_start, self._region_first_index)

        self._key = new_key
        self._region_start = change_time
        self._region_first_index = candidate.first_index
        return finalized

    def _settle(self, latest: KeyEstimate) -> list[KeyRegion]:
        """Finalize the held region once the current one cannot end up short."""
        if self._held is None or self._region_start is None:
            return []
        if self._earliest_change(latest) - self._region_start < self.min_region_seconds:
            return []
        return [self._finalize_held()]

    def _earliest_change(self, latest: KeyEstimate) -> float:
        """Lower bound on the time of the next committed key change."""
        assert self._region_start is not None
        if self._candidate is not None:
            centre = _centre(self.estimates[self._candidate.first_index])
        else:
            centre = _centre(latest)
        return max(centre, self._region_start)

    def _finalize_held(self) -> KeyRegion:
        assert self._held is not None and self._region_start is not None
        held = self._held
        region = self._build_region(
            held.key, held.start, self._region_start, held.first_index, self._region_first_index
        )
        self.regions.append(region)
        self._held = None
        return region

    def finish(self, end: float) -> list[KeyRegion]:
        """All regions, the open one closed at `end`.

        Does not change the tracker state, so it also serves to preview the
        provisional regions of a stream.
        """
        if self._region_start is None or not self.estimates:
            return list(self.regions)

        key = self._key
        if key is None:
            # Nothing but silence so far
            first = self.estimates[0]
            key = (first.tonic, first.mode)
        end = max(end, self._region_start)
        last = len(self.estimates)

        held = self._held
        if held is None:
            return self.regions + [
                self._build_region(key, self._region_start, end, self._region_first_index, last)
            ]
        if end - self._region_start < self.min_region_seconds:
            return self.regions + [
                self._build_region(held.key, held.start, end, held.first_index, last)
            ]
        return self.regions + [
            self._build_region(
                held.key, held.start, self._region_start, held.first_index, self._region_first_index
            ),
            self._build_region(key, self._region_start, end, self._region_first_index, last),
        ]

    @staticmethod
    def _evidence(estimate: KeyEstimate) -> np.ndarray:
        evidence = np.zeros(26)
        if estimate.is_silent:
            return evidence
        if estimate.correlations:
            evidence[:24] = (np.asarray(estimate.correlations) + 1.0) / 2.0
        else:
            evidence[:24] = 0.5
        evidence[24] = estimate.ambiguity
        evidence[25] = 1.0
        return evidence

    def _build_region(
        self,
        key: tuple[int, str],
        start: float,
        end: float,
        first_index: int,
        last_index: int,
    ) -> KeyRegion:
        tonic, mode = key
        totals = self._totals[last_index] - self._totals[first_index]
        voiced = totals[25]
        if voiced > 0:
            confidence = float(totals[_key_index(key)] / voiced)
            ambiguity_ = float(totals[24] / voiced)
        else:
            confidence, ambiguity_ = 0.5, 1.0
        return KeyRegion(
            tonic=tonic,
            mode=mode,  # type: ignore[arg-type]
            confidence=confidence,
            ambiguity=ambiguity_,
            start=start,
            end=end,
        )


def track_key_regions(
    estimates: Sequence[KeyEstimate],
    start: float,
    end: float,
    min_stable_windows: int = 3,
    confidence_threshold: float = 0.15,
    min_region_seconds: float = 0.0,
) -> list[KeyRegion]:
    """Run the hysteresis tracker over a complete estimate sequence."""
    if not estimates:
        return []
    tracker = KeyTracker(
        min_stable_windows,
        confidence_threshold,
        start_time=start,
        min_region_seconds=min_region_seconds,
    )
    for estimate in estimates:
        tracker.push(estimate)
    return tracker.finish(end)


def region_at(regions: Sequence[KeyRegion], time: float) -> KeyRegion | None:
    """The region covering `time` (the last region covers its own end)."""
    for region in regions:
        if region.contains(time):
            return region
    if regions and time >= regions[-1].end:
        return regions[-1]
    if regions and time < regions[0].start:
        return regions[0]
    return None


class KeyEstimationStage(PipelineStage):
    """Stage 2: Key Estimation.

    Correlates every key window with the configured key profile and runs
    the hysteresis tracker to turn window estimates into contiguous key
    regions covering the whole input. Also estimates one key for the whole
    piece from the summed chord-window histograms.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.estimator = KeyEstimator(get_profile(settings.profile))

    @property
    def name(self) -> str:
        return "key_estimation"

    def execute(self, context: AnalysisContext) -> StageResult:
        """Estimate window keys and key regions."""
        warnings: list[str] = []

        if not context.key_windows:
            context.key_estimates = []
            context.key_regions = []
            context.global_key = None
            warnings.append("No key windows, skipping key estimation")
            return self._ok(warnings)

        bar = context.bar_seconds or bar_duration(
            self.settings.tempo_bpm, (self.settings.beats_per_bar, 4)
        )
        context.key_estimates = [self.estimator.estimate(w) for w in context.key_windows]
        context.key_regions = track_key_regions(
            context.key_estimates,
            start=context.start_time,
            end=context.end_time,
            min_stable_windows=self.settings.min_stable_windows,
            confidence_threshold=self.settings.confidence_threshold,
            min_region_seconds=self.settings.min_region_bars * bar,
        )

        totals = np.zeros(12)
        for window in context.chord_windows:
            totals += np.asarray(window.histogram)
        context.global_key = self.estimator.estimate_histogram(
            totals,
            start=context.start_time,
            end=context.end_time,
            is_silent=not totals.any(),
        )

        warnings.append(
            f"Global key: {key_name(context.global_key.tonic, context.global_key.mode)} "
            f"(confidence {context.global_key.confidence:.2f})"
        )
        warnings.append(f"{len(context.key_regions)} key regions")
        ambiguous = sum(1 for e in context.key_estimates if e.ambiguity > 0.8 and not e.is_silent)
        if ambiguous:
            warnings.append(f"{ambiguous} ambiguous key windows")

        return self._ok(warnings)
