"""Incremental analysis of a live note stream, one hop at a time."""

import bisect
import math
from dataclasses import dataclass, field
from typing import Iterable, Sequence, TypeVar

from tonal_analyzer.config import Settings
from tonal_analyzer.models.analysis import (
    CadenceEvent,
    ChordEvent,
    KeyRegion,
    NoteEvent,
    PitchClassWindow,
    TensionSample,
)
from tonal_analyzer.stages.aggregation import bar_duration, window_from_notes
from tonal_analyzer.stages.cadence import detect_cadences
from tonal_analyzer.stages.chord_detection import ChordDetector, detect_chords
from tonal_analyzer.stages.harmonic_function import classify_chords
from tonal_analyzer.stages.key_estimation import KeyEstimator, KeyTracker
from tonal_analyzer.stages.tension import TensionEngine
from tonal_analyzer.theory.profiles import get_profile

T = TypeVar("T")

_GRID_EPSILON = 1e-9


def _note_order(note: NoteEvent) -> tuple[float, int, int]:
    return (note.start, note.pitch, note.channel)


@dataclass
class AnalysisUpdate:
    """Output produced by one advance() / finish() call.

    `chords`, `tension` and `cadences` hold everything that is new or that
    changed since the previous update. When earlier output changed (a key
    change was back-dated, or a chord's successor revealed it as an applied
    chord), `revised_from` is the time from which the consumer must replace
    what it received before.
    """

    committed_regions: list[KeyRegion] = field(default_factory=list)
    provisional_region: KeyRegion | None = None
    chords: list[ChordEvent] = field(default_factory=list)
    tension: list[TensionSample] = field(default_factory=list)
    cadences: list[CadenceEvent] = field(default_factory=list)
    revised_from: float | None = None


class StreamingAnalyzer:
    """Runs the analysis engine incrementally as bars of a stream arrive.

    Feed notes as they complete, then call advance(now): every chord and
    key window that has fully elapsed by `now` is analysed. Key-dependent
    output after the last final key region stays provisional while the key
    tracker may still back-date a change; corrections arrive as revisions in
    later updates. After finish() the accumulated output equals an offline
    pass over the same notes.

    Work per hop is bounded by the provisional tail, not the stream length:
    notes that ended before every pending window are dropped, and chords
    whose key can no longer change are settled and never relabelled.

    advance() assumes every note sounding before `now` has been fed.
    """

    def __init__(
        self,
        settings: Settings,
        tempo_bpm: float | None = None,
        time_signature: tuple[int, int] | None = None,
    ) -> None:
        tempo = tempo_bpm or settings.tempo_bpm
        meter = time_signature or (settings.beats_per_bar, 4)
        if tempo <= 0:
            raise ValueError(f"Tempo must be positive, got {tempo}")
        if meter[0] <= 0 or meter[1] <= 0:
            raise ValueError(f"Invalid time signature: {meter}")

        self.settings = settings
        bar = bar_duration(tempo, meter)
        self._key_window = bar * settings.window_bars
        self._key_hop = bar * settings.hop_bars
        self._chord_span = bar * settings.chord_window_bars

        self._estimator = KeyEstimator(get_profile(settings.profile))
        self._detector = ChordDetector(
            diatonic_bonus=settings.diatonic_bonus,
            non_chord_penalty=settings.non_chord_penalty,
            missing_tone_penalty=settings.missing_tone_penalty,
        )
        self._engine = TensionEngine()
        self._tracker = KeyTracker(
            settings.min_stable_windows,
            settings.confidence_threshold,
            min_region_seconds=settings.min_region_bars * bar,
        )

        # Notes that can still reach a pending window, in (start, pitch, channel) order
        self._notes: list[NoteEvent] = []
        self._start: float | None = None
        self._end = 0.0
        self._next_key_index: int | None = None
        self._next_chord_index: int | None = None
        # Chord windows not yet settled, starting at the first unsettled chord
        self._tail_windows: list[PitchClassWindow] = []
        self._settled_chords = 0
        self._settled_cadences = 0
        self._reported_regions = 0
        self._processed_until = 0.0
        self._finished = False
        self._final_regions: list[KeyRegion] = []

        self.chords: list[ChordEvent] = []
        self.tension: list[TensionSample] = []
        self.cadences: list[CadenceEvent] = []

    @property
    def key_regions(self) -> list[KeyRegion]:
        """Committed regions plus the open one (provisional until finish)."""
        if self._finished:
            return list(self._final_regions)
        return self._regions_until(self._processed_until)

    def feed(self, notes: Iterable[NoteEvent]) -> None:
        """Add completed notes to the stream."""
        if self._finished:
            raise RuntimeError("Cannot feed notes after finish()")
        for note in notes:
            bisect.insort(self._notes, note, key=_note_order)
            self._end = max(self._end, note.end)
            if self._start is None or note.start < self._start:
                self._start = note.start
        if self._start is not None and self._next_key_index is None:
            self._next_key_index = math.floor(self._start / self._key_hop + _GRID_EPSILON)
            self._next_chord_index = math.floor(self._start / self._chord_span + _GRID_EPSILON)
            self._tracker.start_time = self._start

    def advance(self, now: float) -> AnalysisUpdate:
        """Analyse every window that has fully elapsed by `now`."""
        if self._finished or self._start is None:
            return AnalysisUpdate()
        self._processed_until = max(self._processed_until, now)
        self._process(lambda start, length: start + length <= now + _GRID_EPSILON)
        return self._update(self._regions_until(self._processed_until))

    def finish(self) -> AnalysisUpdate:
        """Flush the remaining windows and close the final key region."""
        if self._finished or self._start is None:
            self._finished = True
            return AnalysisUpdate()

        end = self._end
        self._process(lambda start, length: start < end - _GRID_EPSILON)
        self._finished = True
        self._processed_until = end
        self._final_regions = self._tracker.finish(end)
        return self._update(self._final_regions, final=True)

    def _process(self, ready) -> None:
        assert self._next_key_index is not None and self._next_chord_index is not None

        while ready(self._next_key_index * self._key_hop, self._key_window):
            window = self._window(self._next_key_index * self._key_hop, self._key_window)
            self._tracker.push(self._estimator.estimate(window))
            self._next_key_index += 1

        while ready(self._next_chord_index * self._chord_span, self._chord_span):
            self._tail_windows.append(
                self._window(self._next_chord_index * self._chord_span, self._chord_span)
            )
            self._next_chord_index += 1

        # Notes ending before every pending window contribute nothing more
        cutoff = min(
            self._next_key_index * self._key_hop, self._next_chord_index * self._chord_span
        )
        self._notes = [n for n in self._notes if n.end > cutoff]

    def _window(self, start: float, length: float) -> PitchClassWindow:
        return window_from_notes(self._notes, start, start + length)

    def _regions_until(self, end: float) -> list[KeyRegion]:
        if self._start is None:
            return []
        return self._tracker.finish(max(end, self._start))

    def _update(self, regions: list[KeyRegion], final: bool = False) -> AnalysisUpdate:
        chords = classify_chords(
            detect_chords(
                self._tail_windows,
                regions,
                self._detector,
                collapse_repeats=self.settings.collapse_repeated_chords,
            )
        )
        previous = self.chords[self._settled_chords - 1] if self._settled_chords else None

        tension = []
        before = previous
        for chord in chords:
            tension.append(self._engine.sample(chord, before))
            before = chord
        cadences = detect_cadences(
            ([previous] if previous is not None else []) + chords,
            self.settings.voicing_cadences,
        )

        old_chords = self.chords[self._settled_chords :]
        old_tension = self.tension[self._settled_chords :]
        old_cadences = self.cadences[self._settled_cadences :]
        chord_index = _first_difference(old_chords, chords)
        tension_index = _first_difference(old_tension, tension)
        cadence_index = _first_difference(old_cadences, cadences)

        revised_times = []
        if chord_index < len(old_chords):
            revised_times.append(old_chords[chord_index].time)
        if cadence_index < len(old_cadences):
            revised_times.append(old_cadences[cadence_index].time)

        committed_count = len(regions) if final else len(self._tracker.regions)
        update = AnalysisUpdate(
            committed_regions=regions[self._reported_regions : committed_count],
            provisional_region=None if final or not regions else regions[-1],
            chords=chords[chord_index:],
            tension=tension[tension_index:],
            cadences=cadences[cadence_index:],
            revised_from=min(revised_times) if revised_times else None,
        )
        self._reported_regions = committed_count

        del self.chords[self._settled_chords :]
        del self.tension[self._settled_chords :]
        del self.cadences[self._settled_cadences :]
        self.chords.extend(chords)
        self.tension.extend(tension)
        self.cadences.extend(cadences)

        if not final:
            self._settle(chords, cadences)
        return update

    def _settle(self, chords: list[ChordEvent], cadences: list[CadenceEvent]) -> None:
        """Settle tail chords whose successor already has its final key."""
        boundary = self._tracker.key_final_until
        if boundary is None:
            return
        inside = sum(1 for chord in chords if chord.time < boundary)
        # The last chord inside stays open: its successor may still change
        settle = inside - 1
        if settle <= 0:
            return

        next_time = chords[settle].time
        self._settled_chords += settle
        self._settled_cadences += sum(1 for cadence in cadences if cadence.time < next_time)
        self._tail_windows = [w for w in self._tail_windows if w.end > next_time]


def _first_difference(old: Sequence[T], new: Sequence[T]) -> int:
    """Index of the first element that differs (or the shorter length)."""
    for i, (a, b) in enumerate(zip(old, new)):
        if a != b:
            return i
    return min(len(old), len(new))
