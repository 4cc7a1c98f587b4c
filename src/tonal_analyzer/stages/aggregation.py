"""Aggregation stage - groups notes into windows of weighted pitch-class energy."""

import math
from typing import Sequence

import numpy as np

from tonal_analyzer.config import Settings
from tonal_analyzer.models.analysis import NoteEvent, PitchClassWindow
from tonal_analyzer.models.pipeline import AnalysisContext, StageResult
from tonal_analyzer.pipeline.base import PipelineStage

# Tolerance for float drift on grid positions
_GRID_EPSILON = 1e-9


def bar_duration(tempo_bpm: float, time_signature: tuple[int, int]) -> float:
    """Length of one bar in seconds.

    MIDI tempo is quarter notes per minute, so the denominator rescales the
    beat unit (6/8 at 120 BPM lasts 1.5 seconds).
    """
    numerator, denominator = time_signature
    return numerator * (4.0 / denominator) * 60.0 / tempo_bpm


def time_extent(notes: Sequence[NoteEvent]) -> tuple[float, float]:
    """(first note start, last note end) of a note list, (0, 0) if empty."""
    if not notes:
        return (0.0, 0.0)
    return (min(n.start for n in notes), max(n.end for n in notes))


def aggregate_windows(
    notes: Sequence[NoteEvent],
    window_seconds: float,
    hop_seconds: float,
    start: float | None = None,
    end: float | None = None,
) -> list[PitchClassWindow]:
    """Build one pitch-class histogram per hop.

    Windows sit on a grid anchored at time 0. The first window is the one
    whose hop contains `start`; windows are emitted while they begin before
    `end`. Each bin accumulates overlap duration x velocity of every note
    sounding in the window. Windows without notes carry a zero histogram.

    Args:
        notes: Note events (any order)
        window_seconds: Window length in seconds
        hop_seconds: Distance between window starts in seconds
        start: Start of the analysed span (default: first note start)
        end: End of the analysed span (default: last note end)

    Returns:
        Windows in time order

    Raises:
        ValueError: If the window or hop length is not positive
    """
    if window_seconds <= 0:
        raise ValueError(f"Window length must be positive, got {window_seconds}")
    if hop_seconds <= 0:
        raise ValueError(f"Hop length must be positive, got {hop_seconds}")

    extent_start, extent_end = time_extent(notes)
    start = extent_start if start is None else start
    end = extent_end if end is None else end
    if end <= start:
        return []

    starts, ends, velocities, pitches = _note_arrays(notes)

    windows = []
    k = math.floor(start / hop_seconds + _GRID_EPSILON)
    while k * hop_seconds < end - _GRID_EPSILON:
        window_start = k * hop_seconds
        windows.append(
            _build_window(
                starts, ends, velocities, pitches, window_start, window_start + window_seconds
            )
        )
        k += 1

    return windows


def window_from_notes(
    notes: Sequence[NoteEvent], window_start: float, window_end: float
) -> PitchClassWindow:
    """Aggregate a single window [window_start, window_end)."""
    return _build_window(*_note_arrays(notes), window_start, window_end)


def _note_arrays(
    notes: Sequence[NoteEvent],
) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    return (
        np.array([n.start for n in notes], dtype=float),
        np.array([n.end for n in notes], dtype=float),
        np.array([n.velocity for n in notes], dtype=float),
        np.array([n.pitch for n in notes], dtype=int),
    )


def _build_window(
    starts: np.ndarray,
    ends: np.ndarray,
    velocities: np.ndarray,
    pitches: np.ndarray,
    window_start: float,
    window_end: float,
) -> PitchClassWindow:
    """Accumulate one window from note arrays."""
    if len(starts) == 0:
        return PitchClassWindow(
            start=window_start, end=window_end, histogram=(0.0,) * 12
        )

    overlap = np.clip(
        np.minimum(ends, window_end) - np.maximum(starts, window_start), 0.0, None
    )
    weights = overlap * velocities
    histogram = np.bincount(pitches % 12, weights=weights, minlength=12)

    sounding = weights > 0
    onset = None
    bass = None
    soprano = None
    if sounding.any():
        sounding_pitches = pitches[sounding]
        bass = int(sounding_pitches.min() % 12)
        soprano = int(sounding_pitches.max() % 12)

        attacks = starts[sounding & (starts >= window_start)]
        if len(attacks) > 0:
            onset = float(attacks.min())

    return PitchClassWindow(
        start=window_start,
        end=window_end,
        histogram=tuple(float(x) for x in histogram),
        onset=onset,
        bass=bass,
        soprano=soprano,
    )


class AggregationStage(PipelineStage):
    """Stage 1: Pitch-Class Aggregation.

    Builds two window series over the note stream:
    - key windows (window_bars long, hop_bars apart) for key finding
    - chord windows (chord_window_bars long and apart) for chord detection

    Bar length comes from the tempo and time signature found at ingest,
    falling back to the configured tempo and beats per bar.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @property
    def name(self) -> str:
        return "aggregation"

    def execute(self, context: AnalysisContext) -> StageResult:
        """Build key and chord windows."""
        warnings: list[str] = []

        if not context.notes:
            context.key_windows = []
            context.chord_windows = []
            warnings.append("No notes to analyze")
            return self._ok(warnings)

        tempo = context.tempo_bpm or self.settings.tempo_bpm
        time_signature = context.time_signature or (self.settings.beats_per_bar, 4)
        bar = bar_duration(tempo, time_signature)
        context.bar_seconds = bar

        context.start_time, context.end_time = time_extent(context.notes)

        context.key_windows = aggregate_windows(
            context.notes,
            window_seconds=bar * self.settings.window_bars,
            hop_seconds=bar * self.settings.hop_bars,
            start=context.start_time,
            end=context.end_time,
        )
        chord_span = bar * self.settings.chord_window_bars
        context.chord_windows = aggregate_windows(
            context.notes,
            window_seconds=chord_span,
            hop_seconds=chord_span,
            start=context.start_time,
            end=context.end_time,
        )

        silent = sum(1 for w in context.chord_windows if w.is_silent)
        warnings.append(
            f"{len(context.key_windows)} key windows, "
            f"{len(context.chord_windows)} chord windows ({bar:.2f}s per bar)"
        )
        if silent:
            warnings.append(f"{silent} silent chord windows")

        return self._ok(warnings)
