"""Tests for the AggregationStage."""

import pytest

from tonal_analyzer.models.analysis import NoteEvent
from tonal_analyzer.models.pipeline import AnalysisContext
from tonal_analyzer.stages.aggregation import (
    AggregationStage,
    aggregate_windows,
    bar_duration,
    time_extent,
    window_from_notes,
)


class TestBarDuration:
    """Tests for bar_duration()."""

    def test_common_time(self):
        assert bar_duration(120, (4, 4)) == pytest.approx(2.0)

    def test_compound_meter(self):
        assert bar_duration(120, (6, 8)) == pytest.approx(1.5)

    def test_slow_waltz(self):
        assert bar_duration(60, (3, 4)) == pytest.approx(3.0)


class TestAggregateWindows:
    """Tests for aggregate_windows()."""

    def test_duration_times_velocity(self):
        notes = [NoteEvent(pitch=60, velocity=100, start=0.0, end=1.0)]
        windows = aggregate_windows(notes, window_seconds=2.0, hop_seconds=2.0)

        assert len(windows) == 1
        assert windows[0].histogram[0] == pytest.approx(100.0)
        assert sum(windows[0].histogram[1:]) == 0.0

    def test_note_split_across_windows(self):
        notes = [
            NoteEvent(pitch=60, velocity=100, start=0.0, end=2.0),
            NoteEvent(pitch=67, velocity=80, start=1.5, end=2.5),
        ]
        windows = aggregate_windows(notes, window_seconds=2.0, hop_seconds=2.0)

        assert len(windows) == 2
        assert windows[0].histogram[7] == pytest.approx(40.0)
        assert windows[1].histogram[7] == pytest.approx(40.0)
        assert windows[1].histogram[0] == 0.0

    def test_octaves_fold_into_one_bin(self):
        notes = [
            NoteEvent(pitch=48, velocity=50, start=0.0, end=1.0),
            NoteEvent(pitch=72, velocity=50, start=0.0, end=1.0),
        ]
        windows = aggregate_windows(notes, window_seconds=1.0, hop_seconds=1.0)
        assert windows[0].histogram[0] == pytest.approx(100.0)

    def test_overlapping_windows(self):
        notes = [NoteEvent(pitch=60, velocity=100, start=0.0, end=8.0)]
        windows = aggregate_windows(notes, window_seconds=8.0, hop_seconds=2.0)

        assert [w.start for w in windows] == [0.0, 2.0, 4.0, 6.0]
        assert [w.end for w in windows] == [8.0, 10.0, 12.0, 14.0]
        assert windows[0].histogram[0] == pytest.approx(800.0)
        assert windows[3].histogram[0] == pytest.approx(200.0)

    def test_grid_anchored_at_zero(self):
        notes = [NoteEvent(pitch=60, velocity=100, start=3.0, end=5.0)]
        windows = aggregate_windows(notes, window_seconds=2.0, hop_seconds=2.0)
        assert [w.start for w in windows] == [2.0, 4.0]

    def test_gap_produces_silent_window(self):
        notes = [
            NoteEvent(pitch=60, velocity=100, start=0.0, end=2.0),
            NoteEvent(pitch=64, velocity=100, start=4.0, end=6.0),
        ]
        windows = aggregate_windows(notes, window_seconds=2.0, hop_seconds=2.0)

        assert len(windows) == 3
        assert windows[1].is_silent
        assert windows[1].onset is None
        assert windows[1].bass is None

    def test_onset_bass_and_soprano(self):
        notes = [
            NoteEvent(pitch=43, velocity=80, start=0.0, end=2.0),
            NoteEvent(pitch=71, velocity=80, start=0.5, end=2.0),
            NoteEvent(pitch=62, velocity=80, start=0.25, end=2.0),
        ]
        window = aggregate_windows(notes, window_seconds=2.0, hop_seconds=2.0)[0]

        assert window.onset == 0.0
        assert window.bass == 7
        assert window.soprano == 11

    def test_held_note_has_no_onset_in_next_window(self):
        notes = [NoteEvent(pitch=60, velocity=100, start=0.0, end=4.0)]
        windows = aggregate_windows(notes, window_seconds=2.0, hop_seconds=2.0)
        assert windows[0].onset == 0.0
        assert windows[1].onset is None
        assert windows[1].bass == 0

    def test_empty_input(self):
        assert aggregate_windows([], window_seconds=2.0, hop_seconds=2.0) == []

    @pytest.mark.parametrize("window,hop", [(0.0, 1.0), (2.0, 0.0), (-1.0, 1.0)])
    def test_non_positive_lengths_rejected(self, window, hop):
        notes = [NoteEvent(pitch=60, velocity=100, start=0.0, end=1.0)]
        with pytest.raises(ValueError):
            aggregate_windows(notes, window_seconds=window, hop_seconds=hop)

    def test_single_window_matches_grid(self):
        notes = [
            NoteEvent(pitch=60, velocity=100, start=0.0, end=3.0),
            NoteEvent(pitch=64, velocity=70, start=2.5, end=6.0),
        ]
        windows = aggregate_windows(notes, window_seconds=4.0, hop_seconds=2.0)
        assert window_from_notes(notes, 2.0, 6.0) == windows[1]

    def test_time_extent(self):
        notes = [
            NoteEvent(pitch=60, velocity=100, start=1.0, end=3.0),
            NoteEvent(pitch=64, velocity=100, start=0.5, end=2.0),
        ]
        assert time_extent(notes) == (0.5, 3.0)
        assert time_extent([]) == (0.0, 0.0)


class TestAggregationStage:
    """Tests for AggregationStage."""

    def test_stage_name(self, settings):
        assert AggregationStage(settings).name == "aggregation"

    def test_builds_key_and_chord_windows(self, settings, c_major_notes):
        context = AnalysisContext(notes=c_major_notes)
        result = AggregationStage(settings).execute(context)

        assert result.success is True
        assert context.start_time == 0.0
        assert context.end_time == 16.0
        # 8 bars of 2 seconds, hop of one bar
        assert len(context.key_windows) == 8
        assert len(context.chord_windows) == 8
        assert context.key_windows[0].end - context.key_windows[0].start == pytest.approx(8.0)
        assert context.chord_windows[0].end == pytest.approx(2.0)

    def test_uses_ingested_meter(self, settings, c_major_notes):
        context = AnalysisContext(notes=c_major_notes, tempo_bpm=120, time_signature=(2, 4))
        AggregationStage(settings).execute(context)
        assert len(context.chord_windows) == 16

    def test_no_notes(self, settings):
        context = AnalysisContext()
        result = AggregationStage(settings).execute(context)

        assert result.success is True
        assert context.key_windows == []
        assert any("no notes" in w.lower() for w in result.warnings)
