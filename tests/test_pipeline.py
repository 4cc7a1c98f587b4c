"""End-to-end tests for the analysis pipeline."""

import pytest

from tonal_analyzer.config import Settings
from tonal_analyzer.pipeline import create_default_pipeline


STAGES = [
    "ingest",
    "aggregation",
    "key_estimation",
    "chord_detection",
    "harmonic_function",
    "tension",
    "cadence",
    "export",
]


class TestPipeline:
    """Tests for Pipeline.analyze() and Pipeline.run()."""

    def test_runs_every_stage(self, settings, c_major_notes):
        """All stages complete on a simple passage."""
        result = create_default_pipeline(settings).analyze(c_major_notes)

        assert result.success is True
        assert result.stages_completed == STAGES
        assert result.analysis is not None
        assert result.output_path is None

    def test_deterministic(self, settings, modulating_notes):
        """Identical input gives identical output."""
        pipeline = create_default_pipeline(settings)
        first = pipeline.analyze(modulating_notes).analysis
        second = pipeline.analyze(list(reversed(modulating_notes))).analysis

        assert first.key_regions == second.key_regions
        assert first.chords == second.chords
        assert first.tension == second.tension
        assert first.cadences == second.cadences

    def test_regions_partition_input(self, settings, modulating_notes):
        """Key regions are contiguous and cover the whole input."""
        analysis = create_default_pipeline(settings).analyze(modulating_notes).analysis
        regions = analysis.key_regions

        assert regions[0].start == 0.0
        assert regions[-1].end == 32.0
        for previous, current in zip(regions, regions[1:]):
            assert previous.end == current.start
            assert previous.start < previous.end

    def test_sustained_modulation_detected(self, settings, modulating_notes):
        """Eight bars in G after eight in C commit a new region."""
        analysis = create_default_pipeline(settings).analyze(modulating_notes).analysis
        keys = [(r.tonic, r.mode) for r in analysis.key_regions]

        assert keys == [(0, "major"), (7, "major")]
        # Back-dated to the centre of the first window supporting G
        assert 12.0 <= analysis.key_regions[1].start <= 16.0

    def test_return_to_home_key(self, settings, returning_notes):
        """C, then G, then a long stretch of C gives three regions."""
        analysis = create_default_pipeline(settings).analyze(returning_notes).analysis
        regions = analysis.key_regions

        assert [(r.tonic, r.mode) for r in regions] == [
            (0, "major"),
            (7, "major"),
            (0, "major"),
        ]
        assert 32.0 <= regions[2].start <= 40.0
        assert regions[-1].end == 56.0
        assert all(c.key_tonic == 0 for c in analysis.chords if c.time >= 40.0)

    def test_single_bar_tonicization_ignored(self, settings, tonicization_notes):
        """One G-major bar inside C major does not change the key."""
        analysis = create_default_pipeline(settings).analyze(tonicization_notes).analysis

        assert len(analysis.key_regions) == 1
        assert (analysis.key_regions[0].tonic, analysis.key_regions[0].mode) == (0, "major")

    def test_short_region_folds_back(self, tonicization_notes):
        """With one-bar windows the G bar alone shifts the key, unless short regions fold."""
        quick = {"window_bars": 1.0, "min_stable_windows": 1}
        folded = Settings(_env_file=None, **quick)
        kept = Settings(_env_file=None, min_region_bars=0.0, **quick)

        folded_regions = create_default_pipeline(folded).analyze(tonicization_notes).analysis.key_regions
        kept_regions = create_default_pipeline(kept).analyze(tonicization_notes).analysis.key_regions

        assert [r.tonic for r in kept_regions] == [0, 7, 0]
        assert [(r.tonic, r.start, r.end) for r in folded_regions] == [(0, 0.0, 24.0)]

    def test_cadential_progression(self, settings, cadence_notes):
        """I - IV - V - I yields numerals, one tension sample per chord and cadences."""
        analysis = create_default_pipeline(settings).analyze(cadence_notes).analysis

        assert [c.numeral for c in analysis.chords] == ["I", "IV", "V", "I"]
        assert [c.function for c in analysis.chords] == [
            "tonic",
            "subdominant",
            "dominant",
            "tonic",
        ]
        assert len(analysis.tension) == len(analysis.chords)
        assert analysis.tension[2].value > analysis.tension[0].value
        assert [(c.type, c.time) for c in analysis.cadences] == [("HC", 4.0), ("PAC", 6.0)]
        assert (analysis.key_tonic, analysis.key_mode) == (0, "major")

    def test_close_position_tonic_is_perfect(self, settings, close_cadence_notes):
        """V - I with the fifth on top of the tonic triad is still a PAC."""
        analysis = create_default_pipeline(settings).analyze(close_cadence_notes).analysis

        assert [(c.type, c.time) for c in analysis.cadences] == [("HC", 8.0), ("PAC", 10.0)]

    def test_event_times_non_decreasing(self, settings, modulating_notes):
        """Every output stream is ordered by time."""
        analysis = create_default_pipeline(settings).analyze(modulating_notes).analysis

        for stream in (analysis.chords, analysis.tension, analysis.cadences):
            times = [event.time for event in stream]
            assert times == sorted(times)

    def test_no_notes_is_silence(self, settings):
        """An empty note list analyzes to empty output streams."""
        result = create_default_pipeline(settings).analyze([])

        assert result.success is True
        assert result.stages_completed == STAGES
        analysis = result.analysis
        assert analysis.key_regions == []
        assert analysis.chords == []
        assert analysis.tension == []
        assert analysis.cadences == []
        assert analysis.key_tonic is None

    @pytest.mark.slow
    def test_run_writes_analysis(self, settings, write_midi, tmp_path):
        """Pipeline.run() reads a MIDI file and writes analysis.json."""
        chords = [(60, 64, 67), (65, 69, 72), (67, 71, 74), (60, 64, 67)]
        notes = [(p, bar * 4, 4, 0) for bar, chord in enumerate(chords) for p in chord]
        path = write_midi(notes)

        result = create_default_pipeline(settings).run(path, tmp_path / "out")

        assert result.success is True
        assert result.output_path == tmp_path / "out" / "analysis.json"
        assert result.output_path.exists()
        assert [c.name for c in result.analysis.chords] == ["C", "F", "G", "C"]

    def test_profile_setting_is_used(self, c_major_notes):
        """The configured profile ends up in the analysis."""
        settings = Settings(_env_file=None, profile="temperley")
        analysis = create_default_pipeline(settings).analyze(c_major_notes).analysis

        assert analysis.profile == "temperley"
        assert analysis.key_regions[0].tonic == 0
