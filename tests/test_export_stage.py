"""Tests for the ExportStage."""

import json
from pathlib import Path

from tonal_analyzer import __version__
from tonal_analyzer.config import Settings
from tonal_analyzer.models.analysis import (
    CadenceEvent,
    ChordEvent,
    KeyEstimate,
    KeyRegion,
    TensionComponents,
    TensionSample,
)
from tonal_analyzer.models.pipeline import AnalysisContext
from tonal_analyzer.stages.export import ExportStage, to_camel_case, to_serializable


def _context(tmp_path: Path, output_dir: Path | None) -> AnalysisContext:
    chord = ChordEvent(
        time=0.0,
        root=2,
        quality="major",
        degree=2,
        score=1.1,
        is_secondary_dominant=True,
        secondary_target=5,
        secondary_kind="dominant",
        name="D",
        numeral="V/V",
    )
    return AnalysisContext(
        source_path=tmp_path / "song.mid",
        output_dir=output_dir,
        tempo_bpm=96.0,
        time_signature=(3, 4),
        end_time=12.5,
        key_regions=[
            KeyRegion(tonic=0, mode="major", confidence=0.9, ambiguity=0.2, start=0.0, end=12.5)
        ],
        global_key=KeyEstimate(
            start=0.0,
            end=12.5,
            tonic=0,
            mode="major",
            correlation=0.8,
            confidence=0.9,
            ambiguity=0.2,
            second_tonic=9,
            second_mode="minor",
            second_correlation=0.6,
        ),
        chords=[chord],
        tension=[
            TensionSample(
                time=0.0,
                value=0.3,
                components=TensionComponents(
                    hierarchical=0.35, dissonance=0.0, motion=0.0, tendency=0.15
                ),
            )
        ],
        cadences=[CadenceEvent(time=2.0, type="HC", from_degree=2, to_degree=5)],
    )


class TestExportStage:
    """Tests for ExportStage."""

    def test_stage_name(self, settings):
        """Stage has correct name."""
        assert ExportStage(settings).name == "export"

    def test_creates_analysis_json(self, settings, tmp_path: Path):
        """Creates analysis.json in output directory."""
        context = _context(tmp_path, tmp_path / "output")

        result = ExportStage(settings).execute(context)

        assert result.success is True
        assert (tmp_path / "output" / "analysis.json").exists()
        assert context.analysis_path == tmp_path / "output" / "analysis.json"

    def test_analysis_json_structure(self, settings, tmp_path: Path):
        """Analysis JSON uses camelCase keys throughout."""
        context = _context(tmp_path, tmp_path / "output")
        ExportStage(settings).execute(context)

        with open(tmp_path / "output" / "analysis.json", encoding="utf-8") as f:
            data = json.load(f)

        assert data["sourceFile"] == "song.mid"
        assert data["analyzerVersion"] == __version__
        assert data["tempoBpm"] == 96.0
        assert data["timeSignature"] == [3, 4]
        assert data["keyTonic"] == 0
        assert data["keyMode"] == "major"
        assert data["keyRegions"][0]["tonic"] == 0
        assert data["chords"][0]["isSecondaryDominant"] is True
        assert data["chords"][0]["secondaryTarget"] == 5
        assert data["chords"][0]["numeral"] == "V/V"
        assert data["tension"][0]["components"]["hierarchical"] == 0.35
        assert data["cadences"][0]["type"] == "HC"
        assert data["cadences"][0]["fromDegree"] == 2

    def test_no_output_dir_keeps_analysis_in_memory(self, settings, tmp_path: Path):
        """Without an output directory nothing is written."""
        context = _context(tmp_path, None)

        result = ExportStage(settings).execute(context)

        assert result.success is True
        assert context.analysis is not None
        assert context.analysis.duration == 12.5
        assert context.analysis_path is None
        assert list(tmp_path.iterdir()) == []

    def test_warns_when_empty(self, settings):
        """Empty outputs are reported, not failures."""
        result = ExportStage(settings).execute(AnalysisContext())

        assert result.success is True
        assert any("no chords" in w.lower() for w in result.warnings)

    def test_pinned_date_is_reproducible(self, tmp_path: Path):
        """A fixed analysis date makes analysis.json byte-identical across runs."""
        settings = Settings(_env_file=None, analysis_date="2024-01-01T00:00:00+00:00")

        for name in ("first", "second"):
            ExportStage(settings).execute(_context(tmp_path, tmp_path / name))

        first = (tmp_path / "first" / "analysis.json").read_bytes()
        assert first == (tmp_path / "second" / "analysis.json").read_bytes()
        assert json.loads(first)["analysisDate"] == "2024-01-01T00:00:00+00:00"

    def test_unwritable_output(self, settings, tmp_path: Path):
        """Fails when the output directory cannot be created."""
        blocker = tmp_path / "file"
        blocker.write_text("x")
        context = _context(tmp_path, blocker / "output")

        result = ExportStage(settings).execute(context)

        assert result.success is False
        assert "failed to write" in result.error_message.lower()


class TestSerialization:
    """Tests for the JSON helpers."""

    def test_to_camel_case(self):
        assert to_camel_case("is_secondary_dominant") == "isSecondaryDominant"
        assert to_camel_case("tonic") == "tonic"

    def test_nested_dataclasses(self):
        sample = TensionSample(
            time=1.0,
            value=0.5,
            components=TensionComponents(
                hierarchical=0.6, dissonance=0.25, motion=0.05, tendency=0.0
            ),
        )
        data = to_serializable(sample)
        assert data == {
            "time": 1.0,
            "value": 0.5,
            "components": {
                "hierarchical": 0.6,
                "dissonance": 0.25,
                "motion": 0.05,
                "tendency": 0.0,
            },
        }
