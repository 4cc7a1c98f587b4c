"""Tests for the command-line interface."""

import json

import pytest
from click.testing import CliRunner

from tonal_analyzer import __version__, config
from tonal_analyzer.cli.main import main


@pytest.fixture(autouse=True)
def fresh_settings():
    """Give every invocation its own settings instance."""
    config.configure(_env_file=None)
    yield
    config._settings = None


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def progression_file(write_midi):
    chords = [(60, 64, 67), (65, 69, 72), (67, 71, 74), (60, 64, 67)]
    return write_midi([(p, bar * 4, 4, 0) for bar, chord in enumerate(chords) for p in chord])


class TestCli:
    """Tests for the tonal-analyzer commands."""

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_profiles(self, runner):
        result = runner.invoke(main, ["profiles"])

        assert result.exit_code == 0
        for name in ("krumhansl", "temperley", "shaath", "diatonic"):
            assert name in result.output

    def test_info(self, runner):
        result = runner.invoke(main, ["info"])

        assert result.exit_code == 0
        assert "Key profile: krumhansl" in result.output

    def test_analyze_writes_json(self, runner, progression_file, tmp_path):
        output = tmp_path / "out"
        result = runner.invoke(main, ["analyze", str(progression_file), "-o", str(output)])

        assert result.exit_code == 0, result.output
        assert "Analysis complete" in result.output
        data = json.loads((output / "analysis.json").read_text(encoding="utf-8"))
        assert [c["name"] for c in data["chords"]] == ["C", "F", "G", "C"]

    def test_analyze_applies_overrides(self, runner, progression_file, tmp_path):
        output = tmp_path / "out"
        result = runner.invoke(
            main,
            ["analyze", str(progression_file), "-o", str(output), "--profile", "temperley"],
        )

        assert result.exit_code == 0, result.output
        data = json.loads((output / "analysis.json").read_text(encoding="utf-8"))
        assert data["profile"] == "temperley"

    def test_analyze_missing_file(self, runner, tmp_path):
        result = runner.invoke(main, ["analyze", str(tmp_path / "missing.mid")])

        assert result.exit_code == 1
        assert "not found" in result.output.lower()

    def test_analyze_invalid_setting(self, runner, progression_file):
        result = runner.invoke(main, ["analyze", str(progression_file), "--hop-bars", "0"])

        assert result.exit_code == 1
        assert "hop_bars" in result.output

    def test_analyze_unsupported_file(self, runner, tmp_path):
        audio = tmp_path / "song.wav"
        audio.write_bytes(b"RIFF")

        result = runner.invoke(main, ["analyze", str(audio), "-o", str(tmp_path / "out")])

        assert result.exit_code == 1
        assert "failed" in result.output.lower()
