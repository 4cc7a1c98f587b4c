"""Pipeline processing models for Tonal Analyzer.

These models track state as a note stream moves through the analysis
pipeline.
"""

from dataclasses import dataclass, field
from pathlib import Path

from tonal_analyzer.models.analysis import (
    CadenceEvent,
    ChordEvent,
    HarmonicAnalysis,
    KeyEstimate,
    KeyRegion,
    NoteEvent,
    PitchClassWindow,
    TensionSample,
)


@dataclass
class AnalysisContext:
    """Mutable state passed through pipeline stages."""

    # Input (either a MIDI file or notes supplied directly)
    source_path: Path | None = None
    notes: list[NoteEvent] = field(default_factory=list)

    # Output location (None = do not write analysis.json)
    output_dir: Path | None = None

    # Timing (Ingest) - None falls back to settings
    tempo_bpm: float | None = None
    time_signature: tuple[int, int] | None = None
    bar_seconds: float = 0.0  # set by Aggregation

    # Input time extent
    start_time: float = 0.0
    end_time: float = 0.0

    # Windows (Aggregation)
    key_windows: list[PitchClassWindow] = field(default_factory=list)
    chord_windows: list[PitchClassWindow] = field(default_factory=list)

    # Keys (Key Estimation)
    key_estimates: list[KeyEstimate] = field(default_factory=list)
    key_regions: list[KeyRegion] = field(default_factory=list)
    global_key: KeyEstimate | None = None

    # Harmony (Chord Detection, Harmonic Function)
    chords: list[ChordEvent] = field(default_factory=list)

    # Tension and cadences
    tension: list[TensionSample] = field(default_factory=list)
    cadences: list[CadenceEvent] = field(default_factory=list)

    # Final output (Export)
    analysis: HarmonicAnalysis | None = None
    analysis_path: Path | None = None


@dataclass
class StageResult:
    """Result of a pipeline stage execution."""

    success: bool
    stage_name: str
    duration_seconds: float
    error_message: str | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass
class AnalysisResult:
    """Final result of the complete pipeline execution."""

    success: bool
    analysis: HarmonicAnalysis | None = None
    output_path: Path | None = None
    stages_completed: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    total_duration: float = 0.0
