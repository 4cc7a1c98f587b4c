"""Configuration management for Tonal Analyzer."""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tonal_analyzer.theory.profiles import KEY_PROFILES


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TONAL_ANALYZER_",
        env_file=".env",
        env_file_encoding="utf-8",
        validate_assignment=True,
    )

    # Directories
    output_dir: Path = Field(
        default=Path("./output"),
        description="Default output directory for analysis.json",
    )

    # Key estimation
    profile: str = Field(
        default="krumhansl",
        description="Key profile. Options: krumhansl, temperley, shaath, diatonic",
    )
    window_bars: float = Field(
        default=4.0,
        gt=0,
        description="Length of the key-finding window in bars",
    )
    hop_bars: float = Field(
        default=1.0,
        gt=0,
        description="Hop between key-finding windows in bars",
    )
    min_stable_windows: int = Field(
        default=3,
        ge=1,
        description="Consecutive agreeing windows required before a key change is committed",
    )
    confidence_threshold: float = Field(
        default=0.15,
        ge=0.0,
        le=1.0,
        description="Separation a new key needs over the current key on the same window",
    )
    min_region_bars: float = Field(
        default=4.0,
        ge=0.0,
        description="Key regions shorter than this fold into the preceding region (0 = keep all)",
    )

    # Chord detection
    chord_window_bars: float = Field(
        default=1.0,
        gt=0,
        description="Length of (and hop between) chord windows in bars",
    )
    diatonic_bonus: float = Field(
        default=0.15,
        description="Score bonus for chord roots inside the current key",
    )
    non_chord_penalty: float = Field(
        default=0.3,
        description="Weight of energy outside the chord template",
    )
    missing_tone_penalty: float = Field(
        default=0.05,
        ge=0.0,
        description="Score penalty per template tone with no energy",
    )
    collapse_repeated_chords: bool = Field(
        default=True,
        description="Merge consecutive windows holding the same chord",
    )

    # Cadences
    voicing_cadences: bool = Field(
        default=False,
        description="Downgrade V-I to IAC when the bass or soprano shows an imperfect voicing",
    )

    # Timing fallbacks when the source carries no tempo / time signature
    tempo_bpm: float = Field(
        default=120.0,
        gt=0,
        description="Tempo used to size bars when the MIDI file has none",
    )
    beats_per_bar: int = Field(
        default=4,
        gt=0,
        description="Beats per bar when the MIDI file has no time signature",
    )

    # Ingest
    exclude_drums: bool = Field(
        default=True,
        description="Ignore notes on the General MIDI drum channel",
    )

    # Export
    analysis_date: str | None = Field(
        default=None,
        description="Fixed analysisDate for analysis.json (None = current UTC time)",
    )

    @field_validator("profile")
    @classmethod
    def _check_profile(cls, value: str) -> str:
        name = value.lower()
        if name not in KEY_PROFILES:
            raise ValueError(
                f"unknown key profile '{value}'. Options: {', '.join(sorted(KEY_PROFILES))}"
            )
        return name


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def configure(**overrides: object) -> Settings:
    """Configure settings with overrides. Useful for testing."""
    global _settings
    _settings = Settings(**overrides)  # type: ignore[arg-type]
    return _settings
