"""Music theory tables for Tonal Analyzer."""

from tonal_analyzer.theory.chords import (
    CHORD_TEMPLATES,
    QUALITY_DISSONANCE,
    QUALITY_PREFERENCE,
    ChordQuality,
)
from tonal_analyzer.theory.profiles import KEY_PROFILES, KeyProfile, get_profile
from tonal_analyzer.theory.scales import (
    NOTE_NAMES,
    Mode,
    chord_name,
    key_name,
    roman_numeral,
    scale_degree,
)

__all__ = [
    "CHORD_TEMPLATES",
    "ChordQuality",
    "KEY_PROFILES",
    "KeyProfile",
    "Mode",
    "NOTE_NAMES",
    "QUALITY_DISSONANCE",
    "QUALITY_PREFERENCE",
    "chord_name",
    "get_profile",
    "key_name",
    "roman_numeral",
    "scale_degree",
]
