"""Chord vocabulary: templates, tie-break preferences and surface dissonance."""

from types import MappingProxyType
from typing import Literal, Mapping

ChordQuality = Literal[
    "major",
    "minor",
    "dim",
    "aug",
    "maj7",
    "dom7",
    "min7",
    "hdim7",
    "dim7",
    "minMaj7",
    "sus4",
    "sus2",
    "7sus4",
    "add9",
    "6",
    "min6",
    "5",
]

# Intervals above the root. Order matters: it is the last tie-breaker.
CHORD_TEMPLATES: Mapping[str, tuple[int, ...]] = MappingProxyType(
    {
        "major": (0, 4, 7),
        "minor": (0, 3, 7),
        "dim": (0, 3, 6),
        "aug": (0, 4, 8),
        "maj7": (0, 4, 7, 11),
        "dom7": (0, 4, 7, 10),
        "min7": (0, 3, 7, 10),
        "hdim7": (0, 3, 6, 10),
        "dim7": (0, 3, 6, 9),
        "minMaj7": (0, 3, 7, 11),
        "sus4": (0, 5, 7),
        "sus2": (0, 2, 7),
        "7sus4": (0, 5, 7, 10),
        "add9": (0, 2, 4, 7),
        "6": (0, 4, 7, 9),
        "min6": (0, 3, 7, 9),
        "5": (0, 7),
    }
)

# Small score offsets that only break near-ties. Common sevenths are pushed
# down so a distinctive reading wins; rare qualities are nudged up. A sixth
# chord has the pitch classes of a minor seventh (C6 = Am7) and ranks below it.
QUALITY_PREFERENCE: Mapping[str, float] = MappingProxyType(
    {
        "major": 0.0,
        "minor": 0.0,
        "dim": 0.0,
        "aug": 0.0,
        "maj7": 0.0,
        "dom7": -0.02,
        "min7": -0.02,
        "hdim7": 0.0,
        "dim7": 0.0,
        "minMaj7": 0.02,
        "sus4": 0.0,
        "sus2": 0.0,
        "7sus4": 0.0,
        "add9": 0.0,
        "6": -0.03,
        "min6": -0.03,
        "5": 0.0,
    }
)

# Psychoacoustic roughness of each quality, 0 (consonant) to ~0.45
QUALITY_DISSONANCE: Mapping[str, float] = MappingProxyType(
    {
        "major": 0.00,
        "minor": 0.08,
        "maj7": 0.05,
        "min7": 0.12,
        "dom7": 0.25,
        "sus4": 0.15,
        "sus2": 0.12,
        "dim": 0.35,
        "hdim7": 0.40,
        "dim7": 0.45,
        "aug": 0.30,
        "minMaj7": 0.30,
        "7sus4": 0.25,
        "add9": 0.10,
        "6": 0.06,
        "min6": 0.14,
        "5": 0.00,
    }
)

QUALITY_SUFFIX: Mapping[str, str] = MappingProxyType(
    {
        "major": "",
        "minor": "m",
        "dim": "dim",
        "aug": "aug",
        "maj7": "maj7",
        "dom7": "7",
        "min7": "m7",
        "hdim7": "ø7",
        "dim7": "°7",
        "minMaj7": "mMaj7",
        "sus4": "sus4",
        "sus2": "sus2",
        "7sus4": "7sus4",
        "add9": "add9",
        "6": "6",
        "min6": "m6",
        "5": "5",
    }
)

MINOR_QUALITIES = frozenset({"minor", "min7", "minMaj7", "min6", "dim", "hdim7", "dim7"})
DOMINANT_QUALITIES = frozenset({"major", "dom7"})
DIMINISHED_QUALITIES = frozenset({"dim", "dim7", "hdim7"})


def chord_pitch_classes(
    root: int, quality: str, templates: Mapping[str, tuple[int, ...]] = CHORD_TEMPLATES
) -> frozenset[int]:
    """Pitch classes sounding in a chord of the given root and quality."""
    return frozenset((root + interval) % 12 for interval in templates[quality])
