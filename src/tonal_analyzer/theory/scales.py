"""Scales, scale degrees and chord labelling."""

from typing import Literal

from tonal_analyzer.theory.chords import (
    CHORD_TEMPLATES,
    MINOR_QUALITIES,
    QUALITY_SUFFIX,
    chord_pitch_classes,
)

Mode = Literal["major", "minor"]

NOTE_NAMES = ("C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B")

# Semitones above the tonic (natural minor)
MAJOR_SCALE = (0, 2, 4, 5, 7, 9, 11)
MINOR_SCALE = (0, 2, 3, 5, 7, 8, 10)

ROMAN_NUMERALS = ("", "I", "II", "III", "IV", "V", "VI", "VII")


def scale_steps(mode: str) -> tuple[int, ...]:
    return MAJOR_SCALE if mode == "major" else MINOR_SCALE


def scale_pitch_classes(tonic: int, mode: str) -> frozenset[int]:
    """Pitch classes of the key's scale."""
    return frozenset((tonic + step) % 12 for step in scale_steps(mode))


def scale_degree(root: int, tonic: int, mode: str) -> int:
    """Position (1-7) of a chord root in the key's scale, 0 if chromatic."""
    interval = (root - tonic) % 12
    steps = scale_steps(mode)
    return steps.index(interval) + 1 if interval in steps else 0


def is_diatonic_chord(root: int, quality: str, tonic: int, mode: str) -> bool:
    """True when every tone of the chord belongs to the key's scale."""
    return chord_pitch_classes(root, quality, CHORD_TEMPLATES) <= scale_pitch_classes(tonic, mode)


def parallel_mode(mode: str) -> Mode:
    return "minor" if mode == "major" else "major"


def key_name(tonic: int, mode: str) -> str:
    """Human readable key, e.g. 'C major' or 'F# minor'."""
    return f"{NOTE_NAMES[tonic % 12]} {mode}"


def chord_name(root: int, quality: str) -> str:
    """Lead-sheet chord symbol, e.g. 'Am7'."""
    return f"{NOTE_NAMES[root % 12]}{QUALITY_SUFFIX.get(quality, '?')}"


def roman_numeral(degree: int, quality: str) -> str:
    """Roman numeral for a diatonic degree, case and suffix from the quality.

    Returns an empty string for chromatic chords (degree 0).
    """
    if degree < 1 or degree > 7:
        return ""
    numeral = ROMAN_NUMERALS[degree]
    if quality in MINOR_QUALITIES:
        numeral = numeral.lower()

    if quality == "dim":
        numeral += "°"
    elif quality == "hdim7":
        numeral += "ø7"
    elif quality == "dim7":
        numeral += "°7"
    elif quality == "aug":
        numeral += "+"
    elif quality in ("dom7", "min7"):
        numeral += "7"
    elif quality == "maj7":
        numeral += "maj7"
    return numeral
