"""Pytest fixtures for Tonal Analyzer tests."""

from pathlib import Path
from typing import Callable, Sequence

import mido
import pytest

from tonal_analyzer.config import Settings
from tonal_analyzer.models.analysis import NoteEvent

# 120 BPM in 4/4
BAR = 2.0

C_MAJOR_BAR = {"triad": (60, 64, 67), "other": (62, 65, 69, 71)}
G_MAJOR_BAR = {"triad": (67, 71, 74), "other": (69, 72, 76, 78)}


def scale_bar(bar: dict, index: int) -> list[NoteEvent]:
    """One bar outlining a key: loud tonic triad, soft remaining scale tones."""
    start, end = index * BAR, (index + 1) * BAR
    notes = [NoteEvent(pitch=p, velocity=100, start=start, end=end) for p in bar["triad"]]
    notes += [NoteEvent(pitch=p, velocity=40, start=start, end=end) for p in bar["other"]]
    return notes


def chord_bar(pitches: Sequence[int], index: int, velocity: int = 100) -> list[NoteEvent]:
    """One bar holding a block chord."""
    start, end = index * BAR, (index + 1) * BAR
    return [NoteEvent(pitch=p, velocity=velocity, start=start, end=end) for p in pitches]


@pytest.fixture
def settings() -> Settings:
    """Default settings, isolated from the environment's .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def c_major_notes() -> list[NoteEvent]:
    """Eight bars firmly in C major."""
    return [n for i in range(8) for n in scale_bar(C_MAJOR_BAR, i)]


@pytest.fixture
def modulating_notes() -> list[NoteEvent]:
    """Eight bars of C major followed by eight bars of G major."""
    notes = [n for i in range(8) for n in scale_bar(C_MAJOR_BAR, i)]
    notes += [n for i in range(8, 16) for n in scale_bar(G_MAJOR_BAR, i)]
    return notes


@pytest.fixture
def returning_notes(modulating_notes) -> list[NoteEvent]:
    """C major, then G major, then twelve bars back in C major."""
    return modulating_notes + [n for i in range(16, 28) for n in scale_bar(C_MAJOR_BAR, i)]


@pytest.fixture
def tonicization_notes() -> list[NoteEvent]:
    """Twelve bars of C major with a single G-major bar at bar 6."""
    notes = []
    for i in range(12):
        notes += scale_bar(G_MAJOR_BAR if i == 6 else C_MAJOR_BAR, i)
    return notes


@pytest.fixture
def cadence_notes() -> list[NoteEvent]:
    """I - IV - V - I in C, root position, final soprano on the tonic."""
    return (
        chord_bar((48, 52, 55, 60), 0)
        + chord_bar((53, 57, 60), 1)
        + chord_bar((43, 59, 62), 2)
        + chord_bar((48, 52, 55, 60), 3)
    )


@pytest.fixture
def close_cadence_notes() -> list[NoteEvent]:
    """Four bars of C major, then G3-B3-D4 resolving to C4-E4-G4."""
    notes = [n for i in range(4) for n in scale_bar(C_MAJOR_BAR, i)]
    return notes + chord_bar((55, 59, 62), 4) + chord_bar((60, 64, 67), 5)


@pytest.fixture
def write_midi(tmp_path: Path) -> Callable[..., Path]:
    """Return a function that writes note tuples to a Standard MIDI File.

    Notes are (pitch, start_beat, length_beats, channel); one beat is 480
    ticks.
    """

    def _write(
        notes: Sequence[tuple[int, float, float, int]],
        name: str = "test.mid",
        bpm: float | None = 120,
        time_signature: tuple[int, int] | None = (4, 4),
    ) -> Path:
        ticks_per_beat = 480
        midi = mido.MidiFile(ticks_per_beat=ticks_per_beat)
        track = mido.MidiTrack()
        midi.tracks.append(track)

        if bpm is not None:
            track.append(mido.MetaMessage("set_tempo", tempo=mido.bpm2tempo(bpm), time=0))
        if time_signature is not None:
            track.append(
                mido.MetaMessage(
                    "time_signature",
                    numerator=time_signature[0],
                    denominator=time_signature[1],
                    time=0,
                )
            )

        events = []
        for pitch, start, length, channel in notes:
            on = round(start * ticks_per_beat)
            off = round((start + length) * ticks_per_beat)
            events.append((on, 1, mido.Message("note_on", note=pitch, velocity=100, channel=channel)))
            events.append((off, 0, mido.Message("note_off", note=pitch, velocity=0, channel=channel)))
        events.sort(key=lambda e: (e[0], e[1]))

        now = 0
        for tick, _, msg in events:
            track.append(msg.copy(time=tick - now))
            now = tick

        path = tmp_path / name
        midi.save(str(path))
        return path

    return _write
