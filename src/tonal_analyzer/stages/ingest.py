"""Ingest stage - reads note events, tempo and meter from a MIDI file."""

from pathlib import Path

import mido

from tonal_analyzer.config import Settings
from tonal_analyzer.models.analysis import NoteEvent
from tonal_analyzer.models.pipeline import AnalysisContext, StageResult
from tonal_analyzer.pipeline.base import PipelineStage

# General MIDI percussion channel (channel 10, zero-based 9)
DRUM_CHANNEL = 9

DEFAULT_TEMPO = 500000  # microseconds per quarter note (120 BPM)


def read_midi_file(
    path: Path, exclude_drums: bool = True
) -> tuple[list[NoteEvent], float | None, tuple[int, int] | None]:
    """Convert a Standard MIDI File into note events.

    Times are converted to seconds through every set_tempo change. A
    note_on with velocity 0 counts as a note_off; notes still held at the
    end of the file are closed at the last event.

    Args:
        path: Path to a .mid / .midi file
        exclude_drums: Drop notes on the GM percussion channel

    Returns:
        Tuple of (notes sorted by start, initial tempo BPM or None,
        initial time signature or None)
    """
    midi = mido.MidiFile(str(path))
    ticks_per_beat = midi.ticks_per_beat
    tempo = DEFAULT_TEMPO

    initial_tempo: float | None = None
    time_signature: tuple[int, int] | None = None

    now = 0.0
    active: dict[tuple[int, int], list[tuple[float, int]]] = {}
    notes: list[NoteEvent] = []

    for msg in mido.merge_tracks(midi.tracks):
        now += mido.tick2second(msg.time, ticks_per_beat, tempo)

        if msg.is_meta:
            if msg.type == "set_tempo":
                tempo = msg.tempo
                if initial_tempo is None:
                    initial_tempo = mido.tempo2bpm(msg.tempo)
            elif msg.type == "time_signature" and time_signature is None:
                time_signature = (msg.numerator, msg.denominator)
            continue

        if msg.type not in ("note_on", "note_off"):
            continue
        if exclude_drums and msg.channel == DRUM_CHANNEL:
            continue

        key = (msg.channel, msg.note)
        if msg.type == "note_on" and msg.velocity > 0:
            active.setdefault(key, []).append((now, msg.velocity))
        elif active.get(key):
            start, velocity = active[key].pop(0)
            notes.append(
                NoteEvent(
                    pitch=msg.note,
                    velocity=velocity,
                    start=start,
                    end=now,
                    channel=msg.channel,
                )
            )

    # Close dangling notes
    for (channel, pitch), held in active.items():
        for start, velocity in held:
            notes.append(
                NoteEvent(pitch=pitch, velocity=velocity, start=start, end=now, channel=channel)
            )

    notes.sort(key=lambda n: (n.start, n.pitch, n.channel))
    return notes, initial_tempo, time_signature


class IngestStage(PipelineStage):
    """Stage 0: Ingest.

    - Validates the MIDI file exists and has a supported extension
    - Converts note-on/note-off pairs to timed NoteEvents
    - Records the initial tempo and time signature for bar sizing
    - Drops General MIDI drum notes (no pitched content)

    Notes handed to the pipeline directly skip file reading.
    """

    SUPPORTED_EXTENSIONS = {".mid", ".midi", ".smf"}

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @property
    def name(self) -> str:
        return "ingest"

    def execute(self, context: AnalysisContext) -> StageResult:
        """Execute the ingest stage."""
        warnings: list[str] = []

        # No file: analyze the supplied notes, an empty list being silence
        if context.source_path is None:
            context.notes = sorted(context.notes, key=lambda n: (n.start, n.pitch, n.channel))
            if context.notes:
                warnings.append(f"Using {len(context.notes)} supplied notes")
            else:
                warnings.append("No notes supplied, analyzing silence")
            return self._ok(warnings)

        # Validate file exists
        if not context.source_path.exists():
            return self._fail(f"File not found: {context.source_path}")

        # Validate extension
        ext = context.source_path.suffix.lower()
        if ext not in self.SUPPORTED_EXTENSIONS:
            return self._fail(
                f"Unsupported format: {ext}. "
                f"Supported: {', '.join(sorted(self.SUPPORTED_EXTENSIONS))}"
            )

        try:
            notes, tempo, time_signature = read_midi_file(
                context.source_path, exclude_drums=self.settings.exclude_drums
            )
        except (OSError, ValueError, EOFError) as e:
            return self._fail(f"Could not read MIDI file: {e}")

        context.notes = notes
        context.tempo_bpm = tempo
        context.time_signature = time_signature

        if tempo is None:
            warnings.append(f"No tempo in file, assuming {self.settings.tempo_bpm:.0f} BPM")
        if time_signature is None:
            warnings.append(
                f"No time signature in file, assuming {self.settings.beats_per_bar}/4"
            )
        if not notes:
            warnings.append("MIDI file contains no pitched notes")
        else:
            warnings.append(f"Read {len(notes)} notes from {context.source_path.name}")

        return self._ok(warnings)
