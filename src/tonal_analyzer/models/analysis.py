"""Core analysis data models for Tonal Analyzer.

These models represent the note input and the harmonic interpretation that
gets serialized to JSON. All of them are immutable once emitted; later
stages derive labelled copies with dataclasses.replace().
"""

from dataclasses import dataclass, field
from typing import Literal

from tonal_analyzer.theory.chords import ChordQuality
from tonal_analyzer.theory.scales import Mode

HarmonicFunction = Literal["tonic", "subdominant", "dominant", "none"]
SecondaryKind = Literal["dominant", "leading_tone"]
CadenceType = Literal["PAC", "IAC", "HC", "PC", "DC"]


@dataclass(frozen=True)
class NoteEvent:
    """A timed note from the MIDI stream."""

    pitch: int  # MIDI note number (0-127)
    velocity: int  # 0-127
    start: float  # seconds
    end: float  # seconds
    channel: int = 0  # MIDI channel (0-15)

    @property
    def duration(self) -> float:
        return max(0.0, self.end - self.start)

    @property
    def pitch_class(self) -> int:
        return self.pitch % 12


@dataclass(frozen=True)
class PitchClassWindow:
    """Weighted pitch-class energy of every note overlapping a window."""

    start: float  # seconds
    end: float  # seconds
    histogram: tuple[float, ...]  # 12 bins, sum(overlap * velocity)
    onset: float | None = None  # earliest note start inside the window
    bass: int | None = None  # pitch class of the lowest sounding pitch
    soprano: int | None = None  # pitch class of the highest sounding pitch

    @property
    def total(self) -> float:
        return float(sum(self.histogram))

    @property
    def is_silent(self) -> bool:
        return self.total <= 0.0


@dataclass(frozen=True)
class KeyEstimate:
    """Best and runner-up key for one window."""

    start: float
    end: float
    tonic: int  # pitch class 0-11
    mode: Mode
    correlation: float  # Pearson r of the best candidate
    confidence: float  # (r + 1) / 2
    ambiguity: float  # 0 = clear winner, 1 = tie with runner-up
    second_tonic: int
    second_mode: Mode
    second_correlation: float
    # r for every key: index tonic for major, 12 + tonic for minor
    correlations: tuple[float, ...] = ()
    is_silent: bool = False

    def correlation_for(self, tonic: int, mode: str) -> float:
        """Pearson r this window gives to an arbitrary key."""
        if not self.correlations:
            return 0.0
        return self.correlations[tonic % 12 + (12 if mode == "minor" else 0)]

    def confidence_for(self, tonic: int, mode: str) -> float:
        """Confidence this window gives to an arbitrary key."""
        return (self.correlation_for(tonic, mode) + 1.0) / 2.0


@dataclass(frozen=True)
class KeyRegion:
    """A contiguous stretch of the timeline in one key."""

    tonic: int  # pitch class 0-11
    mode: Mode
    confidence: float  # 0.0-1.0
    ambiguity: float  # 0.0-1.0
    start: float  # seconds
    end: float  # seconds

    def contains(self, time: float) -> bool:
        return self.start <= time < self.end


@dataclass(frozen=True)
class ChordEvent:
    """A detected chord with its key-relative interpretation."""

    time: float  # seconds
    root: int  # pitch class 0-11
    quality: ChordQuality
    degree: int  # 1-7 in the active key, 0 if chromatic
    score: float
    function: HarmonicFunction = "none"
    is_secondary_dominant: bool = False
    secondary_target: int | None = None  # degree the applied chord resolves to
    secondary_kind: SecondaryKind | None = None
    is_borrowed: bool = False  # taken from the parallel mode
    end: float | None = None  # seconds
    name: str = ""  # e.g. "Am7"
    numeral: str = ""  # e.g. "vi7", "V/V"
    key_tonic: int = 0
    key_mode: Mode = "major"
    bass: int | None = None
    soprano: int | None = None


@dataclass(frozen=True)
class TensionComponents:
    """The four weighted ingredients of harmonic tension."""

    hierarchical: float
    dissonance: float
    motion: float
    tendency: float


@dataclass(frozen=True)
class TensionSample:
    """Harmonic tension at a chord (one per ChordEvent)."""

    time: float  # seconds
    value: float  # 0.0-1.0
    components: TensionComponents


@dataclass(frozen=True)
class CadenceEvent:
    """A closure pattern between two consecutive chords."""

    time: float  # seconds (time of the arrival chord)
    type: CadenceType
    from_degree: int = 0
    to_degree: int = 0


@dataclass
class HarmonicAnalysis:
    """Root analysis object, serialized to JSON."""

    # Metadata
    source_file: str
    duration: float  # seconds
    tempo_bpm: float
    time_signature: tuple[int, int]
    profile: str

    # Processing info
    analysis_date: str = ""  # ISO format
    analyzer_version: str = ""

    # Whole-piece key
    key_tonic: int | None = None
    key_mode: Mode | None = None
    key_confidence: float | None = None

    # Output streams, each ordered by time
    key_regions: list[KeyRegion] = field(default_factory=list)
    chords: list[ChordEvent] = field(default_factory=list)
    tension: list[TensionSample] = field(default_factory=list)
    cadences: list[CadenceEvent] = field(default_factory=list)
