"""Key profiles for correlation-based key finding.

Each profile holds twelve weights per mode, index 0 being the tonic,
index 1 the minor second above it, and so on.

References:
- Krumhansl, C. L. (1990). Cognitive Foundations of Musical Pitch.
- Temperley, D. (1999). What's Key for Key? The Krumhansl-Schmuckler
  Key-Finding Algorithm Reconsidered. Music Perception 17(1).
- Sha'ath, I. (2011). Estimation of Key in Digital Music Recordings.
  MSc thesis, Birkbeck College (the KeyFinder profile).
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True)
class KeyProfile:
    """A named pair of major/minor key templates."""

    name: str
    major: tuple[float, ...]
    minor: tuple[float, ...]

    def __post_init__(self) -> None:
        if len(self.major) != 12 or len(self.minor) != 12:
            raise ValueError(
                f"Key profile '{self.name}' must have 12 weights per mode, "
                f"got {len(self.major)} major / {len(self.minor)} minor"
            )


KRUMHANSL = KeyProfile(
    name="krumhansl",
    major=(6.35, 2.23, 3.48, 2.33, 4.38, 4.09, 2.52, 5.19, 2.39, 3.66, 2.29, 2.88),
    minor=(6.33, 2.68, 3.52, 5.38, 2.60, 3.53, 2.54, 4.75, 3.98, 2.69, 3.34, 3.17),
)

TEMPERLEY = KeyProfile(
    name="temperley",
    major=(5.0, 2.0, 3.5, 2.0, 4.5, 4.0, 2.0, 4.5, 2.0, 3.5, 1.5, 4.0),
    minor=(5.0, 2.0, 3.5, 4.5, 2.0, 4.0, 2.0, 4.5, 3.5, 2.0, 1.5, 4.0),
)

SHAATH = KeyProfile(
    name="shaath",
    major=(6.6, 2.0, 3.5, 2.3, 4.6, 4.0, 2.5, 5.2, 2.4, 3.7, 2.3, 3.4),
    minor=(6.5, 2.7, 3.5, 5.4, 2.6, 3.5, 2.5, 5.2, 4.0, 2.7, 4.3, 3.2),
)

# Binary scale membership (natural minor)
DIATONIC = KeyProfile(
    name="diatonic",
    major=(1.0, 0.0, 1.0, 0.0, 1.0, 1.0, 0.0, 1.0, 0.0, 1.0, 0.0, 1.0),
    minor=(1.0, 0.0, 1.0, 1.0, 0.0, 1.0, 0.0, 1.0, 1.0, 0.0, 1.0, 0.0),
)

KEY_PROFILES: Mapping[str, KeyProfile] = MappingProxyType(
    {profile.name: profile for profile in (KRUMHANSL, TEMPERLEY, SHAATH, DIATONIC)}
)


def get_profile(name: str, profiles: Mapping[str, KeyProfile] = KEY_PROFILES) -> KeyProfile:
    """Look up a key profile by name (case-insensitive)."""
    try:
        return profiles[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown key profile '{name}'. Options: {', '.join(sorted(profiles))}"
        ) from None
