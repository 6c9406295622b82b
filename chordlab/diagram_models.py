"""Data models for voicings, chord diagrams and fretboard/keyboard overlays."""

from dataclasses import dataclass

#: Marker for a string that is not played.
MUTED = None


@dataclass(frozen=True)
class Voicing:
    """
    A chord mapped onto one fret per string.

    Attributes:
        chord_name: Chord the voicing was computed for.
        frets:      One entry per string, lowest string first; ``None`` = muted.
        source:     ``"fixed"`` for the lookup table, ``"scan"`` for the root scan.
    """

    chord_name: str
    frets: tuple[int | None, ...]
    source: str

    @property
    def string_count(self) -> int:
        return len(self.frets)

    @property
    def fretted(self) -> list[int]:
        """Fret numbers of strings that are pressed (not open, not muted)."""
        return [f for f in self.frets if f is not None and f > 0]


@dataclass(frozen=True)
class Barre:
    """One finger bar across strings ``first_string..last_string`` at ``fret``."""

    fret: int
    first_string: int
    last_string: int


@dataclass(frozen=True)
class ChordDiagram:
    """
    A voicing laid out on a short fret window.

    ``positions`` hold the fret row inside the window (1..fret_count) for
    pressed strings, 0 for open strings and None for muted ones.
    """

    voicing: Voicing
    base_fret: int
    fret_count: int
    positions: tuple[int | None, ...]
    barre: Barre | None


@dataclass(frozen=True)
class FretMark:
    """The note sounding at one string/fret position."""

    pitch_class: int
    name: str
    highlighted: bool
    is_tonic: bool


@dataclass(frozen=True)
class FretboardOverlay:
    """Highlight flags for every string (lowest first) and fret 0..fret_count."""

    tuning: tuple[str, ...]
    fret_count: int
    strings: tuple[tuple[FretMark, ...], ...]


@dataclass(frozen=True)
class KeyboardKey:
    """One key of the single-octave virtual keyboard."""

    name: str
    is_black: bool
    highlighted: bool
    is_root: bool
