"""Theory: note names, chord formulas, chord-name parsing and scale derivation."""

from __future__ import annotations

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Final, Iterable, Mapping

from chordlab.errors import InvalidNoteError

SEMITONES_PER_OCTAVE = 12

# Chromatic pitch class names (index 0 = C)
NOTE_NAMES: Final[tuple[str, ...]] = (
    "C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B",
)

_NATURALS: Final[Mapping[str, int]] = MappingProxyType(
    {"C": 0, "D": 2, "E": 4, "F": 5, "G": 7, "A": 9, "B": 11}
)

# ── Interval tables ─────────────────────────────────────────────────────────

#: Semitone offsets from the root for every recognised chord-quality suffix.
CHORD_FORMULAS: Final[Mapping[str, tuple[int, ...]]] = MappingProxyType(
    {
        "": (0, 4, 7),
        "maj": (0, 4, 7),
        "m": (0, 3, 7),
        "min": (0, 3, 7),
        "7": (0, 4, 7, 10),
        "maj7": (0, 4, 7, 11),
        "m7": (0, 3, 7, 10),
        "dim": (0, 3, 6),
        "aug": (0, 4, 8),
        "sus4": (0, 5, 7),
        "sus2": (0, 2, 7),
    }
)

#: Quality used when a suffix is not in CHORD_FORMULAS.
DEFAULT_QUALITY = ""

SCALE_FORMULAS: Final[Mapping[str, tuple[int, ...]]] = MappingProxyType(
    {
        "major": (0, 2, 4, 5, 7, 9, 11),
        "minor": (0, 2, 3, 5, 7, 8, 10),
    }
)

_MODE_ALIASES: Final[Mapping[str, str]] = MappingProxyType(
    {
        "major": "major",
        "maior": "major",
        "maj": "major",
        "ionian": "major",
        "minor": "minor",
        "menor": "minor",
        "min": "minor",
        "m": "minor",
        "aeolian": "minor",
    }
)

_NOTE_WITH_OCTAVE = re.compile(r"^\s*([A-Ga-g][#b]?)(-?\d+)?\s*$")
_LYRIC_CHORD = re.compile(
    r"\[([A-Ga-g][#b]?(?:maj|min|m|dim|aug|sus|2|4|6|7|9|11|13)*(?:/[A-Ga-g][#b]?)?)\]"
)


def note_to_pitch_class(name: str) -> int:
    """
    Resolve a note name such as ``"C"``, ``"F#"`` or ``"Bb"`` to a pitch class.

    Flats are normalised by subtracting one semitone from the natural letter,
    so ``"Cb"`` resolves to 11 (B).

    Raises:
        InvalidNoteError: If the name is not a letter A-G with an optional
                          ``#`` or ``b``.
    """
    if not isinstance(name, str):
        raise InvalidNoteError(f"Note name must be a string, got {type(name).__name__}.")
    text = name.strip()
    if not text or len(text) > 2:
        raise InvalidNoteError(f"Invalid note name '{name}'.")

    natural = _NATURALS.get(text[0].upper())
    if natural is None:
        raise InvalidNoteError(f"Invalid note name '{name}': must start with A-G.")
    if len(text) == 1:
        return natural
    if text[1] == "#":
        return (natural + 1) % SEMITONES_PER_OCTAVE
    if text[1] == "b":
        return (natural - 1) % SEMITONES_PER_OCTAVE
    raise InvalidNoteError(f"Invalid accidental in note name '{name}'.")


def split_note(note: str) -> tuple[str, int | None]:
    """
    Split a note such as ``"E2"`` into its name and octave.

    Returns:
        ``(name, octave)`` where octave is ``None`` when no digits are present.

    Raises:
        InvalidNoteError: If the text is not a note name with optional octave.
    """
    match = _NOTE_WITH_OCTAVE.match(note) if isinstance(note, str) else None
    if match is None:
        raise InvalidNoteError(f"Invalid note '{note}'.")
    octave = match.group(2)
    return match.group(1), int(octave) if octave is not None else None


def pitch_class_name(pitch_class: int) -> str:
    """Canonical (sharp) spelling for a pitch class."""
    return NOTE_NAMES[pitch_class % SEMITONES_PER_OCTAVE]


def note_names(pitch_classes: Iterable[int]) -> list[str]:
    return [pitch_class_name(pc) for pc in pitch_classes]


@dataclass(frozen=True)
class ParsedChord:
    """
    A chord name resolved to its pitch classes.

    Attributes:
        name:          The chord name as supplied, e.g. ``"Bbm7"``.
        root:          Pitch class of the root (0=C, ..., 11=B).
        quality:       Quality token used for the lookup ("" for major).
        pitch_classes: Chord tones, root first, in formula order.
    """

    name: str
    root: int
    quality: str
    pitch_classes: tuple[int, ...]

    @property
    def note_names(self) -> list[str]:
        return note_names(self.pitch_classes)


def _split_root(text: str) -> tuple[str, str]:
    if len(text) > 1 and text[1] in "#b":
        return text[:2], text[2:]
    return text[:1], text[1:]


def resolve_chord(chord_name: str) -> ParsedChord | None:
    """
    Parse a chord name into a ParsedChord, or None when it has no valid root.

    The root is one character, or two when the second is ``#`` or ``b``.
    Everything after it is the quality; an unknown quality deliberately falls
    back to the major formula instead of failing.
    """
    if not isinstance(chord_name, str) or not chord_name.strip():
        return None

    text = chord_name.strip()
    root_name, quality = _split_root(text)
    try:
        root = note_to_pitch_class(root_name)
    except InvalidNoteError:
        return None

    if quality not in CHORD_FORMULAS:
        quality = DEFAULT_QUALITY
    formula = CHORD_FORMULAS[quality]
    return ParsedChord(
        name=text,
        root=root,
        quality=quality,
        pitch_classes=tuple((root + iv) % SEMITONES_PER_OCTAVE for iv in formula),
    )


def parse_chord(chord_name: str) -> list[int]:
    """
    Pitch classes of a chord, root first.

    Returns an empty list when the root cannot be resolved; callers treat
    that as "nothing to show".
    """
    parsed = resolve_chord(chord_name)
    return list(parsed.pitch_classes) if parsed is not None else []


def normalize_mode(mode: str | None) -> str:
    """Map free-text mode words ("Minor", "menor", "maj") to major/minor."""
    if not mode:
        return "major"
    return _MODE_ALIASES.get(mode.strip().lower(), "major")


def scale_notes(key: str) -> list[int]:
    """
    Seven pitch classes of the scale named by *key*, tonic first.

    *key* has the form ``"<Root> [<mode>]"``, e.g. ``"A minor"`` or ``"Eb"``.
    The mode defaults to major. The root token must be a bare note name, so
    ``"Am"`` or ``"Cfoo"`` give an empty list.
    """
    if not isinstance(key, str):
        return []
    parts = key.split()
    if not parts:
        return []

    try:
        root = note_to_pitch_class(parts[0])
    except InvalidNoteError:
        return []

    mode = normalize_mode(parts[1] if len(parts) > 1 else None)
    return [(root + iv) % SEMITONES_PER_OCTAVE for iv in SCALE_FORMULAS[mode]]


@dataclass(frozen=True)
class ChordToken:
    """An inline chord marker found in lyric text, e.g. ``[Am]``."""

    chord_name: str
    start: int
    end: int


def find_chord_tokens(lyrics: str) -> list[ChordToken]:
    """
    Find bracketed chord markers in lyrics, in reading order.

    ``start``/``end`` index the full bracketed token, so a renderer can split
    the text around it.
    """
    if not lyrics:
        return []
    return [
        ChordToken(chord_name=m.group(1), start=m.start(), end=m.end())
        for m in _LYRIC_CHORD.finditer(lyrics)
    ]
