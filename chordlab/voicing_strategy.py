"""VoicingStrategy: Strategy pattern for mapping chord names to fret positions."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import Final, Mapping, Sequence

from chordlab.diagram_models import MUTED, Voicing
from chordlab.fretboard import (
    STANDARD_GUITAR_TUNING,
    canonical_tuning,
    open_string_pitch_classes,
)
from chordlab.theory import NOTE_NAMES, SEMITONES_PER_OCTAVE, ParsedChord, resolve_chord

_LOGGER = logging.getLogger("chordlab.voicing_strategy")

x = MUTED

# ── Fixed shapes ────────────────────────────────────────────────────────────

#: Common chord shapes for standard guitar tuning (EADGBE), low E string first.
STANDARD_GUITAR_VOICINGS: Final[Mapping[str, tuple[int | None, ...]]] = MappingProxyType(
    {
        "A": (x, 0, 2, 2, 2, 0),
        "Am": (x, 0, 2, 2, 1, 0),
        "A7": (x, 0, 2, 0, 2, 0),
        "Amaj7": (x, 0, 2, 1, 2, 0),
        "Asus4": (x, 0, 2, 2, 3, 0),
        "B": (x, 2, 4, 4, 4, 2),
        "Bm": (x, 2, 4, 4, 3, 2),
        "B7": (x, 2, 1, 2, 0, 2),
        "C": (x, 3, 2, 0, 1, 0),
        "Cmaj7": (x, 3, 2, 0, 0, 0),
        "C7": (x, 3, 2, 3, 1, 0),
        "D": (x, x, 0, 2, 3, 2),
        "Dm": (x, x, 0, 2, 3, 1),
        "D7": (x, x, 0, 2, 1, 2),
        "Dmaj7": (x, x, 0, 2, 2, 2),
        "Dsus4": (x, x, 0, 2, 3, 3),
        "E": (0, 2, 2, 1, 0, 0),
        "Em": (0, 2, 2, 0, 0, 0),
        "E7": (0, 2, 0, 1, 0, 0),
        "F": (1, 3, 3, 2, 1, 1),
        "Fm": (1, 3, 3, 1, 1, 1),
        "Fmaj7": (x, x, 3, 2, 1, 0),
        "G": (3, 2, 0, 0, 0, 3),
        "G7": (3, 2, 0, 0, 0, 1),
        "Gmaj7": (3, x, 0, 0, 0, 2),
        "F#": (2, 4, 4, 3, 2, 2),
        "F#m": (2, 4, 4, 2, 2, 2),
        "C#m": (x, 4, 6, 6, 5, 4),
        "G#": (4, 6, 6, 5, 4, 4),
        "G#m": (4, 6, 6, 4, 4, 4),
        "D#": (x, 6, 8, 8, 8, 6),
        "D#m": (x, 6, 8, 8, 7, 6),
        "A#": (6, 8, 8, 7, 6, 6),
        "A#m": (6, 8, 8, 6, 6, 6),
    }
)

del x

#: Frets searched per string by the root scan (one full octave).
SCAN_FRETS = SEMITONES_PER_OCTAVE


# ── Abstract base ────────────────────────────────────────────────────────────

class VoicingStrategy(ABC):
    """
    Abstract Strategy for placing a parsed chord on a tuning.

    Concrete subclasses return a Voicing, or None when they have nothing to
    offer for the given chord/tuning pair.
    """

    @abstractmethod
    def voice(self, chord: ParsedChord, tuning: Sequence[str]) -> Voicing | None:
        """
        Map a ParsedChord to one fret (or a mute) per string.

        Args:
            chord:  Chord resolved by ``theory.resolve_chord``.
            tuning: Open-string notes, lowest string first.
        """


# ── Concrete strategies ──────────────────────────────────────────────────────

class FixedShapeVoicer(VoicingStrategy):
    """
    Table lookup in STANDARD_GUITAR_VOICINGS.

    Only valid for standard guitar tuning. The chord name is tried as written
    and then respelled with sharps, so ``"Bb"`` finds the ``"A#"`` shape.
    """

    def __init__(self, shapes: Mapping[str, tuple[int | None, ...]] = STANDARD_GUITAR_VOICINGS) -> None:
        self.shapes = shapes

    def applies_to(self, tuning: Sequence[str]) -> bool:
        return canonical_tuning(tuning) == STANDARD_GUITAR_TUNING

    def voice(self, chord: ParsedChord, tuning: Sequence[str]) -> Voicing | None:
        if not self.applies_to(tuning):
            return None
        for name in (chord.name, NOTE_NAMES[chord.root] + chord.quality):
            frets = self.shapes.get(name)
            if frets is not None:
                return Voicing(chord_name=chord.name, frets=frets, source="fixed")
        return None


class RootScanVoicer(VoicingStrategy):
    """
    Root-note placement: on every string, the lowest fret sounding the root.

    Used for bass, non-standard tunings and chords missing from the table.
    Each string is scanned from fret 0 to SCAN_FRETS - 1; since every pitch
    class appears within one octave the muted fallback is never expected.
    """

    def voice(self, chord: ParsedChord, tuning: Sequence[str]) -> Voicing | None:
        frets: list[int | None] = []
        for open_pc in open_string_pitch_classes(tuning):
            found: int | None = MUTED
            for fret in range(SCAN_FRETS):
                if (open_pc + fret) % SEMITONES_PER_OCTAVE == chord.root:
                    found = fret
                    break
            frets.append(found)
        return Voicing(chord_name=chord.name, frets=tuple(frets), source="scan")


_FIXED = FixedShapeVoicer()
_SCAN = RootScanVoicer()


def chord_diagram(chord_name: str, tuning: Sequence[str]) -> Voicing | None:
    """
    Voicing for *chord_name* on *tuning*, or None if the chord has no root.

    Standard guitar tuning uses the fixed shape table when it knows the chord;
    every other case falls through to the root scan.

    Raises:
        InvalidNoteError: If a tuning entry is not a note name.
    """
    chord = resolve_chord(chord_name)
    if chord is None:
        _LOGGER.debug("No voicing for unresolvable chord %r", chord_name)
        return None
    return _FIXED.voice(chord, tuning) or _SCAN.voice(chord, tuning)
