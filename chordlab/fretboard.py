"""Fretboard: instrument families, tunings, diagram layout and note overlays."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Final, Iterable, Mapping, Sequence

from chordlab.diagram_models import (
    Barre,
    ChordDiagram,
    FretboardOverlay,
    FretMark,
    KeyboardKey,
    Voicing,
)
from chordlab.theory import NOTE_NAMES, SEMITONES_PER_OCTAVE, note_to_pitch_class, split_note

GUITAR = "guitar"
BASS = "bass"

#: Frets shown by chord diagrams and fretboard overlays (plus the open string).
DIAGRAM_FRET_COUNT = 5

_BASS_SYNONYMS: Final[tuple[str, ...]] = ("bass", "baixo", "contrabaixo")


@dataclass(frozen=True)
class Tuning:
    """Open-string notes of a fretted instrument, lowest string first."""

    name: str
    family: str
    notes: tuple[str, ...]

    @property
    def string_count(self) -> int:
        return len(self.notes)


def _presets(family: str, entries: Sequence[tuple[str, tuple[str, ...]]]) -> Mapping[str, Tuning]:
    return MappingProxyType(
        {name: Tuning(name=name, family=family, notes=notes) for name, notes in entries}
    )


# The first preset of each family is its default.
TUNINGS: Final[Mapping[str, Mapping[str, Tuning]]] = MappingProxyType(
    {
        GUITAR: _presets(
            GUITAR,
            [
                ("Standard (EADGBE)", ("E2", "A2", "D3", "G3", "B3", "E4")),
                ("Drop D (DADGBE)", ("D2", "A2", "D3", "G3", "B3", "E4")),
                ("Open G (DGDGBD)", ("D2", "G2", "D3", "G3", "B3", "D4")),
            ],
        ),
        BASS: _presets(
            BASS,
            [
                ("Standard (EADG)", ("E1", "A1", "D2", "G2")),
                ("Drop D (DADG)", ("D1", "A1", "D2", "G2")),
            ],
        ),
    }
)

STANDARD_GUITAR_TUNING: Final[tuple[str, ...]] = ("E", "A", "D", "G", "B", "E")
STANDARD_BASS_TUNING: Final[tuple[str, ...]] = ("E", "A", "D", "G")


def instrument_family(label: str | None) -> str:
    """
    Classify an instrument label such as "Electric Bass" or "Violão" as
    ``"bass"`` or ``"guitar"``. Unknown labels default to guitar.
    """
    if not label:
        return GUITAR
    lowered = label.lower()
    if any(word in lowered for word in _BASS_SYNONYMS):
        return BASS
    return GUITAR


def get_tuning(family: str, name: str | None = None) -> Tuning:
    """
    Look up a tuning preset; ``name=None`` returns the family default.

    Raises:
        KeyError: If the family or preset name is unknown.
    """
    presets = TUNINGS[family]
    if name is None:
        return next(iter(presets.values()))
    return presets[name]


def canonical_tuning(notes: Iterable[str]) -> tuple[str, ...]:
    """
    Strip octave digits and respell each open string with NOTE_NAMES,
    e.g. ``("D2", "a2", "Eb3")`` -> ``("D", "A", "D#")``.

    Raises:
        InvalidNoteError: If any entry is not a note name.
    """
    return tuple(NOTE_NAMES[note_to_pitch_class(split_note(note)[0])] for note in notes)


def open_string_pitch_classes(notes: Iterable[str]) -> list[int]:
    return [note_to_pitch_class(split_note(note)[0]) for note in notes]


# ── Chord diagram layout ────────────────────────────────────────────────────


def _find_barre(frets: Sequence[int | None], fret: int) -> Barre | None:
    """
    Widest span of strings held down by one bar at *fret*.

    Both ends must sit exactly on *fret* and every string between them must
    be pressed at or above it; an open or muted string breaks the bar.
    """
    on_fret = [i for i, f in enumerate(frets) if f == fret]
    best: Barre | None = None
    for i, first in enumerate(on_fret):
        for last in on_fret[i + 1 :]:
            if not all(f is not None and f >= fret for f in frets[first : last + 1]):
                break
            if best is None or last - first > best.last_string - best.first_string:
                best = Barre(fret=fret, first_string=first, last_string=last)
    return best


def layout_diagram(voicing: Voicing, fret_count: int = DIAGRAM_FRET_COUNT) -> ChordDiagram:
    """
    Place a voicing on a *fret_count*-fret window.

    When the lowest pressed fret is above 1, the window is rebased so that
    fret displays as row 1 and ``base_fret`` carries the true fret number.
    The window grows when a string is pressed below its last row. Only
    rebased voicings get a barre.
    """
    fretted = voicing.fretted
    min_fret = min(fretted) if fretted else 0
    base_fret = min_fret if min_fret > 1 else 1

    positions: list[int | None] = []
    for fret in voicing.frets:
        if fret is None or fret == 0:
            positions.append(fret)
        else:
            positions.append(fret - base_fret + 1)

    # root-scan voicings can reach past the default window
    lowest_row = max((p for p in positions if p), default=0)

    barre = _find_barre(voicing.frets, base_fret) if base_fret > 1 else None
    return ChordDiagram(
        voicing=voicing,
        base_fret=base_fret,
        fret_count=max(fret_count, lowest_row),
        positions=tuple(positions),
        barre=barre,
    )


# ── Overlays ────────────────────────────────────────────────────────────────


def scale_overlay(
    notes: Sequence[int],
    tuning: Sequence[str],
    fret_count: int = DIAGRAM_FRET_COUNT,
) -> FretboardOverlay:
    """
    Mark every string/fret position (frets 0..fret_count) whose note is in *notes*.

    The first entry of *notes* is the tonic (or chord root). An empty *notes*
    produces an overlay with nothing highlighted.
    """
    wanted = {pc % SEMITONES_PER_OCTAVE for pc in notes}
    tonic = notes[0] % SEMITONES_PER_OCTAVE if notes else None

    strings: list[tuple[FretMark, ...]] = []
    for open_pc in open_string_pitch_classes(tuning):
        row = []
        for fret in range(fret_count + 1):
            pc = (open_pc + fret) % SEMITONES_PER_OCTAVE
            row.append(
                FretMark(
                    pitch_class=pc,
                    name=NOTE_NAMES[pc],
                    highlighted=pc in wanted,
                    is_tonic=pc == tonic,
                )
            )
        strings.append(tuple(row))

    return FretboardOverlay(
        tuning=tuple(tuning),
        fret_count=fret_count,
        strings=tuple(strings),
    )


def keyboard_highlights(notes: Sequence[int]) -> list[KeyboardKey]:
    """One-octave keyboard (C..B) with chord or scale tones highlighted."""
    wanted = {pc % SEMITONES_PER_OCTAVE for pc in notes}
    root = notes[0] % SEMITONES_PER_OCTAVE if notes else None
    return [
        KeyboardKey(
            name=name,
            is_black=name.endswith("#"),
            highlighted=pc in wanted,
            is_root=pc == root,
        )
        for pc, name in enumerate(NOTE_NAMES)
    ]
