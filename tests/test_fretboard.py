"""Unit tests for instrument families, tunings, diagram layout and overlays."""

import pytest

from chordlab.diagram_models import Barre, Voicing
from chordlab.fretboard import (
    BASS,
    GUITAR,
    TUNINGS,
    canonical_tuning,
    get_tuning,
    instrument_family,
    keyboard_highlights,
    layout_diagram,
    scale_overlay,
)
from chordlab.theory import parse_chord, scale_notes
from chordlab.voicing_strategy import chord_diagram

STANDARD = ["E", "A", "D", "G", "B", "E"]


@pytest.mark.parametrize(
    "label, family",
    [
        ("Electric Bass", BASS),
        ("Contrabaixo", BASS),
        ("baixo elétrico", BASS),
        ("Acoustic Guitar", GUITAR),
        ("Violão", GUITAR),
        ("Piano", GUITAR),
        ("", GUITAR),
        (None, GUITAR),
    ],
)
def test_instrument_family(label: str | None, family: str) -> None:
    assert instrument_family(label) == family


def test_default_tunings_are_first_presets() -> None:
    assert get_tuning(GUITAR).name == "Standard (EADGBE)"
    assert get_tuning(BASS).string_count == 4


def test_every_preset_has_family_string_count() -> None:
    for family, presets in TUNINGS.items():
        for tuning in presets.values():
            assert tuning.family == family
            assert tuning.string_count == (4 if family == BASS else 6)


def test_unknown_tuning_name_raises_key_error() -> None:
    with pytest.raises(KeyError):
        get_tuning(GUITAR, "Nashville")


def test_canonical_tuning_strips_octaves_and_respells() -> None:
    assert canonical_tuning(["D2", "a2", "Eb3"]) == ("D", "A", "D#")


def test_layout_open_chord_keeps_base_fret_one() -> None:
    diagram = layout_diagram(Voicing("C", (None, 3, 2, 0, 1, 0), "fixed"))
    assert diagram.base_fret == 1
    assert diagram.positions == (None, 3, 2, 0, 1, 0)
    assert diagram.barre is None


def test_layout_rebases_barre_chord() -> None:
    voicing = chord_diagram("Bm", STANDARD)
    assert voicing is not None
    diagram = layout_diagram(voicing)
    assert diagram.base_fret == 2
    assert diagram.positions == (None, 1, 3, 3, 2, 1)
    assert diagram.barre == Barre(fret=2, first_string=1, last_string=5)


def test_layout_full_barre_across_six_strings() -> None:
    diagram = layout_diagram(Voicing("F#", (2, 4, 4, 3, 2, 2), "fixed"))
    assert diagram.barre == Barre(fret=2, first_string=0, last_string=5)


def test_open_string_between_repeats_is_not_a_barre() -> None:
    diagram = layout_diagram(Voicing("?", (None, 3, 0, 3, 5, None), "fixed"))
    assert diagram.base_fret == 3
    assert diagram.barre is None


def test_barre_stops_at_muted_string() -> None:
    diagram = layout_diagram(Voicing("?", (3, 3, None, 3, 3, 5), "fixed"))
    assert diagram.barre == Barre(fret=3, first_string=0, last_string=1)


def test_barre_prefers_widest_unbroken_span() -> None:
    diagram = layout_diagram(Voicing("?", (3, None, 3, 4, 5, 3), "fixed"))
    assert diagram.barre == Barre(fret=3, first_string=2, last_string=5)


def test_single_string_at_base_fret_is_not_a_barre() -> None:
    diagram = layout_diagram(Voicing("?", (None, 4, 6, 6, 6, None), "fixed"))
    assert diagram.base_fret == 4
    assert diagram.barre is None


def test_window_grows_to_fit_wide_scan_voicing() -> None:
    voicing = chord_diagram("F", ["E", "A", "D", "G"])
    assert voicing is not None
    assert voicing.frets == (1, 8, 3, 10)

    diagram = layout_diagram(voicing)
    assert diagram.base_fret == 1
    assert diagram.positions == (1, 8, 3, 10)
    assert diagram.fret_count == 10


def test_compact_voicing_keeps_default_window() -> None:
    diagram = layout_diagram(Voicing("C", (None, 3, 2, 0, 1, 0), "fixed"))
    assert diagram.fret_count == 5


def test_all_open_voicing_layout() -> None:
    diagram = layout_diagram(Voicing("Em?", (0, 0, 0, 0, 0, 0), "scan"))
    assert diagram.base_fret == 1
    assert diagram.positions == (0, 0, 0, 0, 0, 0)


def test_scale_overlay_marks_members_and_tonic() -> None:
    overlay = scale_overlay(scale_notes("E minor"), STANDARD)
    assert len(overlay.strings) == 6
    assert all(len(row) == 6 for row in overlay.strings)

    low_e = overlay.strings[0]
    assert low_e[0].name == "E" and low_e[0].is_tonic and low_e[0].highlighted
    assert low_e[1].name == "F" and not low_e[1].highlighted
    assert low_e[2].name == "F#" and low_e[2].highlighted and not low_e[2].is_tonic


def test_chord_overlay_on_drop_d_uses_sounding_notes() -> None:
    overlay = scale_overlay(parse_chord("D"), ["D", "A", "D", "G", "B", "E"])
    assert overlay.strings[0][0].is_tonic
    assert [m.highlighted for m in overlay.strings[5]] == [False, False, True, False, False, True]


def test_empty_notes_highlight_nothing() -> None:
    overlay = scale_overlay([], STANDARD)
    assert not any(mark.highlighted for row in overlay.strings for mark in row)


def test_keyboard_highlights_root_and_members() -> None:
    keys = keyboard_highlights(parse_chord("Am"))
    by_name = {key.name: key for key in keys}
    assert len(keys) == 12
    assert by_name["A"].is_root and by_name["A"].highlighted
    assert by_name["C"].highlighted and not by_name["C"].is_root
    assert by_name["C#"].is_black and not by_name["C#"].highlighted
