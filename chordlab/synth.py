"""Synth: chord, metronome and reference-tone voices built on an AudioGraph."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Final, Sequence

from chordlab.audio_graph import CLOSED, SUSPENDED, AudioGraph, GainNode, OscillatorNode
from chordlab.theory import SEMITONES_PER_OCTAVE, note_to_pitch_class, pitch_class_name, split_note

_LOGGER = logging.getLogger("chordlab.synth")

# ── Tuning reference ────────────────────────────────────────────────────────
A4_FREQUENCY = 440.0
A4_KEY_NUMBER = 57  # key numbers count semitones from C0
DEFAULT_OCTAVE = 4

# ── Voice parameters ────────────────────────────────────────────────────────
CHORD_DURATION = 0.6
CHORD_WAVEFORM = "triangle"
DECAY_FLOOR = 0.0001  # exponential ramps cannot reach zero

CLICK_FREQUENCY = 880.0  # A5
CLICK_DURATION = 0.05

REFERENCE_DURATION = 3.0
REFERENCE_LEVEL = 0.3
REFERENCE_ATTACK = 0.05
REFERENCE_RELEASE = 0.1

#: Note letters voiced an octave lower in chords so they do not sound shrill.
LOW_OCTAVE_LETTERS: Final[frozenset[str]] = frozenset({"G", "A", "B"})
LOW_CHORD_OCTAVE = 3


def frequency_of(note: str, default_octave: int = DEFAULT_OCTAVE) -> float:
    """
    Equal-tempered frequency of *note* with A4 = 440 Hz.

    An explicit octave in the note (``"C4"``) wins over *default_octave*.

    Raises:
        InvalidNoteError: If the note is not a note name with optional octave.
    """
    name, octave = split_note(note)
    key_number = note_to_pitch_class(name) + SEMITONES_PER_OCTAVE * (
        default_octave if octave is None else octave
    )
    return A4_FREQUENCY * 2.0 ** ((key_number - A4_KEY_NUMBER) / SEMITONES_PER_OCTAVE)


def chord_playback_octave(note: str) -> int:
    """
    Octave used for a chord tone: G, A and B (with any accidental) drop to
    octave 3, everything else plays in octave 4.
    """
    return LOW_CHORD_OCTAVE if note[:1].upper() in LOW_OCTAVE_LETTERS else DEFAULT_OCTAVE


def _graph_ready(graph: AudioGraph | None) -> bool:
    if graph is None:
        _LOGGER.debug("No audio graph yet; skipping synthesis")
        return False
    if graph.state == CLOSED:
        _LOGGER.debug("Audio graph is closed; skipping synthesis")
        return False
    if graph.state == SUSPENDED:
        _LOGGER.debug("Audio graph is suspended; voices will sound once it is resumed")
    return True


def _note_label(note: int | str) -> str:
    return pitch_class_name(note) if isinstance(note, int) else note


def play_chord(
    graph: AudioGraph | None,
    notes: Sequence[int | str],
    duration: float = CHORD_DURATION,
) -> list[OscillatorNode]:
    """
    Sound all *notes* together as decaying triangle waves.

    Each note gets its own gain falling exponentially from 1.0 to DECAY_FLOOR
    over *duration*; a shared gain of ``1 / len(notes)`` keeps the sum from
    clipping.

    Args:
        graph:    Caller-owned output graph (None makes this a no-op).
        notes:    Pitch classes or note names, root first.
        duration: Seconds until every oscillator stops.

    Returns:
        The started oscillators (empty when nothing was scheduled).
    """
    if not notes or not _graph_ready(graph) or graph is None:
        return []

    now = graph.current_time
    master = graph.create_gain(0.0)
    master.gain.set_value_at_time(1.0 / len(notes), now)
    master.connect(graph.output)

    oscillators = []
    for note in notes:
        label = _note_label(note)
        frequency = frequency_of(label, chord_playback_octave(label))
        oscillator = graph.create_oscillator(CHORD_WAVEFORM, frequency)
        oscillator.frequency.set_value_at_time(frequency, now)

        envelope = graph.create_gain(0.0)
        envelope.gain.set_value_at_time(1.0, now)
        envelope.gain.exponential_ramp_to_value_at_time(DECAY_FLOOR, now + duration)

        oscillator.connect(envelope).connect(master)
        oscillator.start(now)
        oscillator.stop(now + duration)
        oscillators.append(oscillator)

    _LOGGER.debug("Chord %s at t=%.3f for %.2fs", [_note_label(n) for n in notes], now, duration)
    return oscillators


def play_metronome_click(graph: AudioGraph | None, when: float | None = None) -> OscillatorNode | None:
    """
    A 50 ms 880 Hz sine tick with a sharp exponential decay.

    Passing a future *when* (graph time in seconds) queues the tick, so a whole
    bar of clicks can be scheduled up front.
    """
    if not _graph_ready(graph) or graph is None:
        return None

    start = graph.current_time if when is None else max(when, graph.current_time)
    oscillator = graph.create_oscillator("sine", CLICK_FREQUENCY)
    oscillator.frequency.set_value_at_time(CLICK_FREQUENCY, start)

    envelope = graph.create_gain(0.0)
    envelope.gain.set_value_at_time(1.0, start)
    envelope.gain.exponential_ramp_to_value_at_time(DECAY_FLOOR, start + CLICK_DURATION)

    oscillator.connect(envelope).connect(graph.output)
    oscillator.start(start)
    oscillator.stop(start + CLICK_DURATION)
    return oscillator


@dataclass
class _ActiveTone:
    note: str
    graph: AudioGraph
    oscillator: OscillatorNode
    envelope: GainNode
    end_time: float


class ReferenceTone:
    """
    The tuner's single sine voice.

    At most one reference note sounds at a time: play() silences the current
    note before starting the next one. Envelope: linear 50 ms attack up to
    *level*, sustain, and a linear 100 ms release to silence.
    """

    def __init__(self, level: float = REFERENCE_LEVEL) -> None:
        self.level = level
        self._active: _ActiveTone | None = None

    @property
    def playing_note(self) -> str | None:
        """The note still sounding, or None."""
        active = self._active
        if active is None or active.graph.current_time >= active.end_time:
            return None
        return active.note

    def play(self, graph: AudioGraph | None, note: str, duration: float = REFERENCE_DURATION) -> bool:
        """
        Replace whatever is sounding with *note* for *duration* seconds.

        Returns:
            True if the note was scheduled, False for a missing/closed graph.

        Raises:
            InvalidNoteError: If the note cannot be resolved to a frequency.
        """
        frequency = frequency_of(note)
        self.stop()
        if not _graph_ready(graph) or graph is None:
            return False

        now = graph.current_time
        attack_end = now + min(REFERENCE_ATTACK, duration / 2)
        release_start = max(attack_end, now + duration - REFERENCE_RELEASE)
        end = now + duration

        oscillator = graph.create_oscillator("sine", frequency)
        envelope = graph.create_gain(0.0)
        envelope.gain.set_value_at_time(0.0, now)
        envelope.gain.linear_ramp_to_value_at_time(self.level, attack_end)
        envelope.gain.linear_ramp_to_value_at_time(self.level, release_start)
        envelope.gain.linear_ramp_to_value_at_time(0.0, end)

        oscillator.connect(envelope).connect(graph.output)
        oscillator.start(now)
        oscillator.stop(end)
        self._active = _ActiveTone(note, graph, oscillator, envelope, end)
        _LOGGER.debug("Reference tone %s (%.2f Hz) for %.1fs", note, frequency, duration)
        return True

    def stop(self) -> None:
        """Silence the current note immediately, if any."""
        active, self._active = self._active, None
        if active is None:
            return
        now = active.graph.current_time
        if now < active.end_time:
            active.envelope.gain.set_value_at_time(0.0, now)
            active.oscillator.stop(now)

    def toggle(self, graph: AudioGraph | None, note: str, duration: float = REFERENCE_DURATION) -> bool:
        """Stop *note* if it is the one sounding, otherwise play it. Returns True if now playing."""
        if self.playing_note == note:
            self.stop()
            return False
        return self.play(graph, note, duration)
