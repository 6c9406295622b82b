"""chordlab CLI entry point."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import NoReturn, Sequence

import click
import numpy as np

from chordlab import __version__
from chordlab.audio_graph import AudioGraph, FloatArray
from chordlab.config import Settings, load_settings
from chordlab.diagram_renderers import build_renderer
from chordlab.errors import ChordLabError
from chordlab.fretboard import (
    TUNINGS,
    Tuning,
    get_tuning,
    instrument_family,
    keyboard_highlights,
    layout_diagram,
    scale_overlay,
)
from chordlab.pcm import AudioSampleBuffer, buffer_to_wav, decode_base64_to_bytes, decode_pcm, encode_wav
from chordlab.playback import play_samples
from chordlab.sequencer import ManualScheduler, Sequencer
from chordlab.synth import CHORD_DURATION, REFERENCE_DURATION, ReferenceTone
from chordlab.theory import note_names, resolve_chord, scale_notes
from chordlab.voicing_strategy import chord_diagram

_LOGGER = logging.getLogger("chordlab.cli")

FORMAT_CHOICE = click.Choice(["text", "json"], case_sensitive=False)


def _fail(message: str) -> NoReturn:
    click.echo(f"  ERROR: {message}", err=True)
    sys.exit(1)


def _resolve_tuning(settings: Settings, instrument: str, tuning_name: str | None) -> Tuning:
    family = instrument_family(instrument)
    name = tuning_name or settings.preferred_tuning(family)
    try:
        return get_tuning(family, name)
    except KeyError:
        known = ", ".join(TUNINGS[family])
        raise click.BadParameter(
            f"Unknown {family} tuning '{name}'. Known tunings: {known}.",
            param_hint="--tuning",
        )


def _write_or_play(samples: FloatArray, sample_rate: int, output: str | None, play: bool) -> None:
    if output is not None:
        wav = buffer_to_wav(AudioSampleBuffer(samples.reshape(1, -1), sample_rate))
        try:
            Path(output).write_bytes(wav)
        except OSError as exc:
            _fail(f"Could not write WAV file — {exc}")
        click.echo(f"Wrote {len(samples) / sample_rate:.2f}s of audio → '{output}'")
    if play:
        try:
            play_samples(samples, sample_rate)
        except ChordLabError as exc:
            _fail(str(exc))


# ── CLI group ──────────────────────────────────────────────────────────────────

@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="chordlab")
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr.")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """chordlab — chord diagrams, scales, reference tones and audio export."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    try:
        ctx.obj = load_settings()
    except ChordLabError as exc:
        _fail(f"Invalid settings — {exc}")


# ── theory subcommands ─────────────────────────────────────────────────────────

@main.command()
@click.argument("chord_name")
@click.option("--instrument", default="guitar", show_default=True, help="Instrument label, e.g. 'bass' or 'violão'.")
@click.option("--tuning", "tuning_name", default=None, metavar="NAME", help="Tuning preset (see `chordlab tunings`).")
@click.option("--format", "output_format", type=FORMAT_CHOICE, default="text", show_default=True)
@click.pass_obj
def chord(settings: Settings, chord_name: str, instrument: str, tuning_name: str | None, output_format: str) -> None:
    """
    Show the notes, diagram and fretboard of CHORD_NAME.

    \b
    Examples:
      chordlab chord Am
      chordlab chord F#m --tuning "Drop D (DADGBE)"
      chordlab chord G --instrument bass --format json
    """
    parsed = resolve_chord(chord_name)
    if parsed is None:
        _fail(f"Could not find a root note in '{chord_name}'.")
    tuning = _resolve_tuning(settings, instrument, tuning_name)

    voicing = chord_diagram(chord_name, tuning.notes)
    renderer = build_renderer(output_format)
    click.echo(
        renderer.render(
            title=f"{parsed.name}: {' '.join(parsed.note_names)}  [{tuning.name}]",
            diagram=layout_diagram(voicing) if voicing is not None else None,
            overlay=scale_overlay(parsed.pitch_classes, tuning.notes),
            keyboard=keyboard_highlights(parsed.pitch_classes),
        ).rstrip("\n")
    )


@main.command()
@click.argument("key")
@click.option("--instrument", default="guitar", show_default=True, help="Instrument label, e.g. 'bass'.")
@click.option("--tuning", "tuning_name", default=None, metavar="NAME", help="Tuning preset (see `chordlab tunings`).")
@click.option("--format", "output_format", type=FORMAT_CHOICE, default="text", show_default=True)
@click.pass_obj
def scale(settings: Settings, key: str, instrument: str, tuning_name: str | None, output_format: str) -> None:
    """
    Show the scale of KEY (e.g. "A minor", "Eb") on the fretboard.
    """
    notes = scale_notes(key)
    if not notes:
        _fail(f"Could not find a root note in '{key}'.")
    tuning = _resolve_tuning(settings, instrument, tuning_name)
    renderer = build_renderer(output_format)
    click.echo(
        renderer.render(
            title=f"{key}: {' '.join(note_names(notes))}  [{tuning.name}]",
            overlay=scale_overlay(notes, tuning.notes),
            keyboard=keyboard_highlights(notes),
        ).rstrip("\n")
    )


@main.command()
def tunings() -> None:
    """List the tuning presets per instrument."""
    for family, presets in TUNINGS.items():
        click.echo(f"{family}:")
        for tuning in presets.values():
            click.echo(f"  {tuning.name:<20} {' '.join(tuning.notes)}")


# ── audio subcommands ──────────────────────────────────────────────────────────

@main.command()
@click.argument("note")
@click.option("--duration", type=click.FloatRange(0.1, 30.0), default=REFERENCE_DURATION, show_default=True, metavar="SECS")
@click.option("--output", "-o", default=None, metavar="PATH", help="Write the tone to a WAV file.")
@click.option("--play", is_flag=True, help="Play through the default audio device.")
@click.pass_obj
def tone(settings: Settings, note: str, duration: float, output: str | None, play: bool) -> None:
    """
    Render a tuner reference tone for NOTE (e.g. E2, A, G#3).
    """
    if output is None and not play:
        raise click.UsageError("Pass --output PATH and/or --play.")
    graph = AudioGraph(settings.sample_rate)
    try:
        ReferenceTone().play(graph, note, duration)
    except ChordLabError as exc:
        _fail(str(exc))
    _write_or_play(graph.render(duration), graph.sample_rate, output, play)


@main.command()
@click.argument("chords", nargs=-1, required=True)
@click.option("--bpm", type=float, default=None, help="Tempo in BPM. Defaults to CHORDLAB_DEFAULT_BPM.")
@click.option("--metronome/--no-metronome", default=None, help="Click on every beat.")
@click.option("--output", "-o", default=None, metavar="PATH", help="Write the progression to a WAV file.")
@click.option("--play", is_flag=True, help="Play through the default audio device.")
@click.pass_obj
def progression(
    settings: Settings,
    chords: Sequence[str],
    bpm: float | None,
    metronome: bool | None,
    output: str | None,
    play: bool,
) -> None:
    """
    Render CHORDS as a progression, one chord per 4/4 bar.

    \b
    Examples:
      chordlab progression C G Am F --bpm 96 -o verse.wav
      chordlab progression Em C G D --bpm 120 --metronome --play
    """
    if output is None and not play:
        raise click.UsageError("Pass --output PATH and/or --play.")
    tempo = bpm if bpm is not None else settings.default_bpm

    graph = AudioGraph(settings.sample_rate)
    scheduler = ManualScheduler()

    def report(index: int, chord_name: str, pitch_classes: Sequence[int]) -> None:
        notes = " ".join(note_names(pitch_classes)) or "(no notes)"
        click.echo(f"  {scheduler.now:7.2f}s  {chord_name:<6} {notes}")

    sequencer = Sequencer(
        graph,
        scheduler,
        metronome=settings.metronome if metronome is None else metronome,
        on_chord=report,
    )
    if not sequencer.start_sequence(chords, tempo):
        _fail(f"A positive --bpm is required (got {tempo}).")

    chunks: list[FloatArray] = []
    scheduler.run(on_advance=lambda gap: chunks.append(graph.render(gap)))
    chunks.append(graph.render(CHORD_DURATION))
    _write_or_play(np.concatenate(chunks), graph.sample_rate, output, play)


@main.command()
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.argument("output_file", metavar="OUTPUT")
@click.option("--sample-rate", type=click.IntRange(min=1), default=None, help="PCM sample rate. Defaults to the speech rate (24000).")
@click.option("--channels", type=click.IntRange(1, 8), default=1, show_default=True)
@click.pass_obj
def decode(settings: Settings, input_file: str, output_file: str, sample_rate: int | None, channels: int) -> None:
    """
    Convert base64 16-bit PCM text (INPUT_FILE) into a WAV file (OUTPUT).
    """
    rate = sample_rate if sample_rate is not None else settings.speech_sample_rate
    try:
        raw = decode_base64_to_bytes(Path(input_file).read_text(encoding="ascii", errors="replace"))
        buffer = decode_pcm(raw, rate, channels)
    except ChordLabError as exc:
        _fail(f"Could not load audio — {exc}")

    try:
        Path(output_file).write_bytes(encode_wav(buffer.to_int16(), rate, channels))
    except OSError as exc:
        _fail(f"Could not write WAV file — {exc}")
    click.echo(
        f"Decoded {buffer.frames} frames ({buffer.duration:.2f}s, {buffer.channels} ch @ {rate} Hz) → '{output_file}'"
    )
