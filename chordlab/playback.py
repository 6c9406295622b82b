"""Playback: hand rendered buffers to the sound card through sounddevice."""

from __future__ import annotations

import logging
from typing import Any

import numpy as np

from chordlab.audio_graph import AudioGraph, FloatArray
from chordlab.errors import PlaybackError

_LOGGER = logging.getLogger("chordlab.playback")


def _load_sounddevice() -> Any:
    """
    Import sounddevice on demand.

    Raises:
        PlaybackError: If sounddevice or its PortAudio library is missing.
    """
    try:
        import sounddevice as sd_module  # type: ignore[import]
    except (ImportError, OSError) as exc:
        _LOGGER.info("sounddevice not available: %s", exc, exc_info=True)
        raise PlaybackError(
            "Playback requires the sounddevice package and PortAudio. "
            "Install them or write a WAV file instead."
        ) from exc
    return sd_module


def play_samples(samples: FloatArray, sample_rate: int, *, blocking: bool = True) -> None:
    """Play a mono float buffer; with blocking=True wait until it finishes."""
    sd = _load_sounddevice()
    mono = np.clip(np.asarray(samples, dtype=np.float32).reshape(-1), -1.0, 1.0)
    _LOGGER.debug("Playing %d samples at %d Hz", mono.size, sample_rate)
    sd.play(mono, sample_rate)
    if blocking:
        sd.wait()


def stream_graph(graph: AudioGraph, seconds: float, block_seconds: float = 0.05) -> None:
    """Render *graph* block by block straight into an output stream."""
    sd = _load_sounddevice()
    block_count = max(1, int(np.ceil(seconds / block_seconds)))
    with sd.OutputStream(samplerate=graph.sample_rate, channels=1, dtype="float32") as stream:
        for _ in range(block_count):
            block = np.clip(graph.render(block_seconds), -1.0, 1.0)
            stream.write(block.reshape(-1, 1))
