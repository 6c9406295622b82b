"""PCM codec: base64 speech audio to float buffers, int16 samples to WAV bytes."""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import struct
from dataclasses import dataclass, field
from typing import Mapping, Sequence

import numpy as np
from numpy.typing import NDArray

from chordlab.config import SPEECH_SAMPLE_RATE
from chordlab.errors import DecodeError

_LOGGER = logging.getLogger("chordlab.pcm")

FloatArray = NDArray[np.float32]
Int16Array = NDArray[np.int16]

BYTES_PER_SAMPLE = 2
WAV_HEADER_SIZE = 44
_PCM_FORMAT_TAG = 1
_FMT_CHUNK_SIZE = 16
_BITS_PER_SAMPLE = 16


@dataclass(frozen=True)
class AudioSampleBuffer:
    """
    Decoded audio, one row per channel.

    Attributes:
        data:        float32 array of shape (channels, frames), values in [-1, 1].
        sample_rate: Frames per second.
    """

    data: FloatArray
    sample_rate: int

    @property
    def channels(self) -> int:
        return int(self.data.shape[0])

    @property
    def frames(self) -> int:
        return int(self.data.shape[1])

    @property
    def duration(self) -> float:
        return self.frames / self.sample_rate if self.sample_rate else 0.0

    def channel_data(self, channel: int) -> FloatArray:
        return self.data[channel]

    def interleaved(self) -> FloatArray:
        """Samples in frame order: L0 R0 L1 R1 ..."""
        return self.data.T.reshape(-1)

    def to_int16(self) -> Int16Array:
        """
        Interleaved int16 samples equal to the ones decode_pcm read.

        This is the exact inverse of the ``/ 32768`` normalisation, unlike
        float_to_int16 which uses the asymmetric export scaling.
        """
        scaled = np.round(self.interleaved().astype(np.float64) * 32768.0)
        return np.clip(scaled, -32768, 32767).astype(np.int16)


def decode_base64_to_bytes(encoded: str) -> bytes:
    """
    Decode standard base64 text; whitespace and line breaks are ignored.

    Raises:
        DecodeError: If the text is not valid base64.
    """
    if not isinstance(encoded, (str, bytes)):
        raise DecodeError(f"Expected base64 text, got {type(encoded).__name__}.")
    compact = "".join(encoded.split()) if isinstance(encoded, str) else b"".join(encoded.split())
    try:
        return base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"Malformed base64 audio data: {exc}") from exc


def decode_pcm(
    data: bytes,
    sample_rate: int = SPEECH_SAMPLE_RATE,
    channels: int = 1,
) -> AudioSampleBuffer:
    """
    Interpret raw bytes as interleaved little-endian signed 16-bit PCM.

    Args:
        data:        Raw PCM bytes.
        sample_rate: Frames per second (the speech service sends 24000 Hz).
        channels:    Interleaved channel count (the speech service sends mono).

    Returns:
        AudioSampleBuffer with each sample divided by 32768.

    Raises:
        DecodeError: If the byte length is not a whole number of frames.
        ValueError:  If sample_rate or channels is not positive.
    """
    if channels <= 0:
        raise ValueError(f"channels must be positive, got {channels}.")
    if sample_rate <= 0:
        raise ValueError(f"sample_rate must be positive, got {sample_rate}.")

    frame_size = channels * BYTES_PER_SAMPLE
    if len(data) % frame_size != 0:
        raise DecodeError(
            f"PCM data length {len(data)} is not a multiple of the frame size {frame_size}."
        )

    samples = np.frombuffer(data, dtype="<i2")
    frames = samples.reshape(-1, channels).T.astype(np.float32) / np.float32(32768.0)
    return AudioSampleBuffer(data=np.ascontiguousarray(frames), sample_rate=sample_rate)


async def decode_pcm_async(
    data: bytes,
    sample_rate: int = SPEECH_SAMPLE_RATE,
    channels: int = 1,
) -> AudioSampleBuffer:
    """decode_pcm run in a worker thread so the event loop keeps ticking."""
    return await asyncio.to_thread(decode_pcm, data, sample_rate, channels)


def float_to_int16(samples: Sequence[float] | FloatArray) -> Int16Array:
    """
    Convert float samples to int16 for export.

    Samples are clamped to [-1, 1]; negatives scale by 32768 and non-negatives
    by 32767 so +1.0 does not overflow.
    """
    clipped = np.clip(np.asarray(samples, dtype=np.float64), -1.0, 1.0)
    scaled = np.where(clipped < 0, clipped * 32768.0, clipped * 32767.0)
    return scaled.astype(np.int16)


def encode_wav(
    samples: Sequence[int] | Int16Array,
    sample_rate: int,
    channels: int = 1,
) -> bytes:
    """
    Wrap interleaved int16 samples in a canonical 44-byte RIFF/WAVE header.

    Raises:
        ValueError: If the sample count is not a whole number of frames.
    """
    if channels <= 0:
        raise ValueError(f"channels must be positive, got {channels}.")
    pcm = np.asarray(samples, dtype=np.int16)
    if pcm.size % channels != 0:
        raise ValueError(f"{pcm.size} samples do not divide into {channels} channels.")

    payload = pcm.astype("<i2").tobytes()
    block_align = channels * BYTES_PER_SAMPLE
    byte_rate = sample_rate * block_align

    header = b"".join(
        [
            b"RIFF",
            struct.pack("<I", 36 + len(payload)),
            b"WAVE",
            b"fmt ",
            struct.pack(
                "<IHHIIHH",
                _FMT_CHUNK_SIZE,
                _PCM_FORMAT_TAG,
                channels,
                sample_rate,
                byte_rate,
                block_align,
                _BITS_PER_SAMPLE,
            ),
            b"data",
            struct.pack("<I", len(payload)),
        ]
    )
    return header + payload


def buffer_to_wav(buffer: AudioSampleBuffer) -> bytes:
    """Export a float buffer (decoded or synthesized) as WAV bytes."""
    return encode_wav(float_to_int16(buffer.interleaved()), buffer.sample_rate, buffer.channels)


# ── Stems ────────────────────────────────────────────────────────────────────


@dataclass
class StemLoadResult:
    """
    Outcome of decoding several stems.

    ``buffers`` holds every stem that decoded; ``errors`` maps the failed
    stems to a message, so only their playback controls need disabling.
    """

    buffers: dict[str, AudioSampleBuffer] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)


async def load_stem(
    encoded: str,
    sample_rate: int = SPEECH_SAMPLE_RATE,
    channels: int = 1,
) -> AudioSampleBuffer:
    """
    Decode one base64 PCM stem.

    Raises:
        DecodeError: If the base64 text or the PCM payload is malformed.
    """
    raw = decode_base64_to_bytes(encoded)
    return await decode_pcm_async(raw, sample_rate, channels)


async def load_stems(
    stems: Mapping[str, str],
    sample_rate: int = SPEECH_SAMPLE_RATE,
    channels: int = 1,
) -> StemLoadResult:
    """Decode every stem; a failing stem is logged and recorded, not raised."""
    result = StemLoadResult()
    for name, encoded in stems.items():
        try:
            result.buffers[name] = await load_stem(encoded, sample_rate, channels)
        except DecodeError as exc:
            _LOGGER.warning("Could not load audio for stem %r: %s", name, exc)
            result.errors[name] = str(exc)
    return result
