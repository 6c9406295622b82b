"""Exception hierarchy shared by every chordlab module."""

from __future__ import annotations


class ChordLabError(Exception):
    """Base error for the chordlab package."""


class InvalidNoteError(ChordLabError, ValueError):
    """Raised when a note name does not start with a letter A-G."""


class DecodeError(ChordLabError, ValueError):
    """Raised when base64 or PCM audio data cannot be decoded."""


class PlaybackError(ChordLabError):
    """Raised when no audio output device backend is available."""


class InvalidConfigError(ChordLabError, ValueError):
    """Raised when a setting cannot be parsed or validated."""
