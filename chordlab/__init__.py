"""chordlab: chord parsing, fretboard voicings, tone synthesis and PCM/WAV codec."""

__version__ = "0.1.0"
