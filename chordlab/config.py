"""Settings: playback defaults read from CHORDLAB_* environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping

from chordlab.errors import InvalidConfigError

_LOGGER = logging.getLogger("chordlab.config")

ENV_PREFIX = "CHORDLAB"

#: Sample rate of the speech-synthesis audio supplied by the analysis service.
SPEECH_SAMPLE_RATE = 24_000
RENDER_SAMPLE_RATE = 44_100


@dataclass(frozen=True)
class Settings:
    """
    User-level playback preferences.

    Attributes:
        default_bpm:            Tempo used when an analysis carries no BPM.
        preferred_guitar_tuning: Name of a guitar preset in ``fretboard.TUNINGS``.
        preferred_bass_tuning:  Name of a bass preset in ``fretboard.TUNINGS``.
        sample_rate:            Sample rate used for synthesized output.
        speech_sample_rate:     Sample rate of incoming base64 PCM audio.
        metronome:              Whether chord sequences click on every beat.
    """

    default_bpm: int | None = None
    preferred_guitar_tuning: str = "Standard (EADGBE)"
    preferred_bass_tuning: str = "Standard (EADG)"
    sample_rate: int = RENDER_SAMPLE_RATE
    speech_sample_rate: int = SPEECH_SAMPLE_RATE
    metronome: bool = False

    def preferred_tuning(self, family: str) -> str:
        return self.preferred_bass_tuning if family == "bass" else self.preferred_guitar_tuning


def _env_name(field_name: str) -> str:
    return f"{ENV_PREFIX}_{field_name.upper()}"


def _parse_positive_int(name: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise InvalidConfigError(f"{name} must be an integer, got '{raw}'.") from exc
    if value <= 0:
        raise InvalidConfigError(f"{name} must be positive, got {value}.")
    return value


def _parse_bool(name: str, raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off", ""}:
        return False
    raise InvalidConfigError(f"{name} must be a boolean, got '{raw}'.")


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """
    Build Settings from ``CHORDLAB_*`` variables, falling back to defaults.

    Raises:
        InvalidConfigError: If a variable is present but malformed.
    """
    env = os.environ if environ is None else environ
    values: dict[str, object] = {}

    for field_name in ("default_bpm", "sample_rate", "speech_sample_rate"):
        raw = env.get(_env_name(field_name))
        if raw:
            values[field_name] = _parse_positive_int(_env_name(field_name), raw)

    for field_name in ("preferred_guitar_tuning", "preferred_bass_tuning"):
        raw = env.get(_env_name(field_name))
        if raw:
            values[field_name] = raw.strip()

    raw_metronome = env.get(_env_name("metronome"))
    if raw_metronome is not None:
        values["metronome"] = _parse_bool(_env_name("metronome"), raw_metronome)

    if values:
        _LOGGER.debug("Settings overridden from environment: %s", sorted(values))
    return Settings(**values)  # type: ignore[arg-type]
