"""Input boundary: accept a local file only when its content type is audio/*."""

from __future__ import annotations

import logging
import mimetypes
from pathlib import Path

from audioenhance.exceptions import ValidationError
from audioenhance.models.artifact import InputAudio

logger = logging.getLogger(__name__)

AUDIO_PREFIX = "audio/"

# Not every platform's mime.types maps these.
_AUDIO_SUFFIXES = {
    ".aac": "audio/aac",
    ".flac": "audio/flac",
    ".m4a": "audio/mp4",
    ".mp3": "audio/mpeg",
    ".oga": "audio/ogg",
    ".ogg": "audio/ogg",
    ".opus": "audio/opus",
    ".wav": "audio/wav",
    ".weba": "audio/webm",
}


def guess_content_type(path: str | Path) -> str | None:
    p = Path(path)
    known = _AUDIO_SUFFIXES.get(p.suffix.lower())
    if known:
        return known
    guessed, _ = mimetypes.guess_type(p.name)
    return guessed


def is_audio_content_type(content_type: str | None) -> bool:
    return str(content_type or "").strip().lower().startswith(AUDIO_PREFIX)


def load_input_audio(path: str | Path, content_type: str | None = None) -> InputAudio:
    """Validate a user-supplied file and describe it as InputAudio.

    Raises ValidationError for missing files and non-audio content types.
    """
    p = Path(path).expanduser()
    if not p.is_file():
        raise ValidationError(f"Input file not found: {p}")

    declared = str(content_type or "").strip() or guess_content_type(p)
    if not is_audio_content_type(declared):
        logger.info("rejected non-audio input (path=%s, content_type=%s)", p, declared)
        raise ValidationError(
            f"Please supply an audio file (got content type {declared or 'unknown'})"
        )

    return InputAudio(
        path=p.resolve(),
        display_name=p.name,
        size_bytes=int(p.stat().st_size),
        content_type=str(declared).lower(),
    )
