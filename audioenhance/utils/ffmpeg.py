"""FFmpeg binary resolution and output parsing helpers.

Prefer the configured/system `ffmpeg`, fallback to the `imageio-ffmpeg` bundled binary.
"""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)

_DURATION_RE = re.compile(r"Duration:\s*(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")


def resolve_ffmpeg_bin(ffmpeg_bin: str = "ffmpeg") -> str:
    ffmpeg_bin = (ffmpeg_bin or "ffmpeg").strip()

    if Path(ffmpeg_bin).exists():
        return ffmpeg_bin

    found = shutil.which(ffmpeg_bin)
    if found:
        return found

    try:
        import imageio_ffmpeg

        return str(imageio_ffmpeg.get_ffmpeg_exe())
    except Exception as exc:
        logger.warning("failed to resolve bundled ffmpeg (%s); fallback to %r", exc, ffmpeg_bin)
        return ffmpeg_bin


def parse_duration_s(line: str) -> float | None:
    """Parse `Duration: HH:MM:SS.ff` from an ffmpeg stderr line."""
    m = _DURATION_RE.search(line or "")
    if m is None:
        return None
    hours, minutes, seconds = int(m.group(1)), int(m.group(2)), float(m.group(3))
    total = hours * 3600 + minutes * 60 + seconds
    return total if total > 0 else None


def parse_progress_line(line: str) -> tuple[str, str] | None:
    """Split one `-progress` line (`key=value`) into its parts."""
    text = (line or "").strip()
    if "=" not in text:
        return None
    key, _, value = text.partition("=")
    return key.strip(), value.strip()


def progress_ratio(out_time_us: str, duration_s: float | None) -> float | None:
    """Ratio of encoded time to input duration, clamped to [0, 1].

    Returns None (indeterminate) when the duration is unknown or ffmpeg
    reports `N/A` for the position.
    """
    if not duration_s or duration_s <= 0:
        return None
    try:
        position_us = int(out_time_us)
    except (TypeError, ValueError):
        return None
    ratio = position_us / (duration_s * 1_000_000)
    return max(0.0, min(1.0, ratio))


_GENERIC_ERROR_LINES = {"Conversion failed!"}


def last_error_line(stderr_text: str) -> str:
    """Most specific human-readable line from ffmpeg stderr.

    This is the last non-empty line, skipping ffmpeg's generic trailer.
    """
    fallback = ""
    for line in reversed((stderr_text or "").splitlines()):
        line = line.strip()
        if not line:
            continue
        if line in _GENERIC_ERROR_LINES:
            fallback = fallback or line
            continue
        return line
    return fallback
