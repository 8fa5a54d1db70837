"""Utility helpers."""

from audioenhance.utils.ffmpeg import resolve_ffmpeg_bin
from audioenhance.utils.subprocess import RunResult, run_subprocess

__all__ = ["RunResult", "resolve_ffmpeg_bin", "run_subprocess"]
