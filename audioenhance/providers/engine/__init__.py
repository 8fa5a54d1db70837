"""Media engine implementations."""

from audioenhance.providers.engine.base import MediaEngine, ProgressCallback
from audioenhance.providers.engine.ffmpeg import FFmpegEngine

__all__ = ["FFmpegEngine", "MediaEngine", "ProgressCallback"]
