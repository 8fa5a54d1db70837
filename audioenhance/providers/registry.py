"""Provider factory and registry."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from audioenhance.exceptions import ConfigurationError
from audioenhance.providers.engine.base import MediaEngine


def get_media_engine(config: Mapping[str, Any]) -> MediaEngine:
    """Get the media engine based on configuration."""
    provider_type = str(config.get("provider", "ffmpeg")).strip().lower()

    match provider_type:
        case "ffmpeg" | "default":
            from audioenhance.providers.engine.ffmpeg import FFmpegEngine

            return FFmpegEngine(
                ffmpeg_bin=str(config.get("ffmpeg_bin") or "ffmpeg"),
                work_dir=config.get("work_dir"),
                load_timeout_s=float(config.get("load_timeout_s") or 30.0),
                execute_timeout_s=config.get("execute_timeout_s"),
            )
        case _:
            raise ConfigurationError(f"Unknown media engine provider: {provider_type}")
