"""User-selectable enhancement options and output formats."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class OutputFormat(str, Enum):
    MP3 = "mp3"
    OGG = "ogg"
    WAV = "wav"
    FLAC = "flac"

    @property
    def extension(self) -> str:
        return self.value

    @property
    def mime_type(self) -> str:
        return f"audio/{self.value}"


DEFAULT_OUTPUT_FORMAT = OutputFormat.OGG


@dataclass(frozen=True)
class EnhancementOptions:
    normalize_volume: bool = False
    reduce_noise: bool = False
    reduce_harsh_frequencies: bool = False
    convert_to_mono: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "normalize_volume": self.normalize_volume,
            "reduce_noise": self.reduce_noise,
            "reduce_harsh_frequencies": self.reduce_harsh_frequencies,
            "convert_to_mono": self.convert_to_mono,
        }
