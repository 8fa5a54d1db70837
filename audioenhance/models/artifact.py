"""Input and output artifact models."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class InputAudio:
    path: Path
    display_name: str
    size_bytes: int
    content_type: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": str(self.path),
            "display_name": self.display_name,
            "size_bytes": self.size_bytes,
            "content_type": self.content_type,
        }


@dataclass(frozen=True)
class OutputArtifact:
    handle: str  # artifact store identifier
    suggested_filename: str
    mime_type: str
    size_bytes: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "handle": self.handle,
            "suggested_filename": self.suggested_filename,
            "mime_type": self.mime_type,
            "size_bytes": self.size_bytes,
        }


@dataclass(frozen=True)
class SizeMetrics:
    original_size_bytes: int
    processed_size_bytes: int
    compression_ratio_percent: float | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "original_size_bytes": self.original_size_bytes,
            "processed_size_bytes": self.processed_size_bytes,
        }
        if self.compression_ratio_percent is not None:
            out["compression_ratio_percent"] = self.compression_ratio_percent
        return out
