"""Filter plan model (engine-agnostic description of one job)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from audioenhance.models.options import OutputFormat


@dataclass(frozen=True)
class FilterStage:
    name: str
    params: str = ""

    @property
    def spec(self) -> str:
        if not self.params:
            return self.name
        return f"{self.name}={self.params}"


@dataclass(frozen=True)
class EncoderParams:
    codec: str
    args: tuple[str, ...] = ()


@dataclass(frozen=True)
class FilterPlan:
    output_format: OutputFormat
    encoder: EncoderParams
    stages: tuple[FilterStage, ...] = field(default_factory=tuple)
    channels: int | None = None

    @property
    def filter_graph(self) -> str | None:
        """Comma-joined stage specs, or None when the plan has no stages."""
        if not self.stages:
            return None
        return ",".join(stage.spec for stage in self.stages)

    def to_dict(self) -> dict[str, Any]:
        return {
            "output_format": self.output_format.value,
            "stages": [stage.spec for stage in self.stages],
            "channels": self.channels,
            "codec": self.encoder.codec,
            "encoder_args": list(self.encoder.args),
        }
