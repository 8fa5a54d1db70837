"""Format/filter policy: enhancement toggles + output format -> FilterPlan.

Stage order matters to the engine (it changes what is heard), so it is fixed:

1. dynamic-range normalization, acting on the original dynamics
2. denoise
3. harsh-frequency equalizer cut, shaping the normalized/denoised signal

Mono downmix is a channel override and is independent of the filter graph.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from types import MappingProxyType

from audioenhance.config import FilterSettings
from audioenhance.models.options import EnhancementOptions, OutputFormat
from audioenhance.models.plan import EncoderParams, FilterPlan, FilterStage

ENCODER_TABLE: MappingProxyType[OutputFormat, EncoderParams] = MappingProxyType(
    {
        OutputFormat.MP3: EncoderParams(codec="libmp3lame", args=("-b:a", "192k")),
        OutputFormat.OGG: EncoderParams(codec="libvorbis", args=("-q:a", "6")),
        OutputFormat.WAV: EncoderParams(codec="pcm_s16le"),
        OutputFormat.FLAC: EncoderParams(codec="flac", args=("-compression_level", "8")),
    }
)


def _format_number(value: float) -> str:
    return f"{float(value):g}"


@dataclass(frozen=True)
class FilterPolicy:
    normalize: FilterStage
    denoise: FilterStage
    harsh_eq: FilterStage

    @classmethod
    def from_settings(cls, settings: FilterSettings) -> "FilterPolicy":
        harsh_params = ":".join(
            [
                f"f={_format_number(settings.harsh_center_hz)}",
                "t=q",
                f"w={_format_number(settings.harsh_width_q)}",
                f"g={_format_number(settings.harsh_gain_db)}",
            ]
        )
        return cls(
            normalize=FilterStage(settings.normalize_filter, settings.normalize_params),
            denoise=FilterStage(settings.denoise_filter, settings.denoise_params),
            harsh_eq=FilterStage("equalizer", harsh_params),
        )


DEFAULT_POLICY = FilterPolicy(
    normalize=FilterStage("dynaudnorm", "g=20:f=150:p=0.95"),
    denoise=FilterStage("anlmdn", "s=0.3:p=0.001"),
    harsh_eq=FilterStage("equalizer", "f=5000:t=q:w=2:g=-5"),
)


def encoder_params_for(output_format: OutputFormat | str) -> EncoderParams:
    return ENCODER_TABLE[OutputFormat(output_format)]


def build_plan(
    options: EnhancementOptions,
    output_format: OutputFormat | str,
    policy: FilterPolicy | None = None,
) -> FilterPlan:
    fmt = OutputFormat(output_format)
    policy = policy or DEFAULT_POLICY

    stages: list[FilterStage] = []
    if options.normalize_volume:
        stages.append(policy.normalize)
    if options.reduce_noise:
        stages.append(policy.denoise)
    if options.reduce_harsh_frequencies:
        stages.append(policy.harsh_eq)

    return FilterPlan(
        output_format=fmt,
        encoder=ENCODER_TABLE[fmt],
        stages=tuple(stages),
        channels=1 if options.convert_to_mono else None,
    )


def output_filename(
    input_name: str,
    output_format: OutputFormat | str,
    token: str | int | None = None,
) -> str:
    """Name for the processed file: `{input}_processed_{token}.{ext}`.

    The token defaults to the current time in milliseconds; the engine's
    working namespace is shared between runs.
    """
    fmt = OutputFormat(output_format)
    if token is None:
        token = time.time_ns() // 1_000_000
    return f"{input_name}_processed_{token}.{fmt.extension}"
