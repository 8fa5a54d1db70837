"""Result packaging: processed bytes -> OutputArtifact + SizeMetrics."""

from __future__ import annotations

from audioenhance.models.artifact import OutputArtifact, SizeMetrics
from audioenhance.models.options import OutputFormat
from audioenhance.storage.artifact_store import ArtifactStore

RATIO_PRECISION = 2

_SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


def compression_ratio(original_size: int, processed_size: int) -> float | None:
    """Percentage saved relative to the original; None when original is empty."""
    original = int(original_size)
    if original <= 0:
        return None
    ratio = (original - int(processed_size)) / original * 100
    return round(ratio, RATIO_PRECISION)


def build_size_metrics(original_size: int, processed_size: int) -> SizeMetrics:
    return SizeMetrics(
        original_size_bytes=int(original_size),
        processed_size_bytes=int(processed_size),
        compression_ratio_percent=compression_ratio(original_size, processed_size),
    )


def mime_type_for(output_format: OutputFormat | str) -> str:
    return OutputFormat(output_format).mime_type


def format_file_size(size_bytes: int) -> str:
    size = int(size_bytes)
    if size <= 0:
        return "0 Bytes"
    i = 0
    while i < len(_SIZE_UNITS) - 1 and size >= 1024 ** (i + 1):
        i += 1
    value = round(size / (1024**i), 1)
    return f"{value:g} {_SIZE_UNITS[i]}"


async def package_result(
    store: ArtifactStore,
    *,
    original_size: int,
    data: bytes,
    output_format: OutputFormat | str,
    filename: str,
) -> tuple[OutputArtifact, SizeMetrics]:
    handle = await store.save(filename, data)
    artifact = OutputArtifact(
        handle=handle,
        suggested_filename=filename,
        mime_type=mime_type_for(output_format),
        size_bytes=len(data),
    )
    return artifact, build_size_metrics(original_size, len(data))
