"""Fire-and-forget telemetry sinks.

A sink must never block or fail a job; `emit_safely` is the only way the
orchestrator calls one.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

logger = logging.getLogger(__name__)

PROCESSING_STARTED = "processing_started"
DOWNLOAD_COMPLETED = "download_completed"


class TelemetrySink(Protocol):
    def emit(self, event: str, fields: dict[str, Any]) -> None: ...


class NullTelemetry:
    def emit(self, event: str, fields: dict[str, Any]) -> None:  # noqa: ARG002
        return None


class LoggingTelemetry:
    def __init__(self, logger_name: str = "audioenhance.telemetry") -> None:
        self._logger = logging.getLogger(logger_name)

    def emit(self, event: str, fields: dict[str, Any]) -> None:
        self._logger.info("event=%s %s", event, " ".join(f"{k}={v}" for k, v in fields.items()))


def emit_safely(sink: TelemetrySink | None, event: str, fields: dict[str, Any]) -> None:
    if sink is None:
        return
    try:
        sink.emit(event, dict(fields))
    except Exception:
        logger.warning("telemetry sink failed (event=%s)", event, exc_info=True)
