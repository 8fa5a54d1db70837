"""Job state model (the orchestrator's tagged state variant)."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from audioenhance.error_codes import ErrorCode
from audioenhance.models.artifact import OutputArtifact, SizeMetrics


class JobStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


_LIVE = {JobStatus.LOADING, JobStatus.RUNNING}
_TERMINAL = {JobStatus.SUCCEEDED, JobStatus.FAILED}


@dataclass(frozen=True)
class ErrorInfo:
    code: ErrorCode
    message: str
    kind: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code.value, "message": self.message, "kind": self.kind}


@dataclass(frozen=True)
class JobState:
    """One snapshot of the orchestrator.

    `progress` is a percentage in [0, 100] while running, or None when the
    engine has not reported a measurable ratio yet (indeterminate). It is
    always None outside the running state.
    """

    status: JobStatus
    progress: float | None = None
    artifact: OutputArtifact | None = None
    metrics: SizeMetrics | None = None
    error: ErrorInfo | None = None

    @classmethod
    def idle(cls) -> "JobState":
        return cls(status=JobStatus.IDLE)

    @classmethod
    def loading(cls) -> "JobState":
        return cls(status=JobStatus.LOADING)

    @classmethod
    def running(cls, progress: float | None = None) -> "JobState":
        return cls(status=JobStatus.RUNNING, progress=progress)

    @classmethod
    def succeeded(cls, artifact: OutputArtifact, metrics: SizeMetrics) -> "JobState":
        return cls(status=JobStatus.SUCCEEDED, artifact=artifact, metrics=metrics)

    @classmethod
    def failed(cls, error: ErrorInfo) -> "JobState":
        return cls(status=JobStatus.FAILED, error=error)

    @property
    def is_live(self) -> bool:
        return self.status in _LIVE

    @property
    def is_terminal(self) -> bool:
        return self.status in _TERMINAL

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "progress": self.progress,
            "artifact": self.artifact.to_dict() if self.artifact is not None else None,
            "metrics": self.metrics.to_dict() if self.metrics is not None else None,
            "error": self.error.to_dict() if self.error is not None else None,
        }
