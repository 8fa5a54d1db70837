"""Job pipeline: plan building, orchestration and result packaging.

Imports are lazy so that `audioenhance.pipeline.policy` can be used without
pulling in the engine and storage layers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from audioenhance.pipeline.orchestrator import JobOrchestrator
    from audioenhance.pipeline.policy import FilterPolicy, build_plan

__all__ = ["FilterPolicy", "JobOrchestrator", "build_plan"]


def __getattr__(name: str) -> Any:
    if name == "JobOrchestrator":
        from audioenhance.pipeline.orchestrator import JobOrchestrator

        return JobOrchestrator
    if name == "FilterPolicy":
        from audioenhance.pipeline.policy import FilterPolicy

        return FilterPolicy
    if name == "build_plan":
        from audioenhance.pipeline.policy import build_plan

        return build_plan
    raise AttributeError(name)
