"""Media engine abstraction.

The orchestrator only talks to this contract: load once, stage input bytes,
execute a plan, read output bytes. Everything an engine touches lives in its
private working namespace.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

from audioenhance.models.plan import FilterPlan

# Receives a ratio in [0, 1], or None when progress cannot be measured.
ProgressCallback = Callable[[float | None], Awaitable[None]]


class MediaEngine(ABC):
    @property
    @abstractmethod
    def is_loaded(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def ensure_loaded(self) -> None:
        """Load the engine at most once; concurrent callers share one attempt.

        Raises EngineLoadError.
        """

    @abstractmethod
    async def stage_input(self, name: str, data: bytes) -> None:
        """Copy `data` into the working namespace as `name`. Raises EngineIOError."""

    @abstractmethod
    async def execute(
        self,
        plan: FilterPlan,
        input_name: str,
        output_name: str,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        """Run `plan` from `input_name` to `output_name`. Raises ExecutionError."""

    @abstractmethod
    async def read_output(self, name: str) -> bytes:
        """Read `name` back from the working namespace.

        Raises EngineIOError when the file is missing; a zero-byte result is
        returned as-is.
        """

    async def discard(self, *names: str) -> None:  # pragma: no cover
        return None

    async def close(self) -> None:  # pragma: no cover
        return None
