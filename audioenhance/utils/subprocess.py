"""Async-friendly helper for short, blocking subprocess calls (e.g. `ffmpeg -version`).

Long-running jobs that stream progress use `asyncio.create_subprocess_exec`
directly; this helper runs `subprocess.run()` in a worker thread.
"""

from __future__ import annotations

import asyncio
import subprocess
from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class RunResult:
    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def first_stdout_line(self) -> str:
        text = self.stdout.decode(errors="ignore").strip()
        return text.splitlines()[0] if text else ""


async def run_subprocess(args: Sequence[str], *, timeout_s: float | None = None) -> RunResult:
    """Run `args` to completion.

    Raises FileNotFoundError when the executable is missing and
    subprocess.TimeoutExpired when `timeout_s` elapses.
    """

    def _run() -> subprocess.CompletedProcess[bytes]:
        return subprocess.run(
            list(args),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            check=False,
            timeout=timeout_s,
        )

    cp = await asyncio.to_thread(_run)
    return RunResult(
        returncode=int(cp.returncode),
        stdout=cp.stdout or b"",
        stderr=cp.stderr or b"",
    )
