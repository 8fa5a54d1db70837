"""FFmpeg subprocess engine.

The working namespace is a private directory; staged inputs and outputs are
plain files inside it. Progress comes from ffmpeg's `-progress pipe:1`
key/value stream measured against the input duration found on stderr.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import subprocess
import tempfile
from collections import deque
from dataclasses import dataclass
from pathlib import Path

from audioenhance.exceptions import EngineIOError, EngineLoadError, ExecutionError
from audioenhance.models.plan import FilterPlan
from audioenhance.providers.engine.base import MediaEngine, ProgressCallback
from audioenhance.utils.ffmpeg import (
    last_error_line,
    parse_duration_s,
    parse_progress_line,
    progress_ratio,
    resolve_ffmpeg_bin,
)
from audioenhance.utils.subprocess import run_subprocess

logger = logging.getLogger(__name__)

_STDERR_TAIL_LINES = 40


def build_ffmpeg_args(
    ffmpeg_bin: str,
    plan: FilterPlan,
    input_path: str,
    output_path: str,
) -> list[str]:
    args = [ffmpeg_bin, "-hide_banner", "-nostdin", "-y", "-i", input_path, "-vn"]
    graph = plan.filter_graph
    if graph:
        args += ["-af", graph]
    if plan.channels is not None:
        args += ["-ac", str(plan.channels)]
    args += ["-c:a", plan.encoder.codec, *plan.encoder.args]
    args += ["-progress", "pipe:1", "-nostats", output_path]
    return args


@dataclass
class _ProgressState:
    duration_s: float | None = None


class FFmpegEngine(MediaEngine):
    def __init__(
        self,
        *,
        ffmpeg_bin: str = "ffmpeg",
        work_dir: str | None = None,
        load_timeout_s: float = 30.0,
        execute_timeout_s: float | None = None,
    ) -> None:
        self._ffmpeg_bin_setting = ffmpeg_bin
        self._work_dir_setting = work_dir
        self._load_timeout_s = float(load_timeout_s)
        self._execute_timeout_s = execute_timeout_s
        self._load_task: asyncio.Task[None] | None = None
        self._loaded = False
        self._owns_work_dir = False
        self.ffmpeg_bin: str | None = None
        self.work_dir: Path | None = None
        self.version: str = ""

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    async def ensure_loaded(self) -> None:
        """Load once; concurrent callers await the same attempt and share its outcome.

        A failed attempt is dropped when it finishes, so a later call retries.
        """
        if self._loaded:
            return
        task = self._load_task
        if task is None:
            task = asyncio.create_task(self._load())
            task.add_done_callback(self._on_load_done)
            self._load_task = task
        await asyncio.shield(task)

    def _on_load_done(self, task: asyncio.Task[None]) -> None:
        if self._load_task is task:
            self._load_task = None
        if task.cancelled():
            return
        # exception() also marks the error retrieved when every caller has gone.
        if task.exception() is None:
            self._loaded = True

    async def _load(self) -> None:
        ffmpeg_bin = resolve_ffmpeg_bin(self._ffmpeg_bin_setting)
        try:
            result = await run_subprocess([ffmpeg_bin, "-version"], timeout_s=self._load_timeout_s)
        except FileNotFoundError as exc:
            raise EngineLoadError(
                f"ffmpeg binary not found: {ffmpeg_bin}. "
                "Install ffmpeg and ensure it is in PATH (or install `imageio-ffmpeg`, "
                "or set ENGINE_FFMPEG_BIN)."
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise EngineLoadError(
                f"ffmpeg did not answer `-version` within {self._load_timeout_s:g}s"
            ) from exc
        except OSError as exc:
            raise EngineLoadError(f"ffmpeg could not be started: {exc}") from exc
        if not result.ok:
            detail = last_error_line(result.stderr.decode(errors="ignore"))
            raise EngineLoadError(
                f"ffmpeg -version failed (code={result.returncode})" + (f": {detail}" if detail else "")
            )

        try:
            if self._work_dir_setting:
                work_dir = Path(self._work_dir_setting)
                work_dir.mkdir(parents=True, exist_ok=True)
                self._owns_work_dir = False
            else:
                work_dir = Path(tempfile.mkdtemp(prefix="audioenhance-"))
                self._owns_work_dir = True
        except OSError as exc:
            raise EngineLoadError(f"cannot create engine work dir: {exc}") from exc

        self.ffmpeg_bin = ffmpeg_bin
        self.work_dir = work_dir
        self.version = result.first_stdout_line()
        logger.info(
            "ffmpeg engine loaded (bin=%s, version=%s, work_dir=%s)",
            ffmpeg_bin,
            self.version,
            work_dir,
        )

    def _path(self, name: str) -> Path:
        if not self._loaded or self.work_dir is None:
            raise EngineIOError("engine is not loaded")
        raw = str(name or "").strip()
        if not raw or Path(raw).name != raw:
            raise EngineIOError(f"invalid name for engine namespace: {name!r}")
        return self.work_dir / raw

    async def stage_input(self, name: str, data: bytes) -> None:
        path = self._path(name)
        try:
            await asyncio.to_thread(path.write_bytes, data)
        except OSError as exc:
            raise EngineIOError(f"cannot stage input {name!r}: {exc}") from exc
        logger.debug("staged input %s (%d bytes)", path, len(data))

    async def execute(
        self,
        plan: FilterPlan,
        input_name: str,
        output_name: str,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        input_path = self._path(input_name)
        output_path = self._path(output_name)
        assert self.ffmpeg_bin is not None
        args = build_ffmpeg_args(self.ffmpeg_bin, plan, str(input_path), str(output_path))
        logger.info(
            "ffmpeg execute (input=%s, output=%s, filters=%s, channels=%s, codec=%s)",
            input_name,
            output_name,
            plan.filter_graph or "-",
            plan.channels or "-",
            plan.encoder.codec,
        )
        logger.debug("cmd: %s", " ".join(args))

        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ExecutionError(f"ffmpeg could not be started: {exc}") from exc

        state = _ProgressState()
        stderr_tail: deque[str] = deque(maxlen=_STDERR_TAIL_LINES)

        async def _pump_stderr() -> None:
            assert process.stderr is not None
            async for raw in process.stderr:
                line = raw.decode(errors="ignore").rstrip()
                if not line:
                    continue
                stderr_tail.append(line)
                if state.duration_s is None:
                    state.duration_s = parse_duration_s(line)

        async def _pump_progress() -> None:
            assert process.stdout is not None
            async for raw in process.stdout:
                parsed = parse_progress_line(raw.decode(errors="ignore"))
                if parsed is None:
                    continue
                key, value = parsed
                if key == "out_time_us":
                    ratio = progress_ratio(value, state.duration_s)
                elif key == "progress" and value == "end":
                    ratio = 1.0
                else:
                    continue
                if on_progress is not None:
                    await on_progress(ratio)

        try:
            await asyncio.wait_for(
                asyncio.gather(_pump_progress(), _pump_stderr(), process.wait()),
                timeout=self._execute_timeout_s,
            )
        except asyncio.TimeoutError as exc:
            await self._kill(process)
            raise ExecutionError(
                f"ffmpeg timed out after {self._execute_timeout_s:g}s",
                stderr_tail="\n".join(stderr_tail),
            ) from exc
        except BaseException:
            await self._kill(process)
            raise

        if process.returncode != 0:
            tail = "\n".join(stderr_tail)
            logger.warning(
                "ffmpeg failed (code=%s)\ncmd: %s\nstderr: %s",
                process.returncode,
                " ".join(args),
                tail,
            )
            raise ExecutionError(
                last_error_line(tail) or f"ffmpeg failed (code={process.returncode})",
                returncode=process.returncode,
                stderr_tail=tail,
            )

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()

    async def read_output(self, name: str) -> bytes:
        path = self._path(name)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as exc:
            raise EngineIOError(f"engine output not found: {name!r}") from exc
        except OSError as exc:
            raise EngineIOError(f"cannot read engine output {name!r}: {exc}") from exc

    async def discard(self, *names: str) -> None:
        if self.work_dir is None:
            return
        for name in names:
            try:
                self._path(name).unlink(missing_ok=True)
            except (EngineIOError, OSError) as exc:
                logger.warning("failed to discard %r from engine namespace (%s)", name, exc)

    async def close(self) -> None:
        if self.work_dir is not None and self._owns_work_dir:
            shutil.rmtree(self.work_dir, ignore_errors=True)
        self.work_dir = None
        self.ffmpeg_bin = None
        self._loaded = False
