"""Single-flight enhancement job orchestrator.

One orchestrator owns one input, one options/format selection, one JobState
and at most one output artifact. A job moves through

    idle -> loading -> running(progress) -> succeeded | failed

and every transition is pushed to the registered state listeners in order.
Engine failures never escape `run`; they end the job in `failed`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from functools import partial
from pathlib import Path

from audioenhance.config import Settings
from audioenhance.error_codes import ErrorCode
from audioenhance.exceptions import EmptyOutputError, EngineIOError
from audioenhance.models.artifact import InputAudio, OutputArtifact
from audioenhance.models.job import ErrorInfo, JobState, JobStatus
from audioenhance.models.options import DEFAULT_OUTPUT_FORMAT, EnhancementOptions, OutputFormat
from audioenhance.models.plan import FilterPlan
from audioenhance.pipeline.packager import package_result
from audioenhance.pipeline.policy import FilterPolicy, build_plan, output_filename
from audioenhance.providers import get_media_engine
from audioenhance.providers.engine.base import MediaEngine
from audioenhance.services.telemetry import (
    DOWNLOAD_COMPLETED,
    PROCESSING_STARTED,
    TelemetrySink,
    emit_safely,
)
from audioenhance.storage import ArtifactStore, get_artifact_store

logger = logging.getLogger(__name__)

StateListener = Callable[[JobState], Awaitable[None]]

GENERIC_FAILURE_MESSAGE = "Processing failed, see the log for details"
EMPTY_OUTPUT_MESSAGE = "Processing produced an empty output file"
CANCELLED_MESSAGE = "Processing was cancelled"


class JobOrchestrator:
    def __init__(
        self,
        engine: MediaEngine,
        store: ArtifactStore,
        *,
        policy: FilterPolicy | None = None,
        default_format: OutputFormat | str = DEFAULT_OUTPUT_FORMAT,
        telemetry: TelemetrySink | None = None,
        listeners: Iterable[StateListener] = (),
    ) -> None:
        self._engine = engine
        self._store = store
        self._policy = policy
        self._telemetry = telemetry
        self._listeners: list[StateListener] = list(listeners)

        self._state = JobState.idle()
        self._input: InputAudio | None = None
        self._options = EnhancementOptions()
        self._format = OutputFormat(default_format)
        self._artifact: OutputArtifact | None = None
        self._last_plan: FilterPlan | None = None
        self._job_seq = 0

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        engine: MediaEngine | None = None,
        store: ArtifactStore | None = None,
        telemetry: TelemetrySink | None = None,
    ) -> "JobOrchestrator":
        return cls(
            engine or get_media_engine(settings.engine.model_dump()),
            store or get_artifact_store(settings),
            policy=FilterPolicy.from_settings(settings.filters),
            default_format=settings.default_format,
            telemetry=telemetry,
        )

    @property
    def state(self) -> JobState:
        return self._state

    @property
    def input(self) -> InputAudio | None:
        return self._input

    @property
    def options(self) -> EnhancementOptions:
        return self._options

    @property
    def output_format(self) -> OutputFormat:
        return self._format

    @property
    def artifact(self) -> OutputArtifact | None:
        return self._artifact

    @property
    def last_plan(self) -> FilterPlan | None:
        return self._last_plan

    @property
    def is_busy(self) -> bool:
        return self._state.is_live

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def set_options(self, options: EnhancementOptions) -> None:
        self._options = options

    def set_output_format(self, output_format: OutputFormat | str) -> None:
        self._format = OutputFormat(output_format)

    async def select_input(self, audio: InputAudio) -> bool:
        """Make `audio` the live input, dropping any previous result.

        Returns False (and changes nothing) while a job is live.
        """
        if self.is_busy:
            logger.warning("select_input ignored: job %d is %s", self._job_seq, self._state.status.value)
            return False
        self._input = audio
        await self._release_artifact()
        if self._state.status != JobStatus.IDLE:
            await self._transition(JobState.idle())
        logger.info("input selected (name=%s, size=%d)", audio.display_name, audio.size_bytes)
        return True

    async def run(
        self,
        audio: InputAudio | None = None,
        options: EnhancementOptions | None = None,
        output_format: OutputFormat | str | None = None,
    ) -> JobState:
        """Run one job and return its terminal state.

        A call while another job is loading/running is rejected and returns the
        live state; a call without any input is a no-op.
        """
        if self.is_busy:
            logger.warning("run rejected: job %d is still %s", self._job_seq, self._state.status.value)
            return self._state
        audio = audio or self._input
        if audio is None:
            logger.info("run ignored: no input selected")
            return self._state

        # No await before the LOADING flip; concurrent run() calls check is_busy.
        if options is not None:
            self._options = options
        if output_format is not None:
            self._format = OutputFormat(output_format)
        self._input = audio
        self._job_seq += 1
        job_id = self._job_seq
        options, fmt = self._options, self._format
        self._state = JobState.loading()

        try:
            await self._release_artifact()
            await self._notify(self._state)
            emit_safely(
                self._telemetry,
                PROCESSING_STARTED,
                {
                    "format": fmt.value,
                    "original_size_bytes": audio.size_bytes,
                    **options.to_dict(),
                },
            )
            return await self._run_job(job_id, audio, options, fmt)
        except asyncio.CancelledError:
            logger.warning("job %d cancelled", job_id)
            await self._transition(
                JobState.failed(ErrorInfo(ErrorCode.CANCELLED, CANCELLED_MESSAGE, "CancelledError"))
            )
            raise

    async def _run_job(
        self,
        job_id: int,
        audio: InputAudio,
        options: EnhancementOptions,
        fmt: OutputFormat,
    ) -> JobState:
        logger.info("job %d start (input=%s, format=%s)", job_id, audio.display_name, fmt.value)
        try:
            await self._engine.ensure_loaded()
        except Exception as exc:
            return await self._fail(job_id, exc, default_code=ErrorCode.ENGINE_LOAD_FAILED)

        await self._transition(JobState.running(None))

        plan = build_plan(options, fmt, self._policy)
        self._last_plan = plan
        input_name = audio.display_name
        output_name = output_filename(audio.display_name, fmt)
        try:
            data = await self._read_input(audio)
            await self._engine.stage_input(input_name, data)
            await self._engine.execute(
                plan,
                input_name,
                output_name,
                on_progress=partial(self._on_progress, job_id),
            )
            out = await self._engine.read_output(output_name)
            if not out:
                raise EmptyOutputError(EMPTY_OUTPUT_MESSAGE)
            artifact, metrics = await package_result(
                self._store,
                original_size=audio.size_bytes,
                data=out,
                output_format=fmt,
                filename=output_name,
            )
        except Exception as exc:
            return await self._fail(job_id, exc, default_code=ErrorCode.EXECUTION_FAILED)
        finally:
            await self._engine.discard(input_name, output_name)

        self._artifact = artifact
        logger.info(
            "job %d done (output=%s, size=%d, ratio=%s)",
            job_id,
            artifact.suggested_filename,
            artifact.size_bytes,
            metrics.compression_ratio_percent,
        )
        return await self._transition(JobState.succeeded(artifact, metrics))

    @staticmethod
    async def _read_input(audio: InputAudio) -> bytes:
        try:
            return await asyncio.to_thread(Path(audio.path).read_bytes)
        except OSError as exc:
            raise EngineIOError(f"cannot read input {audio.display_name!r}: {exc}") from exc

    async def _on_progress(self, job_id: int, ratio: float | None) -> None:
        if job_id != self._job_seq or self._state.status != JobStatus.RUNNING:
            return
        percent: float | None = None
        if ratio is not None:
            percent = max(0.0, min(100.0, float(ratio) * 100.0))
        await self._transition(JobState.running(percent))

    async def reset(self) -> JobState:
        """Return to idle with no input and no artifact. Ignored while a job is live."""
        if self.is_busy:
            logger.warning("reset ignored: job %d is %s", self._job_seq, self._state.status.value)
            return self._state
        await self._release_artifact()
        self._input = None
        self._last_plan = None
        return await self._transition(JobState.idle())

    async def export_artifact(self, destination: str | Path) -> Path:
        """Write the current artifact to `destination` (a file or a directory)."""
        artifact = self._artifact
        metrics = self._state.metrics
        if artifact is None or self._state.status != JobStatus.SUCCEEDED:
            raise ValueError("no processed artifact to export")

        dest = Path(destination)
        if dest.is_dir():
            dest = dest / artifact.suggested_filename
        dest.parent.mkdir(parents=True, exist_ok=True)
        data = await self._store.load(artifact.handle)
        await asyncio.to_thread(dest.write_bytes, data)
        logger.info("artifact exported to %s", dest)

        fields = {"format": self._format.value, "path": str(dest)}
        if metrics is not None:
            fields.update(metrics.to_dict())
        emit_safely(self._telemetry, DOWNLOAD_COMPLETED, fields)
        return dest

    async def close(self) -> None:
        await self._release_artifact()
        await self._engine.close()

    async def _release_artifact(self) -> None:
        artifact, self._artifact = self._artifact, None
        if artifact is None:
            return
        try:
            await self._store.release(artifact.handle)
        except Exception:
            logger.warning("failed to release artifact %s", artifact.handle, exc_info=True)
            return
        logger.debug("released artifact %s", artifact.handle)

    async def _fail(self, job_id: int, exc: BaseException, *, default_code: ErrorCode) -> JobState:
        info = self._error_info(exc, default_code)
        if isinstance(exc, EmptyOutputError):
            logger.warning("job %d failed (code=%s): %s", job_id, info.code.value, info.message)
        else:
            logger.error(
                "job %d failed (code=%s): %s", job_id, info.code.value, info.message, exc_info=exc
            )
        return await self._transition(JobState.failed(info))

    @staticmethod
    def _error_info(exc: BaseException, default_code: ErrorCode) -> ErrorInfo:
        code = getattr(exc, "error_code", None)
        if not isinstance(code, ErrorCode):
            code = default_code

        raw = getattr(exc, "message", None)
        if not isinstance(raw, str):
            raw = str(exc)
        message = raw.strip()
        if not message:
            message = EMPTY_OUTPUT_MESSAGE if isinstance(exc, EmptyOutputError) else GENERIC_FAILURE_MESSAGE
        return ErrorInfo(code=code, message=message, kind=type(exc).__name__)

    async def _transition(self, state: JobState) -> JobState:
        self._state = state
        await self._notify(state)
        return state

    async def _notify(self, state: JobState) -> None:
        for listener in list(self._listeners):
            try:
                await listener(state)
            except Exception:
                logger.warning("state listener failed (status=%s)", state.status.value, exc_info=True)
