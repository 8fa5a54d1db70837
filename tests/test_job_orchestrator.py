from __future__ import annotations

import asyncio
from typing import Any

import pytest

from audioenhance.error_codes import ErrorCode
from audioenhance.exceptions import EngineIOError, EngineLoadError, ExecutionError
from audioenhance.models.artifact import InputAudio
from audioenhance.models.job import JobState, JobStatus
from audioenhance.models.options import EnhancementOptions, OutputFormat
from audioenhance.models.plan import FilterPlan
from audioenhance.pipeline.orchestrator import (
    EMPTY_OUTPUT_MESSAGE,
    GENERIC_FAILURE_MESSAGE,
    JobOrchestrator,
)
from audioenhance.pipeline.policy import ENCODER_TABLE
from audioenhance.providers.engine.base import MediaEngine, ProgressCallback
from audioenhance.storage.artifact_store import InMemoryArtifactStore


class _FakeEngine(MediaEngine):
    def __init__(
        self,
        *,
        output: bytes = b"encoded-audio",
        load_error: Exception | None = None,
        execute_error: Exception | None = None,
        progress: tuple[float | None, ...] = (None, 0.5, 1.0),
        gate: asyncio.Event | None = None,
    ) -> None:
        self.output = output
        self.load_error = load_error
        self.execute_error = execute_error
        self.progress = progress
        self.gate = gate
        self.loaded = False
        self.load_calls = 0
        self.staged: dict[str, bytes] = {}
        self.executed: list[tuple[FilterPlan, str, str]] = []
        self.outputs: dict[str, bytes] = {}
        self.discarded: list[str] = []
        self.closed = False

    @property
    def is_loaded(self) -> bool:
        return self.loaded

    async def ensure_loaded(self) -> None:
        if self.loaded:
            return
        self.load_calls += 1
        if self.load_error is not None:
            raise self.load_error
        self.loaded = True

    async def stage_input(self, name: str, data: bytes) -> None:
        self.staged[name] = data

    async def execute(
        self,
        plan: FilterPlan,
        input_name: str,
        output_name: str,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.executed.append((plan, input_name, output_name))
        if self.gate is not None:
            await self.gate.wait()
        for ratio in self.progress:
            if on_progress is not None:
                await on_progress(ratio)
        if self.execute_error is not None:
            raise self.execute_error
        self.outputs[output_name] = self.output

    async def read_output(self, name: str) -> bytes:
        if name not in self.outputs:
            raise EngineIOError(f"engine output not found: {name!r}")
        return self.outputs[name]

    async def discard(self, *names: str) -> None:
        self.discarded.extend(names)
        for name in names:
            self.staged.pop(name, None)
            self.outputs.pop(name, None)

    async def close(self) -> None:
        self.closed = True


class _StateRecorder:
    def __init__(self) -> None:
        self.states: list[JobState] = []

    async def __call__(self, state: JobState) -> None:
        self.states.append(state)

    @property
    def statuses(self) -> list[JobStatus]:
        return [s.status for s in self.states]


class _RecordingTelemetry:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, event: str, fields: dict[str, Any]) -> None:
        self.events.append((event, fields))


def _make(engine: _FakeEngine, **kwargs: Any) -> tuple[JobOrchestrator, InMemoryArtifactStore, _StateRecorder]:
    store = InMemoryArtifactStore()
    recorder = _StateRecorder()
    orchestrator = JobOrchestrator(engine, store, listeners=[recorder], **kwargs)
    return orchestrator, store, recorder


async def _wait_for_execute(engine: _FakeEngine) -> None:
    for _ in range(500):
        if engine.executed:
            return
        await asyncio.sleep(0.01)
    raise AssertionError("engine never started executing")


@pytest.mark.asyncio
async def test_scenario_plain_wav_to_ogg(wav_input: InputAudio) -> None:
    engine = _FakeEngine()
    orchestrator, store, recorder = _make(engine)

    state = await orchestrator.run(wav_input, EnhancementOptions(), "ogg")

    assert state.status == JobStatus.SUCCEEDED
    plan, input_name, output_name = engine.executed[0]
    assert plan.stages == ()
    assert plan.channels is None
    assert plan.encoder == ENCODER_TABLE[OutputFormat.OGG]
    assert input_name == "voice.wav"
    assert output_name.startswith("voice.wav_processed_") and output_name.endswith(".ogg")

    assert state.artifact is not None
    assert state.artifact.mime_type == "audio/ogg"
    assert state.artifact.suggested_filename == output_name
    assert await store.load(state.artifact.handle) == b"encoded-audio"

    assert state.metrics is not None
    assert state.metrics.original_size_bytes == 5 * 1024 * 1024
    assert state.metrics.processed_size_bytes == len(b"encoded-audio")
    assert state.metrics.compression_ratio_percent == pytest.approx(
        round((5 * 1024 * 1024 - 13) / (5 * 1024 * 1024) * 100, 2)
    )

    assert recorder.statuses == [
        JobStatus.LOADING,
        JobStatus.RUNNING,
        JobStatus.RUNNING,
        JobStatus.RUNNING,
        JobStatus.RUNNING,
        JobStatus.SUCCEEDED,
    ]
    assert [s.progress for s in recorder.states if s.status == JobStatus.RUNNING] == [
        None,
        None,
        50.0,
        100.0,
    ]
    assert engine.staged == {}
    assert set(engine.discarded) == {input_name, output_name}


@pytest.mark.asyncio
async def test_scenario_empty_output_fails_without_artifact(wav_input: InputAudio) -> None:
    engine = _FakeEngine(output=b"")
    orchestrator, store, _ = _make(engine)

    state = await orchestrator.run(wav_input)

    assert state.status == JobStatus.FAILED
    assert state.error is not None
    assert state.error.code == ErrorCode.EMPTY_OUTPUT
    assert state.error.message == EMPTY_OUTPUT_MESSAGE
    assert state.progress is None
    assert state.artifact is None
    assert orchestrator.artifact is None
    assert await store.list() == []


@pytest.mark.asyncio
async def test_scenario_engine_load_failure_never_stages(wav_input: InputAudio) -> None:
    engine = _FakeEngine(load_error=EngineLoadError("ffmpeg binary not found: ffmpeg"))
    orchestrator, _, recorder = _make(engine)

    state = await orchestrator.run(wav_input)

    assert state.status == JobStatus.FAILED
    assert state.error is not None
    assert state.error.code == ErrorCode.ENGINE_LOAD_FAILED
    assert state.error.message == "ffmpeg binary not found: ffmpeg"
    assert state.error.kind == "EngineLoadError"
    assert engine.staged == {}
    assert engine.executed == []
    assert recorder.statuses == [JobStatus.LOADING, JobStatus.FAILED]


@pytest.mark.asyncio
async def test_unexpected_load_error_is_reported_as_load_failure(wav_input: InputAudio) -> None:
    engine = _FakeEngine(load_error=RuntimeError(""))
    orchestrator, _, _ = _make(engine)

    state = await orchestrator.run(wav_input)

    assert state.error is not None
    assert state.error.code == ErrorCode.ENGINE_LOAD_FAILED
    assert state.error.message == GENERIC_FAILURE_MESSAGE


@pytest.mark.asyncio
async def test_execution_error_message_is_surfaced(wav_input: InputAudio) -> None:
    engine = _FakeEngine(execute_error=ExecutionError("No such filter: 'anlmdnx'", returncode=1))
    orchestrator, _, _ = _make(engine)

    state = await orchestrator.run(wav_input, EnhancementOptions(reduce_noise=True))

    assert state.status == JobStatus.FAILED
    assert state.error is not None
    assert state.error.code == ErrorCode.EXECUTION_FAILED
    assert state.error.message == "No such filter: 'anlmdnx'"
    assert state.progress is None


@pytest.mark.asyncio
async def test_unknown_failure_without_message_uses_generic_text(wav_input: InputAudio) -> None:
    engine = _FakeEngine(execute_error=RuntimeError())
    orchestrator, _, _ = _make(engine)

    state = await orchestrator.run(wav_input)

    assert state.error is not None
    assert state.error.code == ErrorCode.EXECUTION_FAILED
    assert state.error.message == GENERIC_FAILURE_MESSAGE
    assert state.error.kind == "RuntimeError"


@pytest.mark.asyncio
async def test_run_while_running_does_not_start_second_execution(wav_input: InputAudio) -> None:
    gate = asyncio.Event()
    engine = _FakeEngine(gate=gate)
    orchestrator, _, _ = _make(engine)

    task = asyncio.create_task(orchestrator.run(wav_input))
    await _wait_for_execute(engine)

    second = await orchestrator.run(wav_input, EnhancementOptions(convert_to_mono=True), "mp3")
    assert second.status == JobStatus.RUNNING
    assert len(engine.executed) == 1
    assert orchestrator.output_format == OutputFormat.OGG

    gate.set()
    final = await task
    assert final.status == JobStatus.SUCCEEDED
    assert len(engine.executed) == 1


@pytest.mark.asyncio
async def test_concurrent_run_calls_are_single_flight(wav_input: InputAudio) -> None:
    engine = _FakeEngine()
    orchestrator, _, _ = _make(engine)

    first, second = await asyncio.gather(orchestrator.run(wav_input), orchestrator.run(wav_input))

    assert first.status == JobStatus.SUCCEEDED
    assert second.is_live
    assert len(engine.executed) == 1


@pytest.mark.asyncio
async def test_run_without_input_is_noop() -> None:
    engine = _FakeEngine()
    orchestrator, _, recorder = _make(engine)

    state = await orchestrator.run()

    assert state == JobState.idle()
    assert engine.load_calls == 0
    assert recorder.states == []


@pytest.mark.asyncio
async def test_reset_after_success_returns_to_idle_and_releases_artifact(
    wav_input: InputAudio,
) -> None:
    engine = _FakeEngine()
    orchestrator, store, _ = _make(engine)
    await orchestrator.select_input(wav_input)
    await orchestrator.run()
    assert len(await store.list()) == 1

    state = await orchestrator.reset()

    assert state == JobState.idle()
    assert orchestrator.input is None
    assert orchestrator.artifact is None
    assert await store.list() == []


@pytest.mark.asyncio
async def test_reset_is_ignored_while_running(wav_input: InputAudio) -> None:
    gate = asyncio.Event()
    engine = _FakeEngine(gate=gate)
    orchestrator, _, _ = _make(engine)

    task = asyncio.create_task(orchestrator.run(wav_input))
    await _wait_for_execute(engine)

    state = await orchestrator.reset()
    assert state.status == JobStatus.RUNNING
    assert orchestrator.input == wav_input

    gate.set()
    assert (await task).status == JobStatus.SUCCEEDED


@pytest.mark.asyncio
async def test_new_run_releases_previous_artifact(wav_input: InputAudio) -> None:
    engine = _FakeEngine()
    orchestrator, store, _ = _make(engine)

    first = await orchestrator.run(wav_input)
    second = await orchestrator.run(wav_input, output_format="flac")

    assert first.artifact is not None and second.artifact is not None
    assert await store.list() == [second.artifact.handle]
    assert second.artifact.mime_type == "audio/flac"


class _ReadOnlyReleaseStore(InMemoryArtifactStore):
    async def release(self, handle: str) -> None:
        raise PermissionError("artifact dir read-only")


@pytest.mark.asyncio
async def test_release_failure_does_not_wedge_orchestrator(wav_input: InputAudio) -> None:
    engine = _FakeEngine()
    orchestrator = JobOrchestrator(engine, _ReadOnlyReleaseStore())

    first = await orchestrator.run(wav_input)
    second = await orchestrator.run(wav_input)

    assert first.status == JobStatus.SUCCEEDED
    assert second.status == JobStatus.SUCCEEDED
    assert second.is_terminal
    assert not orchestrator.is_busy
    assert len(engine.executed) == 2

    assert (await orchestrator.reset()) == JobState.idle()
    assert not orchestrator.state.is_terminal


@pytest.mark.asyncio
async def test_retry_after_failure_does_not_reload_engine(wav_input: InputAudio) -> None:
    engine = _FakeEngine(execute_error=ExecutionError("Conversion failed!"))
    orchestrator, _, _ = _make(engine)

    failed = await orchestrator.run(wav_input)
    assert failed.status == JobStatus.FAILED

    engine.execute_error = None
    ok = await orchestrator.run(wav_input)

    assert ok.status == JobStatus.SUCCEEDED
    assert ok.error is None
    assert engine.load_calls == 1


@pytest.mark.asyncio
async def test_failed_load_can_be_retried(wav_input: InputAudio) -> None:
    engine = _FakeEngine(load_error=EngineLoadError("not yet"))
    orchestrator, _, _ = _make(engine)

    assert (await orchestrator.run(wav_input)).status == JobStatus.FAILED
    engine.load_error = None
    assert (await orchestrator.run(wav_input)).status == JobStatus.SUCCEEDED
    assert engine.load_calls == 2


@pytest.mark.asyncio
async def test_cancellation_cleans_up_and_marks_failed(wav_input: InputAudio) -> None:
    gate = asyncio.Event()
    engine = _FakeEngine(gate=gate)
    orchestrator, store, _ = _make(engine)

    task = asyncio.create_task(orchestrator.run(wav_input))
    await _wait_for_execute(engine)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert orchestrator.state.status == JobStatus.FAILED
    assert orchestrator.state.error is not None
    assert orchestrator.state.error.code == ErrorCode.CANCELLED
    assert engine.staged == {}
    assert "voice.wav" in engine.discarded
    assert await store.list() == []


@pytest.mark.asyncio
async def test_progress_is_clamped(wav_input: InputAudio) -> None:
    engine = _FakeEngine(progress=(-0.2, 0.25, 1.7))
    orchestrator, _, recorder = _make(engine)

    await orchestrator.run(wav_input)

    running = [s.progress for s in recorder.states if s.status == JobStatus.RUNNING]
    assert running == [None, 0.0, 25.0, 100.0]


@pytest.mark.asyncio
async def test_listener_failure_does_not_break_job(wav_input: InputAudio) -> None:
    async def _broken(_state: JobState) -> None:
        raise RuntimeError("renderer crashed")

    engine = _FakeEngine()
    orchestrator, _, recorder = _make(engine)
    orchestrator.add_listener(_broken)

    state = await orchestrator.run(wav_input)

    assert state.status == JobStatus.SUCCEEDED
    assert recorder.statuses[-1] == JobStatus.SUCCEEDED


@pytest.mark.asyncio
async def test_telemetry_events_and_failing_sink(wav_input: InputAudio, tmp_path) -> None:
    telemetry = _RecordingTelemetry()
    engine = _FakeEngine()
    orchestrator, _, _ = _make(engine, telemetry=telemetry)

    state = await orchestrator.run(wav_input, EnhancementOptions(normalize_volume=True), "mp3")
    dest = await orchestrator.export_artifact(tmp_path)

    assert state.status == JobStatus.SUCCEEDED
    assert dest.read_bytes() == b"encoded-audio"
    assert dest.name == state.artifact.suggested_filename
    events = [name for name, _ in telemetry.events]
    assert events == ["processing_started", "download_completed"]
    started = telemetry.events[0][1]
    assert started["format"] == "mp3"
    assert started["normalize_volume"] is True
    assert telemetry.events[1][1]["processed_size_bytes"] == len(b"encoded-audio")

    class _ExplodingTelemetry:
        def emit(self, event: str, fields: dict[str, Any]) -> None:  # noqa: ARG002
            raise ConnectionError("analytics offline")

    orchestrator2, _, _ = _make(_FakeEngine(), telemetry=_ExplodingTelemetry())
    assert (await orchestrator2.run(wav_input)).status == JobStatus.SUCCEEDED
    await orchestrator2.export_artifact(tmp_path / "out" / "custom.ogg")
    assert (tmp_path / "out" / "custom.ogg").exists()


@pytest.mark.asyncio
async def test_export_without_artifact_is_rejected(tmp_path) -> None:
    orchestrator, _, _ = _make(_FakeEngine())
    with pytest.raises(ValueError):
        await orchestrator.export_artifact(tmp_path)


@pytest.mark.asyncio
async def test_select_input_supersedes_previous_result(wav_input: InputAudio, tmp_path) -> None:
    engine = _FakeEngine()
    orchestrator, store, _ = _make(engine)
    await orchestrator.run(wav_input)

    other_path = tmp_path / "other.mp3"
    other_path.write_bytes(b"id3")
    other = InputAudio(path=other_path, display_name="other.mp3", size_bytes=3, content_type="audio/mpeg")
    assert await orchestrator.select_input(other) is True

    assert orchestrator.input == other
    assert orchestrator.state == JobState.idle()
    assert await store.list() == []


@pytest.mark.asyncio
async def test_select_input_rejected_while_running(wav_input: InputAudio) -> None:
    gate = asyncio.Event()
    engine = _FakeEngine(gate=gate)
    orchestrator, _, _ = _make(engine)

    task = asyncio.create_task(orchestrator.run(wav_input))
    await _wait_for_execute(engine)
    assert await orchestrator.select_input(wav_input) is False

    gate.set()
    await task


@pytest.mark.asyncio
async def test_unreadable_input_fails_with_io_error(tmp_path) -> None:
    missing = InputAudio(
        path=tmp_path / "gone.wav", display_name="gone.wav", size_bytes=10, content_type="audio/wav"
    )
    engine = _FakeEngine()
    orchestrator, _, _ = _make(engine)

    state = await orchestrator.run(missing)

    assert state.status == JobStatus.FAILED
    assert state.error is not None
    assert state.error.code == ErrorCode.ENGINE_IO_FAILED
    assert engine.executed == []


@pytest.mark.asyncio
async def test_from_settings_uses_configured_policy(settings, wav_input: InputAudio) -> None:
    settings.filters.denoise_filter = "afftdn"
    settings.filters.denoise_params = "nf=-20"
    engine = _FakeEngine()

    orchestrator = JobOrchestrator.from_settings(settings, engine=engine, store=InMemoryArtifactStore())
    await orchestrator.run(wav_input, EnhancementOptions(reduce_noise=True))

    plan = engine.executed[0][0]
    assert plan.filter_graph == "afftdn=nf=-20"
    assert plan.output_format == OutputFormat.OGG

    await orchestrator.close()
    assert engine.closed
