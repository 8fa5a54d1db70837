from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from audioenhance.config import Settings
from audioenhance.exceptions import ValidationError
from audioenhance.models.job import JobState, JobStatus
from audioenhance.models.options import EnhancementOptions, OutputFormat
from audioenhance.pipeline.orchestrator import JobOrchestrator
from audioenhance.pipeline.packager import format_file_size
from audioenhance.services.input_loader import load_input_audio
from audioenhance.services.telemetry import LoggingTelemetry
from audioenhance.utils.logging_setup import setup_logging

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INVALID_INPUT = 2


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="audioenhance",
        description="Enhance a local audio file (normalize, denoise, de-harsh, downmix, re-encode).",
    )
    parser.add_argument("input", help="Path to a local audio file")
    parser.add_argument("--normalize", action="store_true", help="Normalize volume")
    parser.add_argument("--denoise", action="store_true", help="Reduce background noise")
    parser.add_argument("--reduce-harsh", action="store_true", help="Attenuate harsh high frequencies")
    parser.add_argument("--mono", action="store_true", help="Downmix to a single channel")
    parser.add_argument(
        "--format",
        choices=[f.value for f in OutputFormat],
        default=None,
        help="Output format (defaults to OUTPUT_DEFAULT_FORMAT, ogg)",
    )
    parser.add_argument(
        "--output",
        default=".",
        help="Output file or directory (default: current directory)",
    )
    parser.add_argument("--content-type", default=None, help="Declared content type of the input")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    return parser.parse_args(argv)


class _ConsoleRenderer:
    """Render orchestrator states as single lines on stdout."""

    def __init__(self) -> None:
        self._last_percent: int | None = None

    async def __call__(self, state: JobState) -> None:
        if state.status == JobStatus.RUNNING:
            if state.progress is None:
                if self._last_percent is None:
                    print("processing...", flush=True)
                    self._last_percent = -1
                return
            pct = int(state.progress)
            if pct != self._last_percent:
                self._last_percent = pct
                print(f"processing {pct:3d}%", flush=True)
            return
        self._last_percent = None
        if state.status == JobStatus.LOADING:
            print("loading engine...", flush=True)
        elif state.status == JobStatus.FAILED and state.error is not None:
            print(f"failed: {state.error.message}", file=sys.stderr, flush=True)


async def _run(args: argparse.Namespace) -> int:
    settings = Settings()
    setup_logging(settings, level_override=args.log_level)
    logger = logging.getLogger("audioenhance.cli")

    try:
        audio = load_input_audio(args.input, content_type=args.content_type)
    except ValidationError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_INVALID_INPUT

    options = EnhancementOptions(
        normalize_volume=bool(args.normalize),
        reduce_noise=bool(args.denoise),
        reduce_harsh_frequencies=bool(args.reduce_harsh),
        convert_to_mono=bool(args.mono),
    )
    orchestrator = JobOrchestrator.from_settings(settings, telemetry=LoggingTelemetry())
    orchestrator.add_listener(_ConsoleRenderer())

    try:
        state = await orchestrator.run(audio, options, args.format)
        if state.status != JobStatus.SUCCEEDED:
            return EXIT_FAILED

        try:
            dest = await orchestrator.export_artifact(Path(args.output))
        except OSError as exc:
            logger.error("export failed (output=%s): %s", args.output, exc)
            print(f"error: cannot write output: {exc}", file=sys.stderr)
            return EXIT_FAILED
        print(f"output: {dest}")
        if state.metrics is not None:
            print(f"original size: {format_file_size(state.metrics.original_size_bytes)}")
            print(f"processed size: {format_file_size(state.metrics.processed_size_bytes)}")
            ratio = state.metrics.compression_ratio_percent
            if ratio is not None and ratio > 0:
                print(f"compression: {ratio:.2f}%")
        logger.debug("plan: %s", orchestrator.last_plan.to_dict() if orchestrator.last_plan else None)
        return EXIT_OK
    finally:
        await orchestrator.close()


def main(argv: list[str] | None = None) -> None:
    raise SystemExit(asyncio.run(_run(_parse_args(argv))))


if __name__ == "__main__":
    main()
