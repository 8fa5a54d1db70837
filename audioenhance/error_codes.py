"""Canonical error codes surfaced to callers."""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    UNKNOWN = "UNKNOWN"
    INVALID_INPUT = "INVALID_INPUT"

    ENGINE_LOAD_FAILED = "ENGINE_LOAD_FAILED"
    ENGINE_IO_FAILED = "ENGINE_IO_FAILED"
    EXECUTION_FAILED = "EXECUTION_FAILED"
    EMPTY_OUTPUT = "EMPTY_OUTPUT"

    CANCELLED = "CANCELLED"
