"""audioenhance exception hierarchy."""

from __future__ import annotations

from audioenhance.error_codes import ErrorCode


class AudioEnhanceError(Exception):
    """Base error for audioenhance."""


class ConfigurationError(AudioEnhanceError):
    """Raised when configuration is invalid."""


class ValidationError(AudioEnhanceError):
    """Raised when a supplied input is rejected before any job starts."""

    error_code = ErrorCode.INVALID_INPUT


class EngineError(AudioEnhanceError):
    """Raised when the media engine fails."""

    error_code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(self, message: str, *, error_code: ErrorCode | None = None) -> None:
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code


class EngineLoadError(EngineError):
    """The engine could not be initialized."""

    error_code = ErrorCode.ENGINE_LOAD_FAILED


class EngineIOError(EngineError):
    """Bytes could not be staged into or read from the engine namespace."""

    error_code = ErrorCode.ENGINE_IO_FAILED


class ExecutionError(EngineError):
    """The engine reported a failure while running a plan."""

    error_code = ErrorCode.EXECUTION_FAILED

    def __init__(
        self,
        message: str,
        *,
        returncode: int | None = None,
        stderr_tail: str = "",
    ) -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr_tail = stderr_tail


class EmptyOutputError(AudioEnhanceError):
    """The engine finished without error but produced zero bytes."""

    error_code = ErrorCode.EMPTY_OUTPUT
