"""Configuration management using pydantic-settings."""

from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from audioenhance.exceptions import ConfigurationError
from audioenhance.models.options import OutputFormat

_ENV_FILES = (".env", "../.env")


class EngineSettings(BaseSettings):
    """Media engine configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ENGINE_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    provider: str = "ffmpeg"
    ffmpeg_bin: str = "ffmpeg"
    work_dir: str | None = None
    load_timeout_s: float = Field(default=30.0, gt=0)
    execute_timeout_s: float | None = Field(default=None, gt=0)


class FilterSettings(BaseSettings):
    """Filter stage parameters used by the plan builder."""

    model_config = SettingsConfigDict(
        env_prefix="FILTER_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    normalize_filter: str = "dynaudnorm"
    normalize_params: str = "g=20:f=150:p=0.95"
    # anlmdn is statistical; arnndn would need a model file on disk.
    denoise_filter: str = "anlmdn"
    denoise_params: str = "s=0.3:p=0.001"
    harsh_center_hz: float = Field(default=5000.0, gt=0)
    harsh_width_q: float = Field(default=2.0, gt=0)
    harsh_gain_db: float = Field(default=-5.0, lt=0)


class OutputSettings(BaseSettings):
    """Output format and artifact storage."""

    model_config = SettingsConfigDict(
        env_prefix="OUTPUT_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    default_format: str = OutputFormat.OGG.value
    artifact_store_backend: str = "local"  # "local" | "memory"

    @field_validator("default_format")
    @classmethod
    def _check_format(cls, value: str) -> str:
        name = str(value or "").strip().lower()
        try:
            return OutputFormat(name).value
        except ValueError as exc:
            raise ConfigurationError(
                f"Unsupported output format: {value!r} "
                f"(expected one of: {', '.join(f.value for f in OutputFormat)})"
            ) from exc


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt: str = "%Y-%m-%d %H:%M:%S"
    console: bool = True
    file: str | None = None
    max_bytes: int = Field(default=10 * 1024 * 1024, ge=0)
    backup_count: int = Field(default=5, ge=0)


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILES, env_file_encoding="utf-8", extra="ignore"
    )

    data_dir: str = "./data"
    log_dir: str = "./logs"

    engine: EngineSettings = EngineSettings()
    filters: FilterSettings = FilterSettings()
    output: OutputSettings = OutputSettings()
    logging: LoggingSettings = LoggingSettings()

    def model_post_init(self, __context: Any) -> None:
        def _abs_dir(p: str) -> str:
            out = Path(p).expanduser().resolve()
            out.mkdir(parents=True, exist_ok=True)
            return str(out)

        self.data_dir = _abs_dir(self.data_dir)
        self.log_dir = _abs_dir(self.log_dir)

    @property
    def artifacts_dir(self) -> str:
        return str(Path(self.data_dir) / "artifacts")

    @property
    def default_format(self) -> OutputFormat:
        return OutputFormat(self.output.default_format)
