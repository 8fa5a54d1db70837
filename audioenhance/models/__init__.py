"""Core data models for audioenhance."""

from audioenhance.models.artifact import InputAudio, OutputArtifact, SizeMetrics
from audioenhance.models.job import ErrorInfo, JobState, JobStatus
from audioenhance.models.options import DEFAULT_OUTPUT_FORMAT, EnhancementOptions, OutputFormat
from audioenhance.models.plan import EncoderParams, FilterPlan, FilterStage

__all__ = [
    "DEFAULT_OUTPUT_FORMAT",
    "EncoderParams",
    "EnhancementOptions",
    "ErrorInfo",
    "FilterPlan",
    "FilterStage",
    "InputAudio",
    "JobState",
    "JobStatus",
    "OutputArtifact",
    "OutputFormat",
    "SizeMetrics",
]
