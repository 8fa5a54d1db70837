from audioenhance.services.input_loader import load_input_audio
from audioenhance.services.telemetry import LoggingTelemetry, NullTelemetry, TelemetrySink

__all__ = ["LoggingTelemetry", "NullTelemetry", "TelemetrySink", "load_input_audio"]
