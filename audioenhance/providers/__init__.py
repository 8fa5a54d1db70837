"""Provider abstractions for external engines."""

from audioenhance.providers.registry import get_media_engine

__all__ = ["get_media_engine"]
