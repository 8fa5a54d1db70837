"""Artifact storage backends."""

from audioenhance.config import Settings
from audioenhance.exceptions import ConfigurationError
from audioenhance.storage.artifact_store import ArtifactStore, InMemoryArtifactStore, LocalArtifactStore


def get_artifact_store(settings: Settings) -> ArtifactStore:
    backend = str(settings.output.artifact_store_backend or "local").strip().lower()
    if backend == "local":
        return LocalArtifactStore(settings.artifacts_dir)
    if backend == "memory":
        return InMemoryArtifactStore()
    raise ConfigurationError(f"Unknown artifact store backend: {backend}")


__all__ = ["ArtifactStore", "InMemoryArtifactStore", "LocalArtifactStore", "get_artifact_store"]
