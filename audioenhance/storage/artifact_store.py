"""Artifact store interface and implementations.

An artifact handle is the opaque identifier returned by `save`; releasing a
handle frees the underlying bytes.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from uuid import uuid4


class ArtifactStore(ABC):
    @abstractmethod
    async def save(self, name: str, data: bytes) -> str:
        """Save artifact bytes and return a handle."""

    @abstractmethod
    async def load(self, handle: str) -> bytes:
        """Load artifact bytes; raise FileNotFoundError for unknown handles."""

    @abstractmethod
    async def release(self, handle: str) -> None:
        """Free the artifact behind `handle`. Unknown handles are ignored."""

    @abstractmethod
    async def list(self) -> list[str]:
        """List live handles."""


class LocalArtifactStore(ArtifactStore):
    """Filesystem store; each artifact lives in its own directory under base_dir."""

    def __init__(self, base_dir: str) -> None:
        self.base_dir = Path(base_dir)

    def _path(self, handle: str) -> Path:
        path = Path(handle)
        if not path.is_absolute():
            path = self.base_dir / path
        return path

    async def save(self, name: str, data: bytes) -> str:
        safe_name = Path(name.strip()).name or "artifact"
        path = self.base_dir / uuid4().hex / safe_name
        path.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(path.write_bytes, data)
        return str(path)

    async def load(self, handle: str) -> bytes:
        return await asyncio.to_thread(self._path(handle).read_bytes)

    async def release(self, handle: str) -> None:
        path = self._path(handle)
        path.unlink(missing_ok=True)
        parent = path.parent
        if parent != self.base_dir and parent.is_dir() and not any(parent.iterdir()):
            parent.rmdir()

    async def list(self) -> list[str]:
        if not self.base_dir.exists():
            return []
        return sorted(str(p) for p in self.base_dir.rglob("*") if p.is_file())


class InMemoryArtifactStore(ArtifactStore):
    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}

    async def save(self, name: str, data: bytes) -> str:
        handle = f"mem://{uuid4().hex}/{name}"
        self._data[handle] = bytes(data)
        return handle

    async def load(self, handle: str) -> bytes:
        if handle not in self._data:
            raise FileNotFoundError(handle)
        return self._data[handle]

    async def release(self, handle: str) -> None:
        self._data.pop(handle, None)

    async def list(self) -> list[str]:
        return sorted(self._data)
