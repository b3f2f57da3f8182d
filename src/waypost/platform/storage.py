"""Blob store for avatars and other public files."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path, PurePosixPath

from waypost.platform.errors import StorageError

logger = logging.getLogger(__name__)


class BlobStore:
    """Filesystem-backed buckets served under the platform's public URL."""

    def __init__(self, root: Path, base_url: str) -> None:
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def _resolve(self, bucket: str, path: str) -> Path:
        if (
            not bucket
            or bucket in {".", ".."}
            or "/" in bucket
            or "\\" in bucket
            or len(PurePosixPath(bucket).parts) != 1
        ):
            raise StorageError(f"Invalid bucket name: {bucket!r}")
        relative = PurePosixPath(path)
        if relative.is_absolute() or ".." in relative.parts or not relative.parts:
            raise StorageError(f"Invalid object path: {path!r}")
        return self.root.joinpath(bucket, *relative.parts)

    def _write(self, target: Path, data: bytes) -> None:
        if target.exists():
            raise StorageError("The resource already exists")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"Failed to store object: {exc}") from exc

    async def upload(self, bucket: str, path: str, data: bytes) -> str:
        """Store ``data`` at ``bucket/path``; returns the object path."""
        target = self._resolve(bucket, path)
        await asyncio.to_thread(self._write, target, data)
        logger.info("Stored %d bytes at %s/%s", len(data), bucket, path)
        return path

    async def download(self, bucket: str, path: str) -> bytes:
        target = self._resolve(bucket, path)
        try:
            return await asyncio.to_thread(target.read_bytes)
        except FileNotFoundError as exc:
            raise StorageError("Object not found") from exc
        except OSError as exc:
            raise StorageError(f"Failed to read object: {exc}") from exc

    def public_url(self, bucket: str, path: str) -> str:
        self._resolve(bucket, path)
        return f"{self.base_url}/storage/v1/object/public/{bucket}/{path}"
