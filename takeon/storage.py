"""Blob store collaborator for uploaded take-on documents."""
import logging
from pathlib import Path
from typing import Protocol

from takeon.config import BLOB_ROOT

logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    """Anything that can keep bytes under a storage path."""

    def upload(self, storage_path: str, content: bytes, content_type: str) -> str:
        ...

    def delete(self, storage_path: str) -> None:
        ...


class LocalBlobStore:
    """Filesystem-backed blob store rooted at BLOB_ROOT."""

    def __init__(self, root: str = BLOB_ROOT):
        self.root = Path(root)

    def _resolve(self, storage_path: str) -> Path:
        target = (self.root / storage_path).resolve()
        if self.root.resolve() not in target.parents:
            raise ValueError(f"Storage path escapes blob root: {storage_path}")
        return target

    def upload(self, storage_path: str, content: bytes, content_type: str) -> str:
        target = self._resolve(storage_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        logger.debug("Stored %d bytes (%s) at %s", len(content), content_type, storage_path)
        return storage_path

    def delete(self, storage_path: str) -> None:
        target = self._resolve(storage_path)
        if target.exists():
            target.unlink()
