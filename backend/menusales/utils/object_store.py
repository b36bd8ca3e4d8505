"""
Object storage for uploaded report files.

Objects are addressed by a relative path such as "<workspace>/uploads/<id>.xlsx"
and live under settings.raw_data_path on local disk. The processor reads each
object once per run through fetch_to_temp(), which guarantees the local copy
is removed on every exit path.
"""
import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from ..config import settings

logger = logging.getLogger(__name__)


class ObjectNotFoundError(FileNotFoundError):
    """Raised when a report's source object does not exist in the store."""


class LocalObjectStore:
    def __init__(self, root: Optional[str] = None):
        self.root = Path(root or settings.raw_data_path)

    def _resolve(self, object_path: str) -> Path:
        target = (self.root / object_path.lstrip("/")).resolve()
        if self.root.resolve() not in target.parents:
            raise ValueError(f"Object path escapes store root: {object_path}")
        return target

    def put(self, object_path: str, data: bytes) -> str:
        target = self._resolve(object_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.info("Stored %s (%d bytes)", object_path, len(data))
        return object_path

    def exists(self, object_path: str) -> bool:
        return self._resolve(object_path).is_file()

    def download(self, object_path: str, destination: str) -> None:
        source = self._resolve(object_path)
        if not source.is_file():
            raise ObjectNotFoundError(f"Object not found: {object_path}")
        shutil.copyfile(source, destination)

    def delete(self, object_path: str) -> None:
        target = self._resolve(object_path)
        if target.is_file():
            target.unlink()


def get_object_store() -> LocalObjectStore:
    """FastAPI dependency; tests override it with a store rooted in tmp_path."""
    return LocalObjectStore()


@contextmanager
def fetch_to_temp(store: LocalObjectStore, object_path: str) -> Iterator[str]:
    """Download an object to a temp file, yield its path, always delete it afterwards."""
    suffix = os.path.splitext(object_path)[1] or ".csv"
    fd, tmp_path = tempfile.mkstemp(suffix=suffix)
    os.close(fd)
    try:
        store.download(object_path, tmp_path)
        yield tmp_path
    finally:
        os.unlink(tmp_path)
