"""
Shared file I/O helpers with atomic writes and optional locking.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, TypeVar

T = TypeVar("T")

logger = logging.getLogger("fileio")

try:
    import fcntl  # type: ignore
except ImportError:  # pragma: no cover - non-POSIX
    fcntl = None  # type: ignore


def read_json_file(path: Path, default: T) -> T:
    """
    Read JSON from path. Returns default on missing/invalid data.
    """
    try:
        if not path.exists():
            return default
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except Exception as exc:
        logger.warning("Failed to read JSON path=%s err=%s", path, exc)
        return default


class DocumentReadError(ValueError):
    """A JSON document exists on disk but could not be read or decoded."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Unreadable JSON document path={path}: {reason}")
        self.path = path


def read_json_strict(path: Path, default: T) -> T:
    """
    Read JSON from path. Only a missing file yields default; anything else that
    goes wrong raises DocumentReadError.
    """
    if not path.exists():
        return default
    try:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as exc:
        raise DocumentReadError(path, str(exc)) from exc


def write_json_atomic(path: Path, data: Any) -> None:
    """
    Atomically write JSON to disk with fsync on file and directory.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path: Optional[Path] = None
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=path.name, suffix=".tmp", dir=str(path.parent))
        tmp_path = Path(tmp_name)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, default=str)
            f.flush()
            os.fsync(f.fileno())
        os.replace(str(tmp_path), str(path))
        try:
            dir_fd = os.open(str(path.parent), os.O_DIRECTORY)
        except Exception:
            dir_fd = None
        if dir_fd is not None:
            try:
                os.fsync(dir_fd)
            finally:
                os.close(dir_fd)
    finally:
        if tmp_path and tmp_path.exists():
            try:
                tmp_path.unlink(missing_ok=True)
            except Exception as exc:
                logger.warning("Failed to cleanup temp JSON path=%s err=%s", tmp_path, exc)


class JsonDocument:
    """
    A JSON object on disk guarded by a process lock and an advisory file lock.

    `update` runs read-modify-write as one critical section, so concurrent
    writers in this process and in sibling worker processes never interleave.

    With ``strict=True`` a file that exists but cannot be decoded raises
    `DocumentReadError` from both `read` and `update` instead of being replaced
    by the default, so a damaged store is never overwritten. Caches keep the
    lenient default.
    """

    def __init__(self, path: Path | str, default_factory: Callable[[], dict], *, strict: bool = False) -> None:
        self.path = Path(path)
        self._default_factory = default_factory
        self._strict = strict
        self._lock = threading.RLock()

    def _lock_path(self) -> Path:
        return self.path.with_name(self.path.name + ".lock")

    @contextmanager
    def _locked(self) -> Iterator[None]:
        with self._lock:
            if fcntl is None:
                yield
                return
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self._lock_path().open("a+", encoding="utf-8") as lock_file:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
                try:
                    yield
                finally:
                    try:
                        fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)
                    except Exception as exc:
                        logger.warning("Failed to release file lock path=%s err=%s", self.path, exc)

    def _load(self) -> dict:
        if self._strict:
            data = read_json_strict(self.path, None)
            if data is None:
                return self._default_factory()
            if not isinstance(data, dict):
                raise DocumentReadError(self.path, f"expected an object, got {type(data).__name__}")
            return data
        data = read_json_file(self.path, None)
        if not isinstance(data, dict):
            data = self._default_factory()
        return data

    def read(self) -> dict:
        with self._locked():
            return self._load()

    def update(self, update_fn: Callable[[dict], T]) -> T:
        """
        Lock, read, let update_fn mutate the document in place, write atomically.
        Returns whatever update_fn returns. Nothing is written if update_fn raises.
        """
        with self._locked():
            data = self._load()
            result = update_fn(data)
            write_json_atomic(self.path, data)
            return result
