"""Storage abstraction the journal store persists through.

Every call either succeeds or raises ``OSError``; the store translates
those into ``JournalIOError``.
"""

from __future__ import annotations

import errno
import os
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import Optional, Union

from .atomic import atomic_write

PathLike = Union[str, os.PathLike]


class FileSystem(ABC):
    """Byte-level file primitives."""

    @abstractmethod
    def makedirs(self, path: PathLike) -> None:
        """Create a directory and any missing parents; no-op if present."""

    @abstractmethod
    def write_file(self, path: PathLike, data: bytes) -> None:
        """Replace the whole contents of a file."""

    @abstractmethod
    def read_file(self, path: PathLike) -> bytes:
        """Return the whole contents of a file."""

    @abstractmethod
    def remove(self, path: PathLike) -> None:
        """Remove a single file."""

    @abstractmethod
    def listdir(self, path: PathLike) -> list[str]:
        """Names of the directory's children."""

    @abstractmethod
    def exists(self, path: PathLike) -> bool:
        """Whether anything exists at path."""

    @abstractmethod
    def is_dir(self, path: PathLike) -> bool:
        """Whether path is an existing directory."""


class OSFileSystem(FileSystem):
    """FileSystem backed by the local disk."""

    def makedirs(self, path: PathLike) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    def write_file(self, path: PathLike, data: bytes) -> None:
        with atomic_write(Path(path), mode="wb") as f:
            f.write(data)

    def read_file(self, path: PathLike) -> bytes:
        return Path(path).read_bytes()

    def remove(self, path: PathLike) -> None:
        Path(path).unlink()

    def listdir(self, path: PathLike) -> list[str]:
        return sorted(os.listdir(path))

    def exists(self, path: PathLike) -> bool:
        return Path(path).exists()

    def is_dir(self, path: PathLike) -> bool:
        return Path(path).is_dir()


class MemoryFileSystem(FileSystem):
    """In-memory FileSystem for tests and dry runs.

    ``fail_on`` maps an operation name (``makedirs``, ``write``, ``read``,
    ``remove``, ``listdir``) to a path; calling that operation on that path
    raises ``OSError`` instead of touching state.
    """

    def __init__(self, fail_on: Optional[dict[str, PathLike]] = None):
        self.files: dict[PurePosixPath, bytes] = {}
        self.dirs: set[PurePosixPath] = {PurePosixPath("/")}
        self.fail_on: dict[str, PurePosixPath] = {
            op: self._key(p) for op, p in (fail_on or {}).items()
        }

    @staticmethod
    def _key(path: PathLike) -> PurePosixPath:
        return PurePosixPath(os.fspath(path))

    def _check(self, op: str, key: PurePosixPath) -> None:
        if self.fail_on.get(op) == key:
            raise OSError(errno.EIO, f"injected {op} failure", str(key))

    def makedirs(self, path: PathLike) -> None:
        key = self._key(path)
        self._check("makedirs", key)
        if key in self.files:
            raise FileExistsError(errno.EEXIST, "File exists", str(key))
        self.dirs.add(key)
        self.dirs.update(key.parents)

    def write_file(self, path: PathLike, data: bytes) -> None:
        key = self._key(path)
        self._check("write", key)
        if key.parent not in self.dirs:
            raise FileNotFoundError(errno.ENOENT, "No such file or directory", str(key))
        if key in self.dirs:
            raise IsADirectoryError(errno.EISDIR, "Is a directory", str(key))
        self.files[key] = bytes(data)

    def read_file(self, path: PathLike) -> bytes:
        key = self._key(path)
        self._check("read", key)
        try:
            return self.files[key]
        except KeyError:
            raise FileNotFoundError(errno.ENOENT, "No such file or directory", str(key)) from None

    def remove(self, path: PathLike) -> None:
        key = self._key(path)
        self._check("remove", key)
        if key not in self.files:
            raise FileNotFoundError(errno.ENOENT, "No such file or directory", str(key))
        del self.files[key]

    def listdir(self, path: PathLike) -> list[str]:
        key = self._key(path)
        self._check("listdir", key)
        if key not in self.dirs:
            raise FileNotFoundError(errno.ENOENT, "No such file or directory", str(key))
        children = {p.name for p in self.files if p.parent == key}
        children.update(d.name for d in self.dirs if d.parent == key and d != key)
        return sorted(children)

    def exists(self, path: PathLike) -> bool:
        key = self._key(path)
        return key in self.files or key in self.dirs

    def is_dir(self, path: PathLike) -> bool:
        return self._key(path) in self.dirs
