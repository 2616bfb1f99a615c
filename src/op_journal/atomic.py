"""Atomic whole-file writes."""

from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Generator


@contextmanager
def atomic_write(path: Path, mode: str = "wb", encoding: str = "utf-8") -> Generator:
    """Write to a file atomically.

    Writes to a temporary file then renames to target path, so readers
    see either the old contents or the new ones, never a torn file.

    Args:
        path: Target file path
        mode: Write mode ('w' for text, 'wb' for binary)
        encoding: Text encoding (ignored for binary mode)

    Yields:
        File handle for writing
    """
    tmp_path = path.with_suffix(path.suffix + ".tmp")

    try:
        if "b" in mode:
            with open(tmp_path, mode) as f:
                yield f
                f.flush()
                os.fsync(f.fileno())
        else:
            with open(tmp_path, mode, encoding=encoding) as f:
                yield f
                f.flush()
                os.fsync(f.fileno())

        os.replace(tmp_path, path)

    except BaseException:
        # Clean up temp file on failure
        if tmp_path.exists():
            tmp_path.unlink()
        raise
