"""File helpers shared by the cache persistence layer."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Union

PathLike = Union[str, Path]


def write_atomic(path: PathLike, payload: bytes) -> Path:
    """Write ``payload`` to ``path`` via a sibling temp file and ``os.replace``."""
    dest = Path(path)
    dest.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(delete=False, dir=dest.parent, prefix=f".{dest.name}.") as tmp:
        tmp.write(payload)
        tmp.flush()
        os.fsync(tmp.fileno())
    try:
        os.replace(tmp.name, dest)
    except OSError:
        os.unlink(tmp.name)
        raise
    return dest


def read_bytes(path: PathLike) -> bytes:
    """Read an entire cache file into memory."""
    return Path(path).read_bytes()


__all__ = ["PathLike", "read_bytes", "write_atomic"]
