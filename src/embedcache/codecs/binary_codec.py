"""Compact fixed-layout binary persistence for the embedding cache.

Layout (all integers little-endian ``u32``)::

    header   version | maxSize | entryCount | vectorDimensions
    entry    keyLength | key (UTF-8) | vectorLength | float32 * vectorLength
             | hitCount | lastAccessedAt

``lastAccessedAt`` is stored modulo 2**32 milliseconds. Entries are written
least recently used first, and the reader unwraps the timestamps so they stay
non-decreasing in file order. There is no magic
number or checksum, so the reader validates every length against the bytes
that remain before trusting it.
"""

from __future__ import annotations

import struct
from typing import List, Set

import numpy as np

from ..config import BINARY_FORMAT_VERSION
from ..entry import CacheEntry, now_ms
from ..errors import DeserializationError
from ..stats import CacheStats
from .base import CacheSnapshot, SnapshotItem, ensure_uniform_dimensions, register_codec

HEADER = struct.Struct("<4I")
U32 = struct.Struct("<I")
TRAILER = struct.Struct("<2I")
FLOAT32 = np.dtype("<f4")

U32_MAX = 0xFFFFFFFF
# keyLength + vectorLength + hitCount + lastAccessedAt, excluding key and vector bytes.
ENTRY_OVERHEAD = U32.size * 2 + TRAILER.size


def _check_u32(name: str, value: int) -> int:
    if not 0 <= value <= U32_MAX:
        raise ValueError(f"{name}={value} does not fit in an unsigned 32-bit field.")
    return value


class _Reader:
    """Bounds-checked cursor over an immutable buffer."""

    def __init__(self, data: bytes) -> None:
        self.view = memoryview(data)
        self.offset = 0

    @property
    def remaining(self) -> int:
        return len(self.view) - self.offset

    def take(self, size: int, what: str) -> memoryview:
        if size > self.remaining:
            raise DeserializationError(
                f"Truncated cache file: need {size} bytes for {what} at offset {self.offset}, "
                f"{self.remaining} left."
            )
        chunk = self.view[self.offset : self.offset + size]
        self.offset += size
        return chunk

    def u32(self, what: str) -> int:
        return U32.unpack(self.take(U32.size, what))[0]


class BinaryCodec:
    """Little-endian binary layout with float32 vectors."""

    name = "binary"

    def encode(self, snapshot: CacheSnapshot) -> bytes:
        dimensions = ensure_uniform_dimensions(snapshot.entries) or 0
        parts: List[bytes] = [
            HEADER.pack(
                BINARY_FORMAT_VERSION,
                _check_u32("maxSize", snapshot.max_size),
                _check_u32("entryCount", len(snapshot.entries)),
                _check_u32("vectorDimensions", dimensions),
            )
        ]
        for key, entry in snapshot.entries:
            key_bytes = key.encode("utf-8")
            parts.append(U32.pack(_check_u32("keyLength", len(key_bytes))))
            parts.append(key_bytes)
            parts.append(U32.pack(len(entry.vector)))
            with np.errstate(over="ignore", invalid="ignore"):
                packed = np.asarray(entry.vector, dtype=FLOAT32)
            if not np.isfinite(packed).all():
                raise ValueError(f"Entry {key} has vector values that are not finite as float32.")
            parts.append(packed.tobytes())
            parts.append(
                TRAILER.pack(
                    _check_u32("hitCount", entry.hit_count),
                    entry.last_accessed_at & U32_MAX,
                )
            )
        return b"".join(parts)

    def decode(self, data: bytes) -> CacheSnapshot:
        reader = _Reader(data)
        if reader.remaining < HEADER.size:
            raise DeserializationError(
                f"Cache file is {reader.remaining} bytes; the header alone needs {HEADER.size}."
            )
        version, max_size, entry_count, dimensions = HEADER.unpack(reader.take(HEADER.size, "header"))
        if version != BINARY_FORMAT_VERSION:
            raise DeserializationError(f"Unsupported binary cache version {version}.")
        if max_size < 1:
            raise DeserializationError("Binary cache header declares maxSize 0.")
        if entry_count > max_size:
            raise DeserializationError(f"Header declares {entry_count} entries but maxSize is {max_size}.")

        min_entry_size = ENTRY_OVERHEAD + dimensions * FLOAT32.itemsize
        if entry_count * min_entry_size > reader.remaining:
            raise DeserializationError(
                f"Header declares {entry_count} entries of at least {min_entry_size} bytes, "
                f"but only {reader.remaining} bytes follow."
            )

        loaded_at = now_ms()
        items: List[SnapshotItem] = []
        previous_stamp = 0
        wrap_offset = 0
        seen: Set[str] = set()
        for index in range(entry_count):
            key_length = reader.u32(f"entry {index} key length")
            try:
                key = bytes(reader.take(key_length, f"entry {index} key")).decode("utf-8")
            except UnicodeDecodeError as exc:
                raise DeserializationError(f"Entry {index} key is not valid UTF-8.") from exc
            if not key:
                raise DeserializationError(f"Entry {index} has an empty key.")
            if key in seen:
                raise DeserializationError(f"Duplicate key at entry {index}.")
            seen.add(key)

            vector_length = reader.u32(f"entry {index} vector length")
            if vector_length != dimensions:
                raise DeserializationError(
                    f"Entry {index} has {vector_length} dimensions; header declares {dimensions}."
                )
            raw_vector = reader.take(vector_length * FLOAT32.itemsize, f"entry {index} vector")
            vector = np.frombuffer(raw_vector, dtype=FLOAT32).astype(np.float64).tolist() if vector_length else []

            hit_count, stamp = TRAILER.unpack(reader.take(TRAILER.size, f"entry {index} metadata"))
            # Entries are stored oldest first, so a drop means the 32-bit counter wrapped.
            if stamp < previous_stamp:
                wrap_offset += U32_MAX + 1
            previous_stamp = stamp
            last_accessed_at = stamp + wrap_offset
            items.append(
                (
                    key,
                    CacheEntry(
                        vector=vector,
                        created_at=loaded_at,
                        last_accessed_at=last_accessed_at,
                        hit_count=hit_count,
                    ),
                )
            )

        if reader.remaining:
            raise DeserializationError(f"{reader.remaining} unexpected trailing bytes after the last entry.")

        return CacheSnapshot(max_size=max_size, retain_text=None, entries=items, stats=CacheStats())


register_codec(BinaryCodec())

__all__ = ["BinaryCodec", "HEADER", "U32_MAX"]
