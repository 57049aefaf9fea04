"""Human-readable JSON persistence for the embedding cache."""

from __future__ import annotations

import json
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from ..config import JSON_FORMAT_VERSION
from ..entry import CacheEntry
from ..errors import DeserializationError, DimensionMismatchError
from ..stats import CacheStats
from .base import CacheSnapshot, SnapshotItem, ensure_uniform_dimensions, register_codec

_STAT_FIELDS = ("hits", "misses", "sets", "evictions")


class JsonCodec:
    """UTF-8 JSON document holding settings, stats and every entry."""

    name = "json"

    def __init__(self, indent: Optional[int] = 2) -> None:
        self.indent = indent

    def encode(self, snapshot: CacheSnapshot) -> bytes:
        ensure_uniform_dimensions(snapshot.entries)
        payload = {
            "version": JSON_FORMAT_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "maxSize": snapshot.max_size,
            "retainText": snapshot.retain_text,
            "stats": snapshot.stats.to_dict(),
            "entries": [_entry_to_record(key, entry, snapshot.retain_text) for key, entry in snapshot.entries],
        }
        # allow_nan=False keeps the output parseable by strict JSON readers.
        try:
            text = json.dumps(payload, indent=self.indent, ensure_ascii=False, allow_nan=False)
        except ValueError as exc:
            raise ValueError("Cannot serialize non-finite vector values to JSON.") from exc
        return text.encode("utf-8")

    def decode(self, data: bytes) -> CacheSnapshot:
        try:
            document = json.loads(data.decode("utf-8"))
        except UnicodeDecodeError as exc:
            raise DeserializationError(f"Cache file is not valid UTF-8: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise DeserializationError(f"Cache file is not valid JSON: {exc}") from exc
        except ValueError as exc:
            # Integer literals over the interpreter's digit limit.
            raise DeserializationError(f"Cache file holds an unparseable number: {exc}") from exc

        if not isinstance(document, Mapping):
            raise DeserializationError("Cache document must be a JSON object.")

        version = document.get("version")
        if version != JSON_FORMAT_VERSION:
            raise DeserializationError(f"Unsupported cache version {version!r}.")

        max_size = _require_int(document, "maxSize", minimum=1)
        retain_text = document.get("retainText", document.get("useHash", True))
        if not isinstance(retain_text, bool):
            raise DeserializationError("Field 'retainText' must be a boolean.")

        stats = _parse_stats(document.get("stats"))

        raw_entries = document.get("entries", [])
        if not isinstance(raw_entries, list):
            raise DeserializationError("Field 'entries' must be a list.")
        if len(raw_entries) > max_size:
            raise DeserializationError(
                f"Cache file holds {len(raw_entries)} entries but maxSize is {max_size}."
            )

        items: List[SnapshotItem] = []
        seen = set()
        for position, raw in enumerate(raw_entries):
            key, entry = _record_to_entry(raw, position, retain_text)
            if key in seen:
                raise DeserializationError(f"Duplicate key at entry {position}.")
            seen.add(key)
            items.append((key, entry))

        # Stable: entries sharing a timestamp keep their file order.
        items.sort(key=lambda item: item[1].last_accessed_at)
        try:
            ensure_uniform_dimensions(items)
        except DimensionMismatchError as exc:
            raise DeserializationError(str(exc)) from exc

        return CacheSnapshot(max_size=max_size, retain_text=retain_text, entries=items, stats=stats)


def _entry_to_record(key: str, entry: CacheEntry, retain_text: bool) -> Dict[str, Any]:
    return {
        "key": key,
        "text": entry.text if retain_text else None,
        "vector": list(entry.vector),
        "createdAt": entry.created_at,
        "lastAccessedAt": entry.last_accessed_at,
        "hitCount": entry.hit_count,
    }


def _record_to_entry(raw: Any, position: int, retain_text: bool) -> SnapshotItem:
    if not isinstance(raw, Mapping):
        raise DeserializationError(f"Entry {position} must be a JSON object.")

    key = raw.get("key")
    if not isinstance(key, str) or not key:
        raise DeserializationError(f"Entry {position} has no string 'key'.")

    text = raw.get("text")
    if text is not None and not isinstance(text, str):
        raise DeserializationError(f"Entry {position} has a non-string 'text'.")

    vector = raw.get("vector")
    if not isinstance(vector, list):
        raise DeserializationError(f"Entry {position} has no 'vector' list.")
    values: List[float] = []
    for value in vector:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise DeserializationError(f"Entry {position} has a non-numeric vector value {value!r}.")
        try:
            number = float(value)
        except OverflowError as exc:
            raise DeserializationError(f"Entry {position} has a vector value outside float range.") from exc
        if not math.isfinite(number):
            raise DeserializationError(f"Entry {position} has a non-finite vector value {value!r}.")
        values.append(number)

    created_at = _require_int(raw, "createdAt", position=position, fallback="timestamp")
    last_accessed_at = _require_int(raw, "lastAccessedAt", position=position, fallback="lastAccessed")
    hit_count = _require_int(raw, "hitCount", position=position, fallback="hits", minimum=0)

    return key, CacheEntry(
        vector=values,
        created_at=created_at,
        last_accessed_at=last_accessed_at,
        hit_count=hit_count,
        text=text if retain_text else None,
    )


def _parse_stats(raw: Any) -> CacheStats:
    if raw is None:
        return CacheStats()
    if not isinstance(raw, Mapping):
        raise DeserializationError("Field 'stats' must be a JSON object.")
    counters = {name: _require_int(raw, name, minimum=0, default=0) for name in _STAT_FIELDS}
    return CacheStats(**counters)


def _require_int(
    record: Mapping[str, Any],
    name: str,
    *,
    position: Optional[int] = None,
    fallback: Optional[str] = None,
    minimum: Optional[int] = None,
    default: Optional[int] = None,
) -> int:
    where = f"Entry {position}" if position is not None else "Cache document"
    value = record.get(name)
    if value is None and fallback is not None:
        value = record.get(fallback)
    if value is None and default is not None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise DeserializationError(f"{where} field '{name}' must be an integer, got {value!r}.")
    if minimum is not None and value < minimum:
        raise DeserializationError(f"{where} field '{name}' must be >= {minimum}, got {value}.")
    return value


register_codec(JsonCodec())

__all__ = ["JsonCodec"]
