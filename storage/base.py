"""
storage/base.py

The asynchronous key/value contract used by the stores, an in-memory
backend, and the versioned record envelope.

Every stored value is wrapped as::

    {"version": 1, "lastModified": "2026-01-01T00:00:00.000Z", "data": ...}

so later releases can migrate records without guessing their shape.
"""

from __future__ import annotations

import copy
import json
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from utils import now_iso

RECORD_VERSION = 1

# Storage keys
PINS_KEY_PREFIX = "pins:"
FEEDBACK_KEY_PREFIX = "feedback:"
PROJECTS_KEY = "projects"
DOCUMENT_MAP_KEY = "document_project_map"


def pins_key(document_id: str) -> str:
    return f"{PINS_KEY_PREFIX}{document_id}"


def feedback_key(document_id: str) -> str:
    return f"{FEEDBACK_KEY_PREFIX}{document_id}"


@runtime_checkable
class Storage(Protocol):
    """Asynchronous key/value persistence.

    Implementations raise ``errors.StorageError`` on failure; callers catch
    it and keep their in-memory state.
    """

    async def get(self, key: str) -> Optional[Any]:
        ...

    async def set(self, key: str, value: Any) -> None:
        ...


def wrap_record(data: Any, version: int = RECORD_VERSION) -> Dict[str, Any]:
    """Wrap a payload with its version tag and modification time."""
    return {"version": version, "lastModified": now_iso(), "data": data}


def unwrap_record(value: Any) -> Optional[Any]:
    """
    Return the payload of a stored record.

    Values written before the envelope existed are returned unchanged.
    """
    if value is None:
        return None
    if isinstance(value, dict) and "version" in value and "data" in value:
        return value["data"]
    return value


class MemoryStorage:
    """Dict-backed Storage for tests and ephemeral sessions.

    Values are deep-copied on the way in and out, so callers cannot mutate
    stored state through a shared reference.
    """

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial) if initial else {}

    async def get(self, key: str) -> Optional[Any]:
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    async def keys(self) -> List[str]:
        return list(self._data)


async def storage_usage(storage: Any, quota_bytes: Optional[int] = None) -> Dict[str, float]:
    """
    Estimate how much of the quota the stored JSON occupies.

    Requires a backend with ``keys()``.  The quota defaults to
    ``[storage] quota_bytes``.

    Returns:
        ``{"bytes": int, "megabytes": float, "percent": float}``
    """
    if quota_bytes is None:
        from settings import get_settings
        quota_bytes = get_settings().settings.storage.quota_bytes
    total = 0
    for key in await storage.keys():
        value = await storage.get(key)
        total += len(json.dumps({key: value}, ensure_ascii=False).encode("utf-8"))
    return {
        "bytes": total,
        "megabytes": round(total / (1024 * 1024), 2),
        "percent": round(total / quota_bytes * 100, 1) if quota_bytes else 0.0,
    }
