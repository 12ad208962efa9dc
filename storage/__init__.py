"""
storage package

Asynchronous key/value persistence used by the pin and project stores.
"""

from storage.base import (
    DOCUMENT_MAP_KEY,
    PROJECTS_KEY,
    MemoryStorage,
    Storage,
    feedback_key,
    pins_key,
    storage_usage,
    unwrap_record,
    wrap_record,
)
from storage.json_file import JsonFileStorage

__all__ = [
    "DOCUMENT_MAP_KEY",
    "PROJECTS_KEY",
    "JsonFileStorage",
    "MemoryStorage",
    "Storage",
    "feedback_key",
    "pins_key",
    "storage_usage",
    "unwrap_record",
    "wrap_record",
]
