"""
storage/json_file.py

File-backed Storage: one JSON document per key inside a data directory
(by default the platformdirs user data directory, see settings.py).
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, List, Optional

from errors import StorageError

log = logging.getLogger(__name__)

_UNSAFE_RE = re.compile(r"[^A-Za-z0-9_.-]")


def _file_name(key: str) -> str:
    # Keys contain ':' (pins:<doc>) which is not portable in file names
    return _UNSAFE_RE.sub(lambda m: "%%%02X" % ord(m.group(0)), key) + ".json"


def _key_from_file(name: str) -> str:
    stem = name[:-len(".json")]
    return re.sub(r"%([0-9A-F]{2})", lambda m: chr(int(m.group(1), 16)), stem)


class JsonFileStorage:
    """
    Storage backend writing ``<data_dir>/<key>.json`` files.

    Writes go to a temporary file first and are moved into place, so a
    crash mid-write leaves the previous value intact.

    Args:
        data_dir: Directory for the JSON files.  Defaults to the directory
            configured in settings (``get_settings().get_data_dir()``).
    """

    def __init__(self, data_dir: Optional[Path] = None):
        if data_dir is None:
            from settings import get_settings
            data_dir = get_settings().get_data_dir()
        self.data_dir = Path(data_dir)

    def _path(self, key: str) -> Path:
        return self.data_dir / _file_name(key)

    def _read(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            raise StorageError(f"Failed to read {key}: {e}", key) from e

    def _write(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp_path = None
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            # Unique temp file per write; concurrent writes of one key must not share it
            with tempfile.NamedTemporaryFile("w", encoding="utf-8", dir=self.data_dir,
                                             prefix=f".{path.stem}.", suffix=".tmp",
                                             delete=False) as f:
                tmp_path = Path(f.name)
                json.dump(value, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, path)
            tmp_path = None
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"Failed to write {key}: {e}", key) from e
        finally:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)

    async def get(self, key: str) -> Optional[Any]:
        return await asyncio.to_thread(self._read, key)

    async def set(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self._write, key, value)
        log.debug("Stored %s", key)

    async def remove(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to remove {key}: {e}", key) from e

    async def keys(self) -> List[str]:
        if not self.data_dir.exists():
            return []
        return sorted(_key_from_file(p.name) for p in self.data_dir.glob("*.json"))
