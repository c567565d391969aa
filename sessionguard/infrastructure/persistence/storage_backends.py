"""
Key/value storage backends for the credential store.

InMemoryStorage keeps everything in a dict and is lost on exit, the usual
choice for tests and short-lived processes. JsonFileStorage persists the
same key/value map to a JSON file so a session survives restarts, the way
browser local storage survives page reloads.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional, Union

from sessionguard.infrastructure.logging import get_logger
from sessionguard.models.interfaces import IKeyValueStorage


class InMemoryStorage(IKeyValueStorage):
    """In-memory implementation of IKeyValueStorage using a Python dict"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = str(value)

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self):
        return list(self._items.keys())


class JsonFileStorage(IKeyValueStorage):
    """
    File-backed implementation of IKeyValueStorage.

    The whole map is rewritten atomically (temp file + rename) on every
    change. I/O failures are NOT caught here: an unreadable or unwritable
    location must surface so the credential store can report the storage
    as unavailable. A file that is readable but not a JSON object raises on
    reads and is replaced by an empty map on the next write or removal, so
    clearing the session recovers from it.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.logger = get_logger(__name__)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            raw = f.read()
        if not raw.strip():
            return {}
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"Storage file {self.path} does not hold a JSON object")
        return {str(k): str(v) for k, v in data.items()}

    def _load_for_update(self) -> Dict[str, str]:
        try:
            return self._load()
        except ValueError as e:
            # UnicodeDecodeError and JSONDecodeError are ValueErrors too
            self.logger.warning("Discarding unparseable storage file", path=str(self.path), error=str(e))
            self._save({})
            return {}

    def _save(self, items: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(dir=str(self.path.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tf:
                json.dump(items, tf, indent=2, ensure_ascii=False)
            os.replace(temp_name, self.path)
        except BaseException:
            if os.path.exists(temp_name):
                os.unlink(temp_name)
            raise

    def get_item(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = self._load_for_update()
        items[key] = str(value)
        self._save(items)

    def remove_item(self, key: str) -> None:
        items = self._load_for_update()
        if key in items:
            del items[key]
            self._save(items)
