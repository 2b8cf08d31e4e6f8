"""Restart-surviving key/value slots for UI state such as the selected zone."""

import json
import os
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Union

from sunflower.utils.logging import get_logger

logger = get_logger(__name__)

GROW_ZONE_SAVED_STATE_KEY = "GROW_ZONE_SAVED_STATE_KEY"


class SavedStateHandle:
    """
    A small JSON-backed key/value store.

    With a path, every set() is written through to disk (write to a temp file,
    then replace) so the value survives a process restart. Without a path the
    values only live as long as the handle.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path else None
        self._lock = threading.RLock()
        self._values: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable saved state {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring saved state {self.path}: expected a JSON object")
            return {}
        return data

    def _flush(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(self._values, f, indent=2, sort_keys=True)
        os.replace(tmp_path, self.path)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            if key in self._values and self._values[key] == value:
                return
            self._values[key] = value
            self._flush()
        logger.debug(f"Saved state {key}={value!r}")

    def remove(self, key: str) -> None:
        with self._lock:
            if self._values.pop(key, None) is not None:
                self._flush()

    def contains(self, key: str) -> bool:
        with self._lock:
            return key in self._values
