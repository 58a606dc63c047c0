"""
Local key-value store
---------------------
File-backed stand-in for browser ``localStorage``: string keys to string
values, one JSON object on disk, and a hard size quota. Size is measured in
characters of keys plus values, the way browsers account for it.
"""
import json
import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional

from registry_errors import StorageQuotaExceeded

logger = logging.getLogger(__name__)


class LocalStore:
    def __init__(self, path, quota_bytes: int):
        self.path = Path(path)
        self.quota_bytes = quota_bytes
        self._lock = threading.Lock()
        self._items: Dict[str, str] = self._load()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = self.path.read_text(encoding="utf-8").strip()
            if not raw:
                return {}
            data = json.loads(raw)
        except (OSError, ValueError) as e:
            logger.warning(f"Local store {self.path} is unreadable, starting empty: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Local store {self.path} does not hold an object, starting empty")
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _save(self, items: Dict[str, str]):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(items), encoding="utf-8")
        tmp.replace(self.path)

    @staticmethod
    def _size(items: Dict[str, str]) -> int:
        return sum(len(k) + len(v) for k, v in items.items())

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._items.get(key)

    def set_item(self, key: str, value: str):
        with self._lock:
            candidate = dict(self._items)
            candidate[key] = value
            size = self._size(candidate)
            if size > self.quota_bytes:
                raise StorageQuotaExceeded(
                    f"Writing '{key}' needs {size} bytes, quota is {self.quota_bytes}"
                )
            self._save(candidate)
            self._items = candidate

    def remove_item(self, key: str):
        with self._lock:
            if key not in self._items:
                return
            candidate = dict(self._items)
            del candidate[key]
            self._save(candidate)
            self._items = candidate

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._items)

    def used_bytes(self) -> int:
        with self._lock:
            return self._size(self._items)
