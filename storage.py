import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional

from config import THEME_STORAGE_KEY

logger = logging.getLogger(__name__)


class MemoryStorage:
    """Client-local key -> JSON string store kept in process memory."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class LocalStorage(MemoryStorage):
    """
    File-backed variant. The whole store is one JSON object on disk,
    rewritten after every set/remove.
    """

    def __init__(self, path: str):
        self.path = Path(os.path.expanduser(path))
        super().__init__(self._load())

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable storage file %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(self._items), encoding="utf-8")
        os.replace(tmp, self.path)

    def set_item(self, key: str, value: str) -> None:
        super().set_item(key, value)
        self._flush()

    def remove_item(self, key: str) -> None:
        super().remove_item(key)
        self._flush()


def get_theme(storage: MemoryStorage, key: str = THEME_STORAGE_KEY) -> str:
    return "dark" if storage.get_item(key) == "dark" else "light"


def set_theme(storage: MemoryStorage, theme: str, key: str = THEME_STORAGE_KEY) -> None:
    if theme not in ("light", "dark"):
        raise ValueError(f"Unknown theme: {theme}")
    storage.set_item(key, theme)
