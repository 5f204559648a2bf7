"""
Local key-value cache for queue state on a front-desk terminal.
"""

import json
import logging
import os
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

QUEUE_KEY_MARKERS = ("queue", "ticket")
FALLBACKS_FLAG = "use_queue_fallbacks"


def is_queue_key(key: str) -> bool:
    return key != FALLBACKS_FLAG and any(marker in key for marker in QUEUE_KEY_MARKERS)


class LocalQueueCache:
    """Small JSON-backed store; kept in memory when no path is given."""

    def __init__(self, path: Optional[str] = None):
        self.path = path or None
        self._data: Dict[str, Any] = {}
        self._load()

    def _load(self):
        if not self.path or not os.path.exists(self.path):
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                self._data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable queue cache %s: %s", self.path, e)
            self._data = {}

    def _save(self):
        if not self.path:
            return
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=2, default=str)

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any):
        self._data[key] = value
        self._save()

    def remove(self, key: str):
        if self._data.pop(key, None) is not None:
            self._save()

    def keys(self):
        return list(self._data)

    @property
    def fallbacks_enabled(self) -> bool:
        return bool(self._data.get(FALLBACKS_FLAG, True))

    def purge_queue_keys(self) -> int:
        """Drop every queue-related key and disable cached fallbacks.

        Returns the number of keys removed.
        """
        removed = [key for key in self._data if is_queue_key(key)]
        for key in removed:
            logger.debug("Removing cached key: %s", key)
            del self._data[key]
        self._data[FALLBACKS_FLAG] = False
        self._save()
        logger.info("Cleared %d queue-related cache entries", len(removed))
        return len(removed)
