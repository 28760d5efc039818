"""In-process response caches for generated section artifacts"""

import logging
import threading
from collections import OrderedDict
from typing import Any, Optional

logger = logging.getLogger(__name__)


class ResponseCache:
    """
    Map of generated responses keyed by section and transcript prefix.

    Holds at most `max_entries`; the least recently used entry is evicted
    first. Concurrent misses for the same key are not deduplicated; both
    requests reach the generator and the last write wins.
    """

    def __init__(self, name: str, prefix_chars: int = 50, max_entries: int = 128):
        self.name = name
        self.prefix_chars = prefix_chars
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, Any]" = OrderedDict()
        self._lock = threading.Lock()

    def make_key(self, section_key: str, transcript: str) -> str:
        return f"{section_key}-{transcript[:self.prefix_chars]}"

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            value = self._entries.get(key)
            if value is not None:
                self._entries.move_to_end(key)
        if value is not None:
            logger.debug("%s cache hit: %s", self.name, key[:40])
        return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = value
            self._entries.move_to_end(key)
            self._evict_oldest()

    def _evict_oldest(self) -> None:
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("%s cache evicted: %s", self.name, evicted[:40])

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
