"""In-process reply cache keyed by message text and sender"""

import logging
import time
from collections import OrderedDict
from typing import Optional, Callable, Tuple
from config.thresholds import CACHE_TTL_SECONDS, MAX_CACHE_ENTRIES
from services.intent_classifiers import sender_number

logger = logging.getLogger(__name__)


def cache_key(text: str, sender: str) -> str:
    """lower(strip(text)) + "-" + last four digits of the sender number"""
    return f"{(text or '').strip().lower()}-{sender_number(sender)[-4:]}"


class ResponseCache:
    """
    TTL cache with a hard size cap.

    When full, the oldest inserted entry is evicted; reads do not refresh
    an entry's position.
    """

    def __init__(self, ttl_seconds: int = CACHE_TTL_SECONDS, max_entries: int = MAX_CACHE_ENTRIES,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[str, float]]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self):
        return len(self._entries)

    def get(self, text: str, sender: str) -> Optional[str]:
        key = cache_key(text, sender)
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None

        value, stored_at = entry
        if self._clock() - stored_at > self.ttl_seconds:
            del self._entries[key]
            self.misses += 1
            return None

        self.hits += 1
        return value

    def put(self, text: str, sender: str, response: str):
        key = cache_key(text, sender)
        if key in self._entries:
            del self._entries[key]
        while len(self._entries) >= self.max_entries:
            self._entries.popitem(last=False)
        self._entries[key] = (response, self._clock())

    def expire(self) -> int:
        """Drop expired entries; returns how many were removed"""
        now = self._clock()
        stale = [k for k, (_, stored_at) in self._entries.items() if now - stored_at > self.ttl_seconds]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug(f"Expired {len(stale)} cached replies")
        return len(stale)

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def stats(self) -> dict:
        lookups = self.hits + self.misses
        return {
            "size": len(self._entries),
            "max_entries": self.max_entries,
            "ttl_seconds": self.ttl_seconds,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(self.hits / lookups, 3) if lookups else 0.0,
        }
