"""Response-time tracking and reply cache control"""

import logging
from collections import deque
from typing import Optional, Deque
from services.response_cache import ResponseCache

logger = logging.getLogger(__name__)

# Rolling window for the recent average
RECENT_WINDOW = 100


class PerformanceManager:
    """Keeps a running average response time and owns cache maintenance"""

    def __init__(self, cache: ResponseCache):
        self.cache = cache
        self.total_requests = 0
        self.average_ms = 0.0
        self.slowest_ms = 0.0
        self.recent: Deque[float] = deque(maxlen=RECENT_WINDOW)

    def record(self, elapsed_ms: float):
        """Fold one response time into the running average"""
        self.total_requests += 1
        self.average_ms += (elapsed_ms - self.average_ms) / self.total_requests
        self.slowest_ms = max(self.slowest_ms, elapsed_ms)
        self.recent.append(elapsed_ms)

    @property
    def recent_average_ms(self) -> float:
        return sum(self.recent) / len(self.recent) if self.recent else 0.0

    def optimize(self) -> int:
        removed = self.cache.expire()
        logger.info(f"⚡ Cache optimized, {removed} expired entries removed")
        return removed

    def stats(self) -> dict:
        return {
            "total_requests": self.total_requests,
            "average_ms": round(self.average_ms, 1),
            "recent_average_ms": round(self.recent_average_ms, 1),
            "slowest_ms": round(self.slowest_ms, 1),
            "cache": self.cache.stats(),
        }

    def handle_command(self, command: str) -> Optional[str]:
        cmd = command.lower().strip()

        if cmd == "performance stats":
            stats = self.stats()
            cache = stats["cache"]
            return (
                "⚡ *PERFORMANCE STATS*\n\n"
                f"📨 *Requests:* {stats['total_requests']}\n"
                f"⏱️ *Avg Response:* {stats['average_ms']}ms\n"
                f"⏱️ *Recent Avg:* {stats['recent_average_ms']}ms\n"
                f"🐢 *Slowest:* {stats['slowest_ms']}ms\n\n"
                "💾 *Response Cache:*\n"
                f"• Entries: {cache['size']}/{cache['max_entries']}\n"
                f"• Hit Rate: {cache['hit_rate'] * 100:.1f}%\n"
                f"• TTL: {cache['ttl_seconds']}s"
            )

        if cmd == "performance optimize":
            removed = self.optimize()
            return f"✅ Optimization complete\n• Expired cache entries removed: {removed}"

        if cmd == "cache clear":
            cleared = self.cache.clear()
            return f"✅ Cache cleared ({cleared} entries)"

        return None
