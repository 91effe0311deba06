"""Periodic housekeeping for caches, event logs and capped collections"""

import gc
import logging
from datetime import datetime
from typing import Optional, Dict
from config.thresholds import (
    MAX_CONVERSATION_LOG, MAX_UNKNOWN_CASES, MAX_LEARNING_QUEUE, MAX_KNOWLEDGE_ENTRIES,
)
from database.content_store import ContentStore
from services.response_cache import ResponseCache
from services.security import SecurityManager

logger = logging.getLogger(__name__)

CAPPED_COLLECTIONS = {
    "conversations": MAX_CONVERSATION_LOG,
    "unknown_cases": MAX_UNKNOWN_CASES,
    "learning_queue": MAX_LEARNING_QUEUE,
    "knowledge_base": MAX_KNOWLEDGE_ENTRIES,
}


class CleanupManager:
    def __init__(self, store: ContentStore, cache: ResponseCache, security: SecurityManager):
        self.store = store
        self.cache = cache
        self.security = security
        self.last_run: Optional[str] = None
        self.runs = 0

    def run(self) -> Dict[str, int]:
        """Expire cache entries, prune security events and trim capped collections"""
        result = {
            "cache_expired": self.cache.expire(),
            "security_events": self.security.prune(),
        }
        for collection, keep in CAPPED_COLLECTIONS.items():
            result[collection] = self.store.trim_collection(collection, keep)

        self.runs += 1
        self.last_run = datetime.now().isoformat(timespec="seconds")
        logger.info(f"🧹 Cleanup finished: {result}")
        return result

    def memory(self) -> Dict[str, int]:
        expired = self.cache.expire()
        collected = gc.collect()
        return {"cache_expired": expired, "objects_collected": collected}

    def handle_command(self, command: str) -> Optional[str]:
        cmd = command.lower().strip()

        if cmd == "cleanup status":
            counts = "\n".join(
                f"• {name}: {self.store.count_records(name)}/{keep}"
                for name, keep in CAPPED_COLLECTIONS.items()
            )
            return (
                "🧹 *CLEANUP STATUS*\n\n"
                f"🕐 *Last Run:* {self.last_run or 'belum pernah'}\n"
                f"🔁 *Runs:* {self.runs}\n"
                f"💾 *Cache Entries:* {len(self.cache)}\n"
                f"🛡️ *Security Events:* {len(self.security.events)}\n\n"
                f"📦 *Collections:*\n{counts}"
            )

        if cmd == "cleanup run":
            result = self.run()
            lines = "\n".join(f"• {name}: {count}" for name, count in result.items())
            return f"✅ Cleanup selesai\n\n{lines}"

        if cmd == "cleanup memory":
            result = self.memory()
            return (
                "✅ Memory cleanup selesai\n"
                f"• Cache expired: {result['cache_expired']}\n"
                f"• Objects collected: {result['objects_collected']}"
            )

        return None
