"""
BotContext builds and owns every component of the bot.

One context is created per process by main.py and handed to the router and
the FastAPI app. Tests build their own with a temporary data directory,
Redis disabled and mock HTTP transports.
"""

import logging
import os
from typing import Optional, Callable, Dict
from bot.gemini_client import GeminiClient
from bot.whatsapp_api import WhatsAppAPI
from config.settings import (
    DATA_DIR, DATABASE_URL, REDIS_URL, BACKUP_DIR, OWNER_NUMBER,
    RATE_LIMIT_MS, DAILY_LIMIT, ADMIN_PASSWORD,
)
from config.thresholds import CACHE_TTL_SECONDS, MAX_CACHE_ENTRIES
from database.content_store import ContentStore
from database.redis_store import RedisStore
from services.admin_commands import AdminCommands
from services.analytics import AnalyticsManager
from services.attendance import AttendanceManager
from services.backup import BackupManager
from services.cleanup import CleanupManager
from services.content_filter import ContentFilter
from services.fallback_generator import FallbackGenerator
from services.hybrid_handler import HybridHandler
from services.knowledge_store import KnowledgeStore
from services.learning_manager import LearningManager
from services.monitoring import MonitoringManager, sample_system
from services.performance import PerformanceManager
from services.product_catalog import ProductCatalog
from services.response_cache import ResponseCache
from services.response_filter import ResponseFilter
from services.response_router import ResponseRouter
from services.safety_guard import SafetyGuard
from services.scheduler import Scheduler
from services.security import SecurityManager

logger = logging.getLogger(__name__)

# Scheduled job intervals (seconds)
CLEANUP_INTERVAL = 60 * 60
MONITORING_INTERVAL = 60
INCREMENTAL_BACKUP_INTERVAL = 6 * 60 * 60
FULL_BACKUP_INTERVAL = 24 * 60 * 60


class BotContext:
    def __init__(self, data_dir: str = DATA_DIR, database_url: Optional[str] = None,
                 redis_url: Optional[str] = REDIS_URL, backup_dir: str = BACKUP_DIR,
                 gemini: Optional[GeminiClient] = None, whatsapp: Optional[WhatsAppAPI] = None,
                 owner_number: str = OWNER_NUMBER, rate_limit_ms: int = RATE_LIMIT_MS,
                 daily_limit: int = DAILY_LIMIT, admin_password: str = ADMIN_PASSWORD,
                 sampler: Callable[[], Dict[str, float]] = sample_system):
        if database_url is None:
            # DATABASE_URL follows DATA_DIR; a different data_dir gets its own database
            if os.path.abspath(data_dir) == os.path.abspath(DATA_DIR):
                database_url = DATABASE_URL
            else:
                database_url = f"sqlite:///{os.path.join(data_dir, 'vylozzone.db')}"

        self.owner_number = owner_number
        self.admin_password = admin_password

        # Storage
        self.store = ContentStore(database_url, data_dir)
        self.redis = RedisStore(redis_url)

        # Outbound clients
        self.gemini = gemini or GeminiClient()
        self.whatsapp = whatsapp or WhatsAppAPI()

        # Safety and knowledge
        self.content_filter = ContentFilter(owner_number)
        self.safety_guard = SafetyGuard()
        self.knowledge = KnowledgeStore(self.store)
        self.knowledge.seed_from(self.store.all_records("faq"), self.store.all_records("sop"))
        self.response_filter = ResponseFilter(self.store)
        self.fallback = FallbackGenerator(
            self.gemini, self.content_filter, self.response_filter,
            self.knowledge, self.store, conversations=self.redis,
        )

        # Deterministic answers
        self.catalog = ProductCatalog(self.store)
        self.hybrid = HybridHandler(self.store, self.catalog)

        # Commands
        self.learning = LearningManager(
            self.knowledge, self.safety_guard, self.content_filter,
            self.fallback, self.store, owner_number,
        )
        self.attendance = AttendanceManager(self.store)
        self.admin = AdminCommands(self.store, self.attendance, owner_number)

        # Peripheral managers
        self.cache = ResponseCache(CACHE_TTL_SECONDS, MAX_CACHE_ENTRIES)
        self.analytics = AnalyticsManager(self.store)
        self.performance = PerformanceManager(self.cache)
        self.security = SecurityManager(self.store, rate_limit_ms, daily_limit, owner_number)
        self.monitoring = MonitoringManager(self.analytics, sampler=sampler)
        self.cleanup = CleanupManager(self.store, self.cache, self.security)
        self.backup = BackupManager(self.store, backup_dir)

        self.scheduler = Scheduler()
        self.scheduler.add_job("cleanup", CLEANUP_INTERVAL, self.cleanup.run)
        self.scheduler.add_job("monitoring", MONITORING_INTERVAL, self.monitoring.check)
        self.scheduler.add_job("incremental_backup", INCREMENTAL_BACKUP_INTERVAL,
                               lambda: self.backup.create(incremental=True))
        self.scheduler.add_job("full_backup", FULL_BACKUP_INTERVAL, self.backup.create)

        self.router = ResponseRouter(self)
        logger.info(f"✓ Bot context ready ({len(self.knowledge)} knowledge entries)")

    async def close(self):
        await self.scheduler.stop()
        await self.gemini.close()
        await self.whatsapp.close()
        self.redis.close()
        self.store.close()
