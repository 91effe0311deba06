"""
In-memory analytics for the owner dashboard.

Counters only: traffic per day and hour, routes, users, products asked,
info requests, the sales funnel, promo mentions, safety blocks and
response times. Claims come from the log_claim collection. Nothing here
feeds back into routing.
"""

import logging
import time
from collections import Counter, defaultdict
from datetime import datetime
from typing import Optional, Dict, Any, Callable
from config import keywords
from config.thresholds import RESPONSE_TIME_MS, ERROR_RATE_PERCENT
from database.content_store import ContentStore
from services.intent_classifiers import sender_number, detect_products

logger = logging.getLogger(__name__)

PRODUCT_CATEGORIES = {
    "streaming": ["netflix", "disney", "youtube", "prime", "hbo", "iqiyi", "viu", "wetv", "vision+", "vidio", "bstation"],
    "music": ["spotify"],
    "design": ["canva", "capcut", "alightmotion", "picsart", "remini"],
    "ai": ["chatgpt"],
}

COMPETITOR_MENTIONS = ["netflix ori", "spotify official", "disney resmi"]
PROMO_WORDS = ["promo", "diskon", "kode", "voucher"]


def _top(counter: Counter, default: str = "-") -> str:
    if not counter:
        return default
    name, count = counter.most_common(1)[0]
    return f"{name} ({count})"


class AnalyticsManager:
    """Message, route, product and funnel counters plus response times"""

    def __init__(self, store: Optional[ContentStore] = None, clock: Callable[[], float] = time.time):
        self.store = store
        self._clock = clock
        self.reset()

    def reset(self):
        self.started_at = self._clock()
        self.total_messages = 0
        self.errors = 0
        self.cache_hits = 0
        self.total_response_ms = 0.0
        self.daily_traffic: Counter = Counter()
        self.hourly_traffic: Counter = Counter()
        self.routes: Counter = Counter()
        self.users: Counter = Counter()
        self.first_seen: Dict[str, str] = {}
        self.daily_users: Dict[str, set] = defaultdict(set)
        self.products: Counter = Counter()
        self.categories: Counter = Counter()
        self.info_requests: Counter = Counter()
        self.funnel: Counter = Counter()
        self.promo_mentions: Counter = Counter()
        self.competitor_mentions = 0
        self.safety_blocks: Counter = Counter()
        self.sentiment: Counter = Counter()

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    def track_message(self, text: str, sender: str, route: str, response_ms: float,
                      cached: bool = False, error: bool = False):
        now = datetime.fromtimestamp(self._clock())
        today = now.strftime("%Y-%m-%d")
        number = sender_number(sender)

        self.total_messages += 1
        self.total_response_ms += response_ms
        self.daily_traffic[today] += 1
        self.hourly_traffic[now.hour] += 1
        self.routes[route] += 1
        if cached:
            self.cache_hits += 1
        if error:
            self.errors += 1

        if number:
            self.users[number] += 1
            self.first_seen.setdefault(number, today)
            self.daily_users[today].add(number)

        lowered = (text or "").lower()
        self._track_products(lowered)
        self._track_funnel(lowered)

    def _track_products(self, lowered: str):
        mentioned = detect_products(lowered)
        for product in mentioned:
            self.products[product] += 1
        if mentioned:
            if "harga" in lowered or "price" in lowered:
                self.info_requests["harga"] += 1
            elif "garansi" in lowered or "warranty" in lowered:
                self.info_requests["garansi"] += 1
            elif "fitur" in lowered or "spek" in lowered:
                self.info_requests["fitur"] += 1
            else:
                self.info_requests["lengkap"] += 1

        for category, products in PRODUCT_CATEGORIES.items():
            if any(p in mentioned for p in products):
                self.categories[category] += 1

    def _track_funnel(self, lowered: str):
        if "info" in lowered or "tanya" in lowered:
            self.funnel["inquiry"] += 1
        elif "harga" in lowered or "price" in lowered:
            self.funnel["pricing"] += 1
        elif "beli" in lowered or "order" in lowered:
            self.funnel["checkout"] += 1
        elif any(w in lowered for w in keywords.THANKS_WORDS):
            self.funnel["completed"] += 1

        if any(c in lowered for c in COMPETITOR_MENTIONS):
            self.competitor_mentions += 1
        if any(w in lowered for w in PROMO_WORDS):
            self.promo_mentions[datetime.fromtimestamp(self._clock()).strftime("%Y-%m-%d")] += 1

        mood_words = keywords.MOOD_KEYWORDS
        if any(w in lowered for w in mood_words["positif"]):
            self.sentiment["positive"] += 1
        elif any(w in lowered for w in mood_words["marah"]):
            self.sentiment["negative"] += 1

    def track_safety_block(self, law: str):
        self.safety_blocks[law or "UNKNOWN"] += 1

    # ------------------------------------------------------------------
    # Derived numbers
    # ------------------------------------------------------------------

    @property
    def avg_response_ms(self) -> float:
        return self.total_response_ms / self.total_messages if self.total_messages else 0.0

    @property
    def error_rate(self) -> float:
        """Errors as a percentage of all messages"""
        return self.errors / self.total_messages * 100 if self.total_messages else 0.0

    def health(self) -> str:
        if self.error_rate > ERROR_RATE_PERCENT[1] or self.avg_response_ms > RESPONSE_TIME_MS[1]:
            return "degraded"
        if self.error_rate > ERROR_RATE_PERCENT[0] or self.avg_response_ms > RESPONSE_TIME_MS[0]:
            return "warning"
        return "healthy"

    def conversion_rate(self) -> float:
        inquiries = self.funnel["inquiry"] + self.funnel["pricing"]
        return self.funnel["completed"] / inquiries * 100 if inquiries else 0.0

    def retention_rate(self) -> float:
        if not self.users:
            return 0.0
        returning = sum(1 for count in self.users.values() if count > 1)
        return returning / len(self.users) * 100

    def claims(self) -> Dict[str, Any]:
        records = self.store.all_records("log_claim") if self.store else []
        today = datetime.fromtimestamp(self._clock()).strftime("%Y-%m-%d")
        by_product = Counter(r.get("apk", "-") for r in records)
        by_type = Counter(r.get("type", "-") for r in records)
        issues = Counter((r.get("masalah") or "-").lower() for r in records)
        resolved = sum(1 for r in records if r.get("status") == "DONE" or r.get("done") is True)
        return {
            "total": len(records),
            "today": sum(1 for r in records if r.get("tanggal") == today),
            "by_product": by_product,
            "by_type": by_type,
            "issues": issues,
            "resolution_rate": resolved / len(records) * 100 if records else 0.0,
        }

    def summary(self) -> Dict[str, Any]:
        return {
            "total_messages": self.total_messages,
            "active_users": len(self.users),
            "avg_response_ms": round(self.avg_response_ms, 1),
            "error_rate": round(self.error_rate, 2),
            "cache_hits": self.cache_hits,
            "routes": dict(self.routes),
            "top_products": dict(self.products.most_common(5)),
            "health": self.health(),
            "uptime_hours": int((self._clock() - self.started_at) // 3600),
        }

    # ------------------------------------------------------------------
    # Owner commands
    # ------------------------------------------------------------------

    def handle_command(self, command: str) -> Optional[str]:
        cmd = command.lower().strip()
        reports = {
            "dashboard": self.dashboard_text,
            "stats": self.dashboard_text,
            "traffic": self.traffic_text,
            "users": self.users_text,
            "products": self.products_text,
            "claims": self.claims_text,
            "business": self.business_text,
            "marketing": self.marketing_text,
            "technical": self.technical_text,
        }
        if cmd in reports:
            return reports[cmd]()
        if cmd == "reset analytics":
            self.reset()
            logger.info("📊 Analytics reset by owner")
            return "📊 Analytics data telah direset."
        return None

    def _today(self) -> str:
        return datetime.fromtimestamp(self._clock()).strftime("%Y-%m-%d")

    def _peak_hour(self) -> str:
        if not self.hourly_traffic:
            return "-"
        hour, count = self.hourly_traffic.most_common(1)[0]
        return f"{hour:02d}:00 ({count})"

    def dashboard_text(self) -> str:
        today = self._today()
        claims = self.claims()
        return (
            "📊 *VYLOZZONE BOT ANALYTICS DASHBOARD*\n\n"
            "🔄 *SYSTEM OVERVIEW:*\n"
            f"• Status: {self.health().upper()}\n"
            f"• Uptime: {int((self._clock() - self.started_at) // 3600)}h\n"
            f"• Total Messages: {self.total_messages}\n"
            f"• Today's Traffic: {self.daily_traffic[today]}\n"
            f"• Active Users: {len(self.users)}\n"
            f"• Avg Response: {round(self.avg_response_ms)}ms\n\n"
            "🚀 *TRAFFIC ANALYTICS:*\n"
            f"• Peak Hour: {self._peak_hour()}\n"
            f"• Error Rate: {self.error_rate:.2f}%\n"
            f"• Cache Hits: {self.cache_hits}\n\n"
            "🛍️ *PRODUCT ANALYTICS:*\n"
            f"• Top Product: {_top(self.products)}\n"
            f"• Info Requests: H:{self.info_requests['harga']} G:{self.info_requests['garansi']}\n"
            f"• Categories: {_top(self.categories)}\n\n"
            "🛡️ *CLAIMS & GARANSI:*\n"
            f"• Total Claims: {claims['total']}\n"
            f"• Today: {claims['today']}\n\n"
            "💰 *BUSINESS FUNNEL:*\n"
            f"• Inquiries: {self.funnel['inquiry']}\n"
            f"• Pricing: {self.funnel['pricing']}\n"
            f"• Checkout: {self.funnel['checkout']}\n"
            f"• Completed: {self.funnel['completed']}\n"
            f"• Conversion: {self.conversion_rate():.1f}%\n\n"
            "🛡️ *SECURITY:*\n"
            f"• Blocked Replies: {sum(self.safety_blocks.values())}\n\n"
            "📱 *DETAILED COMMANDS:*\n"
            "• traffic - Traffic analytics\n"
            "• users - User analytics\n"
            "• products - Product analytics\n"
            "• claims - Claims analytics\n"
            "• business - Business metrics\n"
            "• marketing - Marketing stats\n"
            "• technical - Technical metrics"
        )

    def traffic_text(self) -> str:
        days = "\n".join(f"• {day}: {count}" for day, count in sorted(self.daily_traffic.items())[-7:]) or "• -"
        routes = "\n".join(f"• {route}: {count}" for route, count in self.routes.most_common()) or "• -"
        return (
            "🚀 *TRAFFIC ANALYTICS*\n\n"
            f"📨 *Total Messages:* {self.total_messages}\n"
            f"⏰ *Peak Hour:* {self._peak_hour()}\n"
            f"⚡ *Avg Response:* {round(self.avg_response_ms)}ms\n"
            f"❌ *Error Rate:* {self.error_rate:.2f}%\n\n"
            f"📅 *Daily Traffic:*\n{days}\n\n"
            f"🧭 *Routes:*\n{routes}"
        )

    def users_text(self) -> str:
        today = self._today()
        new_today = sum(1 for day in self.first_seen.values() if day == today)
        top = "\n".join(f"• {number[-4:].rjust(8, '*')}: {count}" for number, count in self.users.most_common(5)) or "• -"
        return (
            "👥 *USER ANALYTICS*\n\n"
            f"👤 *Total Users:* {len(self.users)}\n"
            f"🆕 *New Today:* {new_today}\n"
            f"📱 *Active Today:* {len(self.daily_users.get(today, ()))}\n"
            f"🔁 *Retention:* {self.retention_rate():.1f}%\n\n"
            f"🏆 *Top Users:*\n{top}"
        )

    def products_text(self) -> str:
        top = "\n".join(f"• {name}: {count}" for name, count in self.products.most_common(10)) or "• -"
        categories = "\n".join(f"• {name}: {count}" for name, count in self.categories.most_common()) or "• -"
        info = self.info_requests
        return (
            "🛍️ *PRODUCT ANALYTICS*\n\n"
            f"🔥 *Most Asked:*\n{top}\n\n"
            f"📂 *Categories:*\n{categories}\n\n"
            "ℹ️ *Info Requests:*\n"
            f"• Harga: {info['harga']}\n"
            f"• Garansi: {info['garansi']}\n"
            f"• Fitur: {info['fitur']}\n"
            f"• Lengkap: {info['lengkap']}"
        )

    def claims_text(self) -> str:
        claims = self.claims()
        products = "\n".join(f"• {name}: {count}" for name, count in claims["by_product"].most_common(5)) or "• -"
        types = "\n".join(f"• {name}: {count}" for name, count in claims["by_type"].most_common()) or "• -"
        return (
            "🛡️ *CLAIMS & GARANSI ANALYTICS*\n\n"
            f"📋 *Total Claims:* {claims['total']}\n"
            f"📅 *Today:* {claims['today']}\n"
            f"✅ *Resolution Rate:* {claims['resolution_rate']:.1f}%\n"
            f"❗ *Top Issue:* {_top(claims['issues'])}\n\n"
            f"📱 *By Product:*\n{products}\n\n"
            f"🔄 *By Type:*\n{types}"
        )

    def business_text(self) -> str:
        return (
            "💰 *BUSINESS ANALYTICS*\n\n"
            "🛒 *Sales Funnel:*\n"
            f"• Inquiry: {self.funnel['inquiry']}\n"
            f"• Pricing: {self.funnel['pricing']}\n"
            f"• Checkout: {self.funnel['checkout']}\n"
            f"• Completed: {self.funnel['completed']}\n\n"
            f"📈 *Conversion:* {self.conversion_rate():.1f}%\n"
            f"⚔️ *Competitor Mentions:* {self.competitor_mentions}"
        )

    def marketing_text(self) -> str:
        today = self._today()
        positive, negative = self.sentiment["positive"], self.sentiment["negative"]
        if positive > negative:
            brand = "POSITIVE"
        elif negative > positive:
            brand = "NEGATIVE"
        else:
            brand = "NEUTRAL"
        return (
            "🎯 *MARKETING ANALYTICS*\n\n"
            f"🏷️ *Promo Mentions Today:* {self.promo_mentions[today]}\n"
            f"🏷️ *Promo Mentions Total:* {sum(self.promo_mentions.values())}\n"
            f"💬 *Brand Sentiment:* {brand} (+{positive} / -{negative})"
        )

    def technical_text(self) -> str:
        blocks = "\n".join(f"• {law}: {count}" for law, count in self.safety_blocks.most_common()) or "• -"
        return (
            "🔧 *TECHNICAL ANALYTICS*\n\n"
            f"🏥 *Health:* {self.health().upper()}\n"
            f"⚡ *Avg Response:* {round(self.avg_response_ms)}ms\n"
            f"❌ *Errors:* {self.errors} ({self.error_rate:.2f}%)\n"
            f"💾 *Cache Hits:* {self.cache_hits}\n\n"
            f"🛡️ *Blocked Replies by Law:*\n{blocks}"
        )
