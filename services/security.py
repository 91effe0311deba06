"""
Inbound security gate.

Runs before routing: per-chat minimum gap between messages, a requests
per minute cap that ends in a temporary lockout, the blacklist, a spam
score and the daily message limit. The owner is never gated.
"""

import logging
import re
import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Callable, Dict, List, Deque
from config.settings import RATE_LIMIT_MS, DAILY_LIMIT, OWNER_NUMBER
from config.thresholds import (
    MAX_REQUESTS_PER_MINUTE, SPAM_SCORE_BLOCK, LOCKOUT_SECONDS, SECURITY_EVENT_RETENTION_SECONDS,
)
from database.content_store import ContentStore
from services.intent_classifiers import sender_number, is_owner

logger = logging.getLogger(__name__)

DAILY_LIMIT_TEXT = "Maaf Kak, limit pesan harian Anda sudah habis. Silakan coba lagi besok ya 😊"

SPAM_PHRASES = [
    "click here", "free money", "urgent", "limited time", "act now", "congratulations",
    "winner", "prize", "guaranteed", "no cost", "risk free", "earn money",
]
SUSPICIOUS_PATTERNS = [
    re.compile(r"(.)\1{4,}"),
    re.compile(r"\b\d{4,}\b"),
    re.compile(r"!{3,}"),
    re.compile(r"\?{3,}"),
    re.compile(r"\.{4,}"),
]
LINK_PATTERN = re.compile(r"https?://\S+")


@dataclass
class SecurityEvent:
    type: str
    source: str
    timestamp: float
    details: dict = field(default_factory=dict)


@dataclass
class GateDecision:
    allowed: bool
    reason: Optional[str] = None
    # Text to send back; None means drop silently
    reply: Optional[str] = None
    spam_score: float = 0.0


def spam_reasons(message: str) -> List[str]:
    reasons = []
    if message and len(set(message)) / len(message) < 0.3:
        reasons.append("repetitive_content")
    caps = re.findall(r"[A-Z]", message)
    if message and len(caps) / len(message) > 0.7:
        reasons.append("excessive_caps")
    if any(p.search(message.lower()) for p in SUSPICIOUS_PATTERNS):
        reasons.append("suspicious_patterns")
    if any(phrase in message.lower() for phrase in SPAM_PHRASES):
        reasons.append("spam_phrases")
    if len(LINK_PATTERN.findall(message)) > 2:
        reasons.append("excessive_links")
    return reasons


SPAM_WEIGHTS = {
    "repetitive_content": 0.3,
    "excessive_caps": 0.2,
    "suspicious_patterns": 0.4,
    "rapid_fire": 0.3,
    "spam_phrases": 0.5,
    "excessive_links": 0.4,
}


class SecurityManager:
    """Rate limits, lockouts, blacklist, spam scoring and daily limits"""

    def __init__(self, store: Optional[ContentStore] = None, rate_limit_ms: int = RATE_LIMIT_MS,
                 daily_limit: int = DAILY_LIMIT, owner_number: str = OWNER_NUMBER,
                 clock: Callable[[], float] = time.time):
        self.store = store
        self.rate_limit_ms = rate_limit_ms
        self.daily_limit = daily_limit
        self.owner_number = owner_number
        self._clock = clock

        self.last_message_at: Dict[str, float] = {}
        self.requests: Dict[str, Deque[float]] = defaultdict(deque)
        self.locked_until: Dict[str, float] = {}
        self.daily_usage: Dict[str, Dict[str, int]] = defaultdict(dict)
        self.events: Deque[SecurityEvent] = deque()

    # ------------------------------------------------------------------
    # Gate
    # ------------------------------------------------------------------

    def check(self, text: str, sender: str, chat_id: Optional[str] = None) -> GateDecision:
        if is_owner(sender, self.owner_number):
            return GateDecision(allowed=True)

        now = self._clock()
        number = sender_number(sender)
        chat = chat_id or number

        if self.is_locked(number):
            return GateDecision(allowed=False, reason="locked")

        if self.is_blacklisted(number):
            self.log_event("blacklisted_message", number)
            return GateDecision(allowed=False, reason="blacklisted")

        last = self.last_message_at.get(chat)
        self.last_message_at[chat] = now
        if last is not None and (now - last) * 1000 < self.rate_limit_ms:
            logger.info(f"Rate limit: {(text or '')[:30]} - {chat}")
            return GateDecision(allowed=False, reason="rate_limited")

        window = self.requests[number]
        window.append(now)
        while window and now - window[0] > 60:
            window.popleft()
        if len(window) > MAX_REQUESTS_PER_MINUTE:
            self.lock(number)
            self.log_event("too_many_requests", number, {"count": len(window)})
            return GateDecision(allowed=False, reason="too_many_requests")

        score, reasons = self.spam_score(text or "", number)
        if score > SPAM_SCORE_BLOCK:
            self.log_event("spam_detected", number, {"score": score, "reasons": reasons,
                                                     "message": (text or "")[:100]})
            return GateDecision(allowed=False, reason="spam", spam_score=score)

        if not self.consume_daily(number):
            return GateDecision(allowed=False, reason="daily_limit", reply=DAILY_LIMIT_TEXT)

        return GateDecision(allowed=True, spam_score=score)

    def spam_score(self, message: str, number: str):
        reasons = spam_reasons(message)
        now = self._clock()
        recent = [t for t in self.requests.get(number, ()) if now - t < 60]
        if len(recent) > 10:
            reasons.append("rapid_fire")
        return min(1.0, sum(SPAM_WEIGHTS[r] for r in reasons)), reasons

    # ------------------------------------------------------------------
    # Lockout, blacklist, daily limit
    # ------------------------------------------------------------------

    def lock(self, number: str, seconds: int = LOCKOUT_SECONDS):
        self.locked_until[number] = self._clock() + seconds
        logger.warning(f"🔒 {number} locked for {seconds}s")

    def unlock(self, number: str) -> bool:
        return self.locked_until.pop(number, None) is not None

    def is_locked(self, number: str) -> bool:
        until = self.locked_until.get(number)
        if until is None:
            return False
        if self._clock() >= until:
            del self.locked_until[number]
            return False
        return True

    def is_blacklisted(self, number: str) -> bool:
        if self.store is None:
            return False
        return any(
            sender_number(str(r.get("number", ""))) == number
            for r in self.store.all_records("blacklist")
        )

    def _today(self) -> str:
        return datetime.fromtimestamp(self._clock()).strftime("%Y-%m-%d")

    def consume_daily(self, number: str) -> bool:
        usage = self.daily_usage[self._today()]
        if usage.get(number, 0) >= self.daily_limit:
            return False
        usage[number] = usage.get(number, 0) + 1
        return True

    def remaining_daily(self, sender: str) -> Optional[int]:
        """Messages left today; None for the owner (unlimited)"""
        if is_owner(sender, self.owner_number):
            return None
        used = self.daily_usage.get(self._today(), {}).get(sender_number(sender), 0)
        return max(0, self.daily_limit - used)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def log_event(self, event_type: str, source: str, details: dict = None):
        self.events.append(SecurityEvent(event_type, source, self._clock(), details or {}))
        logger.warning(f"🛡️ Security event {event_type} from {source}")

    def prune(self) -> int:
        """Drop old events, stale per-day usage, idle request windows and expired lockouts"""
        now = self._clock()
        cutoff = now - SECURITY_EVENT_RETENTION_SECONDS
        removed = 0
        while self.events and self.events[0].timestamp < cutoff:
            self.events.popleft()
            removed += 1
        today = self._today()
        for day in [d for d in self.daily_usage if d != today]:
            del self.daily_usage[day]
        for chat in [c for c, t in self.last_message_at.items() if t < cutoff]:
            del self.last_message_at[chat]
        for number in [n for n, w in self.requests.items() if not w or now - w[-1] > 60]:
            del self.requests[number]
        for number in [n for n, until in self.locked_until.items() if until <= now]:
            del self.locked_until[number]
        return removed

    def stats(self) -> dict:
        return {
            "events": len(self.events),
            "locked_users": sum(1 for n in list(self.locked_until) if self.is_locked(n)),
            "tracked_chats": len(self.last_message_at),
        }

    # ------------------------------------------------------------------
    # Owner commands
    # ------------------------------------------------------------------

    def handle_command(self, command: str) -> Optional[str]:
        cmd = command.lower().strip()

        if cmd == "security status":
            locked = [n for n in list(self.locked_until) if self.is_locked(n)]
            recent = list(self.events)[-10:]
            recent_lines = "\n".join(f"• {e.type}: {e.source}" for e in recent) or "No recent events"
            locked_lines = "\n".join(f"• {n}" for n in locked) or "No locked users"
            return (
                "🛡️ *SECURITY STATUS*\n\n"
                f"🔒 *Locked Users:* {len(locked)}\n{locked_lines}\n\n"
                f"📊 *Recent Events:* {len(recent)}\n{recent_lines}\n\n"
                f"📈 *Total Events:* {len(self.events)}"
            )

        if cmd == "security clear":
            self.locked_until.clear()
            self.events.clear()
            return "✅ Security data cleared:\n• Locked users unlocked\n• Event log cleared"

        if cmd.startswith("unlock user"):
            number = sender_number(cmd[len("unlock user"):].strip())
            if not number:
                return "Format: unlock user [nomor]"
            self.unlock(number)
            return f"✅ User {number} unlocked successfully"

        return None
