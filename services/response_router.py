"""
Unified response router.

Single entry point for every inbound message. Routes are tried in a fixed
order and the first predicate that matches wins:

    1. image            image messages
    2. law_commands     owner bot-law commands
    3. owner_tools      owner analytics/performance/security/monitoring/cleanup/backup
    4. learning         learning management commands and owner teaching
    5. admin            owner / moderator admin and attendance commands
    6. system           menu, limit and greeting words (exact match)
    7. hybrid           FAQ / SOP / product lookup when hybrid confidence > 0.3
    8. learned          knowledge store match above 0.6
    9. fallback         Gemini, always matches

route_message() wraps the whole pipeline (security gate, preprocessing,
cache, routing, safety post-filter, tracking) and never raises.
"""

import logging
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Callable, Awaitable, List, NamedTuple
from config.settings import BOT_NAME
from config.thresholds import (
    HYBRID_ROUTING, LEARNED_ROUTING, FALLBACK_CONFIDENCE, CACHEABLE_LEARNED, MIN_INPUT_LENGTH,
)
from services.hybrid_handler import CATALOG_REPLY
from services.intent_classifiers import (
    normalize, is_owner, hybrid_confidence, match_law_command, match_analytics_command,
    match_learning_command, is_teaching_command, is_system_command, is_greeting_command,
)

logger = logging.getLogger(__name__)

INVALID_INPUT_TEXT = "Mohon kirim pesan yang valid ya, Kak 😊"
TOO_SHORT_TEXT = "Bisa dijelaskan lebih lengkap, Kak? 😊"
NO_RESPONSE_TEXT = "Maaf, saya tidak dapat memberikan response yang sesuai. Mohon coba lagi."
SAFETY_BLOCKED_TEXT = (
    "Maaf, saya perlu bantuan untuk menjawab pertanyaan ini dengan tepat. "
    "Mohon hubungi admin untuk bantuan lebih lanjut."
)
SYSTEM_ERROR_TEXT = "Maaf, terjadi kesalahan sistem. Mohon coba lagi atau hubungi admin untuk bantuan."
ADMIN_ERROR_TEXT = "Terjadi kesalahan dalam memproses command admin. Silakan coba lagi."
UNKNOWN_TOOL_TEXT = "Analytics command tidak dikenali."
IMAGE_REPLY_TEXT = "Saya sudah menerima gambar Anda. Bisa tolong dijelaskan apa yang perlu saya bantu?"

GREETING_TEMPLATES = [
    "Halo Kak! {bot} siap bantu order APK atau SMM 😊",
    "Hai Kak! Ada kendala di web order APK/SMM? Boleh tanya aja ya.",
    "Selamat datang Kak! CS {bot} siap bantu info & kendala Anda.",
]


class Route(str, Enum):
    IMAGE = "image"
    LAW_COMMANDS = "law_commands"
    OWNER_TOOLS = "owner_tools"
    LEARNING = "learning"
    ADMIN = "admin"
    SYSTEM = "system"
    HYBRID = "hybrid"
    LEARNED = "learned"
    FALLBACK = "fallback"


# Replies on these routes are owner/staff command output and skip the safety post-filter
COMMAND_ROUTES = {Route.LAW_COMMANDS, Route.OWNER_TOOLS, Route.LEARNING, Route.ADMIN}


@dataclass(frozen=True)
class RouteDecision:
    route: Route
    priority: int
    confidence: float


@dataclass
class HandlerResult:
    text: Optional[str]
    source: str
    confidence: float = 1.0
    cacheable: bool = False
    knowledge_id: Optional[int] = None


@dataclass
class InboundMessage:
    text: str
    sender_id: str
    chat_id: Optional[str] = None
    message_type: str = "text"
    quoted: Optional[str] = None
    timestamp: Optional[float] = None
    message_id: Optional[str] = None

    @property
    def chat(self) -> str:
        return self.chat_id or self.sender_id


@dataclass
class RouterReply:
    text: Optional[str]
    route: str
    source: str
    cached: bool = False
    confidence: float = 0.0


Predicate = Callable[[InboundMessage], Optional[float]]
Handler = Callable[[InboundMessage, RouteDecision], Awaitable[HandlerResult]]


class RouteSpec(NamedTuple):
    route: Route
    priority: int
    predicate: Predicate
    handler: Handler


class ResponseRouter:
    def __init__(self, context):
        self.ctx = context
        self.routes: List[RouteSpec] = [
            RouteSpec(Route.IMAGE, 1, self._is_image, self._handle_image),
            RouteSpec(Route.LAW_COMMANDS, 2, self._is_law_command, self._handle_law_command),
            RouteSpec(Route.OWNER_TOOLS, 3, self._is_owner_tool, self._handle_owner_tool),
            RouteSpec(Route.LEARNING, 4, self._is_learning, self._handle_learning),
            RouteSpec(Route.ADMIN, 5, self._is_admin, self._handle_admin),
            RouteSpec(Route.SYSTEM, 6, self._is_system, self._handle_system),
            RouteSpec(Route.HYBRID, 7, self._hybrid_score, self._handle_hybrid),
            RouteSpec(Route.LEARNED, 8, self._learned_score, self._handle_learned),
            RouteSpec(Route.FALLBACK, 9, lambda message: FALLBACK_CONFIDENCE, self._handle_fallback),
        ]
        self.stats = {"total_requests": 0, "routed_to": {r.value: 0 for r in Route},
                      "safety_blocked": 0, "gate_dropped": 0, "errors": 0}

    def _owner(self, message: InboundMessage) -> bool:
        return is_owner(message.sender_id, self.ctx.owner_number)

    # ------------------------------------------------------------------
    # Predicates: confidence when the route applies, else None
    # ------------------------------------------------------------------

    def _is_image(self, message: InboundMessage) -> Optional[float]:
        return 1.0 if message.message_type == "image" else None

    def _is_law_command(self, message: InboundMessage) -> Optional[float]:
        return 1.0 if self._owner(message) and match_law_command(message.text) else None

    def _is_owner_tool(self, message: InboundMessage) -> Optional[float]:
        return 1.0 if self._owner(message) and match_analytics_command(message.text) else None

    def _is_learning(self, message: InboundMessage) -> Optional[float]:
        if match_learning_command(message.text):
            return 1.0
        if self._owner(message) and is_teaching_command(message.text):
            return 1.0
        return None

    def _is_admin(self, message: InboundMessage) -> Optional[float]:
        return 1.0 if self.ctx.admin.accepts(message.text, message.sender_id) else None

    def _is_system(self, message: InboundMessage) -> Optional[float]:
        return 1.0 if is_system_command(message.text) else None

    def _hybrid_score(self, message: InboundMessage) -> Optional[float]:
        score = hybrid_confidence(message.text)
        return score if score > HYBRID_ROUTING else None

    def _learned_score(self, message: InboundMessage) -> Optional[float]:
        match = self.ctx.knowledge.lookup(message.text, LEARNED_ROUTING)
        return match.score if match else None

    def select_route(self, message: InboundMessage) -> RouteDecision:
        """First matching route in priority order"""
        for entry in self.routes:
            confidence = entry.predicate(message)
            if confidence is not None:
                return RouteDecision(entry.route, entry.priority, confidence)
        # unreachable while FALLBACK always matches
        raise RuntimeError("No route matched")

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _handle_image(self, message: InboundMessage, decision: RouteDecision) -> HandlerResult:
        return HandlerResult(IMAGE_REPLY_TEXT, "image_handler", confidence=0.9)

    async def _handle_law_command(self, message: InboundMessage, decision: RouteDecision) -> HandlerResult:
        text = self.ctx.content_filter.handle_owner_command(match_law_command(message.text), message.sender_id)
        return HandlerResult(text, "law_commands")

    async def _handle_owner_tool(self, message: InboundMessage, decision: RouteDecision) -> HandlerResult:
        managers = (
            ("analytics_commands", self.ctx.analytics),
            ("performance_commands", self.ctx.performance),
            ("security_commands", self.ctx.security),
            ("monitoring_commands", self.ctx.monitoring),
            ("cleanup_commands", self.ctx.cleanup),
            ("backup_commands", self.ctx.backup),
        )
        for source, manager in managers:
            text = manager.handle_command(message.text)
            if text:
                return HandlerResult(text, source)
        return HandlerResult(UNKNOWN_TOOL_TEXT, "analytics_commands")

    async def _handle_learning(self, message: InboundMessage, decision: RouteDecision) -> HandlerResult:
        if match_learning_command(message.text):
            text = self.ctx.learning.handle_command(message.text, message.sender_id)
            return HandlerResult(text, "learning_commands")
        text = self.ctx.learning.teach(message.text, message.sender_id)
        return HandlerResult(text, "owner_teaching")

    async def _handle_admin(self, message: InboundMessage, decision: RouteDecision) -> HandlerResult:
        try:
            text = self.ctx.admin.handle(message.text, message.sender_id)
        except Exception as e:
            logger.error(f"❌ Error in admin command: {e}", exc_info=True)
            text = ADMIN_ERROR_TEXT
        return HandlerResult(text, "admin_commands")

    async def _handle_system(self, message: InboundMessage, decision: RouteDecision) -> HandlerResult:
        t = normalize(message.text)
        if t == "menu":
            return HandlerResult(CATALOG_REPLY, "system_commands", cacheable=True)

        if t == "limit":
            remaining = self.ctx.security.remaining_daily(message.sender_id)
            text = f"_Sisa limit harian Anda:_ {remaining}" if remaining is not None else "_Admin: Unlimited_"
            return HandlerResult(text, "system_commands")

        if is_greeting_command(t):
            greeting = random.choice(GREETING_TEMPLATES).format(bot=BOT_NAME)
            return HandlerResult(greeting, "system_commands", cacheable=True)

        return HandlerResult(None, "system_commands")

    async def _handle_hybrid(self, message: InboundMessage, decision: RouteDecision) -> HandlerResult:
        answer = self.ctx.hybrid.handle(message.text)
        if answer is None:
            return HandlerResult(None, "hybrid_handler")
        return HandlerResult(answer.text, "hybrid_handler", confidence=0.9, cacheable=True)

    async def _handle_learned(self, message: InboundMessage, decision: RouteDecision) -> HandlerResult:
        match = self.ctx.knowledge.lookup(message.text, LEARNED_ROUTING)
        if match is None:
            return HandlerResult(None, "learning_system")
        return HandlerResult(match.entry.response, "learning_system", confidence=match.score,
                             cacheable=match.score > CACHEABLE_LEARNED, knowledge_id=match.entry.id)

    async def _handle_fallback(self, message: InboundMessage, decision: RouteDecision) -> HandlerResult:
        reply = await self.ctx.fallback.generate(message.text, message.sender_id, message.chat)
        return HandlerResult(reply.text, reply.source, confidence=reply.confidence)

    async def dispatch(self, message: InboundMessage, decision: RouteDecision) -> HandlerResult:
        for entry in self.routes:
            if entry.route == decision.route:
                return await entry.handler(message, decision)
        raise ValueError(f"Unknown route: {decision.route}")

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def preprocess(self, message: InboundMessage) -> Optional[str]:
        """Canned reply for empty or too-short text, else None"""
        if message.message_type == "image":
            return None
        text = (message.text or "").strip()
        if not text:
            return INVALID_INPUT_TEXT
        if len(text) < MIN_INPUT_LENGTH:
            return TOO_SHORT_TEXT
        return None

    def post_process(self, message: InboundMessage, decision: RouteDecision,
                     result: HandlerResult) -> HandlerResult:
        if not result.text or not result.text.strip():
            return HandlerResult(NO_RESPONSE_TEXT, "error_fallback", confidence=0.1)

        if decision.route in COMMAND_ROUTES:
            return result

        validation = self.ctx.content_filter.validate_action("response", result.text, {
            "original_question": message.text,
            "source": result.source,
            "sender": message.sender_id,
        })
        if not validation.allowed:
            logger.error(f"🚨 Response blocked by bot laws: {validation.block_reason}")
            self.stats["safety_blocked"] += 1
            self.ctx.analytics.track_safety_block(validation.law or ", ".join(validation.rules))
            return HandlerResult(SAFETY_BLOCKED_TEXT, "safety_blocked", confidence=0.1)

        absolute = self.ctx.content_filter.absolute_validation("response", result.text)
        if not absolute.allowed:
            self.stats["safety_blocked"] += 1
            self.ctx.analytics.track_safety_block("ABSOLUTE")
            return HandlerResult(SAFETY_BLOCKED_TEXT, "safety_blocked", confidence=0.1)

        return result

    async def route_message(self, message: InboundMessage) -> Optional[RouterReply]:
        """
        Produce the reply for one inbound message.

        Returns None when the security gate drops the message silently.
        Never raises; any unexpected failure becomes the system-error apology.
        """
        started = time.monotonic()
        self.stats["total_requests"] += 1
        text = message.text or ""

        try:
            gate = self.ctx.security.check(text, message.sender_id, message.chat)
            if not gate.allowed:
                self.stats["gate_dropped"] += 1
                logger.info(f"🛡️ Message from {message.sender_id} stopped by security gate: {gate.reason}")
                if gate.reply is None:
                    return None
                return RouterReply(gate.reply, "security", gate.reason)

            canned = self.preprocess(message)
            if canned is not None:
                return RouterReply(canned, "preprocessing", "preprocessing")

            # No cached replies while the emergency stop is on
            if message.message_type != "image" and not self.ctx.content_filter.emergency_stop:
                cached = self.ctx.cache.get(text, message.sender_id)
                if cached is not None:
                    logger.info("📋 Using cached response")
                    elapsed = (time.monotonic() - started) * 1000
                    self.ctx.performance.record(elapsed)
                    self.ctx.analytics.track_message(text, message.sender_id, "cache", elapsed, cached=True)
                    return RouterReply(cached, "cache", "cache", cached=True)

            decision = self.select_route(message)
            self.stats["routed_to"][decision.route.value] += 1
            logger.info(f"🧭 Route {decision.route.value} (priority {decision.priority}, "
                        f"confidence {decision.confidence:.2f}) for {message.sender_id}")

            result = await self.dispatch(message, decision)
            final = self.post_process(message, decision, result)

            # Only replies that reached the customer count as a use of the entry
            if final is result and result.knowledge_id is not None:
                self.ctx.knowledge.reinforce(result.knowledge_id)

            if final.cacheable:
                self.ctx.cache.put(text, message.sender_id, final.text)

            elapsed = (time.monotonic() - started) * 1000
            self.ctx.performance.record(elapsed)
            self.ctx.analytics.track_message(text, message.sender_id, decision.route.value, elapsed)

            if decision.route not in COMMAND_ROUTES:
                self.ctx.redis.append_to_conversation(message.chat, "user", text)
                self.ctx.redis.append_to_conversation(message.chat, "assistant", final.text)
                self.ctx.learning.save_conversation(message.sender_id, text, final.text,
                                                    message.message_type, decision.route.value)

            return RouterReply(final.text, decision.route.value, final.source, confidence=final.confidence)

        except Exception as e:
            self.stats["errors"] += 1
            logger.error(f"❌ Error in response router: {e}", exc_info=True)
            elapsed = (time.monotonic() - started) * 1000
            try:
                self.ctx.analytics.track_message(text, message.sender_id, "error", elapsed, error=True)
            except Exception as track_error:
                logger.error(f"❌ Could not track routing error: {track_error}")
            return RouterReply(SYSTEM_ERROR_TEXT, "error", "error_fallback")
