"""
Bot laws: the content filter every outbound reply and every learning
candidate passes through.

Three immutable laws are evaluated in priority order. A violation of the
first law (business integrity) blocks immediately and nothing after it is
evaluated, whoever the sender is. absolute_validation() is a second,
hardcoded gate that ignores the emergency flag and cannot be switched off.
"""

import logging
import re
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Any, Tuple
from config.settings import OWNER_NUMBER
from config.thresholds import MAX_VIOLATION_LOG
from services.intent_classifiers import normalize, is_owner

logger = logging.getLogger(__name__)

SEVERITY_LEVELS = {"none": 0, "low": 1, "medium": 2, "high": 3, "critical": 4}

EMERGENCY_STOP_RULE = "EMERGENCY_STOP_ACTIVE"
VALIDATION_ERROR_RULE = "VALIDATION_ERROR"

COMPETITOR_PHRASES = [
    "netflix ori", "spotify official", "disney resmi", "youtube premium ori",
    "beli di tempat lain", "lebih murah di", "mending di", "jangan beli disini",
    "recommend tempat lain", "coba tempat lain",
]
WRONG_GUARANTEE_PHRASES = [
    "garansi selamanya", "unlimited garansi", "garansi gratis",
    "tanpa garansi", "no warranty", "resiko sendiri",
]
WRONG_PRICING_PHRASES = [
    "gratis", "tanpa bayar", "tidak perlu bayar", "bayar 0", "harga 0",
    "free download", "free trial selamanya", "unlimited free",
]
# Whole words only ("mod" must not match "moderator")
ILLEGAL_TERMS = ["bajakan", "crack", "mod", "ilegal", "piracy"]
TROUBLESHOOTING_TERMS = ["error", "masalah", "gagal", "tidak bisa", "kendala"]
GREETING_TERMS = ["hai", "halo", "hello", "selamat", "assalamualaikum"]
PRODUCT_INFO_TERMS = ["harga", "info", "paket", "garansi", "fitur"]
SHORT_REPLY_LENGTH = 50

TOXIC_WORDS = [
    "anjing", "babi", "bangsat", "brengsek", "kontol", "memek", "tai",
    "shit", "fuck", "damn", "bodoh", "idiot", "stupid", "tolol",
    "goblok", "dungu", "bego",
]
UNPROFESSIONAL_PHRASES = [
    "males", "gabut", "santai aja", "cuek aja", "terserah aja", "bodo amat",
    "gak tau", "ga tau", "entahlah", "mungkin aja",
]
MISLEADING_PHRASES = [
    "bohong", "nipu", "scam", "penipu", "maling",
    "tidak ada jaminan", "tanpa kepastian",
]

LEARNING_ACTIONS = ("learn", "teach", "training")

ABSOLUTE_BUSINESS_TERMS = [
    "netflix ori", "spotify official", "beli di tempat lain",
    "gratis", "bajakan", "ilegal", "crack",
]
ABSOLUTE_TOXIC_WORDS = ["anjing", "babi", "bangsat", "fuck", "shit"]

_WORD_PATTERNS: Dict[str, re.Pattern] = {}


def _has_word(content: str, word: str) -> bool:
    pattern = _WORD_PATTERNS.get(word)
    if pattern is None:
        pattern = _WORD_PATTERNS[word] = re.compile(rf"\b{re.escape(word)}\b", re.I)
    return bool(pattern.search(content))


@dataclass(frozen=True)
class Law:
    priority: int
    name: str
    description: str
    rules: Tuple[str, ...]


LAWS: Tuple[Law, ...] = (
    Law(
        priority=1,
        name="BUSINESS_INTEGRITY",
        description="Bot tidak boleh memberikan informasi yang merugikan bisnis Vylozzone atau menyesatkan customer",
        rules=(
            "TIDAK BOLEH menyebutkan kompetitor atau recommend tempat lain",
            "TIDAK BOLEH memberikan info garansi yang salah",
            "TIDAK BOLEH memberikan info harga yang salah",
            "TIDAK BOLEH mengatakan produk gratis/illegal/bajakan",
            "TIDAK BOLEH memberikan informasi yang bisa merugikan reputasi bisnis",
            "HARUS selalu minta nomor order + screenshot untuk troubleshooting",
            "HARUS menggunakan tone profesional CS",
        ),
    ),
    Law(
        priority=2,
        name="USER_SAFETY_RESPECT",
        description="Bot harus membantu user dengan hormat dan tidak memberikan konten toxic/harmful",
        rules=(
            "TIDAK BOLEH menggunakan kata kasar, toxic, atau offensive",
            "TIDAK BOLEH memberikan informasi yang menyesatkan user",
            "TIDAK BOLEH mengabaikan pertanyaan user yang legitimate",
            "HARUS selalu sopan dan profesional",
            "HARUS memberikan bantuan yang konstruktif",
            "TIDAK BOLEH diskriminasi berdasarkan apapun",
        ),
    ),
    Law(
        priority=3,
        name="LEARNING_COMPLIANCE",
        description="Bot harus belajar dan improve, tapi tidak boleh melanggar Law #1 dan #2",
        rules=(
            "HANYA belajar dari input yang mematuhi Law #1 dan #2",
            "HARUS selalu validate input sebelum learning",
            "TIDAK BOLEH belajar dari toxic/unprofessional inputs",
            "HARUS prioritaskan official FAQ/SOP daripada user teaching",
            "HARUS maintain consistency dengan business rules",
            "BOLEH menolak learning yang melanggar fundamental laws",
        ),
    ),
)


@dataclass(frozen=True)
class LawViolation:
    law: str
    priority: int
    rule: str
    reason: str
    severity: str


@dataclass
class ValidationResult:
    allowed: bool = True
    violations: List[LawViolation] = field(default_factory=list)
    block_reason: Optional[str] = None
    severity: str = "none"
    laws_applied: List[str] = field(default_factory=list)

    @property
    def law(self) -> Optional[str]:
        """Name of the highest-priority violated law"""
        if not self.violations:
            return None
        return min(self.violations, key=lambda v: v.priority).law

    @property
    def rules(self) -> List[str]:
        return [v.rule for v in self.violations]


@dataclass(frozen=True)
class AbsoluteValidation:
    allowed: bool
    reason: Optional[str] = None


# A check returns (rule, reason, severity) for the first violated rule, or None
Check = Optional[Tuple[str, str, str]]


def check_business_integrity(content: str, action: str) -> Check:
    for phrase in COMPETITOR_PHRASES:
        if phrase in content:
            return "NO_COMPETITOR_MENTION", f'Mentions competitor or alternative: "{phrase}"', "critical"

    for phrase in WRONG_GUARANTEE_PHRASES:
        if phrase in content:
            return "ACCURATE_GUARANTEE_INFO", f'Wrong guarantee information: "{phrase}"', "critical"

    for phrase in WRONG_PRICING_PHRASES:
        if phrase in content:
            return "ACCURATE_PRICING_INFO", f'Wrong pricing information: "{phrase}"', "critical"

    for term in ILLEGAL_TERMS:
        if _has_word(content, term):
            return "NO_ILLEGAL_CONTENT", f'Mentions illegal/piracy content: "{term}"', "critical"

    if action == "response" and len(content) >= SHORT_REPLY_LENGTH:
        troubleshooting = any(term in content for term in TROUBLESHOOTING_TERMS)
        greeting = any(term in content for term in GREETING_TERMS)
        product_info = any(term in content for term in PRODUCT_INFO_TERMS)
        if troubleshooting and not greeting and not product_info:
            if "nomor order" not in content and "screenshot" not in content:
                return (
                    "REQUIRE_ORDER_SCREENSHOT",
                    "Troubleshooting response missing order number + screenshot request",
                    "medium",
                )
    return None


def check_user_safety(content: str, action: str) -> Check:
    for word in TOXIC_WORDS:
        if _has_word(content, word):
            return "NO_TOXIC_LANGUAGE", f'Contains toxic language: "{word}"', "critical"

    for phrase in UNPROFESSIONAL_PHRASES:
        if phrase in content:
            return "PROFESSIONAL_TONE_REQUIRED", f'Unprofessional language: "{phrase}"', "medium"

    for phrase in MISLEADING_PHRASES:
        if phrase in content:
            return "NO_MISLEADING_INFO", f'Potentially misleading: "{phrase}"', "high"
    return None


def check_learning_compliance(content: str, action: str, context: Dict[str, Any]) -> Check:
    if action not in LEARNING_ACTIONS:
        return None

    business = check_business_integrity(content, action)
    if business:
        return (
            "NO_LEARNING_FROM_BUSINESS_VIOLATIONS",
            f"Cannot learn from content that violates business integrity: {business[1]}",
            "high",
        )

    safety = check_user_safety(content, action)
    if safety:
        return "NO_LEARNING_FROM_UNSAFE_CONTENT", f"Cannot learn from unsafe content: {safety[1]}", "high"

    if context.get("contradicts_official"):
        return "NO_CONTRADICTION_WITH_OFFICIAL", "Learning content contradicts official FAQ/SOP", "medium"
    return None


class ContentFilter:
    """Validates outbound text and learning candidates against the bot laws"""

    def __init__(self, owner_number: str = OWNER_NUMBER):
        self.owner_number = owner_number
        self._emergency_stop = False
        self.violation_log = deque(maxlen=MAX_VIOLATION_LOG)

    @property
    def emergency_stop(self) -> bool:
        return self._emergency_stop

    def activate_emergency_stop(self):
        self._emergency_stop = True
        logger.critical("🚨 Emergency stop activated, all validated actions are blocked")

    def resume(self):
        self._emergency_stop = False
        logger.info("✓ Emergency stop deactivated")

    def _check_law(self, law: Law, content: str, action: str, context: Dict[str, Any]) -> Check:
        if law.name == "BUSINESS_INTEGRITY":
            return check_business_integrity(content, action)
        if law.name == "USER_SAFETY_RESPECT":
            return check_user_safety(content, action)
        return check_learning_compliance(content, action, context)

    def validate_action(self, action: str, content: Optional[str],
                        context: Optional[Dict[str, Any]] = None) -> ValidationResult:
        """
        Check content against every law in priority order.

        Args:
            action: "response" for outbound replies, "learn" / "teach" /
                "training" for knowledge candidates
            content: Text to check
            context: Extra flags (contradicts_official)

        Returns:
            ValidationResult; fails closed on any internal error
        """
        if self._emergency_stop:
            return ValidationResult(
                allowed=False,
                violations=[LawViolation("EMERGENCY_STOP", 0, EMERGENCY_STOP_RULE,
                                         "Emergency stop is active - all actions blocked", "critical")],
                block_reason="Emergency stop is active - all actions blocked",
                severity="critical",
            )

        context = context or {}
        result = ValidationResult()
        try:
            lowered = (content or "").lower()
            for law in LAWS:
                found = self._check_law(law, lowered, action, context)
                if found:
                    rule, reason, severity = found
                    violation = LawViolation(law.name, law.priority, rule, reason, severity)
                    result.allowed = False
                    result.violations.append(violation)
                    if SEVERITY_LEVELS[severity] > SEVERITY_LEVELS[result.severity]:
                        result.severity = severity
                    self._log_violation(violation, action, lowered)

                    if law.priority == 1:
                        result.block_reason = f"FIRST LAW VIOLATION: {reason}"
                        break

                result.laws_applied.append(law.name)

            if not result.allowed and not result.block_reason:
                top = min(result.violations, key=lambda v: v.priority)
                result.block_reason = f"LAW VIOLATION: {top.reason}"
            return result

        except Exception as e:
            logger.error(f"❌ Error in law validation: {e}", exc_info=True)
            return ValidationResult(
                allowed=False,
                violations=[LawViolation("VALIDATION", 0, VALIDATION_ERROR_RULE,
                                         "Law validation system error - action blocked for safety", "critical")],
                block_reason="Law validation system error - action blocked for safety",
                severity="critical",
            )

    def _log_violation(self, violation: LawViolation, action: str, content: str):
        self.violation_log.append({
            "timestamp": datetime.now().isoformat(),
            "law": violation.law,
            "rule": violation.rule,
            "reason": violation.reason,
            "severity": violation.severity,
            "action": action,
            "content": content[:200],
        })
        logger.error(f"🚨 BOT LAW VIOLATION [{violation.law}]: {violation.reason}")
        if violation.severity == "critical":
            logger.error("🔴 CRITICAL VIOLATION - Immediate intervention required!")

    def absolute_validation(self, action: str, content: Optional[str],
                            context: Optional[Dict[str, Any]] = None) -> AbsoluteValidation:
        """Hardcoded final gate, independent of the emergency flag"""
        lowered = (content or "").lower()

        for term in ABSOLUTE_BUSINESS_TERMS:
            if term in lowered:
                return self._absolute_block(f'ABSOLUTE BLOCK: Critical business violation detected: "{term}"', action)

        for word in ABSOLUTE_TOXIC_WORDS:
            if _has_word(lowered, word):
                return self._absolute_block(f'ABSOLUTE BLOCK: Toxic content detected: "{word}"', action)

        return AbsoluteValidation(allowed=True)

    def _absolute_block(self, reason: str, action: str) -> AbsoluteValidation:
        logger.critical(f"🚨🚨🚨 EMERGENCY BLOCK ({action}): {reason}")
        return AbsoluteValidation(allowed=False, reason=reason)

    # ------------------------------------------------------------------
    # Owner commands
    # ------------------------------------------------------------------

    def handle_owner_command(self, command: str, sender: str) -> Optional[str]:
        if not is_owner(sender, self.owner_number):
            return "Perintah law management hanya untuk owner."

        cmd = normalize(command)
        if cmd == "law status":
            return self.law_status()
        if cmd == "violation log":
            return self.violation_report()
        if cmd == "emergency stop":
            self.activate_emergency_stop()
            return "🚨 EMERGENCY STOP ACTIVATED - All bot actions blocked!"
        if cmd == "emergency resume":
            self.resume()
            return "✅ Emergency stop deactivated - Bot operations resumed."
        if "modify law" in cmd or "change law" in cmd:
            return "❌ FUNDAMENTAL LAWS CANNOT BE MODIFIED - They are hardcoded and immutable for safety."
        return None

    def law_status(self) -> str:
        laws = "\n\n".join(
            f"{law.priority}. {law.name}\n   {law.description}\n"
            f"   Rules: {len(law.rules)}\n   Status: ✅ ACTIVE & IMMUTABLE"
            for law in LAWS
        )
        stats = self.stats()
        return (
            f"🤖 BOT FUNDAMENTAL LAWS STATUS\n\n{laws}\n\n"
            f"📊 VIOLATION STATS:\n"
            f"• Total: {stats['violations']}\n"
            f"• Critical: {stats['critical_violations']}\n"
            f"• Emergency Stop: {'🔴 ACTIVE' if self._emergency_stop else '🟢 INACTIVE'}"
        )

    def violation_report(self, limit: int = 10) -> str:
        recent = list(self.violation_log)[-limit:]
        if not recent:
            return "✅ No law violations recorded."

        lines = ["📋 RECENT LAW VIOLATIONS:", ""]
        for i, entry in enumerate(recent, 1):
            when = datetime.fromisoformat(entry["timestamp"]).strftime("%d/%m/%Y %H:%M:%S")
            lines.append(f"{i}. {entry['law']} ({entry['severity']})")
            lines.append(f"   Reason: {entry['reason']}")
            lines.append(f"   Time: {when}")
            lines.append("")
        return "\n".join(lines).rstrip()

    def stats(self) -> Dict[str, Any]:
        return {
            "total_laws": len(LAWS),
            "violations": len(self.violation_log),
            "critical_violations": sum(1 for v in self.violation_log if v["severity"] == "critical"),
            "emergency_stop": self._emergency_stop,
        }
