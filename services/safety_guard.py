"""Safety checks for owner teaching pairs, run before the bot laws"""

import logging
import re
from dataclasses import dataclass, field
from typing import List

logger = logging.getLogger(__name__)

TOXIC_PATTERNS = [
    "anjing", "bangsat", "kontol", "memek", "tai", "bego", "tolol", "goblok",
    "fuck", "shit", "damn", "asshole", "bitch", "bastard",
]

BUSINESS_RULES = [
    "netflix ori", "disney ori", "spotify ori", "prime ori",
    "beli di tempat lain", "lebih murah di", "mending beli",
    "gratis selamanya", "illegal", "bajakan", "crack",
    "kompetitor", "pesaing", "scam", "penipu", "bohong",
    "gratis", "free", "cuma-cuma", "tanpa bayar",
]

WHITELIST_PHRASES = [
    "terima kasih", "makasih", "thanks", "good", "bagus",
    "mantap", "oke", "siap", "baik",
]


def _found(content: str, phrase: str) -> bool:
    # Single words need whole-word matches ("tai" inside "detail")
    if " " in phrase or "-" in phrase:
        return phrase in content
    return re.search(rf"\b{re.escape(phrase)}\b", content) is not None


@dataclass
class ContentCheck:
    safe: bool = True
    appropriate: bool = True
    score: float = 1.0
    issues: List[str] = field(default_factory=list)
    blocked_rules: List[str] = field(default_factory=list)


@dataclass
class TeachingValidation:
    can_learn: bool
    confidence: float
    reason: str = ""
    issues: List[str] = field(default_factory=list)


class SafetyGuard:
    """Keyword screen for teaching input and response text"""

    def __init__(self):
        self.stats = {"checks": 0, "blocked": 0, "warnings": 0}

    def check_content(self, content: str) -> ContentCheck:
        self.stats["checks"] += 1
        check = ContentCheck()
        if not content:
            return check

        lowered = content.lower()

        if any(_found(lowered, word) for word in TOXIC_PATTERNS):
            check.safe = False
            check.score = 0.2
            check.issues.append("toxic_content")
            self.stats["blocked"] += 1

        violated = [rule for rule in BUSINESS_RULES if _found(lowered, rule)]
        if violated:
            check.safe = False
            check.appropriate = False
            check.score = 0.1
            check.issues.append("business_violation")
            check.blocked_rules = violated
            self.stats["warnings"] += 1
            self.stats["blocked"] += 1

        if any(phrase in lowered for phrase in WHITELIST_PHRASES):
            check.score = min(1.0, check.score + 0.2)

        return check

    def validate_teaching(self, input_text: str, response: str) -> TeachingValidation:
        """Both sides of a teaching pair must be safe and appropriate"""
        question = self.check_content(input_text)
        answer = self.check_content(response)

        can_learn = question.safe and question.appropriate and answer.safe and answer.appropriate
        issues = question.issues + answer.issues
        reason = ""
        if not can_learn:
            blocked = question.blocked_rules + answer.blocked_rules
            if blocked:
                reason = "Melanggar business rules: " + ", ".join(blocked)
            elif "toxic_content" in issues:
                reason = "Mengandung konten toxic atau tidak profesional"
            else:
                reason = "Konten tidak sesuai standar customer service"
            logger.warning(f"⚠️ Teaching blocked by safety guard: {reason}")

        return TeachingValidation(
            can_learn=can_learn,
            confidence=min(question.score, answer.score),
            reason=reason,
            issues=issues,
        )
