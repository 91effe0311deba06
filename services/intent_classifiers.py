"""
Intent classifiers for the Vylozzone CS bot.

Stateless keyword/regex/fuzzy heuristics. Matching is a cascade: substring
containment first, then regex templates, then fuzzy similarity as the last
resort. Nothing here raises for unmatched input; misses are 0 / None.
"""

import re
from dataclasses import dataclass
from typing import Optional, List, Dict, Any, Iterable
from rapidfuzz import fuzz
from config.settings import OWNER_NUMBER
from config.thresholds import FUZZY_MATCH
from config import keywords

# (kenapa|kok|kapan) ... (dikirim|masuk|...) reads as a complaint
COMPLAINT_QUESTION = re.compile(r"\b(kenapa|kok|kapan)\b.*\b(dikirim|masuk|proses|error|gagal|akun)", re.I)

TEACHING_SEPARATOR = r"(?:->|=>|→|=|>)"

EXPLICIT_TEACHING = re.compile(
    r"(?:ajari\s+bot|ajarin\s+bot|teach\s+bot|bot\s+learn|ingat\s+ini|remember)\s*:?\s*(.+?)\s*"
    + TEACHING_SEPARATOR + r"\s*(.+)",
    re.I | re.S,
)

# (pattern, method, swapped) where swapped means the response comes first
NATURAL_TEACHING = [
    (re.compile(r"jawaban\s+untuk\s+(.+?)\s+(?:adalah|ya|itu)\s+(.+)", re.I | re.S), "natural_answer", False),
    (re.compile(
        r"(?:kalo\s+ada\s+yang\s+nanya|kalau\s+ada\s+yang\s+nanya|kalau\s+ditanya|kalo\s+ditanya|saat\s+ditanya)"
        r"\s+(.+?)\s*,?\s*(?:bilang|jawab|respon|katakan)\s+(.+)", re.I | re.S), "natural_when_asked", False),
    (re.compile(r"langsung\s+jawab\s+(.+?)\s+dengan\s+(.+)", re.I | re.S), "natural_direct", False),
    (re.compile(r"bilang\s+aja\s+(.+?)\s+untuk\s+(.+)", re.I | re.S), "natural_say", True),
    (re.compile(r"responnya\s+(.+?)\s+(?:harusnya|seharusnya|ganti\s+jadi)\s+(.+)", re.I | re.S), "natural_correction", False),
    (re.compile(r"bales\s+dengan\s+(.+?)\s+untuk\s+(.+)", re.I | re.S), "natural_reply_with", True),
    (re.compile(
        r"jangan\s+(?:nanya|tanya)\s+balik\s+(.+?)\s*,?\s*(?:langsung|bilang|jawab)\s+(.+)", re.I | re.S),
        "natural_no_question_back", False),
]


@dataclass(frozen=True)
class TeachingCommand:
    """An (input, response) pair parsed from an owner teaching message"""
    input: str
    response: str
    method: str


def normalize(text: Optional[str]) -> str:
    """Lowercase, trim and collapse whitespace"""
    if not text:
        return ""
    return re.sub(r"\s+", " ", text).strip().lower()


def sender_number(sender: Optional[str]) -> str:
    """Phone number part of a sender id ("62812...@s.whatsapp.net" -> "62812...")"""
    if not sender:
        return ""
    return sender.split("@", 1)[0].split(":", 1)[0].strip()


def is_owner(sender: Optional[str], owner_number: str = OWNER_NUMBER) -> bool:
    return bool(owner_number) and sender_number(sender) == sender_number(owner_number)


def _prefix_pattern(word: str) -> re.Pattern:
    # Leading boundary only so Indonesian suffixes still match ("netflixnya")
    return re.compile(r"(?<![a-z0-9])" + re.escape(word))


def _word_pattern(word: str) -> re.Pattern:
    return re.compile(r"(?<![a-z0-9])" + re.escape(word) + r"(?![a-z0-9])")


def contains_word(text: str, word: str) -> bool:
    return bool(_word_pattern(word.lower()).search(normalize(text)))


def mentions(text: str, word: str) -> bool:
    return bool(_prefix_pattern(word.lower()).search(normalize(text)))


# ----------------------------------------------------------------------
# Product / hybrid scoring
# ----------------------------------------------------------------------

def detect_products(text: str, names: Iterable[str] = keywords.PRODUCT_NAMES) -> List[str]:
    """Product names mentioned in text, in declaration order"""
    t = normalize(text)
    return [name for name in names if mentions(t, name)]


def hybrid_confidence(text: str) -> float:
    """
    Aggregate keyword confidence for the FAQ/SOP/product route.

    +0.8 for a product name, +0.2 per product keyword, +0.1 per general
    pattern, capped at 1.0.
    """
    t = normalize(text)
    if not t:
        return 0.0

    confidence = 0.0
    if detect_products(t):
        confidence += 0.8
    for word in keywords.PRODUCT_KEYWORDS:
        if contains_word(t, word):
            confidence += 0.2
    for pattern in keywords.GENERAL_PATTERNS:
        if contains_word(t, pattern):
            confidence += 0.1
    return min(confidence, 1.0)


def detect_info_type(text: str) -> str:
    """garansi | fitur | full | harga (default)"""
    t = normalize(text)
    for info_type in ("garansi", "fitur", "full", "harga"):
        if any(word in t for word in keywords.INFO_TYPE_KEYWORDS[info_type]):
            return info_type
    return "harga"


def detect_mood(text: str) -> str:
    """marah | positif | oot | netral"""
    t = normalize(text)
    for mood, words in keywords.MOOD_KEYWORDS.items():
        if any(word in t for word in words):
            return mood
    if COMPLAINT_QUESTION.search(t):
        return "marah"
    return "netral"


# ----------------------------------------------------------------------
# Command vocabularies
# ----------------------------------------------------------------------

def _match_prefix_command(text: str, commands: Iterable[str]) -> Optional[str]:
    t = normalize(text)
    for command in commands:
        if t == command or t.startswith(command + " "):
            return command
    return None


def match_law_command(text: str) -> Optional[str]:
    """Exact law command, or "modify law" for any modification attempt"""
    t = normalize(text)
    if t in keywords.LAW_COMMANDS:
        return t
    if _match_prefix_command(t, keywords.LAW_MODIFY_COMMANDS):
        return "modify law"
    return None


def match_analytics_command(text: str) -> Optional[str]:
    """Owner tool commands (analytics, performance, security, monitoring, cleanup, backup)"""
    return _match_prefix_command(text, keywords.OWNER_TOOL_COMMANDS)


def match_learning_command(text: str) -> Optional[str]:
    t = normalize(text)
    for command in keywords.LEARNING_COMMANDS:
        if command in ("approve", "reject"):
            if re.match(rf"^{command}\s+\S+$", t):
                return command
        elif t == command:
            return command
    return None


def match_admin_command(text: str) -> Optional[str]:
    t = normalize(text)
    first = t.split(" ", 1)[0] if t else ""
    return first if first in keywords.ADMIN_COMMANDS else None


def match_attendance_command(text: str) -> Optional[str]:
    """start | break | back | close | status"""
    t = normalize(text)
    for action, words in keywords.ATTENDANCE_COMMANDS.items():
        if t in words:
            return action
    return None


def is_system_command(text: str) -> bool:
    return normalize(text) in keywords.SYSTEM_COMMANDS


def is_greeting_command(text: str) -> bool:
    return normalize(text) in keywords.GREETING_COMMANDS


# ----------------------------------------------------------------------
# Teaching
# ----------------------------------------------------------------------

def is_teaching_command(text: str) -> bool:
    t = normalize(text)
    return any(trigger in t for trigger in keywords.TEACHING_TRIGGERS)


def _clean_part(part: str) -> str:
    return part.strip().strip("\"'“”").strip()


def parse_teaching(text: str) -> Optional[TeachingCommand]:
    """Parse "ajari bot: X -> Y" and the natural phrasings into a TeachingCommand"""
    if not text:
        return None
    raw = text.strip()

    candidates = [(EXPLICIT_TEACHING, "explicit", False)] + NATURAL_TEACHING
    for pattern, method, swapped in candidates:
        match = pattern.search(raw)
        if not match:
            continue
        first, second = _clean_part(match.group(1)), _clean_part(match.group(2))
        question, answer = (second, first) if swapped else (first, second)
        if len(question) < 2 or len(answer) < 2:
            continue
        return TeachingCommand(input=question, response=answer, method=method)
    return None


# ----------------------------------------------------------------------
# Fuzzy matching
# ----------------------------------------------------------------------

def similarity(a: str, b: str) -> float:
    """Character-level similarity in [0, 1]"""
    if not a or not b:
        return 0.0
    return fuzz.ratio(normalize(a), normalize(b)) / 100.0


def _record_keywords(record: Dict[str, Any], field: str) -> List[str]:
    value = record.get(field)
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, list):
        return []
    return [normalize(str(v)) for v in value if str(v).strip()]


def fuzzy_find(text: str, records: List[Dict[str, Any]], field: str,
               threshold: float = FUZZY_MATCH) -> Optional[Dict[str, Any]]:
    """
    Find the record whose `field` keywords best match text.

    Containment either way wins outright (keywords shorter than 3 characters
    are only used for fuzzy scoring); otherwise the best similarity above
    threshold.
    """
    t = normalize(text)
    if not t:
        return None

    for record in records:
        for kw in _record_keywords(record, field):
            if len(kw) >= 3 and (kw in t or (len(t) >= 3 and t in kw)):
                return record

    best, best_score = None, threshold
    for record in records:
        for kw in _record_keywords(record, field):
            score = similarity(t, kw)
            if score > best_score:
                best, best_score = record, score
    return best


def _accept_product_match(text: str, name: str, score: float) -> bool:
    if len(text) <= 2 and score < 0.8:
        return False
    if text[0] != name[0] and score < 0.7:
        return False
    for first, second in keywords.CONFUSING_PRODUCT_PAIRS:
        if (first in text and second in name) or (second in text and first in name):
            if text in (first, second):
                return text == name
            return score > 0.8
    if text in name or name in text:
        return score > 0.3
    return True


def fuzzy_product(text: str, names: Iterable[str] = keywords.PRODUCT_NAMES) -> Optional[str]:
    """Product named in text: hard containment first, then a validated fuzzy match on the whole text"""
    names = list(names)
    t = normalize(text)
    if not t:
        return None

    for name in names:
        if mentions(t, name):
            return name

    if not names:
        return None
    best = max(names, key=lambda name: similarity(t, name))
    score = similarity(t, best)
    if score > FUZZY_MATCH and _accept_product_match(t, best, score):
        return best
    return None
