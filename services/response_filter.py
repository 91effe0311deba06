"""
Quality filter for LLM replies before they may be learned.

Scores a generated reply with cheap heuristics (template phrases, an
Indonesian stopword test, Vylozzone context terms, quality indicators,
negative wording, length) and rewrites suitable replies toward the
official FAQ/SOP voice.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional
from config.thresholds import FILTER_BASE_SUITABILITY, FILTER_SUITABILITY, FILTER_MAX_ISSUES
from database.content_store import ContentStore

logger = logging.getLogger(__name__)

TEMPLATE_PATTERNS = [
    "silakan upgrade aplikasi", "mohon update aplikasi", "coba restart aplikasi",
    "hapus cache aplikasi", "install ulang aplikasi", "hubungi customer service",
    "kirim email ke support", "buka pengaturan aplikasi", "periksa koneksi internet",
    "pastikan aplikasi terbaru", "hubungi developer", "update sistem operasi",
    "clear data aplikasi",
]

GENERIC_PHRASES = [
    "silakan coba", "mohon periksa", "harap pastikan", "untuk informasi lebih lanjut",
    "jika masalah berlanjut", "hubungi tim support",
]

CONTEXT_TERMS = [
    "vylozzone", "marketplace", "digital", "premium", "aplikasi", "streaming",
    "netflix", "spotify", "disney", "order", "garansi", "claim", "pembayaran",
    "qris", "dana", "ovo", "transfer", "bank", "akun", "email", "password",
    "expired", "durasi", "bulan", "tahun", "harga", "promo", "diskon",
    "screenshot", "nomor order", "kronologi", "kendala", "profil", "device",
    "login", "error", "otp", "terkunci", "replace", "admin",
]

QUALITY_INDICATORS = {
    "helpful": ["solusi", "bantuan", "caranya", "langkah", "prosedur", "tutorial"],
    "specific": ["kirim", "screenshot", "nomor order", "detail", "kronologi", "jelaskan"],
    "supportive": ["tenang", "kami bantu", "akan diproses", "segera ditangani", "sampai selesai"],
    "professional": ["sesuai sop", "tim kami", "kebijakan", "prosedur"],
    "vylozzone_official": ["chat admin", "langsung chat", "admin akan", "tim vylozzone", "maksimal 1x24 jam"],
}

INDONESIAN_STOPWORDS = re.compile(r"\b(yang|dan|atau|untuk|dengan|pada|dari|ke|di|adalah)\b", re.I)

NEGATIVE_WORDS = ["buruk", "jelek", "kecewa", "gagal", "rusak", "sayangnya", "tidak bisa", "mustahil", "percuma"]
POSITIVE_WORDS = ["bisa", "siap", "bantu", "senang", "terima kasih", "segera", "berhasil", "tenang"]

TOKEN_STOPWORDS = {
    "yang", "dan", "atau", "untuk", "dengan", "pada", "dari", "adalah", "ini", "itu",
    "kak", "kami", "anda", "akan", "bisa", "juga", "ada", "the", "and", "you", "for",
}

FORMAL_REPLACEMENTS = {
    "gak": "tidak", "ga": "tidak", "udah": "sudah", "gimana": "bagaimana",
    "kenapa": "mengapa", "yg": "yang", "dgn": "dengan", "utk": "untuk",
}


@dataclass
class ResponseAnalysis:
    indonesian: bool
    template: bool
    related: bool
    quality_score: float
    sentiment: str
    length: int


@dataclass
class FilterResult:
    should_learn: bool
    original: str
    processed: Optional[str] = None
    suitability: float = 0.0
    quality_score: float = 0.0
    issues: List[str] = field(default_factory=list)
    reason: str = ""

    @property
    def confidence(self) -> float:
        """Suitability plus half the quality score, capped at 1.0"""
        return min(1.0, self.suitability + 0.5 * self.quality_score)


def key_tokens(text: str) -> List[str]:
    return [
        t for t in re.findall(r"[a-z]+", (text or "").lower())
        if len(t) > 2 and t not in TOKEN_STOPWORDS
    ]


def token_jaccard(a: str, b: str) -> float:
    tokens_a, tokens_b = set(key_tokens(a)), set(key_tokens(b))
    union = tokens_a | tokens_b
    if not union:
        return 0.0
    return len(tokens_a & tokens_b) / len(union)


def is_template(response: str) -> bool:
    lowered = response.lower()
    return any(p in lowered for p in TEMPLATE_PATTERNS) or any(p in lowered for p in GENERIC_PHRASES)


def is_vylozzone_related(response: str) -> bool:
    lowered = response.lower()
    return sum(1 for term in CONTEXT_TERMS if term in lowered) >= 2


def quality_score(response: str) -> float:
    lowered = response.lower()
    score = 0.0
    for indicators in QUALITY_INDICATORS.values():
        score += 0.1 * sum(1 for indicator in indicators if indicator in lowered)

    if re.search(r"\b\d+\b", response):
        score += 0.1
    if "screenshot" in lowered:
        score += 0.1
    if "nomor order" in lowered:
        score += 0.1

    if len(response) < 50:
        score -= 0.2
    if "mungkin" in lowered:
        score -= 0.1
    return max(0.0, min(1.0, score))


def sentiment(response: str) -> str:
    lowered = response.lower()
    negative = sum(1 for w in NEGATIVE_WORDS if w in lowered)
    positive = sum(1 for w in POSITIVE_WORDS if w in lowered)
    if negative > positive:
        return "negative"
    if positive > negative:
        return "positive"
    return "neutral"


def analyze(response: str) -> ResponseAnalysis:
    return ResponseAnalysis(
        indonesian=bool(INDONESIAN_STOPWORDS.search(response)),
        template=is_template(response),
        related=is_vylozzone_related(response),
        quality_score=quality_score(response),
        sentiment=sentiment(response),
        length=len(response),
    )


def suitability(analysis: ResponseAnalysis):
    """(suitable, score, issues)"""
    issues = []
    score = FILTER_BASE_SUITABILITY

    if not analysis.indonesian:
        issues.append("not_indonesian")
        score -= 0.3
    if analysis.template:
        issues.append("template_response")
        score -= 0.4
    if not analysis.related:
        issues.append("not_vylozzone_related")
        score -= 0.3
    if analysis.quality_score < 0.3:
        issues.append("low_quality")
        score -= 0.2
    if analysis.sentiment == "negative":
        issues.append("negative_sentiment")
        score -= 0.1
    if analysis.length < 30:
        issues.append("too_short")
        score -= 0.1
    elif analysis.length > 500:
        issues.append("too_long")
        score -= 0.1

    score = max(0.0, score)
    suitable = score > FILTER_SUITABILITY and len(issues) < FILTER_MAX_ISSUES
    return suitable, score, issues


class ResponseFilter:
    """Decides whether a generated reply is fit to learn and cleans it up"""

    def __init__(self, store: ContentStore):
        self.store = store

    def official_entries(self) -> List[Dict[str, Any]]:
        """FAQ keywords and SOP triggers with their first official response"""
        entries = []
        for collection, field_name in (("faq", "keyword"), ("sop", "trigger")):
            for record in self.store.all_records(collection):
                response = record.get("answer") or record.get("response") or ""
                if isinstance(response, list):
                    response = response[0] if response else ""
                keywords = record.get(field_name) or []
                if isinstance(keywords, str):
                    keywords = keywords.split(",")
                entries.append({
                    "type": collection,
                    "keywords": [str(k).strip().lower() for k in keywords if str(k).strip()],
                    "response": str(response),
                })
        return entries

    def _matching_official(self, question: str) -> List[Dict[str, Any]]:
        lowered = question.lower()
        return [e for e in self.official_entries() if any(k in lowered for k in e["keywords"])]

    def filter(self, question: str, response: str) -> FilterResult:
        analysis = analyze(response)
        suitable, score, issues = suitability(analysis)

        if not suitable:
            logger.info(f"📊 LLM reply not suitable for learning: {', '.join(issues)}")
            return FilterResult(
                should_learn=False,
                original=response,
                suitability=score,
                quality_score=analysis.quality_score,
                issues=issues,
                reason=f"unsuitable: {', '.join(issues)}",
            )

        return FilterResult(
            should_learn=True,
            original=response,
            processed=self.process(question, response),
            suitability=score,
            quality_score=analysis.quality_score,
            issues=issues,
            reason="suitable_for_learning",
        )

    def contradicts_official(self, question: str, response: str) -> Optional[str]:
        """Official response when the reply disagrees with a matching FAQ/SOP entry"""
        for entry in self._matching_official(question):
            if entry["response"] and token_jaccard(response, entry["response"]) < 0.3:
                return entry["response"]
        return None

    def process(self, question: str, response: str) -> str:
        official = self.contradicts_official(question, response)
        if official:
            return official

        processed = response
        for pattern in TEMPLATE_PATTERNS:
            processed = re.sub(re.escape(pattern), "", processed, flags=re.I)
        processed = re.sub(r"\s+", " ", processed)
        processed = re.sub(r"\.\s*\.", ".", processed).strip()

        processed = self.align_style(question, processed)
        if not is_vylozzone_related(processed):
            processed = add_business_context(question, processed)
        return formalize(processed)

    def align_style(self, question: str, response: str) -> str:
        matches = self._matching_official(question)
        if not matches:
            return response

        official = matches[0]["response"]
        styled = response
        if "Kak" in official and "Kak" not in styled:
            styled = "Tenang, Kak. " + styled
        if ("kami bantu" in official or "bantu sampai selesai" in official) and "kami bantu" not in styled:
            styled += " Tim kami siap bantu sampai selesai."
        if "kirim nomor order" in official and "screenshot" in official:
            styled = re.sub(r"screenshot.*?order", "screenshot kendalanya dan nomor order", styled, flags=re.I)
        return styled.strip()


def add_business_context(question: str, response: str) -> str:
    lowered = question.lower()
    if "error" in lowered or "masalah" in lowered:
        return f"{response} Mohon kirim screenshot error dan nomor order untuk kami follow-up sesuai SOP Vylozzone."
    if "bayar" in lowered or "payment" in lowered:
        return f"{response} Di Vylozzone, pembayaran bisa via QRIS, Transfer Bank, atau e-wallet."
    if "garansi" in lowered or "claim" in lowered:
        return (f"{response} Produk Vylozzone bergaransi sesuai ketentuan, "
                f"streaming 30 hari dan aplikasi premium 7 hari.")
    return f"{response} Tim Vylozzone siap membantu jika ada kendala lebih lanjut."


def formalize(response: str) -> str:
    for informal, formal in FORMAL_REPLACEMENTS.items():
        response = re.sub(rf"\b{informal}\b", formal, response, flags=re.I)
    return response
