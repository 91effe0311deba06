"""
Hybrid handler: answers from static knowledge (FAQ, SOP, promo, product
sheets) plus a few canned replies. Returns None when nothing fits so the
router can report that no suitable reply exists.
"""

import logging
import random
import re
from dataclasses import dataclass
from typing import Optional, Any
from config.settings import ADMIN_CONTACT
from config import keywords
from database.content_store import ContentStore
from services.intent_classifiers import (
    normalize, contains_word, detect_mood, detect_info_type, fuzzy_find,
)
from services.product_catalog import ProductCatalog

logger = logging.getLogger(__name__)

GREETING_REPLY = (
    "Halo! Selamat datang di Vylozzone 😊\n\n"
    "Ada yang bisa saya bantu terkait produk digital kami? "
    "Ketik 'menu' untuk melihat daftar produk atau langsung tanya aja ya!"
)
THANKS_REPLY = "Sama-sama, Kak! 😊 Senang bisa membantu. Ada yang lain yang bisa saya bantu?"

CATALOG_REPLY = """🛍️ *PRODUK VYLOZZONE*

📺 *Streaming:*
• Netflix (mulai 15k)
• Disney+ (mulai 17k)
• YouTube Premium (mulai 5k)
• Prime Video, HBO Max
• iQIYI, VIU, WeTV, Vision+, Vidio

🎨 *Aplikasi:*
• CapCut Pro
• Alight Motion
• ChatGPT Plus
• BStation

Mau info detail produk mana, Kak? Tinggal ketik nama produknya aja ya! 😊"""

GENERAL_PRICE_REPLY = (
    "Harga produk Vylozzone bervariasi, Kak:\n\n"
    "📺 Streaming: 5k - 150k/bulan\n"
    "🎨 Aplikasi: 15k - 50k/bulan\n\n"
    "Untuk harga detail, sebutkan produk spesifik yang diminati ya! "
    "Contoh: 'netflix harga' atau 'youtube berapa?' 😊"
)

MISSING_PRODUCT_REPLIES = {
    "spotify": (
        "Maaf Kak, untuk saat ini Spotify belum tersedia di Vylozzone. Produk music streaming "
        "yang ada: YouTube Premium (include YouTube Music). Mau info YouTube Premium?"
    ),
    "canva": (
        "Maaf Kak, untuk saat ini Canva belum tersedia. Alternatif design apps yang ada: "
        "CapCut Pro untuk video editing. Mau info CapCut Pro?"
    ),
}

DISCOUNT_REPLY = (
    "Untuk info promo dan diskon terbaru, Kak bisa langsung chat admin di wa.me/{admin} ya! "
    "Admin akan kasih penawaran terbaik sesuai budget Kak 😊"
)

ANGRY_REPLY = (
    "Maaf atas kendala yang terjadi, Kak. Mohon kirim nomor order & screenshot error, "
    "tim kami bantu follow-up sesuai SOP."
)
OFF_TOPIC_REPLY = "Maaf Kak, CS ini hanya menangani order, kendala, atau info garansi Vylozzone ya 🙏."

UNCLEAR_REPLY = "Bisa dijelaskan lebih jelas, Kak? Saya siap membantu dengan pertanyaan seputar produk Vylozzone 😊"
NOT_UNDERSTOOD_REPLY = "Maaf, saya kurang paham maksudnya. Bisa dijelaskan lebih detail apa yang Kak butuhkan? 😊"

QUESTION_WORDS = re.compile(
    r"\b(apa|ada|mau|bisa|gimana|bagaimana|kenapa|kapan|dimana|berapa|info|harga|garansi|order|beli)\b"
)


@dataclass(frozen=True)
class HybridAnswer:
    text: str
    kind: str


def pick_response(record: dict) -> Optional[str]:
    """A FAQ/SOP response: random pick from a list, else the string, else the legacy 'answer'"""
    response: Any = record.get("response")
    if isinstance(response, list):
        valid = [r for r in response if isinstance(r, str) and r.strip()]
        if valid:
            return random.choice(valid)
    elif isinstance(response, str) and response.strip():
        return response
    answer = record.get("answer")
    if isinstance(answer, str) and answer.strip():
        return answer
    return None


class HybridHandler:
    """FAQ / SOP / promo / product lookup"""

    def __init__(self, store: ContentStore, catalog: ProductCatalog):
        self.store = store
        self.catalog = catalog

    def handle(self, text: str) -> Optional[HybridAnswer]:
        message = (text or "").strip()
        t = normalize(message)
        if not t:
            return None

        if any(contains_word(t, g) for g in keywords.GREETING_WORDS):
            return HybridAnswer(GREETING_REPLY, "greeting")

        if any(w in t for w in keywords.THANKS_WORDS):
            return HybridAnswer(THANKS_REPLY, "thanks")

        if t == "menu" or any(p in t for p in keywords.CATALOG_PHRASES):
            return HybridAnswer(CATALOG_REPLY, "catalog")

        mentioned = [p for p in keywords.AVAILABLE_PRODUCTS if p in t]
        if "harga semua" in t or ("harga" in t and "produk" in t and not mentioned):
            return HybridAnswer(GENERAL_PRICE_REPLY, "general_price")

        for product, reply in MISSING_PRODUCT_REPLIES.items():
            if product in t:
                return HybridAnswer(reply, "missing_product")

        if "diskon" in t or "discount" in t or ("bisa" in t and "murah" in t):
            return HybridAnswer(DISCOUNT_REPLY.format(admin=ADMIN_CONTACT), "discount")

        if len(mentioned) > 1:
            comparison = self._compare(t, mentioned)
            if comparison:
                return HybridAnswer(comparison, "comparison")

        mood = detect_mood(t)
        if mood == "marah":
            return HybridAnswer(ANGRY_REPLY, "mood")
        if mood == "oot":
            return HybridAnswer(OFF_TOPIC_REPLY, "mood")

        faq = fuzzy_find(message, self.store.all_records("faq"), "keyword")
        if faq:
            response = pick_response(faq)
            if response:
                return HybridAnswer(response, "faq")

        sop = fuzzy_find(message, self.store.all_records("sop"), "trigger")
        if sop:
            response = pick_response(sop)
            if response:
                return HybridAnswer(response, "sop")

        if "promo" in t:
            promo = self.store.load_document("promo", {}) or {}
            banner = promo.get("banner")
            if promo.get("active", True) and isinstance(banner, str) and banner.strip():
                return HybridAnswer(banner, "promo")

        product = self.catalog.find(t)
        if product:
            info = self.catalog.info(product, detect_info_type(t))
            if info:
                return HybridAnswer(info, "product")

        if len(message) < 3 or not re.search(r"[a-zA-Z]", message):
            return HybridAnswer(UNCLEAR_REPLY, "unclear")
        if not QUESTION_WORDS.search(t) and len(message) < 10:
            return HybridAnswer(NOT_UNDERSTOOD_REPLY, "unclear")

        return None

    @staticmethod
    def _compare(t: str, products: list) -> Optional[str]:
        if "harga" in t or "berapa" in t:
            lines = ["📊 *PERBANDINGAN HARGA*", ""]
            lines += [f"🔸 {p.upper()}: Chat admin untuk harga detail" for p in products[:3]]
            lines += ["", f"Untuk info lengkap semua produk, chat admin di wa.me/{ADMIN_CONTACT} ya! 😊"]
            return "\n".join(lines)
        if any(w in t for w in ("bagus", "recommend", "pilih")):
            return (
                f"🤔 Mau bandingin {', '.join(products)}?\n\n"
                f"Setiap produk punya keunggulan masing-masing. Untuk rekomendasi yang sesuai "
                f"kebutuhan Kak, langsung chat admin di wa.me/{ADMIN_CONTACT} ya! Admin akan kasih saran terbaik 😊"
            )
        return None
