"""
LLM fallback with learning.

Asks Gemini with a fixed business context, blocks replies that break the
bot laws, filters the rest for quality and queues suitable pairs for the
knowledge store. High-confidence pairs are learned at once; the rest wait
for the owner's approve / reject.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Dict, Any, List
from bot.gemini_client import GeminiClient
from config.settings import ADMIN_CONTACT
from config.thresholds import (
    AUTO_LEARN, MANUAL_APPROVE_MIN, MAX_LEARNING_QUEUE, MAX_UNKNOWN_CASES,
    MAX_CONVERSATION_HISTORY,
)
from database.content_store import ContentStore
from database.redis_store import RedisStore
from services.content_filter import ContentFilter
from services.knowledge_store import KnowledgeStore
from services.response_filter import ResponseFilter, FilterResult
from utils.error_handler import LLMError

logger = logging.getLogger(__name__)

QUEUE = "learning_queue"
CASES = "unknown_cases"

LAWS_BLOCKED_TEXT = (
    "Maaf, saya tidak dapat memberikan jawaban yang sesuai untuk pertanyaan ini. "
    "Tim kami akan review dan meningkatkan response. Mohon hubungi admin untuk bantuan langsung."
)

BUSINESS_CONTEXT = """Context: Anda adalah customer service resmi Vylozzone, marketplace digital terpercaya untuk aplikasi premium.

IDENTITAS BISNIS:
• Vylozzone - Digital marketplace untuk aplikasi premium & streaming accounts
• Produk: Netflix, Disney+, YouTube Premium, Prime Video, CapCut, ChatGPT, dll
• Target: User Indonesia yang butuh akses aplikasi premium dengan harga terjangkau

KEBIJAKAN GARANSI & LAYANAN:
• Streaming accounts (Netflix, Disney+, YouTube): Garansi 30 hari full
• Aplikasi premium (CapCut, Alight Motion): Garansi 7 hari
• SMM services: Garansi sesuai package yang dipilih
• Pengiriman: Maksimal 1x24 jam setelah pembayaran confirmed
• Support: Via WhatsApp chat 24/7 dengan tim CS

PROSEDUR CLAIM GARANSI:
• Customer kirim nomor order + screenshot kendala/error
• Tim CS review sesuai SOP dalam 1x24 jam
• Replace/refund sesuai ketentuan garansi
• Alternatif: Direct chat admin di wa.me/{admin}

METODE PEMBAYARAN:
• QRIS (semua e-wallet: Dana, OVO, GoPay, ShopeePay)
• Transfer Bank: BCA, BRI, Mandiri, BNI
• E-wallet direct: Dana, OVO, GoPay

TONE & STYLE GUIDELINES:
• Gunakan "Kak" untuk menyapa customer (friendly Indonesian style)
• Selalu minta "nomor order dan screenshot" untuk troubleshooting
• Jangan sarankan upgrade/restart/clear cache kecuali spesifik relevan
• Fokus pada solusi bisnis Vylozzone, bukan solusi teknis generik
• Professional namun ramah, solution-oriented

INSTRUKSI RESPONSE:
Berikan jawaban yang spesifik untuk bisnis Vylozzone, professional, dan actionable. Jika customer ada masalah, selalu minta nomor order + screenshot untuk follow-up. Jangan berikan solusi template generik."""


@dataclass
class FallbackReply:
    text: str
    confidence: float
    source: str
    learned: bool = False


def _parse_id(raw: str) -> Optional[int]:
    try:
        return int(raw.strip())
    except (TypeError, ValueError):
        return None


class FallbackGenerator:
    """Gemini fallback plus the unknown-case log and learning queue"""

    def __init__(self, gemini: GeminiClient, content_filter: ContentFilter,
                 response_filter: ResponseFilter, knowledge: KnowledgeStore,
                 store: ContentStore, conversations: Optional[RedisStore] = None):
        self.gemini = gemini
        self.content_filter = content_filter
        self.response_filter = response_filter
        self.knowledge = knowledge
        self.store = store
        self.conversations = conversations

    @staticmethod
    def business_context() -> str:
        return BUSINESS_CONTEXT.replace("{admin}", ADMIN_CONTACT)

    async def generate(self, message: str, sender: str, chat_id: Optional[str] = None) -> FallbackReply:
        """Answer an unknown question; never raises"""
        history: List[str] = []
        if self.conversations is not None and chat_id:
            history = self.conversations.history_lines(chat_id)[-MAX_CONVERSATION_HISTORY:]

        try:
            text = await self.gemini.generate(message, history=history, context=self.business_context())
        except LLMError as e:
            logger.error(f"❌ LLM fallback failed: {e.message} {e.details}")
            return FallbackReply(text=e.user_message, confidence=0.1, source="llm_error")

        validation = self.content_filter.validate_action("response", text, {"source": "llm_fallback"})
        if not validation.allowed:
            logger.error(f"🚨 LLM reply blocked by bot laws: {validation.block_reason}")
            self.record_unknown_case(message, text, sender, suitable=False,
                                     confidence=0.0, reason="bot_laws_violation")
            return FallbackReply(text=LAWS_BLOCKED_TEXT, confidence=0.1, source="laws_blocked_fallback")

        result = self.response_filter.filter(message, text)
        case = self.record_unknown_case(message, text, sender, suitable=result.should_learn,
                                        confidence=result.confidence, reason=result.reason,
                                        processed=result.processed)

        if not result.should_learn:
            return FallbackReply(text=text, confidence=0.3, source="gemini_unfiltered")

        learned = False
        item = self.queue_for_learning(message, result, case_id=case["id"])
        if item and result.confidence > AUTO_LEARN:
            learned = self._learn(item, verified=False)

        return FallbackReply(
            text=result.processed,
            confidence=result.confidence,
            source="smart_gemini_filtered",
            learned=learned,
        )

    # ------------------------------------------------------------------
    # Unknown cases and learning queue
    # ------------------------------------------------------------------

    def record_unknown_case(self, message: str, response: str, sender: str, suitable: bool,
                            confidence: float, reason: str, processed: Optional[str] = None) -> Dict[str, Any]:
        case = self.store.add_record(CASES, {
            "message": message,
            "response": response,
            "processed_response": processed,
            "suitable": suitable,
            "confidence": round(confidence, 3),
            "reason": reason,
            "sender": sender,
            "timestamp": datetime.now().isoformat(),
            "learned": False,
        })
        self.store.trim_collection(CASES, MAX_UNKNOWN_CASES)
        return case

    def queue_for_learning(self, message: str, result: FilterResult,
                           case_id: Optional[int] = None) -> Optional[Dict[str, Any]]:
        """Queue a filtered pair if the learning laws allow it"""
        contradicts = self.response_filter.contradicts_official(message, result.processed) is not None
        validation = self.content_filter.validate_action(
            "learn", f"{message} {result.processed}", {"contradicts_official": contradicts}
        )
        if not validation.allowed:
            logger.warning(f"⚠️ Pair not queued: {validation.block_reason}")
            return None

        item = self.store.add_record(QUEUE, {
            "input": message,
            "response": result.processed,
            "confidence": round(result.confidence, 3),
            "suitability": round(result.suitability, 3),
            "quality_score": round(result.quality_score, 3),
            "case_id": case_id,
            "status": "queued",
            "timestamp": datetime.now().isoformat(),
        })
        self.store.trim_collection(QUEUE, MAX_LEARNING_QUEUE)
        logger.info(f"📥 Queued for learning: item {item['id']} (confidence {result.confidence:.2f})")
        return item

    def _learn(self, item: Dict[str, Any], verified: bool) -> bool:
        self.knowledge.add(item["input"], item["response"], source="ai_auto_learned",
                           confidence=item.get("confidence", MANUAL_APPROVE_MIN), verified=verified)
        self.store.update_record(QUEUE, item["id"], {
            "status": "learned",
            "learned_at": datetime.now().isoformat(),
        })
        if item.get("case_id"):
            self.store.update_record(CASES, item["case_id"], {"learned": True})
        return True

    def pending_items(self) -> List[Dict[str, Any]]:
        return self.store.find_records(QUEUE, status="queued")

    def auto_learn(self, threshold: float = MANUAL_APPROVE_MIN) -> int:
        learned = 0
        for item in self.pending_items():
            if item.get("confidence", 0) > threshold:
                self._learn(item, verified=False)
                learned += 1
        return learned

    # ------------------------------------------------------------------
    # Owner review commands
    # ------------------------------------------------------------------

    def handle_review_command(self, command: str) -> Optional[str]:
        cmd = command.strip().lower()
        if cmd in ("review queue", "cek queue"):
            return self.queue_report()
        if cmd.startswith("approve "):
            return self.approve(cmd[len("approve "):])
        if cmd.startswith("reject "):
            return self.reject(cmd[len("reject "):])
        if cmd in ("unknown cases", "cases"):
            return self.cases_report()
        if cmd == "auto learn":
            count = self.auto_learn()
            return (f"Auto-learning dijalankan untuk item dengan confidence > {MANUAL_APPROVE_MIN}\n\n"
                    f"Dipelajari: {count} item")
        return None

    def queue_report(self) -> str:
        pending = self.pending_items()
        if not pending:
            return "📋 Queue pembelajaran kosong. Semua response telah diproses."

        lines = [f"📋 *LEARNING QUEUE* ({len(pending)} pending)", ""]
        for i, item in enumerate(pending[:5], 1):
            lines.append(f"{i}. ID: {item['id']}")
            lines.append(f"   📝 Input: \"{item['input']}\"")
            lines.append(f"   💬 Response: \"{item['response'][:100]}...\"")
            lines.append(f"   📊 Confidence: {item.get('confidence', 0) * 100:.1f}%")
            lines.append("")
        if len(pending) > 5:
            lines.append(f"... dan {len(pending) - 5} item lainnya")
            lines.append("")
        lines += [
            "📝 Commands:",
            "• approve [id] - Setujui pembelajaran",
            "• reject [id] - Tolak pembelajaran",
            f"• auto learn - Auto-learn confidence > {int(MANUAL_APPROVE_MIN * 100)}%",
        ]
        return "\n".join(lines)

    def approve(self, raw_id: str) -> str:
        item_id = _parse_id(raw_id)
        item = self.store.get_record(QUEUE, item_id) if item_id is not None else None
        if not item:
            return f"❌ Item dengan ID {raw_id.strip()} tidak ditemukan."
        if item.get("status") == "learned":
            return f"⚠️ Item ID {item_id} sudah dipelajari sebelumnya."

        self._learn(item, verified=True)
        return f"✅ Item ID {item_id} berhasil dipelajari!\n\nInput: \"{item['input']}\"\nResponse: \"{item['response']}\""

    def reject(self, raw_id: str) -> str:
        item_id = _parse_id(raw_id)
        item = self.store.get_record(QUEUE, item_id) if item_id is not None else None
        if not item:
            return f"❌ Item dengan ID {raw_id.strip()} tidak ditemukan."

        self.store.update_record(QUEUE, item_id, {
            "status": "rejected",
            "rejected_at": datetime.now().isoformat(),
        })
        return f"❌ Item ID {item_id} ditolak dan tidak akan dipelajari."

    def cases_report(self) -> str:
        cases = self.store.all_records(CASES)
        if not cases:
            return "📂 Belum ada unknown cases yang tercatat."

        lines = [f"📂 *UNKNOWN CASES* ({len(cases)} total)", ""]
        for i, case in enumerate(cases[-10:], 1):
            if case.get("learned"):
                status = "✅ Learned"
            elif case.get("suitable"):
                status = "⏳ Pending"
            else:
                status = "❌ Filtered"
            lines.append(f"{i}. {status}")
            lines.append(f"   📝 \"{case.get('message', '')}\"")
            lines.append(f"   📊 Confidence: {case.get('confidence', 0) * 100:.1f}%")
            lines.append("")

        learned = sum(1 for c in cases if c.get("learned"))
        pending = sum(1 for c in cases if c.get("suitable") and not c.get("learned"))
        lines.append(f"📈 Stats: {learned} learned, {pending} pending")
        return "\n".join(lines)

    def stats(self) -> Dict[str, Any]:
        cases = self.store.all_records(CASES)
        total = len(cases)
        learned = sum(1 for c in cases if c.get("learned"))
        return {
            "total_unknown_cases": total,
            "learned_cases": learned,
            "suitable_cases": sum(1 for c in cases if c.get("suitable")),
            "queued_for_learning": len(self.pending_items()),
            "learning_rate": f"{learned / total * 100:.1f}%" if total else "0%",
        }
