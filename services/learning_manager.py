"""Owner teaching and learning-management commands"""

import logging
from datetime import datetime
from typing import Optional, Dict, Any
from config.settings import OWNER_NUMBER
from config.thresholds import OWNER_TEACHING_CONFIDENCE, MAX_CONVERSATION_LOG
from database.content_store import ContentStore
from services.content_filter import ContentFilter
from services.fallback_generator import FallbackGenerator
from services.intent_classifiers import normalize, is_owner, parse_teaching
from services.knowledge_store import KnowledgeStore
from services.safety_guard import SafetyGuard

logger = logging.getLogger(__name__)

OWNER_ONLY_TEXT = "Perintah ini hanya bisa digunakan oleh owner."
RESET_TEXT = "🧠 Learning data telah direset. Bot memulai dari awal."

INVALID_TEACHING_TEXT = (
    "❌ Format teaching tidak valid.\n\n"
    "Contoh yang aman:\n"
    "• \"ajari bot: halo -> Halo! Ada yang bisa saya bantu?\"\n"
    "• \"ingat ini: cara bayar -> Pembayaran bisa via QRIS, Dana, OVO\"\n"
    "• \"kalo ada yang nanya garansi, bilang sesuai ketentuan produk masing-masing\"\n\n"
    "⚠️ Hindari:\n"
    "• Info garansi/harga yang salah\n"
    "• Menyebut kompetitor\n"
    "• Bahasa tidak profesional"
)

HELP_TEXT = (
    "🎓 *CARA MENGAJARI BOT*\n\n"
    "📝 *Format Teaching:*\n"
    "• \"ajari bot: cara bayar -> Pembayaran via QRIS, Dana, OVO\"\n"
    "• \"kalo ada yang nanya error, katakan kirim screenshot dan nomor order\"\n"
    "• \"saat ditanya harga netflix, bilang mulai dari 20rb per bulan\"\n\n"
    "📊 *Commands:*\n"
    "• learning stats - Statistik pembelajaran\n"
    "• review queue - Lihat antrian pembelajaran\n"
    "• unknown cases - Lihat kasus tidak dikenal\n"
    "• auto learn - Proses otomatis confidence tinggi\n"
    "• approve [id] - Setujui pembelajaran\n"
    "• reject [id] - Tolak pembelajaran\n"
    "• reset learning - Hapus semua data pembelajaran\n\n"
    "💡 *Smart Learning:* Bot otomatis belajar dari jawaban AI yang berkualitas "
    "dan menyaring jawaban template."
)


def block_text(reason: str, issues) -> str:
    lines = ["🛡️ Pembelajaran ditolak untuk keamanan bisnis.", "", f"Alasan: {reason}"]
    if issues:
        lines += ["", "Issues:"] + [f"• {issue}" for issue in issues]
    lines += ["", "Bot hanya menerima pembelajaran yang aman dan sesuai business rules Vylozzone."]
    return "\n".join(lines)


class LearningManager:
    """Teaching pipeline: parse, safety guard, bot laws, knowledge store"""

    def __init__(self, knowledge: KnowledgeStore, safety_guard: SafetyGuard,
                 content_filter: ContentFilter, fallback: FallbackGenerator,
                 store: ContentStore, owner_number: str = OWNER_NUMBER):
        self.knowledge = knowledge
        self.safety_guard = safety_guard
        self.content_filter = content_filter
        self.fallback = fallback
        self.store = store
        self.owner_number = owner_number
        self.teaching_stats = {"attempts": 0, "learned": 0, "blocked": 0}

    def handle_command(self, command: str, sender: str) -> Optional[str]:
        """Learning commands; stats and help are open to everyone, the rest is owner-only"""
        cmd = normalize(command)

        if cmd in ("learning stats", "bot stats"):
            return self.stats_text()
        if cmd in ("learning help", "teach help"):
            return HELP_TEXT

        if not is_owner(sender, self.owner_number):
            return OWNER_ONLY_TEXT

        if cmd in ("reset learning", "clear memory"):
            self.knowledge.reset()
            return RESET_TEXT

        return self.fallback.handle_review_command(cmd)

    def teach(self, text: str, sender: str) -> str:
        """Learn an owner-taught pair, or explain why it was refused"""
        if not is_owner(sender, self.owner_number):
            return OWNER_ONLY_TEXT

        self.teaching_stats["attempts"] += 1
        teaching = parse_teaching(text)
        if teaching is None:
            return INVALID_TEACHING_TEXT

        safety = self.safety_guard.validate_teaching(teaching.input, teaching.response)
        if not safety.can_learn:
            self.teaching_stats["blocked"] += 1
            return block_text(safety.reason, safety.issues)

        validation = self.content_filter.validate_action("teach", f"{teaching.input} {teaching.response}")
        if not validation.allowed:
            self.teaching_stats["blocked"] += 1
            issues = [f"{v.law}: {v.rule} ({v.reason})" for v in validation.violations]
            return block_text(validation.block_reason, issues)

        self.knowledge.add(
            teaching.input,
            teaching.response,
            source="owner_teaching",
            confidence=OWNER_TEACHING_CONFIDENCE,
            verified=True,
        )
        self.teaching_stats["learned"] += 1
        logger.info(f"✓ Owner taught [{teaching.method}] \"{teaching.input}\"")

        return (
            "✅ Berhasil dipelajari dengan aman!\n\n"
            f"Input: \"{teaching.input}\"\n"
            f"Response: \"{teaching.response}\"\n"
            f"Safety Score: {safety.confidence * 100:.1f}%\n\n"
            "Bot akan mengingat ini untuk kedepannya."
        )

    def save_conversation(self, sender: str, message: str, response: str,
                          message_type: str = "text", route: Optional[str] = None):
        self.store.add_record("conversations", {
            "sender": sender,
            "message": message,
            "message_type": message_type,
            "response": response,
            "route": route,
            "timestamp": datetime.now().isoformat(),
        })
        self.store.trim_collection("conversations", MAX_CONVERSATION_LOG)

    def stats(self) -> Dict[str, Any]:
        return {
            "knowledge": self.knowledge.stats(),
            "conversations": self.store.count_records("conversations"),
            "fallback": self.fallback.stats(),
            "teaching": dict(self.teaching_stats),
        }

    def stats_text(self) -> str:
        stats = self.stats()
        fallback = stats["fallback"]
        return (
            "📊 *LEARNING STATISTICS*\n\n"
            f"🧠 *Knowledge Base:* {stats['knowledge']['total']} entries\n"
            f"💬 *Conversations:* {stats['conversations']} logged\n"
            f"🤔 *Unknown Cases:* {fallback['total_unknown_cases']}\n"
            f"📚 *Learned Cases:* {fallback['learned_cases']}\n"
            f"⏳ *Learning Queue:* {fallback['queued_for_learning']}\n"
            f"📈 *Learning Rate:* {fallback['learning_rate']}\n"
            f"🎓 *Owner Teaching:* {stats['teaching']['learned']} learned, {stats['teaching']['blocked']} blocked\n"
            f"🔄 *Status:* ✅ Ready"
        )
