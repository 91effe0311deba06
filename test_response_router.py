"""End-to-end routing through ResponseRouter.route_message"""

import os
import pytest
from config.settings import BOT_NAME
from services.hybrid_handler import CATALOG_REPLY
from services.learning_manager import OWNER_ONLY_TEXT
from services.response_router import (
    Route, InboundMessage, GREETING_TEMPLATES, IMAGE_REPLY_TEXT, INVALID_INPUT_TEXT, TOO_SHORT_TEXT,
    NO_RESPONSE_TEXT, SAFETY_BLOCKED_TEXT, SYSTEM_ERROR_TEXT, UNKNOWN_TOOL_TEXT,
)
from services.security import DAILY_LIMIT_TEXT
from conftest import OWNER, CUSTOMER


class TestRouteSelection:
    def test_routes_are_in_priority_order(self, context):
        routes = context.router.routes
        assert [entry.priority for entry in routes] == list(range(1, 10))
        assert routes[0].route == Route.IMAGE
        assert routes[-1].route == Route.FALLBACK

    @pytest.mark.parametrize("text,sender,message_type,expected", [
        ("netflix", CUSTOMER, "image", Route.IMAGE),
        ("emergency stop", OWNER, "text", Route.LAW_COMMANDS),
        ("dashboard", OWNER, "text", Route.OWNER_TOOLS),
        ("learning stats", CUSTOMER, "text", Route.LEARNING),
        ("ajari bot: a b -> c d", OWNER, "text", Route.LEARNING),
        ("adminhelp", OWNER, "text", Route.ADMIN),
        ("halo", OWNER, "text", Route.SYSTEM),
        ("netflix harga berapa", CUSTOMER, "text", Route.HYBRID),
        ("qris", CUSTOMER, "text", Route.LEARNED),
        ("emergency stop", CUSTOMER, "text", Route.FALLBACK),
        ("dashboard", CUSTOMER, "text", Route.FALLBACK),
    ])
    def test_first_matching_route_wins(self, context, text, sender, message_type, expected):
        message = InboundMessage(text=text, sender_id=sender, message_type=message_type)
        assert context.router.select_route(message).route == expected


class TestCustomerMessages:
    def test_product_price_question_uses_hybrid(self, route):
        reply = route("netflix harga berapa")
        assert reply.route == "hybrid"
        assert reply.source == "hybrid_handler"
        assert "25k" in reply.text

    def test_greeting(self, route):
        reply = route("halo")
        assert reply.route == "system"
        assert reply.text in [t.format(bot=BOT_NAME) for t in GREETING_TEMPLATES]

    def test_menu_then_cache(self, route):
        first = route("menu")
        assert first.text == CATALOG_REPLY
        assert not first.cached

        second = route("menu")
        assert second.route == "cache"
        assert second.cached
        assert second.text == CATALOG_REPLY

    def test_daily_limit_remaining(self, context, route):
        reply = route("limit")
        assert reply.text == f"_Sisa limit harian Anda:_ {context.security.daily_limit - 1}"
        assert route("limit", sender=OWNER).text == "_Admin: Unlimited_"

    def test_seeded_faq_keyword_is_learned_knowledge(self, route):
        reply = route("qris")
        assert reply.route == "learned"
        assert reply.text.startswith("Pembayaran bisa via QRIS")

    def test_sop_answer_through_hybrid(self, route):
        reply = route("info detail akun error")
        assert reply.route == "hybrid"
        assert "nomor order" in reply.text

    def test_image(self, route):
        reply = route("", message_type="image")
        assert reply.route == "image"
        assert reply.text == IMAGE_REPLY_TEXT

    def test_empty_and_short_input(self, route):
        assert route("   ").text == INVALID_INPUT_TEXT
        short = route("p")
        assert short.text == TOO_SHORT_TEXT
        assert short.route == "preprocessing"

    def test_learning_stats_are_open_but_reset_is_not(self, context, route):
        assert "LEARNING STATISTICS" in route("learning stats").text
        assert route("reset learning").text == OWNER_ONLY_TEXT
        assert len(context.knowledge) > 0

    def test_customer_cannot_teach(self, context, route):
        reply = route("ajari bot: cara bayar -> transfer ke BCA")
        assert reply.route == "fallback"
        assert context.knowledge.lookup("cara bayar") is None
        assert all(e.source != "owner_teaching" for e in context.knowledge.entries)

    def test_conversation_is_logged(self, context, route):
        route("halo")
        conversations = context.store.all_records("conversations")
        assert conversations[-1]["message"] == "halo"
        assert conversations[-1]["route"] == "system"


class TestOwnerTeaching:
    def test_teaching_adds_knowledge(self, context, route):
        before = len(context.knowledge)
        reply = route("ajari bot: cara bayar -> transfer ke BCA", sender=OWNER)

        assert reply.route == "learning"
        assert reply.source == "owner_teaching"
        assert reply.text.startswith("✅ Berhasil dipelajari dengan aman!")
        assert len(context.knowledge) == before + 1

        entry = context.knowledge.lookup("cara bayar").entry
        assert entry.source == "owner_teaching"
        assert entry.confidence == 1.0
        assert entry.response == "transfer ke BCA"

    def test_natural_phrasing_is_taught_not_sent_to_gemini(self, context, route, gemini_reply):
        reply = route("kalau ada yang nanya jam buka, bilang setiap hari jam 8 pagi", sender=OWNER)

        assert reply.route == "learning"
        assert reply.source == "owner_teaching"
        assert gemini_reply["requests"] == []
        assert context.knowledge.lookup("jam buka").entry.response == "setiap hari jam 8 pagi"

    def test_taught_answer_is_used(self, route):
        route("ajari bot: cara bayar -> transfer ke BCA", sender=OWNER)
        reply = route("cara bayar")
        assert reply.route == "learned"
        assert reply.source == "learning_system"
        assert reply.text == "transfer ke BCA"

    def test_used_answer_is_reinforced(self, context, route):
        entry = context.knowledge.add("cara bayar", "transfer ke BCA", source="owner_teaching", confidence=0.9)
        assert route("cara bayar").route == "learned"
        assert entry.usage_count == 1
        assert entry.confidence > 0.9

    def test_blocked_answer_is_not_reinforced(self, context, route):
        entry = context.knowledge.add("cara bayar", "beli di tempat lain aja", source="owner_teaching",
                                      confidence=0.9)
        reply = route("cara bayar")

        assert reply.route == "learned"
        assert reply.text == SAFETY_BLOCKED_TEXT
        assert entry.usage_count == 0
        assert entry.confidence == 0.9

    def test_unsafe_teaching_is_refused(self, context, route):
        before = len(context.knowledge)
        reply = route("ajari bot: netflix ori -> ready kak", sender=OWNER)

        assert reply.text.startswith("🛡️ Pembelajaran ditolak untuk keamanan bisnis.")
        assert "netflix ori" in reply.text
        assert len(context.knowledge) == before

    def test_malformed_teaching(self, route):
        reply = route("ajari bot tolong", sender=OWNER)
        assert reply.text.startswith("❌ Format teaching tidak valid.")


class TestEmergencyStop:
    def test_stop_blocks_customer_replies_until_resume(self, context, route):
        assert route("emergency stop", sender=OWNER).route == "law_commands"
        validation = context.content_filter.validate_action("response", "Halo Kak")
        assert "EMERGENCY_STOP_ACTIVE" in validation.rules

        blocked = route("halo")
        assert blocked.text == SAFETY_BLOCKED_TEXT
        assert blocked.source == "safety_blocked"

        # command routes are not re-filtered
        assert "BOT FUNDAMENTAL LAWS STATUS" in route("law status", sender=OWNER).text

        resumed = route("emergency resume", sender=OWNER)
        assert resumed.text == "✅ Emergency stop deactivated - Bot operations resumed."
        assert route("menu").text == CATALOG_REPLY

    def test_cached_replies_are_not_served_during_stop(self, route):
        assert route("menu").text == CATALOG_REPLY
        route("emergency stop", sender=OWNER)
        reply = route("menu")
        assert not reply.cached
        assert reply.text == SAFETY_BLOCKED_TEXT


class TestOwnerTools:
    def test_dashboard(self, route):
        reply = route("dashboard", sender=OWNER)
        assert reply.route == "owner_tools"
        assert reply.source == "analytics_commands"
        assert "ANALYTICS DASHBOARD" in reply.text

    def test_each_manager_answers_its_commands(self, route):
        assert route("performance stats", sender=OWNER).source == "performance_commands"
        assert route("security status", sender=OWNER).source == "security_commands"
        assert route("monitoring status", sender=OWNER).source == "monitoring_commands"
        assert route("cleanup status", sender=OWNER).source == "cleanup_commands"
        assert route("backup status", sender=OWNER).source == "backup_commands"

    def test_unknown_tool_command(self, route):
        reply = route("stats kemarin", sender=OWNER)
        assert reply.text == UNKNOWN_TOOL_TEXT


class TestGateAndFailures:
    def test_spam_is_dropped_silently(self, route):
        assert route("CLICK HERE FREE MONEY!!! WINNER") is None

    def test_blacklisted_sender_is_dropped(self, context, route):
        context.store.add_record("blacklist", {"number": CUSTOMER, "reason": "spam"})
        assert route("halo") is None
        assert route("halo", sender=OWNER) is not None

    def test_daily_limit_reply(self, context, route):
        context.security.daily_limit = 1
        assert route("halo").route == "system"
        reply = route("menu")
        assert reply.route == "security"
        assert reply.text == DAILY_LIMIT_TEXT

    def test_handler_crash_becomes_apology(self, context, route, monkeypatch):
        def boom(text):
            raise RuntimeError("broken sheet")

        monkeypatch.setattr(context.hybrid, "handle", boom)
        reply = route("netflix harga berapa")
        assert reply.route == "error"
        assert reply.text == SYSTEM_ERROR_TEXT
        assert context.router.stats["errors"] == 1

    def test_empty_handler_result(self, context, route, monkeypatch):
        monkeypatch.setattr(context.hybrid, "handle", lambda text: None)
        reply = route("netflix harga berapa")
        assert reply.route == "hybrid"
        assert reply.text == NO_RESPONSE_TEXT


class TestHandPlacedSheets:
    def _place(self, context, filename):
        path = os.path.join(context.store.product_dir, filename)
        with open(path, "w", encoding="utf-8") as f:
            f.write("*ALIGHT MOTION PRO*\n\n1 Bulan : 15k\n")

    def test_unusable_filenames_are_skipped(self, context):
        self._place(context, "Alight Motion.txt")
        self._place(context, "Spotify.txt")
        names = context.catalog.names()
        assert "Alight Motion" not in names
        assert "Spotify" not in names
        assert "netflix" in names

    def test_sheet_with_invalid_name_is_missing_not_an_error(self, context):
        assert context.catalog.sheet("Alight Motion") is None
        assert context.catalog.info("Alight Motion", "harga") is None

    def test_customer_reply_survives_bad_sheet(self, context, route):
        self._place(context, "Alight Motion.txt")
        reply = route("alight motion harga berapa")
        assert reply.route != "error"
        assert reply.text != SYSTEM_ERROR_TEXT
        assert context.router.stats["errors"] == 0

    def test_backup_survives_bad_sheet(self, context):
        self._place(context, "Alight Motion.txt")
        manifest = context.backup.create()
        assert manifest.backup_type == "full"
        assert not any("Alight Motion" in f for f in manifest.files)
