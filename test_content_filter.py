"""Bot laws, the absolute gate and the teaching safety guard"""

from services.content_filter import ContentFilter, EMERGENCY_STOP_RULE
from services.safety_guard import SafetyGuard
from conftest import OWNER, CUSTOMER


class TestBotLaws:
    def setup_method(self):
        self.content_filter = ContentFilter(OWNER)

    def test_clean_reply_is_allowed(self):
        result = self.content_filter.validate_action("response", "Halo Kak, ada yang bisa dibantu?")
        assert result.allowed
        assert result.violations == []
        assert result.laws_applied == ["BUSINESS_INTEGRITY", "USER_SAFETY_RESPECT", "LEARNING_COMPLIANCE"]

    def test_competitor_mention_stops_at_first_law(self):
        result = self.content_filter.validate_action("response", "Netflix ori lebih murah di sana")
        assert not result.allowed
        assert result.law == "BUSINESS_INTEGRITY"
        assert result.rules == ["NO_COMPETITOR_MENTION"]
        assert result.block_reason.startswith("FIRST LAW VIOLATION")
        assert result.severity == "critical"
        assert result.laws_applied == []

    def test_wrong_pricing(self):
        result = self.content_filter.validate_action("response", "Akun ini gratis kok")
        assert result.rules == ["ACCURATE_PRICING_INFO"]

    def test_illegal_terms_match_whole_words_only(self):
        assert not self.content_filter.validate_action("response", "Ada versi mod juga").allowed
        assert self.content_filter.validate_action("response", "Moderator kami siap bantu").allowed

    def test_troubleshooting_reply_must_ask_for_order_and_screenshot(self):
        text = "Kalau akun error silakan tunggu sebentar lalu coba lagi ya, semuanya akan beres."
        result = self.content_filter.validate_action("response", text)
        assert result.rules == ["REQUIRE_ORDER_SCREENSHOT"]
        assert result.severity == "medium"

        fixed = text + " Kirim nomor order dan screenshot ya."
        assert self.content_filter.validate_action("response", fixed).allowed

    def test_toxic_language_is_second_law(self):
        result = self.content_filter.validate_action("response", "dasar bodoh")
        assert result.law == "USER_SAFETY_RESPECT"
        assert result.rules == ["NO_TOXIC_LANGUAGE"]
        assert result.block_reason.startswith("LAW VIOLATION")

    def test_learning_contradiction_is_third_law(self):
        result = self.content_filter.validate_action(
            "learn", "cara order lewat web", {"contradicts_official": True}
        )
        assert result.law == "LEARNING_COMPLIANCE"
        assert result.rules == ["NO_CONTRADICTION_WITH_OFFICIAL"]

    def test_contradiction_flag_ignored_for_replies(self):
        result = self.content_filter.validate_action(
            "response", "cara order lewat web", {"contradicts_official": True}
        )
        assert result.allowed

    def test_violations_are_logged(self):
        assert self.content_filter.violation_report() == "✅ No law violations recorded."
        self.content_filter.validate_action("response", "beli di tempat lain aja")
        assert len(self.content_filter.violation_log) == 1
        assert "BUSINESS_INTEGRITY" in self.content_filter.violation_report()
        assert self.content_filter.stats()["critical_violations"] == 1

    def test_violation_log_keeps_only_the_newest(self, monkeypatch):
        monkeypatch.setattr("services.content_filter.MAX_VIOLATION_LOG", 3)
        content_filter = ContentFilter(OWNER)
        for i in range(5):
            content_filter.validate_action("response", f"beli di tempat lain aja {i}")

        assert [v["content"] for v in content_filter.violation_log] == [
            f"beli di tempat lain aja {i}" for i in (2, 3, 4)
        ]
        assert content_filter.stats()["violations"] == 3


class TestEmergencyStop:
    def setup_method(self):
        self.content_filter = ContentFilter(OWNER)

    def test_emergency_stop_blocks_everything(self):
        self.content_filter.handle_owner_command("emergency stop", OWNER)
        result = self.content_filter.validate_action("response", "Halo Kak")
        assert not result.allowed
        assert result.rules == [EMERGENCY_STOP_RULE]

    def test_resume(self):
        assert self.content_filter.handle_owner_command("emergency stop", OWNER).startswith("🚨 EMERGENCY STOP")
        reply = self.content_filter.handle_owner_command("emergency resume", OWNER)
        assert reply == "✅ Emergency stop deactivated - Bot operations resumed."
        assert self.content_filter.validate_action("response", "Halo Kak").allowed

    def test_only_owner_can_stop(self):
        reply = self.content_filter.handle_owner_command("emergency stop", CUSTOMER)
        assert reply == "Perintah law management hanya untuk owner."
        assert not self.content_filter.emergency_stop

    def test_laws_cannot_be_modified(self):
        reply = self.content_filter.handle_owner_command("modify law", OWNER)
        assert "CANNOT BE MODIFIED" in reply

    def test_law_status_shows_emergency_state(self):
        assert "🟢 INACTIVE" in self.content_filter.law_status()
        self.content_filter.activate_emergency_stop()
        assert "🔴 ACTIVE" in self.content_filter.law_status()


class TestAbsoluteValidation:
    def test_blocks_hardcoded_terms(self):
        content_filter = ContentFilter(OWNER)
        result = content_filter.absolute_validation("response", "Akun gratis untuk Kakak")
        assert not result.allowed
        assert "gratis" in result.reason

    def test_independent_of_emergency_flag(self):
        content_filter = ContentFilter(OWNER)
        content_filter.activate_emergency_stop()
        assert content_filter.absolute_validation("response", "Halo Kak").allowed


class TestSafetyGuard:
    def setup_method(self):
        self.guard = SafetyGuard()

    def test_clean_pair_can_be_learned(self):
        result = self.guard.validate_teaching("cara bayar", "transfer ke BCA")
        assert result.can_learn
        assert result.reason == ""

    def test_business_rule_violation(self):
        result = self.guard.validate_teaching("netflix ori", "ready kak")
        assert not result.can_learn
        assert result.reason == "Melanggar business rules: netflix ori"
        assert "business_violation" in result.issues

    def test_toxic_response(self):
        result = self.guard.validate_teaching("halo", "dasar goblok")
        assert not result.can_learn
        assert result.reason == "Mengandung konten toxic atau tidak profesional"

    def test_single_words_match_whole_words(self):
        check = self.guard.check_content("detail produk netflix")
        assert check.safe
        assert check.issues == []
