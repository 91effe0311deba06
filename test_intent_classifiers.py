"""Keyword, regex and fuzzy classifiers"""

import pytest
from services.intent_classifiers import (
    normalize, sender_number, is_owner, hybrid_confidence, detect_products, detect_info_type,
    detect_mood, match_law_command, match_analytics_command, match_learning_command,
    match_admin_command, match_attendance_command, is_system_command, is_teaching_command,
    parse_teaching, similarity, fuzzy_find, fuzzy_product, contains_word, mentions,
)
from conftest import OWNER


class TestNormalization:
    def test_normalize_collapses_whitespace_and_case(self):
        assert normalize("  Halo   BOT \n") == "halo bot"
        assert normalize(None) == ""

    def test_sender_number_strips_whatsapp_suffix(self):
        assert sender_number("6281234567890@s.whatsapp.net") == "6281234567890"
        assert sender_number("6281234567890:12@s.whatsapp.net") == "6281234567890"
        assert sender_number(None) == ""

    def test_owner_matches_with_or_without_suffix(self):
        assert is_owner(OWNER, OWNER)
        assert is_owner(f"{OWNER}@s.whatsapp.net", OWNER)
        assert not is_owner("6281234567890", OWNER)
        assert not is_owner(OWNER, "")

    def test_word_matching(self):
        assert contains_word("versi mod ada?", "mod")
        assert not contains_word("moderator online", "mod")
        assert mentions("netflixnya ready?", "netflix")


class TestHybridScoring:
    def test_product_and_keywords_cap_at_one(self):
        assert hybrid_confidence("netflix harga berapa") == 1.0

    def test_product_alone_scores_above_routing_threshold(self):
        assert hybrid_confidence("Netflix") == pytest.approx(0.8)

    def test_unrelated_text_scores_zero(self):
        assert hybrid_confidence("apa kabar") == 0.0
        assert hybrid_confidence("") == 0.0

    def test_detect_products_keeps_declaration_order(self):
        assert detect_products("youtube sama netflix") == ["netflix", "youtube"]

    def test_info_type(self):
        assert detect_info_type("garansi netflix berapa lama") == "garansi"
        assert detect_info_type("fitur capcut apa aja") == "fitur"
        assert detect_info_type("netflix") == "harga"

    def test_mood(self):
        assert detect_mood("kok lama banget sih") == "marah"
        assert detect_mood("kenapa akun belum dikirim") == "marah"
        assert detect_mood("makasih kak") == "positif"
        assert detect_mood("gabut nih") == "oot"
        assert detect_mood("netflix ready?") == "netral"


class TestCommandVocabularies:
    def test_law_commands(self):
        assert match_law_command("Emergency Stop") == "emergency stop"
        assert match_law_command("modify law 1") == "modify law"
        assert match_law_command("emergency") is None

    def test_owner_tool_commands_match_prefixes(self):
        assert match_analytics_command("dashboard") == "dashboard"
        assert match_analytics_command("performance stats") == "performance stats"
        assert match_analytics_command("backup verify full-1") == "backup verify"
        assert match_analytics_command("dashboardku") is None

    def test_learning_commands(self):
        assert match_learning_command("learning stats") == "learning stats"
        assert match_learning_command("approve 12") == "approve"
        assert match_learning_command("approve") is None
        assert match_learning_command("reject 3 4") is None

    def test_admin_and_attendance_commands(self):
        assert match_admin_command("addbuyer John netflix") == "addbuyer"
        assert match_admin_command("tambah buyer") is None
        assert match_attendance_command("istirahat") == "break"
        assert match_attendance_command("masuk") == "back"
        assert match_attendance_command("status absen") == "status"
        assert match_attendance_command("mulai kerja dong") is None

    def test_system_commands_are_exact(self):
        assert is_system_command("Menu")
        assert is_system_command("halo")
        assert not is_system_command("halo kak, mau tanya")


class TestTeachingParser:
    def test_explicit_teaching(self):
        teaching = parse_teaching("ajari bot: cara bayar -> transfer ke BCA")
        assert teaching.input == "cara bayar"
        assert teaching.response == "transfer ke BCA"
        assert teaching.method == "explicit"

    def test_when_asked_phrasing(self):
        teaching = parse_teaching("kalo ada yang nanya garansi, bilang 30 hari untuk streaming")
        assert teaching.input == "garansi"
        assert teaching.response == "30 hari untuk streaming"
        assert teaching.method == "natural_when_asked"

    def test_swapped_phrasing_puts_question_first(self):
        teaching = parse_teaching("bilang aja 30 hari untuk garansi")
        assert teaching.input == "garansi"
        assert teaching.response == "30 hari"

    def test_not_a_teaching_message(self):
        assert parse_teaching("halo") is None
        assert parse_teaching("") is None
        assert is_teaching_command("ajari bot: a -> b")
        assert not is_teaching_command("netflix berapa")

    @pytest.mark.parametrize("text", [
        "ajari bot: cara bayar -> transfer ke BCA",
        "jawaban untuk jam buka adalah setiap hari",
        "kalo ada yang nanya garansi, bilang 30 hari",
        "kalau ada yang nanya garansi, bilang 30 hari",
        "kalau ditanya garansi, jawab 30 hari",
        "kalo ditanya garansi, jawab 30 hari",
        "saat ditanya garansi, bilang 30 hari",
        "langsung jawab harga dengan cek katalog",
        "bilang aja 30 hari untuk garansi",
        "responnya salah harusnya 30 hari",
        "bales dengan siap kak untuk makasih",
        "jangan nanya balik garansi, langsung 30 hari",
    ])
    def test_every_parsable_phrasing_is_a_teaching_command(self, text):
        assert parse_teaching(text) is not None
        assert is_teaching_command(text)


class TestFuzzyMatching:
    def test_similarity_is_case_insensitive(self):
        assert similarity("Netflix", "netflix") == 1.0
        assert similarity("", "netflix") == 0.0

    def test_fuzzy_find_prefers_containment(self):
        records = [
            {"id": 1, "keyword": ["cara order"]},
            {"id": 2, "keyword": ["metode pembayaran", "qris"]},
        ]
        assert fuzzy_find("mau tanya metode pembayaran dong", records, "keyword")["id"] == 2
        assert fuzzy_find("xyz", records, "keyword") is None

    def test_fuzzy_find_accepts_comma_separated_keywords(self):
        records = [{"id": 7, "trigger": "gagal login, akun error"}]
        assert fuzzy_find("akun error terus", records, "trigger")["id"] == 7

    def test_fuzzy_product_handles_typos(self):
        assert fuzzy_product("netflx") == "netflix"
        assert fuzzy_product("mau disney dong") == "disney"
        assert fuzzy_product("qwerty") is None
