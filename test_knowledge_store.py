"""Knowledge store, response quality filter and product sheets"""

import os
import pytest
from database.content_store import ContentStore
from services.knowledge_store import KnowledgeStore, similarity
from services.product_catalog import ProductCatalog, parse_sheet
from services.response_filter import ResponseFilter, formalize
from utils.error_handler import ContentStoreError

FAQ = [
    {"question": "Cara bayar?", "keyword": ["metode pembayaran", "qris"],
     "response": ["Pembayaran via QRIS atau transfer bank ya Kak."]},
]
SOP = [
    {"title": "Login", "trigger": "gagal login, akun error",
     "response": ["Kirim nomor order dan screenshot error ya Kak, tim kami bantu sampai selesai."]},
]


@pytest.fixture
def store(tmp_path):
    content_store = ContentStore(f"sqlite:///{tmp_path / 'test.db'}", str(tmp_path))
    yield content_store
    content_store.close()


class TestKnowledgeStore:
    def test_seed_once_from_faq_and_sop(self, store):
        knowledge = KnowledgeStore(store)
        assert knowledge.seed_from(FAQ, SOP) == 4
        assert knowledge.seed_from(FAQ, SOP) == 0

        stats = knowledge.stats()
        assert stats["total"] == 4
        assert stats["by_source"]["faq_seed"] == 2
        assert stats["by_source"]["sop_seed"] == 2
        assert all(e.confidence == 0.8 and e.verified for e in knowledge.entries)

    def test_lookup_requires_score_above_threshold(self, store):
        knowledge = KnowledgeStore(store)
        knowledge.add("cara bayar", "transfer ke BCA", source="owner_teaching", confidence=1.0)

        match = knowledge.lookup("Cara Bayar")
        assert match.entry.response == "transfer ke BCA"
        assert match.score == 1.0

        # 0.6 * 2/4 + 0.4 * 2/4 = 0.5
        assert similarity("cara bayar pakai qris", "cara bayar") == pytest.approx(0.5)
        assert knowledge.lookup("cara bayar pakai qris", 0.6) is None

    def test_same_input_updates_existing_entry(self, store):
        knowledge = KnowledgeStore(store)
        knowledge.add("cara bayar", "transfer ke BCA", source="ai_auto_learned", confidence=0.7)
        entry = knowledge.add("Cara bayar", "QRIS atau transfer", source="owner_teaching", confidence=0.6)

        assert len(knowledge) == 1
        assert entry.response == "QRIS atau transfer"
        assert entry.confidence == 0.7
        assert entry.source == "reinforced"

    def test_reinforce_caps_at_one(self, store):
        knowledge = KnowledgeStore(store)
        entry = knowledge.add("garansi", "30 hari", source="owner_teaching", confidence=0.98)

        knowledge.reinforce(entry.id)
        assert entry.confidence == 1.0
        assert entry.usage_count == 1
        assert knowledge.reinforce(999999) is None

    def test_entries_survive_reload(self, store):
        knowledge = KnowledgeStore(store)
        knowledge.add("cara order", "Order lewat web ya Kak", source="owner_teaching", confidence=1.0)

        reloaded = KnowledgeStore(store)
        assert len(reloaded) == 1
        assert reloaded.lookup("cara order").entry.source == "owner_teaching"

    def test_unknown_source_is_rejected(self, store):
        with pytest.raises(ValueError):
            KnowledgeStore(store).add("a b", "c d", source="guess", confidence=0.5)

    def test_reset(self, store):
        knowledge = KnowledgeStore(store)
        knowledge.seed_from(FAQ, SOP)
        knowledge.reset()
        assert len(knowledge) == 0
        assert store.count_records("knowledge_base") == 0

    def test_oldest_entries_are_dropped_past_the_cap(self, store, monkeypatch):
        monkeypatch.setattr("services.knowledge_store.MAX_KNOWLEDGE_ENTRIES", 3)
        knowledge = KnowledgeStore(store)
        for i in range(5):
            knowledge.add(f"pertanyaan nomor {i}", f"jawaban {i}", source="owner_teaching", confidence=0.9)

        assert [e.input for e in knowledge.entries] == [f"pertanyaan nomor {i}" for i in (2, 3, 4)]
        stored = [r["input"] for r in store.all_records("knowledge_base")]
        assert sorted(stored) == [f"pertanyaan nomor {i}" for i in (2, 3, 4)]
        assert len(KnowledgeStore(store)) == 3


class TestResponseFilter:
    def test_template_reply_is_not_learned(self, store):
        result = ResponseFilter(store).filter("aplikasi error", "Silakan coba restart aplikasi.")
        assert not result.should_learn
        assert "template_response" in result.issues
        assert result.processed is None

    def test_specific_reply_is_learned(self, store):
        text = (
            "Untuk refund, Kak bisa langsung chat admin Vylozzone dengan kirim nomor order "
            "dan screenshot pembayaran ya. Tim kami akan proses sesuai kebijakan garansi."
        )
        result = ResponseFilter(store).filter("bisa refund?", text)
        assert result.should_learn
        assert result.issues == []
        assert result.confidence > 0.7

    def test_contradiction_with_official_faq(self, store):
        store.replace_collection("faq", FAQ)
        response_filter = ResponseFilter(store)

        official = response_filter.contradicts_official("metode pembayaran apa saja", "Bisa bayar pakai pulsa saja")
        assert official == "Pembayaran via QRIS atau transfer bank ya Kak."
        assert response_filter.process("metode pembayaran apa saja", "Bisa bayar pakai pulsa saja") == official

    def test_formalize(self):
        assert formalize("gak bisa, udah dicoba") == "tidak bisa, sudah dicoba"


class TestProductCatalog:
    SHEET = (
        "*NETFLIX PREMIUM*\n\n"
        "1 Bulan : 25k\n"
        "3 Bulan : 70k (23k/bulan)\n\n"
        "Garansi 30 hari\n"
        "✅ Kualitas UHD 4K\n"
        "Note: max 1 device per profile\n"
    )

    def test_parse_sheet(self):
        sheet = parse_sheet(self.SHEET, "netflix")
        assert [p.price for p in sheet.packages] == ["25k", "70k"]
        assert sheet.packages[1].total == "23k/bulan"
        assert sheet.garansi == "30 hari"
        assert sheet.features == ["Kualitas UHD 4K"]
        assert sheet.notes == ["Note: max 1 device per profile"]

    def test_info_by_type(self, store):
        store.save_product_sheet("netflix", self.SHEET)
        catalog = ProductCatalog(store)

        assert catalog.find("netflix harga berapa") == "netflix"
        assert "25k" in catalog.info("netflix", "harga")
        assert catalog.info("netflix", "garansi") == "🛡️ Garansi Netflix: 30 hari"
        assert catalog.info("netflix", "fitur").startswith("✨ Fitur Netflix:")
        assert catalog.info("disney") is None

    def test_product_names_are_validated(self, store):
        with pytest.raises(ContentStoreError):
            store.save_product_sheet("../etc/passwd", "x")
        assert not os.path.exists(os.path.join(store.data_dir, "etc"))
