"""Gemini fallback: law blocking, quality filtering, learning queue and review commands"""

import asyncio
import httpx
import pytest
from bot.gemini_client import (
    GeminiClient, GENERIC_MESSAGE, LIMIT_MESSAGE, NETWORK_MESSAGE, NOT_CONFIGURED_MESSAGE, SAFETY_MESSAGE,
    STATUS_MESSAGES, TIMEOUT_MESSAGE,
)
from services.fallback_generator import LAWS_BLOCKED_TEXT
from services.learning_manager import OWNER_ONLY_TEXT
from utils.error_handler import LLMError
from conftest import OWNER, DEFAULT_GEMINI_TEXT

QUESTION = "apakah bisa refund kalau berubah pikiran"

# Suitable but below the auto-learn threshold (confidence 0.65)
QUEUED_TEXT = (
    "Pembayaran di Vylozzone bisa lewat transfer bank atau QRIS, "
    "lalu kirim nomor order ke admin untuk dicek."
)


class TestFallbackRoute:
    def test_high_quality_reply_is_learned(self, context, route, gemini_reply):
        before = len(context.knowledge)
        reply = route(QUESTION)

        assert reply.route == "fallback"
        assert reply.source == "smart_gemini_filtered"
        assert reply.text == DEFAULT_GEMINI_TEXT
        assert len(context.knowledge) == before + 1
        assert context.knowledge.lookup(QUESTION).entry.source == "ai_auto_learned"

        prompt = gemini_reply["requests"][0]["contents"][0]["parts"][0]["text"]
        assert "customer service resmi Vylozzone" in prompt
        assert prompt.endswith(f"User: {QUESTION}\nAI:")

    def test_learned_reply_answers_the_next_time(self, route, gemini_reply):
        route(QUESTION)
        reply = route(QUESTION)
        assert reply.route == "learned"
        assert len(gemini_reply["requests"]) == 1

    def test_template_reply_is_sent_but_not_learned(self, context, route, gemini_reply):
        gemini_reply["text"] = "Silakan coba restart aplikasi."
        before = len(context.knowledge)

        reply = route(QUESTION)
        assert reply.source == "gemini_unfiltered"
        assert reply.text == "Silakan coba restart aplikasi."
        assert len(context.knowledge) == before

        cases = context.store.all_records("unknown_cases")
        assert cases[-1]["suitable"] is False
        assert cases[-1]["message"] == QUESTION

    def test_law_breaking_reply_is_replaced(self, context, route, gemini_reply):
        gemini_reply["text"] = "Netflix ori lebih murah di tempat lain kak"
        reply = route(QUESTION)

        assert reply.source == "laws_blocked_fallback"
        assert reply.text == LAWS_BLOCKED_TEXT
        assert context.store.all_records("unknown_cases")[-1]["reason"] == "bot_laws_violation"

    def test_llm_failure_returns_user_message(self, route, gemini_reply):
        gemini_reply["status"] = 429
        reply = route(QUESTION)
        assert reply.source == "llm_error"
        assert reply.text == LIMIT_MESSAGE


class TestLearningQueue:
    def test_medium_confidence_reply_waits_for_review(self, context, route, gemini_reply):
        gemini_reply["text"] = QUEUED_TEXT
        question = "apakah bisa bayar pakai ewallet"
        before = len(context.knowledge)

        reply = route(question)
        assert reply.source == "smart_gemini_filtered"
        assert len(context.knowledge) == before

        pending = context.fallback.pending_items()
        assert len(pending) == 1
        assert pending[0]["confidence"] == pytest.approx(0.65)

        queue = route("review queue", sender=OWNER)
        assert "(1 pending)" in queue.text

        approved = route(f"approve {pending[0]['id']}", sender=OWNER)
        assert "berhasil dipelajari" in approved.text
        assert context.fallback.pending_items() == []
        assert context.knowledge.lookup(question).entry.verified

    def test_reject(self, context, route, gemini_reply):
        gemini_reply["text"] = QUEUED_TEXT
        route("apakah bisa bayar pakai ewallet")
        item_id = context.fallback.pending_items()[0]["id"]

        reply = route(f"reject {item_id}", sender=OWNER)
        assert "ditolak" in reply.text
        assert context.store.get_record("learning_queue", item_id)["status"] == "rejected"

    def test_auto_learn(self, context, route, gemini_reply):
        gemini_reply["text"] = QUEUED_TEXT
        route("apakah bisa bayar pakai ewallet")

        reply = route("auto learn", sender=OWNER)
        assert "Dipelajari: 1 item" in reply.text

    def test_unknown_item(self, route):
        assert "tidak ditemukan" in route("approve 424242", sender=OWNER).text

    def test_review_commands_are_owner_only(self, route):
        assert route("review queue").text == OWNER_ONLY_TEXT

    def test_cases_report(self, route, gemini_reply):
        gemini_reply["text"] = "Silakan coba restart aplikasi."
        route(QUESTION)
        report = route("unknown cases", sender=OWNER).text
        assert "UNKNOWN CASES" in report
        assert "❌ Filtered" in report


class TestGeminiClient:
    def _client(self, handler, api_key="test-key"):
        return GeminiClient(api_key=api_key, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    def test_missing_api_key(self):
        client = self._client(lambda request: httpx.Response(200, json={}), api_key="")
        with pytest.raises(LLMError) as excinfo:
            asyncio.run(client.generate("halo"))
        assert excinfo.value.user_message == NOT_CONFIGURED_MESSAGE

    def test_safety_finish_reason(self):
        client = self._client(lambda request: httpx.Response(200, json={
            "candidates": [{"finishReason": "SAFETY", "content": {"parts": []}}]
        }))
        with pytest.raises(LLMError) as excinfo:
            asyncio.run(client.generate("halo"))
        assert excinfo.value.user_message == SAFETY_MESSAGE

    def test_request_shape(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": " ok "}]}}]})

        client = self._client(handler)
        assert asyncio.run(client.generate("x" * 5000)) == "ok"
        assert ":generateContent?key=test-key" in seen["url"]
        assert len(client.build_prompt("x" * 5000)) < 2100

    @pytest.mark.parametrize("status, expected", [
        (400, STATUS_MESSAGES[400]),
        (401, "API key tidak valid. Silakan periksa konfigurasi API key."),
        (403, LIMIT_MESSAGE),
        (429, LIMIT_MESSAGE),
        (500, "Server Gemini sedang bermasalah. Silakan coba lagi dalam beberapa menit."),
        (503, STATUS_MESSAGES[500]),
        (504, "Terjadi kesalahan server (504). Silakan coba lagi nanti."),
    ])
    def test_status_codes_map_to_messages(self, status, expected):
        client = self._client(lambda request: httpx.Response(status, json={"error": {"message": "x"}}))
        with pytest.raises(LLMError) as excinfo:
            asyncio.run(client.generate("halo"))
        assert excinfo.value.user_message == expected
        assert excinfo.value.details == {"status_code": status}

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        with pytest.raises(LLMError) as excinfo:
            asyncio.run(self._client(handler).generate("halo"))
        assert excinfo.value.user_message == TIMEOUT_MESSAGE

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(LLMError) as excinfo:
            asyncio.run(self._client(handler).generate("halo"))
        assert excinfo.value.user_message == NETWORK_MESSAGE

    def test_invalid_json_body(self):
        client = self._client(lambda request: httpx.Response(200, content=b"<html>oops</html>"))
        with pytest.raises(LLMError) as excinfo:
            asyncio.run(client.generate("halo"))
        assert excinfo.value.user_message == GENERIC_MESSAGE
