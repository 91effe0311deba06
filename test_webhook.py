"""Webhook endpoints and the admin panel API through FastAPI's TestClient"""

import pytest
from fastapi.testclient import TestClient
import api.webhook
from api.webhook import create_app, parse_message
from services.hybrid_handler import CATALOG_REPLY
from conftest import CUSTOMER, ADMIN_PASSWORD

AUTH = {"X-Admin-Password": ADMIN_PASSWORD}


def webhook_body(*messages):
    return {
        "object": "whatsapp_business_account",
        "entry": [{"changes": [{"value": {"messaging_product": "whatsapp", "messages": list(messages)}}]}],
    }


def text_message(body, message_id="wamid.in1", sender=CUSTOMER):
    return {"from": sender, "id": message_id, "timestamp": "1723700000", "type": "text", "text": {"body": body}}


@pytest.fixture
def client(context):
    with TestClient(create_app(context, start_scheduler=False)) as test_client:
        yield test_client


class TestWebhook:
    def test_health(self, client):
        response = client.get("/")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["health"] == "healthy"
        assert body["emergency_stop"] is False

    def test_verification(self, client, monkeypatch):
        monkeypatch.setattr(api.webhook, "WEBHOOK_VERIFY_TOKEN", "verify-me")
        params = {"hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "12345"}

        response = client.get("/webhook", params=params)
        assert response.status_code == 200
        assert response.text == "12345"

        params["hub.verify_token"] = "wrong"
        rejected = client.get("/webhook", params=params)
        assert rejected.status_code == 403
        assert rejected.json() == {"error": "http_error", "message": "Verification failed"}

    def test_message_is_read_and_answered(self, client, sent_messages):
        response = client.post("/webhook", json=webhook_body(text_message("menu")))
        assert response.json() == {"status": "ok"}

        read, reply = sent_messages
        assert read["status"] == "read"
        assert read["message_id"] == "wamid.in1"
        assert reply["to"] == CUSTOMER
        assert reply["text"]["body"] == CATALOG_REPLY
        assert reply["context"] == {"message_id": "wamid.in1"}

    def test_status_updates_are_ignored(self, client, sent_messages):
        body = {"entry": [{"changes": [{"value": {"statuses": [{"status": "delivered"}]}}]}]}
        assert client.post("/webhook", json=body).json() == {"status": "ok"}
        assert sent_messages == []

    def test_dropped_message_gets_no_reply(self, client, sent_messages):
        client.post("/webhook", json=webhook_body(text_message("CLICK HERE FREE MONEY!!! WINNER")))
        assert [m.get("status") for m in sent_messages] == ["read"]

    def test_invalid_json(self, client):
        response = client.post("/webhook", content=b"{not json", headers={"Content-Type": "application/json"})
        assert response.status_code == 200
        assert response.json()["status"] == "error"

    def test_empty_body(self, client):
        assert client.post("/webhook", content=b"").json() == {"status": "ok"}


class TestParseMessage:
    def test_text(self):
        message = parse_message(text_message("halo"))
        assert message.text == "halo"
        assert message.sender_id == CUSTOMER
        assert message.message_id == "wamid.in1"
        assert message.timestamp == 1723700000.0

    def test_image_uses_caption(self):
        message = parse_message({"from": CUSTOMER, "id": "wamid.img", "type": "image",
                                 "image": {"id": "media-1", "caption": "bukti transfer"}})
        assert message.message_type == "image"
        assert message.text == "bukti transfer"

    def test_interactive_reply_becomes_text(self):
        message = parse_message({"from": CUSTOMER, "id": "wamid.btn", "type": "interactive",
                                 "interactive": {"type": "button_reply",
                                                 "button_reply": {"id": "menu", "title": "Menu"}}})
        assert message.message_type == "text"
        assert message.text == "Menu"

    def test_quoted_message(self):
        raw = text_message("ini kak")
        raw["context"] = {"id": "wamid.prev"}
        assert parse_message(raw).quoted == "wamid.prev"

    def test_unsupported_type(self):
        assert parse_message({"from": CUSTOMER, "id": "wamid.s", "type": "sticker"}) is None


class TestAdminApi:
    def test_password_required(self, client):
        response = client.get("/api/admin/faq")
        assert response.status_code == 401
        assert response.json() == {"error": "http_error", "message": "Unauthorized"}
        assert client.get("/api/admin/faq", headers={"X-Admin-Password": "nope"}).status_code == 401

    def test_faq_crud(self, client):
        seeded = client.get("/api/admin/faq", headers=AUTH).json()
        assert len(seeded) == 5

        created = client.post("/api/admin/faq", headers=AUTH, json={
            "question": "Ada promo?", "keyword": [" Promo Hari Ini "], "response": ["Cek banner promo ya Kak."],
        })
        assert created.status_code == 201
        record = created.json()
        assert record["keyword"] == ["promo hari ini"]

        updated = client.put(f"/api/admin/faq/{record['id']}", headers=AUTH, json={
            "keyword": ["promo"], "response": ["Promo berubah tiap minggu, Kak."],
        })
        assert updated.json()["response"] == ["Promo berubah tiap minggu, Kak."]

        assert client.delete(f"/api/admin/faq/{record['id']}", headers=AUTH).json()["status"] == "deleted"
        assert client.get(f"/api/admin/faq/{record['id']}", headers=AUTH).status_code == 404

    def test_faq_validation(self, client):
        response = client.post("/api/admin/faq", headers=AUTH, json={"keyword": [" "], "response": ["x"]})
        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"

    def test_buyer_statistik_is_built_from_transactions(self, client):
        response = client.post("/api/admin/buyers", headers=AUTH, json={
            "user": "John",
            "data": [
                {"apk": "Netflix", "email": "j@mail.com", "durasi": "30 hari",
                 "dateGiven": "2025-08-15", "exp": "2025-09-15"},
                {"apk": "netflix", "email": "j@mail.com", "durasi": "30 hari",
                 "dateGiven": "2025-09-15", "exp": "2025-10-15"},
            ],
        })
        assert response.status_code == 201
        assert response.json()["statistik"] == {"netflix": {"total": 2, "rincian": {"30 hari": 2}}}

    def test_buyer_with_unknown_apk(self, client):
        response = client.post("/api/admin/buyers", headers=AUTH, json={
            "user": "John",
            "data": [{"apk": "tiktok", "email": "j@mail.com", "durasi": "30 hari",
                      "dateGiven": "2025-08-15", "exp": "2025-09-15"}],
        })
        assert response.status_code == 422

    def test_blacklist_number_format(self, client):
        assert client.post("/api/admin/blacklist", headers=AUTH,
                           json={"number": "+62 812", "reason": "spam"}).status_code == 422
        assert client.post("/api/admin/blacklist", headers=AUTH,
                           json={"number": "6281234567890", "reason": "spam"}).status_code == 201

    def test_promo(self, client):
        saved = client.put("/api/admin/promo", headers=AUTH, json={"banner": "Diskon 10% Netflix"})
        assert saved.json() == {"banner": "Diskon 10% Netflix", "active": True}
        assert client.get("/api/admin/promo", headers=AUTH).json()["banner"] == "Diskon 10% Netflix"

    def test_product_sheets(self, client, context):
        names = client.get("/api/admin/products", headers=AUTH).json()["products"]
        assert "netflix" in names

        sheet = "*SPOTIFY PREMIUM*\n\n1 Bulan : 20k\n\nGaransi 30 hari\n"
        assert client.put("/api/admin/products/spotify", headers=AUTH, json={"text": sheet}).status_code == 200
        assert client.get("/api/admin/products/spotify", headers=AUTH).json()["text"] == sheet
        assert "20k" in context.catalog.info("spotify", "harga")

        assert client.get("/api/admin/products/bad name", headers=AUTH).status_code == 400
        assert client.delete("/api/admin/products/spotify", headers=AUTH).json()["status"] == "deleted"
        assert client.get("/api/admin/products/spotify", headers=AUTH).status_code == 404

    def test_claims_resolve(self, client, context):
        replace = context.store.add_record("log_claim", {"user": "Jane", "apk": "netflix", "type": "replace",
                                                         "status": "PENDING", "done": None})
        reset = context.store.add_record("log_claim", {"user": "Jane", "apk": "disney", "type": "reset",
                                                       "status": None, "done": False})

        assert len(client.get("/api/admin/claims", headers=AUTH, params={"claim_type": "reset"}).json()) == 1
        resolved = client.post(f"/api/admin/claims/{replace['id']}/resolve", headers=AUTH).json()
        assert resolved["status"] == "RESOLVED"
        assert client.post(f"/api/admin/claims/{reset['id']}/resolve", headers=AUTH).json()["done"] is True
        assert client.post("/api/admin/claims/999999/resolve", headers=AUTH).status_code == 404

    def test_stats(self, client, sent_messages):
        client.post("/webhook", json=webhook_body(text_message("menu")))
        stats = client.get("/api/admin/stats", headers=AUTH).json()

        assert stats["analytics"]["total_messages"] == 1
        assert stats["records"]["faq"] == 5
        assert stats["monitoring"]["health"] == "healthy"
        assert stats["redis_sessions"] == 0
