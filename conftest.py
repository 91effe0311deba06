"""Shared fixtures: a BotContext over a temporary data directory with mocked Gemini and WhatsApp"""

import asyncio
import json
import os
import shutil
import httpx
import pytest
from bot.gemini_client import GeminiClient
from bot.whatsapp_api import WhatsAppAPI
from services.context import BotContext
from services.response_router import InboundMessage

OWNER = "6289512822345"
CUSTOMER = "6281234567890"
MODERATOR = "6281111111111"
ADMIN_PASSWORD = "test-admin"

SEED_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "data")

DEFAULT_GEMINI_TEXT = (
    "Untuk refund, Kak bisa langsung chat admin Vylozzone dengan kirim nomor order "
    "dan screenshot pembayaran ya. Tim kami akan proses sesuai kebijakan garansi."
)


@pytest.fixture
def data_dir(tmp_path):
    """Copy of the seed data (JSON collections and product sheets)"""
    target = tmp_path / "data"
    target.mkdir()
    for name in os.listdir(SEED_DIR):
        source = os.path.join(SEED_DIR, name)
        if name.endswith(".json"):
            shutil.copy(source, target / name)
        elif name == "produk":
            shutil.copytree(source, target / "produk")
    return str(target)


@pytest.fixture
def gemini_reply():
    """Mutable Gemini mock state: set "text" or "status" to change the next replies"""
    return {"text": DEFAULT_GEMINI_TEXT, "status": 200, "requests": []}


@pytest.fixture
def sent_messages():
    """Every JSON payload posted to the WhatsApp Cloud API"""
    return []


@pytest.fixture
def gemini(gemini_reply):
    def handler(request: httpx.Request) -> httpx.Response:
        gemini_reply["requests"].append(json.loads(request.content))
        if gemini_reply["status"] != 200:
            return httpx.Response(gemini_reply["status"], json={"error": {"message": "mocked"}})
        return httpx.Response(200, json={
            "candidates": [{
                "content": {"parts": [{"text": gemini_reply["text"]}]},
                "finishReason": "STOP",
            }]
        })

    return GeminiClient(api_key="test-key", client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


@pytest.fixture
def whatsapp(sent_messages):
    def handler(request: httpx.Request) -> httpx.Response:
        sent_messages.append(json.loads(request.content))
        return httpx.Response(200, json={"messages": [{"id": "wamid.out"}]})

    return WhatsAppAPI(token="test-token", phone_number_id="123",
                       client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


@pytest.fixture
def context(tmp_path, data_dir, gemini, whatsapp):
    ctx = BotContext(
        data_dir=data_dir,
        redis_url=None,
        backup_dir=str(tmp_path / "backups"),
        gemini=gemini,
        whatsapp=whatsapp,
        owner_number=OWNER,
        rate_limit_ms=0,
        admin_password=ADMIN_PASSWORD,
        sampler=lambda: {"memory": 40.0, "cpu": 10.0, "process_rss_mb": 80.0},
    )
    yield ctx
    asyncio.run(ctx.close())


@pytest.fixture
def route(context):
    """route("halo") -> RouterReply, as the customer unless sender is given"""
    def _route(text, sender=CUSTOMER, **kwargs):
        message = InboundMessage(text=text, sender_id=sender, **kwargs)
        return asyncio.run(context.router.route_message(message))

    return _route
