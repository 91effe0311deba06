from fastapi import FastAPI, Request, HTTPException, BackgroundTasks
from fastapi.responses import PlainTextResponse, JSONResponse
from fastapi.middleware.cors import CORSMiddleware
import asyncio
import json
import logging
import time
from typing import Optional
from config.settings import WEBHOOK_VERIFY_TOKEN, BOT_NAME, ENABLE_SCHEDULER
from services.context import BotContext
from services.response_router import InboundMessage
from utils.error_handler import register_error_handlers, log_task_exception, WhatsAppAPIError

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_message(message: dict) -> Optional[InboundMessage]:
    """Convert one Cloud API message object to an InboundMessage, or None if unsupported"""
    message_type = message.get("type")
    text = None

    if message_type == "text":
        text = message.get("text", {}).get("body", "")
    elif message_type == "image":
        image = message.get("image", {})
        text = image.get("caption", "")
        logger.info(f"📷 Image received: media_id={image.get('id')}")
    elif message_type == "interactive":
        interactive = message.get("interactive", {})
        reply = interactive.get("button_reply") or interactive.get("list_reply") or {}
        text = reply.get("title") or reply.get("id") or ""
        message_type = "text"
    else:
        logger.info(f"ℹ️ Unsupported message type: {message_type}")
        return None

    sender = message.get("from")
    try:
        timestamp = float(message.get("timestamp")) if message.get("timestamp") else None
    except (TypeError, ValueError):
        timestamp = None

    return InboundMessage(
        text=text,
        sender_id=sender,
        chat_id=sender,
        message_type=message_type,
        quoted=(message.get("context") or {}).get("id"),
        timestamp=timestamp,
        message_id=message.get("id"),
    )


def create_app(context: Optional[BotContext] = None, start_scheduler: bool = ENABLE_SCHEDULER) -> FastAPI:
    ctx = context or BotContext()

    app = FastAPI(
        title=f"{BOT_NAME} WhatsApp CS Bot",
        version="1.0.0",
        description="Customer service bot for the Vylozzone digital marketplace"
    )
    app.state.context = ctx

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register error handlers
    register_error_handlers(app)

    # Include admin panel router
    from api.admin import router as admin_router
    app.include_router(admin_router)

    @app.on_event("startup")
    async def startup_event():
        """Start scheduled jobs on application startup"""
        asyncio.get_running_loop().set_exception_handler(log_task_exception)
        if start_scheduler:
            ctx.scheduler.start()

    @app.on_event("shutdown")
    async def shutdown_event():
        await ctx.scheduler.stop()

    @app.get("/")
    async def root():
        """Health check endpoint"""
        return {
            "status": "ok",
            "service": f"{BOT_NAME} WhatsApp CS Bot",
            "health": ctx.monitoring.health(),
            "emergency_stop": ctx.content_filter.emergency_stop,
        }

    @app.get("/webhook")
    async def verify_webhook(request: Request):
        """
        Webhook verification endpoint for WhatsApp
        Meta will call this to verify your webhook
        """
        mode = request.query_params.get("hub.mode")
        token = request.query_params.get("hub.verify_token")
        challenge = request.query_params.get("hub.challenge")

        logger.info(f"Webhook verification request: mode={mode}")

        if mode == "subscribe" and token and token == WEBHOOK_VERIFY_TOKEN:
            logger.info("✓ Webhook verified successfully")
            return PlainTextResponse(content=challenge, status_code=200)

        logger.error("❌ Webhook verification failed")
        raise HTTPException(status_code=403, detail="Verification failed")

    @app.post("/webhook")
    async def receive_webhook(request: Request, background_tasks: BackgroundTasks):
        """
        Receive incoming WhatsApp messages
        Replies are produced after the 200 is returned to WhatsApp
        """
        try:
            body_bytes = await request.body()
            if len(body_bytes) == 0:
                logger.warning("⚠️ Empty body received!")
                return {"status": "ok"}

            body = json.loads(body_bytes)

            entry = body.get("entry", [])
            if not entry:
                return {"status": "ok"}
            changes = entry[0].get("changes", [])
            if not changes:
                return {"status": "ok"}
            value = changes[0].get("value", {})
            messages = value.get("messages", [])
            if not messages:
                # Could be a status update, not a message
                return {"status": "ok"}

            for raw in messages:
                message = parse_message(raw)
                if message is not None:
                    background_tasks.add_task(process_message, ctx, message)

            return {"status": "ok"}

        except (ValueError, AttributeError) as e:
            logger.error(f"❌ Error processing webhook: {e}")
            # Return 200 to WhatsApp but log the error
            return JSONResponse(
                status_code=200,
                content={"status": "error", "message": "Webhook processing failed"}
            )

    return app


async def process_message(ctx: BotContext, message: InboundMessage):
    """Mark read, route and send the reply quoting the inbound message"""
    start_time = time.time()
    logger.info(f"📨 Processing {message.message_type} message from {message.sender_id}")

    if message.message_id:
        await ctx.whatsapp.mark_message_as_read(message.message_id)

    reply = await ctx.router.route_message(message)
    if reply is None or not reply.text:
        logger.info(f"🔇 No reply for {message.sender_id}")
        return

    await send_reply(ctx, message, reply.text)
    logger.info(f"✅ Replied via {reply.route}/{reply.source} in {time.time() - start_time:.2f}s")


async def send_reply(ctx: BotContext, message: InboundMessage, text: str):
    try:
        await ctx.whatsapp.send_message(message.sender_id, text, quoted_message_id=message.message_id)
    except WhatsAppAPIError as e:
        logger.error(f"❌ Failed to send reply to {message.sender_id}: {e.message} {e.details}")
