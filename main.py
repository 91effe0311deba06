"""
Vylozzone WhatsApp CS Bot
Uses WhatsApp Business Cloud API with webhook architecture
"""

import sys
import uvicorn
import logging
from config.settings import PORT, BOT_NAME, GEMINI_MODEL, REDIS_URL, ENVIRONMENT, ENABLE_SCHEDULER
from utils.error_handler import log_uncaught_exception

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main():
    """Start the webhook server"""
    sys.excepthook = log_uncaught_exception

    logger.info(f"🚀 Starting {BOT_NAME} CS bot ({ENVIRONMENT})...")
    logger.info(f"📡 Webhook server will listen on port {PORT}")
    logger.info("="*60)
    logger.info("⚙️  Configuration:")
    logger.info("  - WhatsApp Business Cloud API: ENABLED")
    logger.info(f"  - LLM fallback: Gemini ({GEMINI_MODEL})")
    logger.info(f"  - Conversation sessions: {'Redis' if REDIS_URL else 'disabled'}")
    logger.info(f"  - Scheduled jobs: {'ENABLED' if ENABLE_SCHEDULER else 'DISABLED'}")
    logger.info("="*60)
    logger.info("\n📋 Next steps:")
    logger.info("1. Make sure your .env file has GEMINI_API_KEY and WHATSAPP_TOKEN set")
    logger.info("2. Put FAQ/SOP JSON and product sheets under DATA_DIR (imported on first start)")
    logger.info("3. Configure webhook URL in Meta Developer Console")
    logger.info(f"   Webhook URL: https://your-domain.com/webhook")
    logger.info(f"   Verify Token: (check your .env file)")
    logger.info("="*60 + "\n")

    uvicorn.run(
        "api.webhook:create_app",
        factory=True,
        host="0.0.0.0",
        port=PORT,
        reload=False,
        log_level="info"
    )


if __name__ == "__main__":
    main()
