import os
from dotenv import load_dotenv

load_dotenv()

# LLM Settings (Gemini fallback)
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
GEMINI_BASE_URL = os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1")
GEMINI_TIMEOUT = float(os.getenv("GEMINI_TIMEOUT", 30))

# WhatsApp Business API Settings
WHATSAPP_TOKEN = os.getenv("WHATSAPP_TOKEN")
PHONE_NUMBER_ID = os.getenv("PHONE_NUMBER_ID")
WEBHOOK_VERIFY_TOKEN = os.getenv("WEBHOOK_VERIFY_TOKEN")

# Storage Settings
DATA_DIR = os.getenv("DATA_DIR", "./data")
BACKUP_DIR = os.getenv("BACKUP_DIR", "./backups")
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{os.path.join(DATA_DIR, 'vylozzone.db')}")

# Bot Settings
BOT_NAME = os.getenv("BOT_NAME", "Vylozzone")
OWNER_NUMBER = os.getenv("OWNER_NUMBER", "6289512822345")
ADMIN_CONTACT = os.getenv("ADMIN_CONTACT", "6289630375723")
RATE_LIMIT_MS = int(os.getenv("RATE_LIMIT_MS", 1000))
DAILY_LIMIT = int(os.getenv("DAILY_LIMIT", 500))
PORT = int(os.getenv("PORT", 8000))

# Environment
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
ENABLE_SCHEDULER = os.getenv("ENABLE_SCHEDULER", "true").lower() == "true"

# Security
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")
