"""Gemini generateContent client used by the fallback route"""

import httpx
import logging
from typing import Optional, List
from config.settings import GEMINI_API_KEY, GEMINI_MODEL, GEMINI_BASE_URL, GEMINI_TIMEOUT
from config.thresholds import MAX_PROMPT_LENGTH
from utils.error_handler import LLMError

logger = logging.getLogger(__name__)

GENERATION_CONFIG = {
    "temperature": 0.7,
    "topK": 40,
    "topP": 0.95,
    "maxOutputTokens": 1024,
}

LIMIT_MESSAGE = (
    "Maaf, layanan AI sedang mencapai batas penggunaan. "
    "Silakan coba lagi nanti atau hubungi admin."
)

STATUS_MESSAGES = {
    400: "Terjadi kesalahan dalam permintaan. Silakan coba lagi.",
    401: "API key tidak valid. Silakan periksa konfigurasi API key.",
    403: LIMIT_MESSAGE,
    429: LIMIT_MESSAGE,
    500: "Server Gemini sedang bermasalah. Silakan coba lagi dalam beberapa menit.",
    502: "Server Gemini sedang bermasalah. Silakan coba lagi dalam beberapa menit.",
    503: "Server Gemini sedang bermasalah. Silakan coba lagi dalam beberapa menit.",
}

SAFETY_MESSAGE = "Maaf, saya tidak dapat memproses permintaan tersebut. Mohon ajukan pertanyaan lain."
TIMEOUT_MESSAGE = "Koneksi timeout. Silakan coba lagi dalam beberapa saat."
NETWORK_MESSAGE = "Tidak dapat terhubung ke server. Periksa koneksi internet Anda."
NOT_CONFIGURED_MESSAGE = "API key Gemini belum dikonfigurasi. Silakan setup API key terlebih dahulu."
GENERIC_MESSAGE = (
    "Terjadi kesalahan pada sistem AI. Silakan coba lagi nanti "
    "atau hubungi admin jika masalah berlanjut."
)


class GeminiClient:
    """Single-attempt async client for the Gemini REST API"""

    def __init__(self, api_key: str = GEMINI_API_KEY, model: str = GEMINI_MODEL,
                 base_url: str = GEMINI_BASE_URL, timeout: float = GEMINI_TIMEOUT,
                 client: Optional[httpx.AsyncClient] = None):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    @property
    def url(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def build_prompt(self, prompt: str, history: Optional[List[str]] = None, context: str = "") -> str:
        """Context block, then recent history, then the user turn"""
        parts = []
        if context:
            parts.append(context.strip())
        if history:
            parts.append("\n".join(history))
        parts.append(f"User: {prompt[:MAX_PROMPT_LENGTH]}\nAI:")
        return "\n\n".join(parts)

    async def generate(self, prompt: str, history: Optional[List[str]] = None, context: str = "") -> str:
        """
        Generate a reply for prompt.

        The user prompt is cut to MAX_PROMPT_LENGTH characters; context and
        history are sent as given.

        Raises:
            LLMError: on any failure; user_message holds the text to show
                the customer instead of a reply.
        """
        if not self.configured:
            raise LLMError("Gemini API key not configured", NOT_CONFIGURED_MESSAGE)

        body = {
            "contents": [{"role": "user", "parts": [{"text": self.build_prompt(prompt, history, context)}]}],
            "generationConfig": GENERATION_CONFIG,
        }

        try:
            response = await self.client.post(
                self.url,
                params={"key": self.api_key},
                json=body,
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            logger.error(f"⏱️ Gemini timeout: {e}")
            raise LLMError("Gemini request timed out", TIMEOUT_MESSAGE, {"error": str(e)})
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"❌ Gemini API error {status}: {e.response.text[:300]}")
            user_message = STATUS_MESSAGES.get(
                status, f"Terjadi kesalahan server ({status}). Silakan coba lagi nanti."
            )
            raise LLMError(f"Gemini returned HTTP {status}", user_message, {"status_code": status})
        except httpx.RequestError as e:
            logger.error(f"❌ Gemini network error: {e}")
            raise LLMError("Could not reach Gemini", NETWORK_MESSAGE, {"error": str(e)})
        except ValueError as e:
            logger.error(f"❌ Gemini returned invalid JSON: {e}")
            raise LLMError("Invalid JSON from Gemini", GENERIC_MESSAGE, {"error": str(e)})

        return self._extract_text(data)

    @staticmethod
    def _extract_text(data: dict) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            raise LLMError("Invalid response structure from Gemini", GENERIC_MESSAGE, {"response": data})

        candidate = candidates[0]
        if candidate.get("finishReason") == "SAFETY":
            logger.warning("⚠️ Content filtered by Gemini safety filters")
            raise LLMError("Gemini safety filter", SAFETY_MESSAGE, {"finishReason": "SAFETY"})

        parts = (candidate.get("content") or {}).get("parts") or []
        text = parts[0].get("text", "") if parts else ""
        if not text.strip():
            raise LLMError("Empty response from Gemini", GENERIC_MESSAGE, {"response": data})

        return text.strip()

    async def close(self):
        await self.client.aclose()
