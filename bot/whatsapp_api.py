import httpx
import logging
from typing import Optional
from config.settings import WHATSAPP_TOKEN, PHONE_NUMBER_ID
from utils.retry import retry_api_call
from utils.error_handler import WhatsAppAPIError

logger = logging.getLogger(__name__)


class WhatsAppAPI:
    """Official WhatsApp Business Cloud API client (Async)"""

    BASE_URL = "https://graph.facebook.com/v18.0"

    def __init__(self, token: str = WHATSAPP_TOKEN, phone_number_id: str = PHONE_NUMBER_ID,
                 client: Optional[httpx.AsyncClient] = None):
        self.token = token
        self.phone_number_id = phone_number_id
        self.headers = {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json"
        }
        self.client = client or httpx.AsyncClient(timeout=10.0)

    @property
    def messages_url(self) -> str:
        return f"{self.BASE_URL}/{self.phone_number_id}/messages"

    @retry_api_call()
    async def _post(self, payload: dict) -> httpx.Response:
        response = await self.client.post(self.messages_url, headers=self.headers, json=payload)
        response.raise_for_status()
        return response

    async def send_message(self, to: str, message: str, quoted_message_id: Optional[str] = None):
        """
        Send a text message to a WhatsApp user (async)

        Args:
            to: Phone number in international format (e.g., "6281234567890")
            message: Text message to send
            quoted_message_id: Inbound message id to reply to (shown as a quote)

        Returns:
            dict: API response
        """
        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": to,
            "type": "text",
            "text": {
                "preview_url": False,
                "body": message
            }
        }
        if quoted_message_id:
            payload["context"] = {"message_id": quoted_message_id}

        try:
            response = await self._post(payload)
            logger.info(f"✓ Message sent to {to}")
            return response.json()

        except httpx.HTTPStatusError as e:
            logger.error(f"❌ Error sending message to {to}: {e}")
            try:
                error_details = e.response.json()
            except ValueError:
                error_details = {"response": e.response.text}
            raise WhatsAppAPIError(
                message=f"Failed to send message to {to}",
                status_code=e.response.status_code,
                details=error_details
            )
        except httpx.RequestError as e:
            logger.error(f"❌ Error sending message to {to}: {e}")
            raise WhatsAppAPIError(
                message=f"Failed to send message to {to}",
                status_code=500,
                details={"error": str(e)}
            )

    async def mark_message_as_read(self, message_id: str):
        """Mark a message as read (async)"""
        payload = {
            "messaging_product": "whatsapp",
            "status": "read",
            "message_id": message_id
        }

        try:
            response = await self.client.post(self.messages_url, headers=self.headers, json=payload)
            response.raise_for_status()
            logger.info(f"✓ Marked message {message_id} as read")
            return response.json()

        except httpx.HTTPError as e:
            logger.error(f"❌ Error marking message as read: {e}")
            return None

    async def close(self):
        """Close the HTTP client"""
        await self.client.aclose()
