"""Redis store for conversation sessions"""

import redis
import json
import logging
from typing import Optional, List, Dict
from config.settings import REDIS_URL
from config.thresholds import SESSION_TTL_SECONDS, MAX_CONVERSATION_HISTORY
from utils.retry import retry_db_operation

logger = logging.getLogger(__name__)


class RedisStore:
    """
    Redis store for per-chat conversation history.

    Sessions expire after 30 minutes of silence. When Redis is unreachable
    (or url is None) client is None and every call becomes a no-op, so the
    bot keeps answering without history.
    """

    def __init__(self, url: Optional[str] = REDIS_URL):
        self.client = None
        if not url:
            logger.info("Redis disabled, conversation history will not be kept")
            return

        try:
            pool = redis.ConnectionPool.from_url(
                url,
                decode_responses=True,
                max_connections=20,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30
            )

            self.client = redis.Redis(connection_pool=pool)
            self.client.ping()
            logger.info("✓ Redis connection pool established")
        except Exception as e:
            logger.error(f"❌ Failed to connect to Redis: {e}")
            self.client = None

    @property
    def available(self) -> bool:
        return self.client is not None

    @retry_db_operation()
    def set_conversation(self, chat_id: str, conversation: List[Dict[str, str]], ttl: int = SESSION_TTL_SECONDS):
        """
        Store conversation history for a chat

        Args:
            chat_id: Chat identifier
            conversation: List of {"role", "content"} messages
            ttl: Session time to live in seconds (default 30 minutes)
        """
        if not self.client:
            return

        key = f"conversation:{chat_id}"
        self.client.setex(key, ttl, json.dumps(conversation))
        logger.debug(f"Stored conversation for {chat_id}")

    def get_conversation(self, chat_id: str) -> Optional[List[Dict[str, str]]]:
        """Retrieve conversation history for a chat, None when there is no session"""
        if not self.client:
            return None

        try:
            data = self.client.get(f"conversation:{chat_id}")
            if data:
                return json.loads(data)
            return None
        except Exception as e:
            logger.error(f"Error retrieving conversation: {e}")
            return None

    def append_to_conversation(self, chat_id: str, role: str, content: str, ttl: int = SESSION_TTL_SECONDS):
        """Append a message and keep only the most recent lines"""
        if not self.client:
            return

        try:
            conversation = self.get_conversation(chat_id) or []
            conversation.append({"role": role, "content": content})
            conversation = conversation[-MAX_CONVERSATION_HISTORY:]
            self.set_conversation(chat_id, conversation, ttl)
        except Exception as e:
            logger.error(f"Error appending to conversation: {e}")

    def history_lines(self, chat_id: str) -> List[str]:
        """Conversation rendered as "role: content" lines for prompts"""
        conversation = self.get_conversation(chat_id) or []
        return [f"{m.get('role', 'user')}: {m.get('content', '')}" for m in conversation]

    def clear_conversation(self, chat_id: str):
        if not self.client:
            return

        try:
            self.client.delete(f"conversation:{chat_id}")
            logger.debug(f"Cleared conversation for {chat_id}")
        except Exception as e:
            logger.error(f"Error clearing conversation: {e}")

    def count_sessions(self) -> int:
        """Number of live conversation sessions"""
        if not self.client:
            return 0

        try:
            return sum(1 for _ in self.client.scan_iter(match="conversation:*", count=100))
        except Exception as e:
            logger.error(f"Error counting sessions: {e}")
            return 0

    def close(self):
        """Close Redis connection"""
        if self.client:
            self.client.close()
            logger.info("Redis connection closed")
