"""
Telegram Client
===============

Thin wrapper around the Telegram Bot API used for:
- Delivering position change notifications to each subscriber's chat
- Long-polling incoming commands (getUpdates)
- Registering the bot's command menu

Requests are blocking (requests library); async callers run them in a worker
thread.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import requests

from ..config import config
from ..errors import DeliveryError

logger = logging.getLogger(__name__)


@dataclass
class TelegramConfig:
    """Configuration for the Telegram client."""
    bot_token: str
    dry_run: bool = False
    api_url: str = "https://api.telegram.org"
    max_message_length: int = 4000
    # Minimum spacing between outgoing messages (Telegram limit: ~30/sec)
    min_message_interval: float = 0.05
    request_timeout: float = 10.0


class TelegramClient:
    """
    Telegram Bot API client.

    send_message raises DeliveryError on any failure so the caller can log it
    per recipient and move on. Error messages never include the request URL,
    which embeds the bot token.
    """

    def __init__(self, telegram_config: TelegramConfig, session: requests.Session = None):
        """
        Initialize the Telegram client.

        Args:
            telegram_config: Bot token and delivery settings
            session: Optional requests session (shared connection pool)
        """
        self.config = telegram_config
        self._validate()
        self._session = session or requests.Session()

        # Rate limiting state
        self._last_message_time: float = 0
        self._send_lock = threading.Lock()

    @classmethod
    def from_env(cls, dry_run: bool = False) -> "TelegramClient":
        """Create a client from TELEGRAM_BOT_TOKEN and the global config."""
        return cls(TelegramConfig(
            bot_token=config.telegram_bot_token or "",
            dry_run=dry_run,
            api_url=config.telegram_api_url,
            max_message_length=config.max_message_length,
            min_message_interval=config.min_message_interval_sec,
        ))

    def _validate(self):
        """Validate configuration."""
        if not self.config.dry_run and not self.config.bot_token:
            raise ValueError("TELEGRAM_BOT_TOKEN is required (or use --dry-run)")

    def _method_url(self, method: str) -> str:
        return f"{self.config.api_url}/bot{self.config.bot_token}/{method}"

    def _enforce_message_interval(self):
        """Enforce minimum interval between messages."""
        elapsed = time.time() - self._last_message_time
        if elapsed < self.config.min_message_interval:
            time.sleep(self.config.min_message_interval - elapsed)

    def _truncate_message(self, text: str) -> str:
        """Truncate message to Telegram's character limit."""
        if len(text) > self.config.max_message_length:
            return text[:self.config.max_message_length - 20] + "\n... (truncated)"
        return text

    def _call(self, method: str, payload: dict, timeout: float = None) -> dict:
        """
        Call a Bot API method and return its "result".

        Raises:
            DeliveryError: on transport failure, HTTP error or ok=false
        """
        try:
            response = self._session.post(
                self._method_url(method),
                json=payload,
                timeout=timeout or self.config.request_timeout,
            )
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.Timeout as e:
            raise DeliveryError(f"Telegram {method} timed out") from e
        except requests.exceptions.HTTPError as e:
            # Log status code without exposing token in URL
            status_code = e.response.status_code if e.response is not None else None
            if status_code == 429:
                logger.warning("Telegram rate limit hit (429)")
            raise DeliveryError(f"Telegram {method} HTTP error: {status_code}", status=status_code) from None
        except requests.exceptions.ConnectionError:
            raise DeliveryError(f"Telegram {method} connection error") from None
        except requests.exceptions.RequestException:
            raise DeliveryError(f"Telegram {method} request failed") from None
        except ValueError as e:
            raise DeliveryError(f"Telegram {method} returned invalid JSON") from e

        if not isinstance(body, dict) or not body.get("ok"):
            description = body.get("description") if isinstance(body, dict) else None
            raise DeliveryError(f"Telegram {method} rejected: {description or 'unknown error'}")
        return body.get("result")

    # -------------------------------------------------------------------------
    # Public Methods
    # -------------------------------------------------------------------------

    def send_message(
        self,
        chat_id: int,
        text: str,
        reply_to_message_id: Optional[int] = None,
    ) -> Optional[int]:
        """
        Send an HTML message to a chat.

        Args:
            chat_id: Target chat (a user's id for private chats)
            text: Message text (HTML formatted)
            reply_to_message_id: If set, reply to this message ID

        Returns:
            message_id of the sent message (None in dry run)

        Raises:
            DeliveryError: if Telegram did not accept the message
        """
        text = self._truncate_message(text)

        if self.config.dry_run:
            logger.info(f"[DRY RUN] Telegram message to {chat_id}:\n{text}")
            return None

        payload = {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }
        if reply_to_message_id:
            payload["reply_to_message_id"] = reply_to_message_id

        with self._send_lock:
            self._enforce_message_interval()
            try:
                result = self._call("sendMessage", payload)
            finally:
                self._last_message_time = time.time()

        message_id = result.get("message_id") if isinstance(result, dict) else None
        logger.debug(f"Telegram message sent to {chat_id} (message_id: {message_id})")
        return message_id

    def get_updates(self, offset: Optional[int] = None, timeout: int = 30) -> List[dict]:
        """
        Long-poll for incoming updates.

        Args:
            offset: Id of the first update to return (last seen + 1)
            timeout: Long-poll timeout in seconds

        Returns:
            List of update objects (empty in dry run)

        Raises:
            DeliveryError: if the call failed
        """
        if self.config.dry_run:
            time.sleep(timeout)
            return []

        payload: Dict[str, object] = {"timeout": timeout, "allowed_updates": ["message"]}
        if offset is not None:
            payload["offset"] = offset

        result = self._call("getUpdates", payload, timeout=timeout + 10)
        return result if isinstance(result, list) else []

    def set_my_commands(self, commands: Sequence[Tuple[str, str]]) -> bool:
        """Register the command menu shown by Telegram clients."""
        if self.config.dry_run:
            return True
        self._call("setMyCommands", {
            "commands": [{"command": c, "description": d} for c, d in commands],
        })
        return True

    def close(self):
        self._session.close()
