"""
Command Listener

Long-polls Telegram getUpdates and answers private-chat commands through a
CommandHandler. Runs as a sibling task of the position monitor.
"""

import asyncio
import logging
from typing import Optional

from ..alerts.telegram import TelegramClient
from ..config import config
from ..errors import DeliveryError
from .commands import BOT_COMMANDS, CommandHandler

logger = logging.getLogger(__name__)

# Back-off after a failed getUpdates call (seconds)
ERROR_BACKOFF_SEC = 5.0


class CommandListener:
    """getUpdates loop feeding a CommandHandler."""

    def __init__(
        self,
        telegram: TelegramClient,
        handler: CommandHandler,
        poll_timeout: int = None,
    ):
        self.telegram = telegram
        self.handler = handler
        self.poll_timeout = poll_timeout or config.command_poll_timeout_sec
        self.offset: Optional[int] = None
        self._stop_event: Optional[asyncio.Event] = None

    def stop(self):
        if self._stop_event is None:
            self._stop_event = asyncio.Event()
        self._stop_event.set()

    async def register_commands(self):
        """Publish the command menu. Failure is logged, not fatal."""
        try:
            await asyncio.to_thread(self.telegram.set_my_commands, BOT_COMMANDS)
            logger.info("Bot commands registered successfully")
        except DeliveryError as e:
            logger.error(f"Failed to register commands: {e}")

    async def run(self):
        """Poll for commands until stop() is called."""
        if self._stop_event is None:
            self._stop_event = asyncio.Event()
        stop_event = self._stop_event

        await self.register_commands()
        logger.info("Command listener started")

        while not stop_event.is_set():
            poll = asyncio.ensure_future(
                asyncio.to_thread(self.telegram.get_updates, self.offset, self.poll_timeout)
            )
            stopper = asyncio.ensure_future(stop_event.wait())
            done, _ = await asyncio.wait({poll, stopper}, return_when=asyncio.FIRST_COMPLETED)
            stopper.cancel()

            if poll not in done:
                # Stopping; the worker thread finishes its long poll on its own
                poll.cancel()
                break

            try:
                updates = poll.result()
            except DeliveryError as e:
                logger.warning(f"getUpdates failed: {e}")
                await self._sleep(ERROR_BACKOFF_SEC)
                continue

            for update in updates:
                await self.process_update(update)

        logger.info("Command listener stopped")

    async def _sleep(self, seconds: float):
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def process_update(self, update: dict):
        """Handle one update and advance the offset past it."""
        update_id = update.get("update_id")
        if isinstance(update_id, int):
            self.offset = max(self.offset or 0, update_id + 1)

        message = update.get("message")
        if not isinstance(message, dict):
            return

        # Only respond to private messages (DMs)
        chat = message.get("chat") or {}
        if chat.get("type") != "private":
            return

        text = message.get("text") or ""
        sender = message.get("from") or {}
        user_id = sender.get("id", 0)

        try:
            reply = await self.handler.handle(user_id, text)
        except Exception:
            logger.exception(f"Command failed for user {user_id}: {text.split(' ', 1)[0]}")
            reply = "❌ Something went wrong. Please try again."

        if reply is None:
            return

        try:
            await asyncio.to_thread(
                self.telegram.send_message,
                chat.get("id", user_id),
                reply,
                message.get("message_id"),
            )
        except DeliveryError as e:
            logger.error(f"Failed to reply to user {user_id}: {e}")
