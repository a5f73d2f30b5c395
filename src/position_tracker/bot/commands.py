"""
Bot Commands
============

Handles the private-chat commands users send to the bot:

    /start, /help                  Welcome and command list
    /add <address> [note]          Track a wallet (or update its note)
    /remove <address|index|note>   Stop tracking a wallet
    /list                          Numbered list of tracked wallets
    /positions <address|index|note> Live open positions of a wallet

Replies are Telegram HTML. The handler never touches the position state
store; it only reads and writes the wallet registry.
"""

import html
import logging
from typing import Optional, Tuple

from ..alerts.formatter import format_positions_summary, format_wallet_display
from ..config import config
from ..db.wallet_db import AddWalletResult, WalletDB, is_reserved_note, is_valid_address
from ..errors import PersistenceError, ProviderError

logger = logging.getLogger(__name__)

# (command, description) in menu order
BOT_COMMANDS = [
    ("help", "Display this help message"),
    ("start", "Start the bot"),
    ("add", "Add a wallet to track"),
    ("remove", "Remove a tracked wallet"),
    ("list", "List all tracked wallets"),
    ("positions", "Show open positions for a wallet"),
]

# Identifiers in this range refer to positions in /list
MAX_WALLET_INDEX = 10


def command_descriptions() -> str:
    return "\n".join(f"/{name} - {description}" for name, description in BOT_COMMANDS)


def parse_command(text: str) -> Optional[Tuple[str, str]]:
    """
    Split a message into (command, args).

    Handles the /command@BotName form. Returns None for non-command text.
    """
    if not text or not text.startswith("/"):
        return None
    head, _, args = text.strip().partition(" ")
    command = head[1:].split("@", 1)[0].lower()
    if not command:
        return None
    return command, args.strip()


class CommandHandler:
    """Turns one command message into one reply."""

    def __init__(self, wallet_db: WalletDB, client, max_wallets_per_user: int = None):
        """
        Args:
            wallet_db: Wallet registry
            client: anything with async fetch_snapshot(address), used by /positions
            max_wallets_per_user: Tracking limit per user
        """
        self.wallet_db = wallet_db
        self.client = client
        self.max_wallets_per_user = max_wallets_per_user or config.max_wallets_per_user

    async def handle(self, user_id: int, text: str) -> Optional[str]:
        """
        Answer a message.

        Returns:
            Reply text, or None if the message is not a known command
        """
        parsed = parse_command(text)
        if parsed is None:
            return None
        command, args = parsed

        if command == "help":
            return f"<b>📚 Help</b>\n{command_descriptions()}"
        if command == "start":
            return self._start()
        if command == "add":
            return self._add(user_id, args)
        if command == "remove":
            return self._remove(user_id, args)
        if command == "list":
            return self._list(user_id)
        if command == "positions":
            return await self._positions(user_id, args)
        return None

    # -------------------------------------------------------------------------
    # Identifier Resolution
    # -------------------------------------------------------------------------

    def resolve_wallet_identifier(
        self,
        user_id: int,
        identifier: str,
    ) -> Optional[Tuple[str, Optional[str]]]:
        """
        Resolve an index (1-10), a note or an address to (address, note).

        Raises:
            PersistenceError: if the registry could not be read
        """
        identifier = identifier.strip()

        if identifier.isdigit() and 1 <= int(identifier) <= MAX_WALLET_INDEX:
            wallet = self.wallet_db.get_wallet_by_index(user_id, int(identifier))
            if wallet is not None:
                return wallet.wallet_address, wallet.note

        wallet = self.wallet_db.get_wallet_by_note(user_id, identifier)
        if wallet is not None:
            return wallet.wallet_address, wallet.note

        if is_valid_address(identifier):
            address = identifier.lower()
            return address, self.wallet_db.get_wallet_note(address, user_id)

        return None

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def _start(self) -> str:
        return (
            "<b>👋 Welcome to Hyperliquid Position Tracker!</b>\n\n"
            "I'll notify you when wallets you're tracking open or close positions on Hyperliquid.\n"
            f"{command_descriptions()}\n\n"
            "<i>Start by adding a wallet address to track!</i>"
        )

    def _add(self, user_id: int, args: str) -> str:
        if not args:
            return "❌ Please provide a wallet address.\n\nUsage: <code>/add 0x... [note]</code>"

        wallet, _, note = args.partition(" ")
        note = note.strip() or None

        if not is_valid_address(wallet):
            return "❌ Invalid wallet address format. Please provide a valid Ethereum address."

        address = wallet.lower()
        try:
            if note is not None:
                if is_reserved_note(note):
                    return "❌ Notes cannot be numbers 1-10 as these are reserved for wallet indexing."
                if self.wallet_db.note_exists_for_user(user_id, note, exclude_address=address):
                    return "❌ You already have a wallet with this note. Please use a different note."

            if (
                self.wallet_db.get_user_wallet_count(user_id) >= self.max_wallets_per_user
                and not self.wallet_db.is_tracking(user_id, address)
            ):
                return (
                    f"❌ You've reached the maximum limit of {self.max_wallets_per_user} tracked wallets.\n\n"
                    "Use <code>/remove &lt;wallet&gt;</code> to remove a wallet first."
                )

            result = self.wallet_db.add_wallet(user_id, address, note)
        except PersistenceError as e:
            logger.error(f"Failed to add wallet for user {user_id}: {e}")
            return "❌ Failed to add wallet. Please try again."

        if result is AddWalletResult.ADDED:
            logger.info(f"User {user_id} added wallet {address}")
            note_text = f" ({html.escape(note)})" if note else ""
            return f"✅ Now tracking wallet{note_text}:\n<code>{address}</code>"

        if result is AddWalletResult.UPDATED:
            logger.info(f"User {user_id} updated note for wallet {address}")
            note_text = f" to '{html.escape(note)}'" if note else " (removed)"
            return f"✅ Updated note{note_text}:\n<code>{address}</code>"

        return "⚠️ This wallet is already being tracked with the same note."

    def _remove(self, user_id: int, args: str) -> str:
        if not args:
            return (
                "❌ Please provide a wallet address, index (1-10), or note.\n\n"
                "Usage: <code>/remove &lt;address|index|note&gt;</code>"
            )

        try:
            resolved = self.resolve_wallet_identifier(user_id, args)
            if resolved is None:
                return "❌ Wallet not found. Use <code>/list</code> to see your tracked wallets."
            address, _ = resolved
            removed = self.wallet_db.remove_wallet(user_id, address)
        except PersistenceError as e:
            logger.error(f"Failed to remove wallet for user {user_id}: {e}")
            return "❌ Failed to remove wallet. Please try again."

        if not removed:
            return "⚠️ This wallet was not being tracked."

        logger.info(f"User {user_id} removed wallet {address}")
        return f"✅ Stopped tracking wallet:\n<code>{address}</code>"

    def _list(self, user_id: int) -> str:
        try:
            wallets = self.wallet_db.get_user_wallets(user_id)
        except PersistenceError as e:
            logger.error(f"Failed to list wallets for user {user_id}: {e}")
            return "❌ Failed to retrieve wallets. Please try again."

        if not wallets:
            return (
                "📋 You're not tracking any wallets yet.\n\n"
                "Use <code>/add &lt;wallet&gt; [note]</code> to start tracking."
            )

        lines = [
            f"{i}. {format_wallet_display(w.wallet_address, w.note, full=True)}"
            for i, w in enumerate(wallets, start=1)
        ]
        return "<b>📋 Your tracked wallets:</b>\n\n" + "\n".join(lines)

    async def _positions(self, user_id: int, args: str) -> str:
        if not args:
            return (
                "❌ Please provide a wallet address, index (1-10), or note.\n\n"
                "Usage: <code>/positions &lt;address|index|note&gt;</code>"
            )

        try:
            resolved = self.resolve_wallet_identifier(user_id, args)
        except PersistenceError as e:
            logger.error(f"Failed to resolve wallet identifier: {e}")
            return "❌ Failed to fetch positions. Please try again."

        if resolved is None:
            return "❌ Wallet not found. Provide a valid address, index (1-10), or note."
        address, note = resolved

        try:
            positions = await self.client.fetch_snapshot(address)
        except ProviderError as e:
            logger.error(f"Failed to fetch positions for {address}: {e}")
            return "❌ Failed to fetch positions. Please try again."

        return format_positions_summary(format_wallet_display(address, note), address, positions)
