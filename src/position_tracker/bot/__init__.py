"""
Bot Package
===========

Telegram command surface for managing tracked wallets.
"""

from .commands import BOT_COMMANDS, CommandHandler, parse_command
from .listener import CommandListener

__all__ = [
    "BOT_COMMANDS",
    "CommandHandler",
    "CommandListener",
    "parse_command",
]
