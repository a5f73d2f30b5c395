#!/usr/bin/env python3
"""
Tracked Wallet Management CLI
=============================

Manage tracked wallets without going through Telegram.

Commands:
    add         Track a wallet for a user (or update its note)
    remove      Stop tracking a wallet for a user
    list        List tracked wallets (all users, or one)
    positions   Show live open positions of a wallet
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add src/ to path so the script runs from a checkout
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from position_tracker.api.hyperliquid import HyperliquidClient
from position_tracker.config import config
from position_tracker.db import AddWalletResult, WalletDB, is_reserved_note, is_valid_address
from position_tracker.errors import ProviderError


def cmd_add(args):
    """Track a wallet for a user."""
    if not is_valid_address(args.address):
        print(f"Error: Invalid wallet address: {args.address}")
        return 1
    if args.note and is_reserved_note(args.note):
        print("Error: Notes cannot be numbers 1-10 (reserved for wallet indexing)")
        return 1

    db = WalletDB(args.db_path)
    if args.note and db.note_exists_for_user(args.user, args.note, exclude_address=args.address):
        print(f"Error: User {args.user} already has a wallet with note '{args.note}'")
        return 1

    if (
        db.get_user_wallet_count(args.user) >= config.max_wallets_per_user
        and not db.is_tracking(args.user, args.address)
    ):
        print(f"Error: User {args.user} already tracks {config.max_wallets_per_user} wallets")
        return 1

    result = db.add_wallet(args.user, args.address, args.note)
    messages = {
        AddWalletResult.ADDED: "Now tracking",
        AddWalletResult.UPDATED: "Updated note for",
        AddWalletResult.UNCHANGED: "Already tracking (no change)",
    }
    print(f"{messages[result]} {args.address.lower()} for user {args.user}")


def cmd_remove(args):
    """Stop tracking a wallet for a user."""
    db = WalletDB(args.db_path)
    if db.remove_wallet(args.user, args.address):
        print(f"Stopped tracking {args.address.lower()} for user {args.user}")
    else:
        print(f"Wallet {args.address.lower()} was not tracked by user {args.user}")
        return 1


def cmd_list(args):
    """List tracked wallets."""
    db = WalletDB(args.db_path)
    wallets = db.get_user_wallets(args.user) if args.user is not None else db.list_tracked()

    if not wallets:
        print("No tracked wallets")
        return

    print(f"\n{'User':<14} {'Address':<44} Note")
    print("-" * 72)
    for w in wallets:
        print(f"{w.user_id:<14} {w.wallet_address:<44} {w.note or ''}")
    print(f"\n{len(wallets)} subscription(s), {len({w.wallet_address for w in wallets})} distinct wallet(s)")


async def _fetch_positions(address: str):
    async with HyperliquidClient() as client:
        return await client.fetch_snapshot(address)


def cmd_positions(args):
    """Show live open positions of a wallet."""
    if not is_valid_address(args.address):
        print(f"Error: Invalid wallet address: {args.address}")
        return 1

    try:
        positions = asyncio.run(_fetch_positions(args.address.lower()))
    except ProviderError as e:
        print(f"Error: {e}")
        return 1

    open_positions = [p for p in positions if p.is_open]
    if not open_positions:
        print("No open positions")
        return

    print(f"\n{'Coin':<10} {'Side':<6} {'Lev':>4} {'Size':>14} {'Entry':>14} {'Value':>14} {'PnL':>12}")
    print("-" * 80)
    for p in open_positions:
        side = "Long" if p.is_long else "Short"
        print(
            f"{p.coin:<10} {side:<6} {p.leverage_value:>3}x {abs(p.size):>14.4f} "
            f"{p.entry_price:>14.4f} {p.notional:>14.2f} {p.pnl:>12.2f}"
        )


def main():
    parser = argparse.ArgumentParser(
        description="Manage tracked wallets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/manage_wallets.py add 12345 0xabc... --note whale
  python scripts/manage_wallets.py remove 12345 0xabc...
  python scripts/manage_wallets.py list --user 12345
  python scripts/manage_wallets.py positions 0xabc...
        """
    )
    parser.add_argument(
        "--db-path",
        type=Path,
        default=config.database_path,
        help=f"Database path (default: {config.database_path})"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # add command
    add_parser = subparsers.add_parser("add", help="Track a wallet for a user")
    add_parser.add_argument("user", type=int, help="Telegram user id")
    add_parser.add_argument("address", help="Wallet address (0x...)")
    add_parser.add_argument("--note", "-n", help="Label shown in notifications")

    # remove command
    remove_parser = subparsers.add_parser("remove", help="Stop tracking a wallet")
    remove_parser.add_argument("user", type=int, help="Telegram user id")
    remove_parser.add_argument("address", help="Wallet address (0x...)")

    # list command
    list_parser = subparsers.add_parser("list", help="List tracked wallets")
    list_parser.add_argument("--user", type=int, help="Only this user's wallets")

    # positions command
    positions_parser = subparsers.add_parser("positions", help="Show live open positions")
    positions_parser.add_argument("address", help="Wallet address (0x...)")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    # Route to command handler
    commands = {
        "add": cmd_add,
        "remove": cmd_remove,
        "list": cmd_list,
        "positions": cmd_positions,
    }

    return commands[args.command](args) or 0


if __name__ == "__main__":
    sys.exit(main())
