"""
Notification Formatting
=======================

Pure functions that turn position changes and snapshots into Telegram HTML
messages. No I/O, no state.
"""

import html
from typing import Optional, Sequence

from ..models import (
    Closed,
    Decreased,
    Increased,
    Liquidated,
    MarginAdded,
    MarginRemoved,
    Opened,
    Position,
    PositionChange,
)

HYPERDASH_TRADER_URL = "https://legacy.hyperdash.com/trader/{address}"

# Decimal places kept before trimming, enough to hide float artifacts
# like 2744.7999999999997
PRICE_DECIMALS = 10


def round_price(value: float) -> float:
    return round(value, PRICE_DECIMALS)


def trim_number(value: float) -> str:
    """Render a number without float noise or trailing zeros (2744.80 -> 2744.8)."""
    text = f"{round_price(value):.{PRICE_DECIMALS}f}".rstrip("0").rstrip(".")
    if text in ("-0", ""):
        return "0"
    return text


def format_pnl(pnl: float) -> str:
    if pnl >= 0:
        return f"🟢 +${pnl:.2f}"
    return f"🔴 -${abs(pnl):.2f}"


def format_signed_usd(value: float) -> str:
    if value >= 0:
        return f"+${value:.2f}"
    return f"-${abs(value):.2f}"


def pnl_percent(unrealized_pnl: float, entry_price: float, size: float) -> float:
    """PnL relative to entry notional; 0 when the entry value is not positive."""
    entry_value = entry_price * abs(size)
    if entry_value <= 0:
        return 0.0
    return unrealized_pnl / entry_value * 100


def direction_emoji(is_long: bool) -> str:
    return "🟢" if is_long else "🔴"


def direction_str(is_long: bool) -> str:
    return "Long" if is_long else "Short"


def shorten_address(address: str) -> str:
    if len(address) <= 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


def format_wallet_display(wallet_address: str, note: Optional[str] = None, full: bool = False) -> str:
    """
    Wallet as shown to users: short or full address in <code>, plus the note.

    Example: <code>0x1234...abcd</code> (whale)
    """
    addr = wallet_address if full else shorten_address(wallet_address)
    if note:
        return f"<code>{addr}</code> ({html.escape(note)})"
    return f"<code>{addr}</code>"


def format_change(change: PositionChange, wallet_display: str) -> str:
    """
    Render one position change as a Telegram HTML message.

    Args:
        change: Event produced by the change detector
        wallet_display: Output of format_wallet_display for the recipient

    Returns:
        Message text (HTML parse mode)
    """
    coin = html.escape(change.coin)

    if isinstance(change, Opened):
        return (
            f"<b>{direction_emoji(change.is_long)} {change.leverage}x {coin} "
            f"{direction_str(change.is_long)} Opened</b>\n\n"
            f"{wallet_display}\n"
            f"Size: {trim_number(change.size)} | ${change.position_value:.2f}\n"
            f"Entry: ${change.entry_price:.4f}"
        )

    if isinstance(change, Closed):
        return (
            f"<b>{direction_emoji(change.was_long)} {change.leverage}x {coin} "
            f"{direction_str(change.was_long)} Closed</b>\n\n"
            f"{wallet_display}\n"
            f"Entry: ${change.entry_price:.4f}\n"
            f"PnL: {format_pnl(change.realized_pnl)}"
        )

    if isinstance(change, Increased):
        return (
            f"<b>{direction_emoji(change.is_long)} {change.leverage}x {coin} "
            f"{direction_str(change.is_long)} Increased</b>\n\n"
            f"{wallet_display}\n"
            f"Size: {change.old_size:.4f} → {change.new_size:.4f}\n"
            f"Entry: ${change.entry_price:.4f}"
        )

    if isinstance(change, Decreased):
        return (
            f"<b>{direction_emoji(change.is_long)} {change.leverage}x {coin} "
            f"{direction_str(change.is_long)} Decreased</b>\n\n"
            f"{wallet_display}\n"
            f"Size: {change.old_size:.4f} → {change.new_size:.4f}\n"
            f"Entry: ${change.entry_price:.4f}\n"
            f"PnL: {format_pnl(change.realized_pnl)}"
        )

    if isinstance(change, MarginAdded):
        return (
            f"<b>➕ {change.leverage}x {coin} {direction_str(change.is_long)} Margin Added</b>\n\n"
            f"{wallet_display}\n"
            f"Margin: ${change.old_margin:.2f} → ${change.new_margin:.2f} "
            f"(+${change.new_margin - change.old_margin:.2f})"
        )

    if isinstance(change, MarginRemoved):
        return (
            f"<b>➖ {change.leverage}x {coin} {direction_str(change.is_long)} Margin Removed</b>\n\n"
            f"{wallet_display}\n"
            f"Margin: ${change.old_margin:.2f} → ${change.new_margin:.2f} "
            f"(-${change.old_margin - change.new_margin:.2f})"
        )

    if isinstance(change, Liquidated):
        return (
            f"<b>💀 {change.leverage}x {coin} {direction_str(change.was_long)} Liquidated</b>\n\n"
            f"{wallet_display}\n"
            f"Lost: 🔴 -${change.lost_margin:.2f}"
        )

    raise TypeError(f"Unknown position change: {change!r}")


def _format_position_block(position: Position) -> str:
    size = position.size
    entry_price = position.entry_price
    current_price = round_price(position.notional / abs(size)) if size else 0.0
    pnl = position.pnl
    pct = pnl_percent(pnl, entry_price, size)
    pct_str = f"+{pct:.2f}%" if pct >= 0 else f"{pct:.2f}%"
    pnl_str = f"<b>{format_signed_usd(pnl)}</b>"
    coin = html.escape(position.coin)
    margin_mode = " (isolated)" if position.is_isolated else ""
    liquidation_price = position.liquidation_price
    liquidation_line = (
        f"⚠️ Liq: ${trim_number(liquidation_price)}\n" if liquidation_price is not None else ""
    )

    return (
        f"\n{direction_emoji(position.is_long)} <b>{position.leverage_value}x {coin} "
        f"{direction_str(position.is_long)}</b>{margin_mode}\n"
        f"📊 Size: {trim_number(abs(size))} {coin} (${position.notional:.2f})\n"
        f"💰 Entry: ${trim_number(entry_price)}\n"
        f"📍 Current: ${trim_number(current_price)} "
        f"({format_signed_usd(current_price - entry_price)})\n"
        f"💵 PnL: {pnl_str} ({pct_str})\n"
        f"{liquidation_line}"
    )


def format_positions_summary(
    wallet_display: str,
    wallet_address: str,
    positions: Sequence[Position],
) -> str:
    """
    Render a wallet's open positions (the /positions reply).

    Zero-size entries are skipped.
    """
    hyperdash_link = (
        f'<a href="{HYPERDASH_TRADER_URL.format(address=wallet_address)}">Hyperdash</a>'
    )
    open_positions = [p for p in positions if p.is_open]

    if not open_positions:
        return (
            f"<b>📊 Open Positions</b>\n\n"
            f"👛 Wallet: {wallet_display}\n\n"
            f"<i>No open positions</i>\n\n"
            f"{hyperdash_link}"
        )

    message = f"<b>📊 Open Positions</b>\n\n👛 Wallet: {wallet_display}\n"
    for position in open_positions:
        message += _format_position_block(position)
    message += f"\n{hyperdash_link}"
    return message
