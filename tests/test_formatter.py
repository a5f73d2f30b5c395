"""
Tests for notification and /positions rendering.
"""

from types import SimpleNamespace

import pytest

from conftest import WALLET_A, make_position
from position_tracker.alerts.formatter import (
    format_change,
    format_positions_summary,
    format_wallet_display,
    pnl_percent,
    trim_number,
)
from position_tracker.models import (
    Closed,
    Decreased,
    Increased,
    Liquidated,
    MarginAdded,
    MarginRemoved,
    Opened,
)

DISPLAY = "<code>0xaaaa...aaaa</code>"


class TestHelpers:

    @pytest.mark.parametrize("value,expected", [
        (2744.7999999999997, "2744.8"),
        (100.0, "100"),
        (0.000123, "0.000123"),
        (-0.0, "0"),
        (1.5, "1.5"),
    ])
    def test_trim_number(self, value, expected):
        assert trim_number(value) == expected

    def test_pnl_percent(self):
        assert pnl_percent(50.0, 100.0, 10.0) == pytest.approx(5.0)
        assert pnl_percent(-50.0, 100.0, -10.0) == pytest.approx(-5.0)

    def test_pnl_percent_guards_zero_entry_value(self):
        assert pnl_percent(50.0, 0.0, 10.0) == 0.0
        assert pnl_percent(50.0, 100.0, 0.0) == 0.0

    def test_wallet_display_short_and_full(self):
        assert format_wallet_display(WALLET_A) == DISPLAY
        assert format_wallet_display(WALLET_A, full=True) == f"<code>{WALLET_A}</code>"

    def test_wallet_display_escapes_note(self):
        assert format_wallet_display(WALLET_A, "<b>me</b>") == (
            f"{DISPLAY} (&lt;b&gt;me&lt;/b&gt;)"
        )


class TestFormatChange:

    def test_opened(self):
        text = format_change(
            Opened(coin="ETH", size=2.0, entry_price=3000.0, leverage=5, position_value=6000.0, is_long=False),
            DISPLAY,
        )
        assert text == (
            "<b>🔴 5x ETH Short Opened</b>\n\n"
            f"{DISPLAY}\n"
            "Size: 2 | $6000.00\n"
            "Entry: $3000.0000"
        )

    def test_closed_with_loss(self):
        text = format_change(
            Closed(coin="BTC", realized_pnl=-12.5, entry_price=50000.0, was_long=True, leverage=10),
            DISPLAY,
        )
        assert "<b>🟢 10x BTC Long Closed</b>" in text
        assert "PnL: 🔴 -$12.50" in text

    def test_increased(self):
        text = format_change(
            Increased(coin="SOL", old_size=10.0, new_size=15.0, entry_price=150.0, leverage=3, is_long=True),
            DISPLAY,
        )
        assert "Increased</b>" in text
        assert "Size: 10.0000 → 15.0000" in text

    def test_decreased_shows_realized_pnl(self):
        text = format_change(
            Decreased(coin="SOL", old_size=10.0, new_size=4.0, entry_price=150.0,
                      realized_pnl=60.0, leverage=3, is_long=True),
            DISPLAY,
        )
        assert "Decreased</b>" in text
        assert "PnL: 🟢 +$60.00" in text

    def test_margin_events(self):
        added = format_change(
            MarginAdded(coin="BTC", old_margin=100.0, new_margin=150.0, leverage=5, is_long=True),
            DISPLAY,
        )
        removed = format_change(
            MarginRemoved(coin="BTC", old_margin=100.0, new_margin=60.0, leverage=5, is_long=False),
            DISPLAY,
        )
        assert "Margin: $100.00 → $150.00 (+$50.00)" in added
        assert "Margin: $100.00 → $60.00 (-$40.00)" in removed
        assert "Short Margin Removed" in removed

    def test_liquidated(self):
        text = format_change(
            Liquidated(coin="DOGE", lost_margin=250.0, was_long=False, leverage=20),
            DISPLAY,
        )
        assert "<b>💀 20x DOGE Short Liquidated</b>" in text
        assert "Lost: 🔴 -$250.00" in text

    def test_coin_is_escaped(self):
        text = format_change(
            Liquidated(coin="<x>", lost_margin=1.0, was_long=True, leverage=1),
            DISPLAY,
        )
        assert "&lt;x&gt;" in text

    def test_unknown_change_is_rejected(self):
        with pytest.raises(TypeError):
            format_change(SimpleNamespace(coin="BTC"), DISPLAY)


class TestPositionsSummary:

    def test_no_open_positions(self):
        text = format_positions_summary(DISPLAY, WALLET_A, [make_position("BTC", "0")])

        assert "<i>No open positions</i>" in text
        assert f"https://legacy.hyperdash.com/trader/{WALLET_A}" in text

    def test_open_position_block(self):
        position = make_position(
            "ETH", "-2.0", entry_px="3000", position_value="5800", unrealized_pnl="200", leverage=5,
        )

        text = format_positions_summary(DISPLAY, WALLET_A, [position])

        assert "🔴 <b>5x ETH Short</b>" in text
        assert "📊 Size: 2 ETH ($5800.00)" in text
        assert "💰 Entry: $3000" in text
        assert "📍 Current: $2900 (-$100.00)" in text
        assert "💵 PnL: <b>+$200.00</b> (+3.33%)" in text
        assert text.endswith("Hyperdash</a>")

    def test_isolated_position_shows_margin_mode_and_liquidation(self):
        position = make_position("BTC", "0.5", entry_px="60000", leverage=10)
        position.leverage_type = "isolated"
        position.liquidation_px = "54321.5"

        text = format_positions_summary(DISPLAY, WALLET_A, [position])

        assert "🟢 <b>10x BTC Long</b> (isolated)" in text
        assert "⚠️ Liq: $54321.5" in text

    def test_cross_position_without_liquidation_price(self):
        text = format_positions_summary(DISPLAY, WALLET_A, [make_position("BTC", "0.5")])

        assert "(isolated)" not in text
        assert "Liq:" not in text
