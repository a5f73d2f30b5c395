"""
Tests for the Telegram command surface.
"""

import pytest

from conftest import WALLET_A, WALLET_B, FakeClient, make_position
from position_tracker.bot import CommandHandler, CommandListener, parse_command
from position_tracker.db import WalletDB
from position_tracker.errors import ProviderError

USER = 1001


@pytest.fixture
def wallet_db(db_path):
    return WalletDB(db_path)


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def handler(wallet_db, client):
    return CommandHandler(wallet_db, client, max_wallets_per_user=3)


class TestParseCommand:

    @pytest.mark.parametrize("text,expected", [
        ("/list", ("list", "")),
        ("/ADD 0xabc whale", ("add", "0xabc whale")),
        ("/positions@TrackerBot 2", ("positions", "2")),
        ("hello", None),
        ("/", None),
        ("", None),
    ])
    def test_parse(self, text, expected):
        assert parse_command(text) == expected


class TestAdd:

    @pytest.mark.asyncio
    async def test_add_with_note(self, handler, wallet_db):
        reply = await handler.handle(USER, f"/add {WALLET_A.upper().replace('0X', '0x')} big whale")

        assert reply.startswith("✅ Now tracking wallet (big whale)")
        assert WALLET_A in reply
        assert wallet_db.get_user_wallets(USER)[0].note == "big whale"

    @pytest.mark.asyncio
    async def test_add_requires_address(self, handler):
        assert "Please provide a wallet address" in await handler.handle(USER, "/add")

    @pytest.mark.asyncio
    async def test_add_rejects_invalid_address(self, handler):
        assert "Invalid wallet address" in await handler.handle(USER, "/add 0x123")

    @pytest.mark.asyncio
    async def test_add_rejects_reserved_note(self, handler, wallet_db):
        reply = await handler.handle(USER, f"/add {WALLET_A} 3")

        assert "reserved for wallet indexing" in reply
        assert wallet_db.get_user_wallet_count(USER) == 0

    @pytest.mark.asyncio
    async def test_add_rejects_duplicate_note(self, handler):
        await handler.handle(USER, f"/add {WALLET_A} whale")

        reply = await handler.handle(USER, f"/add {WALLET_B} WHALE")

        assert "already have a wallet with this note" in reply

    @pytest.mark.asyncio
    async def test_add_updates_note(self, handler):
        await handler.handle(USER, f"/add {WALLET_A} whale")

        assert "Updated note to 'shark'" in await handler.handle(USER, f"/add {WALLET_A} shark")
        assert "Updated note (removed)" in await handler.handle(USER, f"/add {WALLET_A}")
        assert "already being tracked" in await handler.handle(USER, f"/add {WALLET_A}")

    @pytest.mark.asyncio
    async def test_wallet_limit(self, handler):
        for i in range(3):
            await handler.handle(USER, f"/add 0x{i:040x}")

        reply = await handler.handle(USER, f"/add {WALLET_A}")

        assert "maximum limit of 3" in reply
        # Updating an already tracked wallet is still allowed
        assert "Updated note" in await handler.handle(USER, f"/add 0x{0:040x} first")


class TestRemoveAndList:

    @pytest.mark.asyncio
    async def test_list_empty(self, handler):
        assert "not tracking any wallets" in await handler.handle(USER, "/list")

    @pytest.mark.asyncio
    async def test_list_is_numbered_with_full_addresses(self, handler):
        await handler.handle(USER, f"/add {WALLET_A} whale")
        await handler.handle(USER, f"/add {WALLET_B}")

        reply = await handler.handle(USER, "/list")

        assert f"1. <code>{WALLET_A}</code> (whale)" in reply
        assert f"2. <code>{WALLET_B}</code>" in reply

    @pytest.mark.asyncio
    @pytest.mark.parametrize("identifier", ["1", "Whale", WALLET_A])
    async def test_remove_by_index_note_or_address(self, handler, wallet_db, identifier):
        await handler.handle(USER, f"/add {WALLET_A} whale")

        reply = await handler.handle(USER, f"/remove {identifier}")

        assert reply.startswith("✅ Stopped tracking wallet")
        assert wallet_db.get_user_wallet_count(USER) == 0

    @pytest.mark.asyncio
    async def test_remove_unknown(self, handler):
        assert "Wallet not found" in await handler.handle(USER, "/remove nobody")
        assert "was not being tracked" in await handler.handle(USER, f"/remove {WALLET_B}")


class TestPositions:

    @pytest.mark.asyncio
    async def test_positions_by_index(self, handler, client):
        await handler.handle(USER, f"/add {WALLET_A} whale")
        client.snapshots[WALLET_A] = [make_position("BTC", "0.5", entry_px="60000")]

        reply = await handler.handle(USER, "/positions 1")

        assert client.calls == [WALLET_A]
        assert "(whale)" in reply
        assert "BTC Long" in reply
        assert "Hyperdash" in reply

    @pytest.mark.asyncio
    async def test_positions_for_untracked_address(self, handler, client):
        reply = await handler.handle(USER, f"/positions {WALLET_B}")

        assert client.calls == [WALLET_B]
        assert "No open positions" in reply

    @pytest.mark.asyncio
    async def test_positions_fetch_failure(self, handler, client):
        client.snapshots[WALLET_A] = ProviderError("API error 502")

        reply = await handler.handle(USER, f"/positions {WALLET_A}")

        assert "Failed to fetch positions" in reply

    @pytest.mark.asyncio
    async def test_positions_unknown_identifier(self, handler):
        assert "Wallet not found" in await handler.handle(USER, "/positions nobody")


class RecordingTelegram:

    def __init__(self):
        self.sent = []

    def send_message(self, chat_id, text, reply_to_message_id=None):
        self.sent.append((chat_id, text, reply_to_message_id))
        return 1


class TestListener:

    @pytest.mark.asyncio
    async def test_private_command_gets_reply(self, handler):
        telegram = RecordingTelegram()
        listener = CommandListener(telegram, handler, poll_timeout=1)

        await listener.process_update({
            "update_id": 10,
            "message": {
                "message_id": 77,
                "from": {"id": USER},
                "chat": {"id": USER, "type": "private"},
                "text": "/help",
            },
        })

        assert listener.offset == 11
        assert len(telegram.sent) == 1
        chat_id, text, reply_to = telegram.sent[0]
        assert chat_id == USER
        assert reply_to == 77
        assert "/positions" in text

    @pytest.mark.asyncio
    async def test_group_messages_are_ignored(self, handler):
        telegram = RecordingTelegram()
        listener = CommandListener(telegram, handler, poll_timeout=1)

        await listener.process_update({
            "update_id": 3,
            "message": {
                "message_id": 1,
                "from": {"id": USER},
                "chat": {"id": -100, "type": "group"},
                "text": "/list",
            },
        })

        assert listener.offset == 4
        assert telegram.sent == []

    @pytest.mark.asyncio
    async def test_plain_text_is_ignored(self, handler):
        telegram = RecordingTelegram()
        listener = CommandListener(telegram, handler, poll_timeout=1)

        await listener.process_update({
            "update_id": 4,
            "message": {"message_id": 1, "from": {"id": USER},
                        "chat": {"id": USER, "type": "private"}, "text": "hello"},
        })

        assert telegram.sent == []
