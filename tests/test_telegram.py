"""
Tests for the Telegram client and bot (aptusbot/bot/)
"""
import asyncio
import json
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from aptusbot.booking import BookingService
from aptusbot.bot.client import TelegramClient, TelegramError, book_now_keyboard
from aptusbot.bot.telegram import TEST_TEXT, WELCOME_TEXT, TelegramBot
from aptusbot.common.models import ActionResult, FailureReason, SlotKey
from aptusbot.common.schedule import PassSchedule


def message_update(text, chat_id=42, update_id=1):
    return {"update_id": update_id, "message": {"text": text, "chat": {"id": chat_id}}}


def callback_update(data, chat_id=42, update_id=1):
    return {
        "update_id": update_id,
        "callback_query": {"id": "cb-1", "data": data, "message": {"chat": {"id": chat_id}}},
    }


def make_bot(book_result=None):
    client = MagicMock(spec=TelegramClient)
    client.send_message = AsyncMock(return_value=True)
    client.answer_callback_query = AsyncMock(return_value=True)
    client.get_updates = AsyncMock(return_value=[])
    booking = MagicMock(spec=BookingService)
    booking.schedule = PassSchedule()
    if book_result is None:
        book_result = ActionResult.ok("Slot booked successfully")
    booking.book = AsyncMock(return_value=book_result)
    return TelegramBot(client, booking), client, booking


class TestTelegramClient:
    @pytest.mark.asyncio
    async def test_send_message(self):
        sent = []

        def handler(request):
            sent.append((request.url.path, json.loads(request.content)))
            return httpx.Response(200, json={"ok": True, "result": {"message_id": 1}})

        client = TelegramClient("123:abc", transport=httpx.MockTransport(handler))
        ok = await client.send_message("42", "hello", reply_markup=book_now_keyboard("book_2025-06-02_1"))
        await client.aclose()

        assert ok is True
        path, body = sent[0]
        assert path == "/bot123:abc/sendMessage"
        assert body["chat_id"] == "42"
        assert body["reply_markup"]["inline_keyboard"][0][0]["callback_data"] == "book_2025-06-02_1"

    @pytest.mark.asyncio
    async def test_send_message_without_markup_omits_field(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"ok": True, "result": {}})

        client = TelegramClient("123:abc", transport=httpx.MockTransport(handler))
        await client.send_message("42", "hello")
        assert "reply_markup" not in bodies[0]

    @pytest.mark.asyncio
    async def test_send_message_api_error_returns_false(self):
        def handler(request):
            return httpx.Response(400, json={"ok": False, "description": "Bad Request: chat not found"})

        client = TelegramClient("123:abc", transport=httpx.MockTransport(handler))
        assert await client.send_message("42", "hello") is False

    @pytest.mark.asyncio
    async def test_get_updates(self):
        def handler(request):
            body = json.loads(request.content)
            assert body["offset"] == 5
            return httpx.Response(200, json={"ok": True, "result": [{"update_id": 5}]})

        client = TelegramClient("123:abc", transport=httpx.MockTransport(handler))
        assert await client.get_updates(offset=5, timeout=0) == [{"update_id": 5}]

    @pytest.mark.asyncio
    async def test_get_updates_raises_on_error(self):
        client = TelegramClient(
            "123:abc",
            transport=httpx.MockTransport(lambda request: httpx.Response(401, json={"ok": False, "description": "Unauthorized"})),
        )
        with pytest.raises(TelegramError):
            await client.get_updates()


class TestTelegramBot:
    @pytest.mark.asyncio
    async def test_start(self):
        bot, client, _ = make_bot()
        await bot.on_update(message_update("/start"))
        client.send_message.assert_awaited_once_with("42", WELCOME_TEXT)

    @pytest.mark.asyncio
    async def test_test_command(self):
        bot, client, _ = make_bot()
        await bot.on_update(message_update("/test"))
        client.send_message.assert_awaited_once_with("42", TEST_TEXT)

    @pytest.mark.asyncio
    async def test_unhandled_message_is_ignored(self):
        bot, client, booking = make_bot()
        await bot.on_update(message_update("hello"))
        client.send_message.assert_not_awaited()
        booking.book.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_callback_books_slot(self):
        bot, client, booking = make_bot()
        await bot.on_update(callback_update("book_2025-06-03_2"))

        booking.book.assert_awaited_once_with(date(2025, 6, 3), 2)
        client.answer_callback_query.assert_awaited_once_with("cb-1")
        text = client.send_message.await_args.args[1]
        assert text == "📅 Slot booked!\nDate: 2025-06-03\n⏰ Time: 12:00 - 14:00"

    @pytest.mark.asyncio
    async def test_start_deep_link_books_slot(self):
        bot, _, booking = make_bot()
        await bot.on_update(message_update("/start book_2025-06-03_2"))
        booking.book.assert_awaited_once_with(date(2025, 6, 3), 2)

    @pytest.mark.asyncio
    async def test_authentication_failure_message(self):
        bot, client, _ = make_bot(ActionResult.failed(FailureReason.AUTH_FAILED, "Authentication failed"))
        await bot.on_update(callback_update("book_2025-06-03_2"))
        client.send_message.assert_awaited_once_with("42", "❌ Authentication failed. Please try again later.")

    @pytest.mark.asyncio
    async def test_booking_failure_message(self):
        bot, client, _ = make_bot(ActionResult.failed(FailureReason.SLOT_UNAVAILABLE, "Slot is not available"))
        await bot.on_update(callback_update("book_2025-06-03_2"))
        client.send_message.assert_awaited_once_with("42", "❌ Slot is not available or booking failed.")

    @pytest.mark.asyncio
    async def test_malformed_command(self):
        bot, client, booking = make_bot()
        await bot.on_update(callback_update("book_garbage"))

        booking.book.assert_not_awaited()
        client.send_message.assert_awaited_once_with("42", "❌ Invalid booking command format")

    @pytest.mark.asyncio
    async def test_poll_forever_advances_offset(self):
        bot, client, booking = make_bot()
        calls = []

        async def get_updates(offset=None, timeout=30):
            calls.append(offset)
            if len(calls) == 1:
                return [message_update("/start", update_id=7), callback_update("book_2025-06-03_2", update_id=8)]
            bot.stop()
            return []

        client.get_updates.side_effect = get_updates

        await asyncio.wait_for(bot.poll_forever(), timeout=1)

        assert calls == [None, 9]
        booking.book.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_poll_forever_survives_api_errors(self):
        bot, client, _ = make_bot()
        calls = []

        async def get_updates(offset=None, timeout=30):
            calls.append(offset)
            if len(calls) == 1:
                raise TelegramError("getUpdates: Conflict")
            bot.stop()
            return []

        client.get_updates.side_effect = get_updates

        await asyncio.wait_for(bot.poll_forever(error_delay=0), timeout=1)
        assert len(calls) == 2


class TestBookNowKeyboard:
    def test_single_button(self):
        assert book_now_keyboard("book_2025-06-02_1") == {
            "inline_keyboard": [[{"text": "Book Now", "callback_data": "book_2025-06-02_1"}]]
        }

    def test_action_matches_slot_key(self):
        key = SlotKey(date=date(2025, 6, 2), pass_no=1)
        assert book_now_keyboard(f"book_{key.date}_{key.pass_no}")["inline_keyboard"][0][0]["callback_data"] == (
            "book_2025-06-02_1"
        )
