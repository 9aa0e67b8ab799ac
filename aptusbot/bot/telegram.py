"""
Telegram bot: turns "Book Now" presses and /start deep links into bookings
"""
import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from .client import TelegramClient, TelegramError
from ..booking import BookingService
from ..common.models import FailureReason, parse_book_action
from ..common.schedule import PassSchedule

logger = logging.getLogger(__name__)

WELCOME_TEXT = "Welcome! Click a 'Book Now' button to book a slot."
TEST_TEXT = "Test command received!"


class TelegramBot:
    """Handles bot updates by delegating bookings to a BookingService"""

    def __init__(
        self,
        client: TelegramClient,
        booking: BookingService,
        schedule: Optional[PassSchedule] = None,
        poll_timeout: int = 30,
    ):
        self.client = client
        self.booking = booking
        self.schedule = schedule or booking.schedule
        self.poll_timeout = poll_timeout
        self.offset: Optional[int] = None
        self._stopped = False

    async def on_update(self, update: Dict[str, Any]):
        message = update.get("message")
        callback = update.get("callback_query")

        if message and message.get("text"):
            text = message["text"].strip()
            chat_id = str(message["chat"]["id"])
            logger.debug(f"Received message: {text} from chatId: {chat_id}")

            if text.startswith("/start book_"):
                await self.handle_book_command(text[len("/start "):], chat_id)
            elif text == "/start":
                await self.client.send_message(chat_id, WELCOME_TEXT)
            elif text == "/test":
                await self.client.send_message(chat_id, TEST_TEXT)
            else:
                logger.info(f"Unhandled message: {text} from chatId: {chat_id}")

        elif callback:
            data = callback.get("data", "")
            chat_id = str(callback["message"]["chat"]["id"])
            logger.debug(f"Received callback: {data} from chatId: {chat_id}")
            await self.client.answer_callback_query(callback["id"])
            if data.startswith("book_"):
                await self.handle_book_command(data, chat_id)

    async def handle_book_command(self, command: str, chat_id: str):
        try:
            key = parse_book_action(command)
        except ValueError as e:
            logger.warning(f"Invalid booking command {command!r} from chatId {chat_id}: {e}")
            await self.send_error(chat_id, "Invalid booking command format")
            return

        result = await self.booking.book(key.date, key.pass_no)
        if not result:
            if result.reason == FailureReason.AUTH_FAILED:
                await self.send_error(chat_id, "Authentication failed. Please try again later.")
            else:
                await self.send_error(chat_id, "Slot is not available or booking failed.")
            logger.warning(f"Booking failed: chatId={chat_id}, slot={key}, reason={result.reason.value}")
            return

        time = self.schedule.label(key.pass_no, key.date)
        await self.client.send_message(
            chat_id,
            f"📅 Slot booked!\nDate: {key.date.isoformat()}\n⏰ Time: {time}",
        )
        logger.info(f"Booked slot for chatId: {chat_id}, slot={key}")

    async def send_error(self, chat_id: str, text: str):
        await self.client.send_message(chat_id, f"❌ {text}")

    def stop(self):
        self._stopped = True

    async def poll_forever(self, error_delay: float = 5.0):
        """Long-poll getUpdates and dispatch each update in order"""
        logger.info("Telegram bot polling started")
        while not self._stopped:
            try:
                updates = await self.client.get_updates(offset=self.offset, timeout=self.poll_timeout)
            except (TelegramError, httpx.HTTPError) as e:
                logger.error(f"Failed to fetch Telegram updates: {e}")
                await asyncio.sleep(error_delay)
                continue

            for update in updates:
                self.offset = update["update_id"] + 1
                try:
                    await self.on_update(update)
                except Exception as e:
                    logger.error(f"Error processing update: {e}", exc_info=True)
        logger.info("Telegram bot polling stopped")
