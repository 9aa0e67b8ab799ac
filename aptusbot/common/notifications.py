"""
Notification services for the Aptus booking bot
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional
import httpx

from .models import NotificationPayload, SlotKey, book_action
from .config import NotificationsConfig
from ..bot.client import TelegramClient, book_now_keyboard

logger = logging.getLogger(__name__)


class NotificationProvider(ABC):
    """Base class for notification providers"""

    @abstractmethod
    async def send(self, payload: NotificationPayload) -> bool:
        """Send notification, return True if successful"""
        pass


class WebhookNotifier(NotificationProvider):
    """Generic webhook notifications (Slack, Discord, etc.)"""

    def __init__(self, webhook_url: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.webhook_url = webhook_url
        self.client = httpx.AsyncClient(transport=transport)

    async def send(self, payload: NotificationPayload) -> bool:
        try:
            # Format for Slack-compatible webhooks
            response = await self.client.post(
                self.webhook_url,
                json={
                    "text": payload.title,
                    "blocks": [
                        {
                            "type": "header",
                            "text": {"type": "plain_text", "text": payload.title}
                        },
                        {
                            "type": "section",
                            "text": {"type": "mrkdwn", "text": payload.message}
                        },
                        *([{
                            "type": "section",
                            "text": {"type": "mrkdwn", "text": f"<{payload.url}|Open portal>"}
                        }] if payload.url else [])
                    ]
                }
            )
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.error(f"Webhook send error: {e}")
            return False


class TelegramNotifier(NotificationProvider):
    """Sends to every configured chat, with a "Book Now" button when the payload has an action"""

    def __init__(self, client: TelegramClient, chat_ids: List[str]):
        self.client = client
        self.chat_ids = chat_ids

    async def send(self, payload: NotificationPayload) -> bool:
        markup = book_now_keyboard(payload.action) if payload.action else None
        results = [
            await self.client.send_message(chat_id, payload.message, reply_markup=markup)
            for chat_id in self.chat_ids
        ]
        return bool(results) and all(results)


class ConsoleNotifier(NotificationProvider):
    """Console output for local runs"""

    async def send(self, payload: NotificationPayload) -> bool:
        print("\n" + "=" * 60)
        print(f"📢 {payload.title}")
        print("-" * 60)
        print(payload.message)
        if payload.action:
            print(f"\n👉 {payload.action}")
        print("=" * 60 + "\n")
        return True


class NotificationManager:
    """Manages multiple notification providers"""

    def __init__(
        self,
        config: NotificationsConfig,
        telegram_client: Optional[TelegramClient] = None,
        portal_url: Optional[str] = None,
    ):
        self.providers: List[NotificationProvider] = []
        self.portal_url = portal_url
        self.telegram_client = telegram_client

        if config.console:
            self.providers.append(ConsoleNotifier())

        if config.webhook.enabled and config.webhook.url:
            self.providers.append(WebhookNotifier(config.webhook.url))
            logger.info("Webhook notifications enabled")
        elif config.webhook.enabled:
            logger.warning("Webhook notifications enabled but missing URL")

        telegram = config.telegram
        if telegram.enabled and telegram.bot_token and telegram.chat_ids:
            if self.telegram_client is None:
                self.telegram_client = TelegramClient(telegram.bot_token)
            self.providers.append(TelegramNotifier(self.telegram_client, telegram.chat_ids))
            logger.info(f"Telegram notifications enabled for {len(telegram.chat_ids)} chat(s)")
        elif telegram.enabled:
            logger.warning("Telegram notifications enabled but missing bot token or chat ids")

    async def notify_slot_freed(self, day: date, pass_no: int, human_time: str) -> int:
        """Announce a slot that went from busy/own to free"""
        key = SlotKey(date=day, pass_no=pass_no)
        payload = NotificationPayload(
            title="Slot freed up!",
            message=f"Slot freed up!\n📅  {day.isoformat()}\n⏰  {human_time}",
            url=self.portal_url,
            urgency="high",
            action=book_action(key),
        )
        return await self._send_all(payload)

    async def _send_all(self, payload: NotificationPayload) -> int:
        """Send notification through all providers; returns the success count"""
        results = await asyncio.gather(
            *[p.send(payload) for p in self.providers],
            return_exceptions=True
        )
        for provider, result in zip(self.providers, results):
            if isinstance(result, Exception):
                logger.error(f"{type(provider).__name__} raised: {result}")

        success_count = sum(1 for r in results if r is True)
        logger.info(f"Notifications sent: {success_count}/{len(self.providers)} successful")
        return success_count
