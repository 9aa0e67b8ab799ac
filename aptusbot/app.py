"""
Wires the components together from a Config
"""
import asyncio
import logging
from typing import Optional

import httpx

from .booking import BookingService
from .bot.telegram import TelegramBot
from .common.config import Config
from .common.notifications import NotificationManager
from .common.scheduler import IntervalScheduler
from .common.storage import open_store
from .portal.actions import ActionClient
from .portal.auth import AuthSessionClient
from .portal.scraper import CalendarScraper
from .sync import SyncEngine

logger = logging.getLogger(__name__)


class AptusBot:
    """
    All long-lived components for one configured account.

    Usage:
        async with AptusBot(config) as bot:
            await bot.sync.run_cycle()
    """

    def __init__(self, config: Config, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        portal = config.portal
        self.schedule = config.schedule.build()
        self.store = open_store(config.storage.path)

        self.auth = AuthSessionClient(
            portal.base_url,
            max_redirects=portal.max_login_redirects,
            timeout=portal.timeout,
            user_agent=portal.user_agent,
            transport=transport,
        )
        self.scraper = CalendarScraper(portal.base_url, self.schedule)
        self.actions = ActionClient(portal.base_url, self.schedule, portal.max_action_redirects)

        self.notifications = NotificationManager(
            config.notifications,
            portal_url=f"{portal.base_url}/AptusPortal",
        )
        self.sync = SyncEngine(
            auth=self.auth,
            scraper=self.scraper,
            store=self.store,
            notifier=self.notifications,
            credentials=config.credentials,
            group_id=portal.booking_group_id,
            weeks=config.sync.weeks,
            schedule=self.schedule,
            login_retries=config.sync.login_retries,
            login_retry_delay_ms=config.sync.login_retry_delay_ms,
            current_monday=config.sync.current_monday,
            notify_unseen=config.sync.notify_unseen,
        )
        self.booking = BookingService(
            auth=self.auth,
            actions=self.actions,
            store=self.store,
            credentials=config.credentials,
            group_id=portal.booking_group_id,
            schedule=self.schedule,
        )

        self.telegram: Optional[TelegramBot] = None
        telegram_client = self.notifications.telegram_client
        if telegram_client is not None:
            self.telegram = TelegramBot(
                telegram_client,
                self.booking,
                schedule=self.schedule,
                poll_timeout=config.notifications.telegram.poll_timeout,
            )

    def scheduler(self) -> IntervalScheduler:
        return IntervalScheduler(
            self.config.sync.poll_interval_seconds,
            timezone=self.config.sync.timezone,
        )

    async def run(self, max_runs: Optional[int] = None):
        """Poll the portal forever, with the Telegram bot alongside when configured"""
        scheduler = self.scheduler()
        poller = None
        if self.telegram is not None:
            poller = asyncio.create_task(self.telegram.poll_forever())
        try:
            await self.sync.run_forever(scheduler, max_runs=max_runs)
        finally:
            scheduler.cancel()
            if poller is not None:
                self.telegram.stop()
                poller.cancel()
                await asyncio.gather(poller, return_exceptions=True)

    async def close(self):
        if self.notifications.telegram_client is not None:
            await self.notifications.telegram_client.aclose()
        close_store = getattr(self.store, "close", None)
        if close_store is not None:
            close_store()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()
