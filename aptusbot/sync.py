"""
Sync engine: log in, scrape the coming weeks, diff against the store,
announce freed slots and persist what was seen.
"""
import asyncio
import logging
from datetime import date, timedelta
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol

import httpx

from .common.config import CredentialsConfig
from .common.models import CycleReport, LoginResult, Slot, SlotKey, SlotStatus, Transition
from .common.schedule import PassSchedule
from .common.scheduler import IntervalScheduler, RetryStrategy
from .common.storage import SlotStore
from .portal.auth import AuthSessionClient
from .portal.scraper import CalendarScraper, ScrapeError
from .portal.session import PortalSession

logger = logging.getLogger(__name__)


class CycleState(str, Enum):
    IDLE = "idle"
    LOGGING_IN = "logging_in"
    SCRAPING = "scraping"
    DIFFING = "diffing"
    PERSISTING = "persisting"


class SlotNotifier(Protocol):
    async def notify_slot_freed(self, day: date, pass_no: int, human_time: str): ...


def diff_slots(
    previous: Dict[SlotKey, SlotStatus],
    slots: List[Slot],
) -> List[Transition]:
    """Transitions for every scraped slot against the previous statuses"""
    return [
        Transition(key=slot.key, old_status=previous.get(slot.key), new_status=slot.status)
        for slot in slots
    ]


class SyncEngine:
    """
    One cycle = login (with retries) + scrape N weeks + diff + persist.

    Cycles never overlap: a trigger arriving while one is running is
    skipped. A week that fails to scrape is skipped on its own; only a
    failed login aborts the whole cycle.
    """

    def __init__(
        self,
        auth: AuthSessionClient,
        scraper: CalendarScraper,
        store: SlotStore,
        notifier: SlotNotifier,
        credentials: CredentialsConfig,
        group_id: int = 2,
        weeks: int = 3,
        schedule: Optional[PassSchedule] = None,
        login_retries: int = 3,
        login_retry_delay_ms: int = 1000,
        current_monday: Optional[Callable[[], date]] = None,
        notify_unseen: bool = False,
    ):
        self.auth = auth
        self.scraper = scraper
        self.store = store
        self.notifier = notifier
        self.credentials = credentials
        self.group_id = group_id
        self.weeks = weeks
        self.schedule = schedule or PassSchedule()
        self.login_retries = login_retries
        self.login_retry_delay_ms = login_retry_delay_ms
        self.current_monday = current_monday or self._local_monday
        self.notify_unseen = notify_unseen

        self.state = CycleState.IDLE
        self.last_report: Optional[CycleReport] = None
        self._lock = asyncio.Lock()

    @staticmethod
    def _local_monday() -> date:
        today = date.today()
        return today - timedelta(days=today.weekday())

    def week_starts(self) -> List[date]:
        monday = self.current_monday()
        return [monday + timedelta(weeks=i) for i in range(self.weeks)]

    def should_notify(self, transition: Transition) -> bool:
        if transition.is_notify_worthy:
            return True
        return (
            self.notify_unseen
            and transition.old_status is None
            and transition.new_status == SlotStatus.FREE
        )

    async def run_cycle(self) -> Optional[CycleReport]:
        """
        Run one sync cycle.

        Returns:
            CycleReport, or None if a cycle was already running
        """
        if self._lock.locked():
            logger.info("Sync cycle already in progress, skipping trigger")
            return None

        async with self._lock:
            report = CycleReport()
            try:
                await self._run(report)
            finally:
                self.state = CycleState.IDLE
            self.last_report = report
            return report

    async def _run(self, report: CycleReport):
        logger.info("Starting slot update")
        self.state = CycleState.LOGGING_IN
        login = await self._login(report)
        if not login:
            logger.error(f"Login failed after {report.login_attempts} attempts, aborting slot update")
            report.mark_aborted(login.status or "Login failed")
            return

        session: PortalSession = login.session
        try:
            previous = {slot.key: slot.status for slot in self.store.find_all()}

            for start in self.week_starts():
                self.state = CycleState.SCRAPING
                slots = await self._scrape_week(session, start, report)
                if slots is None:
                    continue

                self.state = CycleState.DIFFING
                for transition in diff_slots(previous, slots):
                    if self.should_notify(transition):
                        report.freed.append(transition)
                        await self._notify(transition)

                self.state = CycleState.PERSISTING
                for slot in slots:
                    self.store.save(slot)
                report.slots_seen += len(slots)
        finally:
            await session.aclose()

        report.mark_finished()
        logger.info(
            f"Completed slot update: {len(report.weeks_scraped)} week(s), "
            f"{report.slots_seen} slots, {len(report.freed)} freed"
        )

    async def _login(self, report: CycleReport) -> LoginResult:
        retry = RetryStrategy(
            max_attempts=self.login_retries,
            base_delay_ms=self.login_retry_delay_ms,
        )
        result = LoginResult()
        while retry.should_retry():
            retry.record_attempt()
            report.login_attempts = retry.attempts
            logger.info(f"Login attempt {retry.attempts}/{self.login_retries}")
            result = await self.auth.login(self.credentials.username, self.credentials.password)
            if result:
                return result
            logger.warning(f"Login attempt {retry.attempts} failed: {result.status}")
            if retry.should_retry():
                await retry.wait()
        return result

    async def _scrape_week(
        self,
        session: PortalSession,
        start: date,
        report: CycleReport,
    ) -> Optional[List[Slot]]:
        try:
            result = await self.scraper.fetch_slots(session, start, self.group_id)
        except ScrapeError as e:
            logger.error(f"Skipping week {start}: {e} ({e.reason.value})")
            report.weeks_skipped.append(start)
            return None
        except httpx.HTTPError as e:
            logger.error(f"Skipping week {start}: network error {e}")
            report.weeks_skipped.append(start)
            return None
        except Exception as e:
            logger.error(f"Skipping week {start}: unexpected scrape failure {e}", exc_info=True)
            report.weeks_skipped.append(start)
            return None

        if result.is_auth_lost:
            logger.error(f"Session lost while scraping week {start}, skipping")
            report.weeks_skipped.append(start)
            return None

        report.weeks_scraped.append(start)
        return result.slots

    async def _notify(self, transition: Transition):
        key = transition.key
        human_time = self.schedule.label(key.pass_no, key.date)
        logger.info(f"Slot freed: {key} ({transition.old_status.value if transition.old_status else 'new'} -> free)")
        try:
            await self.notifier.notify_slot_freed(key.date, key.pass_no, human_time)
        except Exception as e:
            logger.error(f"Failed to send notification for {key}: {e}", exc_info=True)

    async def run_forever(self, scheduler: IntervalScheduler, max_runs: Optional[int] = None):
        """Run cycles at the scheduler's interval, first one immediately"""
        logger.info(f"Polling every {scheduler.interval}s for {self.weeks} week(s)")
        await scheduler.run_forever(self.run_cycle, max_runs=max_runs)
