"""
Booking service: week view over the slot store, plus book/cancel on the
portal with a fresh login per request.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import date, timedelta
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .common.config import CredentialsConfig
from .common.models import ActionResult, FailureReason, SlotKey, SlotStatus
from .common.schedule import PassSchedule
from .common.storage import SlotStore
from .portal.actions import ActionClient
from .portal.auth import AuthSessionClient

logger = logging.getLogger(__name__)

AUTH_FAILED_MESSAGE = "Authentication failed"
SLOT_UNAVAILABLE_MESSAGE = "Slot is not available"


class SlotView(BaseModel):
    time: str
    status: SlotStatus
    pass_no: int
    pass_date: date


class DayView(BaseModel):
    date: date
    day_name: str
    slots: List[SlotView] = Field(default_factory=list)


class WeekView(BaseModel):
    """One Monday-aligned week of stored slots"""
    week_days: List[DayView]
    current_week: int
    prev_week_date: date
    next_week_date: date
    free_only: bool
    pass_date: date


def monday_of(day: date) -> date:
    return day - timedelta(days=day.weekday())


class BookingService:
    """
    Books and cancels passes on behalf of the configured account.

    Every call logs in afresh and closes its session afterwards. Bookings of
    the same slot within this process are serialised.
    """

    def __init__(
        self,
        auth: AuthSessionClient,
        actions: ActionClient,
        store: SlotStore,
        credentials: CredentialsConfig,
        group_id: int = 2,
        schedule: Optional[PassSchedule] = None,
    ):
        self.auth = auth
        self.actions = actions
        self.store = store
        self.credentials = credentials
        self.group_id = group_id
        self.schedule = schedule or PassSchedule()
        self._locks: Dict[SlotKey, asyncio.Lock] = {}
        self._lock_users: Dict[SlotKey, int] = {}

    def week_view(self, start: date, free_only: bool = False) -> WeekView:
        """Seven days from the Monday of start, slots sorted by start time"""
        monday = monday_of(start)
        days = []
        for offset in range(7):
            day = monday + timedelta(days=offset)
            slots = [
                SlotView(
                    time=self.schedule.label(slot.pass_no, day),
                    status=slot.status,
                    pass_no=slot.pass_no,
                    pass_date=day,
                )
                for slot in self.store.find_by_date(day)
                if (not free_only or slot.is_free)
                and (slot.pass_no not in self.schedule or self.schedule.is_open(slot.pass_no, day))
            ]
            slots.sort(key=lambda s: self.schedule.start_time(s.pass_no, day))
            days.append(DayView(date=day, day_name=day.strftime("%a").upper(), slots=slots))

        logger.info(f"Week view for week starting: {monday}, freeOnly: {free_only}")
        return WeekView(
            week_days=days,
            current_week=monday.isocalendar()[1],
            prev_week_date=monday - timedelta(weeks=1),
            next_week_date=monday + timedelta(weeks=1),
            free_only=free_only,
            pass_date=monday,
        )

    @asynccontextmanager
    async def _slot_lock(self, key: SlotKey):
        """Serialise work on one slot; the lock is dropped once nobody holds or awaits it"""
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    async def book(self, day: date, pass_no: int) -> ActionResult:
        """
        Book a pass the store believes is free and mark it own.

        Returns:
            ActionResult with reason AUTH_FAILED, SLOT_UNAVAILABLE or the
            portal failure reason when unsuccessful
        """
        key = SlotKey(date=day, pass_no=pass_no)
        logger.info(f"Booking requested for {key}")
        async with self._slot_lock(key):
            login = await self.auth.login(self.credentials.username, self.credentials.password)
            if not login:
                logger.error(f"Login failed for booking: status={login.status}")
                return ActionResult.failed(FailureReason.AUTH_FAILED, AUTH_FAILED_MESSAGE)

            session = login.session
            try:
                slot = self.store.find_by_key(day, pass_no)
                if slot is None or not slot.is_free:
                    logger.warning(f"Slot not available: {key}")
                    return ActionResult.failed(FailureReason.SLOT_UNAVAILABLE, SLOT_UNAVAILABLE_MESSAGE)

                result = await self.actions.book(session, key, self.group_id)
                if not result:
                    logger.error(f"External booking failed for {key}: {result.reason.value}")
                    return ActionResult.failed(result.reason, f"Failed to book slot: {result.message}")

                self.store.update_status(day, pass_no, SlotStatus.OWN)
                logger.info(f"Booking successful, updated status to 'own' for {key}")
                return ActionResult.ok("Slot booked successfully")
            finally:
                await session.aclose()

    async def cancel(self, booking_id: int) -> ActionResult:
        """Cancel a booking by its portal booking id"""
        login = await self.auth.login(self.credentials.username, self.credentials.password)
        if not login:
            logger.error(f"Login failed for cancellation: status={login.status}")
            return ActionResult.failed(FailureReason.AUTH_FAILED, AUTH_FAILED_MESSAGE)

        try:
            result = await self.actions.cancel(login.session, booking_id)
        finally:
            await login.session.aclose()

        if not result:
            return ActionResult.failed(result.reason, f"Failed to cancel booking: {result.message}")
        return ActionResult.ok("Booking cancelled")
