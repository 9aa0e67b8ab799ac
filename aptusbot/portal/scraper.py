"""
Booking calendar scraper

The calendar page shows one week: a row of day columns in chronological
order starting at the requested date, each holding interval boxes like

    <div class="interval bookable">
        <div>10:00 - 12:00</div>
    </div>

`bookable` means free, `own` means booked by us, anything else is busy.
"""
import logging
import re
from datetime import date, timedelta
from typing import List, Optional
import httpx
from bs4 import BeautifulSoup
from pydantic import ValidationError

from .endpoints import (
    Endpoints,
    LOGIN_PAGE_MARKER,
    LOGIN_PAGE_TITLE,
    DAY_COLUMN_SELECTOR,
    INTERVAL_SELECTOR,
    BOOKABLE_CLASS,
    OWN_CLASS,
)
from .session import PortalSession
from ..common.models import Slot, SlotStatus, ScrapeResult, FailureReason
from ..common.schedule import PassSchedule

logger = logging.getLogger(__name__)

TIME_RANGE = re.compile(r"(\d{2}:\d{2})\s*-\s*(\d{2}:\d{2})")


class ScrapeError(Exception):
    """Raised when the calendar could not be fetched"""
    def __init__(self, message: str, reason: FailureReason, status_code: Optional[int] = None):
        super().__init__(message)
        self.reason = reason
        self.status_code = status_code


def is_login_page(html: str) -> bool:
    """True when the portal answered with its login form"""
    if LOGIN_PAGE_MARKER in html:
        return True
    soup = BeautifulSoup(html, "html.parser")
    return bool(soup.title) and soup.title.get_text(strip=True) == LOGIN_PAGE_TITLE


def interval_status(classes: List[str]) -> SlotStatus:
    if BOOKABLE_CLASS in classes:
        return SlotStatus.FREE
    if OWN_CLASS in classes:
        return SlotStatus.OWN
    return SlotStatus.BUSY


def interval_time(interval) -> Optional[str]:
    """The "HH:MM - HH:MM" label of an interval element, if any"""
    match = TIME_RANGE.search(interval.get_text(" ", strip=True))
    if not match:
        return None
    return f"{match.group(1)} - {match.group(2)}"


def parse_calendar(
    html: str,
    start_date: date,
    schedule: Optional[PassSchedule] = None,
) -> List[Slot]:
    """
    Parse calendar markup into slots.

    Intervals that cannot be turned into a Slot are logged and skipped;
    they never abort the parse.
    """
    schedule = schedule or PassSchedule()
    soup = BeautifulSoup(html, "html.parser")
    day_columns = soup.select(DAY_COLUMN_SELECTOR)
    logger.debug(f"Found {len(day_columns)} day columns")

    slots: List[Slot] = []
    for day_index, column in enumerate(day_columns):
        slot_date = start_date + timedelta(days=day_index)
        for interval_index, interval in enumerate(column.select(INTERVAL_SELECTOR)):
            time_range = interval_time(interval)
            if time_range is None:
                logger.warning(f"Skipping interval without time at index {interval_index} on {slot_date}")
                continue

            pass_no = schedule.pass_for_range(time_range)
            if pass_no is None:
                logger.warning(f"Unknown passNo for time: {time_range} on date: {slot_date}")
                continue

            try:
                slot = Slot(
                    date=slot_date,
                    pass_no=pass_no,
                    status=interval_status(interval.get("class", [])),
                )
            except ValidationError as e:
                logger.warning(f"Skipping invalid slot {time_range} on {slot_date}: {e}")
                continue
            slots.append(slot)
    return slots


class CalendarScraper:
    """Fetches one week of the booking calendar through an existing session"""

    def __init__(self, base_url: str, schedule: Optional[PassSchedule] = None):
        self.endpoints = Endpoints(base_url.rstrip("/"))
        self.schedule = schedule or PassSchedule()

    async def fetch_slots(
        self,
        session: PortalSession,
        start_date: date,
        group_id: int,
    ) -> ScrapeResult:
        """
        Scrape the week starting at start_date for a booking group.

        Returns:
            ScrapeResult with status OK and the parsed slots, or AUTH_LOST if
            the portal served its login page.

        Raises:
            ScrapeError: non-2xx status, empty body, or network failure
        """
        url = self.endpoints.booking_calendar(group_id, start_date)
        logger.debug(f"Fetching slots for passDate: {start_date}, bookingGroupId: {group_id}")

        try:
            response = await session.get(url, referer=self.endpoints.customer_booking())
        except httpx.HTTPError as e:
            raise ScrapeError(f"Network error fetching calendar: {e}", FailureReason.NETWORK_ERROR) from e

        # A lost session redirects to the login form instead of serving it
        if response.is_redirect and "login" in response.headers.get("Location", "").lower():
            logger.error(f"Redirected to login instead of booking calendar for passDate: {start_date}")
            return ScrapeResult.auth_lost(start_date)

        if not response.is_success:
            logger.error(f"Failed to fetch slots, status: {response.status_code}")
            raise ScrapeError(
                f"Calendar request failed: {response.status_code}",
                FailureReason.UNEXPECTED_STATUS,
                response.status_code,
            )

        html = response.text
        if not html:
            raise ScrapeError("Empty calendar response", FailureReason.EMPTY_BODY, response.status_code)
        logger.debug(f"Received slots HTML, length: {len(html)}")

        if is_login_page(html):
            logger.error(f"Received login page instead of booking calendar for passDate: {start_date}")
            return ScrapeResult.auth_lost(start_date)

        slots = parse_calendar(html, start_date, self.schedule)
        logger.info(f"Parsed {len(slots)} slots for passDate: {start_date}")
        return ScrapeResult(start_date=start_date, slots=slots)
