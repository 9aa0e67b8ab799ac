"""
Booking and cancellation requests

Both actions are plain GETs answered by a short redirect chain that ends on
the calendar page. Success is read off that page: a FeedbackDialog with the
Swedish confirmation phrase, or for bookings the pass now shown as own.
"""
import logging
from datetime import date
from typing import Optional, Tuple
import httpx
from bs4 import BeautifulSoup

from .endpoints import (
    Endpoints,
    FEEDBACK_DIALOG_MARKER,
    BOOKED_PHRASE,
    CANCELLED_PHRASE,
    DAY_COLUMN_SELECTOR,
    DAY_OF_MONTH_SELECTOR,
    INTERVAL_SELECTOR,
    OWN_CLASS,
)
from .redirects import RedirectTracker, is_redirect
from .scraper import interval_time, is_login_page
from .session import PortalSession
from ..common.models import ActionResult, FailureReason, SlotKey
from ..common.schedule import PassSchedule

logger = logging.getLogger(__name__)


def shows_own_pass(html: str, day: date, time_range: str) -> bool:
    """True if the calendar marks the pass at time_range on day as own"""
    soup = BeautifulSoup(html, "html.parser")
    for column in soup.select(DAY_COLUMN_SELECTOR):
        day_of_month = column.select_one(DAY_OF_MONTH_SELECTOR)
        if day_of_month is None:
            continue
        text = day_of_month.get_text(strip=True)
        if not text.isdigit() or int(text) != day.day:
            continue
        for interval in column.select(f"{INTERVAL_SELECTOR}.{OWN_CLASS}"):
            label = interval_time(interval)
            if label is not None and label.split(" - ")[1] == time_range.split(" - ")[1]:
                return True
    return False


class ActionClient:
    """Books and cancels passes through an authenticated PortalSession"""

    def __init__(
        self,
        base_url: str,
        schedule: Optional[PassSchedule] = None,
        max_redirects: int = 10,
    ):
        self.endpoints = Endpoints(base_url.rstrip("/"))
        self.schedule = schedule or PassSchedule()
        self.max_redirects = max_redirects

    async def book(self, session: PortalSession, key: SlotKey, group_id: int) -> ActionResult:
        """
        Book one pass.

        Returns:
            ActionResult; failures carry a FailureReason and are never raised
        """
        logger.info(f"Attempting to book slot: passNo={key.pass_no}, date={key.date}, bookingGroupId={group_id}")
        url = self.endpoints.book(key.pass_no, key.date, group_id)
        referer = self.endpoints.booking_calendar(group_id, key.date)

        html, failure = await self._follow(session, url, referer)
        if failure is not None:
            return failure

        if is_login_page(html):
            logger.error(f"Received login page instead of booking response for {key}")
            return ActionResult.failed(FailureReason.SESSION_EXPIRED, "Session expired")

        if FEEDBACK_DIALOG_MARKER in html and BOOKED_PHRASE in html:
            logger.info(f"Booking confirmed via FeedbackDialog for {key}")
            return ActionResult.ok("Booking confirmed")

        time_range = self.schedule.label(key.pass_no, key.date)
        if time_range != "Unknown" and shows_own_pass(html, key.date, time_range):
            logger.info(f"Booking confirmed via 'own' status for {key}")
            return ActionResult.ok("Booking confirmed via calendar")

        logger.warning(f"Booking not confirmed for {key}")
        return ActionResult.failed(FailureReason.NOT_CONFIRMED, "Booking not confirmed")

    async def cancel(self, session: PortalSession, booking_id: int) -> ActionResult:
        """Cancel a booking by its portal booking id"""
        logger.info(f"Attempting to unbook booking: bookingId={booking_id}")
        url = self.endpoints.unbook(booking_id)

        html, failure = await self._follow(session, url, self.endpoints.customer_booking())
        if failure is not None:
            return failure

        if is_login_page(html):
            logger.error(f"Received login page instead of unbooking response for bookingId: {booking_id}")
            return ActionResult.failed(FailureReason.SESSION_EXPIRED, "Session expired")

        if FEEDBACK_DIALOG_MARKER in html and CANCELLED_PHRASE in html:
            logger.info(f"Unbooking confirmed via FeedbackDialog for bookingId: {booking_id}")
            return ActionResult.ok("Cancellation confirmed")

        logger.warning(f"Unbooking not confirmed for bookingId: {booking_id}")
        return ActionResult.failed(FailureReason.NOT_CONFIRMED, "Cancellation not confirmed")

    async def _follow(
        self,
        session: PortalSession,
        url: str,
        referer: str,
    ) -> Tuple[str, Optional[ActionResult]]:
        """
        GET url and follow redirects by hand.

        Returns (final body, None) or ("", failure).
        """
        tracker = RedirectTracker(self.max_redirects)
        current_url = url

        try:
            while not tracker.exhausted:
                if not tracker.visit(current_url):
                    logger.error(f"Redirect loop detected at: {current_url}")
                    return "", ActionResult.failed(FailureReason.REDIRECT_LOOP, f"Redirect loop at {current_url}")

                response = await session.get(current_url, referer=referer)
                code = response.status_code

                if response.is_success:
                    if not response.text:
                        logger.error("No response body received after redirects")
                        return "", ActionResult.failed(FailureReason.EMPTY_BODY, "Empty response body")
                    logger.debug(f"Received action response HTML, length: {len(response.text)}")
                    return response.text, None

                if is_redirect(code):
                    location = response.headers.get("Location")
                    if location is None:
                        logger.error(f"No Location header in redirect for URL: {current_url}")
                        return "", ActionResult.failed(
                            FailureReason.MISSING_LOCATION_HEADER, "Missing Location header"
                        )
                    current_url = tracker.next_url(current_url, location)
                    tracker.hop()
                    continue

                logger.error(f"Action request failed, status: {code} for URL: {current_url}")
                return "", ActionResult.failed(FailureReason.UNEXPECTED_STATUS, f"Unexpected status: {code}")
        except httpx.HTTPError as e:
            logger.error(f"Network error during portal action: {e}")
            return "", ActionResult.failed(FailureReason.NETWORK_ERROR, f"Network error: {e}")

        logger.error(f"Too many redirects: {tracker.redirects}")
        return "", ActionResult.failed(FailureReason.REDIRECT_LOOP, f"Too many redirects: {tracker.redirects}")
