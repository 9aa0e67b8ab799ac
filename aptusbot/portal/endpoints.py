"""
Aptus portal pages and markup markers (reverse-engineered)

WARNING: The portal has no API. Everything here was read off the browser's
network tab and page source; any change on the portal side breaks it.

The query parameters, CSS classes and Swedish confirmation phrases below are
load-bearing and must match the portal byte for byte.
"""
from dataclasses import dataclass
from datetime import date
from urllib.parse import urlencode


PORTAL_ROOT = "/AptusPortal"

# Login form fields
TOKEN_FIELD = "__RequestVerificationToken"
SALT_FIELD = "PasswordSalt"

# Title of the page served after a successful login ("Home")
HOMEPAGE_TITLE = "Hem - Aptusportal"

# Served instead of the requested page once the session is gone
LOGIN_PAGE_MARKER = "<title>Login</title>"
LOGIN_PAGE_TITLE = "Login"

# Calendar markup
DAY_COLUMN_SELECTOR = "div.dayColumn"
INTERVAL_SELECTOR = "div.interval"
DAY_OF_MONTH_SELECTOR = "div.dayOfMonth"
BOOKABLE_CLASS = "bookable"
OWN_CLASS = "own"

# Action feedback
FEEDBACK_DIALOG_MARKER = "FeedbackDialog"
BOOKED_PHRASE = "är bokat"
CANCELLED_PHRASE = "Ditt pass har blivit avbokat"


@dataclass(frozen=True)
class Endpoints:
    """
    Portal URLs, all relative to the configured base URL.

    To rediscover them:
    1. Open browser DevTools -> Network tab, enable "Preserve log"
    2. Log in and open the booking calendar
    3. Book and cancel a pass
    4. Inspect the document requests and their redirects
    """
    base_url: str

    def entry(self) -> str:
        """
        First page of the login handshake.

        GET / -> 302 chain ending at the login form
        """
        return f"{self.base_url}/"

    def portal_home(self) -> str:
        """Used when a 200 page carries no verification token"""
        return f"{self.base_url}{PORTAL_ROOT}"

    def login_page(self) -> str:
        """Fallback when the redirect chain 404s or loops"""
        return f"{self.base_url}{PORTAL_ROOT}/Account/Login"

    def login_submit(self) -> str:
        """
        Login form target.

        POST /AptusPortal/Account/Login?ReturnUrl=%2fAptusPortal%2f
        Body (form encoded): DeviceType, DesktopSelected,
        __RequestVerificationToken, UserName, Password, PwEnc, PasswordSalt
        """
        return f"{self.base_url}{PORTAL_ROOT}/Account/Login?ReturnUrl=%2fAptusPortal%2f"

    def customer_booking(self) -> str:
        return f"{self.base_url}{PORTAL_ROOT}/CustomerBooking"

    def booking_calendar(self, group_id: int, pass_date: date) -> str:
        """
        Week view starting at pass_date.

        GET /AptusPortal/CustomerBooking/BookingCalendar?bookingGroupId={id}&passDate={yyyy-mm-dd}
        """
        params = {"bookingGroupId": group_id, "passDate": pass_date.isoformat()}
        return f"{self.customer_booking()}/BookingCalendar?{urlencode(params)}"

    def book(self, pass_no: int, pass_date: date, group_id: int) -> str:
        """
        Book a pass. Answers with a redirect back to the calendar, which
        shows a FeedbackDialog.

        GET /AptusPortal/CustomerBooking/Book?passNo={n}&passDate={yyyy-mm-dd}&bookingGroupId={id}
        """
        params = {
            "passNo": pass_no,
            "passDate": pass_date.isoformat(),
            "bookingGroupId": group_id,
        }
        return f"{self.customer_booking()}/Book?{urlencode(params)}"

    def unbook(self, booking_id: int) -> str:
        """
        Cancel a booking.

        GET /AptusPortal/CustomerBooking/Unbook/{bookingId}
        """
        return f"{self.customer_booking()}/Unbook/{booking_id}"


# Headers copied from a desktop Chrome session
DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
    "Accept-Language": "en-GB,en;q=0.9,sv;q=0.7",
    "Upgrade-Insecure-Requests": "1",
    "sec-ch-ua-mobile": "?0",
    "sec-ch-ua-platform": "\"macOS\"",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "same-origin",
}
