"""
Data models for the Aptus booking bot
"""
from datetime import datetime, date
from typing import Optional, List, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator
from enum import Enum


class SlotStatus(str, Enum):
    FREE = "free"
    OWN = "own"
    BUSY = "busy"


class FailureReason(str, Enum):
    REDIRECT_LOOP = "redirect_loop"
    MISSING_TOKEN = "missing_token"
    MISSING_LOCATION_HEADER = "missing_location_header"
    UNEXPECTED_STATUS = "unexpected_status"
    UNEXPECTED_PAGE = "unexpected_page"
    EMPTY_BODY = "empty_body"
    SESSION_EXPIRED = "session_expired"
    NETWORK_ERROR = "network_error"
    NOT_CONFIRMED = "not_confirmed"
    SLOT_UNAVAILABLE = "slot_unavailable"
    AUTH_FAILED = "auth_failed"
    ENCODING_ERROR = "encoding_error"


class LoginState(str, Enum):
    FOLLOWING_REDIRECTS = "following_redirects"
    TOKEN_FOUND = "token_found"
    CREDENTIALS_SUBMITTED = "credentials_submitted"
    VERIFIED = "verified"
    FAILED = "failed"


class ScrapeStatus(str, Enum):
    OK = "ok"
    AUTH_LOST = "auth_lost"


class SlotKey(BaseModel):
    """Identity of a bookable pass: a calendar day and its pass number"""
    model_config = ConfigDict(frozen=True)

    date: date
    pass_no: int = Field(ge=0, le=7)

    def __str__(self) -> str:
        return f"{self.date.isoformat()}#{self.pass_no}"


class Slot(BaseModel):
    """A pass as last observed on the booking calendar"""
    date: date
    pass_no: int = Field(ge=0, le=7)
    status: SlotStatus

    @property
    def key(self) -> SlotKey:
        return SlotKey(date=self.date, pass_no=self.pass_no)

    @property
    def is_free(self) -> bool:
        return self.status == SlotStatus.FREE


class ScrapeResult(BaseModel):
    """
    Outcome of scraping one calendar week.

    AUTH_LOST means the portal served its login page instead of the
    calendar; it is not the same thing as an empty week.
    """
    status: ScrapeStatus = ScrapeStatus.OK
    start_date: date
    slots: List[Slot] = Field(default_factory=list)

    @classmethod
    def auth_lost(cls, start_date: date) -> "ScrapeResult":
        return cls(status=ScrapeStatus.AUTH_LOST, start_date=start_date)

    @property
    def is_auth_lost(self) -> bool:
        return self.status == ScrapeStatus.AUTH_LOST


class Transition(BaseModel):
    """Status change of one slot between two consecutive scrapes"""
    key: SlotKey
    old_status: Optional[SlotStatus] = None  # None: never seen before
    new_status: SlotStatus

    @property
    def changed(self) -> bool:
        return self.old_status != self.new_status

    @property
    def is_notify_worthy(self) -> bool:
        return (
            self.new_status == SlotStatus.FREE
            and self.old_status in (SlotStatus.OWN, SlotStatus.BUSY)
        )


class LoginResult(BaseModel):
    """Outcome of the portal login handshake"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool = False
    state: LoginState = LoginState.FOLLOWING_REDIRECTS
    reason: Optional[FailureReason] = None
    status: str = ""
    status_code: Optional[int] = None
    title: Optional[str] = None
    redirects: int = 0
    session: Optional[Any] = Field(default=None, exclude=True)

    def __bool__(self) -> bool:
        return self.success

    def fail(
        self,
        reason: FailureReason,
        status: str,
        status_code: Optional[int] = None,
    ) -> "LoginResult":
        self.success = False
        self.state = LoginState.FAILED
        self.reason = reason
        self.status = status
        if status_code is not None:
            self.status_code = status_code
        return self


class ActionResult(BaseModel):
    """Outcome of a booking or cancellation request"""
    success: bool
    reason: Optional[FailureReason] = None
    message: str = ""

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls, message: str) -> "ActionResult":
        return cls(success=True, message=message)

    @classmethod
    def failed(cls, reason: FailureReason, message: str) -> "ActionResult":
        return cls(success=False, reason=reason, message=message)

    @property
    def session_expired(self) -> bool:
        return self.reason == FailureReason.SESSION_EXPIRED


class CycleReport(BaseModel):
    """Summary of one sync cycle"""
    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None
    login_attempts: int = 0
    aborted: bool = False
    error_message: Optional[str] = None
    weeks_scraped: List[date] = Field(default_factory=list)
    weeks_skipped: List[date] = Field(default_factory=list)
    slots_seen: int = 0
    freed: List[Transition] = Field(default_factory=list)

    def mark_aborted(self, error: str):
        self.aborted = True
        self.error_message = error
        self.finished_at = datetime.now()

    def mark_finished(self):
        self.finished_at = datetime.now()


class NotificationPayload(BaseModel):
    """Notification content"""
    title: str
    message: str
    url: Optional[str] = None
    urgency: str = "normal"  # low, normal, high
    action: Optional[str] = None  # callback data for a "Book now" button

    @field_validator("action")
    @classmethod
    def _action_fits_callback(cls, value: Optional[str]) -> Optional[str]:
        # Telegram caps callback_data at 64 bytes
        if value is not None and len(value.encode()) > 64:
            raise ValueError("action callback data must be at most 64 bytes")
        return value


def book_action(key: SlotKey) -> str:
    """Callback data understood by the Telegram bot"""
    return f"book_{key.date.isoformat()}_{key.pass_no}"


def parse_book_action(data: str) -> SlotKey:
    """Inverse of book_action; raises ValueError on malformed input"""
    if not data.startswith("book_"):
        raise ValueError(f"Not a booking command: {data!r}")
    parts = data[len("book_"):].split("_")
    if len(parts) != 2:
        raise ValueError(f"Invalid booking command format: {data!r}")
    return SlotKey(date=date.fromisoformat(parts[0]), pass_no=int(parts[1]))
