"""
Aptus portal client (reverse-engineered, HTML over HTTP)
"""
from .auth import AuthSessionClient
from .scraper import CalendarScraper, ScrapeError, parse_calendar
from .actions import ActionClient
from .session import PortalSession

__all__ = [
    "AuthSessionClient",
    "CalendarScraper",
    "ScrapeError",
    "parse_calendar",
    "ActionClient",
    "PortalSession",
]
