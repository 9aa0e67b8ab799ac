"""
Manual redirect handling.

The portal leaks its CSRF token only on specific pages and answers actions
with redirects whose target carries the confirmation, so redirects are
inspected one hop at a time instead of being followed by httpx.
"""
import logging
import re
from enum import Enum
from typing import Optional, Set
from urllib.parse import urljoin

from .endpoints import PORTAL_ROOT

logger = logging.getLogger(__name__)

REDIRECT_CODES = (301, 302, 303, 307, 308)

_DOUBLED_ROOT = re.compile(
    rf"({re.escape(PORTAL_ROOT)})(?:{re.escape(PORTAL_ROOT)})+(?=/|$|\?)",
    re.IGNORECASE,
)


def is_redirect(status_code: int) -> bool:
    return status_code in REDIRECT_CODES


def resolve_url(current_url: str, location: str) -> str:
    """
    Resolve a Location header against the URL that produced it.

    Handles absolute ("https://host/x"), root-relative ("/x") and
    path-relative ("x") locations.
    """
    return urljoin(current_url, location.strip())


def normalize_url(url: str) -> str:
    """Collapse a doubled portal root, e.g. /AptusPortal/AptusPortal/ -> /AptusPortal/"""
    return _DOUBLED_ROOT.sub(r"\1", url)


class RedirectOutcome(str, Enum):
    OK = "ok"
    LOOP = "loop"
    EXHAUSTED = "exhausted"


class RedirectTracker:
    """
    Step counter plus visited-URL set for one operation.

    Each login/book/cancel call owns its own tracker.
    """

    def __init__(self, max_redirects: int):
        self.max_redirects = max_redirects
        self.redirects = 0
        self.visited: Set[str] = set()

    @property
    def exhausted(self) -> bool:
        return self.redirects >= self.max_redirects

    def visit(self, url: str) -> bool:
        """Record url; False if it was already visited"""
        if url in self.visited:
            return False
        self.visited.add(url)
        return True

    def hop(self) -> RedirectOutcome:
        """Count one redirect"""
        self.redirects += 1
        if self.exhausted:
            return RedirectOutcome.EXHAUSTED
        return RedirectOutcome.OK

    def next_url(self, current_url: str, location: Optional[str]) -> Optional[str]:
        if location is None:
            return None
        target = normalize_url(resolve_url(current_url, location))
        logger.debug(f"Redirecting to: {target}")
        return target
