"""
Login handshake for the Aptus portal

The portal has no API login. A browser reaches the login form through a
chain of redirects, picks up a CSRF token and a numeric password salt from
the form, and posts the password both in clear and XOR-obfuscated. This
module replays that dance with explicit states:

    FOLLOWING_REDIRECTS -> TOKEN_FOUND -> CREDENTIALS_SUBMITTED -> VERIFIED
                                                        \\-> FAILED(reason)
"""
import logging
from typing import Optional, Tuple
import httpx
from bs4 import BeautifulSoup

from . import password as password_transform
from .endpoints import Endpoints, TOKEN_FIELD, SALT_FIELD, HOMEPAGE_TITLE
from .redirects import RedirectTracker, is_redirect, normalize_url, resolve_url
from .session import PortalSession
from ..common.models import LoginResult, LoginState, FailureReason

logger = logging.getLogger(__name__)


def page_title(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    return soup.title.get_text(strip=True) if soup.title else ""


def extract_login_form(html: str) -> Tuple[str, str]:
    """Return (verification token, password salt); empty strings when absent"""
    soup = BeautifulSoup(html, "html.parser")
    token_input = soup.find("input", attrs={"name": TOKEN_FIELD})
    salt_input = soup.find("input", attrs={"id": SALT_FIELD}) or soup.find("input", attrs={"name": SALT_FIELD})
    token = token_input.get("value", "") if token_input else ""
    salt = salt_input.get("value", "") if salt_input else ""
    return token.strip(), salt.strip()


def _snippet(text: str, limit: int = 100) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


class AuthSessionClient:
    """
    Runs the login handshake and returns a reusable PortalSession.

    Failures come back as a LoginResult with a FailureReason, never as an
    exception, and are never retried here; retry policy belongs to the
    caller.
    """

    def __init__(
        self,
        base_url: str,
        max_redirects: int = 30,
        timeout: float = 30.0,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoints = Endpoints(base_url.rstrip("/"))
        self.max_redirects = max_redirects
        self.timeout = timeout
        self.user_agent = user_agent
        self.transport = transport

    def new_session(self) -> PortalSession:
        return PortalSession(
            user_agent=self.user_agent,
            timeout=self.timeout,
            transport=self.transport,
        )

    async def login(self, username: str, password: str) -> LoginResult:
        """
        Perform the complete login flow.

        Returns:
            LoginResult; on success `result.session` holds the authenticated
            PortalSession, which the caller must close.
        """
        logger.info(f"Attempting login for username: {username}")
        session = self.new_session()
        result = LoginResult()

        try:
            found = await self._find_login_form(session, result)
            if found is not None:
                page_url, html = found
                await self._submit_credentials(session, result, page_url, html, username, password)
        except httpx.HTTPError as e:
            logger.error(f"Network error during login for username {username}: {e}")
            result.fail(FailureReason.NETWORK_ERROR, f"Error: {e}")

        if result.success:
            session.authenticated = True
            result.session = session
            logger.info(f"Login successful for username: {username}")
        else:
            await session.aclose()
            logger.warning(f"Login failed ({result.reason.value if result.reason else 'unknown'}): {result.status}")
        return result

    async def _find_login_form(
        self,
        session: PortalSession,
        result: LoginResult,
    ) -> Optional[Tuple[str, str]]:
        """FOLLOWING_REDIRECTS: walk to the first page carrying a token"""
        tracker = RedirectTracker(self.max_redirects)
        fallback = self.endpoints.login_page()
        current_url = self.endpoints.entry()
        fallback_404_used = False

        while not tracker.exhausted:
            if not tracker.visit(current_url):
                logger.warning(f"Possible redirect loop detected at: {current_url}. Attempting fallback.")
                current_url = fallback
                if not tracker.visit(current_url):
                    logger.error(f"Redirect loop persists at fallback URL: {current_url}")
                    result.fail(FailureReason.REDIRECT_LOOP, f"Redirect loop detected at: {current_url}")
                    return None

            response = await session.get(current_url, referer=self.endpoints.entry())
            code = response.status_code

            if code == 200:
                html = response.text
                if not html:
                    logger.error(f"Empty response body for URL: {current_url}")
                    result.fail(FailureReason.EMPTY_BODY, "Empty response body", code)
                    return None
                token, _ = extract_login_form(html)
                if token:
                    result.state = LoginState.TOKEN_FOUND
                    result.redirects = tracker.redirects
                    return current_url, html
                logger.debug(f"No {TOKEN_FIELD} found, redirecting to: {self.endpoints.portal_home()}")
                current_url = self.endpoints.portal_home()
                tracker.hop()

            elif is_redirect(code):
                location = response.headers.get("Location")
                if location is None:
                    logger.error(f"No Location header in redirect for URL: {current_url}")
                    result.fail(FailureReason.MISSING_LOCATION_HEADER, "Missing Location header", code)
                    return None
                current_url = tracker.next_url(current_url, location)
                tracker.hop()

            elif code == 404 and not fallback_404_used:
                logger.error(f"404 Not Found for: {current_url}")
                logger.debug(f"Error body snippet: {_snippet(response.text)}")
                logger.info(f"Attempting fallback to: {fallback}")
                fallback_404_used = True
                current_url = fallback
                tracker.hop()

            else:
                logger.error(f"Unexpected status code: {code} for URL: {current_url}")
                logger.debug(f"Error body snippet: {_snippet(response.text)}")
                result.fail(FailureReason.UNEXPECTED_STATUS, f"Unexpected status: {code}", code)
                return None

        logger.error(f"Too many redirects or fallbacks: {tracker.redirects}")
        result.redirects = tracker.redirects
        result.fail(FailureReason.REDIRECT_LOOP, f"Too many redirects or fallbacks: {tracker.redirects}")
        return None

    async def _submit_credentials(
        self,
        session: PortalSession,
        result: LoginResult,
        page_url: str,
        html: str,
        username: str,
        password: str,
    ):
        """TOKEN_FOUND -> CREDENTIALS_SUBMITTED -> VERIFIED"""
        token, salt = extract_login_form(html)
        logger.debug(f"Parsed {SALT_FIELD}: {salt!r}, token present: {bool(token)}")
        if not token:
            result.fail(FailureReason.MISSING_TOKEN, "Failed to parse verification token")
            return

        form = {
            "DeviceType": "PC",
            "DesktopSelected": "true",
            TOKEN_FIELD: token,
            "UserName": username,
            # the legacy form still posts the clear password next to PwEnc
            "Password": password,
            "PwEnc": password_transform.encode(password, salt),
            SALT_FIELD: salt,
        }
        try:
            response = await session.post_form(
                self.endpoints.login_submit(),
                data=form,
                referer=self.endpoints.portal_home(),
            )
        except UnicodeEncodeError as e:
            # salts in 0xD800-0xDFFF turn PwEnc into lone surrogates
            logger.error(f"Cannot encode login form with salt {salt!r}: {e}")
            result.fail(FailureReason.ENCODING_ERROR, f"Cannot encode password with salt {salt}")
            return
        result.state = LoginState.CREDENTIALS_SUBMITTED
        result.status_code = response.status_code

        if is_redirect(response.status_code):
            location = response.headers.get("Location")
            if location is None:
                logger.error("No Location header in login redirect")
                result.fail(
                    FailureReason.MISSING_LOCATION_HEADER,
                    "Missing Location header in login redirect",
                    response.status_code,
                )
                return
            final_url = normalize_url(resolve_url(page_url, location))
            response = await session.get(final_url, referer=self.endpoints.portal_home())
            result.status_code = response.status_code
        elif not response.is_success:
            logger.error(f"Login failed, status code: {response.status_code}")
            logger.debug(f"Login error response snippet: {_snippet(response.text)}")
            result.fail(
                FailureReason.UNEXPECTED_STATUS,
                f"Login failed: {response.status_code}",
                response.status_code,
            )
            return

        if not response.text:
            logger.error("Empty final response body")
            result.fail(FailureReason.EMPTY_BODY, "Empty final response body", response.status_code)
            return

        title = page_title(response.text)
        result.title = title
        if HOMEPAGE_TITLE in title:
            result.success = True
            result.state = LoginState.VERIFIED
            result.status = "Login successful - Portal homepage reached"
        else:
            logger.error(f"Login validation failed: Expected portal homepage, got: {title!r}")
            result.fail(FailureReason.UNEXPECTED_PAGE, f"Login failed - Unexpected page: {title}")
