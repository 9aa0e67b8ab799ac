from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import httpx
import pytest

from aptusbot.common.config import (
    Config,
    CredentialsConfig,
    PortalConfig,
    StorageConfig,
    NotificationsConfig,
    LoggingConfig,
)

BASE_URL = "https://aptus.test"

Handler = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


def redirect(location: Optional[str], status: int = 302) -> httpx.Response:
    headers = {"Location": location} if location is not None else {}
    return httpx.Response(status, headers=headers)


def html(body: str, status: int = 200) -> httpx.Response:
    return httpx.Response(status, html=body)


def login_form_html(token: str = "tok-123", salt: Optional[str] = "17") -> str:
    salt_input = f'<input id="PasswordSalt" name="PasswordSalt" type="hidden" value="{salt}">' if salt is not None else ""
    token_input = f'<input name="__RequestVerificationToken" type="hidden" value="{token}">' if token else ""
    return (
        "<html><head><title>Login</title></head><body>"
        f"<form method=\"post\">{token_input}{salt_input}"
        '<input name="UserName"><input name="Password" type="password"></form>'
        "</body></html>"
    )


def home_html(title: str = "Hem - Aptusportal") -> str:
    return f"<html><head><title>{title}</title></head><body>Welcome</body></html>"


LOGIN_PAGE = "<html><head><title>Login</title></head><body>Please log in</body></html>"


def calendar_html(
    days: Sequence[Sequence[Tuple[str, str]]],
    day_numbers: Optional[Sequence[int]] = None,
    extra: str = "",
) -> str:
    """
    Render a booking calendar page.

    days: one entry per day column, each a list of (time label, css class)
    pairs, e.g. [("10:00 - 12:00", "bookable")].
    """
    columns = []
    for index, intervals in enumerate(days):
        day_number = f'<div class="dayOfMonth">{day_numbers[index]:02d}</div>' if day_numbers else ""
        boxes = "".join(
            f'<div class="interval {css}"><div>{label}</div></div>'
            for label, css in intervals
        )
        columns.append(f'<div class="dayColumn">{day_number}{boxes}</div>')
    return (
        "<html><head><title>Bokning - Aptusportal</title></head><body>"
        f"{extra}<div class=\"calendar\">{''.join(columns)}</div></body></html>"
    )


class FakePortal:
    """
    In-memory stand-in for the portal, served through httpx.MockTransport.

    Routes are keyed by (method, path). A list of responses is consumed in
    order, the last one repeating. Unknown routes answer 404.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], List[Handler]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, *responses: Handler):
        self.routes[(method.upper(), path)] = list(responses)
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        responses = self.routes.get((request.method, request.url.path))
        if not responses:
            return httpx.Response(404, text="Not Found")
        response = responses.pop(0) if len(responses) > 1 else responses[0]
        if callable(response):
            return response(request)
        return response

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def with_login(self, token: str = "tok-123", salt: str = "17"):
        """Happy-path login handshake"""
        self.add("GET", "/", redirect("/AptusPortal/Account/Login"))
        self.add("GET", "/AptusPortal/Account/Login", html(login_form_html(token, salt)))
        self.add("POST", "/AptusPortal/Account/Login", redirect("/AptusPortal/"))
        self.add("GET", "/AptusPortal/", html(home_html()))
        return self


@pytest.fixture()
def portal():
    return FakePortal()


@pytest.fixture()
def config():
    return Config(
        credentials=CredentialsConfig(username="alice", password="secret"),
        portal=PortalConfig(base_url=BASE_URL + "/"),
        storage=StorageConfig(path=None),
        notifications=NotificationsConfig(console=False),
        logging=LoggingConfig(file=None),
    )
