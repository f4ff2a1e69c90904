"""Fake implementations for testing sheetfeed.

These fakes stand in for the external collaborators (transport and
credential issuer) so tests can control responses and inspect requests.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from sheetfeed.auth import AuthToken
from sheetfeed.exceptions import AuthError
from sheetfeed.transport import FeedRequest, FeedTransport, TransportResponse

GOLDEN_DIR = Path(__file__).parent / "golden"

FEED_ROOT = "https://spreadsheets.google.com/feeds/"
CELLS_URL = f"{FEED_ROOT}cells/key123/od6/private/full"

ATOM_HEADERS = {"Content-Type": "application/atom+xml; charset=UTF-8"}


def golden(name: str) -> str:
    return (GOLDEN_DIR / name).read_text()


def xml_response(text: str, status: int = 200) -> TransportResponse:
    return TransportResponse(status=status, headers=ATOM_HEADERS, text=text)


def cell_entry_xml(
    row: int,
    col: int,
    text: str = "",
    input_value: str | None = None,
    numeric_value: str | None = None,
    batch_id: str | None = None,
    with_edit_link: bool = True,
) -> str:
    """Build one cells-feed ``<entry>`` (without namespace declarations)."""
    batch = f"R{row}C{col}"
    attrs = f'row="{row}" col="{col}"'
    if input_value is not None:
        attrs += f' inputValue="{input_value}"'
    if numeric_value is not None:
        attrs += f' numericValue="{numeric_value}"'
    parts = ["<entry>", f"<id>{CELLS_URL}/{batch}</id>"]
    if batch_id is not None:
        parts.append(f"<batch:id>{batch_id}</batch:id>")
        parts.append('<batch:status code="200" reason="Success"/>')
    if with_edit_link:
        parts.append(
            f'<link rel="edit" type="application/atom+xml" href="{CELLS_URL}/{batch}/v1"/>'
        )
    parts.append(f"<gs:cell {attrs}>{text}</gs:cell>")
    parts.append("</entry>")
    return "".join(parts)


def cells_feed_xml(*entries: str) -> str:
    return (
        "<feed xmlns='http://www.w3.org/2005/Atom' "
        "xmlns:gs='http://schemas.google.com/spreadsheets/2006' "
        "xmlns:batch='http://schemas.google.com/gdata/batch'>"
        f"<id>{CELLS_URL}</id><title>Sheet1</title>" + "".join(entries) + "</feed>"
    )


def single_cell_xml(row: int, col: int, **kwargs: object) -> str:
    """A cell entry as the root element, as returned by a cell PUT."""
    entry = cell_entry_xml(row, col, **kwargs)  # type: ignore[arg-type]
    return entry.replace(
        "<entry>",
        "<entry xmlns='http://www.w3.org/2005/Atom' "
        "xmlns:gs='http://schemas.google.com/spreadsheets/2006'>",
        1,
    )


class FakeTransport(FeedTransport):
    """Transport that records requests and replays queued responses.

    Responses are either queued in order or produced by a handler callable.
    """

    def __init__(
        self,
        responses: list[TransportResponse] | None = None,
        handler: Callable[[FeedRequest], TransportResponse] | None = None,
    ) -> None:
        self.requests: list[FeedRequest] = []
        self._responses = list(responses or [])
        self._handler = handler
        self._error: Exception | None = None
        self.closed = False

    def queue(self, *responses: TransportResponse) -> None:
        self._responses.extend(responses)

    def fail_next(self, error: Exception) -> None:
        """Raise ``error`` from the next send instead of responding."""
        self._error = error

    async def send(self, request: FeedRequest) -> TransportResponse:
        self.requests.append(request)
        if self._error is not None:
            error, self._error = self._error, None
            raise error
        if self._handler is not None:
            return self._handler(request)
        if not self._responses:
            raise AssertionError(f"Unexpected request: {request.method} {request.url}")
        return self._responses.pop(0)

    async def close(self) -> None:
        self.closed = True


class FakeIssuer:
    """Credential issuer that hands out numbered tokens.

    Each token expires ``lifetime`` seconds after the fake clock's current time.
    """

    def __init__(self, clock: FakeClock, lifetime: float = 3600.0) -> None:
        self.calls = 0
        self.lifetime = lifetime
        self._clock = clock
        self._should_fail = False

    def fail_next(self) -> None:
        self._should_fail = True

    async def authorize(self) -> AuthToken:
        if self._should_fail:
            self._should_fail = False
            raise AuthError("Simulated issuer failure")
        self.calls += 1
        return AuthToken(
            value=f"token-{self.calls}",
            expires_at=self._clock.now + self.lifetime,
        )


class FakeClock:
    """Controllable replacement for time.time."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
