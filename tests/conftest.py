"""Shared test fixtures for sheetfeed."""

from __future__ import annotations

import pytest

from sheetfeed.auth import AuthManager, AuthToken
from sheetfeed.client import GoogleSpreadsheet
from sheetfeed.config import FeedSettings
from sheetfeed.worksheet import SpreadsheetWorksheet
from sheetfeed.xml_utils import decode_feed, parse_xml
from tests.fakes import FakeClock, FakeTransport, golden


@pytest.fixture
def settings() -> FeedSettings:
    return FeedSettings(feed_url="https://spreadsheets.google.com/feeds/")


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def spreadsheet(
    transport: FakeTransport, settings: FeedSettings, clock: FakeClock
) -> GoogleSpreadsheet:
    """A spreadsheet client authenticated with a static bearer token."""
    return GoogleSpreadsheet(
        "key123",
        AuthToken("static-token"),
        transport=transport,
        settings=settings,
        auth_manager=AuthManager(clock=clock),
    )


@pytest.fixture
def anonymous_spreadsheet(transport: FakeTransport, settings: FeedSettings) -> GoogleSpreadsheet:
    return GoogleSpreadsheet("key123", transport=transport, settings=settings)


@pytest.fixture
def worksheet(spreadsheet: GoogleSpreadsheet) -> SpreadsheetWorksheet:
    """Sheet1 (od6, 100 x 3) from the golden worksheets feed."""
    feed = decode_feed(parse_xml(golden("worksheets_feed.xml")))
    sheet = SpreadsheetWorksheet(spreadsheet, feed.entries[0])
    spreadsheet.worksheets.append(sheet)
    return sheet
