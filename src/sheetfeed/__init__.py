"""sheetfeed - async client for the feed-based spreadsheet service.

Reads and writes worksheets, rows and cells over the XML/Atom feed
protocol, with anonymous, static token or service account authentication.
"""

__version__ = "0.1.0"

from loguru import logger

from sheetfeed.auth import AuthManager, AuthMode, AuthToken, CredentialIssuer, ServiceAccountIssuer
from sheetfeed.cell import SAVE_TO_GET_VALUE, SpreadsheetCell
from sheetfeed.client import GoogleSpreadsheet, SpreadsheetInfo
from sheetfeed.config import FeedSettings, get_settings
from sheetfeed.exceptions import (
    AccessDeniedError,
    AuthError,
    EmptyResponseError,
    FeedParseError,
    HttpError,
    InvalidCredentialError,
    ProtocolError,
    SheetFeedError,
    TransportError,
    ValidationError,
)
from sheetfeed.logging import configure_logging
from sheetfeed.request import Projection, Visibility
from sheetfeed.row import SpreadsheetRow
from sheetfeed.transport import FeedRequest, FeedTransport, HttpxFeedTransport, TransportResponse
from sheetfeed.worksheet import SpreadsheetWorksheet
from sheetfeed.xml_utils import xml_safe_column_name, xml_safe_value

# Library logging stays silent until configure_logging() is called
logger.disable("sheetfeed")

__all__ = [
    "SAVE_TO_GET_VALUE",
    "AccessDeniedError",
    "AuthError",
    "AuthManager",
    "AuthMode",
    "AuthToken",
    "CredentialIssuer",
    "EmptyResponseError",
    "FeedParseError",
    "FeedRequest",
    "FeedSettings",
    "FeedTransport",
    "GoogleSpreadsheet",
    "HttpError",
    "HttpxFeedTransport",
    "InvalidCredentialError",
    "Projection",
    "ProtocolError",
    "ServiceAccountIssuer",
    "SheetFeedError",
    "SpreadsheetCell",
    "SpreadsheetInfo",
    "SpreadsheetRow",
    "SpreadsheetWorksheet",
    "TransportError",
    "TransportResponse",
    "ValidationError",
    "Visibility",
    "__version__",
    "configure_logging",
    "get_settings",
    "xml_safe_column_name",
    "xml_safe_value",
]
