"""GoogleSpreadsheet - main API for sheetfeed.

Connects to one spreadsheet by key and exposes its worksheets, rows and
cells as entity objects rebuilt from the service's responses.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from loguru import logger

from sheetfeed.auth import AuthManager, AuthMode, AuthToken, CredentialIssuer, ServiceAccountIssuer
from sheetfeed.cell import SpreadsheetCell
from sheetfeed.config import FeedSettings, get_settings
from sheetfeed.exceptions import ValidationError
from sheetfeed.request import (
    FeedRequestBuilder,
    FeedResponse,
    Projection,
    QueryOrData,
    UrlParams,
    Visibility,
    read_response,
)
from sheetfeed.row import SpreadsheetRow
from sheetfeed.transport import FeedTransport, HttpxFeedTransport
from sheetfeed.worksheet import SpreadsheetWorksheet, worksheet_entry_xml
from sheetfeed.xml_utils import (
    ATOM_NS,
    GSX_NS,
    Author,
    add_namespace_declarations,
    extract_entry_fragments,
    feed_namespace_declarations,
    xml_safe_column_name,
    xml_safe_value,
)

REQUIRE_AUTH_MESSAGE = "You must authenticate to modify sheet data"

# Keys of add_row() data that are entry metadata, not columns
RESERVED_ROW_KEYS = frozenset({"id", "title", "content", "_links"})

CELL_QUERY_PARAMS = {
    "min_row": "min-row",
    "max_row": "max-row",
    "min_col": "min-col",
    "max_col": "max-col",
    "return_empty": "return-empty",
}


@dataclass
class SpreadsheetInfo:
    """Metadata about the connected spreadsheet."""

    id: str
    title: str
    updated: str
    author: Author | None
    worksheets: list[SpreadsheetWorksheet] = field(default_factory=list)


class GoogleSpreadsheet:
    """Client for one spreadsheet on the feed service.

    Example:
        >>> async with GoogleSpreadsheet("1BxiMVs0XRA5nFMdKvBdBZjgmUUqptlbs74OgvE2upms") as doc:
        ...     info = await doc.get_info()
        ...     rows = await info.worksheets[0].get_rows(limit=10)
    """

    def __init__(
        self,
        key: str,
        auth: AuthToken | str | None = None,
        *,
        visibility: Visibility | None = None,
        projection: Projection | None = None,
        transport: FeedTransport | None = None,
        settings: FeedSettings | None = None,
        auth_manager: AuthManager | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            key: The spreadsheet key (from its URL).
            auth: Optional static token.
            visibility: Overrides the credential-dependent default.
            projection: Overrides the credential-dependent default.
            transport: Transport to send requests with. Defaults to an
                httpx transport owned (and closed) by this client.
            settings: Overrides the environment-derived settings.
            auth_manager: Injectable auth state, mainly for tests.

        Raises:
            ValidationError: If no key is given.
        """
        if not key:
            raise ValidationError("Spreadsheet key not provided")

        self._key = key
        self._settings = settings or get_settings()
        self._visibility = visibility
        self._projection = projection
        self._owns_transport = transport is None
        self._transport = transport or HttpxFeedTransport(timeout=self._settings.timeout)
        self._builder = FeedRequestBuilder(self._settings.feed_url, self._settings.gdata_version)
        self._auth = auth_manager or AuthManager()
        if auth is not None:
            self._auth.set_token(auth)

        self.info: SpreadsheetInfo | None = None
        self.worksheets: list[SpreadsheetWorksheet] = []

    async def __aenter__(self) -> GoogleSpreadsheet:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the transport if this client created it."""
        if self._owns_transport:
            await self._transport.close()

    # -- state -------------------------------------------------------------

    @property
    def key(self) -> str:
        return self._key

    @property
    def feed_url(self) -> str:
        return self._builder.feed_url

    @property
    def auth_mode(self) -> AuthMode:
        return self._auth.mode

    @property
    def is_auth_active(self) -> bool:
        return self._auth.is_active

    @property
    def visibility(self) -> Visibility:
        if self._visibility is not None:
            return self._visibility
        return Visibility.PRIVATE if self.is_auth_active else Visibility.PUBLIC

    @property
    def projection(self) -> Projection:
        if self._projection is not None:
            return self._projection
        return Projection.FULL if self.is_auth_active else Projection.VALUES

    def set_auth_token(self, token: AuthToken | str) -> None:
        """Use a static token for all further requests."""
        self._auth.set_token(token)

    async def use_service_account_auth(
        self,
        credentials: Mapping[str, Any] | str | Path | None = None,
        *,
        issuer: CredentialIssuer | None = None,
    ) -> None:
        """Authenticate as a service account.

        Args:
            credentials: Service account info dict or path to its JSON key file.
            issuer: Alternative token source; takes precedence over credentials.
        """
        if issuer is None:
            if credentials is None:
                raise ValidationError("Service account credentials not provided")
            issuer = ServiceAccountIssuer.from_key(credentials, self._settings.auth_scopes)
        await self._auth.use_issuer(issuer)

    def _require_auth(self) -> None:
        if not self.is_auth_active:
            raise ValidationError(REQUIRE_AUTH_MESSAGE)

    def forget_worksheet(self, worksheet: SpreadsheetWorksheet) -> None:
        """Drop a deleted worksheet from the local list."""
        self.worksheets[:] = [w for w in self.worksheets if w is not worksheet]

    # -- spreadsheet operations -------------------------------------------

    async def get_info(self) -> SpreadsheetInfo:
        """Download metadata and the worksheet list."""
        response = await self.make_feed_request(["worksheets", self._key], "GET")
        feed = response.feed("get_info")

        self.info = SpreadsheetInfo(
            id=feed.id,
            title=feed.title,
            updated=feed.updated,
            author=feed.author,
            worksheets=[SpreadsheetWorksheet(self, entry) for entry in feed.entries],
        )
        self.worksheets = self.info.worksheets
        return self.info

    async def add_worksheet(
        self,
        title: str | None = None,
        row_count: int | None = None,
        col_count: int | None = None,
        headers: Sequence[str] | None = None,
    ) -> SpreadsheetWorksheet:
        """Create a worksheet, optionally writing a header row into it.

        The sheet is widened to fit the headers if needed.
        """
        self._require_auth()

        # titles must be unique within a spreadsheet
        title = title or f"Worksheet {datetime.now(UTC).isoformat()}"
        row_count = row_count or self._settings.default_row_count
        col_count = col_count or self._settings.default_col_count
        if headers and len(headers) > col_count:
            col_count = len(headers)

        body = worksheet_entry_xml(title, row_count, col_count)
        response = await self.make_feed_request(["worksheets", self._key], "POST", body)

        worksheet = SpreadsheetWorksheet(self, response.entry("add_worksheet"))
        self.worksheets.append(worksheet)
        logger.info("Added worksheet", worksheet_id=worksheet.id)
        await worksheet.set_header_row(headers)
        return worksheet

    async def remove_worksheet(self, worksheet: SpreadsheetWorksheet | str) -> None:
        """Delete a worksheet given either the object or its id."""
        self._require_auth()
        if isinstance(worksheet, SpreadsheetWorksheet):
            await worksheet.delete()
            return

        url = f"{self.feed_url}worksheets/{self._key}/private/full/{worksheet}"
        await self.make_feed_request(url, "DELETE")
        self.worksheets[:] = [w for w in self.worksheets if w.id != str(worksheet)]

    async def get_rows(
        self,
        worksheet_id: str,
        *,
        offset: int | None = None,
        limit: int | None = None,
        order_by: str | None = None,
        reverse: bool = False,
        query: str | None = None,
    ) -> list[SpreadsheetRow]:
        """Fetch rows from a worksheet. The header row is not included.

        Args:
            worksheet_id: The worksheet id.
            offset: 1-based index of the first row to return.
            limit: Maximum number of rows.
            order_by: Column to sort by.
            reverse: Reverse the sort order.
            query: Structured query, e.g. ``"age > 25 and name = bob"``.
        """
        params: dict[str, Any] = {}
        if offset:
            params["start-index"] = offset
        if limit:
            params["max-results"] = limit
        if order_by:
            params["orderby"] = order_by
        if reverse:
            params["reverse"] = "true"
        if query:
            params["sq"] = query

        response = await self.make_feed_request(["list", self._key, worksheet_id], "GET", params)
        feed = response.feed("get_rows")

        # each row keeps its raw entry so it can be patched on save
        namespaces = feed_namespace_declarations(response.xml)
        fragments = [
            add_namespace_declarations(fragment, namespaces)
            for fragment in extract_entry_fragments(response.xml)
        ]
        return [
            SpreadsheetRow(self, entry, fragments[i] if i < len(fragments) else "")
            for i, entry in enumerate(feed.entries)
        ]

    async def add_row(self, worksheet_id: str, data: Mapping[str, Any]) -> SpreadsheetRow:
        """Append a row. Keys are matched to header names in normalized form."""
        lines = [f'<entry xmlns="{ATOM_NS}" xmlns:gsx="{GSX_NS}">']
        for key, value in data.items():
            if key in RESERVED_ROW_KEYS:
                continue
            name = xml_safe_column_name(key)
            lines.append(f"<gsx:{name}>{xml_safe_value(value)}</gsx:{name}>")
        lines.append("</entry>")

        response = await self.make_feed_request(
            ["list", self._key, worksheet_id], "POST", "\n".join(lines)
        )
        entry = response.entry("add_row")
        fragments = extract_entry_fragments(response.xml)
        return SpreadsheetRow(self, entry, fragments[0] if fragments else response.xml)

    async def get_cells(
        self,
        worksheet_id: str,
        *,
        min_row: int | None = None,
        max_row: int | None = None,
        min_col: int | None = None,
        max_col: int | None = None,
        return_empty: bool | None = None,
    ) -> list[SpreadsheetCell]:
        """Fetch cells from a worksheet, optionally bounded to a range."""
        options = {
            "min_row": min_row,
            "max_row": max_row,
            "min_col": min_col,
            "max_col": max_col,
            "return_empty": return_empty,
        }
        params = {
            CELL_QUERY_PARAMS[name]: value for name, value in options.items() if value is not None
        }
        response = await self.make_feed_request(["cells", self._key, worksheet_id], "GET", params)
        feed = response.feed("get_cells")
        return [SpreadsheetCell(self, self._key, worksheet_id, entry) for entry in feed.entries]

    # -- requests ----------------------------------------------------------

    async def make_feed_request(
        self, url_params: UrlParams, method: str, query_or_data: QueryOrData = None
    ) -> FeedResponse:
        """Perform one feed request.

        Args:
            url_params: An absolute URL (edit links), or path segments joined
                under the feed root with visibility and projection appended.
            method: HTTP method.
            query_or_data: Query parameters for GET, XML body for POST/PUT.
        """
        await self._auth.ensure_valid()
        request = self._builder.build(
            url_params,
            method,
            query_or_data,
            visibility=self.visibility,
            projection=self.projection,
            auth_headers=self._auth.headers(),
        )
        logger.debug("Feed request", method=request.method, url=request.url)
        response = await self._transport.send(request)
        return read_response(response)
