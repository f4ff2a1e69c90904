"""Feed request construction and response handling.

A logical operation (url params, method, query or body) becomes a
``FeedRequest``; a ``TransportResponse`` becomes a ``FeedResponse`` holding
both the raw XML text and the decoded document. The raw text is kept because
row updates patch the original entry fragment.
"""

from __future__ import annotations

import http
import urllib.parse
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sheetfeed.exceptions import (
    AccessDeniedError,
    EmptyResponseError,
    HttpError,
    InvalidCredentialError,
    ProtocolError,
)
from sheetfeed.transport import FeedRequest, TransportResponse
from sheetfeed.xml_utils import Feed, FeedEntry, decode_document, parse_xml

ATOM_CONTENT_TYPE = "application/atom+xml"

UrlParams = str | Sequence[str | int]
QueryOrData = str | Mapping[str, Any] | None


class Visibility(Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class Projection(Enum):
    FULL = "full"
    VALUES = "values"


@dataclass(frozen=True)
class FeedResponse:
    """Parsed response. ``data`` is None when the body was empty."""

    xml: str
    data: Feed | FeedEntry | None

    def feed(self, operation: str) -> Feed:
        """Return the body as a feed, failing if it is missing or an entry."""
        if self.data is None:
            raise EmptyResponseError(operation)
        if not isinstance(self.data, Feed):
            raise ProtocolError(f"Expected a feed in response to {operation}")
        return self.data

    def entry(self, operation: str) -> FeedEntry:
        """Return the body as a single entry, failing if it is missing or a feed."""
        if self.data is None:
            raise EmptyResponseError(operation)
        if not isinstance(self.data, FeedEntry):
            raise ProtocolError(f"Expected an entry in response to {operation}")
        return self.data


def encode_query(params: Mapping[str, Any]) -> str:
    """URL-encode query parameters, leaving ``<``, ``>`` and ``=`` literal.

    Structured row queries (``sq``) use those characters as operators.
    None values are dropped and booleans are sent as ``true``/``false``.
    """
    pairs = []
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        pairs.append((key, value))
    return (
        urllib.parse.urlencode(pairs)
        .replace("%3E", ">")
        .replace("%3D", "=")
        .replace("%3C", "<")
    )


class FeedRequestBuilder:
    """Turns logical operations into FeedRequests."""

    def __init__(self, feed_url: str, gdata_version: str = "3.0") -> None:
        self._feed_url = feed_url
        self._gdata_version = gdata_version

    @property
    def feed_url(self) -> str:
        return self._feed_url

    def build_url(
        self, url_params: UrlParams, visibility: Visibility, projection: Projection
    ) -> str:
        """Resolve url params to an absolute URL.

        A string is an already resolved link (edit/delete targets) and is
        used as-is. A sequence of segments such as
        ``["cells", key, worksheet_id]`` gets visibility and projection
        appended and is joined under the feed root.
        """
        if isinstance(url_params, str):
            return url_params
        segments = [str(p) for p in url_params]
        segments.extend([visibility.value, projection.value])
        return self._feed_url + "/".join(segments)

    def build(
        self,
        url_params: UrlParams,
        method: str,
        query_or_data: QueryOrData = None,
        *,
        visibility: Visibility,
        projection: Projection,
        auth_headers: Mapping[str, str] | None = None,
    ) -> FeedRequest:
        method = method.upper()
        url = self.build_url(url_params, visibility, projection)
        headers = {"GData-Version": self._gdata_version}
        headers.update(auth_headers or {})
        body = None

        if method in ("POST", "PUT"):
            headers["Content-Type"] = ATOM_CONTENT_TYPE
            # batch feeds skip optimistic concurrency checks
            if "/batch" in url:
                headers["If-Match"] = "*"
            body = query_or_data if isinstance(query_or_data, str) else None

        if method == "GET" and isinstance(query_or_data, Mapping):
            query = encode_query(query_or_data)
            if query:
                url += "?" + query

        return FeedRequest(url=url, method=method, headers=headers, body=body)


def read_response(response: TransportResponse) -> FeedResponse:
    """Check the status of a raw response and decode its body.

    Raises:
        AccessDeniedError: 200 with an HTML body (sheet not public).
        InvalidCredentialError: 401.
        HttpError: Any other status >= 400.
        FeedParseError: The body is not well-formed XML.
    """
    status = response.status
    if status == 200 and "text/html" in response.content_type:
        raise AccessDeniedError()
    if status == 401:
        raise InvalidCredentialError()
    if status >= 400:
        try:
            reason = http.HTTPStatus(status).phrase
        except ValueError:
            reason = "Unknown"
        raise HttpError(status, reason, response.text.replace("&quot;", '"'))

    xml = response.text
    if not xml.strip():
        return FeedResponse(xml=xml, data=None)
    return FeedResponse(xml=xml, data=decode_document(parse_xml(xml)))
