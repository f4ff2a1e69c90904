"""A list-feed row: an ordered mapping of column name to value.

Rows keep the exact XML of the entry they were read from. Saving patches
only the column elements in that fragment, so server-managed metadata the
client never modeled is sent back untouched.
"""

from __future__ import annotations

import re
from collections.abc import ItemsView, Iterator, KeysView, ValuesView
from typing import TYPE_CHECKING

from loguru import logger

from sheetfeed.exceptions import ValidationError
from sheetfeed.links import EDIT, LinkRegistry
from sheetfeed.xml_utils import (
    FeedEntry,
    ensure_namespaces,
    extract_entry_fragments,
    xml_safe_column_name,
    xml_safe_value,
)

if TYPE_CHECKING:
    from sheetfeed.client import GoogleSpreadsheet


def patch_column(fragment: str, column: str, value: object) -> str:
    """Replace the first ``gsx:<column>`` element in an entry fragment.

    Both ``<gsx:col>...</gsx:col>`` and the self-closing ``<gsx:col/>`` form
    are matched. The fragment is returned unchanged if the column is absent.
    """
    safe_name = xml_safe_column_name(column)
    name = re.escape(safe_name)
    pattern = re.compile(rf"<gsx:{name}\s*/>|<gsx:{name}(?:\s[^>]*)?>[\s\S]*?</gsx:{name}>")
    replacement = f"<gsx:{safe_name}>{xml_safe_value(value)}</gsx:{safe_name}>"
    return pattern.sub(lambda _: replacement, fragment, count=1)


class SpreadsheetRow:
    """Represents a row in a worksheet.

    Values are read like a mapping. Only existing columns can be assigned;
    new columns have to be added to the sheet's header row first.
    """

    def __init__(self, spreadsheet: GoogleSpreadsheet, entry: FeedEntry, xml: str) -> None:
        self._spreadsheet = spreadsheet
        self._values: dict[str, str | None] = {}
        self._load(entry, xml)

    def _load(self, entry: FeedEntry, xml: str) -> None:
        self.id = entry.id
        self.title = entry.title
        self.updated = entry.updated
        self._values = dict(entry.extended)
        self._links = LinkRegistry.from_links(entry.links)
        self._xml = xml

    def __repr__(self) -> str:
        return f"SpreadsheetRow({self._values!r})"

    @property
    def xml(self) -> str:
        """The entry fragment this row was read from."""
        return self._xml

    @property
    def edit_link(self) -> str | None:
        return self._links.get(EDIT)

    # -- mapping access ----------------------------------------------------

    def __getitem__(self, column: str) -> str | None:
        return self._values[column]

    def __setitem__(self, column: str, value: object) -> None:
        if column not in self._values:
            raise KeyError(f"Unknown column: {column}")
        self._values[column] = None if value is None else str(value)

    def __contains__(self, column: object) -> bool:
        return column in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def get(self, column: str, default: str | None = None) -> str | None:
        return self._values.get(column, default)

    def keys(self) -> KeysView[str]:
        return self._values.keys()

    def values(self) -> ValuesView[str | None]:
        return self._values.values()

    def items(self) -> ItemsView[str, str | None]:
        return self._values.items()

    def to_dict(self) -> dict[str, str | None]:
        return dict(self._values)

    # -- persistence -------------------------------------------------------

    def to_xml(self) -> str:
        """Build the PUT body: the retained fragment with every column patched."""
        fragment = self._xml
        for column, value in self._values.items():
            fragment = patch_column(fragment, column, value)
        return ensure_namespaces(fragment)

    def _require_edit_link(self) -> str:
        edit = self.edit_link
        if not edit:
            raise ValidationError(
                "Row has no edit link. Authenticate to get a writable feed."
            )
        return edit

    async def save(self) -> None:
        """Save changes to this row and reload it from the response."""
        edit = self._require_edit_link()
        logger.debug("Saving row", row_id=self.id)
        response = await self._spreadsheet.make_feed_request(edit, "PUT", self.to_xml())
        if response.data is None:
            return
        entry = response.entry("row save")
        fragments = extract_entry_fragments(response.xml)
        self._load(entry, fragments[0] if fragments else self._xml)

    async def delete(self) -> None:
        """Delete this row."""
        edit = self._require_edit_link()
        await self._spreadsheet.make_feed_request(edit, "DELETE")
