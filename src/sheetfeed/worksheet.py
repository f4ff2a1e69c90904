"""A worksheet (tab) of the connected spreadsheet."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from loguru import logger

from sheetfeed.exceptions import ProtocolError, ValidationError
from sheetfeed.links import BULK_CELLS, CELLS, CELLS_FEED, EDIT, LinkRegistry
from sheetfeed.xml_utils import ATOM_NS, BATCH_NS, GS_NS, FeedEntry, xml_safe_value

if TYPE_CHECKING:
    from sheetfeed.cell import SpreadsheetCell
    from sheetfeed.client import GoogleSpreadsheet
    from sheetfeed.row import SpreadsheetRow


def worksheet_entry_xml(title: str, row_count: int, col_count: int) -> str:
    """Entry body used to create or edit a worksheet."""
    return "".join(
        [
            f'<entry xmlns="{ATOM_NS}" xmlns:gs="{GS_NS}">',
            f"<title>{xml_safe_value(title)}</title>",
            f"<gs:rowCount>{row_count}</gs:rowCount>",
            f"<gs:colCount>{col_count}</gs:colCount>",
            "</entry>",
        ]
    )


class SpreadsheetWorksheet:
    """Represents a worksheet in the connected spreadsheet.

    The spreadsheet reference is a back-pointer; the spreadsheet owns its
    list of worksheets.
    """

    def __init__(self, spreadsheet: GoogleSpreadsheet, entry: FeedEntry) -> None:
        self._spreadsheet = spreadsheet
        self.url = entry.id
        self.id = entry.id.rsplit("/", 1)[-1]
        self.links = LinkRegistry.from_links(entry.links)
        self.links.set(CELLS, self.links.get(CELLS_FEED))
        self._update_from_entry(entry)

    def __repr__(self) -> str:
        return (
            f"SpreadsheetWorksheet(id={self.id!r}, title={self.title!r}, "
            f"rows={self.row_count}, cols={self.col_count})"
        )

    def _update_from_entry(self, entry: FeedEntry) -> None:
        self.title = entry.title
        self.row_count = entry.row_count or 0
        self.col_count = entry.col_count or 0

    def _require_link(self, rel: str) -> str:
        href = self.links.get(rel)
        if not href:
            raise ValidationError(
                f"Worksheet {self.id} has no {rel!r} link. Authenticate to get a writable feed."
            )
        return href

    async def edit(
        self,
        title: str | None = None,
        row_count: int | None = None,
        col_count: int | None = None,
    ) -> None:
        """Edit the title, row count and/or column count.

        Fields left as None keep their current value. The local state is
        taken from the server's response, not from the arguments.
        """
        body = worksheet_entry_xml(
            self.title if title is None else title,
            self.row_count if row_count is None else row_count,
            self.col_count if col_count is None else col_count,
        )
        response = await self._spreadsheet.make_feed_request(self._require_link(EDIT), "PUT", body)
        entry = response.entry("worksheet edit")
        self._update_from_entry(entry)
        if entry.links:
            self.links = LinkRegistry.from_links(entry.links)
            self.links.set(CELLS, self.links.get(CELLS_FEED))

    async def resize(self, row_count: int, col_count: int) -> None:
        await self.edit(row_count=row_count, col_count=col_count)

    async def set_title(self, title: str) -> None:
        await self.edit(title=title)

    async def clear(self) -> None:
        """Clear every cell.

        Shrinks the sheet to 1x1, blanks the remaining cell and grows it back.
        If a step fails the sheet stays in whatever state the last
        successful step left it.
        """
        row_count, col_count = self.row_count, self.col_count
        await self.resize(1, 1)
        cells = await self.get_cells(
            min_row=1, max_row=1, min_col=1, max_col=1, return_empty=True
        )
        if cells:
            await cells[0].set_value(None)
        await self.resize(row_count, col_count)

    async def get_rows(
        self,
        *,
        offset: int | None = None,
        limit: int | None = None,
        order_by: str | None = None,
        reverse: bool = False,
        query: str | None = None,
    ) -> list[SpreadsheetRow]:
        return await self._spreadsheet.get_rows(
            self.id, offset=offset, limit=limit, order_by=order_by, reverse=reverse, query=query
        )

    async def get_cells(self, **query: Any) -> list[SpreadsheetCell]:
        return await self._spreadsheet.get_cells(self.id, **query)

    async def add_row(self, data: Mapping[str, Any]) -> SpreadsheetRow:
        return await self._spreadsheet.add_row(self.id, data)

    async def bulk_update_cells(self, cells: Sequence[SpreadsheetCell]) -> None:
        """Update many cells with one batch request.

        Results are matched back to cells by batch id, so the order of the
        response entries does not matter. Cells whose entry failed or is
        missing from the response keep ``needs_save`` set.

        Raises:
            ProtocolError: A response entry carries a batch id that was not sent.
        """
        if not cells:
            return

        cells_link = self._require_link(CELLS)
        entries = [cell.batch_entry_xml(cells_link) for cell in cells]
        body = "\n".join(
            [
                f'<feed xmlns="{ATOM_NS}" xmlns:batch="{BATCH_NS}" xmlns:gs="{GS_NS}">',
                f"\t<id>{cells_link}</id>",
                *entries,
                "</feed>",
            ]
        )

        logger.debug("Sending batch cell update", worksheet_id=self.id, cells=len(cells))
        response = await self._spreadsheet.make_feed_request(
            self._require_link(BULK_CELLS), "POST", body
        )
        if response.data is None:
            return

        cells_by_batch_id = {cell.batch_id: cell for cell in cells}
        for entry in response.feed("bulk cell update").entries:
            cell = cells_by_batch_id.get(entry.batch_id or "")
            if cell is None:
                raise ProtocolError(f"Unexpected batch id in response: {entry.batch_id!r}")
            if entry.batch_status is not None and entry.batch_status.code >= 400:
                logger.warning(
                    "Batch entry failed",
                    batch_id=entry.batch_id,
                    code=entry.batch_status.code,
                    reason=entry.batch_status.reason,
                )
                continue
            cell.update_from_entry(entry)

    async def delete(self) -> None:
        """Delete this worksheet and drop it from the spreadsheet's list."""
        await self._spreadsheet.make_feed_request(self._require_link(EDIT), "DELETE")
        self._spreadsheet.forget_worksheet(self)

    async def set_header_row(self, values: Sequence[str] | None) -> None:
        """Write a header row into row 1.

        Raises:
            ValidationError: More headers than columns; resize first.
        """
        if not values:
            return
        if len(values) > self.col_count:
            raise ValidationError(
                f"Sheet is not large enough to fit {len(values)} columns. Resize the sheet first."
            )

        cells = await self.get_cells(
            min_row=1, max_row=1, min_col=1, max_col=self.col_count, return_empty=True
        )
        for cell in cells:
            index = cell.col - 1
            cell.value = values[index] if index < len(values) and values[index] else ""

        await self.bulk_update_cells(cells)
