"""A single cell of a worksheet, addressed by (row, col).

The cell's content is one of three variants:
- EmptyContent
- PlainValue: display text plus its numeric reading, if any
- Formula: the formula plus the server-evaluated text/number once known

``value``, ``formula`` and ``numeric_value`` are all read from that one
variant, so they can never disagree with each other.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger

from sheetfeed.exceptions import ProtocolError, ValidationError
from sheetfeed.links import EDIT, LinkRegistry
from sheetfeed.xml_utils import ATOM_NS, GS_NS, FeedEntry, xml_safe_value

if TYPE_CHECKING:
    from sheetfeed.client import GoogleSpreadsheet

FORMULA_MARKER = "="
SAVE_TO_GET_VALUE = "*SAVE TO GET NEW VALUE*"

# Plain decimal or exponent notation, no digit-group separators
_NUMBER_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


@dataclass(frozen=True)
class EmptyContent:
    pass


@dataclass(frozen=True)
class PlainValue:
    text: str
    numeric: float | None = None


@dataclass(frozen=True)
class Formula:
    formula: str
    # None until the server has evaluated the formula
    text: str | None = None
    numeric: float | None = None


CellContent = EmptyContent | PlainValue | Formula


def parse_number(value: object) -> float | None:
    """Parse the whole value as a finite number, or return None.

    Partial prefixes and digit separators do not count: ``"42abc"`` and
    ``"1_000"`` are text.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        number = float(value)
    else:
        text = str(value).strip()
        if not _NUMBER_RE.fullmatch(text):
            return None
        number = float(text)
    return number if math.isfinite(number) else None


def format_number(number: float) -> str:
    return str(int(number)) if number.is_integer() else repr(number)


class SpreadsheetCell:
    """Represents a cell in a given worksheet of the connected spreadsheet."""

    def __init__(
        self,
        spreadsheet: GoogleSpreadsheet,
        spreadsheet_key: str,
        worksheet_id: str,
        entry: FeedEntry,
    ) -> None:
        if entry.cell is None:
            raise ProtocolError(f"Cells feed entry has no gs:cell element: {entry.id}")

        self._spreadsheet = spreadsheet
        self._spreadsheet_key = spreadsheet_key
        self._worksheet_id = worksheet_id
        self.row = entry.cell.row
        self.col = entry.cell.col
        self.batch_id = f"R{self.row}C{self.col}"
        self.id = entry.id or self._canonical_id()
        self.links = LinkRegistry.from_links(entry.links)
        self._content: CellContent = EmptyContent()
        self._needs_save = False

        self.update_from_entry(entry)

    def __repr__(self) -> str:
        return f"SpreadsheetCell({self.batch_id}, {self._content!r})"

    def _canonical_id(self) -> str:
        return (
            f"{self._spreadsheet.feed_url}cells/"
            f"{self._spreadsheet_key}/{self._worksheet_id}/{self.batch_id}"
        )

    @property
    def edit_link(self) -> str:
        """The edit link, derived from the id when the feed gave none."""
        edit = self.links.get(EDIT)
        if edit:
            return edit
        if self.id == self._canonical_id():
            return self.id[: -len(self.batch_id)] + f"private/full/{self.batch_id}"
        return self.id

    @property
    def content(self) -> CellContent:
        return self._content

    @property
    def needs_save(self) -> bool:
        return self._needs_save

    # -- accessors ---------------------------------------------------------

    @property
    def value(self) -> str:
        """Display value. Unknown while a formula assignment is unsaved."""
        content = self._content
        if isinstance(content, PlainValue):
            return content.text
        if isinstance(content, Formula):
            return SAVE_TO_GET_VALUE if content.text is None else content.text
        return ""

    @value.setter
    def value(self, value: object) -> None:
        if not value:
            self._set_content(EmptyContent())
        elif isinstance(value, str) and value.startswith(FORMULA_MARKER):
            self._set_content(Formula(value))
        else:
            text = str(value)
            self._set_content(PlainValue(text, parse_number(value)))

    @property
    def formula(self) -> str | None:
        content = self._content
        return content.formula if isinstance(content, Formula) else None

    @formula.setter
    def formula(self, formula: str | None) -> None:
        if not formula:
            self._set_content(EmptyContent())
            return
        if not isinstance(formula, str) or not formula.startswith(FORMULA_MARKER):
            raise ValidationError(f'Formulas must start with "{FORMULA_MARKER}"')
        self._set_content(Formula(formula))

    @property
    def numeric_value(self) -> float | None:
        content = self._content
        if isinstance(content, PlainValue | Formula):
            return content.numeric
        return None

    @numeric_value.setter
    def numeric_value(self, value: str | float | None) -> None:
        if value is None:
            self._set_content(EmptyContent())
            return
        number = parse_number(value)
        if number is None:
            raise ValidationError(f"Invalid numeric value assignment: {value!r}")
        self._set_content(PlainValue(format_number(number), number))

    def _set_content(self, content: CellContent) -> None:
        self._content = content
        self._needs_save = True

    # -- wire format -------------------------------------------------------

    @property
    def value_for_save(self) -> str:
        """The input value to send, escaped for an XML attribute."""
        content = self._content
        if isinstance(content, Formula):
            return xml_safe_value(content.formula)
        if isinstance(content, PlainValue):
            return xml_safe_value(content.text)
        return ""

    def update_from_entry(self, entry: FeedEntry) -> None:
        """Replace local content with the server's view of this cell."""
        cell = entry.cell
        if cell is None:
            raise ProtocolError(f"Cells feed entry has no gs:cell element: {entry.id}")

        numeric = parse_number(cell.numeric_value) if cell.numeric_value is not None else None
        input_value = cell.input_value
        if input_value and input_value.startswith(FORMULA_MARKER):
            self._content = Formula(input_value, cell.text, numeric)
        elif cell.text or input_value:
            self._content = PlainValue(cell.text or input_value or "", numeric)
        else:
            self._content = EmptyContent()
        self._needs_save = False

    def batch_entry_xml(self, cells_feed_url: str) -> str:
        """Serialize this cell as one entry of a batch update feed.

        The dirty flag stays set until the server's result entry for this
        cell is applied.
        """
        return "\n".join(
            [
                "\t<entry>",
                f"\t\t<batch:id>{self.batch_id}</batch:id>",
                '\t\t<batch:operation type="update"/>',
                f"\t\t<id>{cells_feed_url}/{self.batch_id}</id>",
                f'\t\t<link rel="edit" type="application/atom+xml" href="{self.edit_link}"/>',
                f'\t\t<gs:cell row="{self.row}" col="{self.col}" '
                f'inputValue="{self.value_for_save}"/>',
                "\t</entry>",
            ]
        )

    # -- persistence -------------------------------------------------------

    async def save(self) -> None:
        """Send this cell's value and re-read it from the response.

        The cell stays dirty if the request fails.
        """
        body = "".join(
            [
                f"<entry xmlns='{ATOM_NS}' xmlns:gs='{GS_NS}'>",
                f"<id>{self.id}</id>",
                f'<link rel="edit" type="application/atom+xml" href="{self.id}"/>',
                f'<gs:cell row="{self.row}" col="{self.col}" inputValue="{self.value_for_save}"/>',
                "</entry>",
            ]
        )
        logger.debug("Saving cell", batch_id=self.batch_id)
        response = await self._spreadsheet.make_feed_request(self.edit_link, "PUT", body)
        entry = response.entry("cell save")
        self.links = LinkRegistry.from_links(entry.links) if entry.links else self.links
        self.update_from_entry(entry)

    async def set_value(self, value: object) -> None:
        self.value = value
        await self.save()

    async def delete(self) -> None:
        """Blank this cell on the server."""
        await self.set_value("")
