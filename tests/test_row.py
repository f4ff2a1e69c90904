"""Tests for SpreadsheetRow."""

from __future__ import annotations

import pytest

from sheetfeed.client import GoogleSpreadsheet
from sheetfeed.exceptions import ValidationError
from sheetfeed.row import SpreadsheetRow, patch_column
from sheetfeed.xml_utils import ATOM_NS, GSX_NS, decode_entry, parse_xml
from tests.fakes import FEED_ROOT, FakeTransport, golden, xml_response

LIST_URL = f"{FEED_ROOT}list/key123/od6/private/full"


async def load_rows(
    spreadsheet: GoogleSpreadsheet, transport: FakeTransport
) -> list[SpreadsheetRow]:
    transport.queue(xml_response(golden("list_feed.xml")))
    rows = await spreadsheet.get_rows("od6")
    transport.requests.clear()
    return rows


class TestPatchColumn:
    """Tests for patch_column()."""

    def test_replaces_element_content(self) -> None:
        fragment = "<entry><gsx:age>36</gsx:age><gsx:name>Ada</gsx:name></entry>"
        assert (
            patch_column(fragment, "age", 37)
            == "<entry><gsx:age>37</gsx:age><gsx:name>Ada</gsx:name></entry>"
        )

    def test_replaces_self_closing_element(self) -> None:
        fragment = "<entry><gsx:city/><gsx:name>Ada</gsx:name></entry>"
        assert patch_column(fragment, "city", "Oslo") == (
            "<entry><gsx:city>Oslo</gsx:city><gsx:name>Ada</gsx:name></entry>"
        )

    def test_escapes_value(self) -> None:
        result = patch_column("<gsx:note>x</gsx:note>", "note", "a < b & c")
        assert result == "<gsx:note>a &lt; b &amp; c</gsx:note>"

    def test_none_writes_empty_element(self) -> None:
        assert patch_column("<gsx:note>x</gsx:note>", "note", None) == "<gsx:note></gsx:note>"

    def test_does_not_touch_prefix_sharing_columns(self) -> None:
        fragment = "<gsx:agegroup>adult</gsx:agegroup><gsx:age>36</gsx:age>"
        assert patch_column(fragment, "age", 40) == (
            "<gsx:agegroup>adult</gsx:agegroup><gsx:age>40</gsx:age>"
        )

    def test_absent_column_leaves_fragment(self) -> None:
        fragment = "<entry><gsx:name>Ada</gsx:name></entry>"
        assert patch_column(fragment, "age", 1) == fragment


class TestRowAccess:
    """Tests for mapping-style access."""

    @pytest.mark.asyncio
    async def test_values_in_column_order(
        self, spreadsheet: GoogleSpreadsheet, transport: FakeTransport
    ) -> None:
        ada, grace = await load_rows(spreadsheet, transport)

        assert list(ada) == ["name", "age", "city"]
        assert ada.to_dict() == {"name": "Ada", "age": "36", "city": "London"}
        assert grace["city"] is None
        assert "city" in grace
        assert len(grace) == 3
        assert ada.title == "Ada"
        assert ada.edit_link == f"{LIST_URL}/cokwr/1ed"

    @pytest.mark.asyncio
    async def test_unknown_column_cannot_be_set(
        self, spreadsheet: GoogleSpreadsheet, transport: FakeTransport
    ) -> None:
        ada, _ = await load_rows(spreadsheet, transport)

        with pytest.raises(KeyError, match="email"):
            ada["email"] = "ada@example.com"
        assert "email" not in ada

    @pytest.mark.asyncio
    async def test_assigned_values_are_stringified(
        self, spreadsheet: GoogleSpreadsheet, transport: FakeTransport
    ) -> None:
        ada, _ = await load_rows(spreadsheet, transport)

        ada["age"] = 37
        ada["city"] = None

        assert ada["age"] == "37"
        assert ada["city"] is None
        assert ada.get("missing", "n/a") == "n/a"


class TestRowSave:
    """Tests for saving and deleting rows."""

    @pytest.mark.asyncio
    async def test_save_patches_only_columns(
        self, spreadsheet: GoogleSpreadsheet, transport: FakeTransport
    ) -> None:
        ada, _ = await load_rows(spreadsheet, transport)
        ada["age"] = 37
        transport.queue(xml_response(golden("list_entry.xml")))

        await ada.save()

        request = transport.requests[0]
        body = request.body or ""
        assert request.method == "PUT"
        assert request.url == f"{LIST_URL}/cokwr/1ed"
        assert "<gsx:age>37</gsx:age>" in body
        assert "<gsx:name>Ada</gsx:name>" in body
        # metadata the client does not model is sent back untouched
        assert "gd:etag='\"S0wCTlpIIip7ImA0X0QI\"'" in body
        assert "<content type='text'>age: 36, city: London</content>" in body
        assert "<updated>2024-03-01T10:00:00.000Z</updated>" in body
        entry = decode_entry(parse_xml(body))
        assert dict(entry.extended)["age"] == "37"

    @pytest.mark.asyncio
    async def test_save_reloads_from_response(
        self, spreadsheet: GoogleSpreadsheet, transport: FakeTransport
    ) -> None:
        ada, _ = await load_rows(spreadsheet, transport)
        transport.queue(xml_response(golden("list_entry.xml")))

        await ada.save()

        assert ada.to_dict() == {"name": "Linus", "age": "54", "city": "Helsinki & Portland"}
        assert ada.edit_link == f"{LIST_URL}/cre1l/3cd"
        assert "S0wCTlpIIip7ImA0X0QK" in ada.xml

    @pytest.mark.asyncio
    async def test_save_fills_empty_column(
        self, spreadsheet: GoogleSpreadsheet, transport: FakeTransport
    ) -> None:
        _, grace = await load_rows(spreadsheet, transport)
        grace["city"] = "Arlington"
        transport.queue(xml_response(""))

        await grace.save()

        assert "<gsx:city>Arlington</gsx:city>" in (transport.requests[0].body or "")
        # nothing came back, local values stay
        assert grace["city"] == "Arlington"

    @pytest.mark.asyncio
    async def test_delete(
        self, spreadsheet: GoogleSpreadsheet, transport: FakeTransport
    ) -> None:
        _, grace = await load_rows(spreadsheet, transport)
        transport.queue(xml_response(""))

        await grace.delete()

        request = transport.requests[0]
        assert request.method == "DELETE"
        assert request.url == f"{LIST_URL}/cpzh4/2ab"
        assert request.body is None

    @pytest.mark.asyncio
    async def test_read_only_row_cannot_be_saved(
        self, spreadsheet: GoogleSpreadsheet, transport: FakeTransport
    ) -> None:
        xml = (
            f"<entry xmlns='{ATOM_NS}' xmlns:gsx='{GSX_NS}'>"
            "<id>row1</id><gsx:name>Ada</gsx:name></entry>"
        )
        row = SpreadsheetRow(spreadsheet, decode_entry(parse_xml(xml)), xml)

        with pytest.raises(ValidationError, match="no edit link"):
            await row.save()
        with pytest.raises(ValidationError, match="no edit link"):
            await row.delete()
        assert transport.requests == []
