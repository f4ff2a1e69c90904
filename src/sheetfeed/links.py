"""Per-entity link registry built from feed ``<link>`` descriptors."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from sheetfeed.xml_utils import Link

EDIT = "edit"
SELF = "self"
CELLS = "cells"
BULK_CELLS = "bulkcells"
CELLS_FEED = "http://schemas.google.com/spreadsheets/2006#cellsfeed"
LIST_FEED = "http://schemas.google.com/spreadsheets/2006#listfeed"


class LinkRegistry:
    """Mapping from relation name to href.

    If a relation repeats, the last descriptor wins. Missing relations read
    as None; callers supply their own fallback. Setting ``cells`` keeps the
    derived ``bulkcells`` batch endpoint in step.
    """

    def __init__(self) -> None:
        self._links: dict[str, str] = {}

    @classmethod
    def from_links(cls, links: Iterable[Link]) -> LinkRegistry:
        registry = cls()
        for link in links:
            registry.set(link.rel, link.href)
        return registry

    def get(self, rel: str) -> str | None:
        return self._links.get(rel)

    def set(self, rel: str, href: str | None) -> None:
        if href is None:
            self._links.pop(rel, None)
        else:
            self._links[rel] = href

        if rel == CELLS:
            if href is None:
                self._links.pop(BULK_CELLS, None)
            else:
                self._links[BULK_CELLS] = f"{href}/batch"

    def __contains__(self, rel: object) -> bool:
        return rel in self._links

    def __iter__(self) -> Iterator[str]:
        return iter(self._links)

    def __len__(self) -> int:
        return len(self._links)

    def __repr__(self) -> str:
        return f"LinkRegistry({self._links!r})"
