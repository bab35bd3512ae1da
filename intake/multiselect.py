"""Paginated, toggleable multi-select over a flat catalog.

Each page lists its items as ``1..n``, then the page controls that apply to
that page (previous, next, clear, confirm) numbered right after the last
item, then ``0`` to return to the prior step. Control numbers therefore move
from page to page and are recomputed on every render.

One message may toggle several items on the current page ("1,3,5"). A
single number that hits a control runs that control instead.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from intake import prompts as P
from intake.catalog import CatalogItem
from intake.input_helpers import parse_indices, split_list
from intake.render import render_selector_page
from intake.state import SelectedItem


@dataclass(frozen=True)
class PageControls:
    prev: Optional[int]
    next: Optional[int]
    clear: int
    confirm: int

    def labelled(self) -> List[tuple]:
        out = []
        if self.prev is not None:
            out.append((self.prev, P.CONTROL_PREV))
        if self.next is not None:
            out.append((self.next, P.CONTROL_NEXT))
        out.append((self.clear, P.CONTROL_CLEAR))
        out.append((self.confirm, P.CONTROL_CONFIRM))
        return out


def control_indices(item_count: int, has_prev: bool, has_next: bool) -> PageControls:
    """Positional control numbers for a page with ``item_count`` rows."""
    idx = item_count
    prev = nxt = None
    if has_prev:
        idx += 1
        prev = idx
    if has_next:
        idx += 1
        nxt = idx
    return PageControls(prev=prev, next=nxt, clear=idx + 1, confirm=idx + 2)


def page_count(total: int, page_size: int) -> int:
    return max(1, math.ceil(total / max(1, page_size)))


def clamp_page(page: int, pages: int) -> int:
    return min(max(1, int(page or 1)), max(1, pages))


class SelectStatus(str, Enum):
    CONTINUE = "continue"  # still selecting; store pending + page
    CONFIRMED = "confirmed"  # selection finalised
    EXIT = "exit"  # user went back; pending discarded


@dataclass
class SelectOutcome:
    status: SelectStatus
    reply: str
    pending: List[SelectedItem] = field(default_factory=list)
    page: int = 1

    @property
    def selection(self) -> List[SelectedItem]:
        return list(self.pending) if self.status is SelectStatus.CONFIRMED else []


def toggle(pending: Sequence[SelectedItem], item: CatalogItem) -> List[SelectedItem]:
    """Add ``item`` if absent (appended), remove it if present."""
    if any(p.id == item.id for p in pending):
        return [p for p in pending if p.id != item.id]
    return [*pending, SelectedItem(id=item.id, name=item.name)]


def free_text_items(raw_text: str) -> List[SelectedItem]:
    """Ad hoc items for locations without a catalog list."""
    out: List[SelectedItem] = []
    for name in split_list(raw_text):
        iid = f"custom:{name.lower()}"
        if any(i.id == iid for i in out):
            continue
        out.append(SelectedItem(id=iid, name=name))
    return out


class PagedMultiSelector:
    def __init__(self, items: Sequence[CatalogItem], page_size: int, title: str) -> None:
        self.items = list(items)
        self.page_size = max(1, int(page_size))
        self.title = title

    @property
    def pages(self) -> int:
        return page_count(len(self.items), self.page_size)

    def page_items(self, page: int) -> List[CatalogItem]:
        page = clamp_page(page, self.pages)
        start = (page - 1) * self.page_size
        return self.items[start : start + self.page_size]

    def controls(self, page: int) -> PageControls:
        page = clamp_page(page, self.pages)
        return control_indices(len(self.page_items(page)), page > 1, page < self.pages)

    def render(self, pending: Sequence[SelectedItem], page: int, notice: str = "") -> str:
        page = clamp_page(page, self.pages)
        chosen = {p.id for p in pending}
        rows = [(it.id in chosen, it.name) for it in self.page_items(page)]
        return render_selector_page(
            self.title,
            rows,
            self.controls(page).labelled(),
            page,
            self.pages,
            [p.name for p in pending],
            notice,
        )

    def handle(self, raw_text: str, pending: Sequence[SelectedItem], page: int) -> SelectOutcome:
        pending = list(pending)
        page = clamp_page(page, self.pages)
        on_page = self.page_items(page)
        ctl = self.controls(page)
        nums = parse_indices(raw_text)

        def _stay(p: int, notice: str = "") -> SelectOutcome:
            return SelectOutcome(SelectStatus.CONTINUE, self.render(pending, p, notice), pending, p)

        if len(nums) == 1:
            n = nums[0]
            if n == 0:
                return SelectOutcome(SelectStatus.EXIT, "", [], 1)
            if ctl.prev is not None and n == ctl.prev:
                return _stay(page - 1)
            if ctl.next is not None and n == ctl.next:
                return _stay(page + 1)
            if n == ctl.clear:
                pending = []
                return _stay(page, P.NOTICE_SELECTION_CLEARED)
            if n == ctl.confirm:
                if not pending:
                    return _stay(page, P.NOTICE_EMPTY_SELECTION)
                return SelectOutcome(SelectStatus.CONFIRMED, "", pending, 1)

        hits = [n for n in nums if 1 <= n <= len(on_page)]
        if not hits:
            return _stay(page, P.NOTICE_INVALID_NUMBER)
        for n in hits:
            pending = toggle(pending, on_page[n - 1])
        return _stay(page)
