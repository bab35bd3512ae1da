import pytest

from intake import prompts as P
from intake.catalog import CatalogItem
from intake.multiselect import (
    PagedMultiSelector,
    SelectStatus,
    clamp_page,
    control_indices,
    free_text_items,
    page_count,
    toggle,
)

ITEMS = [
    CatalogItem("headache", "Headache"),
    CatalogItem("cough", "Cough"),
    CatalogItem("fever", "Fever"),
]


def selector(page_size=2, items=ITEMS):
    return PagedMultiSelector(items, page_size, "Pick symptoms:")


def test_control_indices_follow_last_item():
    c = control_indices(2, has_prev=False, has_next=True)
    assert (c.prev, c.next, c.clear, c.confirm) == (None, 3, 4, 5)
    c = control_indices(1, has_prev=True, has_next=False)
    assert (c.prev, c.next, c.clear, c.confirm) == (2, None, 3, 4)
    c = control_indices(8, has_prev=True, has_next=True)
    assert (c.prev, c.next, c.clear, c.confirm) == (9, 10, 11, 12)


def test_page_count_and_clamp():
    assert page_count(0, 8) == 1
    assert page_count(3, 2) == 2
    assert page_count(16, 8) == 2
    assert clamp_page(9, 2) == 2
    assert clamp_page(0, 2) == 1
    assert clamp_page(None, 3) == 1


@pytest.mark.parametrize("total", [1, 2, 7, 8, 9, 23])
@pytest.mark.parametrize("size", [1, 3, 8])
def test_pages_cover_catalog_exactly_once(total, size):
    items = [CatalogItem(f"i{n}", f"Item {n}") for n in range(total)]
    sel = PagedMultiSelector(items, size, "t")
    seen = []
    for page in range(1, sel.pages + 1):
        seen.extend(i.id for i in sel.page_items(page))
    assert seen == [i.id for i in items]


def test_batch_toggle_ignores_out_of_range_numbers():
    sel = selector()
    out = sel.handle("1,3", [], 1)
    assert out.status is SelectStatus.CONTINUE
    assert [p.id for p in out.pending] == ["headache"]
    assert out.page == 1
    assert "(page 1/2)" in out.reply
    assert "1. ☑ Headache" in out.reply
    assert "2. ☐ Cough" in out.reply
    assert f"3. {P.CONTROL_NEXT}" in out.reply


def test_next_page_keeps_selection_off_screen():
    sel = selector()
    pending = sel.handle("1,3", [], 1).pending
    out = sel.handle("3", pending, 1)
    assert out.status is SelectStatus.CONTINUE
    assert out.page == 2
    assert "1. ☐ Fever" in out.reply
    assert "Headache" not in out.reply.split("Selected:")[0]
    assert [p.id for p in out.pending] == ["headache"]
    assert f"2. {P.CONTROL_PREV}" in out.reply


def test_confirm_from_second_page_finalises():
    sel = selector()
    pending = sel.handle("1", [], 1).pending
    out = sel.handle(str(sel.controls(2).confirm), pending, 2)
    assert out.status is SelectStatus.CONFIRMED
    assert [s.name for s in out.selection] == ["Headache"]
    assert out.page == 1


def test_confirm_empty_selection_reprompts():
    sel = selector()
    out = sel.handle("5", [], 1)
    assert out.status is SelectStatus.CONTINUE
    assert out.pending == []
    assert out.reply.startswith(P.NOTICE_EMPTY_SELECTION)


def test_clear_empties_selection():
    sel = selector()
    pending = sel.handle("1,2", [], 1).pending
    out = sel.handle("4", pending, 1)
    assert out.pending == []
    assert out.reply.startswith(P.NOTICE_SELECTION_CLEARED)


def test_zero_exits_and_discards():
    sel = selector()
    pending = sel.handle("1", [], 1).pending
    out = sel.handle("0", pending, 1)
    assert out.status is SelectStatus.EXIT
    assert out.pending == []
    assert out.selection == []


@pytest.mark.parametrize("raw", ["abc", "9", "", "7, 8"])
def test_unresolvable_input_shows_notice(raw):
    sel = selector()
    out = sel.handle(raw, [], 1)
    assert out.status is SelectStatus.CONTINUE
    assert out.reply.startswith(P.NOTICE_INVALID_NUMBER)


def test_stale_page_is_clamped():
    sel = selector(page_size=8)
    out = sel.handle("1", [], 5)
    assert out.page == 1
    assert [p.id for p in out.pending] == ["headache"]


def test_toggle_keeps_ids_unique_and_even_toggles_restore():
    pending = []
    for _ in range(4):
        pending = toggle(pending, ITEMS[0])
    assert pending == []
    pending = toggle(toggle(pending, ITEMS[1]), ITEMS[0])
    pending = toggle(pending, ITEMS[1])
    pending = toggle(pending, ITEMS[1])
    ids = [p.id for p in pending]
    assert len(ids) == len(set(ids))
    assert ids == ["headache", "cough"]


def test_free_text_items_use_custom_ids():
    items = free_text_items("Cramps, bloating, cramps")
    assert [(i.id, i.name) for i in items] == [("custom:cramps", "Cramps"), ("custom:bloating", "bloating")]
    assert free_text_items(" , ") == []
