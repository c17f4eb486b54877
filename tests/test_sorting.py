import asyncio

from core.models import LabelSnapshot, Resolution, ResolutionKind
from core.page import CONTROL_DONE_TEXT, CONTROL_TEXT
from core.sorting import SortEngine, order_rows
from core.soup_page import SoupCartPage
from tests.helpers import PAGE_URL, cart_html


def snap(row_id, text, kind):
    return LabelSnapshot(label_id=f"cat-{row_id}", row_id=row_id, text=text, kind=kind)


def test_resolved_rows_sort_alphabetically():
    labels = [
        snap("r1", "Produce > Fruits", ResolutionKind.FETCHED),
        snap("r2", "Bakery", ResolutionKind.CACHE),
        snap("r3", "dairy", ResolutionKind.CACHE),
    ]
    assert order_rows(labels) == ["r2", "r3", "r1"]


def test_unusable_rows_trail_regardless_of_text():
    labels = [
        snap("lost", "no category found", ResolutionKind.NOT_FOUND),
        snap("slow", "loading...", ResolutionKind.LOADING),
        snap("veg", "Produce", ResolutionKind.FETCHED),
        snap("broken", "fetch error", ResolutionKind.ERROR),
        snap("bread", "Bakery", ResolutionKind.CACHE),
    ]
    ordered = order_rows(labels)
    assert ordered[:2] == ["bread", "veg"]
    assert set(ordered[2:]) == {"lost", "slow", "broken"}
    # the trailing bucket itself is ordered deterministically by text
    assert ordered[2:] == ["broken", "slow", "lost"]


def test_category_text_matching_error_words_is_still_resolved():
    labels = [
        snap("a", "not found", ResolutionKind.NOT_FOUND),
        snap("b", "Terror Snacks", ResolutionKind.FETCHED),
    ]
    assert order_rows(labels) == ["b", "a"]


def test_labels_outside_rows_are_ignored():
    labels = [LabelSnapshot("cat-9", None, "Bakery", ResolutionKind.CACHE), snap("r1", "Dairy", ResolutionKind.CACHE)]
    assert order_rows(labels) == ["r1"]


def _labelled_page(categories):
    page = SoupCartPage(cart_html(list(categories)), url=PAGE_URL)

    async def label_all():
        rows = await page.claim_unlabeled()
        for row in rows:
            kind, text = categories[row.name]
            if kind is not ResolutionKind.LOADING:
                await page.update_label(row.label_id, Resolution(kind, text))

    asyncio.run(label_all())
    return page


def test_sort_engine_reorders_page(fast_timings):
    page = _labelled_page(
        {
            "Yogurt": (ResolutionKind.CACHE, "Dairy"),
            "Mystery Box": (ResolutionKind.NOT_FOUND, "no category found"),
            "Baguette": (ResolutionKind.FETCHED, "Bakery"),
            "Pears": (ResolutionKind.LOADING, ""),
        }
    )
    moved = asyncio.run(SortEngine(page).sort())
    assert moved == 4
    assert page.row_names()[:2] == ["Baguette", "Yogurt"]
    assert set(page.row_names()[2:]) == {"Mystery Box", "Pears"}


def test_sort_engine_without_rows_is_noop():
    page = SoupCartPage("<html><body></body></html>", url=PAGE_URL)
    assert asyncio.run(SortEngine(page).sort()) == 0


def test_sort_feedback_reverts(fast_timings):
    page = _labelled_page({"Milk": (ResolutionKind.CACHE, "Dairy")})

    async def scenario():
        await page.show_control(CONTROL_TEXT)
        engine = SortEngine(page)
        await engine.sort()
        during = page.control_text()
        await asyncio.sleep(engine.feedback_delay + 0.05)
        return during, page.control_text()

    during, after = asyncio.run(scenario())
    assert during == CONTROL_DONE_TEXT
    assert after == CONTROL_TEXT
