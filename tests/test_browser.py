import asyncio
from unittest.mock import AsyncMock, MagicMock

from core.browser import MUTATION_BINDING, SORT_BINDING, URL_BINDING, PlaywrightCartPage
from core.models import Resolution, ResolutionKind


def _page(evaluate_result=None):
    page = MagicMock()
    page.url = "https://voila.ca/basket"
    page.evaluate = AsyncMock(return_value=evaluate_result)
    page.expose_function = AsyncMock()
    page.add_init_script = AsyncMock()
    return page


def test_install_exposes_callbacks_and_hooks():
    page = _page()
    cart = PlaywrightCartPage(page)
    on_mutation, on_url, on_sort = AsyncMock(), AsyncMock(), AsyncMock()

    asyncio.run(cart.install(on_mutation, on_url, on_sort))

    exposed = {call.args[0]: call.args[1] for call in page.expose_function.await_args_list}
    assert exposed == {MUTATION_BINDING: on_mutation, URL_BINDING: on_url, SORT_BINDING: on_sort}
    script = page.add_init_script.await_args.args[0]
    assert "MutationObserver" in script
    assert "popstate" in script
    assert "fop-wrapper:" in script


def test_claim_maps_rows_with_name_fallback():
    page = _page(
        [
            {"id": "cat-1", "text": "  Milk ", "ariaLabel": None, "title": None, "url": "https://voila.ca/p/1"},
            {"id": "cat-2", "text": "", "ariaLabel": "Sparkling Water", "title": None, "url": "https://voila.ca/p/2"},
        ]
    )
    rows = asyncio.run(PlaywrightCartPage(page).claim_unlabeled())

    assert [(r.label_id, r.name, r.url) for r in rows] == [
        ("cat-1", "Milk", "https://voila.ca/p/1"),
        ("cat-2", "Sparkling Water", "https://voila.ca/p/2"),
    ]
    args = page.evaluate.await_args.args[1]
    assert args == ["cat-1-", "loading...", "loading", "#666"]


def test_each_claim_uses_a_fresh_id_prefix():
    # the in-page counter restarts after a reload; the prefix must not
    page = _page([])
    cart = PlaywrightCartPage(page)

    async def scenario():
        await cart.claim_unlabeled()
        await cart.claim_unlabeled()

    asyncio.run(scenario())
    prefixes = [call.args[1][0] for call in page.evaluate.await_args_list]
    assert prefixes == ["cat-1-", "cat-2-"]


def test_update_label_passes_kind_and_colour():
    page = _page(True)
    ok = asyncio.run(
        PlaywrightCartPage(page).update_label("cat-1", Resolution(ResolutionKind.NOT_FOUND, "no category found"))
    )
    assert ok is True
    assert page.evaluate.await_args.args[1] == ["cat-1", "no category found", "not_found", "#d32f2f"]


def test_labels_are_parsed_into_snapshots():
    page = _page(
        [
            {"id": "cat-1", "rowId": "row-3", "text": "Dairy", "kind": "cache"},
            {"id": "cat-2", "rowId": None, "text": "loading...", "kind": None},
            {"id": "cat-3", "rowId": "row-4", "text": "?", "kind": "bogus"},
        ]
    )
    labels = asyncio.run(PlaywrightCartPage(page).labels())
    assert [label.kind for label in labels] == [ResolutionKind.CACHE, ResolutionKind.LOADING, ResolutionKind.ERROR]
    assert labels[1].row_id is None


def test_current_url_reads_page():
    assert asyncio.run(PlaywrightCartPage(_page()).current_url()) == "https://voila.ca/basket"
