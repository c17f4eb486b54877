# core/browser.py
"""
Live cart page backed by a Playwright tab.

An init script (installed before the first navigation, so it runs on every
document) watches the DOM with a MutationObserver and wraps the history API;
both report back through functions exposed with page.expose_function. Every
DOM read and write happens in page.evaluate.
"""
import itertools
import json
from typing import Any, Awaitable, Callable, List, Sequence

from playwright.async_api import Page

from .logger import get_logger
from .models import LOADING, LabelSnapshot, ProductRow, Resolution, ResolutionKind
from .page import (
    CATEGORY_CLASS,
    CATEGORY_TEXT,
    COLORS,
    CONTROL_ID,
    LABEL_ID_ATTR,
    LABEL_KIND_ATTR,
    PRODUCT_LINK,
    PRODUCT_WRAPPER,
    PROMOTION_CONTAINER,
    ROW_ID_ATTR,
    TITLE_CONTAINER,
    CartPage,
    product_name,
)

logger = get_logger(__name__)

MUTATION_BINDING = "_pyCartMutation"
URL_BINDING = "_pyCartUrl"
SORT_BINDING = "_pyCartSort"

_SELECTORS = json.dumps(
    {
        "wrapper": PRODUCT_WRAPPER,
        "link": PRODUCT_LINK,
        "title": TITLE_CONTAINER,
        "promo": PROMOTION_CONTAINER,
        "label": CATEGORY_TEXT,
        "labelClass": CATEGORY_CLASS,
        "labelId": LABEL_ID_ATTR,
        "labelKind": LABEL_KIND_ATTR,
        "rowId": ROW_ID_ATTR,
        "control": CONTROL_ID,
    }
)

_JS_HOOKS = (
    r"""
(function () {
    if (window.__cartSorterHooks) return;
    window.__cartSorterHooks = true;
    window.__cartSorterSelectors = %s;

    let queued = false;
    const notify = () => {
        if (queued) return;
        queued = true;
        setTimeout(() => {
            queued = false;
            if (window.%s) window.%s();
        }, 0);
    };
    const reportUrl = (signal) => {
        if (window.%s) window.%s(window.location.href, signal);
    };

    const start = () => {
        new MutationObserver(notify).observe(document.body, {childList: true, subtree: true});
    };
    if (document.body) start(); else document.addEventListener('DOMContentLoaded', start);

    for (const name of ['pushState', 'replaceState']) {
        const original = history[name];
        history[name] = function () {
            const result = original.apply(this, arguments);
            reportUrl('history');
            return result;
        };
    }
    window.addEventListener('popstate', () => reportUrl('popstate'));
})();
"""
    % (_SELECTORS, MUTATION_BINDING, MUTATION_BINDING, URL_BINDING, URL_BINDING)
)

_JS_COSMETICS = """
() => {
    const S = window.__cartSorterSelectors;
    document.querySelectorAll(S.link).forEach(link => {
        if (link.style.webkitLineClamp) return;
        Object.assign(link.style, {
            display: '-webkit-box', webkitBoxOrient: 'vertical', webkitLineClamp: '3',
            overflow: 'hidden', textOverflow: 'ellipsis', maxHeight: 'calc(3 * 1.5em)'
        });
    });
    document.querySelectorAll(S.wrapper).forEach(wrapper => {
        if (wrapper.dataset.borderStyled) return;
        wrapper.style.padding = '8px';
        wrapper.dataset.borderStyled = 'true';
    });
    document.querySelectorAll(S.promo).forEach(promo => promo.remove());
}
"""

_JS_CLAIM = """
([prefix, text, kind, color]) => {
    const S = window.__cartSorterSelectors;
    const claimed = [];
    document.querySelectorAll(S.title).forEach(container => {
        if (container.querySelector(S.label)) return;
        const link = container.querySelector(S.link);
        if (!link) return;
        window.__cartSorterSeq = (window.__cartSorterSeq || 0) + 1;
        const id = prefix + window.__cartSorterSeq;
        const label = document.createElement('div');
        label.className = S.labelClass;
        label.setAttribute(S.labelId, id);
        label.setAttribute(S.labelKind, kind);
        label.textContent = text;
        Object.assign(label.style, {fontSize: '12px', color: color, marginTop: '4px', fontStyle: 'italic'});
        container.appendChild(label);
        claimed.push({
            id: id,
            text: link.textContent,
            ariaLabel: link.getAttribute('aria-label'),
            title: link.getAttribute('title'),
            url: link.href
        });
    });
    return claimed;
}
"""

_JS_UPDATE = """
([id, text, kind, color]) => {
    const S = window.__cartSorterSelectors;
    const label = document.querySelector('[' + S.labelId + '="' + id + '"]');
    if (!label) return false;
    label.textContent = text;
    label.setAttribute(S.labelKind, kind);
    label.style.color = color;
    return true;
}
"""

_JS_LABELS = """
() => {
    const S = window.__cartSorterSelectors;
    return Array.from(document.querySelectorAll(S.label)).map(label => {
        const row = label.closest(S.wrapper);
        let rowId = null;
        if (row) {
            if (!row.getAttribute(S.rowId)) {
                window.__cartSorterSeq = (window.__cartSorterSeq || 0) + 1;
                row.setAttribute(S.rowId, 'row-' + window.__cartSorterSeq);
            }
            rowId = row.getAttribute(S.rowId);
        }
        return {
            id: label.getAttribute(S.labelId) || '',
            rowId: rowId,
            text: label.textContent.trim(),
            kind: label.getAttribute(S.labelKind)
        };
    });
}
"""

_JS_REORDER = """
(rowIds) => {
    const S = window.__cartSorterSelectors;
    for (const id of rowIds) {
        const row = document.querySelector('[' + S.rowId + '="' + id + '"]');
        if (row && row.parentNode) row.parentNode.appendChild(row);
    }
}
"""

_JS_REMOVE_LABELS = """
() => {
    const labels = document.querySelectorAll(window.__cartSorterSelectors.label);
    labels.forEach(label => label.remove());
    return labels.length;
}
"""

_JS_SHOW_CONTROL = """
([text, binding]) => {
    const S = window.__cartSorterSelectors;
    if (document.getElementById(S.control)) return;
    const button = document.createElement('button');
    button.id = S.control;
    button.textContent = text;
    const base = {backgroundColor: '#004740', transform: 'translateY(0)', boxShadow: '0px 2px 12px rgba(0, 0, 0, 0.2)'};
    Object.assign(button.style, base, {
        position: 'fixed', bottom: '30px', right: '30px', zIndex: '10000',
        padding: '12px 24px', fontSize: '14px', fontWeight: 'bold', color: '#fff',
        border: 'none', borderRadius: '4px', cursor: 'pointer',
        transition: 'all 0.3s ease', fontFamily: 'FoundersGroteskWeb, sans-serif'
    });
    button.addEventListener('mouseenter', () => Object.assign(button.style, {
        backgroundColor: '#00201c', transform: 'translateY(-2px)', boxShadow: '0px 4px 16px rgba(0, 0, 0, 0.3)'
    }));
    button.addEventListener('mouseleave', () => Object.assign(button.style, base));
    button.addEventListener('click', () => { if (window[binding]) window[binding](); });
    document.body.appendChild(button);
}
"""

_JS_SET_CONTROL_TEXT = """
([id, text]) => {
    const button = document.getElementById(id);
    if (button) button.textContent = text;
}
"""

_JS_REMOVE_CONTROL = """
(id) => {
    const button = document.getElementById(id);
    if (button) button.remove();
}
"""

_JS_HAS_CONTROL = """
(id) => !!document.getElementById(id)
"""


class PlaywrightCartPage(CartPage):
    def __init__(self, page: Page):
        self.page = page
        # a reload restarts the in-page counter, so each claim gets its own prefix
        self._claims = itertools.count(1)

    async def install(
        self,
        on_mutation: Callable[[], Awaitable[None]],
        on_url: Callable[[str, str], Awaitable[Any]],
        on_sort: Callable[[], Awaitable[Any]],
    ) -> None:
        """Expose the Python callbacks and the init script. Call before the first goto()."""
        await self.page.expose_function(MUTATION_BINDING, on_mutation)
        await self.page.expose_function(URL_BINDING, on_url)
        await self.page.expose_function(SORT_BINDING, on_sort)
        await self.page.add_init_script(_JS_HOOKS)
        logger.info("Cart hooks installed")

    async def current_url(self) -> str:
        return self.page.url

    async def apply_cosmetics(self) -> None:
        await self.page.evaluate(_JS_COSMETICS)

    async def claim_unlabeled(self) -> List[ProductRow]:
        prefix = f"cat-{next(self._claims)}-"
        claimed = await self.page.evaluate(
            _JS_CLAIM, [prefix, LOADING.category, LOADING.kind.value, COLORS[LOADING.kind]]
        )
        return [
            ProductRow(
                label_id=c["id"],
                name=product_name(c.get("text"), c.get("ariaLabel"), c.get("title")),
                url=c.get("url") or "",
            )
            for c in claimed
        ]

    async def update_label(self, label_id: str, resolution: Resolution) -> bool:
        return bool(
            await self.page.evaluate(
                _JS_UPDATE,
                [label_id, resolution.category, resolution.kind.value, COLORS[resolution.kind]],
            )
        )

    async def labels(self) -> List[LabelSnapshot]:
        raw = await self.page.evaluate(_JS_LABELS)
        return [
            LabelSnapshot(
                label_id=r["id"],
                row_id=r.get("rowId"),
                text=r.get("text") or "",
                kind=ResolutionKind.parse(r.get("kind")),
            )
            for r in raw
        ]

    async def reorder(self, row_ids: Sequence[str]) -> None:
        await self.page.evaluate(_JS_REORDER, list(row_ids))

    async def remove_labels(self) -> int:
        return int(await self.page.evaluate(_JS_REMOVE_LABELS))

    async def show_control(self, text: str) -> None:
        await self.page.evaluate(_JS_SHOW_CONTROL, [text, SORT_BINDING])

    async def set_control_text(self, text: str) -> None:
        await self.page.evaluate(_JS_SET_CONTROL_TEXT, [CONTROL_ID, text])

    async def remove_control(self) -> None:
        await self.page.evaluate(_JS_REMOVE_CONTROL, CONTROL_ID)

    async def has_control(self) -> bool:
        return bool(await self.page.evaluate(_JS_HAS_CONTROL, CONTROL_ID))
