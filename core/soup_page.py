# core/soup_page.py
import itertools
from typing import List, Optional, Sequence
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from bs4.element import Tag

from .logger import get_logger
from .models import LOADING, LabelSnapshot, ProductRow, Resolution, ResolutionKind
from .page import (
    CATEGORY_CLASS,
    CATEGORY_TEXT,
    CONTROL_ID,
    LABEL_ID_ATTR,
    LABEL_KIND_ATTR,
    PRODUCT_LINK,
    PRODUCT_WRAPPER,
    PROMOTION_CONTAINER,
    ROW_ID_ATTR,
    TITLE_CONTAINER,
    CartPage,
    label_style,
    product_name,
)

logger = get_logger(__name__)

LINK_TRUNCATE_STYLE = (
    "display: -webkit-box; -webkit-box-orient: vertical; -webkit-line-clamp: 3; "
    "overflow: hidden; text-overflow: ellipsis; max-height: calc(3 * 1.5em);"
)


def _is_wrapper(tag: Tag) -> bool:
    return isinstance(tag, Tag) and str(tag.get("data-test", "")).startswith("fop-wrapper:")


class SoupCartPage(CartPage):
    """A cart page held as a BeautifulSoup tree, e.g. a saved basket page."""

    def __init__(self, html: str, url: str = ""):
        self.soup = BeautifulSoup(html, "html.parser")
        self.url = url
        self._ids = itertools.count(1)

    def html(self) -> str:
        return str(self.soup)

    def _row_id(self, row: Tag) -> str:
        rid = row.get(ROW_ID_ATTR)
        if not rid:
            rid = f"row-{next(self._ids)}"
            row[ROW_ID_ATTR] = rid
        return str(rid)

    def _find_label(self, label_id: str) -> Optional[Tag]:
        return self.soup.find(attrs={LABEL_ID_ATTR: label_id})

    def navigate(self, url: str, html: Optional[str] = None) -> None:
        """Point the page at a new address, optionally swapping the content."""
        self.url = url
        if html is not None:
            self.soup = BeautifulSoup(html, "html.parser")

    async def current_url(self) -> str:
        return self.url

    async def apply_cosmetics(self) -> None:
        for link in self.soup.select(PRODUCT_LINK):
            if "-webkit-line-clamp" not in str(link.get("style", "")):
                link["style"] = LINK_TRUNCATE_STYLE
        for wrapper in self.soup.select(PRODUCT_WRAPPER):
            if not wrapper.get("data-border-styled"):
                wrapper["style"] = "padding: 8px;"
                wrapper["data-border-styled"] = "true"
        for promo in self.soup.select(PROMOTION_CONTAINER):
            promo.decompose()

    async def claim_unlabeled(self) -> List[ProductRow]:
        rows: List[ProductRow] = []
        for container in self.soup.select(TITLE_CONTAINER):
            if container.select_one(CATEGORY_TEXT) is not None:
                continue
            link = container.select_one(PRODUCT_LINK)
            if link is None:
                continue

            name = product_name(link.get_text(), link.get("aria-label"), link.get("title"))
            url = urljoin(self.url, str(link.get("href") or ""))
            label_id = f"cat-{next(self._ids)}"

            label = self.soup.new_tag("div")
            label["class"] = [CATEGORY_CLASS]
            label[LABEL_ID_ATTR] = label_id
            label[LABEL_KIND_ATTR] = LOADING.kind.value
            label["style"] = label_style(LOADING.kind)
            label.string = LOADING.category
            container.append(label)

            rows.append(ProductRow(label_id=label_id, name=name, url=url))
        if rows:
            logger.debug("Claimed %d unlabeled rows", len(rows))
        return rows

    async def update_label(self, label_id: str, resolution: Resolution) -> bool:
        label = self._find_label(label_id)
        if label is None:
            return False
        label.string = resolution.category
        label[LABEL_KIND_ATTR] = resolution.kind.value
        label["style"] = label_style(resolution.kind)
        return True

    async def labels(self) -> List[LabelSnapshot]:
        out: List[LabelSnapshot] = []
        for label in self.soup.select(CATEGORY_TEXT):
            row = label.find_parent(_is_wrapper)
            out.append(
                LabelSnapshot(
                    label_id=str(label.get(LABEL_ID_ATTR, "")),
                    row_id=self._row_id(row) if row is not None else None,
                    text=label.get_text(strip=True),
                    kind=ResolutionKind.parse(label.get(LABEL_KIND_ATTR)),
                )
            )
        return out

    async def reorder(self, row_ids: Sequence[str]) -> None:
        by_id = {}
        for row in self.soup.select(PRODUCT_WRAPPER):
            by_id[self._row_id(row)] = row
        for rid in row_ids:
            row = by_id.get(rid)
            if row is None or row.parent is None:
                continue
            # append() detaches first, so the same Tag moves
            row.parent.append(row)

    async def remove_labels(self) -> int:
        labels = self.soup.select(CATEGORY_TEXT)
        for label in labels:
            label.decompose()
        return len(labels)

    async def show_control(self, text: str) -> None:
        if await self.has_control():
            return
        button = self.soup.new_tag("button", id=CONTROL_ID)
        button.string = text
        (self.soup.body or self.soup).append(button)

    async def set_control_text(self, text: str) -> None:
        button = self.soup.find(id=CONTROL_ID)
        if button is not None:
            button.string = text

    async def remove_control(self) -> None:
        button = self.soup.find(id=CONTROL_ID)
        if button is not None:
            button.decompose()

    async def has_control(self) -> bool:
        return self.soup.find(id=CONTROL_ID) is not None

    def control_text(self) -> Optional[str]:
        button = self.soup.find(id=CONTROL_ID)
        return button.get_text() if button is not None else None

    def row_names(self) -> List[str]:
        """Product names in current document order."""
        names = []
        for row in self.soup.select(PRODUCT_WRAPPER):
            link = row.select_one(PRODUCT_LINK)
            if link is not None:
                names.append(product_name(link.get_text(), link.get("aria-label"), link.get("title")))
        return names
