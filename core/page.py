# core/page.py
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from .models import LabelSnapshot, ProductRow, Resolution, ResolutionKind

PRODUCT_WRAPPER = '[data-test^="fop-wrapper:"]'
PRODUCT_LINK = 'a[data-test="fop-product-link"]'
TITLE_CONTAINER = ".title-container"
PROMOTION_CONTAINER = '.promotion-container[data-retailer-anchor="fop-promotions"]'
CATEGORY_CLASS = "custom-category-text"
CATEGORY_TEXT = "." + CATEGORY_CLASS
CONTROL_ID = "voila-sort-button"

LABEL_ID_ATTR = "data-category-id"
LABEL_KIND_ATTR = "data-category-kind"
ROW_ID_ATTR = "data-sort-row"

COLORS = {
    ResolutionKind.CACHE: "#4caf50",
    ResolutionKind.FETCHED: "#1976d2",
    ResolutionKind.ERROR: "#ff9800",
    ResolutionKind.NOT_FOUND: "#d32f2f",
    ResolutionKind.LOADING: "#666",
}

LABEL_STYLE = "font-size: 12px; margin-top: 4px; font-style: italic; color: {color};"

CONTROL_TEXT = "Sort by Category"
CONTROL_DONE_TEXT = "✓ Sorted!"


def label_style(kind: ResolutionKind) -> str:
    return LABEL_STYLE.format(color=COLORS[kind])


def product_name(text: Optional[str], aria_label: Optional[str], title: Optional[str]) -> str:
    """Visible link text, then the accessible label, then the title attribute."""
    return (text or "").strip() or aria_label or title or "unknown"


class CartPage(ABC):
    """
    The cart view the engine works on.

    Implementations hand out opaque string ids for labels and rows; ids are
    never reused within one page view.
    """

    @abstractmethod
    async def current_url(self) -> str:
        ...

    @abstractmethod
    async def apply_cosmetics(self) -> None:
        """Link truncation, row padding and promo removal. Must be idempotent."""

    @abstractmethod
    async def claim_unlabeled(self) -> List[ProductRow]:
        """
        Inject a loading label into every title container that has a product
        link but no label yet, and return the claimed rows. Containers that
        already carry a label are skipped, so repeated calls are safe even
        when the call itself is triggered by the previous injection.
        """

    @abstractmethod
    async def update_label(self, label_id: str, resolution: Resolution) -> bool:
        """Set label text and colour; False when the label is gone."""

    @abstractmethod
    async def labels(self) -> List[LabelSnapshot]:
        ...

    @abstractmethod
    async def reorder(self, row_ids: Sequence[str]) -> None:
        """Move the given rows to the end of their parent, in order."""

    @abstractmethod
    async def remove_labels(self) -> int:
        ...

    @abstractmethod
    async def show_control(self, text: str) -> None:
        ...

    @abstractmethod
    async def set_control_text(self, text: str) -> None:
        ...

    @abstractmethod
    async def remove_control(self) -> None:
        ...

    @abstractmethod
    async def has_control(self) -> bool:
        ...
