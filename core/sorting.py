# core/sorting.py
import asyncio
import locale
import os
from typing import Iterable, List, Optional, Tuple

from .logger import get_logger
from .models import LabelSnapshot, ResolutionKind
from .page import CONTROL_DONE_TEXT, CONTROL_TEXT, CartPage

logger = get_logger(__name__)

SORT_FEEDBACK = float(os.getenv("SORT_FEEDBACK", "2.0"))

RESOLVED_BUCKET = 0
TRAILING_BUCKET = 1


def _bucket(kind: ResolutionKind) -> int:
    if kind is ResolutionKind.CACHE or kind is ResolutionKind.FETCHED:
        return RESOLVED_BUCKET
    if kind in (ResolutionKind.LOADING, ResolutionKind.NOT_FOUND, ResolutionKind.ERROR):
        return TRAILING_BUCKET
    raise ValueError(f"unhandled label kind {kind!r}")


def collation_key(text: str) -> str:
    return locale.strxfrm(text.casefold())


def sort_key(label: LabelSnapshot) -> Tuple[int, str, str]:
    return (_bucket(label.kind), collation_key(label.text), label.text)


def order_rows(labels: Iterable[LabelSnapshot]) -> List[str]:
    """Row ids ordered by category; rows without a usable category go last."""
    placed = [label for label in labels if label.row_id is not None]
    placed.sort(key=sort_key)
    seen = set()
    ordered = []
    for label in placed:
        if label.row_id in seen:
            continue
        seen.add(label.row_id)
        ordered.append(label.row_id)
    return ordered


class SortEngine:
    def __init__(self, page: CartPage, feedback_delay: Optional[float] = None):
        self.page = page
        self.feedback_delay = SORT_FEEDBACK if feedback_delay is None else feedback_delay
        self._feedback_task: Optional[asyncio.Task] = None

    async def sort(self) -> int:
        row_ids = order_rows(await self.page.labels())
        if not row_ids:
            logger.info("No items found to sort")
            return 0

        await self.page.reorder(row_ids)
        logger.info("Sorted %d items by category", len(row_ids))

        if await self.page.has_control():
            await self.page.set_control_text(CONTROL_DONE_TEXT)
            if self._feedback_task is not None:
                self._feedback_task.cancel()
            self._feedback_task = asyncio.create_task(self._revert_feedback())
        return len(row_ids)

    async def _revert_feedback(self) -> None:
        await asyncio.sleep(self.feedback_delay)
        await self.page.set_control_text(CONTROL_TEXT)

    def close(self) -> None:
        if self._feedback_task is not None:
            self._feedback_task.cancel()
            self._feedback_task = None
