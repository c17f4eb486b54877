# core/synchronizer.py
import asyncio
import os
from typing import Awaitable, Callable, List, Optional, Set

from .logger import get_logger
from .models import ProductRow, Resolution
from .page import CartPage
from .resolver import CategoryResolver

logger = get_logger(__name__)

STATUS_UPDATE_SHORT = float(os.getenv("STATUS_UPDATE_SHORT", "0.05"))
STATUS_UPDATE_LONG = float(os.getenv("STATUS_UPDATE_LONG", "0.1"))


class DomSynchronizer:
    """
    Attaches a category label to every product row on the page.

    sync() may be called any number of times, including from callbacks
    caused by its own label insertions: rows that already carry a label are
    never claimed twice.
    """

    def __init__(
        self,
        page: CartPage,
        resolver: CategoryResolver,
        on_labels_changed: Callable[[], Awaitable[None]],
        short_delay: Optional[float] = None,
        long_delay: Optional[float] = None,
    ):
        self.page = page
        self.resolver = resolver
        self.on_labels_changed = on_labels_changed
        self.short_delay = STATUS_UPDATE_SHORT if short_delay is None else short_delay
        self.long_delay = STATUS_UPDATE_LONG if long_delay is None else long_delay
        self.closed = False
        self._resolving: Set[asyncio.Task] = set()
        self._scheduled: Set[asyncio.Task] = set()

    async def sync(self) -> List[ProductRow]:
        if self.closed:
            return []
        await self.page.apply_cosmetics()
        rows = await self.page.claim_unlabeled()
        for row in rows:
            logger.debug("Claimed row '%s' (%s) as %s", row.name, row.url, row.label_id)
            task = asyncio.create_task(self._resolve_row(row))
            self._resolving.add(task)
            task.add_done_callback(self._resolving.discard)
        if rows:
            self._schedule_status(self.long_delay)
        return rows

    async def _resolve_row(self, row: ProductRow) -> Resolution:
        resolution = await self.resolver.resolve(row.name, row.url)
        if self.closed:
            logger.debug("Discarding %s result for '%s' after reset", resolution.kind.value, row.name)
            return resolution
        try:
            updated = await self.page.update_label(row.label_id, resolution)
        except Exception:
            logger.exception("Failed to update label for '%s'", row.name)
            return resolution
        if not updated:
            logger.debug("Label %s for '%s' is gone; result dropped", row.label_id, row.name)
            return resolution
        self._schedule_status(self.short_delay)
        return resolution

    def _schedule_status(self, delay: float) -> None:
        task = asyncio.create_task(self._status_later(delay))
        self._scheduled.add(task)
        task.add_done_callback(self._scheduled.discard)

    async def _status_later(self, delay: float) -> None:
        await asyncio.sleep(delay)
        if self.closed:
            return
        try:
            await self.on_labels_changed()
        except Exception:
            logger.exception("Readiness update failed")

    def pending(self) -> int:
        return len(self._resolving)

    async def drain(self) -> None:
        """Wait for every in-flight resolution and the status updates they schedule."""
        while self._resolving or self._scheduled:
            await asyncio.gather(*self._resolving, *self._scheduled, return_exceptions=True)

    def close(self) -> None:
        # in-flight fetches keep running; their results are dropped
        self.closed = True
        for task in list(self._scheduled):
            task.cancel()
