# core/readiness.py
import asyncio
import os
from enum import Enum
from typing import Awaitable, Callable, Iterable, Optional

from .logger import get_logger
from .models import LabelSnapshot, ReadinessCounters, ResolutionKind

logger = get_logger(__name__)

AUTO_SORT_DELAY = float(os.getenv("AUTO_SORT_DELAY", "0.5"))
AUTO_SORT_RESET = float(os.getenv("AUTO_SORT_RESET", "5.0"))


class AutoSortState(str, Enum):
    IDLE = "idle"
    PENDING_TRIGGER = "pending_trigger"
    SORTING = "sorting"
    COOLDOWN = "cooldown"


def compute_counters(labels: Iterable[LabelSnapshot]) -> ReadinessCounters:
    total = 0
    ready = 0
    for label in labels:
        total += 1
        if label.kind is not ResolutionKind.LOADING:
            ready += 1
    return ReadinessCounters(total=total, ready=ready)


class AutoSorter:
    """
    Fires one sort per "every label ready" condition.

    IDLE -> PENDING_TRIGGER (debounce) -> SORTING -> COOLDOWN -> IDLE.
    Outside IDLE nothing can be armed, so the DOM writes of the sort itself
    cannot schedule another pass.
    """

    def __init__(
        self,
        sort: Callable[[], Awaitable[int]],
        debounce: Optional[float] = None,
        cooldown: Optional[float] = None,
    ):
        self._sort = sort
        self.debounce = AUTO_SORT_DELAY if debounce is None else debounce
        self.cooldown = AUTO_SORT_RESET if cooldown is None else cooldown
        self.state = AutoSortState.IDLE
        self.fired = 0
        self._task: Optional[asyncio.Task] = None

    def evaluate(self, counters: ReadinessCounters) -> bool:
        if self.state is not AutoSortState.IDLE or not counters.all_ready:
            return False
        self.state = AutoSortState.PENDING_TRIGGER
        logger.info("Auto-sorting: all %d items ready", counters.total)
        self._task = asyncio.create_task(self._run())
        return True

    async def _run(self) -> None:
        await asyncio.sleep(self.debounce)
        self.state = AutoSortState.SORTING
        try:
            await self._sort()
            self.fired += 1
        except Exception:
            logger.exception("Auto-sort pass failed")
        self.state = AutoSortState.COOLDOWN
        await asyncio.sleep(self.cooldown)
        self.state = AutoSortState.IDLE

    async def wait(self) -> None:
        """Block until the current pass (if any) is back to IDLE."""
        if self._task is not None:
            await asyncio.shield(self._task)

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self.state = AutoSortState.IDLE
