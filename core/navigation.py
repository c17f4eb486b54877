# core/navigation.py
import asyncio
import os
from typing import Awaitable, Callable, Optional

from .logger import get_logger

logger = get_logger(__name__)

URL_POLL_INTERVAL = float(os.getenv("URL_POLL_INTERVAL", "0.5"))

TARGET_PATHS = ("/orders", "/basket")
EXCLUDED_PATHS = ("/checkout/checkout-walk/",)


def is_target_url(url: str) -> bool:
    """Basket and order views, minus the checkout walk."""
    if any(part in url for part in EXCLUDED_PATHS):
        return False
    return any(part in url for part in TARGET_PATHS)


class NavigationDetector:
    """
    Folds history interception, back/forward events and polling into one
    "address changed" stream, deduplicated on the last address seen.
    """

    def __init__(
        self,
        on_change: Callable[[str], Awaitable[None]],
        poll_interval: float = URL_POLL_INTERVAL,
        initial_url: Optional[str] = None,
    ):
        self.on_change = on_change
        self.poll_interval = poll_interval
        self.last_url = initial_url
        self._stopped = asyncio.Event()

    async def observe(self, url: str, signal: str = "poll") -> bool:
        if url == self.last_url:
            return False
        # record first so a second signal for the same change is a no-op
        self.last_url = url
        logger.info("URL changed to %s (via %s)", url, signal)
        try:
            await self.on_change(url)
        except Exception:
            logger.exception("URL change handler failed for %s", url)
        return True

    async def poll(self, get_url: Callable[[], Awaitable[str]]) -> None:
        while not self._stopped.is_set():
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.poll_interval)
                break
            except asyncio.TimeoutError:
                pass
            try:
                url = await get_url()
            except Exception as exc:
                logger.debug("URL poll failed: %s", exc)
                continue
            await self.observe(url, "poll")

    def stop(self) -> None:
        self._stopped.set()
