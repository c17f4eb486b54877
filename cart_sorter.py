import os
import asyncio
import locale
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Optional, Set

from core.logger import get_logger
from core.models import ReadinessCounters
from core.navigation import NavigationDetector, is_target_url
from core.page import CONTROL_TEXT, CartPage
from core.readiness import AutoSorter, AutoSortState, compute_counters
from core.resolver import CategoryResolver
from core.sorting import SortEngine
from core.soup_page import SoupCartPage
from core.storage import CacheStore
from core.synchronizer import DomSynchronizer
from fetchers import FETCHERS

logger = get_logger(__name__)

MODE = os.getenv("MODE", "browser").lower()  # "browser", "file" or "cache"
SITE = os.getenv("SITE", "voila").lower()
START_URL = os.getenv("START_URL", "https://voila.ca/basket")
HEADLESS = os.getenv("HEADLESS", "false").lower() == "true"
USER_DATA_DIR = os.getenv(
    "USER_DATA_DIR", os.path.join(os.path.expanduser("~"), ".cart_sorter", "browser")
)
CART_HTML = os.getenv("CART_HTML", "basket.html")
OUTPUT_HTML = os.getenv("OUTPUT_HTML", "basket.sorted.html")
PAGE_URL = os.getenv("PAGE_URL", START_URL)
FILE_MODE_TIMEOUT = float(os.getenv("FILE_MODE_TIMEOUT", "120"))

INITIAL_LOAD = float(os.getenv("INITIAL_LOAD", "1.0"))
BUTTON_CREATE = float(os.getenv("BUTTON_CREATE", "0.2"))


@dataclass
class PageContext:
    """Everything that lives for one page view. Rebuilt, never patched, on navigation."""

    synchronizer: DomSynchronizer
    sorter: SortEngine
    auto_sorter: AutoSorter
    counters: ReadinessCounters = field(default_factory=ReadinessCounters)
    tasks: Set[asyncio.Task] = field(default_factory=set)
    closed: bool = False

    def close(self) -> None:
        self.closed = True
        self.synchronizer.close()
        self.auto_sorter.cancel()
        self.sorter.close()
        for task in list(self.tasks):
            task.cancel()


class CartSorter:
    """Page-lifecycle controller: owns the current PageContext and the cache-backed resolver."""

    def __init__(
        self,
        page: CartPage,
        resolver: CategoryResolver,
        initial_load: float = INITIAL_LOAD,
        button_delay: float = BUTTON_CREATE,
        control: bool = True,
    ):
        self.page = page
        self.resolver = resolver
        self.initial_load = initial_load
        self.button_delay = button_delay
        self.control = control
        self.context = self._new_context()

    def _new_context(self) -> PageContext:
        sorter = SortEngine(self.page)
        return PageContext(
            synchronizer=DomSynchronizer(self.page, self.resolver, self.recompute),
            sorter=sorter,
            auto_sorter=AutoSorter(sorter.sort),
        )

    def _later(self, delay: float, fn: Callable[[], Awaitable[None]]) -> None:
        context = self.context

        async def run() -> None:
            await asyncio.sleep(delay)
            if context.closed:
                return
            try:
                await fn()
            except Exception:
                logger.exception("Scheduled cart update failed")

        task = asyncio.create_task(run())
        context.tasks.add(task)
        task.add_done_callback(context.tasks.discard)

    def start(self) -> None:
        self._later(self.initial_load, self.initialize)

    async def initialize(self) -> None:
        await self.context.synchronizer.sync()
        if self.control:
            self._later(self.button_delay, self._create_control)

    async def _create_control(self) -> None:
        counters = compute_counters(await self.page.labels())
        if counters.total == 0:
            return
        if not await self.page.has_control():
            await self.page.show_control(CONTROL_TEXT)

    async def on_mutation(self) -> None:
        try:
            if not is_target_url(await self.page.current_url()):
                return
            await self.context.synchronizer.sync()
        except Exception:
            logger.exception("Failed to handle page update")

    async def recompute(self) -> ReadinessCounters:
        context = self.context
        counters = compute_counters(await self.page.labels())
        context.counters = counters
        logger.debug("Readiness: %d/%d labels ready", counters.ready, counters.total)
        if not is_target_url(await self.page.current_url()):
            return counters
        if self.control and counters.total > 0 and not await self.page.has_control():
            await self.page.show_control(CONTROL_TEXT)
        context.auto_sorter.evaluate(counters)
        return counters

    async def sort_now(self) -> int:
        try:
            return await self.context.sorter.sort()
        except Exception:
            logger.exception("Manual sort failed")
            return 0

    async def reset(self) -> None:
        logger.info("Resetting state for new page")
        self.context.close()
        self.context = self._new_context()
        await self.page.remove_control()
        removed = await self.page.remove_labels()
        logger.debug("Removed %d old category labels", removed)
        self.start()

    async def on_url_change(self, url: str) -> None:
        if is_target_url(url):
            logger.info("Re-initializing for %s", url)
            await self.reset()
        elif await self.page.has_control():
            logger.info("Removing sort button - not on a cart page")
            await self.page.remove_control()

    async def settle(self, timeout: float = FILE_MODE_TIMEOUT) -> ReadinessCounters:
        """Wait until every label has resolved and any armed auto-sort has run."""

        async def _settle() -> None:
            await self.context.synchronizer.drain()
            while self.context.auto_sorter.state in (
                AutoSortState.PENDING_TRIGGER,
                AutoSortState.SORTING,
            ):
                await asyncio.sleep(0.05)

        try:
            await asyncio.wait_for(_settle(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Cart did not settle within %.0fs (%d resolutions pending)",
                timeout,
                self.context.synchronizer.pending(),
            )
        return self.context.counters

    def close(self) -> None:
        self.context.close()


def build_resolver() -> CategoryResolver:
    fetcher = FETCHERS.get(SITE)
    if fetcher is None:
        raise ValueError(f"No fetcher registered for site '{SITE}'")
    return CategoryResolver(CacheStore().load(), fetcher)


async def run_browser(start_url: str = START_URL, headless: bool = HEADLESS) -> None:
    from playwright.async_api import async_playwright

    from core.browser import PlaywrightCartPage

    resolver = build_resolver()

    async with async_playwright() as p:
        context = await p.chromium.launch_persistent_context(USER_DATA_DIR, headless=headless)
        page = context.pages[0] if context.pages else await context.new_page()
        cart_page = PlaywrightCartPage(page)
        sorter = CartSorter(cart_page, resolver)
        detector = NavigationDetector(sorter.on_url_change)
        pending: Set[asyncio.Task] = set()

        def on_frame_navigated(frame) -> None:
            if frame != page.main_frame:
                return
            task = asyncio.create_task(detector.observe(frame.url, "navigation"))
            pending.add(task)
            task.add_done_callback(pending.discard)

        closed = asyncio.Event()
        page.on("framenavigated", on_frame_navigated)
        page.on("close", lambda _: closed.set())

        await cart_page.install(sorter.on_mutation, detector.observe, sorter.sort_now)
        poller = asyncio.create_task(detector.poll(cart_page.current_url))

        logger.info("Opening %s", start_url)
        await page.goto(start_url)
        await closed.wait()

        logger.info("Page closed; shutting down.")
        detector.stop()
        await poller
        sorter.close()
        await context.close()


async def run_file(
    path: str = CART_HTML,
    output: str = OUTPUT_HTML,
    page_url: str = PAGE_URL,
    resolver: Optional[CategoryResolver] = None,
    timeout: float = FILE_MODE_TIMEOUT,
) -> ReadinessCounters:
    """Annotate and sort a saved cart page, writing the result to output."""
    resolver = resolver or build_resolver()
    html = Path(path).read_text(encoding="utf-8")
    page = SoupCartPage(html, url=page_url)
    sorter = CartSorter(page, resolver, initial_load=0, control=False)

    await sorter.initialize()
    counters = await sorter.settle(timeout)
    sorter.close()

    Path(output).write_text(page.html(), encoding="utf-8")
    logger.info(
        "Wrote %s: %d/%d items labelled, %d auto-sort pass(es)",
        output,
        counters.ready,
        counters.total,
        sorter.context.auto_sorter.fired,
    )
    return counters


def run_cache_dump() -> int:
    cache = CacheStore().load()
    for name, category in cache.items():
        logger.info("%s -> %s", name, category)
    logger.info("%d cached categories", len(cache))
    return 0


def _setup_collation() -> None:
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as e:
        logger.warning("Could not apply system collation locale (%s); using code point order.", e)


def main() -> int:
    _setup_collation()
    if MODE == "cache":
        return run_cache_dump()
    if MODE == "file":
        asyncio.run(run_file())
        return 0
    asyncio.run(run_browser())
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except Exception as e:
        logger.exception("Fatal cart sorter error: %s", e)
        raise SystemExit(2)
