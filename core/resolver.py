# core/resolver.py
import asyncio
from typing import Callable

from fetchers.voila import CategoryNotFound, NetworkError, ParseError, fetch_category

from .logger import get_logger
from .models import (
    FETCH_ERROR_TEXT,
    NOT_FOUND_TEXT,
    PARSE_ERROR_TEXT,
    Resolution,
    ResolutionKind,
)
from .storage import CacheStore

logger = get_logger(__name__)


class CategoryResolver:
    """
    Resolve a product's category: cache first, then the product detail page.

    fetch is a blocking callable (url -> category) that raises the
    fetchers.voila error types; it runs in a worker thread so several rows
    can wait on the network at once.
    """

    def __init__(self, cache: CacheStore, fetch: Callable[[str], str] = fetch_category):
        self.cache = cache
        self.fetch = fetch

    async def resolve(self, name: str, url: str) -> Resolution:
        cached = self.cache.get(name)
        if cached is not None:
            logger.debug("Cache hit for '%s': %s", name, cached)
            return Resolution(ResolutionKind.CACHE, cached)

        try:
            category = await asyncio.to_thread(self.fetch, url)
        except CategoryNotFound as exc:
            logger.info("No category for '%s' (%s): %s", name, url, exc)
            return Resolution(ResolutionKind.NOT_FOUND, NOT_FOUND_TEXT)
        except ParseError as exc:
            logger.warning("Failed to parse product page for '%s' (%s): %s", name, url, exc)
            return Resolution(ResolutionKind.ERROR, PARSE_ERROR_TEXT)
        except NetworkError as exc:
            logger.warning("Failed to fetch product page for '%s' (%s): %s", name, url, exc)
            return Resolution(ResolutionKind.ERROR, FETCH_ERROR_TEXT)
        except Exception:
            # the row must still leave the loading state
            logger.exception("Unexpected failure resolving '%s' (%s)", name, url)
            return Resolution(ResolutionKind.ERROR, PARSE_ERROR_TEXT)

        self.cache.put(name, category)
        logger.info("Fetched category for '%s': %s", name, category)
        return Resolution(ResolutionKind.FETCHED, category)
