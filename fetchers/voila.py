# fetchers/voila.py
import os
import re
import json
from typing import Any, Optional

import requests
from bs4 import BeautifulSoup
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from core.logger import get_logger

logger = get_logger(__name__)

USER_AGENT = os.getenv(
    "VOILA_USER_AGENT",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
)
PROXY_URL = os.getenv("VOILA_PROXY_URL", "").strip()
FETCH_TIMEOUT = float(os.getenv("FETCH_TIMEOUT", "20"))
# One attempt by default: a failed row stays failed until the next page visit.
FETCH_ATTEMPTS = max(1, int(os.getenv("FETCH_ATTEMPTS", "1")))

STATE_SCRIPT_ATTRS = {"data-test": "initial-state-script"}
STATE_GLOBAL = "window.__INITIAL_STATE__"
STATE_ASSIGNMENT_RE = re.compile(r"window\.__INITIAL_STATE__\s*=\s*({[\s\S]*?});?\s*$")
CATEGORY_FIELD = "categoryPath"

SESSION = requests.Session()
SESSION.headers.update({"User-Agent": USER_AGENT, "Accept-Language": "en-CA,en;q=0.9"})
if PROXY_URL:
    SESSION.proxies.update({"http": PROXY_URL, "https": PROXY_URL})


class VoilaError(Exception):
    """Generic Voila detail-page error."""


class NetworkError(VoilaError):
    """The detail page could not be retrieved."""


class ParseError(VoilaError):
    """The embedded state payload is present but unusable."""


class CategoryNotFound(VoilaError):
    """No category information on the detail page."""


@retry(
    retry=retry_if_exception_type(NetworkError),
    wait=wait_exponential_jitter(initial=1, max=10),
    stop=stop_after_attempt(FETCH_ATTEMPTS),
    reraise=True,
)
def _fetch(url: str) -> str:
    try:
        r = SESSION.get(url, timeout=FETCH_TIMEOUT)
        r.raise_for_status()
    except requests.RequestException as exc:
        raise NetworkError(str(exc)) from exc
    return r.text


def extract_initial_state(html: str) -> Any:
    """Return the decoded window.__INITIAL_STATE__ object embedded in a detail page."""
    soup = BeautifulSoup(html, "html.parser")
    script = soup.find("script", attrs=STATE_SCRIPT_ATTRS)
    if script is None:
        raise CategoryNotFound("no initial-state script tag")

    body = script.string or script.get_text()
    if not body or STATE_GLOBAL not in body:
        raise CategoryNotFound(f"initial-state script has no {STATE_GLOBAL} assignment")

    m = STATE_ASSIGNMENT_RE.search(body)
    if not m:
        raise ParseError(f"could not isolate the {STATE_GLOBAL} object")

    try:
        return json.loads(m.group(1))
    except ValueError as exc:
        raise ParseError(f"invalid initial-state JSON: {exc}") from exc
    except RecursionError as exc:
        raise ParseError("initial-state JSON is nested too deeply") from exc


def _present(value: Any) -> bool:
    # JavaScript truthiness; empty lists and objects still count
    if value is None or value is False:
        return False
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value != 0 and value == value
    if isinstance(value, str):
        return value != ""
    return True


def find_category_path(node: Any) -> Optional[Any]:
    """Depth-first search for the first truthy categoryPath field, in document order."""
    if isinstance(node, dict):
        value = node.get(CATEGORY_FIELD)
        if _present(value):
            return value
        children = node.values()
    elif isinstance(node, list):
        children = node
    else:
        return None

    for child in children:
        found = find_category_path(child)
        if found is not None:
            return found
    return None


def _js_string(value: Any) -> str:
    """Render one array element the way Array.prototype.join does."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if value != value:
            return "NaN"
        if value in (float("inf"), float("-inf")):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, list):
        return ",".join(_js_string(v) for v in value)
    if isinstance(value, dict):
        return "[object Object]"
    return str(value)


def format_category_path(value: Any) -> str:
    if isinstance(value, list):
        return " > ".join(_js_string(part) for part in value)
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def parse_category(html: str) -> str:
    state = extract_initial_state(html)
    try:
        path = find_category_path(state)
        if path is None:
            raise CategoryNotFound(f"no {CATEGORY_FIELD} in initial state")
        return format_category_path(path)
    except RecursionError as exc:
        raise ParseError(f"{CATEGORY_FIELD} search exceeded the recursion limit") from exc


def fetch_category(url: str) -> str:
    """
    Fetch a product detail page and return its formatted category path.

    Raises NetworkError, ParseError or CategoryNotFound.
    """
    logger.debug("Fetching Voila product page: %s", url)
    html = _fetch(url)
    category = parse_category(html)
    logger.debug("Voila category for %s: %s", url, category)
    return category
