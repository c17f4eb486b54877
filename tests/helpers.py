import json
import threading


PAGE_URL = "https://voila.ca/basket"


def cart_html(names, with_promo=False):
    """A minimal basket page: one fop-wrapper per product, in the given order."""
    rows = []
    for i, name in enumerate(names, start=1):
        slug = name.lower().replace(" ", "-")
        promo = (
            '<div class="promotion-container" data-retailer-anchor="fop-promotions">2 for $5</div>'
            if with_promo
            else ""
        )
        rows.append(
            f'<div data-test="fop-wrapper:{i}">'
            f'<div class="title-container">'
            f'<a data-test="fop-product-link" href="/products/{slug}/{i}">{name}</a>'
            f"</div>{promo}</div>"
        )
    return "<html><body><div class=\"basket\">" + "".join(rows) + "</div></body></html>"


def product_url(name, index):
    slug = name.lower().replace(" ", "-")
    return f"https://voila.ca/products/{slug}/{index}"


def detail_html(state):
    payload = json.dumps(state)
    return (
        "<html><head>"
        '<script data-test="initial-state-script">'
        f"window.__INITIAL_STATE__ = {payload};"
        "</script></head><body></body></html>"
    )


class FakeFetch:
    """Stands in for fetch_category: url -> category, exception, or callable."""

    def __init__(self, responses):
        self.responses = responses
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, url):
        with self._lock:
            self.calls.append(url)
        outcome = self.responses[url]
        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome):
            return outcome()
        return outcome


