import asyncio

import pytest

from core.navigation import NavigationDetector, is_target_url


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://voila.ca/basket", True),
        ("https://www.voila.ca/orders/12345", True),
        ("http://voila.ca/basket?tab=saved", True),
        ("https://voila.ca/checkout/checkout-walk/basket", False),
        ("https://voila.ca/products/organic-apples/1", False),
        ("https://voila.ca/", False),
    ],
)
def test_is_target_url(url, expected):
    assert is_target_url(url) is expected


def test_duplicate_signals_fire_once():
    seen = []

    async def on_change(url):
        seen.append(url)

    async def scenario():
        detector = NavigationDetector(on_change, initial_url="https://voila.ca/basket")
        results = [
            await detector.observe("https://voila.ca/orders", "history"),
            await detector.observe("https://voila.ca/orders", "poll"),
            await detector.observe("https://voila.ca/orders", "popstate"),
            await detector.observe("https://voila.ca/basket", "popstate"),
        ]
        return results

    assert asyncio.run(scenario()) == [True, False, False, True]
    assert seen == ["https://voila.ca/orders", "https://voila.ca/basket"]


def test_near_simultaneous_signals_fire_once():
    seen = []

    async def on_change(url):
        seen.append(url)
        await asyncio.sleep(0.01)

    async def scenario():
        detector = NavigationDetector(on_change)
        await asyncio.gather(
            detector.observe("https://voila.ca/basket", "history"),
            detector.observe("https://voila.ca/basket", "navigation"),
        )

    asyncio.run(scenario())
    assert seen == ["https://voila.ca/basket"]


def test_handler_errors_do_not_escape():
    async def on_change(url):
        raise RuntimeError("boom")

    async def scenario():
        detector = NavigationDetector(on_change)
        return await detector.observe("https://voila.ca/basket", "history")

    assert asyncio.run(scenario()) is True


def test_polling_picks_up_silent_changes():
    seen = []
    current = {"url": "https://voila.ca/basket"}

    async def on_change(url):
        seen.append(url)

    async def get_url():
        return current["url"]

    async def scenario():
        detector = NavigationDetector(on_change, poll_interval=0.01, initial_url=current["url"])
        poller = asyncio.create_task(detector.poll(get_url))
        await asyncio.sleep(0.03)
        current["url"] = "https://voila.ca/orders/1"
        await asyncio.sleep(0.05)
        detector.stop()
        await asyncio.wait_for(poller, timeout=1)

    asyncio.run(scenario())
    assert seen == ["https://voila.ca/orders/1"]
