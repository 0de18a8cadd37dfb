from __future__ import annotations

from autoheal.core.cache import ResolutionCache
from autoheal.core.metadata import Found, Locator, NotFound
from autoheal.core.probe import LocatorProbe
from tests.helpers import FakeDriver, FakeElement


def test_cache_normalizes_descriptions():
    cache = ResolutionCache()
    cache.put("  Login Button ", Locator.css("#login"))

    assert cache.get("login button") == Locator.css("#login")
    assert "LOGIN BUTTON" in cache
    assert cache.evict("login button") == Locator.css("#login")
    assert cache.evict("login button") is None
    assert len(cache) == 0


def test_probe_reports_invalid_selectors_and_visible_matches():
    driver = FakeDriver()
    driver.invalid.add("div[[")
    element = FakeElement("total")
    driver.place(Locator.xpath("//span"), FakeElement("hidden", displayed=False), element)
    probe = LocatorProbe(driver, poll_interval=0.01)

    assert probe.probe(Locator.css("div[["), 1000) == NotFound(Locator.css("div[["), reason="invalid-selector")
    assert probe.probe(Locator.css("#missing"), 0) == NotFound(Locator.css("#missing"))
    assert probe.probe(Locator.xpath("//span"), 0) == Found(element, Locator.xpath("//span"), match_count=2)
