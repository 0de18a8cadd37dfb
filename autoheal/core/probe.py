from __future__ import annotations

import logging

from selenium.common.exceptions import (
    InvalidSelectorException,
    StaleElementReferenceException,
    WebDriverException,
)

from autoheal.core.metadata import Found, Locator, NotFound, ProbeResult
from autoheal.utils.wait import wait_until

log = logging.getLogger(__name__)


class LocatorProbe:
    """Tries one locator against the live page and waits for a visible match."""

    def __init__(self, driver, poll_interval: float = 0.2) -> None:
        self.driver = driver
        self.poll_interval = poll_interval

    def probe(self, locator: Locator, timeout_ms: int) -> ProbeResult:
        def attempt() -> ProbeResult | None:
            try:
                matches = self.driver.find_elements(locator.by, locator.value)
            except InvalidSelectorException:
                # An invalid selector never starts matching; stop waiting.
                return NotFound(locator=locator, reason="invalid-selector")
            except WebDriverException as exc:
                log.debug("Driver error while probing %s: %s", locator, exc)
                return None
            for element in matches:
                if self._is_visible(element):
                    if len(matches) > 1:
                        log.debug("Locator %s matched %d elements, taking the first visible", locator, len(matches))
                    return Found(element=element, locator=locator, match_count=len(matches))
            return None

        result = wait_until(attempt, timeout_ms / 1000.0, self.poll_interval)
        return result or NotFound(locator=locator)

    @staticmethod
    def _is_visible(element) -> bool:
        try:
            return bool(element.is_displayed())
        except (StaleElementReferenceException, WebDriverException):
            return False
