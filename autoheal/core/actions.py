from __future__ import annotations

import logging
from typing import Any

from selenium.common.exceptions import (
    ElementClickInterceptedException,
    ElementNotInteractableException,
    StaleElementReferenceException,
)
from selenium.webdriver.common.action_chains import ActionChains
from selenium.webdriver.support.ui import Select

from autoheal.core.exceptions import AIUnavailable, ElementNotResolvable
from autoheal.core.metadata import ScreenshotAnalysis
from autoheal.utils.wait import wait_until

log = logging.getLogger(__name__)

_RETRYABLE = (
    ElementClickInterceptedException,
    ElementNotInteractableException,
    StaleElementReferenceException,
)


class SafeActions:
    """High-level browser actions routed through the self-healing resolver."""

    def __init__(self, driver, resolver, adapter=None) -> None:
        self.driver = driver
        self.resolver = resolver
        self.adapter = adapter
        self.action_history: list[dict[str, Any]] = []

    def click(self, description: str, **options) -> None:
        self._record("click", description=description)
        self._with_retry(description, options, lambda element: element.click())

    def type(self, description: str, value: str, clear_first: bool = True, **options) -> None:
        self._record("type", description=description, value=value)

        def fill(element) -> None:
            if clear_first:
                element.clear()
            element.send_keys(value)

        self._with_retry(description, options, fill)

    def select_option(self, description: str, value: str, **options) -> None:
        self._record("select", description=description, value=value)
        self._with_retry(description, options, lambda element: Select(element).select_by_value(value))

    def hover(self, description: str, **options) -> None:
        self._record("hover", description=description)
        self._with_retry(
            description,
            options,
            lambda element: ActionChains(self.driver).move_to_element(element).perform(),
        )

    def wait_for_element(self, description: str, **options):
        self._record("wait", description=description)
        return self.resolver.resolve(description, **options)

    def verify_element(self, description: str, **options) -> bool:
        self._record("verify", description=description)
        try:
            self.resolver.resolve(description, **options)
        except ElementNotResolvable as exc:
            log.warning("Element verification failed: %s", exc)
            return False
        return True

    def verify_text(self, description: str, expected_text: str, timeout: float = 5.0, **options) -> bool:
        self._record("verify_text", description=description, expected=expected_text)
        expected = expected_text.lower()
        try:
            element = self.resolver.resolve(description, **options)
        except ElementNotResolvable as exc:
            log.warning("Text verification failed: %s", exc)
            return False

        def text_matches() -> bool:
            try:
                return expected in (element.text or "").lower()
            except StaleElementReferenceException:
                return False

        return bool(wait_until(text_matches, timeout))

    def validate_page_state(self, expected_state: str) -> ScreenshotAnalysis:
        self._record("validate", expected=expected_state)
        if self.adapter is None:
            raise AIUnavailable("Page state validation requires an AI adapter")
        screenshot = self.driver.get_screenshot_as_png()
        return self.adapter.analyze_screenshot(screenshot, expected_state)

    def _with_retry(self, description: str, options: dict[str, Any], action) -> None:
        element = self.resolver.resolve(description, **options)
        try:
            action(element)
        except _RETRYABLE as exc:
            log.info("Retrying %s after %s", description, type(exc).__name__)
            action(self.resolver.resolve(description, **options))

    def _record(self, action: str, **details) -> None:
        self.action_history.append({"action": action, **details})
