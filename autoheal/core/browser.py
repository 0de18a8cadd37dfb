from __future__ import annotations

import logging

from selenium import webdriver
from selenium.webdriver import ChromeOptions, FirefoxOptions

from autoheal.config.schema import EnvironmentConfig
from autoheal.utils.wait import wait_until

log = logging.getLogger(__name__)

BROWSERS = {
    "chrome": (ChromeOptions, webdriver.Chrome, "--headless=new"),
    "firefox": (FirefoxOptions, webdriver.Firefox, "-headless"),
}

READY_STATES = {
    "load": {"complete"},
    "domcontentloaded": {"interactive", "complete"},
}


class BrowserSession:
    """Creates browser instances using Selenium Manager."""

    def __init__(self, environment: EnvironmentConfig) -> None:
        self.environment = environment

    def start(self, browser_name: str | None = None):
        """Starts a driver; implicit waits stay off because the probe does its own polling."""

        name = (browser_name or self.environment.browser).lower()
        if name not in BROWSERS:
            raise ValueError(f"Unsupported browser: {browser_name}")
        options_type, driver_type, headless_flag = BROWSERS[name]
        options = options_type()
        if self.environment.headless:
            options.add_argument(headless_flag)
        if name == "chrome":
            options.add_argument("--window-size=1440,1200")
        log.info("Starting %s (headless=%s)", name, self.environment.headless)
        driver = driver_type(options=options)
        driver.set_page_load_timeout(self.environment.page_load_timeout_seconds)
        driver.implicitly_wait(0)
        return driver

    @staticmethod
    def navigate(driver, url: str, wait_policy: str = "domcontentloaded", timeout_ms: int = 30000) -> None:
        if wait_policy not in READY_STATES:
            raise ValueError(f"Unsupported wait policy: {wait_policy}")
        log.info("Navigating to: %s", url)
        driver.set_page_load_timeout(max(timeout_ms / 1000.0, 1))
        driver.get(url)
        accepted = READY_STATES[wait_policy]
        ready = wait_until(
            lambda: driver.execute_script("return document.readyState") in accepted,
            timeout_ms / 1000.0,
        )
        if not ready:
            log.warning("Page %s did not reach %s within %sms - continuing anyway", url, wait_policy, timeout_ms)
            return
        log.info("Navigation complete: %s", url)
