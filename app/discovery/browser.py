"""
Headless browser access for client-rendered catalog pages.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager

from selenium import webdriver
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from selenium.webdriver.common.by import By
from selenium.webdriver.remote.webdriver import WebDriver
from webdriver_manager.chrome import ChromeDriverManager

from app.discovery.config.models import BrowserMode, BrowserSettings

logger = logging.getLogger(__name__)

LOAD_MORE_MARKERS = ("المزيد", "التالي", "more", "next")
_SCROLL_TO_BOTTOM = "window.scrollTo(0, document.body.scrollHeight);"


class BrowserPage(ABC):
    """
    One loaded page that can be read and advanced.
    """

    @abstractmethod
    def content(self) -> str:
        raise NotImplementedError

    @abstractmethod
    def load_more(self) -> bool:
        """
        Scroll to the bottom and trigger a load-more/next control if present.

        Returns True when a control was clicked.
        """

        raise NotImplementedError

    @abstractmethod
    def screenshot(self, path: str) -> None:
        raise NotImplementedError


class CatalogBrowser(ABC):
    @abstractmethod
    def open(self, url: str) -> Iterator[BrowserPage]:
        """Context manager yielding the loaded page; the session is closed on exit."""
        raise NotImplementedError


class SeleniumBrowserPage(BrowserPage):
    def __init__(self, driver: WebDriver, *, settle_seconds: float) -> None:
        self._driver = driver
        self._settle_seconds = settle_seconds

    def content(self) -> str:
        return self._driver.page_source or ""

    def load_more(self) -> bool:
        self._driver.execute_script(_SCROLL_TO_BOTTOM)
        self._settle()

        for element in self._driver.find_elements(By.CSS_SELECTOR, "button, a"):
            try:
                label = (element.text or "").strip().lower()
                if not label or not any(marker in label for marker in LOAD_MORE_MARKERS):
                    continue
                if not (element.is_displayed() and element.is_enabled()):
                    continue
                element.click()
            except WebDriverException:
                continue
            self._settle()
            return True
        return False

    def screenshot(self, path: str) -> None:
        self._driver.save_screenshot(path)

    def _settle(self) -> None:
        if self._settle_seconds > 0:
            time.sleep(self._settle_seconds)


class SeleniumCatalogBrowser(CatalogBrowser):
    """
    Chrome via webdriver-manager locally, or a hosted WebDriver endpoint.
    """

    def __init__(self, *, settings: BrowserSettings, user_agent: str) -> None:
        self._settings = settings
        self._user_agent = user_agent

    def _options(self) -> Options:
        options = Options()
        options.add_argument("--headless=new")
        options.add_argument("--no-sandbox")
        options.add_argument("--disable-setuid-sandbox")
        options.add_argument("--disable-dev-shm-usage")
        options.add_argument("--disable-gpu")
        options.add_argument("--window-size=1920,1080")
        options.add_argument(f"--user-agent={self._user_agent}")
        options.add_argument("--lang=ar")
        return options

    def _create_driver(self) -> WebDriver:
        options = self._options()
        if self._settings.mode == BrowserMode.REMOTE:
            if not self._settings.token:
                raise RuntimeError("Remote browser mode requires BROWSERLESS_TOKEN.")
            separator = "&" if "?" in self._settings.remote_url else "?"
            driver = webdriver.Remote(
                command_executor=f"{self._settings.remote_url}{separator}token={self._settings.token}",
                options=options,
            )
        else:
            service = Service(ChromeDriverManager().install())
            driver = webdriver.Chrome(service=service, options=options)
        driver.set_page_load_timeout(self._settings.page_load_timeout_seconds)
        return driver

    @contextmanager
    def open(self, url: str) -> Iterator[BrowserPage]:
        driver = self._create_driver()
        try:
            driver.get(url)
            page = SeleniumBrowserPage(driver, settle_seconds=self._settings.settle_seconds)
            if self._settings.settle_seconds > 0:
                time.sleep(self._settings.settle_seconds)
            yield page
        finally:
            try:
                driver.quit()
            except WebDriverException as exc:
                logger.warning("Failed to close browser session: %s", exc)
