"""
HTTP and browser access to the external open-data catalog.

Transport failures never escape this module: page fetches degrade to an empty
string, JSON fetches and browser interactions degrade to None. Callers treat
both as "this step found nothing".
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

import requests
from selenium.common.exceptions import WebDriverException

from app.discovery.browser import BrowserPage, CatalogBrowser, SeleniumCatalogBrowser
from app.discovery.config.models import BrowserMode, DiscoverySettings
from app.discovery.logging_utils import log_event
from app.discovery.rate_limiter import HostRateLimiter

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CatalogClientError(RuntimeError):
    """Raised for a failed catalog request before it is absorbed at the client boundary."""


class CatalogClient:
    """
    Fetches catalog HTML, CKAN JSON, and browser-rendered pages.
    """

    def __init__(
        self,
        *,
        settings: DiscoverySettings,
        session: requests.Session | None = None,
        browser: CatalogBrowser | None = None,
        rate_limiter: HostRateLimiter | None = None,
    ) -> None:
        self._settings = settings
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "User-Agent": settings.user_agent,
                "Accept-Language": "ar,en;q=0.8",
            }
        )
        if browser is None and settings.browser.mode != BrowserMode.NONE:
            browser = SeleniumCatalogBrowser(
                settings=settings.browser,
                user_agent=settings.user_agent,
            )
        self._browser = browser
        self._rate_limiter = rate_limiter or HostRateLimiter(
            rate_limit_per_second=settings.rate_limit_per_second
        )

    @property
    def settings(self) -> DiscoverySettings:
        return self._settings

    @property
    def browser_enabled(self) -> bool:
        return self._browser is not None

    def configuration_error(self) -> str | None:
        """
        Describe missing configuration that makes every crawl step pointless.
        """

        if not self._settings.portal_url:
            return "Catalog portal URL is not configured."
        browser = self._settings.browser
        if browser.mode == BrowserMode.REMOTE and not browser.token:
            return "Remote browser mode requires BROWSERLESS_TOKEN."
        return None

    def _get(
        self,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        accept: str,
    ) -> requests.Response:
        self._rate_limiter.wait(url)
        try:
            response = self._session.get(
                url,
                params=dict(params) if params else None,
                headers={"Accept": accept},
                timeout=self._settings.timeout_seconds,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise CatalogClientError(f"GET {url} failed: {exc}") from exc
        return response

    def fetch_page(self, url: str, params: Mapping[str, Any] | None = None) -> str:
        try:
            response = self._get(url, params=params, accept="text/html,application/xhtml+xml")
        except CatalogClientError as exc:
            log_event(logger, logging.WARNING, "catalog_page_fetch_failed", url=url, error=str(exc))
            return ""
        return response.text or ""

    def fetch_json(self, url: str, params: Mapping[str, Any] | None = None) -> Any | None:
        try:
            response = self._get(url, params=params, accept="application/json")
            return response.json()
        except (CatalogClientError, ValueError) as exc:
            log_event(logger, logging.WARNING, "catalog_json_fetch_failed", url=url, error=str(exc))
            return None

    def search_packages(
        self,
        *,
        query: str = "*:*",
        group: str | None = None,
        rows: int | None = None,
        start: int = 0,
    ) -> Any | None:
        """
        Call the CKAN package_search action.
        """

        params: dict[str, Any] = {
            "q": query,
            "rows": rows or self._settings.api_rows,
            "start": max(0, start),
        }
        if group:
            params["fq"] = f"groups:{group}"
        return self.fetch_json(self._settings.action_url("package_search"), params)

    def fetch_dataset_metadata(self, external_id: str) -> dict[str, Any] | None:
        """
        Return the CKAN package_show result for one dataset, or None.
        """

        payload = self.fetch_json(self._settings.action_url("package_show"), {"id": external_id})
        if not isinstance(payload, dict):
            return None
        if payload.get("success") is False:
            return None
        result = payload.get("result", payload)
        return result if isinstance(result, dict) and result else None

    def load_and_interact(self, url: str, interaction: Callable[[BrowserPage], T]) -> T | None:
        """
        Open url in the browser and run interaction on the loaded page.
        """

        if self._browser is None:
            return None
        self._rate_limiter.wait(url)
        try:
            with self._browser.open(url) as page:
                return interaction(page)
        except (WebDriverException, RuntimeError, OSError) as exc:
            log_event(logger, logging.WARNING, "catalog_browser_failed", url=url, error=str(exc))
            return None
