"""
Multi-phase catalog crawl producing a deduplicated candidate set.

Each crawl scope (one category, or the unfiltered listing) runs these phases
in order:

1. direct CKAN package_search query,
2. offset pagination over the same API,
3. paginated HTML browse,
4. browser scroll / load-more loop (only when a browser is configured),
5. single-character search probes.

Looping phases stop according to a TerminationPolicy; failed steps count as
steps that found nothing new.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Sequence
from typing import Any
from urllib.parse import urlencode

from app.discovery.browser import BrowserPage
from app.discovery.client import CatalogClient
from app.discovery.extraction import extract_candidates, extract_page_candidates
from app.discovery.logging_utils import log_event
from app.discovery.storage.base import DatasetStore
from app.domain.discovery import (
    CatalogCandidate,
    CatalogCategory,
    DiscoveryResult,
    TerminationPolicy,
)

logger = logging.getLogger(__name__)


class CrawlTracker:
    """
    Running candidate set of one crawl scope plus the stop rule of the active phase.
    """

    def __init__(self) -> None:
        self._candidates: dict[str, CatalogCandidate] = {}
        self._policy: TerminationPolicy | None = None
        self._phase_steps = 0
        self._streak = 0
        self.steps = 0
        self.failed_steps = 0

    def begin_phase(self, policy: TerminationPolicy | None) -> None:
        """
        Reset per-phase counters; policy=None means the phase runs to completion.
        """

        self._policy = policy
        self._phase_steps = 0
        self._streak = 0

    def record(self, candidates: Iterable[CatalogCandidate], *, failed: bool = False) -> int:
        """
        Merge one step's candidates and return how many ids were new.
        """

        new_count = 0
        for candidate in candidates:
            existing = self._candidates.get(candidate.external_id)
            if existing is None:
                self._candidates[candidate.external_id] = candidate
                new_count += 1
            else:
                self._candidates[candidate.external_id] = existing.enrich(candidate)

        self.steps += 1
        self._phase_steps += 1
        if failed:
            self.failed_steps += 1
        self._streak = self._streak + 1 if new_count == 0 else 0
        return new_count

    def should_stop(self) -> bool:
        if self._policy is None:
            return False
        if self._phase_steps >= self._policy.max_steps:
            return True
        return self._streak >= self._policy.no_new_result_streak

    @property
    def candidates(self) -> list[CatalogCandidate]:
        return list(self._candidates.values())

    def __len__(self) -> int:
        return len(self._candidates)


class DiscoveryOrchestrator:
    """
    Drives the catalog client across every phase and diffs against the store.
    """

    def __init__(self, *, client: CatalogClient, store: DatasetStore) -> None:
        self._client = client
        self._store = store
        self._settings = client.settings

    def discover(self, category: CatalogCategory | None = None) -> DiscoveryResult:
        """
        Crawl one category, or the unfiltered listing when category is None.
        """

        config_error = self._client.configuration_error()
        if config_error:
            log_event(logger, logging.ERROR, "discovery_not_configured", error=config_error)
            return DiscoveryResult.empty()

        tracker = self._crawl_scope(category)
        candidates = tracker.candidates
        if category is not None:
            candidates = [candidate.with_category(category.label) for candidate in candidates]
        return self._build_result(
            candidates,
            steps=tracker.steps,
            failed_steps=tracker.failed_steps,
            categories_scanned=1 if category is not None else 0,
        )

    def discover_all(self, categories: Sequence[CatalogCategory]) -> DiscoveryResult:
        """
        Crawl every category; an id seen in several categories keeps the last one.
        """

        config_error = self._client.configuration_error()
        if config_error:
            log_event(logger, logging.ERROR, "discovery_not_configured", error=config_error)
            return DiscoveryResult.empty()

        merged: dict[str, CatalogCandidate] = {}
        steps = 0
        failed_steps = 0
        for category in categories:
            tracker = self._crawl_scope(category)
            steps += tracker.steps
            failed_steps += tracker.failed_steps
            for candidate in tracker.candidates:
                tagged = candidate.with_category(category.label)
                existing = merged.get(candidate.external_id)
                merged[candidate.external_id] = tagged.enrich(existing) if existing else tagged

        return self._build_result(
            list(merged.values()),
            steps=steps,
            failed_steps=failed_steps,
            categories_scanned=len(categories),
        )

    def _build_result(
        self,
        candidates: list[CatalogCandidate],
        *,
        steps: int,
        failed_steps: int,
        categories_scanned: int,
    ) -> DiscoveryResult:
        known = self._store.known_external_ids()
        new_ids = [candidate.external_id for candidate in candidates if candidate.external_id not in known]
        result = DiscoveryResult(
            new_ids=new_ids,
            total=len(candidates),
            candidates=candidates,
            steps=steps,
            failed_steps=failed_steps,
            categories_scanned=categories_scanned,
        )
        log_event(
            logger,
            logging.INFO,
            "discovery_completed",
            total=result.total,
            new_found=len(result.new_ids),
            steps=steps,
            failed_steps=failed_steps,
            categories_scanned=categories_scanned,
        )
        return result

    def _crawl_scope(self, category: CatalogCategory | None) -> CrawlTracker:
        tracker = CrawlTracker()
        scope = category.label if category is not None else "all"

        direct_count = self._direct_api_phase(category, tracker)
        self._paginated_api_phase(category, tracker, start=direct_count)
        self._html_browse_phase(category, tracker)
        if self._client.browser_enabled:
            self._browser_scroll_phase(category, tracker)
        self._search_probe_phase(category, tracker)

        log_event(
            logger,
            logging.INFO,
            "discovery_scope_completed",
            scope=scope,
            found=len(tracker),
            steps=tracker.steps,
            failed_steps=tracker.failed_steps,
        )
        return tracker

    def _direct_api_phase(self, category: CatalogCategory | None, tracker: CrawlTracker) -> int:
        tracker.begin_phase(None)
        payload = self._client.search_packages(group=category.slug if category else None)
        found = extract_candidates(payload) if payload is not None else []
        tracker.record(found, failed=payload is None)
        return len(found)

    def _paginated_api_phase(
        self,
        category: CatalogCategory | None,
        tracker: CrawlTracker,
        *,
        start: int,
    ) -> None:
        tracker.begin_phase(self._settings.pagination_policy)
        page_size = self._settings.page_size
        offset = start
        while not tracker.should_stop():
            payload = self._client.search_packages(
                group=category.slug if category else None,
                rows=page_size,
                start=offset,
            )
            if payload is None:
                tracker.record([], failed=True)
                offset += page_size
                continue
            found = extract_candidates(payload)
            if not found:
                tracker.record([])
                break
            tracker.record(found)
            offset += page_size

    def _listing_params(self, category: CatalogCategory | None, **extra: Any) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if category is not None:
            params["category"] = category.label
        params.update(extra)
        return params

    def _html_browse_phase(self, category: CatalogCategory | None, tracker: CrawlTracker) -> None:
        tracker.begin_phase(self._settings.pagination_policy)
        url = self._settings.datasets_url
        page_number = 1
        while not tracker.should_stop():
            html = self._client.fetch_page(url, self._listing_params(category, page=page_number))
            found = extract_page_candidates(html)
            if not found and category is not None:
                alt_html = self._client.fetch_page(url, {"groups": category.slug, "page": page_number})
                found = extract_page_candidates(alt_html)
                html = html or alt_html
            tracker.record(found, failed=not html)
            page_number += 1

    def _browser_scroll_phase(self, category: CatalogCategory | None, tracker: CrawlTracker) -> None:
        policy = self._settings.scroll_policy
        screenshot_dir = self._settings.browser.screenshot_dir

        def scroll(page: BrowserPage) -> bool:
            tracker.begin_phase(policy)
            tracker.record(extract_page_candidates(page.content()))
            while not tracker.should_stop():
                page.load_more()
                tracker.record(extract_page_candidates(page.content()))
            if screenshot_dir:
                os.makedirs(screenshot_dir, exist_ok=True)
                name = category.slug if category is not None else "all"
                page.screenshot(os.path.join(screenshot_dir, f"discovery-{name}.png"))
            return True

        url = self._browse_url(category)
        if self._client.load_and_interact(url, scroll) is None:
            tracker.begin_phase(None)
            tracker.record([], failed=True)

    def _browse_url(self, category: CatalogCategory | None) -> str:
        if category is None:
            return self._settings.datasets_url
        return f"{self._settings.datasets_url}?{urlencode({'category': category.label})}"

    def _search_probe_phase(self, category: CatalogCategory | None, tracker: CrawlTracker) -> None:
        tracker.begin_phase(None)
        url = self._settings.datasets_url
        for term in self._settings.search_terms:
            html = self._client.fetch_page(url, self._listing_params(category, q=term))
            tracker.record(extract_page_candidates(html), failed=not html)
