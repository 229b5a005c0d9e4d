"""
tests/test_discovery_orchestrator.py

Crawl orchestration against a scripted catalog client.

Coverage
--------
- Phase order and step accounting
- Termination by no-new streak and by max steps
- Failed steps counted and treated as zero-new steps
- Browser scroll loop and optional screenshots
- Configuration errors short-circuit without any request
- new_ids diffed against identifiers already stored
- Full mode: per-category tagging, last category wins
"""

from __future__ import annotations

from pathlib import Path

import pytest

from app.discovery.config.models import BrowserSettings
from app.discovery.orchestrator import CrawlTracker, DiscoveryOrchestrator
from app.domain.discovery import CatalogCandidate, CatalogCategory, TerminationPolicy
from tests.conftest import (
    FakeCatalogClient,
    InMemoryDatasetStore,
    listing_html,
    make_settings,
    package_payload,
    uid,
)

U1, U2, U3, U4 = uid(1), uid(2), uid(3), uid(4)


def _orchestrator(client: FakeCatalogClient, store: InMemoryDatasetStore | None = None) -> DiscoveryOrchestrator:
    return DiscoveryOrchestrator(client=client, store=store or InMemoryDatasetStore())  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# CrawlTracker
# ---------------------------------------------------------------------------


class TestCrawlTracker:
    def test_record_returns_new_count_and_merges(self) -> None:
        tracker = CrawlTracker()
        tracker.begin_phase(None)

        assert tracker.record([CatalogCandidate(U1), CatalogCandidate(U2)]) == 2
        assert tracker.record([CatalogCandidate(U1, title="Population")]) == 0
        assert len(tracker) == 2
        assert tracker.candidates[0].title == "Population"

    def test_streak_stops_phase(self) -> None:
        tracker = CrawlTracker()
        tracker.begin_phase(TerminationPolicy(max_steps=50, no_new_result_streak=2))

        tracker.record([CatalogCandidate(U1)])
        assert not tracker.should_stop()
        tracker.record([CatalogCandidate(U1)])
        assert not tracker.should_stop()
        tracker.record([], failed=True)
        assert tracker.should_stop()
        assert tracker.failed_steps == 1

    def test_new_phase_resets_counters_but_keeps_candidates(self) -> None:
        tracker = CrawlTracker()
        tracker.begin_phase(TerminationPolicy(max_steps=1, no_new_result_streak=1))
        tracker.record([CatalogCandidate(U1)])
        assert tracker.should_stop()

        tracker.begin_phase(TerminationPolicy(max_steps=1, no_new_result_streak=1))
        assert not tracker.should_stop()
        assert tracker.steps == 1
        assert len(tracker) == 1

    def test_unbounded_phase_never_stops(self) -> None:
        tracker = CrawlTracker()
        tracker.begin_phase(None)
        for _ in range(10):
            tracker.record([])
        assert not tracker.should_stop()

    def test_policy_rejects_non_positive_limits(self) -> None:
        with pytest.raises(ValueError):
            TerminationPolicy(max_steps=0)
        with pytest.raises(ValueError):
            TerminationPolicy(no_new_result_streak=0)


# ---------------------------------------------------------------------------
# Single-scope discovery
# ---------------------------------------------------------------------------


class TestDiscover:
    def test_phases_run_in_order(self) -> None:
        client = FakeCatalogClient(
            direct={None: package_payload(U1, U2)},
            api_pages={2: package_payload(U3)},
        )

        result = _orchestrator(client).discover()

        assert result.new_ids == [U1, U2, U3]
        assert result.total == 3
        # direct 1 + api pages 2 + html streak 3 + search probes 2
        assert result.steps == 8
        assert result.failed_steps == 0
        assert client.calls[0] == ("api", None, None, 0)
        assert client.calls[1] == ("api", None, 2, 2)
        assert client.calls[2] == ("api", None, 2, 4)
        assert client.page_numbers_fetched() == [1, 2, 3]
        searched = [call[1]["q"] for call in client.calls if call[0] == "page" and "q" in call[1]]
        assert searched == ["ا", "م"]

    def test_html_browse_stops_after_no_new_streak(self) -> None:
        client = FakeCatalogClient(
            html_pages={
                1: listing_html(U1),
                2: listing_html(U2),
                3: listing_html(U2),
                4: listing_html(U1, U2),
                5: listing_html(U2),
                6: listing_html(U3),
            }
        )

        result = _orchestrator(client).discover()

        assert client.page_numbers_fetched() == [1, 2, 3, 4, 5]
        assert U3 not in result.new_ids
        assert result.new_ids == [U1, U2]

    def test_html_browse_stops_at_max_steps(self) -> None:
        settings = make_settings(pagination_policy=TerminationPolicy(max_steps=4, no_new_result_streak=3))
        client = FakeCatalogClient(
            settings,
            html_pages={number: listing_html(uid(100 + number)) for number in range(1, 11)},
        )

        result = _orchestrator(client).discover()

        assert client.page_numbers_fetched() == [1, 2, 3, 4]
        assert result.total == 4

    def test_failed_steps_are_counted_and_end_loops(self) -> None:
        client = FakeCatalogClient(
            direct={None: None},
            api_pages={0: None, 2: None, 4: None, 6: package_payload(U1)},
            html_pages={1: None},
            search_pages={"ا": None},
        )

        result = _orchestrator(client).discover()

        assert result.total == 0
        assert result.failed_steps == 6
        assert result.steps == 9
        assert ("api", None, 2, 6) not in client.calls

    def test_configuration_error_makes_no_request(self) -> None:
        client = FakeCatalogClient(config_error="Remote browser mode requires BROWSERLESS_TOKEN.")
        orchestrator = _orchestrator(client)

        assert orchestrator.discover().new_ids == []
        assert orchestrator.discover_all([CatalogCategory(label="الاقتصاد", slug="economy")]).total == 0
        assert client.calls == []

    def test_new_ids_exclude_stored_identifiers(self) -> None:
        store = InMemoryDatasetStore()
        store.seed(U1, category="الاقتصاد")
        client = FakeCatalogClient(direct={None: package_payload(U1, U2)})

        result = _orchestrator(client, store).discover()

        assert result.total == 2
        assert result.new_ids == [U2]
        assert [candidate.external_id for candidate in result.known_candidates()] == [U1]
        assert [candidate.external_id for candidate in result.new_candidates()] == [U2]

    def test_category_scope_filters_and_tags(self) -> None:
        category = CatalogCategory(label="الاقتصاد", slug="economy")
        client = FakeCatalogClient(direct={"economy": package_payload(U1)})

        result = _orchestrator(client).discover(category)

        assert result.categories_scanned == 1
        assert [candidate.category for candidate in result.candidates] == ["الاقتصاد"]
        assert client.calls[0] == ("api", "economy", None, 0)
        html_params = [call[1] for call in client.calls if call[0] == "page" and "page" in call[1]]
        assert {"category": "الاقتصاد", "page": 1} in html_params
        assert {"groups": "economy", "page": 1} in html_params


# ---------------------------------------------------------------------------
# Browser scroll loop
# ---------------------------------------------------------------------------


class TestBrowserScroll:
    def test_scroll_until_no_change(self, tmp_path: Path) -> None:
        settings = make_settings(browser=BrowserSettings(mode="local", screenshot_dir=str(tmp_path)))
        frames = [listing_html(U1)] + [listing_html(U1, U2)] * 6
        client = FakeCatalogClient(settings, browser_frames=frames)

        result = _orchestrator(client).discover()

        page = client.pages_opened[0]
        assert result.new_ids == [U1, U2]
        assert page.load_more_calls == 4
        assert page.screenshots == [str(tmp_path / "discovery-all.png")]

    def test_browser_failure_counts_one_failed_step(self) -> None:
        class BrokenBrowserClient(FakeCatalogClient):
            @property
            def browser_enabled(self) -> bool:
                return True

        client = BrokenBrowserClient()

        result = _orchestrator(client).discover()

        assert ("browser", "https://portal.test/ar/datasets") in client.calls
        assert result.failed_steps == 1

    def test_browser_phase_skipped_without_browser(self) -> None:
        client = FakeCatalogClient()
        _orchestrator(client).discover()
        assert not any(call[0] == "browser" for call in client.calls)


# ---------------------------------------------------------------------------
# Full mode
# ---------------------------------------------------------------------------


class TestDiscoverAll:
    def test_last_category_wins_for_shared_ids(self) -> None:
        categories = [
            CatalogCategory(label="الاقتصاد", slug="economy"),
            CatalogCategory(label="العقار", slug="real-estate"),
        ]
        client = FakeCatalogClient(
            direct={
                "economy": package_payload(U1, U2, titles={U2: "Housing prices"}),
                "real-estate": package_payload(U2, U3),
            }
        )

        result = _orchestrator(client).discover_all(categories)

        by_id = {candidate.external_id: candidate for candidate in result.candidates}
        assert result.categories_scanned == 2
        assert result.total == 3
        assert by_id[U1].category == "الاقتصاد"
        assert by_id[U2].category == "العقار"
        assert by_id[U3].category == "العقار"
        assert by_id[U2].title == f"Title {U2[:8]}"
        assert result.new_ids == [U1, U2, U3]
