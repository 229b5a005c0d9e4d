"""
Shared fixtures and fakes for discovery tests.

Nothing here touches the network: the catalog client is scripted, and
persistence is either an in-memory store or SQLite in memory.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import db.models  # noqa: F401 registers ORM models on Base.metadata
from app.discovery.config.models import DiscoverySettings
from app.discovery.storage.base import DatasetStore
from app.domain.discovery import DatasetRecord, TerminationPolicy, is_placeholder_name
from db.base import Base
from db.models.dataset import DatasetSyncStatus
from db.repositories.errors import DatasetNotFoundError, DuplicateExternalIdError
from db.repositories.types import DatasetCreate, DatasetMetadataUpdate

CATEGORIES_PATH = Path(__file__).resolve().parents[1] / "app" / "discovery" / "config" / "categories.json"
EMPTY_PAGE = "<html><body><div class='datasets'></div></body></html>"


def uid(number: int) -> str:
    """Deterministic dataset UUID for tests."""
    return f"{number:08x}-aaaa-4bbb-8ccc-{number:012x}"


def listing_html(*external_ids: str) -> str:
    cards = "".join(
        f'<div class="dataset-card"><a href="/ar/datasets/view/{external_id}">Dataset title {external_id[:8]}</a></div>'
        for external_id in external_ids
    )
    return f"<html><body>{cards}</body></html>"


def package_payload(*external_ids: str, titles: dict[str, str] | None = None) -> dict[str, Any]:
    titles = titles or {}
    return {
        "success": True,
        "result": {
            "count": len(external_ids),
            "results": [
                {"id": external_id, "title": titles.get(external_id, f"Title {external_id[:8]}")}
                for external_id in external_ids
            ],
        },
    }


def make_settings(**overrides: Any) -> DiscoverySettings:
    values: dict[str, Any] = {
        "portal_url": "https://portal.test",
        "api_base_url": "https://portal.test/data/api",
        "datasets_path": "/ar/datasets",
        "user_agent": "test-agent",
        "timeout_seconds": 5.0,
        "rate_limit_per_second": 1000.0,
        "page_size": 2,
        "api_rows": 100,
        "categories_path": str(CATEGORIES_PATH),
        "pagination_policy": TerminationPolicy(max_steps=10, no_new_result_streak=3),
        "scroll_policy": TerminationPolicy(max_steps=10, no_new_result_streak=3),
        "search_terms": ("ا", "م"),
    }
    values.update(overrides)
    return DiscoverySettings(**values)


# ---------------------------------------------------------------------------
# Scripted catalog client
# ---------------------------------------------------------------------------


class FakePage:
    def __init__(self, frames: Sequence[str]) -> None:
        self._frames = list(frames) or [EMPTY_PAGE]
        self.position = 0
        self.load_more_calls = 0
        self.screenshots: list[str] = []

    def content(self) -> str:
        return self._frames[min(self.position, len(self._frames) - 1)]

    def load_more(self) -> bool:
        self.load_more_calls += 1
        self.position += 1
        return self.position < len(self._frames)

    def screenshot(self, path: str) -> None:
        self.screenshots.append(path)


class FakeCatalogClient:
    """
    Duck-typed stand-in for CatalogClient.

    A None value in any script means "the request failed".
    """

    def __init__(
        self,
        settings: DiscoverySettings | None = None,
        *,
        direct: dict[str | None, Any] | None = None,
        api_pages: dict[int, Any] | None = None,
        html_pages: dict[int, str | None] | None = None,
        search_pages: dict[str, str | None] | None = None,
        browser_frames: Sequence[str] | None = None,
        metadata: dict[str, dict[str, Any]] | None = None,
        config_error: str | None = None,
    ) -> None:
        self.settings = settings or make_settings()
        self._direct = direct or {}
        self._api_pages = api_pages or {}
        self._html_pages = html_pages or {}
        self._search_pages = search_pages or {}
        self._browser_frames = browser_frames
        self._metadata = metadata or {}
        self._config_error = config_error
        self.calls: list[tuple[Any, ...]] = []
        self.pages_opened: list[FakePage] = []

    @property
    def browser_enabled(self) -> bool:
        return self._browser_frames is not None

    def configuration_error(self) -> str | None:
        return self._config_error

    def search_packages(
        self,
        *,
        query: str = "*:*",
        group: str | None = None,
        rows: int | None = None,
        start: int = 0,
    ) -> Any | None:
        self.calls.append(("api", group, rows, start))
        if rows is None:
            return self._direct.get(group, package_payload())
        return self._api_pages.get(start, package_payload())

    def fetch_page(self, url: str, params: dict[str, Any] | None = None) -> str:
        params = dict(params or {})
        self.calls.append(("page", params))
        if "q" in params:
            value = self._search_pages.get(params["q"], EMPTY_PAGE)
        elif "groups" in params:
            value = EMPTY_PAGE
        else:
            value = self._html_pages.get(params.get("page", 1), EMPTY_PAGE)
        return "" if value is None else value

    def fetch_dataset_metadata(self, external_id: str) -> dict[str, Any] | None:
        self.calls.append(("metadata", external_id))
        return self._metadata.get(external_id)

    def load_and_interact(self, url: str, interaction: Any) -> Any | None:
        self.calls.append(("browser", url))
        if self._browser_frames is None:
            return None
        page = FakePage(self._browser_frames)
        self.pages_opened.append(page)
        return interaction(page)

    def page_numbers_fetched(self) -> list[int]:
        return [
            call[1]["page"]
            for call in self.calls
            if call[0] == "page" and "page" in call[1] and "groups" not in call[1]
        ]


# ---------------------------------------------------------------------------
# In-memory dataset store
# ---------------------------------------------------------------------------


@dataclass
class _Row:
    id: uuid.UUID
    fields: DatasetCreate
    metadata_json: dict[str, Any] | None = None
    sync_error: str | None = None
    last_sync_at: datetime | None = None
    resources: list[Any] = field(default_factory=list)


class InMemoryDatasetStore(DatasetStore):
    def __init__(self, *, fail_on: set[str] | None = None) -> None:
        self.rows: dict[uuid.UUID, _Row] = {}
        self._fail_on = fail_on or set()

    def seed(self, external_id: str, *, category: str, name_ar: str | None = None) -> DatasetRecord:
        return self.create(
            DatasetCreate(
                external_id=external_id,
                name=name_ar or f"Seed {external_id[:8]}",
                name_ar=name_ar or f"بذرة {external_id[:8]}",
                category=category,
            )
        )

    def _record(self, row: _Row) -> DatasetRecord:
        return DatasetRecord(
            id=row.id,
            external_id=row.fields.external_id,
            name=row.fields.name,
            name_ar=row.fields.name_ar,
            category=row.fields.category,
            sync_status=row.fields.sync_status,
            is_active=row.fields.is_active,
            source=row.fields.source,
            source_url=row.fields.source_url,
            has_metadata=row.metadata_json is not None,
            last_sync_at=row.last_sync_at,
        )

    def _require(self, dataset_id: uuid.UUID) -> _Row:
        row = self.rows.get(dataset_id)
        if row is None:
            raise DatasetNotFoundError(f"Dataset not found: {dataset_id}")
        return row

    def get(self, external_id: str) -> _Row:
        for row in self.rows.values():
            if row.fields.external_id == external_id:
                return row
        raise KeyError(external_id)

    def find_by_external_id(self, external_id: str) -> DatasetRecord | None:
        for row in self.rows.values():
            if row.fields.external_id == external_id:
                return self._record(row)
        return None

    def create(self, fields: DatasetCreate) -> DatasetRecord:
        if fields.external_id in self._fail_on:
            raise RuntimeError("simulated write failure")
        if self.find_by_external_id(fields.external_id) is not None:
            raise DuplicateExternalIdError(fields.external_id)
        row = _Row(id=uuid.uuid4(), fields=fields)
        self.rows[row.id] = row
        return self._record(row)

    def update_category(self, dataset_id: uuid.UUID, category: str) -> None:
        row = self._require(dataset_id)
        row.fields = replace(row.fields, category=category)

    def count_active(self, *, category: str | None = None) -> int:
        return sum(
            1
            for row in self.rows.values()
            if row.fields.is_active and (category is None or row.fields.category == category)
        )

    def count_by_sync_status(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for row in self.rows.values():
            counts[row.fields.sync_status] = counts.get(row.fields.sync_status, 0) + 1
        return counts

    def known_external_ids(self, *, category: str | None = None) -> set[str]:
        return {
            row.fields.external_id
            for row in self.rows.values()
            if category is None or row.fields.category == category
        }

    def list_active(self, *, limit: int | None = None) -> list[DatasetRecord]:
        records = [self._record(row) for row in self.rows.values() if row.fields.is_active]
        return records[:limit] if limit is not None else records

    def record_sync_success(self, dataset_id: uuid.UUID, update: DatasetMetadataUpdate) -> None:
        row = self._require(dataset_id)
        row.fields = replace(
            row.fields,
            name=update.name or row.fields.name,
            name_ar=update.name_ar or row.fields.name_ar,
            sync_status=DatasetSyncStatus.SYNCED,
        )
        row.metadata_json = update.metadata_json
        row.resources = list(update.resources or [])
        row.sync_error = None
        row.last_sync_at = datetime.now(timezone.utc)

    def record_sync_failure(self, dataset_id: uuid.UUID, error_message: str) -> None:
        row = self._require(dataset_id)
        row.fields = replace(row.fields, sync_status=DatasetSyncStatus.FAILED)
        row.sync_error = error_message

    def placeholder_candidates(self) -> list[DatasetRecord]:
        return [
            self._record(row)
            for row in self.rows.values()
            if row.metadata_json is None and is_placeholder_name(row.fields.name_ar)
        ]

    def count_placeholders(self) -> int:
        return len(self.placeholder_candidates())

    def delete(self, dataset_ids: Sequence[uuid.UUID]) -> int:
        deleted = 0
        for dataset_id in dataset_ids:
            if self.rows.pop(dataset_id, None) is not None:
                deleted += 1
        return deleted


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def settings() -> DiscoverySettings:
    return make_settings()


@pytest.fixture()
def store() -> InMemoryDatasetStore:
    return InMemoryDatasetStore()


@pytest.fixture()
def session_factory() -> Iterator[sessionmaker[Session]]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    try:
        yield factory
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()
