"""
app/domain/discovery.py

Domain models for dataset discovery and reconciliation.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any

PLACEHOLDER_PREFIX = "Dataset "
PLACEHOLDER_PREFIX_AR = "مجموعة بيانات "
PLACEHOLDER_SHORT_ID_LENGTH = 8
_PLACEHOLDER_AR_PATTERN = re.compile(r"^مجموعة بيانات [a-f0-9]{8}$")


def placeholder_names(external_id: str) -> tuple[str, str]:
    """
    Synthesize (name, name_ar) from the first 8 characters of an external id.
    """

    short_id = external_id[:PLACEHOLDER_SHORT_ID_LENGTH]
    return f"{PLACEHOLDER_PREFIX}{short_id}", f"{PLACEHOLDER_PREFIX_AR}{short_id}"


def is_placeholder_name(name_ar: str | None) -> bool:
    return bool(name_ar) and _PLACEHOLDER_AR_PATTERN.match(name_ar or "") is not None


@dataclass(frozen=True)
class CatalogCategory:
    """
    One browsable category of the external catalog.

    label is the Arabic label the portal filters on; slug is the CKAN group name.
    """

    label: str
    slug: str
    label_en: str = ""


@dataclass(frozen=True)
class TerminationPolicy:
    """
    Stop rule for paginated and incremental crawl loops.

    A loop ends after max_steps steps, or once no_new_result_streak
    consecutive steps add no new identifier.
    """

    max_steps: int = 50
    no_new_result_streak: int = 3

    def __post_init__(self) -> None:
        if self.max_steps < 1:
            raise ValueError("max_steps must be >= 1")
        if self.no_new_result_streak < 1:
            raise ValueError("no_new_result_streak must be >= 1")


@dataclass(frozen=True)
class CatalogCandidate:
    """
    One dataset observed in the catalog during a crawl.
    """

    external_id: str
    title: str | None = None
    title_ar: str | None = None
    description: str | None = None
    category: str | None = None

    def with_category(self, category: str | None) -> "CatalogCandidate":
        return replace(self, category=category)

    def enrich(self, other: "CatalogCandidate") -> "CatalogCandidate":
        """
        Fill missing descriptive fields from another sighting of the same id.
        """

        return replace(
            self,
            title=self.title or other.title,
            title_ar=self.title_ar or other.title_ar,
            description=self.description or other.description,
        )


@dataclass(frozen=True)
class DiscoveryResult:
    """
    Outcome of one discovery run.

    new_ids holds identifiers absent from the store when the crawl finished;
    total counts every distinct identifier observed.
    """

    new_ids: list[str]
    total: int
    candidates: list[CatalogCandidate] = field(default_factory=list)
    steps: int = 0
    failed_steps: int = 0
    categories_scanned: int = 0

    @classmethod
    def empty(cls) -> "DiscoveryResult":
        return cls(new_ids=[], total=0)

    def new_candidates(self) -> list[CatalogCandidate]:
        wanted = set(self.new_ids)
        return [candidate for candidate in self.candidates if candidate.external_id in wanted]

    def known_candidates(self) -> list[CatalogCandidate]:
        wanted = set(self.new_ids)
        return [candidate for candidate in self.candidates if candidate.external_id not in wanted]


class ReconcileOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


class ReconciliationError(Exception):
    """
    Per-item failure while reconciling one candidate against the store.
    """

    def __init__(self, external_id: str, message: str) -> None:
        super().__init__(f"{external_id}: {message}")
        self.external_id = external_id
        self.message = message


@dataclass(frozen=True)
class ItemResult:
    external_id: str
    outcome: ReconcileOutcome | None = None
    error: ReconciliationError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class ReconcileSummary:
    """
    Aggregated per-item results of one reconciliation batch.
    """

    items: tuple[ItemResult, ...] = ()

    def _count(self, outcome: ReconcileOutcome) -> int:
        return sum(1 for item in self.items if item.outcome is outcome)

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def created(self) -> int:
        return self._count(ReconcileOutcome.CREATED)

    @property
    def updated(self) -> int:
        return self._count(ReconcileOutcome.UPDATED)

    @property
    def skipped(self) -> int:
        return self._count(ReconcileOutcome.SKIPPED)

    @property
    def failed(self) -> int:
        return sum(1 for item in self.items if not item.ok)

    @property
    def errors(self) -> list[ReconciliationError]:
        return [item.error for item in self.items if item.error is not None]

    def as_counts(self) -> dict[str, int]:
        return {
            "total": self.total,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "failed": self.failed,
        }


@dataclass(frozen=True)
class DatasetRecord:
    """
    Read model of a persisted dataset row.
    """

    id: uuid.UUID
    external_id: str | None
    name: str
    name_ar: str
    category: str
    sync_status: str
    is_active: bool = True
    source: str | None = None
    source_url: str | None = None
    has_metadata: bool = False
    last_sync_at: datetime | None = None


@dataclass(frozen=True)
class DatasetSyncResult:
    external_id: str
    success: bool
    title: str | None = None
    resources: int = 0
    error: str | None = None


@dataclass(frozen=True)
class DatasetSyncSummary:
    results: tuple[DatasetSyncResult, ...] = ()

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def success(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failed(self) -> int:
        return self.total - self.success

    def as_counts(self) -> dict[str, int]:
        return {"total": self.total, "success": self.success, "failed": self.failed}


@dataclass(frozen=True)
class DiscoverAndSyncSummary:
    mode: str
    discovery: DiscoveryResult
    added: ReconcileSummary
    reconciliation: ReconcileSummary
    sync: DatasetSyncSummary

    def as_payload(self) -> dict[str, Any]:
        return {
            "discovery": {
                "mode": self.mode,
                "total": self.discovery.total,
                "newFound": len(self.discovery.new_ids),
                "categoriesScanned": self.discovery.categories_scanned,
            },
            "added": self.added.created,
            "reconciliation": self.reconciliation.as_counts(),
            "sync": self.sync.as_counts(),
        }
