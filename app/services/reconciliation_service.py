"""
Reconciles discovered catalog candidates against the dataset store.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from app.discovery.config.models import DiscoverySettings
from app.discovery.logging_utils import log_event
from app.discovery.storage.base import DatasetStore
from app.domain.discovery import (
    CatalogCandidate,
    ItemResult,
    ReconcileOutcome,
    ReconcileSummary,
    ReconciliationError,
    placeholder_names,
)
from db.models.dataset import DEFAULT_CATEGORY, DEFAULT_SOURCE, DatasetSyncStatus
from db.repositories.types import DatasetCreate

logger = logging.getLogger(__name__)


class ReconciliationService:
    """
    Create-or-update-category for each candidate, one item at a time.

    Items are processed in input order, so a repeated external id later in the
    batch sees the row written by its earlier occurrence.
    """

    def __init__(self, *, store: DatasetStore, settings: DiscoverySettings) -> None:
        self._store = store
        self._settings = settings

    def reconcile(
        self,
        items: Sequence[CatalogCandidate],
        *,
        default_category: str = DEFAULT_CATEGORY,
    ) -> ReconcileSummary:
        results: list[ItemResult] = []
        for item in items:
            try:
                outcome = self._reconcile_one(item, default_category=default_category)
                results.append(ItemResult(external_id=item.external_id, outcome=outcome))
            except Exception as exc:
                error = ReconciliationError(item.external_id, f"{type(exc).__name__}: {exc}")
                results.append(ItemResult(external_id=item.external_id, error=error))
                log_event(
                    logger,
                    logging.WARNING,
                    "dataset_reconcile_failed",
                    external_id=item.external_id,
                    error=error.message,
                )

        summary = ReconcileSummary(items=tuple(results))
        log_event(logger, logging.INFO, "dataset_reconcile_completed", **summary.as_counts())
        return summary

    def _reconcile_one(self, item: CatalogCandidate, *, default_category: str) -> ReconcileOutcome:
        category = item.category or default_category
        existing = self._store.find_by_external_id(item.external_id)
        if existing is None:
            self._store.create(self._new_dataset(item, category=category))
            return ReconcileOutcome.CREATED
        if existing.category != category:
            self._store.update_category(existing.id, category)
            return ReconcileOutcome.UPDATED
        return ReconcileOutcome.SKIPPED

    def _new_dataset(self, item: CatalogCandidate, *, category: str) -> DatasetCreate:
        placeholder, placeholder_ar = placeholder_names(item.external_id)
        return DatasetCreate(
            external_id=item.external_id,
            name=item.title or item.title_ar or placeholder,
            name_ar=item.title_ar or item.title or placeholder_ar,
            category=category,
            description=item.description,
            description_ar=item.description,
            source=DEFAULT_SOURCE,
            source_url=self._settings.dataset_view_url(item.external_id),
            sync_status=DatasetSyncStatus.PENDING,
            is_active=True,
        )
