"""
Metadata sync pass: pulls CKAN package metadata for stored datasets.
"""

from __future__ import annotations

import logging
from typing import Any

from app.discovery.client import CatalogClient, CatalogClientError
from app.discovery.extraction import localized_text
from app.discovery.logging_utils import log_event
from app.discovery.storage.base import DatasetStore
from app.domain.discovery import (
    CatalogCandidate,
    DatasetRecord,
    DatasetSyncResult,
    DatasetSyncSummary,
)
from app.services.reconciliation_service import ReconciliationService
from db.repositories.types import DatasetMetadataUpdate

logger = logging.getLogger(__name__)

_METADATA_KEYS = (
    "id",
    "name",
    "title",
    "title_ar",
    "notes",
    "notes_ar",
    "organization",
    "groups",
    "tags",
    "license_title",
    "metadata_created",
    "metadata_modified",
    "num_resources",
)


def build_metadata_update(metadata: dict[str, Any]) -> DatasetMetadataUpdate:
    """
    Map a package_show result onto the dataset columns the sync pass owns.
    """

    title = localized_text(metadata.get("title"))
    title_ar = (
        localized_text(metadata.get("title_ar"))
        or localized_text(metadata.get("title_translated"))
        or title
    )
    notes = localized_text(metadata.get("notes"))
    notes_ar = (
        localized_text(metadata.get("notes_ar"))
        or localized_text(metadata.get("notes_translated"))
        or notes
    )
    resources = metadata.get("resources")
    resource_list = [
        {
            "id": resource.get("id"),
            "name": localized_text(resource.get("name")),
            "format": resource.get("format"),
            "url": resource.get("url"),
        }
        for resource in resources or []
        if isinstance(resource, dict)
    ]
    return DatasetMetadataUpdate(
        name=title,
        name_ar=title_ar,
        description=notes,
        description_ar=notes_ar,
        resources=resource_list,
        metadata_json={key: metadata[key] for key in _METADATA_KEYS if key in metadata},
    )


class DatasetSyncService:
    """
    Fetches metadata for each active dataset sequentially and records SYNCED/FAILED.
    """

    def __init__(self, *, client: CatalogClient, store: DatasetStore) -> None:
        self._client = client
        self._store = store

    def sync_all(self, *, limit: int | None = None) -> DatasetSyncSummary:
        records = self._store.list_active(limit=limit)
        log_event(logger, logging.INFO, "dataset_sync_started", datasets=len(records))

        results = tuple(self._sync_record(record) for record in records)
        summary = DatasetSyncSummary(results=results)
        log_event(logger, logging.INFO, "dataset_sync_completed", **summary.as_counts())
        return summary

    def sync_one(self, external_id: str) -> DatasetSyncResult:
        """
        Sync one dataset, registering it first when the id is not stored yet.
        """

        record = self._store.find_by_external_id(external_id)
        if record is None:
            reconciler = ReconciliationService(store=self._store, settings=self._client.settings)
            summary = reconciler.reconcile([CatalogCandidate(external_id=external_id)])
            if summary.failed:
                return DatasetSyncResult(
                    external_id=external_id,
                    success=False,
                    error=summary.errors[0].message,
                )
            record = self._store.find_by_external_id(external_id)
            if record is None:
                return DatasetSyncResult(
                    external_id=external_id,
                    success=False,
                    error="Dataset could not be registered",
                )
        return self._sync_record(record)

    def _sync_record(self, record: DatasetRecord) -> DatasetSyncResult:
        external_id = record.external_id or ""
        try:
            metadata = self._client.fetch_dataset_metadata(external_id)
            if metadata is None:
                raise CatalogClientError("Catalog metadata not available")
            update = build_metadata_update(metadata)
            self._store.record_sync_success(record.id, update)
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            log_event(
                logger,
                logging.WARNING,
                "dataset_sync_failed",
                external_id=external_id,
                error=message,
            )
            try:
                self._store.record_sync_failure(record.id, message)
            except Exception as record_exc:
                log_event(
                    logger,
                    logging.WARNING,
                    "dataset_sync_failure_not_recorded",
                    external_id=external_id,
                    error=str(record_exc) or type(record_exc).__name__,
                )
            return DatasetSyncResult(external_id=external_id, success=False, error=message)

        return DatasetSyncResult(
            external_id=external_id,
            success=True,
            title=update.name_ar or update.name,
            resources=len(update.resources or []),
        )
