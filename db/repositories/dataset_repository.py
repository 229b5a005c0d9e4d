"""
Dataset repository responsible for DB reads and writes.

The repository never commits; the caller owns the transaction.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import datetime, timezone

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from db.models.dataset import Dataset, DatasetSyncStatus
from db.repositories.errors import DatasetNotFoundError
from db.repositories.types import DatasetCreate, DatasetMetadataUpdate


class DatasetRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, dataset_id: uuid.UUID) -> Dataset | None:
        return self._session.get(Dataset, dataset_id)

    def require(self, dataset_id: uuid.UUID) -> Dataset:
        dataset = self.get(dataset_id)
        if dataset is None:
            raise DatasetNotFoundError(f"Dataset not found: {dataset_id}")
        return dataset

    def find_by_external_id(self, external_id: str) -> Dataset | None:
        stmt = select(Dataset).where(Dataset.external_id == external_id).limit(1)
        return self._session.scalars(stmt).first()

    def create(self, fields: DatasetCreate) -> Dataset:
        dataset = Dataset(
            external_id=fields.external_id,
            name=fields.name,
            name_ar=fields.name_ar,
            description=fields.description,
            description_ar=fields.description_ar,
            category=fields.category,
            source=fields.source,
            source_url=fields.source_url,
            sync_status=fields.sync_status,
            is_active=fields.is_active,
            columns=list(fields.columns),
            resources=list(fields.resources),
            data_preview=list(fields.data_preview),
        )
        self._session.add(dataset)
        self._session.flush()
        return dataset

    def update_category(self, dataset_id: uuid.UUID, category: str) -> Dataset:
        dataset = self.require(dataset_id)
        dataset.category = category
        self._session.flush()
        return dataset

    def apply_metadata(self, dataset_id: uuid.UUID, update: DatasetMetadataUpdate) -> Dataset:
        dataset = self.require(dataset_id)
        if update.name:
            dataset.name = update.name
        if update.name_ar:
            dataset.name_ar = update.name_ar
        if update.description is not None:
            dataset.description = update.description
        if update.description_ar is not None:
            dataset.description_ar = update.description_ar
        if update.resources is not None:
            dataset.resources = list(update.resources)
        if update.metadata_json is not None:
            dataset.metadata_json = update.metadata_json
        if update.record_count is not None:
            dataset.record_count = update.record_count
        self._session.flush()
        return dataset

    def mark_synced(self, dataset_id: uuid.UUID) -> Dataset:
        dataset = self.require(dataset_id)
        dataset.sync_status = DatasetSyncStatus.SYNCED
        dataset.sync_error = None
        dataset.last_sync_at = datetime.now(timezone.utc)
        self._session.flush()
        return dataset

    def mark_failed(self, dataset_id: uuid.UUID, error_message: str) -> Dataset:
        dataset = self.require(dataset_id)
        dataset.sync_status = DatasetSyncStatus.FAILED
        dataset.sync_error = error_message
        self._session.flush()
        return dataset

    def count_active(self, *, category: str | None = None) -> int:
        stmt = select(func.count()).select_from(Dataset).where(Dataset.is_active.is_(True))
        if category is not None:
            stmt = stmt.where(Dataset.category == category)
        return int(self._session.scalar(stmt) or 0)

    def count_by_sync_status(self) -> dict[str, int]:
        stmt = select(Dataset.sync_status, func.count()).group_by(Dataset.sync_status)
        return {status: int(count) for status, count in self._session.execute(stmt).all()}

    def external_ids(self, *, category: str | None = None) -> set[str]:
        stmt = select(Dataset.external_id).where(Dataset.external_id.is_not(None))
        if category is not None:
            stmt = stmt.where(Dataset.category == category)
        return {value for value in self._session.scalars(stmt).all() if value}

    def list_active(self, *, limit: int | None = None) -> list[Dataset]:
        stmt = (
            select(Dataset)
            .where(Dataset.is_active.is_(True), Dataset.external_id.is_not(None))
            .order_by(Dataset.created_at.asc(), Dataset.id.asc())
        )
        if limit is not None:
            stmt = stmt.limit(max(1, limit))
        return list(self._session.scalars(stmt).all())

    def list_without_metadata(self, *, name_ar_prefix: str) -> list[Dataset]:
        stmt = (
            select(Dataset)
            .where(
                Dataset.metadata_json.is_(None),
                Dataset.name_ar.startswith(name_ar_prefix),
            )
            .order_by(Dataset.created_at.asc())
        )
        return list(self._session.scalars(stmt).all())

    def count_without_metadata(self, *, name_ar_prefix: str, name_ar_length: int | None = None) -> int:
        stmt = (
            select(func.count())
            .select_from(Dataset)
            .where(
                Dataset.metadata_json.is_(None),
                Dataset.name_ar.startswith(name_ar_prefix),
            )
        )
        if name_ar_length is not None:
            stmt = stmt.where(func.length(Dataset.name_ar) == name_ar_length)
        return int(self._session.scalar(stmt) or 0)

    def delete_many(self, dataset_ids: Sequence[uuid.UUID]) -> int:
        if not dataset_ids:
            return 0
        result = self._session.execute(delete(Dataset).where(Dataset.id.in_(list(dataset_ids))))
        return int(result.rowcount or 0)
