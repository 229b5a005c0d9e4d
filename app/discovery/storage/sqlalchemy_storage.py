"""
SQLAlchemy-backed dataset store.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.discovery.storage.base import DatasetStore
from app.domain.discovery import (
    PLACEHOLDER_PREFIX_AR,
    PLACEHOLDER_SHORT_ID_LENGTH,
    DatasetRecord,
    is_placeholder_name,
)
from db.models.dataset import Dataset
from db.repositories.dataset_repository import DatasetRepository
from db.repositories.errors import DuplicateExternalIdError
from db.repositories.types import DatasetCreate, DatasetMetadataUpdate


def to_record(dataset: Dataset) -> DatasetRecord:
    return DatasetRecord(
        id=dataset.id,
        external_id=dataset.external_id,
        name=dataset.name,
        name_ar=dataset.name_ar,
        category=dataset.category,
        sync_status=dataset.sync_status,
        is_active=dataset.is_active,
        source=dataset.source,
        source_url=dataset.source_url,
        has_metadata=dataset.metadata_json is not None,
        last_sync_at=dataset.last_sync_at,
    )


class SQLAlchemyDatasetStore(DatasetStore):
    """
    Commits after every write so one failing item never rolls back the others.
    """

    def __init__(self, *, session: Session) -> None:
        self._session = session
        self._repository = DatasetRepository(session)

    def find_by_external_id(self, external_id: str) -> DatasetRecord | None:
        dataset = self._repository.find_by_external_id(external_id)
        return to_record(dataset) if dataset is not None else None

    def create(self, fields: DatasetCreate) -> DatasetRecord:
        try:
            dataset = self._repository.create(fields)
            self._session.commit()
        except IntegrityError as exc:
            self._session.rollback()
            raise DuplicateExternalIdError(
                f"Dataset with external_id={fields.external_id} already exists"
            ) from exc
        except SQLAlchemyError:
            self._session.rollback()
            raise
        return to_record(dataset)

    def update_category(self, dataset_id: uuid.UUID, category: str) -> None:
        try:
            self._repository.update_category(dataset_id, category)
            self._session.commit()
        except SQLAlchemyError:
            self._session.rollback()
            raise

    def count_active(self, *, category: str | None = None) -> int:
        return self._repository.count_active(category=category)

    def count_by_sync_status(self) -> dict[str, int]:
        return self._repository.count_by_sync_status()

    def known_external_ids(self, *, category: str | None = None) -> set[str]:
        return self._repository.external_ids(category=category)

    def list_active(self, *, limit: int | None = None) -> list[DatasetRecord]:
        return [to_record(dataset) for dataset in self._repository.list_active(limit=limit)]

    def record_sync_success(self, dataset_id: uuid.UUID, update: DatasetMetadataUpdate) -> None:
        try:
            self._repository.apply_metadata(dataset_id, update)
            self._repository.mark_synced(dataset_id)
            self._session.commit()
        except SQLAlchemyError:
            self._session.rollback()
            raise

    def record_sync_failure(self, dataset_id: uuid.UUID, error_message: str) -> None:
        try:
            self._repository.mark_failed(dataset_id, error_message[:2000])
            self._session.commit()
        except SQLAlchemyError:
            self._session.rollback()
            raise

    def placeholder_candidates(self) -> list[DatasetRecord]:
        rows = self._repository.list_without_metadata(name_ar_prefix=PLACEHOLDER_PREFIX_AR)
        return [to_record(dataset) for dataset in rows if is_placeholder_name(dataset.name_ar)]

    def count_placeholders(self) -> int:
        """
        Counted in SQL by prefix and length; short ids are always lowercase hex.
        """

        return self._repository.count_without_metadata(
            name_ar_prefix=PLACEHOLDER_PREFIX_AR,
            name_ar_length=len(PLACEHOLDER_PREFIX_AR) + PLACEHOLDER_SHORT_ID_LENGTH,
        )

    def delete(self, dataset_ids: Sequence[uuid.UUID]) -> int:
        try:
            deleted = self._repository.delete_many(dataset_ids)
            self._session.commit()
        except SQLAlchemyError:
            self._session.rollback()
            raise
        return deleted
