"""
Storage interface the discovery and sync workflows write through.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from collections.abc import Sequence

from app.domain.discovery import DatasetRecord
from db.repositories.types import DatasetCreate, DatasetMetadataUpdate


class DatasetStore(ABC):
    """
    Dataset persistence abstraction; every write is durable when it returns.
    """

    @abstractmethod
    def find_by_external_id(self, external_id: str) -> DatasetRecord | None:
        raise NotImplementedError

    @abstractmethod
    def create(self, fields: DatasetCreate) -> DatasetRecord:
        """
        Insert one dataset.

        Raises DuplicateExternalIdError when external_id is already taken.
        """

    @abstractmethod
    def update_category(self, dataset_id: uuid.UUID, category: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def count_active(self, *, category: str | None = None) -> int:
        raise NotImplementedError

    @abstractmethod
    def count_by_sync_status(self) -> dict[str, int]:
        raise NotImplementedError

    @abstractmethod
    def known_external_ids(self, *, category: str | None = None) -> set[str]:
        raise NotImplementedError

    @abstractmethod
    def list_active(self, *, limit: int | None = None) -> list[DatasetRecord]:
        raise NotImplementedError

    @abstractmethod
    def record_sync_success(self, dataset_id: uuid.UUID, update: DatasetMetadataUpdate) -> None:
        """Apply catalog metadata and mark the dataset SYNCED."""

    @abstractmethod
    def record_sync_failure(self, dataset_id: uuid.UUID, error_message: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def placeholder_candidates(self) -> list[DatasetRecord]:
        """Datasets still carrying a placeholder name and no catalog metadata."""

    @abstractmethod
    def count_placeholders(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def delete(self, dataset_ids: Sequence[uuid.UUID]) -> int:
        raise NotImplementedError
