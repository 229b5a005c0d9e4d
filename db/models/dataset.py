"""
db/models/dataset.py

Dataset model: one open-data catalog entry known to the platform.

Rows are created the first time discovery sees an external identifier and are
updated by every later discovery or sync pass that references the same
identifier. The discovery workflow never deletes rows; placeholder cleanup is a
separate maintenance command.
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONDocument, TimestampMixin

DEFAULT_CATEGORY = "أخرى"
DEFAULT_SOURCE = "البيانات المفتوحة السعودية"


class DatasetSyncStatus:
    """Lifecycle of the downstream content sync for a dataset."""

    PENDING = "PENDING"
    SYNCED = "SYNCED"
    FAILED = "FAILED"


class Dataset(Base, TimestampMixin):
    """
    One dataset from the external open-data catalog.

    external_id is the catalog's identifier and the natural key used by
    discovery and reconciliation. name / name_ar start as placeholders derived
    from the identifier and are replaced once the metadata sync pass recovers
    a real title.
    """

    __tablename__ = "datasets"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    external_id: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True,
        unique=True,
        comment="Identifier assigned by the external catalog",
    )

    name: Mapped[str] = mapped_column(String(512), nullable=False)

    name_ar: Mapped[str] = mapped_column(String(512), nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    description_ar: Mapped[str | None] = mapped_column(Text, nullable=True)

    category: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default=DEFAULT_CATEGORY,
        comment="Label from the last discovery pass that claimed this dataset",
    )

    source: Mapped[str] = mapped_column(String(255), nullable=False, default=DEFAULT_SOURCE)

    source_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    columns: Mapped[list[Any]] = mapped_column(JSONDocument, nullable=False, default=list)

    resources: Mapped[list[Any]] = mapped_column(JSONDocument, nullable=False, default=list)

    data_preview: Mapped[list[Any]] = mapped_column(JSONDocument, nullable=False, default=list)

    metadata_json: Mapped[dict[str, Any] | None] = mapped_column(
        JSONDocument,
        nullable=True,
        comment="Raw catalog metadata captured by the last successful sync",
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    sync_status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=DatasetSyncStatus.PENDING,
        comment="PENDING -> SYNCED | FAILED",
    )

    sync_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    record_count: Mapped[int | None] = mapped_column(Integer, nullable=True)

    last_sync_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_datasets_category", "category"),
        Index("ix_datasets_sync_status", "sync_status"),
        Index("ix_datasets_category_active", "category", "is_active"),
    )

    def __repr__(self) -> str:
        return (
            f"<Dataset id={self.id} external_id={self.external_id!r} "
            f"category={self.category!r} sync_status={self.sync_status!r}>"
        )
