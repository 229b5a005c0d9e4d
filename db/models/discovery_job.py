"""
db/models/discovery_job.py

Discovery job model for fire-and-forget runs and the discovery log.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONDocument, TimestampMixin


class DiscoveryJobType:
    QUICK_DISCOVERY = "quick_discovery"
    FULL_DISCOVERY = "full_discovery"
    CATEGORY_DISCOVERY = "category_discovery"
    SYNC_ALL = "sync_all"


class DiscoveryJobStatus:
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class DiscoveryJob(Base, TimestampMixin):
    __tablename__ = "discovery_jobs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    job_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="quick_discovery, full_discovery, category_discovery, sync_all",
    )
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=DiscoveryJobStatus.PENDING,
    )
    request_payload: Mapped[dict[str, Any] | None] = mapped_column(JSONDocument, nullable=True)
    result_payload: Mapped[dict[str, Any] | None] = mapped_column(
        JSONDocument,
        nullable=True,
        comment="Aggregate counts reported when the run finished",
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_discovery_jobs_job_type", "job_type"),
        Index("ix_discovery_jobs_status", "status"),
        Index("ix_discovery_jobs_created_at", "created_at"),
    )
