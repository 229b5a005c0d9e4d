"""
Repository for discovery job lifecycle persistence and status lookup.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from db.models.discovery_job import DiscoveryJob, DiscoveryJobStatus


class DiscoveryJobRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_job(
        self,
        *,
        job_type: str,
        request_payload: dict[str, Any] | None = None,
    ) -> DiscoveryJob:
        job = DiscoveryJob(
            job_type=job_type,
            status=DiscoveryJobStatus.PENDING,
            request_payload=request_payload,
        )
        self._session.add(job)
        self._session.flush()
        self._session.refresh(job)
        return job

    def get_job(self, job_id: uuid.UUID) -> DiscoveryJob | None:
        return self._session.get(DiscoveryJob, job_id)

    def list_jobs(
        self,
        *,
        limit: int = 50,
        job_type: str | None = None,
        status: str | None = None,
    ) -> list[DiscoveryJob]:
        stmt: Select[tuple[DiscoveryJob]] = select(DiscoveryJob)
        if job_type:
            stmt = stmt.where(DiscoveryJob.job_type == job_type)
        if status:
            stmt = stmt.where(DiscoveryJob.status == status)

        stmt = stmt.order_by(DiscoveryJob.created_at.desc()).limit(max(1, limit))
        return list(self._session.scalars(stmt).all())

    def latest_completed(self, *, job_types: tuple[str, ...]) -> DiscoveryJob | None:
        stmt = (
            select(DiscoveryJob)
            .where(
                DiscoveryJob.job_type.in_(job_types),
                DiscoveryJob.status == DiscoveryJobStatus.COMPLETED,
            )
            .order_by(DiscoveryJob.completed_at.desc())
            .limit(1)
        )
        return self._session.scalars(stmt).first()

    def mark_running(self, *, job_id: uuid.UUID) -> DiscoveryJob | None:
        job = self.get_job(job_id)
        if job is None:
            return None
        job.status = DiscoveryJobStatus.RUNNING
        job.started_at = datetime.now(timezone.utc)
        job.completed_at = None
        job.error_message = None
        return job

    def mark_completed(
        self,
        *,
        job_id: uuid.UUID,
        result_payload: dict[str, Any] | None = None,
    ) -> DiscoveryJob | None:
        job = self.get_job(job_id)
        if job is None:
            return None
        job.status = DiscoveryJobStatus.COMPLETED
        job.completed_at = datetime.now(timezone.utc)
        job.result_payload = result_payload
        job.error_message = None
        return job

    def mark_failed(self, *, job_id: uuid.UUID, error_message: str) -> DiscoveryJob | None:
        job = self.get_job(job_id)
        if job is None:
            return None
        job.status = DiscoveryJobStatus.FAILED
        job.completed_at = datetime.now(timezone.utc)
        job.error_message = error_message
        return job
