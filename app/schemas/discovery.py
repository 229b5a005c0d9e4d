"""
Schemas for dataset discovery and sync endpoints.

Field names are exposed in camelCase; requests accept either spelling.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.domain.discovery import (
    CatalogCategory,
    DatasetSyncResult,
    DatasetSyncSummary,
    DiscoveryResult,
    ReconcileSummary,
)
from db.models.discovery_job import DiscoveryJob, DiscoveryJobType


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DiscoverAndSyncRequest(CamelModel):
    full_discovery: bool = False


class DiscoverCategoryRequest(CamelModel):
    category: str = Field(min_length=1)


class AddDatasetsRequest(CamelModel):
    dataset_ids: list[str] = Field(default_factory=list)


class DiscoveryJobRequest(CamelModel):
    job_type: str = Field(
        default=DiscoveryJobType.QUICK_DISCOVERY,
        description="quick_discovery, full_discovery, category_discovery, sync_all",
    )
    category: str | None = None


class CategoryResponse(CamelModel):
    label: str
    slug: str
    label_en: str = ""

    @classmethod
    def from_domain(cls, category: CatalogCategory) -> "CategoryResponse":
        return cls(label=category.label, slug=category.slug, label_en=category.label_en)


class CategoryListResponse(CamelModel):
    count: int
    categories: list[CategoryResponse] = Field(default_factory=list)


class DiscoveryResultResponse(CamelModel):
    mode: str
    total: int
    new_found: int
    new_ids: list[str] = Field(default_factory=list)
    categories_scanned: int = 0
    steps: int = 0
    failed_steps: int = 0

    @classmethod
    def from_domain(cls, result: DiscoveryResult, *, mode: str) -> "DiscoveryResultResponse":
        return cls(
            mode=mode,
            total=result.total,
            new_found=len(result.new_ids),
            new_ids=list(result.new_ids),
            categories_scanned=result.categories_scanned,
            steps=result.steps,
            failed_steps=result.failed_steps,
        )


class ItemErrorResponse(CamelModel):
    external_id: str
    message: str


class ReconcileSummaryResponse(CamelModel):
    total: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[ItemErrorResponse] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, summary: ReconcileSummary) -> "ReconcileSummaryResponse":
        return cls(
            **summary.as_counts(),
            errors=[
                ItemErrorResponse(external_id=error.external_id, message=error.message)
                for error in summary.errors[:100]
            ],
        )


class AddDatasetsResponse(CamelModel):
    added: int
    requested: int
    reconciliation: ReconcileSummaryResponse


class CategoryDiscoveryResponse(CamelModel):
    category: str
    before: int
    after: int
    net_change: int
    discovery: DiscoveryResultResponse
    reconciliation: ReconcileSummaryResponse


class SyncResultResponse(CamelModel):
    external_id: str
    success: bool
    title: str | None = None
    resources: int = 0
    error: str | None = None

    @classmethod
    def from_domain(cls, result: DatasetSyncResult) -> "SyncResultResponse":
        return cls(
            external_id=result.external_id,
            success=result.success,
            title=result.title,
            resources=result.resources,
            error=result.error,
        )


class SyncSummaryResponse(CamelModel):
    total: int
    success: int
    failed: int
    results: list[SyncResultResponse] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, summary: DatasetSyncSummary) -> "SyncSummaryResponse":
        return cls(
            **summary.as_counts(),
            results=[SyncResultResponse.from_domain(result) for result in summary.results],
        )


class DiscoverySummaryResponse(CamelModel):
    mode: str
    total: int
    new_found: int
    categories_scanned: int = 0


class SyncCountsResponse(CamelModel):
    total: int = 0
    success: int = 0
    failed: int = 0


class DiscoverAndSyncResponse(CamelModel):
    discovery: DiscoverySummaryResponse
    added: int
    reconciliation: ReconcileSummaryResponse
    sync: SyncCountsResponse


class DatasetCountsResponse(CamelModel):
    total: int
    synced: int
    pending: int
    failed: int
    placeholders: int = 0


class PlatformInfoResponse(CamelModel):
    name: str
    url: str
    estimated_total: str


class DiscoveryStatsResponse(CamelModel):
    total_known: int
    datasets: DatasetCountsResponse
    last_discovery: dict[str, Any] | None = None
    available_categories: int
    platform_info: PlatformInfoResponse


class DiscoveryJobAcceptedResponse(CamelModel):
    job_id: UUID
    job_type: str
    status: str
    created_at: datetime


class DiscoveryJobStatusResponse(CamelModel):
    job_id: UUID
    job_type: str
    status: str
    created_at: datetime
    updated_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    request_payload: dict[str, Any] | None = None
    result_payload: dict[str, Any] | None = None
    error_message: str | None = None

    @classmethod
    def from_model(cls, job: DiscoveryJob) -> "DiscoveryJobStatusResponse":
        return cls(
            job_id=job.id,
            job_type=job.job_type,
            status=job.status,
            created_at=job.created_at,
            updated_at=job.updated_at,
            started_at=job.started_at,
            completed_at=job.completed_at,
            request_payload=job.request_payload,
            result_payload=job.result_payload,
            error_message=job.error_message,
        )


class DiscoveryJobListResponse(CamelModel):
    jobs: list[DiscoveryJobStatusResponse] = Field(default_factory=list)
