"""
Admin endpoints for open-data catalog discovery and dataset sync.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.dependencies import require_admin
from app.schemas.discovery import (
    AddDatasetsRequest,
    AddDatasetsResponse,
    CategoryDiscoveryResponse,
    CategoryListResponse,
    CategoryResponse,
    DiscoverAndSyncRequest,
    DiscoverAndSyncResponse,
    DiscoverCategoryRequest,
    DiscoveryJobAcceptedResponse,
    DiscoveryJobListResponse,
    DiscoveryJobRequest,
    DiscoveryJobStatusResponse,
    DiscoveryResultResponse,
    DiscoveryStatsResponse,
    ReconcileSummaryResponse,
    SyncResultResponse,
    SyncSummaryResponse,
)
from app.services.discovery_service import (
    DiscoveryService,
    FastAPIBackgroundTaskExecutor,
    UnknownCategoryError,
    get_discovery_service,
)
from db.models.discovery_job import DiscoveryJobType
from db.session import get_db

router = APIRouter(
    prefix="/discovery",
    tags=["discovery"],
    dependencies=[Depends(require_admin)],
)

JOB_TYPES = {
    DiscoveryJobType.QUICK_DISCOVERY,
    DiscoveryJobType.FULL_DISCOVERY,
    DiscoveryJobType.CATEGORY_DISCOVERY,
    DiscoveryJobType.SYNC_ALL,
}


@router.get("/stats", response_model=DiscoveryStatsResponse)
def get_stats(
    db: Session = Depends(get_db),
    service: DiscoveryService = Depends(get_discovery_service),
) -> DiscoveryStatsResponse:
    return DiscoveryStatsResponse.model_validate(service.stats(db=db))


@router.get("/categories", response_model=CategoryListResponse)
def get_categories(
    service: DiscoveryService = Depends(get_discovery_service),
) -> CategoryListResponse:
    categories = [CategoryResponse.from_domain(category) for category in service.categories()]
    return CategoryListResponse(count=len(categories), categories=categories)


@router.get("/discover", response_model=DiscoveryResultResponse)
def discover(
    db: Session = Depends(get_db),
    service: DiscoveryService = Depends(get_discovery_service),
) -> DiscoveryResultResponse:
    result = service.discover(db=db, full=False)
    return DiscoveryResultResponse.from_domain(result, mode="quick")


@router.get("/discover-all", response_model=DiscoveryResultResponse)
def discover_all(
    db: Session = Depends(get_db),
    service: DiscoveryService = Depends(get_discovery_service),
) -> DiscoveryResultResponse:
    result = service.discover(db=db, full=True)
    return DiscoveryResultResponse.from_domain(result, mode="full")


@router.post("/discover-category", response_model=CategoryDiscoveryResponse)
def discover_category(
    payload: DiscoverCategoryRequest,
    db: Session = Depends(get_db),
    service: DiscoveryService = Depends(get_discovery_service),
) -> CategoryDiscoveryResponse:
    try:
        outcome = service.discover_category(db=db, label=payload.category)
    except UnknownCategoryError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return CategoryDiscoveryResponse(
        category=outcome.category.label,
        before=outcome.before,
        after=outcome.after,
        net_change=outcome.net_change,
        discovery=DiscoveryResultResponse.from_domain(outcome.discovery, mode="category"),
        reconciliation=ReconcileSummaryResponse.from_domain(outcome.reconciliation),
    )


@router.post("/discover-and-sync", response_model=DiscoverAndSyncResponse)
def discover_and_sync(
    payload: DiscoverAndSyncRequest | None = None,
    db: Session = Depends(get_db),
    service: DiscoveryService = Depends(get_discovery_service),
) -> DiscoverAndSyncResponse:
    full = payload.full_discovery if payload is not None else False
    summary = service.discover_and_sync(db=db, full=full)
    return DiscoverAndSyncResponse.model_validate(summary.as_payload())


@router.post("/full-discover-and-sync", response_model=DiscoverAndSyncResponse)
def full_discover_and_sync(
    db: Session = Depends(get_db),
    service: DiscoveryService = Depends(get_discovery_service),
) -> DiscoverAndSyncResponse:
    summary = service.discover_and_sync(db=db, full=True)
    return DiscoverAndSyncResponse.model_validate(summary.as_payload())


@router.post("/add", response_model=AddDatasetsResponse)
def add_datasets(
    payload: AddDatasetsRequest,
    db: Session = Depends(get_db),
    service: DiscoveryService = Depends(get_discovery_service),
) -> AddDatasetsResponse:
    if not payload.dataset_ids:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="datasetIds must be a non-empty list.",
        )

    summary = service.add_datasets(db=db, dataset_ids=payload.dataset_ids)
    return AddDatasetsResponse(
        added=summary.created,
        requested=len(payload.dataset_ids),
        reconciliation=ReconcileSummaryResponse.from_domain(summary),
    )


@router.post("/sync-all", response_model=SyncSummaryResponse)
def sync_all(
    limit: int | None = Query(default=None, ge=1, description="Optional cap on datasets synced"),
    db: Session = Depends(get_db),
    service: DiscoveryService = Depends(get_discovery_service),
) -> SyncSummaryResponse:
    return SyncSummaryResponse.from_domain(service.sync_all(db=db, limit=limit))


@router.post("/sync/{dataset_id}", response_model=SyncResultResponse)
def sync_one(
    dataset_id: str,
    db: Session = Depends(get_db),
    service: DiscoveryService = Depends(get_discovery_service),
) -> SyncResultResponse:
    try:
        result = service.sync_one(db=db, external_id=dataset_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=result.error or "Sync failed.",
        )
    return SyncResultResponse.from_domain(result)


@router.post(
    "/jobs",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=DiscoveryJobAcceptedResponse,
)
def trigger_job(
    payload: DiscoveryJobRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    service: DiscoveryService = Depends(get_discovery_service),
) -> DiscoveryJobAcceptedResponse:
    if payload.job_type not in JOB_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported job type: {payload.job_type}",
        )

    try:
        job = service.trigger_job(
            db=db,
            executor=FastAPIBackgroundTaskExecutor(background_tasks),
            job_type=payload.job_type,
            category=payload.category,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return DiscoveryJobAcceptedResponse(
        job_id=job.id,
        job_type=job.job_type,
        status=job.status,
        created_at=job.created_at,
    )


@router.get("/jobs", response_model=DiscoveryJobListResponse)
def list_jobs(
    job_type: str | None = Query(default=None, alias="jobType", description="Optional job type filter"),
    status_filter: str | None = Query(default=None, alias="status", description="Optional status filter"),
    limit: int = Query(default=50, ge=1, le=500, description="Max jobs returned"),
    db: Session = Depends(get_db),
    service: DiscoveryService = Depends(get_discovery_service),
) -> DiscoveryJobListResponse:
    jobs = service.list_jobs(db=db, limit=limit, job_type=job_type, status=status_filter)
    return DiscoveryJobListResponse(jobs=[DiscoveryJobStatusResponse.from_model(job) for job in jobs])


@router.get("/jobs/{job_id}", response_model=DiscoveryJobStatusResponse)
def get_job(
    job_id: UUID,
    db: Session = Depends(get_db),
    service: DiscoveryService = Depends(get_discovery_service),
) -> DiscoveryJobStatusResponse:
    job = service.get_job(db=db, job_id=job_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Discovery job not found: {job_id}",
        )
    return DiscoveryJobStatusResponse.from_model(job)
