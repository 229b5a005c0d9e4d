"""
Discovery workflow service: crawl, register, sync, report, and background jobs.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Protocol

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session, sessionmaker

from app.discovery.client import CatalogClient
from app.discovery.config import DiscoverySettings, get_discovery_settings, load_categories
from app.discovery.extraction import normalize_dataset_id
from app.discovery.orchestrator import DiscoveryOrchestrator
from app.discovery.rate_limiter import HostRateLimiter
from app.discovery.storage import DatasetStore, SQLAlchemyDatasetStore
from app.domain.discovery import (
    CatalogCandidate,
    CatalogCategory,
    DatasetRecord,
    DatasetSyncResult,
    DatasetSyncSummary,
    DiscoverAndSyncSummary,
    DiscoveryResult,
    ItemResult,
    ReconcileSummary,
    ReconciliationError,
)
from app.services.dataset_sync_service import DatasetSyncService
from app.services.reconciliation_service import ReconciliationService
from db.models.dataset import DEFAULT_CATEGORY, DatasetSyncStatus
from db.models.discovery_job import DiscoveryJob, DiscoveryJobType
from db.repositories.discovery_job_repository import DiscoveryJobRepository

logger = logging.getLogger(__name__)

PLATFORM_NAME = "منصة البيانات المفتوحة السعودية"
PLATFORM_ESTIMATED_TOTAL = "15,500+"
DISCOVERY_JOB_TYPES = (
    DiscoveryJobType.QUICK_DISCOVERY,
    DiscoveryJobType.FULL_DISCOVERY,
    DiscoveryJobType.CATEGORY_DISCOVERY,
)


class DiscoveryTaskExecutor(Protocol):
    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        ...


class FastAPIBackgroundTaskExecutor:
    def __init__(self, background_tasks: BackgroundTasks) -> None:
        self._background_tasks = background_tasks

    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        self._background_tasks.add_task(task, *args, **kwargs)


class UnknownCategoryError(ValueError):
    """Raised when a category label is not in the configured catalog."""


@dataclass(frozen=True)
class CategoryDiscoveryOutcome:
    category: CatalogCategory
    before: int
    after: int
    discovery: DiscoveryResult
    reconciliation: ReconcileSummary

    @property
    def net_change(self) -> int:
        return self.after - self.before


class DiscoveryService:
    """
    Runs discovery workflows against the store bound to the caller's session.

    Workflow stages: discovering, adding new candidates, syncing (category
    claims of known candidates, then the metadata pass), done.
    """

    def __init__(
        self,
        *,
        settings: DiscoverySettings | None = None,
        client: CatalogClient | None = None,
        store_factory: Callable[[Session], DatasetStore] | None = None,
        session_factory: sessionmaker[Session] | None = None,
    ) -> None:
        self._settings = settings or get_discovery_settings()
        self._client = client
        self._rate_limiter = HostRateLimiter(
            rate_limit_per_second=self._settings.rate_limit_per_second
        )
        self._store_factory = store_factory or (lambda db: SQLAlchemyDatasetStore(session=db))
        if session_factory is None:
            from db.session import SessionLocal

            self._session_factory = SessionLocal
        else:
            self._session_factory = session_factory
        self._categories: list[CatalogCategory] | None = None

    def categories(self) -> list[CatalogCategory]:
        if self._categories is None:
            self._categories = load_categories(config_path=self._settings.categories_path)
        return list(self._categories)

    def find_category(self, label: str) -> CatalogCategory:
        wanted = label.strip()
        for category in self.categories():
            if wanted in {category.label, category.slug, category.label_en}:
                return category
        raise UnknownCategoryError(f"Unknown category: {label}")

    def _catalog_client(self) -> CatalogClient:
        """
        One client per workflow call, since a requests.Session is not thread-safe.

        Clients share one rate limiter, so per-host pacing holds across
        concurrent workflows. An injected client is reused as given.
        """

        if self._client is not None:
            return self._client
        return CatalogClient(settings=self._settings, rate_limiter=self._rate_limiter)

    def _orchestrator(self, store: DatasetStore) -> DiscoveryOrchestrator:
        return DiscoveryOrchestrator(client=self._catalog_client(), store=store)

    def _reconciler(self, store: DatasetStore) -> ReconciliationService:
        return ReconciliationService(store=store, settings=self._settings)

    def discover(self, *, db: Session, full: bool = False) -> DiscoveryResult:
        orchestrator = self._orchestrator(self._store_factory(db))
        if full:
            return orchestrator.discover_all(self.categories())
        return orchestrator.discover()

    def add_datasets(self, *, db: Session, dataset_ids: Sequence[str]) -> ReconcileSummary:
        """
        Register manually supplied external ids; malformed ids are reported as failed items.
        """

        if not dataset_ids:
            raise ValueError("dataset_ids must not be empty.")

        invalid: list[ItemResult] = []
        candidates: list[CatalogCandidate] = []
        for raw_id in dataset_ids:
            external_id = normalize_dataset_id(raw_id)
            if external_id is None:
                invalid.append(
                    ItemResult(
                        external_id=str(raw_id),
                        error=ReconciliationError(str(raw_id), "Not a dataset identifier"),
                    )
                )
                continue
            candidates.append(CatalogCandidate(external_id=external_id))

        summary = self._reconciler(self._store_factory(db)).reconcile(
            candidates,
            default_category=DEFAULT_CATEGORY,
        )
        return ReconcileSummary(items=tuple(invalid) + summary.items)

    def discover_category(self, *, db: Session, label: str) -> CategoryDiscoveryOutcome:
        category = self.find_category(label)
        store = self._store_factory(db)
        before = store.count_active(category=category.label)
        discovery = self._orchestrator(store).discover(category)
        reconciliation = self._reconciler(store).reconcile(
            discovery.candidates,
            default_category=category.label,
        )
        after = store.count_active(category=category.label)
        return CategoryDiscoveryOutcome(
            category=category,
            before=before,
            after=after,
            discovery=discovery,
            reconciliation=reconciliation,
        )

    def discover_and_add(
        self,
        *,
        db: Session,
        full: bool = False,
    ) -> tuple[DiscoveryResult, ReconcileSummary, ReconcileSummary]:
        """
        Crawl, register new candidates, and (full mode) re-claim categories of known ones.

        Returns (discovery, added, reconciliation).
        """

        store = self._store_factory(db)
        discovery = self.discover(db=db, full=full)
        reconciler = self._reconciler(store)

        added = ReconcileSummary()
        if discovery.new_ids:
            added = reconciler.reconcile(discovery.new_candidates(), default_category=DEFAULT_CATEGORY)

        reconciliation = ReconcileSummary()
        if full:
            reconciliation = reconciler.reconcile(
                discovery.known_candidates(),
                default_category=DEFAULT_CATEGORY,
            )
        return discovery, added, reconciliation

    def discover_and_sync(self, *, db: Session, full: bool = False) -> DiscoverAndSyncSummary:
        store = self._store_factory(db)
        mode = "full" if full else "quick"
        logger.info("Discover-and-sync started mode=%s", mode)

        discovery, added, reconciliation = self.discover_and_add(db=db, full=full)
        sync = DatasetSyncService(client=self._catalog_client(), store=store).sync_all()
        summary = DiscoverAndSyncSummary(
            mode=mode,
            discovery=discovery,
            added=added,
            reconciliation=reconciliation,
            sync=sync,
        )
        logger.info(
            "Discover-and-sync completed mode=%s new=%s added=%s synced=%s/%s",
            mode,
            len(discovery.new_ids),
            added.created,
            sync.success,
            sync.total,
        )
        return summary

    def sync_all(self, *, db: Session, limit: int | None = None) -> DatasetSyncSummary:
        sync = DatasetSyncService(client=self._catalog_client(), store=self._store_factory(db))
        return sync.sync_all(limit=limit)

    def sync_one(self, *, db: Session, external_id: str) -> DatasetSyncResult:
        normalized = normalize_dataset_id(external_id)
        if normalized is None:
            raise ValueError(f"Not a dataset identifier: {external_id}")
        sync = DatasetSyncService(client=self._catalog_client(), store=self._store_factory(db))
        return sync.sync_one(normalized)

    def stats(self, *, db: Session) -> dict[str, Any]:
        store = self._store_factory(db)
        by_status = store.count_by_sync_status()
        total = store.count_active()
        last_job = DiscoveryJobRepository(db).latest_completed(job_types=DISCOVERY_JOB_TYPES)
        last_discovery = None
        if last_job is not None:
            last_discovery = {
                "jobId": str(last_job.id),
                "jobType": last_job.job_type,
                "completedAt": last_job.completed_at.isoformat() if last_job.completed_at else None,
                "result": last_job.result_payload,
            }
        return {
            "totalKnown": total,
            "datasets": {
                "total": total,
                "synced": by_status.get(DatasetSyncStatus.SYNCED, 0),
                "pending": by_status.get(DatasetSyncStatus.PENDING, 0),
                "failed": by_status.get(DatasetSyncStatus.FAILED, 0),
                "placeholders": store.count_placeholders(),
            },
            "lastDiscovery": last_discovery,
            "availableCategories": len(self.categories()),
            "platformInfo": {
                "name": PLATFORM_NAME,
                "url": self._settings.portal_url,
                "estimatedTotal": PLATFORM_ESTIMATED_TOTAL,
            },
        }

    def placeholder_candidates(self, *, db: Session) -> list[DatasetRecord]:
        return self._store_factory(db).placeholder_candidates()

    def delete_placeholders(self, *, db: Session) -> int:
        """
        Hard-delete datasets that never received a real name or catalog metadata.
        """

        store = self._store_factory(db)
        candidates = store.placeholder_candidates()
        deleted = store.delete([record.id for record in candidates])
        logger.info("Deleted placeholder datasets count=%s", deleted)
        return deleted

    def trigger_job(
        self,
        *,
        db: Session,
        executor: DiscoveryTaskExecutor,
        job_type: str,
        category: str | None = None,
    ) -> DiscoveryJob:
        if job_type == DiscoveryJobType.CATEGORY_DISCOVERY:
            if not category:
                raise ValueError("category is required for category discovery jobs.")
            self.find_category(category)

        repository = DiscoveryJobRepository(db)
        with db.begin():
            job = repository.create_job(
                job_type=job_type,
                request_payload={"category": category} if category else {},
            )

        try:
            executor.submit(self._run_job, job.id, job_type, category)
        except Exception:
            with db.begin():
                repository.mark_failed(
                    job_id=job.id,
                    error_message=f"Failed to schedule {job_type} job.",
                )
            raise

        return job

    def get_job(self, *, db: Session, job_id: uuid.UUID) -> DiscoveryJob | None:
        return DiscoveryJobRepository(db).get_job(job_id)

    def list_jobs(
        self,
        *,
        db: Session,
        limit: int = 50,
        job_type: str | None = None,
        status: str | None = None,
    ) -> list[DiscoveryJob]:
        return DiscoveryJobRepository(db).list_jobs(limit=limit, job_type=job_type, status=status)

    def run_job(self, *, job_type: str, category: str | None = None) -> DiscoveryJob:
        """
        Create and run a job synchronously; used by the scheduler and CLI.
        """

        with self._session_factory() as db:
            job = DiscoveryJobRepository(db).create_job(
                job_type=job_type,
                request_payload={"category": category} if category else {},
            )
            db.commit()
            job_id = job.id

        self._run_job(job_id, job_type, category)

        with self._session_factory() as db:
            finished = DiscoveryJobRepository(db).get_job(job_id)
            if finished is None:
                raise RuntimeError(f"Discovery job not found: {job_id}")
            return finished

    def _run_job(self, job_id: uuid.UUID, job_type: str, category: str | None) -> None:
        with self._session_factory() as db:
            repository = DiscoveryJobRepository(db)
            try:
                running_job = repository.mark_running(job_id=job_id)
                if running_job is None:
                    raise RuntimeError(f"Discovery job not found: {job_id}")
                db.commit()

                result_payload = self._execute(db=db, job_type=job_type, category=category)

                completed_job = repository.mark_completed(job_id=job_id, result_payload=result_payload)
                if completed_job is None:
                    raise RuntimeError(f"Discovery job not found: {job_id}")
                db.commit()
            except Exception as exc:
                self._mark_job_failed(db=db, job_id=job_id, exc=exc)

    def _execute(self, *, db: Session, job_type: str, category: str | None) -> dict[str, Any]:
        if job_type in {DiscoveryJobType.QUICK_DISCOVERY, DiscoveryJobType.FULL_DISCOVERY}:
            full = job_type == DiscoveryJobType.FULL_DISCOVERY
            discovery, added, reconciliation = self.discover_and_add(db=db, full=full)
            return {
                "mode": "full" if full else "quick",
                "total": discovery.total,
                "newFound": len(discovery.new_ids),
                "categoriesScanned": discovery.categories_scanned,
                "added": added.created,
                "reconciliation": reconciliation.as_counts(),
            }
        if job_type == DiscoveryJobType.CATEGORY_DISCOVERY:
            outcome = self.discover_category(db=db, label=category or "")
            return {
                "category": outcome.category.label,
                "before": outcome.before,
                "after": outcome.after,
                "netChange": outcome.net_change,
                "discovered": outcome.discovery.total,
                "reconciliation": outcome.reconciliation.as_counts(),
            }
        if job_type == DiscoveryJobType.SYNC_ALL:
            return {"sync": self.sync_all(db=db).as_counts()}
        raise ValueError(f"Unsupported discovery job type: {job_type}")

    def _mark_job_failed(self, *, db: Session, job_id: uuid.UUID, exc: Exception) -> None:
        repository = DiscoveryJobRepository(db)
        error_message = f"{type(exc).__name__}: {exc}"
        logger.exception("Discovery job failed id=%s error=%s", job_id, error_message)
        try:
            db.rollback()
            failed_job = repository.mark_failed(job_id=job_id, error_message=error_message[:2000])
            if failed_job is None:
                logger.error("Unable to mark discovery job as failed because it was not found id=%s", job_id)
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Failed to persist failed discovery job state id=%s", job_id)


@lru_cache(maxsize=1)
def get_discovery_service() -> DiscoveryService:
    return DiscoveryService()
