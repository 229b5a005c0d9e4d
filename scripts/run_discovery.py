"""
Run catalog discovery and dataset sync from CLI.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
from collections.abc import Sequence
from typing import Any

from app.services.discovery_service import DiscoveryService
from db.models.discovery_job import DiscoveryJob, DiscoveryJobType
from db.session import SessionLocal, dispose_engine


def _job_payload(job: DiscoveryJob) -> dict[str, Any]:
    return {
        "job_id": str(job.id),
        "job_type": job.job_type,
        "status": job.status,
        "result": job.result_payload,
        "error": job.error_message,
    }


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Discover and sync open-data catalog datasets.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    discover = subparsers.add_parser("discover", help="Crawl the catalog and register new datasets.")
    discover.add_argument("--full", action="store_true", help="Crawl every configured category.")

    add = subparsers.add_parser("add", help="Register dataset ids manually.")
    add.add_argument("dataset_ids", nargs="+", help="Catalog dataset UUIDs.")

    sync = subparsers.add_parser("sync", help="Run the metadata sync pass.")
    sync.add_argument("--limit", type=int, default=None, help="Optional cap on datasets synced.")

    subparsers.add_parser("full", help="Full discovery, registration, and metadata sync.")
    subparsers.add_parser("stats", help="Print discovery statistics.")

    category = subparsers.add_parser("category", help="Discover one category.")
    category.add_argument("label", help="Category label, slug, or English label.")

    cleanup = subparsers.add_parser("cleanup", help="List or delete placeholder-only datasets.")
    cleanup.add_argument("--apply", action="store_true", help="Delete instead of listing.")
    return parser


def run(args: argparse.Namespace, service: DiscoveryService) -> Any:
    if args.command == "discover":
        job_type = DiscoveryJobType.FULL_DISCOVERY if args.full else DiscoveryJobType.QUICK_DISCOVERY
        return _job_payload(service.run_job(job_type=job_type))
    if args.command == "category":
        return _job_payload(
            service.run_job(job_type=DiscoveryJobType.CATEGORY_DISCOVERY, category=args.label)
        )
    if args.command == "sync" and args.limit is None:
        return _job_payload(service.run_job(job_type=DiscoveryJobType.SYNC_ALL))

    with SessionLocal() as db:
        if args.command == "add":
            summary = service.add_datasets(db=db, dataset_ids=args.dataset_ids)
            return {
                "added": summary.created,
                "requested": len(args.dataset_ids),
                **{key: value for key, value in summary.as_counts().items() if key != "created"},
                "errors": [error.message for error in summary.errors],
            }
        if args.command == "sync":
            return service.sync_all(db=db, limit=args.limit).as_counts()
        if args.command == "full":
            return service.discover_and_sync(db=db, full=True).as_payload()
        if args.command == "stats":
            return service.stats(db=db)
        if args.command == "cleanup":
            if args.apply:
                return {"deleted": service.delete_placeholders(db=db)}
            candidates = service.placeholder_candidates(db=db)
            return {
                "count": len(candidates),
                "datasets": [
                    {"external_id": record.external_id, "name_ar": record.name_ar}
                    for record in candidates
                ],
            }
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").strip().upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    try:
        payload = run(args, DiscoveryService())
    finally:
        dispose_engine()

    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
