"""
tests/test_discovery_router.py

HTTP contract of the /discovery admin endpoints.

The app under test mounts only the discovery router. Persistence is SQLite in
memory; the catalog is a scripted client.

Coverage
--------
- Bearer token checks: missing, invalid, non-admin
- add: empty list rejected, counts reported, malformed ids surfaced
- stats and categories payload shape
- discover-and-sync and discover-category responses
- sync/{id}: invalid id, upstream failure, success
- Background jobs: accepted, completed, listed, unknown id
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator

import jwt
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from app.api.routers import discovery_router
from app.config import AuthSettings, get_auth_settings
from app.services.discovery_service import DiscoveryService, get_discovery_service
from db.session import get_db
from tests.conftest import FakeCatalogClient, make_settings, package_payload, uid

SECRET = "router-test-secret-0123456789abcdef"
U1, U2 = uid(1), uid(2)


def _token(**claims: object) -> dict[str, str]:
    body = {"userId": "user-1", "email": "admin@example.com", "role": "ADMIN"}
    body.update(claims)
    return {"Authorization": f"Bearer {jwt.encode(body, SECRET, algorithm='HS256')}"}


ADMIN = _token()


@pytest.fixture()
def catalog() -> FakeCatalogClient:
    return FakeCatalogClient(
        make_settings(),
        direct={None: package_payload(U1, U2, titles={U1: "Population"})},
        metadata={U1: {"id": U1, "title": "Population", "title_ar": "السكان", "resources": []}},
    )


@pytest.fixture()
def client(session_factory: sessionmaker[Session], catalog: FakeCatalogClient) -> Iterator[TestClient]:
    service = DiscoveryService(
        settings=catalog.settings,
        client=catalog,
        session_factory=session_factory,
    )

    def _db() -> Iterator[Session]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app = FastAPI()
    app.include_router(discovery_router)
    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_discovery_service] = lambda: service
    app.dependency_overrides[get_auth_settings] = lambda: AuthSettings(jwt_secret=SECRET)
    with TestClient(app) as test_client:
        yield test_client


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class TestAuth:
    def test_missing_token(self, client: TestClient) -> None:
        response = client.get("/discovery/stats")
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    def test_invalid_token(self, client: TestClient) -> None:
        response = client.get("/discovery/stats", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_wrong_secret(self, client: TestClient) -> None:
        token = jwt.encode({"userId": "u", "role": "ADMIN"}, "another-secret-0123456789abcdefgh", algorithm="HS256")
        response = client.get("/discovery/stats", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_missing_user_claim(self, client: TestClient) -> None:
        token = jwt.encode({"role": "ADMIN"}, SECRET, algorithm="HS256")
        response = client.get("/discovery/stats", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_non_admin_role(self, client: TestClient) -> None:
        response = client.get("/discovery/stats", headers=_token(role="INVESTOR"))
        assert response.status_code == 403

    def test_role_is_case_insensitive(self, client: TestClient) -> None:
        response = client.get("/discovery/categories", headers=_token(role="admin"))
        assert response.status_code == 200


# ---------------------------------------------------------------------------
# Registration and reporting
# ---------------------------------------------------------------------------


class TestAddAndStats:
    def test_add_requires_ids(self, client: TestClient) -> None:
        response = client.post("/discovery/add", json={"datasetIds": []}, headers=ADMIN)
        assert response.status_code == 400

    def test_add_missing_body_field(self, client: TestClient) -> None:
        response = client.post("/discovery/add", json={}, headers=ADMIN)
        assert response.status_code == 400

    def test_add_reports_counts(self, client: TestClient) -> None:
        response = client.post(
            "/discovery/add",
            json={"datasetIds": [U1, U2.upper(), "bogus"]},
            headers=ADMIN,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["added"] == 2
        assert body["requested"] == 3
        assert body["reconciliation"]["failed"] == 1
        assert body["reconciliation"]["errors"][0]["externalId"] == "bogus"

        again = client.post("/discovery/add", json={"datasetIds": [U1]}, headers=ADMIN).json()
        assert again["added"] == 0
        assert again["reconciliation"]["skipped"] == 1

    def test_stats_shape(self, client: TestClient) -> None:
        client.post("/discovery/add", json={"datasetIds": [U1]}, headers=ADMIN)

        response = client.get("/discovery/stats", headers=ADMIN)

        assert response.status_code == 200
        body = response.json()
        assert body["totalKnown"] == 1
        assert body["datasets"] == {"total": 1, "synced": 0, "pending": 1, "failed": 0, "placeholders": 1}
        assert body["lastDiscovery"] is None
        assert body["availableCategories"] >= 20
        assert body["platformInfo"]["url"] == "https://portal.test"
        assert body["platformInfo"]["estimatedTotal"] == "15,500+"

    def test_categories(self, client: TestClient) -> None:
        body = client.get("/discovery/categories", headers=ADMIN).json()

        assert body["count"] == len(body["categories"])
        slugs = {category["slug"] for category in body["categories"]}
        assert {"economy", "area-and-maps"} <= slugs
        assert "labelEn" in body["categories"][0]


# ---------------------------------------------------------------------------
# Discovery and sync
# ---------------------------------------------------------------------------


class TestDiscoveryEndpoints:
    def test_discover_reports_new_ids(self, client: TestClient) -> None:
        body = client.get("/discovery/discover", headers=ADMIN).json()

        assert body["mode"] == "quick"
        assert body["total"] == 2
        assert body["newFound"] == 2
        assert body["newIds"] == [U1, U2]

    def test_discover_and_sync(self, client: TestClient) -> None:
        response = client.post("/discovery/discover-and-sync", headers=ADMIN)

        assert response.status_code == 200
        body = response.json()
        assert body["discovery"] == {"mode": "quick", "total": 2, "newFound": 2, "categoriesScanned": 0}
        assert body["added"] == 2
        assert body["sync"] == {"total": 2, "success": 1, "failed": 1}

        stats = client.get("/discovery/stats", headers=ADMIN).json()
        assert stats["datasets"]["synced"] == 1
        assert stats["datasets"]["failed"] == 1

    def test_discover_category_unknown(self, client: TestClient) -> None:
        response = client.post("/discovery/discover-category", json={"category": "nope"}, headers=ADMIN)
        assert response.status_code == 400

    def test_discover_category(self, client: TestClient, catalog: FakeCatalogClient) -> None:
        response = client.post("/discovery/discover-category", json={"category": "economy"}, headers=ADMIN)

        assert response.status_code == 200
        body = response.json()
        assert body["category"] == "الاقتصاد"
        assert body["before"] == 0
        assert body["after"] == body["reconciliation"]["created"]
        assert body["netChange"] == body["after"] - body["before"]
        assert ("api", "economy", None, 0) in catalog.calls

    def test_sync_one_invalid_id(self, client: TestClient) -> None:
        response = client.post("/discovery/sync/not-a-dataset", headers=ADMIN)
        assert response.status_code == 400

    def test_sync_one_upstream_failure(self, client: TestClient) -> None:
        response = client.post(f"/discovery/sync/{U2}", headers=ADMIN)
        assert response.status_code == 502
        assert response.json()["detail"] == "Catalog metadata not available"

    def test_sync_one_success(self, client: TestClient) -> None:
        response = client.post(f"/discovery/sync/{U1}", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["title"] == "السكان"
        assert response.json()["externalId"] == U1

    def test_sync_all_with_limit(self, client: TestClient) -> None:
        client.post("/discovery/add", json={"datasetIds": [U1, U2]}, headers=ADMIN)

        body = client.post("/discovery/sync-all", params={"limit": 1}, headers=ADMIN).json()

        assert body["total"] == 1
        assert len(body["results"]) == 1


# ---------------------------------------------------------------------------
# Background jobs
# ---------------------------------------------------------------------------


class TestJobs:
    def test_job_runs_in_background(self, client: TestClient) -> None:
        response = client.post("/discovery/jobs", json={"jobType": "quick_discovery"}, headers=ADMIN)

        assert response.status_code == 202
        job_id = response.json()["jobId"]

        job = client.get(f"/discovery/jobs/{job_id}", headers=ADMIN).json()
        assert job["status"] == "completed"
        assert job["resultPayload"]["newFound"] == 2
        assert job["resultPayload"]["added"] == 2

        stats = client.get("/discovery/stats", headers=ADMIN).json()
        assert stats["lastDiscovery"]["jobId"] == job_id

    def test_unsupported_job_type(self, client: TestClient) -> None:
        response = client.post("/discovery/jobs", json={"jobType": "delete_everything"}, headers=ADMIN)
        assert response.status_code == 400

    def test_category_job_requires_known_category(self, client: TestClient) -> None:
        missing = client.post("/discovery/jobs", json={"jobType": "category_discovery"}, headers=ADMIN)
        unknown = client.post(
            "/discovery/jobs",
            json={"jobType": "category_discovery", "category": "nope"},
            headers=ADMIN,
        )
        assert missing.status_code == 400
        assert unknown.status_code == 400

    def test_list_jobs_filters_by_type(self, client: TestClient) -> None:
        client.post("/discovery/jobs", json={"jobType": "sync_all"}, headers=ADMIN)
        client.post("/discovery/jobs", json={"jobType": "quick_discovery"}, headers=ADMIN)

        body = client.get("/discovery/jobs", params={"jobType": "sync_all"}, headers=ADMIN).json()

        assert [job["jobType"] for job in body["jobs"]] == ["sync_all"]
        assert body["jobs"][0]["status"] == "completed"

    def test_unknown_job(self, client: TestClient) -> None:
        response = client.get(f"/discovery/jobs/{uuid.uuid4()}", headers=ADMIN)
        assert response.status_code == 404
