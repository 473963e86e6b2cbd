"""API tests for the sync endpoints.

The use case dependencies are overridden with in-memory wiring, so no
database or workbook is needed.
"""

import pytest
from fastapi.testclient import TestClient

from src.phonefleet.app import app
from src.phonefleet.sync.adapters.field_mapper import SheetFieldMapper
from src.phonefleet.sync.api.dependencies import (
    get_sync_enrolled_use_case,
    get_sync_sims_use_case,
    get_sync_stock_use_case,
    get_sync_tickets_use_case,
)
from src.phonefleet.sync.domain.entities import EntityKind
from src.phonefleet.sync.use_cases.reconcile import BulkReconciler
from src.phonefleet.sync.use_cases.sync_enrolled import SyncEnrolledDevicesUseCase
from src.phonefleet.sync.use_cases.sync_sims import SyncSimsUseCase
from src.phonefleet.sync.use_cases.sync_stock import SyncStockUseCase
from src.phonefleet.sync.use_cases.sync_tickets import SyncTicketsUseCase
from tests.fakes import (
    InMemoryDistributorRepository,
    InMemoryPhoneModelRepository,
    InMemoryReconcileRepository,
    StaticSnapshotProvider,
)


@pytest.fixture
def repo():
    return InMemoryReconcileRepository()


@pytest.fixture
def provider():
    return StaticSnapshotProvider({})


@pytest.fixture
def client(repo, provider):
    distributors = InMemoryDistributorRepository(names=["ACME"])
    models = InMemoryPhoneModelRepository()
    mapper = SheetFieldMapper()

    app.dependency_overrides[get_sync_sims_use_case] = lambda: SyncSimsUseCase(
        BulkReconciler(repo), mapper, distributors, provider
    )
    app.dependency_overrides[get_sync_stock_use_case] = lambda: SyncStockUseCase(
        BulkReconciler(repo), mapper, distributors, models, provider
    )
    app.dependency_overrides[get_sync_enrolled_use_case] = lambda: SyncEnrolledDevicesUseCase(
        BulkReconciler(repo), mapper, provider
    )
    app.dependency_overrides[get_sync_tickets_use_case] = lambda: SyncTicketsUseCase(
        BulkReconciler(repo), mapper, provider
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestSyncEndpoints:
    """Tests for POST /api/sync/*."""

    def test_sims_partial_success_is_207(self, client):
        response = client.post(
            "/api/sync/sims",
            json={
                "sims": [
                    {"ICC": "1", "Empresa": "CLARO (ACME)"},
                    {"ICC": "2", "Empresa": "BadFormat"},
                    {"ICC": "3", "Empresa": "MOVISTAR (Beta)"},
                ]
            },
        )

        assert response.status_code == 207
        body = response.json()
        assert body["processed"] == 2
        assert body["errors"] == 1
        assert body["success"] is False
        assert body["createdDistributors"] == 1
        assert body["details"]["errors"][0]["record"]["icc"] == "2"

    def test_clean_run_is_200(self, client):
        response = client.post(
            "/api/sync/tickets",
            json={"records": [{"Key": "SUP-1", "Title": "Entrega", "Label": "ASG-CEL"}]},
        )

        assert response.status_code == 200
        assert response.json()["created"] == 1
        assert "details" not in response.json()

    def test_stock_reports_catalog_counts(self, client):
        response = client.post(
            "/api/sync/stock",
            json={"devices": [{"IMEI": "356", "Modelo": "Samsung A15", "Distribuidora": "ACME"}]},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["createdModels"] == 1
        assert body["createdDistributors"] == 0

    def test_empty_body_reads_snapshot(self, client, provider, repo):
        provider.rows[EntityKind.ENROLLED] = [{"Device Name": "CEL-1", "IMEI": "1"}]

        response = client.post("/api/sync/enrolled")

        assert response.status_code == 200
        assert provider.requested == [EntityKind.ENROLLED]
        assert repo.active_keys(EntityKind.ENROLLED) == {"1"}

    def test_no_input_is_400(self, client):
        response = client.post("/api/sync/sims", json={})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["processed"] == 0
        assert "error" in body

    def test_fatal_error_is_500_and_sanitized(self, client, repo):
        async def broken_snapshot(kind):
            raise RuntimeError("could not reach postgresql://fleet:secret@db:5432/fleet")

        repo.snapshot = broken_snapshot

        response = client.post(
            "/api/sync/sims",
            json={"sims": [{"ICC": "1", "Empresa": "CLARO (ACME)"}]},
        )

        assert response.status_code == 500
        error = response.json()["error"]
        assert "[DATABASE_URL]" in error
        assert "secret" not in error


class TestAppEndpoints:
    def test_root(self):
        response = TestClient(app).get("/")

        assert response.status_code == 200
        assert response.json()["name"] == "Phone Fleet API"

    def test_health_without_pool_is_503(self):
        response = TestClient(app).get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"
