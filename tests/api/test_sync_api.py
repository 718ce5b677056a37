"""Tests for the sync control endpoints."""

from fastapi.testclient import TestClient


class TestSyncHealth:
    """Tests for GET /sync/health."""

    def test_health_after_startup(self, client: TestClient) -> None:
        """Startup reconciliation syncs every demo product."""
        response = client.get("/sync/health")

        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "running"
        assert data["healthy"] is True
        assert data["stats"]["success_count"] == 4
        assert data["stats"]["reconciliation_runs"] == 1
        assert data["listeners_active"] == 1
        assert data["coverage"]["coverage"] == 1.0


class TestReconcile:
    """Tests for POST /sync/reconcile."""

    def test_reconcile_in_sync_catalog(self, client: TestClient) -> None:
        """A second pass finds nothing to change."""
        response = client.post("/sync/reconcile")

        assert response.status_code == 200
        data = response.json()
        assert data["total_products"] == 4
        assert data["unchanged"] == 4
        assert data["queued"] == 0
        assert data["errors"] == 0


class TestProductStatuses:
    """Tests for GET /sync/products."""

    def test_statuses_after_startup(self, client: TestClient) -> None:
        """Every demo product is synced, eligible and has an image on the way."""
        response = client.get("/sync/products")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 4
        assert data["synced"] == 4
        assert data["eligible"] == 4
        assert data["needs_images"] == 0
        first = data["items"][0]
        assert first["product_id"] == "PROD-001"
        assert first["sync_status"] == "synced"
        assert first["entry_count"] == 1
        assert first["entry_id"]
        assert first["suggested_price"] == "1020.00"
        assert first["eligibility_reasons"] == []
        assert first["image_status"] in {"placeholder", "has_real_image"}

    def test_empty_store(self, empty_client: TestClient) -> None:
        """No internal products gives an empty list."""
        response = empty_client.get("/sync/products")

        assert response.status_code == 200
        assert response.json() == {
            "items": [],
            "total": 0,
            "synced": 0,
            "eligible": 0,
            "needs_images": 0,
        }


class TestSyncProducts:
    """Tests for POST /sync/products."""

    def test_queue_products(self, client: TestClient) -> None:
        """Distinct ids are queued and accepted."""
        response = client.post(
            "/sync/products", json={"product_ids": ["PROD-001", "PROD-002", "PROD-001"]}
        )

        assert response.status_code == 202
        data = response.json()
        assert data["queued"] == 2
        assert data["queue_length"] == 2

    def test_empty_request_rejected(self, client: TestClient) -> None:
        """At least one product id is required."""
        response = client.post("/sync/products", json={"product_ids": []})

        assert response.status_code == 422

    def test_request_id_echoed_on_errors(self, client: TestClient) -> None:
        """Error bodies carry the correlation id."""
        response = client.post(
            "/sync/products",
            json={"product_ids": []},
            headers={"X-Request-ID": "req-123"},
        )

        assert response.headers["X-Request-ID"] == "req-123"
