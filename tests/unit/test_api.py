"""
Unit Tests - REST API
"""
import pytest
from fastapi.testclient import TestClient

from reconciler.serving.api import create_api_app
from reconciler.storage import CatalogStore, MemoryBackend


@pytest.fixture
def client() -> TestClient:
    """API client over an in-memory store"""
    return TestClient(create_api_app(store=CatalogStore(MemoryBackend())))


@pytest.fixture
def unified_client(client, sample_products, sample_compositions) -> TestClient:
    """API client with a stored catalog"""
    response = client.post("/catalog/unify", json={
        "products": sample_products,
        "compositions": sample_compositions,
    })
    assert response.status_code == 200
    return client


class TestHealth:
    """Tests for health endpoints"""

    def test_health(self, client):
        """Test health with an empty store"""
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["checks"]["store"]["catalog"] == "absent"
        assert "X-Request-ID" in response.headers

    def test_not_ready_without_catalog(self, client):
        """Test readiness needs a catalog"""
        assert client.get("/health/ready").status_code == 503

    def test_ready(self, unified_client):
        """Test readiness once unified"""
        assert unified_client.get("/health/ready").json() == {"status": "ready"}


class TestCatalogEndpoints:
    """Tests for catalog endpoints"""

    def test_unify(self, client, sample_products, sample_compositions):
        """Test unification response"""
        response = client.post("/catalog/unify", json={
            "products": sample_products,
            "compositions": {"COFFRETS": sample_compositions},
        })

        body = response.json()
        assert response.status_code == 200
        assert body["saved"] is True
        assert body["changed"] is True
        assert body["catalog"]["stats"]["composite"] == 2
        assert "warnings" not in body["catalog"]

    def test_unify_structural_error(self, client):
        """Test non-list products are a 422 with the offending shape"""
        response = client.post("/catalog/unify", json={"products": {"id": "1"}, "compositions": []})

        assert response.status_code == 422
        assert "'products' must be a list" in response.json()["message"]

    def test_get_catalog_missing(self, client):
        """Test 404 before any unification"""
        response = client.get("/catalog")

        assert response.status_code == 404
        assert response.json()["status"] == "error"

    def test_get_catalog(self, unified_client):
        """Test stored document"""
        body = unified_client.get("/catalog").json()

        assert [p["id"] for p in body["products"]] == ["1001", "1002", "1003", "2000", "9001"]

    def test_stats(self, unified_client):
        """Test catalog counts"""
        assert unified_client.get("/catalog/stats").json()["total"] == 5

    def test_status(self, unified_client, sample_compositions):
        """Test staleness endpoint"""
        current = unified_client.post("/catalog/status", json={"compositions": sample_compositions}).json()
        stale = unified_client.post("/catalog/status", json={"compositions": sample_compositions[:1]}).json()

        assert current["is_current"] is True
        assert stale["is_current"] is False
        assert stale["stored_fingerprint"] == current["current_fingerprint"]

    def test_workers_share_the_backend(self, sample_products, sample_compositions):
        """Test a worker serves and overwrites the catalog saved by another worker"""
        backend = MemoryBackend()
        worker_a = TestClient(create_api_app(store=CatalogStore(backend)))
        worker_b = TestClient(create_api_app(store=CatalogStore(backend)))
        payload = {"products": sample_products, "compositions": sample_compositions}

        assert worker_a.post("/catalog/unify", json=payload).status_code == 200
        assert worker_b.post("/catalog/unify", json={**payload, "compositions": []}).status_code == 200

        assert worker_a.get("/catalog/stats").json()["composite"] == 0
        response = worker_a.post("/catalog/unify", json=payload)
        assert response.status_code == 200
        assert response.json()["changed"] is True
        assert worker_b.get("/catalog/stats").json()["composite"] == 2

    def test_search(self, unified_client):
        """Test product search"""
        body = unified_client.get("/catalog/search", params={"q": "coffret", "composite_only": True}).json()

        assert body["total"] == 1
        assert body["items"][0]["id"] == "2000"


class TestSalesEndpoints:
    """Tests for sales endpoints"""

    def test_decompose(self, unified_client):
        """Test decomposition report"""
        lines = [
            {"product_id": "9001", "product_name": "DUO", "quantity": 2,
             "unit_price_incl": 95.0, "line_amount_incl": 190.0, "order_ref": "A"},
            {"product_id": "1001", "quantity": 1, "unit_price_incl": 8.0,
             "line_amount_incl": 8.0, "order_ref": "B"},
        ]

        response = unified_client.post("/sales/decompose", json={"lines": lines})

        body = response.json()
        assert response.status_code == 200
        assert body["stats"]["lines_after_decomposition"] == 4
        assert [l["line_kind"] for l in body["decomposed_lines"]] == [
            "composed", "cumulated", "cumulated", "original",
        ]
        assert body["decomposed_lines"][1]["quantity"] == 4

    def test_decompose_without_catalog(self, client):
        """Test 404 when nothing is stored"""
        response = client.post("/sales/decompose", json={"lines": []})

        assert response.status_code == 404

    def test_decompose_structural_error(self, unified_client):
        """Test non-list lines are a 422"""
        response = unified_client.post("/sales/decompose", json={"lines": "nope"})

        assert response.status_code == 422

    def test_decompose_statistics(self, unified_client):
        """Test statistics in the decomposition report"""
        lines = [
            {"product_id": "9001", "quantity": 2, "unit_price_incl": 95.0,
             "line_amount_incl": 190.0, "store": "Gassin"},
        ]

        body = unified_client.post("/sales/decompose", json={"lines": lines}).json()

        assert body["statistics"]["total_amount"] == 190.0
        assert body["statistics"]["by_store"] == [
            {"store": "Gassin", "quantity": 2.0, "amount": 190.0, "sale_count": 1},
        ]

    def test_merge(self, client):
        """Test merging needs no stored catalog"""
        line = {"date": "2024-06-15T10:00:00", "product_id": "1001", "quantity": 1,
                "unit_price_incl": 8.0, "line_amount_incl": 8.0}

        response = client.post("/sales/merge", json={
            "existing": [line],
            "incoming": [line, {**line, "date": "2024-07-01T10:00:00"}],
            "drop_duplicates": True,
        })

        body = response.json()
        assert response.status_code == 200
        assert body["merged_count"] == 2
        assert body["duplicates_removed"] == 1
        assert body["months"] == ["2024-06", "2024-07"]

    def test_merge_structural_error(self, client):
        """Test non-list imports are a 422"""
        response = client.post("/sales/merge", json={"incoming": "nope"})

        assert response.status_code == 422
