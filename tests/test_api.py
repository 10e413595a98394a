"""API tests: response envelopes, parameter handling and error mapping."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from dropiq.api.deps import get_database, get_enrichment_service, get_search_service
from dropiq.errors import EnrichmentError, InvalidRetailerError, SearchError
from dropiq.main import app
from dropiq.search.keywords import Classification
from dropiq.search.service import SearchOutcome
from dropiq.search.spelling import Correction

PRODUCT = {
    "id": "0b6f4d3c-6c1b-4c53-9a7e-1f0e2f7a9b11",
    "product_name": "Galaxy Buds FE",
    "brand": "Samsung",
    "category": "earbuds",
    "price_inr": 6999.0,
    "rating": 4.4,
    "retailer_name": "Samsung",
}


@pytest.fixture
def search_service():
    service = MagicMock()
    service.search_products = AsyncMock(
        return_value=SearchOutcome(
            products=[PRODUCT],
            total_matches=1,
            correction=Correction(original="erbuds", normalized="erbuds", corrected="earbuds", static_applied=True),
            classification=Classification(categories=("earbuds",)),
        )
    )
    service.history.recent = AsyncMock(return_value=[{"search_query": "earbuds", "search_count": 3}])
    service.history.popular = AsyncMock(return_value=[{"search_query": "earbuds", "search_count": 3}])
    service.history.clear = AsyncMock(return_value=4)
    return service


@pytest.fixture
def enrichment_service():
    return MagicMock()


@pytest.fixture
def client(search_service, enrichment_service):
    async def override_get_database():
        yield MagicMock()

    app.dependency_overrides[get_search_service] = lambda: search_service
    app.dependency_overrides[get_enrichment_service] = lambda: enrichment_service
    app.dependency_overrides[get_database] = override_get_database
    # No context manager: skip the lifespan, nothing here touches the database
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealth:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "DropIQ API is running"
        assert data["timestamp"].endswith("Z")


class TestSearchEndpoint:
    """GET /api/products/search"""

    def test_envelope(self, client, search_service):
        response = client.get("/api/products/search", params={"q": "erbuds", "minPrice": "1000", "sortBy": "price_asc"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["count"] == 1
        assert data["filters"]["searchTerm"] == "erbuds"
        assert data["filters"]["correctedTerm"] == "earbuds"
        assert data["filters"]["sortBy"] == "price_asc"
        assert data["products"][0]["product_name"] == "Galaxy Buds FE"

        filters = search_service.search_products.await_args.args[0]
        assert filters.search_term == "erbuds"
        assert filters.min_price == 1000
        assert filters.retailer is None

    def test_limit_is_clamped(self, client, search_service):
        client.get("/api/products/search", params={"limit": 100000})
        filters = search_service.search_products.await_args.args[0]
        assert filters.limit <= 100000
        assert filters.limit < 100000

    def test_negative_price_rejected(self, client):
        response = client.get("/api/products/search", params={"minPrice": "-5"})
        assert response.status_code == 422

    def test_invalid_retailer(self, client, search_service):
        search_service.search_products.side_effect = InvalidRetailerError("Unknown retailer: 'walmart'")

        response = client.get("/api/products/search", params={"retailer": "walmart"})

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "error": "Invalid retailer. Must be: amazon, flipkart, samsung, or sony",
        }

    def test_search_failure(self, client, search_service):
        search_service.search_products.side_effect = SearchError("connection reset")

        response = client.get("/api/products/search", params={"q": "earbuds"})

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "error": "Failed to search products",
            "message": "connection reset",
        }


class TestHistoryEndpoints:
    def test_search_history(self, client):
        data = client.get("/api/products/search-history").json()
        assert data == {"success": True, "count": 1, "history": [{"search_query": "earbuds", "search_count": 3}]}

    def test_popular_searches(self, client, search_service):
        data = client.get("/api/products/popular-searches", params={"limit": 5}).json()
        assert data["searches"][0]["search_query"] == "earbuds"
        search_service.history.popular.assert_awaited_once_with(5)

    def test_clear_history(self, client):
        response = client.delete("/api/products/search-history")
        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_history_failure(self, client, search_service):
        search_service.history.recent.side_effect = RuntimeError("db down")

        response = client.get("/api/products/search-history")

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to fetch search history"

    def test_frequent_searches(self, client):
        data = client.get("/api/products/frequent-searches").json()
        assert data["success"] is True
        assert "earbuds" in data["searches"]


class TestProductEndpoints:
    def test_unknown_product(self, client):
        response = client.get("/api/products/not-a-uuid")
        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Product not found"}

    def test_recommendations(self, client, enrichment_service):
        enrichment_service.get_recommendations = AsyncMock(
            return_value={
                "success": True,
                "product_id": PRODUCT["id"],
                "product_name": "Galaxy Buds FE",
                "recommendations": [],
                "cached": False,
                "message": "No recommendations available",
            }
        )

        response = client.get(f"/api/products/samsung/{PRODUCT['id']}/recommendations")

        assert response.status_code == 200
        assert response.json()["message"] == "No recommendations available"
        enrichment_service.get_recommendations.assert_awaited_once_with("samsung", PRODUCT["id"])

    def test_recommendations_invalid_retailer(self, client, enrichment_service):
        enrichment_service.get_recommendations = AsyncMock(side_effect=InvalidRetailerError())

        response = client.get(f"/api/products/walmart/{PRODUCT['id']}/recommendations")

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_price_comparison_provider_failure(self, client, enrichment_service):
        enrichment_service.get_price_comparisons = AsyncMock(side_effect=EnrichmentError("Sovrn returned 503"))

        response = client.get(f"/api/products/amazon/{PRODUCT['id']}/price-comparisons")

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to fetch enrichment data"
