"""Tests for the HTTP API."""

from app.config import settings


class TestAPI:
    """Service endpoints."""

    def test_root_endpoint(self, client):
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert "message" in data
        assert data["version"] == settings.API_VERSION

    def test_health_check(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["datastore_status"] == "healthy"
        assert data["active_plan_count"] == 3


class TestFareQuoteAPI:

    def test_quote(self, client):
        response = client.post("/api/fare-quote", json={"distance_km": 5, "service_type": "food"})
        assert response.status_code == 200
        data = response.json()
        assert data["quote"]["totalFare"] == 100
        assert data["quote"]["serviceType"] == "food"
        assert data["quote"]["surgeMultiplier"] == 1.0
        assert data["quote"]["isPeakHour"] is False
        assert data["quote"]["breakdown"] == {"base": 50, "distanceCharge": 45, "minimumApplied": False}
        assert data["quoteToken"]
        assert data["quoteId"]
        assert data["expiresAt"]

    def test_quote_minimum_fare(self, client):
        response = client.post("/api/fare-quote", json={"distance_km": 0, "service_type": "food"})
        assert response.status_code == 200
        assert response.json()["quote"]["totalFare"] == 80
        assert response.json()["quote"]["breakdown"]["minimumApplied"] is True

    def test_negative_distance(self, client):
        response = client.post("/api/fare-quote", json={"distance_km": -1, "service_type": "food"})
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "invalid_input"

    def test_unknown_service_type(self, client):
        response = client.post("/api/fare-quote", json={"distance_km": 3, "service_type": "bike"})
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "invalid_input"

    def test_plan_not_found(self, client):
        assert client.delete("/api/pricing-plans/parcel").status_code == 200
        response = client.post("/api/fare-quote", json={"distance_km": 3, "service_type": "parcel"})
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "plan_not_found"

    def test_batch_quotes(self, client):
        payload = {"requests": [
            {"distance_km": 5, "service_type": "food"},
            {"distance_km": -2, "service_type": "food"},
            {"distance_km": 10, "service_type": "grocery"},
        ]}
        response = client.post("/api/fare-quotes", json=payload)
        assert response.status_code == 200
        data = response.json()
        assert data[0]["quote"]["totalFare"] == 100
        assert data[1]["quote"] is None
        assert data[1]["failure"]["code"] == "invalid_input"
        assert data[2]["quote"]["totalFare"] == 210

    def test_batch_limit(self, client):
        payload = {"requests": [
            {"distance_km": 1, "service_type": "food"}
            for _ in range(settings.MAX_QUOTES_PER_REQUEST + 1)
        ]}
        response = client.post("/api/fare-quotes", json=payload)
        assert response.status_code == 422

    def test_batch_empty(self, client):
        response = client.post("/api/fare-quotes", json={"requests": []})
        assert response.status_code == 422


class TestQuoteVerificationAPI:

    def _quote(self, client, distance_km=5):
        return client.post(
            "/api/fare-quote", json={"distance_km": distance_km, "service_type": "food"}
        ).json()

    def test_verify_valid(self, client):
        quote = self._quote(client)
        response = client.post(
            "/api/quotes/verify", json={"quote_token": quote["quoteToken"], "fare": 100}
        )
        assert response.status_code == 200
        assert response.json()["valid"] is True

    def test_verify_tampered_fare(self, client):
        quote = self._quote(client)
        response = client.post(
            "/api/quotes/verify", json={"quote_token": quote["quoteToken"], "fare": 50}
        )
        data = response.json()
        assert data["valid"] is False
        assert data["reason"] == "fare_mismatch"

    def test_verify_after_plan_update(self, client):
        quote = self._quote(client)
        client.put("/api/pricing-plans/food", json={
            "base_fare": 70, "base_distance_km": 2, "per_km_rate": 15, "minimum_fare": 80,
        })
        data = client.post(
            "/api/quotes/verify", json={"quote_token": quote["quoteToken"], "fare": 100}
        ).json()
        assert data["valid"] is False
        assert data["reason"] == "plan_changed"
        assert data["expected_fare"] == 120


class TestPricingPlanAPI:

    def test_list_plans(self, client):
        response = client.get("/api/pricing-plans")
        assert response.status_code == 200
        service_types = [plan["service_type"] for plan in response.json()]
        assert service_types == ["food", "grocery", "parcel"]

    def test_get_plan(self, client):
        response = client.get("/api/pricing-plans/food")
        assert response.status_code == 200
        assert response.json()["base_fare"] == 50

    def test_get_unknown_service_type(self, client):
        assert client.get("/api/pricing-plans/bike").status_code == 422

    def test_update_invalidates_cache(self, client):
        # Warm the cache
        assert self._total(client, 5) == 100
        response = client.put("/api/pricing-plans/food", json={
            "base_fare": 50, "base_distance_km": 2, "per_km_rate": 25, "minimum_fare": 80,
        })
        assert response.status_code == 200
        assert response.json()["per_km_rate"] == 25
        assert self._total(client, 5) == 130

    def test_update_rejects_negative_values(self, client):
        response = client.put("/api/pricing-plans/food", json={
            "base_fare": -1, "base_distance_km": 2, "per_km_rate": 15, "minimum_fare": 80,
        })
        assert response.status_code == 422

    def test_update_rejects_infinite_rate(self, client):
        response = client.put(
            "/api/pricing-plans/food",
            content='{"base_fare": 50, "base_distance_km": 2, "per_km_rate": Infinity, "minimum_fare": 80}',
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 422
        assert client.get("/api/pricing-plans/food").json()["per_km_rate"] == 15
        assert self._total(client, 0) == 80

    def test_deactivate_and_reactivate(self, client):
        assert client.delete("/api/pricing-plans/grocery").status_code == 200
        assert client.get("/api/pricing-plans/grocery").status_code == 404
        response = client.put("/api/pricing-plans/grocery", json={
            "base_fare": 80, "base_distance_km": 3, "per_km_rate": 18, "minimum_fare": 120,
        })
        assert response.status_code == 200
        assert self._total(client, 10, "grocery") == 210

    def _total(self, client, distance_km, service_type="food"):
        response = client.post(
            "/api/fare-quote", json={"distance_km": distance_km, "service_type": service_type}
        )
        return response.json()["quote"]["totalFare"]
