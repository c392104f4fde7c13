"""
Integration tests for Quality API

Exercises the HTTP layer with the engine, rule store and statistics service
replaced by in-memory collaborators.
"""
import pytest
from fastapi.testclient import TestClient

from catalog_quality.quality.collaborators import CustomRuleOutcome
from catalog_quality.services.quality_engine import get_quality_engine
from catalog_quality.services.quality_stats import get_quality_stats_service
from catalog_quality.services.rule_store import get_rule_store
from main import app


class StaticRuleStore:
    def __init__(self, rules):
        self.rules = rules

    async def list_active_rules(self):
        return list(self.rules)


class StaticStatsService:
    async def get_product_history(self, product_id, page=1, page_size=20):
        if product_id != "5f0c7d4e-8a4b-4c53-9d35-2a2f1f0e8b11":
            return None
        return {
            "product_id": product_id,
            "page": page,
            "page_size": page_size,
            "total": 1,
            "history": [{"overall_score": 75}],
            "summary": {"average_score": 75.0, "latest_score": 75, "trend": "stable", "data_points": 1},
        }

    async def get_dashboard_stats(self, days=30, top_issues=10):
        return {"products_evaluated": 2, "average_score": 87.5, "days": days, "top_issues": []}


@pytest.fixture
def rules(make_rule):
    return [
        make_rule("REQUIRED", field="name", code="name_required"),
        make_rule("MIN_LENGTH", field="description", severity="WARNING",
                  parameters={"min": 120}, code="description_min_length"),
        make_rule("RANGE", field="price", parameters={"min": 0.01, "max": 999999}, code="price_range"),
        make_rule("MAX_LENGTH", field="meta_title", parameters={"max": "sixty"}, code="broken_rule"),
    ]


@pytest.fixture
def client(make_engine, make_custom_executor, rules, widget):
    engine = make_engine(
        rules=rules[:3],
        products=[widget],
        custom_executor=make_custom_executor(CustomRuleOutcome(passed=True)),
    )
    app.dependency_overrides[get_quality_engine] = lambda: engine
    app.dependency_overrides[get_rule_store] = lambda: StaticRuleStore(rules)
    app.dependency_overrides[get_quality_stats_service] = lambda: StaticStatsService()

    # No context manager: the lifespan would start the scheduler
    yield TestClient(app)

    app.dependency_overrides.clear()


class TestValidateProduct:
    """Test GET /api/v1/quality/validate/product/{id}"""

    def test_report(self, client):
        response = client.get("/api/v1/quality/validate/product/p-1")

        assert response.status_code == 200
        data = response.json()
        assert data["product_sku"] == "WID-1"
        assert data["overall_score"] == 75
        assert data["error_count"] == 1
        assert data["warning_count"] == 1
        assert [r["rule_code"] for r in data["results"]] == [
            "name_required", "description_min_length", "price_range"
        ]
        assert data["results"][2]["severity"] == "ERROR"
        assert data["suggestions"][0]["type"] == "ADJUST_VALUE"
        assert data["warnings"] == []

    def test_channel_query_enables_channel_rules(self, make_engine, make_rule, widget):
        rules = [make_rule("REQUIRED", field="brand", channel_id="web", code="web_brand")]
        app.dependency_overrides[get_quality_engine] = lambda: make_engine(rules=rules, products=[widget])
        try:
            client = TestClient(app)
            plain = client.get("/api/v1/quality/validate/product/p-1").json()
            on_web = client.get("/api/v1/quality/validate/product/p-1", params={"channel_id": "web"}).json()
        finally:
            app.dependency_overrides.clear()

        assert plain["results"] == []
        assert [r["rule_code"] for r in on_web["results"]] == ["web_brand"]
        assert on_web["error_count"] == 1

    def test_unknown_product(self, client):
        response = client.get("/api/v1/quality/validate/product/nope")

        assert response.status_code == 404

    def test_provider_failure(self, make_engine):
        class BrokenProvider:
            async def get_product(self, product_id):
                raise OSError("connection refused")

        app.dependency_overrides[get_quality_engine] = lambda: make_engine(provider=BrokenProvider())
        try:
            response = TestClient(app).get("/api/v1/quality/validate/product/p-1")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 502
        assert "connection refused" in response.json()["detail"]


class TestValidateProducts:
    """Test POST /api/v1/quality/validate/products"""

    def test_batch(self, client):
        response = client.post(
            "/api/v1/quality/validate/products",
            json={"product_ids": ["p-1", "ghost"], "concurrency": 2},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert data["evaluated"] == 1
        assert data["failed"] == 1
        assert data["reports"][0]["product_id"] == "p-1"
        assert data["errors"][0]["product_id"] == "ghost"
        assert data["errors"][0]["error"]["error_type"] == "ProductNotFoundError"

    def test_batch_channel(self, make_engine, make_rule, widget):
        rules = [make_rule("REQUIRED", field="brand", channel_id="web", code="web_brand")]
        app.dependency_overrides[get_quality_engine] = lambda: make_engine(rules=rules, products=[widget])
        try:
            response = TestClient(app).post(
                "/api/v1/quality/validate/products",
                json={"product_ids": ["p-1"], "channel_id": "web"},
            )
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 200
        assert response.json()["reports"][0]["error_count"] == 1

    def test_empty_batch_rejected(self, client):
        response = client.post("/api/v1/quality/validate/products", json={"product_ids": []})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_invalid_concurrency_rejected(self, client):
        response = client.post(
            "/api/v1/quality/validate/products",
            json={"product_ids": ["p-1"], "concurrency": 0},
        )

        assert response.status_code == 422


class TestRuleCatalog:
    """Test read-only rule endpoints"""

    def test_active_rules(self, client):
        response = client.get("/api/v1/quality/rules/active")

        assert response.status_code == 200
        data = response.json()
        assert len(data) == 4
        assert data[1]["parameters"] == {"min": 120}
        assert data[2]["parameters"] == {"min": "0.01", "max": "999999"}
        assert data[3]["parameters_valid"] is False
        assert all(rule["parameters_valid"] for rule in data[:3])

    def test_rule_types(self, client):
        data = client.get("/api/v1/quality/rule-types").json()

        assert len(data) == 10
        assert {"value": "REQUIRED", "label": "Required field"} in data

    def test_severities(self, client):
        data = client.get("/api/v1/quality/severities").json()

        assert [item["value"] for item in data] == ["ERROR", "WARNING", "INFO"]

    def test_formats(self, client):
        data = client.get("/api/v1/quality/formats").json()

        assert "email" in data


class TestHistoryAndDashboard:
    """Test validation log read endpoints"""

    def test_history(self, client):
        response = client.get(
            "/api/v1/quality/history/product/5f0c7d4e-8a4b-4c53-9d35-2a2f1f0e8b11",
            params={"page": 1, "page_size": 10},
        )

        assert response.status_code == 200
        assert response.json()["page_size"] == 10

    def test_history_unknown_product(self, client):
        response = client.get("/api/v1/quality/history/product/not-a-product")

        assert response.status_code == 404

    def test_dashboard(self, client):
        response = client.get("/api/v1/quality/dashboard", params={"days": 7})

        assert response.status_code == 200
        assert response.json()["days"] == 7

    def test_dashboard_rejects_bad_window(self, client):
        response = client.get("/api/v1/quality/dashboard", params={"days": 0})

        assert response.status_code == 422


class TestHealth:
    def test_health(self, client):
        data = client.get("/health").json()

        assert data["status"] == "ok"
        assert data["service"] == "catalog-quality-api"
