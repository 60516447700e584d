"""
API endpoint tests
"""

import pytest
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from api.main import app
from api.dependencies import get_db, get_scheduler
from ingestion.extractors.facebook import FacebookAdapter
from ingestion.extractors.shopee import ShopeeAdapter
from ingestion.extractors.tiktok import TikTokAdapter
from ingestion.runner import PlatformPipeline
from ingestion.scheduler import MultiPlatformScheduler
from models.base import ETLStatus, Platform
from models.checkpoint import ETLCheckpoint
from tests.fakes import FakePlatformClient, InMemoryEntityStore
from tests.payloads import make_facebook_order, make_shopee_order, make_tiktok_order


@pytest.fixture
def scheduler(test_settings, memory_db):
    settings = test_settings.model_copy(update={"FACEBOOK_ENABLED": False})
    sources = {
        "SHOPEE": (ShopeeAdapter, FakePlatformClient([make_shopee_order(order_id="S1")])),
        "TIKTOK": (TikTokAdapter, FakePlatformClient([make_tiktok_order(order_id="T1")], fail_on_page=1)),
        "FACEBOOK": (FacebookAdapter, FakePlatformClient([make_facebook_order(order_id="F1")])),
    }
    pipelines = {
        name: PlatformPipeline(adapter_cls(client), InMemoryEntityStore(memory_db), settings=settings)
        for name, (adapter_cls, client) in sources.items()
    }
    return MultiPlatformScheduler(pipelines, settings=settings)


@pytest.fixture
def client(scheduler):
    """Test client without startup hooks; the scheduler is injected"""
    app.dependency_overrides[get_scheduler] = lambda: scheduler

    # Startup is not run, so no real scheduler or database is created
    yield TestClient(app)

    app.dependency_overrides.clear()


def test_root_lists_endpoints(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["endpoints"]["status"] == "/api/etl/status"
    assert response.json()["endpoints"]["api_test"] == "/api/etl/{platform}/api-test"
    assert "X-Request-ID" in response.headers


# ============================================================================
# Triggers
# ============================================================================

def test_trigger_platform_success(client, memory_db):
    response = client.post("/api/etl/shopee/trigger")

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["result"]["platform"] == "SHOPEE"
    assert data["result"]["orders_processed"] == 1
    assert len(memory_db.rows("order")) == 1


def test_trigger_platform_failure_is_500(client):
    response = client.post("/api/etl/TIKTOK/trigger")

    assert response.status_code == 500
    data = response.json()
    assert data["success"] is False
    assert "Simulated network failure" in data["result"]["error_message"]


def test_trigger_unknown_platform_is_404(client):
    response = client.post("/api/etl/amazon/trigger")
    assert response.status_code == 404


def test_trigger_disabled_platform_is_400(client):
    response = client.post("/api/etl/facebook/trigger")
    assert response.status_code == 400


def test_trigger_all_reports_partial_failure(client):
    response = client.post("/api/etl/trigger-all")

    assert response.status_code == 500
    data = response.json()
    assert data["success"] is False
    assert set(data["results"]) == {"SHOPEE", "TIKTOK"}
    assert data["results"]["SHOPEE"]["success"] is True
    assert data["total_processed"] == 1


def test_trigger_all_while_running_is_409(client, scheduler, monkeypatch):
    monkeypatch.setattr(scheduler, "trigger_all_platforms", AsyncMock(return_value=None))

    response = client.post("/api/etl/trigger-all")

    assert response.status_code == 409


def test_process_date(client, memory_db):
    response = client.post("/api/etl/shopee/process-date", params={"date": "2025-02-01"})

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert memory_db.checkpoints["SHOPEE"]["checkpoint_value"] is None


def test_process_date_requires_valid_date(client):
    assert client.post("/api/etl/shopee/process-date").status_code == 422
    assert client.post("/api/etl/shopee/process-date", params={"date": "10/03/2025"}).status_code == 422


def test_status_reports_health(client):
    client.post("/api/etl/trigger-all")

    response = client.get("/api/etl/status")

    assert response.status_code == 200
    data = response.json()
    assert data["total_executions"] == 1
    assert data["is_currently_executing"] is False
    assert data["platforms"]["TIKTOK"]["failure_count"] == 1
    assert data["platforms"]["FACEBOOK"]["enabled"] is False


# ============================================================================
# Diagnostics and scheduler control
# ============================================================================

def test_api_test_reports_reachable_platform(client, memory_db):
    response = client.get("/api/etl/shopee/api-test")

    assert response.status_code == 200
    data = response.json()
    assert data["platform"] == "SHOPEE"
    assert data["healthy"] is True
    assert data["order_count"] == 1
    assert memory_db.rows("order") == []


def test_api_test_reports_unreachable_platform(client):
    response = client.get("/api/etl/tiktok/api-test")

    assert response.status_code == 200
    data = response.json()
    assert data["healthy"] is False
    assert "Simulated network failure" in data["message"]


def test_api_test_rejects_unknown_and_disabled(client):
    assert client.get("/api/etl/amazon/api-test").status_code == 404
    assert client.get("/api/etl/facebook/api-test").status_code == 400


def test_order_count(client):
    response = client.get("/api/etl/shopee/order-count", params={"date": "2025-03-10"})

    assert response.status_code == 200
    assert response.json() == {"platform": "SHOPEE", "report_date": "2025-03-10", "order_count": 1}


def test_order_count_defaults_to_today(client):
    response = client.get("/api/etl/shopee/order-count")

    assert response.status_code == 200
    assert response.json()["report_date"] == datetime.utcnow().date().isoformat()


def test_order_count_fetch_failure_is_500(client):
    response = client.get("/api/etl/tiktok/order-count", params={"date": "2025-03-10"})

    assert response.status_code == 500
    assert "Simulated network failure" in response.json()["detail"]


def test_enable_scheduler(client, scheduler, monkeypatch):
    start = MagicMock()
    monkeypatch.setattr(scheduler, "start", start)

    response = client.post("/api/etl/scheduler/enable")

    assert response.status_code == 200
    assert response.json()["scheduler_enabled"] is True
    start.assert_called_once()


def test_disable_scheduler(client, scheduler):
    scheduler.enabled = True

    response = client.post("/api/etl/scheduler/disable")

    assert response.status_code == 200
    assert response.json()["scheduler_enabled"] is False


def test_reset_statistics(client):
    client.post("/api/etl/trigger-all")

    response = client.post("/api/etl/statistics/reset")

    assert response.status_code == 200
    data = response.json()
    assert data["total_executions"] == 0
    assert data["last_failure_time"] is None
    assert data["platforms"]["TIKTOK"]["failure_count"] == 0


# ============================================================================
# Health
# ============================================================================

def override_db(session):
    async def _get_db():
        yield session
    return _get_db


def test_health_with_checkpoints(client):
    now = datetime.utcnow()
    checkpoints = [
        ETLCheckpoint(
            platform=Platform.SHOPEE, status=ETLStatus.SUCCESS, last_run_at=now, last_success_at=now,
            checkpoint_value=now.isoformat(), total_records_processed=10, last_records_processed=4,
        ),
        ETLCheckpoint(
            platform=Platform.TIKTOK, status=ETLStatus.FAILED, last_run_at=now, last_failure_at=now,
            total_records_processed=0, last_records_processed=0, error_message="timeout",
        ),
    ]
    listing = MagicMock()
    listing.scalars.return_value.all.return_value = checkpoints
    session = AsyncMock()
    session.execute.side_effect = [MagicMock(), listing]
    app.dependency_overrides[get_db] = override_db(session)

    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["database_connected"] is True
    assert data["total_platforms"] == 2
    assert data["successful_platforms"] == 1
    assert data["failed_platforms"] == 1
    assert data["status"] == "degraded"
    assert data["etl_checkpoints"][1]["error_message"] == "timeout"


def test_health_database_down(client):
    session = AsyncMock()
    session.execute.side_effect = OperationalError("SELECT 1", {}, Exception("refused"))
    app.dependency_overrides[get_db] = override_db(session)

    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["database_connected"] is False
    assert data["status"] == "unhealthy"
    assert data["etl_checkpoints"] == []
