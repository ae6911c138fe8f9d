"""
Health and root endpoint tests
"""
from sqlalchemy.exc import OperationalError

from app import main


async def test_health_reports_database(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["database"] == "ok"
    assert response.headers["x-request-id"]


async def test_health_degraded_without_database(client, monkeypatch):
    class BrokenEngine:
        def connect(self):
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    monkeypatch.setattr(main, "get_engine", lambda: BrokenEngine())

    response = await client.get("/health")

    assert response.status_code == 503
    assert response.json()["status"] == "degraded"


async def test_root_points_to_dashboard(client):
    response = await client.get("/")

    assert response.json()["dashboard"] == "/dashboard"
