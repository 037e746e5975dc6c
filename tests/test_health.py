from fastapi.testclient import TestClient

from app.main import app


def test_health_check():
    client = TestClient(app)
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] in ("healthy", "degraded")
    assert "database" in data
    assert data["timestamp"].endswith("Z")


def test_root():
    client = TestClient(app)
    assert client.get("/").json() == {"status": "Funnel Billing API running"}
