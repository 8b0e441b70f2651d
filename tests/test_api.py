"""
Tests de la API HTTP del monitor (FastAPI TestClient).
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from live_views.api import app, format_event
from live_views.dashboard import get_dashboard, reset_dashboard
from telemetry_core.models import Alert, Reading
from telemetry_core.scheduler import SchedulerState


@pytest.fixture
def client(monkeypatch):
    """Cliente con store en memoria y sin scheduler automático."""
    monkeypatch.delenv("POL_MONITOR_STORE_URL", raising=False)
    monkeypatch.setenv("POL_MONITOR_AUTOSTART", "false")
    reset_dashboard()
    with TestClient(app) as test_client:
        yield test_client
    reset_dashboard()


def insert_alert(message="Pol percentage 17.0% outside normal range for Line-1"):
    alert = Alert(sensor_id="line-1", message=message)
    asyncio.run(get_dashboard().store.insert_alert(alert))
    return alert


def test_root(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["endpoints"]["stream"] == "/api/dashboard/stream"


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["stats"]["store"] == "MemoryStore"


def test_dashboard_data(client):
    response = client.get("/api/dashboard/data")

    assert response.status_code == 200
    summary = response.json()["summary"]
    assert summary["total_sensors"] == 4
    assert summary["active_sensors"] == 3
    assert summary["average_pol"] == 0.0
    assert summary["active_alerts"] == 0


def test_readings_endpoints(client):
    reading = Reading(sensor_id="line-1", pol_percentage=14.3)
    asyncio.run(get_dashboard().store.insert_reading(reading))

    latest = client.get("/api/readings/latest").json()
    recent = client.get("/api/readings/recent", params={"limit": 5}).json()

    assert latest["readings"]["line-1"]["pol_percentage"] == 14.3
    assert latest["readings"]["line-1"]["sensor_name"] == "Line-1"
    assert recent["total"] == 1
    assert recent["readings"][0]["pol_band"] == "optimal"


def test_acknowledge_flow(client):
    alert = insert_alert()

    listed = client.get("/api/alerts").json()
    assert listed["total"] == 1

    response = client.post(f"/api/alerts/{alert.id}/acknowledge", json={"acknowledged_by": "Operator"})
    assert response.status_code == 200
    assert response.json()["alert"]["acknowledged_by"] == "Operator"

    assert client.get("/api/alerts").json()["total"] == 0

    again = client.post(f"/api/alerts/{alert.id}/acknowledge")
    assert again.status_code == 409
    assert again.json()["acknowledged_by"] == "Operator"


def test_acknowledge_default_operator(client):
    alert = insert_alert()

    response = client.post(f"/api/alerts/{alert.id}/acknowledge")

    assert response.status_code == 200
    assert response.json()["alert"]["acknowledged_by"] == "System User"


def test_acknowledge_unknown(client):
    response = client.post("/api/alerts/does-not-exist/acknowledge")

    assert response.status_code == 404


def test_calibration_flow(client):
    created = client.post("/api/calibration", json={
        "sensor_id": "line-1",
        "lab_pol_value": 14.0,
        "sensor_pol_value": 14.15,
        "calibrated_by": "Lab Tech",
    })
    assert created.status_code == 201
    assert created.json()["deviation"] == pytest.approx(0.15)

    analytics = client.get("/api/analytics/calibration", params={"sensor_id": "line-1", "window": "7d"})
    assert analytics.status_code == 200
    summary = analytics.json()["summary"]
    assert summary["count"] == 1
    assert summary["within_tolerance"] == 1


def test_calibration_unknown_sensor(client):
    response = client.post("/api/calibration", json={
        "sensor_id": "ghost",
        "lab_pol_value": 14.0,
        "sensor_pol_value": 14.0,
        "calibrated_by": "Lab Tech",
    })

    assert response.status_code == 404


def test_calibration_invalid_window(client):
    response = client.get("/api/analytics/calibration", params={"window": "1y"})

    assert response.status_code == 400


def test_inject_anomaly(client):
    response = client.post("/api/sensors/line-1/anomaly", json={"duration": 3})

    assert response.status_code == 200
    assert get_dashboard().generator.pending_anomalies() == {"line-1": 3}
    assert client.post("/api/sensors/ghost/anomaly").status_code == 404


def test_format_event():
    assert format_event("heartbeat", {"ok": True}) == 'event: heartbeat\ndata: {"ok": true}\n\n'


def test_lifespan_can_run_twice(monkeypatch):
    monkeypatch.delenv("POL_MONITOR_STORE_URL", raising=False)
    monkeypatch.setenv("POL_MONITOR_AUTOSTART", "true")
    monkeypatch.setenv("POL_MONITOR_TICK_SECONDS", "60")
    reset_dashboard()
    dashboards = []

    try:
        for _ in range(2):
            with TestClient(app) as test_client:
                assert test_client.get("/health").status_code == 200
                dashboard = get_dashboard()
                assert dashboard.scheduler.running
                dashboards.append(dashboard)
    finally:
        reset_dashboard()

    assert dashboards[0] is not dashboards[1]
    assert all(d.scheduler.state is SchedulerState.STOPPED for d in dashboards)
