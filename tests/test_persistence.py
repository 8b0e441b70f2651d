"""
Tests para los adaptadores de almacenamiento.
"""

from unittest.mock import MagicMock

import pytest
import requests

from live_views.notifications import NotificationHub
from persistence.base import ALERT_INSERTED, READING_INSERTED
from persistence.memory_store import MemoryStore
from persistence.rest_store import RestStore
from telemetry_core.config import StoreConfig
from telemetry_core.errors import AlreadyAcknowledgedError, NotFoundError, PersistenceError
from telemetry_core.models import Alert, CalibrationRecord, Reading, Sensor


class TestMemoryStore:
    """Tests para el store en memoria."""

    @pytest.mark.asyncio
    async def test_insert_publishes_to_hub(self):
        hub = NotificationHub()
        readings, alerts = [], []
        hub.subscribe(READING_INSERTED, readings.append)
        hub.subscribe(ALERT_INSERTED, alerts.append)
        store = MemoryStore(hub=hub)

        await store.insert_reading(Reading(sensor_id="line-1", pol_percentage=14.0))
        await store.insert_alert(Alert(sensor_id="line-1", message="m"))

        assert len(readings) == 1
        assert len(alerts) == 1

    @pytest.mark.asyncio
    async def test_duplicate_reading_rejected(self):
        store = MemoryStore()
        reading = Reading(sensor_id="line-1", pol_percentage=14.0)
        await store.insert_reading(reading)

        with pytest.raises(PersistenceError):
            await store.insert_reading(reading)

    @pytest.mark.asyncio
    async def test_latest_and_recent_by_timestamp(self):
        store = MemoryStore()
        late = Reading(sensor_id="line-1", pol_percentage=15.0, timestamp="2025-06-01T10:00:05+00:00")
        early = Reading(sensor_id="line-1", pol_percentage=13.0, timestamp="2025-06-01T10:00:00+00:00")
        await store.insert_reading(late)
        await store.insert_reading(early)

        assert (await store.query_latest_reading("line-1")).id == late.id
        assert await store.query_latest_reading("line-2") is None
        assert [r.id for r in await store.query_recent_readings(5)] == [late.id, early.id]
        assert len(await store.query_recent_readings(1)) == 1

    @pytest.mark.asyncio
    async def test_acknowledge_alert(self):
        store = MemoryStore()
        alert = Alert(sensor_id="line-1", message="m")
        await store.insert_alert(alert)

        await store.acknowledge_alert(alert.id, "System User", "2025-06-01T10:00:00+00:00")

        stored = await store.get_alert(alert.id)
        assert stored.acknowledged
        assert stored.acknowledged_by == "System User"
        assert await store.query_unacknowledged_alerts(10) == []
        with pytest.raises(AlreadyAcknowledgedError):
            await store.acknowledge_alert(alert.id, "Other", "2025-06-01T10:01:00+00:00")
        with pytest.raises(NotFoundError):
            await store.acknowledge_alert("missing", "Other", "2025-06-01T10:01:00+00:00")

    @pytest.mark.asyncio
    async def test_calibration_filters(self):
        store = MemoryStore()
        await store.insert_calibration_record(
            CalibrationRecord.create("line-1", 14.0, 14.1, "Lab", timestamp="2025-06-01T10:00:00+00:00")
        )
        await store.insert_calibration_record(
            CalibrationRecord.create("line-2", 14.0, 14.2, "Lab", timestamp="2025-06-02T10:00:00+00:00")
        )
        await store.insert_calibration_record(
            CalibrationRecord.create("line-1", 14.0, 13.9, "Lab", timestamp="2025-05-01T10:00:00+00:00")
        )

        line_1 = await store.query_calibration_records(sensor_id="line-1")
        recent = await store.query_calibration_records(since="2025-05-15T00:00:00+00:00")

        assert len(line_1) == 2
        assert [r.sensor_id for r in recent] == ["line-2", "line-1"]
        assert len(await store.query_calibration_records(limit=1)) == 1

    @pytest.mark.asyncio
    async def test_sensor_management(self):
        store = MemoryStore(sensors=[Sensor(id="line-1", name="Line-1")])
        store.upsert_sensor(Sensor(id="line-2", name="Line-2"))
        store.remove_sensor("line-1")

        assert [s.id for s in await store.list_sensors()] == ["line-2"]
        with pytest.raises(NotFoundError):
            store.remove_sensor("line-1")


def make_response(payload=None, content=b"[]", http_error=None):
    response = MagicMock()
    response.content = content
    response.json.return_value = payload if payload is not None else []
    if http_error is not None:
        response.raise_for_status.side_effect = http_error
    return response


class TestRestStore:
    """Tests para el adaptador REST con una sesión simulada."""

    @pytest.fixture
    def session(self):
        session = MagicMock()
        session.headers = {}
        return session

    @pytest.fixture
    def store(self, session):
        config = StoreConfig(base_url="https://db.example/rest/v1/", api_key="secret", timeout_seconds=2.0)
        return RestStore(config, session=session)

    def test_requires_base_url(self):
        with pytest.raises(ValueError):
            RestStore(StoreConfig())

    def test_auth_headers(self, store, session):
        assert session.headers["apikey"] == "secret"
        assert session.headers["Authorization"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_list_sensors_skips_invalid_rows(self, store, session):
        session.request.return_value = make_response([
            {"id": "line-1", "name": "Line-1", "status": "active", "accuracy_rating": 0.1},
            {"id": "bad", "name": "Bad", "status": "exploded"},
        ], content=b"...")

        sensors = await store.list_sensors()

        assert [s.id for s in sensors] == ["line-1"]
        method, url = session.request.call_args.args
        assert method == "GET"
        assert url == "https://db.example/rest/v1/sensors"

    @pytest.mark.asyncio
    async def test_unacknowledged_alert_query(self, store, session):
        session.request.return_value = make_response([
            {"id": "a-1", "sensor_id": "line-1", "message": "m", "severity": "warning",
             "acknowledged": False, "created_at": "2025-06-01T10:00:00+00:00"},
        ], content=b"...")

        alerts = await store.query_unacknowledged_alerts(10)

        assert alerts[0].id == "a-1"
        kwargs = session.request.call_args.kwargs
        assert kwargs["params"]["acknowledged"] == "eq.false"
        assert kwargs["params"]["order"] == "created_at.desc"
        assert kwargs["params"]["limit"] == "10"
        assert kwargs["timeout"] == 2.0

    @pytest.mark.asyncio
    async def test_insert_reading_publishes(self, store, session):
        hub = NotificationHub()
        received = []
        hub.subscribe(READING_INSERTED, received.append)
        store.attach_hub(hub)
        reading = Reading(sensor_id="line-1", pol_percentage=14.0)
        session.request.return_value = make_response([reading.to_dict()], content=b"...")

        reading_id = await store.insert_reading(reading)

        assert reading_id == reading.id
        assert received == [reading]
        kwargs = session.request.call_args.kwargs
        assert kwargs["json"]["pol_percentage"] == 14.0
        assert kwargs["headers"] == {"Prefer": "return=representation"}

    @pytest.mark.asyncio
    async def test_connection_error_maps_to_persistence_error(self, store, session):
        session.request.side_effect = requests.exceptions.ConnectionError("connection refused")

        with pytest.raises(PersistenceError):
            await store.insert_alert(Alert(sensor_id="line-1", message="m"))

    @pytest.mark.asyncio
    async def test_http_error_maps_to_persistence_error(self, store, session):
        session.request.return_value = make_response(http_error=requests.exceptions.HTTPError("500 Server Error"))

        with pytest.raises(PersistenceError):
            await store.query_recent_readings(20)

    @pytest.mark.asyncio
    async def test_invalid_json(self, store, session):
        response = make_response(content=b"<html>")
        response.json.side_effect = ValueError("not json")
        session.request.return_value = response

        with pytest.raises(PersistenceError):
            await store.query_recent_readings(20)

    @pytest.mark.asyncio
    async def test_acknowledge_success(self, store, session):
        session.request.return_value = make_response([{"id": "a-1", "acknowledged": True}], content=b"...")

        await store.acknowledge_alert("a-1", "System User", "2025-06-01T10:00:00+00:00")

        method, _ = session.request.call_args.args
        assert method == "PATCH"
        assert session.request.call_args.kwargs["params"] == {"id": "eq.a-1", "acknowledged": "eq.false"}

    @pytest.mark.asyncio
    async def test_acknowledge_unknown_alert(self, store, session):
        session.request.side_effect = [make_response(), make_response()]

        with pytest.raises(NotFoundError):
            await store.acknowledge_alert("missing", "System User", "2025-06-01T10:00:00+00:00")

    @pytest.mark.asyncio
    async def test_acknowledge_already_acknowledged(self, store, session):
        row = {"id": "a-1", "acknowledged": True, "acknowledged_by": "Operator",
               "acknowledged_at": "2025-06-01T09:00:00+00:00"}
        session.request.side_effect = [make_response(), make_response([row], content=b"...")]

        with pytest.raises(AlreadyAcknowledgedError) as exc_info:
            await store.acknowledge_alert("a-1", "System User", "2025-06-01T10:00:00+00:00")

        assert exc_info.value.acknowledged_by == "Operator"

    @pytest.mark.asyncio
    async def test_calibration_window_params(self, store, session):
        session.request.return_value = make_response([], content=b"[]")

        await store.query_calibration_records("line-1", since="2025-06-01T00:00:00+00:00", limit=50)

        params = session.request.call_args.kwargs["params"]
        assert params["sensor_id"] == "eq.line-1"
        assert params["timestamp"] == "gte.2025-06-01T00:00:00+00:00"
        assert params["limit"] == "50"
