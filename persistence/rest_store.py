#!/usr/bin/env python3
"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                     🌐 REST Telemetry Store - Pol Monitor                    ║
║                        PostgREST-style HTTP Adapter                          ║
╚══════════════════════════════════════════════════════════════════════════════╝

Adaptador de almacenamiento sobre una API REST estilo PostgREST
(tablas sensors, sensor_readings, system_alerts y calibration_records).

Las llamadas HTTP son bloqueantes (requests) y se ejecutan en un thread
con asyncio.to_thread para no frenar el loop del scheduler.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import requests

from telemetry_core.config import StoreConfig
from telemetry_core.errors import AlreadyAcknowledgedError, NotFoundError, PersistenceError, ValidationError
from telemetry_core.models import Alert, CalibrationRecord, Reading, Sensor

from .base import ALERT_INSERTED, READING_INSERTED, TelemetryStore


logger = logging.getLogger("persistence.rest_store")

SENSORS_TABLE = "sensors"
READINGS_TABLE = "sensor_readings"
ALERTS_TABLE = "system_alerts"
CALIBRATIONS_TABLE = "calibration_records"


class RestStore(TelemetryStore):
    """
    🌐 Store REST.

    Example:
        >>> store = RestStore(StoreConfig(base_url="https://db.example/rest/v1", api_key="..."))
        >>> sensors = await store.list_sensors()
    """

    def __init__(self, config: StoreConfig, hub=None, session: Optional[requests.Session] = None):
        super().__init__(hub)
        if not config.base_url:
            raise ValueError("RestStore requires a base_url")
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self.session = session or requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
        })
        if config.api_key:
            self.session.headers.update({
                "apikey": config.api_key,
                "Authorization": f"Bearer {config.api_key}",
            })

    def _url(self, table: str) -> str:
        return f"{self.base_url}/{table}"

    def _request(
        self,
        method: str,
        table: str,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        headers = {"Prefer": prefer} if prefer else None
        try:
            response = self.session.request(
                method,
                self._url(table),
                params=params,
                json=json,
                headers=headers,
                timeout=self.config.timeout_seconds,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise PersistenceError(f"{method} {table} failed: {e}") from e

        if not response.content:
            return []
        try:
            payload = response.json()
        except ValueError as e:
            raise PersistenceError(f"{method} {table} returned invalid JSON") from e
        if isinstance(payload, dict):
            return [payload]
        return payload

    async def _call(self, *args, **kwargs) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._request, *args, **kwargs)

    async def _insert(self, table: str, row: Dict[str, Any]) -> str:
        rows = await self._call("POST", table, json=row, prefer="return=representation")
        if rows and rows[0].get("id"):
            return rows[0]["id"]
        return row["id"]

    # ─── Sensores ────────────────────────────────────────────────────────────

    async def list_sensors(self) -> List[Sensor]:
        rows = await self._call("GET", SENSORS_TABLE, params={"select": "*", "order": "name.asc"})
        sensors = []
        for row in rows:
            try:
                sensors.append(Sensor.from_dict(row))
            except ValidationError as e:
                logger.warning(f"⚠️ Skipping invalid sensor row {row.get('id')}: {e}")
        return sensors

    # ─── Lecturas ────────────────────────────────────────────────────────────

    async def insert_reading(self, reading: Reading) -> str:
        reading_id = await self._insert(READINGS_TABLE, reading.to_dict())
        self._publish(READING_INSERTED, reading)
        return reading_id

    async def query_latest_reading(self, sensor_id: str) -> Optional[Reading]:
        rows = await self._call("GET", READINGS_TABLE, params={
            "select": "*",
            "sensor_id": f"eq.{sensor_id}",
            "order": "timestamp.desc",
            "limit": "1",
        })
        return Reading.from_dict(rows[0]) if rows else None

    async def query_recent_readings(self, limit: int) -> List[Reading]:
        rows = await self._call("GET", READINGS_TABLE, params={
            "select": "*",
            "order": "timestamp.desc",
            "limit": str(limit),
        })
        return [Reading.from_dict(row) for row in rows]

    # ─── Alertas ─────────────────────────────────────────────────────────────

    async def insert_alert(self, alert: Alert) -> str:
        alert_id = await self._insert(ALERTS_TABLE, alert.to_dict())
        self._publish(ALERT_INSERTED, alert)
        return alert_id

    async def query_unacknowledged_alerts(self, limit: int) -> List[Alert]:
        rows = await self._call("GET", ALERTS_TABLE, params={
            "select": "*",
            "acknowledged": "eq.false",
            "order": "created_at.desc",
            "limit": str(limit),
        })
        return [Alert.from_dict(row) for row in rows]

    async def acknowledge_alert(self, alert_id: str, by: str, at: str) -> None:
        # El filtro acknowledged=eq.false hace la transición condicional
        rows = await self._call(
            "PATCH",
            ALERTS_TABLE,
            params={"id": f"eq.{alert_id}", "acknowledged": "eq.false"},
            json={"acknowledged": True, "acknowledged_by": by, "acknowledged_at": at},
            prefer="return=representation",
        )
        if rows:
            return

        existing = await self._call("GET", ALERTS_TABLE, params={"select": "*", "id": f"eq.{alert_id}"})
        if not existing:
            raise NotFoundError("Alert", alert_id)
        row = existing[0]
        raise AlreadyAcknowledgedError(alert_id, row.get("acknowledged_by"), row.get("acknowledged_at"))

    # ─── Calibraciones ───────────────────────────────────────────────────────

    async def query_calibration_records(
        self,
        sensor_id: Optional[str] = None,
        since: Optional[str] = None,
        limit: int = 50,
    ) -> List[CalibrationRecord]:
        params = {
            "select": "*",
            "order": "timestamp.desc",
            "limit": str(limit),
        }
        if sensor_id is not None:
            params["sensor_id"] = f"eq.{sensor_id}"
        if since is not None:
            params["timestamp"] = f"gte.{since}"
        rows = await self._call("GET", CALIBRATIONS_TABLE, params=params)
        return [CalibrationRecord.from_dict(row) for row in rows]

    async def insert_calibration_record(self, record: CalibrationRecord) -> str:
        return await self._insert(CALIBRATIONS_TABLE, record.to_dict())

    async def close(self) -> None:
        self.session.close()

    def __repr__(self) -> str:
        return f"<RestStore(base_url='{self.base_url}')>"
