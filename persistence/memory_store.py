"""
Almacenamiento en memoria.
Usado por el simulador de consola, la API en modo demo y los tests.
"""

import logging
import threading
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Set

from telemetry_core.errors import AlreadyAcknowledgedError, NotFoundError, PersistenceError
from telemetry_core.models import Alert, CalibrationRecord, Reading, Sensor

from .base import ALERT_INSERTED, READING_INSERTED, TelemetryStore


logger = logging.getLogger("persistence.memory_store")


class MemoryStore(TelemetryStore):
    """
    🧠 Store en memoria protegido por un lock.

    Publica cada insert en el hub adjunto, fuera del lock, para que los
    suscriptores puedan volver a consultar el store sin bloquearse.

    Example:
        >>> store = MemoryStore(sensors=[Sensor(id="line-1", name="Line-1")])
        >>> await store.insert_reading(reading)
    """

    def __init__(self, sensors: Optional[Iterable[Sensor]] = None, hub=None):
        super().__init__(hub)
        self._lock = threading.Lock()
        self._sensors: Dict[str, Sensor] = {}
        self._readings: List[Reading] = []
        self._reading_ids: Set[str] = set()
        self._alerts: Dict[str, Alert] = {}
        self._calibrations: List[CalibrationRecord] = []
        for sensor in sensors or ():
            self._sensors[sensor.id] = replace(sensor)

    # ─── Sensores ────────────────────────────────────────────────────────────

    def upsert_sensor(self, sensor: Sensor) -> None:
        """Agrega o reemplaza un sensor (lado escritura de la configuración)."""
        with self._lock:
            self._sensors[sensor.id] = replace(sensor)

    def remove_sensor(self, sensor_id: str) -> None:
        with self._lock:
            if sensor_id not in self._sensors:
                raise NotFoundError("Sensor", sensor_id)
            del self._sensors[sensor_id]

    async def list_sensors(self) -> List[Sensor]:
        with self._lock:
            return list(self._sensors.values())

    # ─── Lecturas ────────────────────────────────────────────────────────────

    async def insert_reading(self, reading: Reading) -> str:
        with self._lock:
            if reading.id in self._reading_ids:
                raise PersistenceError(f"Reading {reading.id} already stored")
            self._readings.append(reading)
            self._reading_ids.add(reading.id)
        self._publish(READING_INSERTED, reading)
        return reading.id

    async def query_latest_reading(self, sensor_id: str) -> Optional[Reading]:
        with self._lock:
            candidates = [r for r in self._readings if r.sensor_id == sensor_id]
        if not candidates:
            return None
        return max(candidates, key=lambda r: r.timestamp)

    async def query_recent_readings(self, limit: int) -> List[Reading]:
        with self._lock:
            readings = list(self._readings)
        readings.sort(key=lambda r: r.timestamp, reverse=True)
        return readings[:limit]

    # ─── Alertas ─────────────────────────────────────────────────────────────

    async def insert_alert(self, alert: Alert) -> str:
        with self._lock:
            if alert.id in self._alerts:
                raise PersistenceError(f"Alert {alert.id} already stored")
            self._alerts[alert.id] = alert
        self._publish(ALERT_INSERTED, alert)
        return alert.id

    async def query_unacknowledged_alerts(self, limit: int) -> List[Alert]:
        with self._lock:
            alerts = [a for a in self._alerts.values() if not a.acknowledged]
        alerts.sort(key=lambda a: a.created_at, reverse=True)
        return alerts[:limit]

    async def acknowledge_alert(self, alert_id: str, by: str, at: str) -> None:
        with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None:
                raise NotFoundError("Alert", alert_id)
            if alert.acknowledged:
                raise AlreadyAcknowledgedError(alert_id, alert.acknowledged_by, alert.acknowledged_at)
            self._alerts[alert_id] = alert.acknowledge(by, at)

    async def get_alert(self, alert_id: str) -> Optional[Alert]:
        with self._lock:
            return self._alerts.get(alert_id)

    # ─── Calibraciones ───────────────────────────────────────────────────────

    async def query_calibration_records(
        self,
        sensor_id: Optional[str] = None,
        since: Optional[str] = None,
        limit: int = 50,
    ) -> List[CalibrationRecord]:
        with self._lock:
            records = list(self._calibrations)
        if sensor_id is not None:
            records = [r for r in records if r.sensor_id == sensor_id]
        if since is not None:
            records = [r for r in records if r.timestamp >= since]
        records.sort(key=lambda r: r.timestamp, reverse=True)
        return records[:limit]

    async def insert_calibration_record(self, record: CalibrationRecord) -> str:
        with self._lock:
            self._calibrations.append(record)
        logger.info(f"📐 Calibration stored for {record.sensor_id} (deviation {record.deviation:+.2f})")
        return record.id

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "sensors": len(self._sensors),
                "readings": len(self._readings),
                "alerts": len(self._alerts),
                "calibrations": len(self._calibrations),
            }
