"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                      📊 Dashboard - Pol Monitor                              ║
║                 Cableado del Pipeline + Datos para el Operador               ║
╚══════════════════════════════════════════════════════════════════════════════╝

Une todas las piezas del monitor:

    ReadingGenerator → TelemetryScheduler → TelemetryStore
                                                 │ (publish)
                                          NotificationHub
                                           │            │
                                  LiveStateStore   AlertRegistry

Las vistas en vivo se alimentan solo de las notificaciones del
almacenamiento, igual que un cliente externo suscrito a los cambios.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from persistence.base import TelemetryStore
from persistence.memory_store import MemoryStore
from persistence.rest_store import RestStore
from sensors.pol_sensor import DEMO_SENSORS, ReadingGenerator
from telemetry_core.alert_emitter import AlertEmitter
from telemetry_core.analytics import AnalyticsAggregator, CalibrationWindow, window_start
from telemetry_core.config import MonitorConfig, config as default_config
from telemetry_core.errors import NotFoundError, ValidationError
from telemetry_core.models import Alert, CalibrationRecord, Reading, Sensor, utc_now
from telemetry_core.scheduler import TelemetryScheduler
from telemetry_core.tolerance import ToleranceEvaluator

from .alert_registry import AlertRegistry
from .live_state import LiveStateStore
from .notifications import NotificationHub


logger = logging.getLogger("live_views.dashboard")

DEFAULT_OPERATOR = "System User"


class Dashboard:
    """
    📊 Dashboard del monitor de Pol.

    Ejemplo:
        dashboard = Dashboard(MemoryStore(sensors=DEMO_SENSORS))
        await dashboard.start()
        data = dashboard.dashboard_data()
        await dashboard.shutdown()
    """

    def __init__(
        self,
        store: TelemetryStore,
        generator: Optional[ReadingGenerator] = None,
        config: Optional[MonitorConfig] = None,
        interval_seconds: Optional[float] = None,
        hub: Optional[NotificationHub] = None,
    ):
        self.config = config or default_config
        self.hub = hub or NotificationHub()
        self.store = store
        self.store.attach_hub(self.hub)

        self.live_state = LiveStateStore(config=self.config)
        self.alert_registry = AlertRegistry(config=self.config)
        self.live_state.attach(self.hub)
        self.alert_registry.attach(self.hub)

        self.generator = generator or ReadingGenerator(self.config)
        self.evaluator = ToleranceEvaluator(self.config)
        self.emitter = AlertEmitter(store, self.config)
        self.analytics = AnalyticsAggregator(self.config)
        self.scheduler = TelemetryScheduler(
            store,
            self.generator,
            evaluator=self.evaluator,
            emitter=self.emitter,
            sensor_provider=self._load_sensors,
            config=self.config,
            interval_seconds=interval_seconds,
        )

        self._sensors: List[Sensor] = []
        self._hydrated = False
        self._event_queues: Dict[int, Tuple[asyncio.Queue, Any, Any]] = {}

    async def _load_sensors(self) -> List[Sensor]:
        sensors = await self.store.list_sensors()
        self._sensors = list(sensors)
        return self._sensors

    # ─── Ciclo de vida ───────────────────────────────────────────────────────

    async def hydrate(self) -> None:
        """Carga sensores, lecturas recientes y alertas activas desde el store."""
        sensors = await self._load_sensors()
        latest = await asyncio.gather(
            *(self.store.query_latest_reading(sensor.id) for sensor in sensors)
        )
        recent = await self.store.query_recent_readings(self.config.live.initial_history)
        alerts = await self.store.query_unacknowledged_alerts(self.config.live.alert_display_limit)

        self.live_state.seed(latest=[r for r in latest if r is not None], recent=recent)
        self.alert_registry.replace(alerts)
        self._hydrated = True
        logger.info(
            f"📥 Dashboard hydrated: {len(sensors)} sensors, "
            f"{len(recent)} readings, {len(alerts)} active alerts"
        )

    async def start(self) -> None:
        if not self._hydrated:
            await self.hydrate()
        await self.scheduler.start()

    async def shutdown(self) -> None:
        await self.scheduler.stop()
        self.live_state.detach()
        self.alert_registry.detach()
        await self.store.close()

    # ─── Vistas ──────────────────────────────────────────────────────────────

    def sensor_names(self) -> Dict[str, str]:
        return {sensor.id: sensor.name for sensor in self._sensors}

    def _sensor_card(self, sensor: Sensor, reading: Optional[Reading]) -> Dict[str, Any]:
        card = sensor.to_dict()
        card["status_emoji"] = sensor.status.emoji
        card["latest_reading"] = reading.to_dict() if reading else None
        card["pol_band"] = self.evaluator.pol_band(reading.pol_percentage).value if reading else None
        card["accuracy_status"] = self.evaluator.accuracy_status(reading, sensor).value
        return card

    def reading_view(self, reading: Reading) -> Dict[str, Any]:
        """Lectura con nombre de sensor resuelto (o "Unknown")."""
        data = reading.to_dict()
        data["sensor_name"] = self.sensor_names().get(reading.sensor_id, "Unknown")
        data["pol_band"] = self.evaluator.pol_band(reading.pol_percentage).value
        return data

    def dashboard_data(self) -> Dict[str, Any]:
        """
        📊 Datos completos para el dashboard.

        Returns:
            Dict con summary, sensors, recent_readings, alerts y scheduler
        """
        snapshot = self.live_state.snapshot()
        sensors = list(self._sensors)
        alerts = self.alert_registry.active()

        summary = {
            "total_sensors": len(sensors),
            "active_sensors": sum(1 for s in sensors if s.is_active),
            "average_pol": round(self.live_state.average_pol(), 2),
            "active_alerts": len(self.alert_registry),
            "alert_registry": self.alert_registry.get_stats(),
            "last_update": snapshot.recent[0].timestamp if snapshot.recent else None,
        }

        return {
            "summary": summary,
            "sensors": [self._sensor_card(s, snapshot.latest.get(s.id)) for s in sensors],
            "recent_readings": [self.reading_view(r) for r in snapshot.recent],
            "alerts": [a.to_dict() for a in alerts],
            "scheduler": self.scheduler.get_stats(),
        }

    # ─── Operaciones ─────────────────────────────────────────────────────────

    async def acknowledge(self, alert_id: str, by: str = DEFAULT_OPERATOR) -> Dict[str, Any]:
        """
        Reconoce una alerta en el store y la retira del registro activo.

        Raises:
            NotFoundError: Si la alerta no existe
            AlreadyAcknowledgedError: Si ya estaba reconocida
        """
        if not by:
            raise ValidationError("acknowledged_by cannot be empty")
        at = utc_now()
        await self.store.acknowledge_alert(alert_id, by, at)
        try:
            return self.alert_registry.acknowledge(alert_id, by, at).to_dict()
        except NotFoundError:
            # Alerta fuera de la vista en memoria; el store ya la reconoció
            return {"id": alert_id, "acknowledged": True, "acknowledged_by": by, "acknowledged_at": at}

    async def _require_sensor(self, sensor_id: str) -> Sensor:
        for sensor in await self._load_sensors():
            if sensor.id == sensor_id:
                return sensor
        raise NotFoundError("Sensor", sensor_id)

    async def calibration_summary(self, sensor_id: Optional[str] = None, window: str = "24h") -> Dict[str, Any]:
        """Estadísticas de desviación de calibración para una ventana."""
        try:
            calibration_window = CalibrationWindow(window)
        except ValueError:
            allowed = ", ".join(w.value for w in CalibrationWindow)
            raise ValidationError(f"window must be one of {allowed}, got {window!r}")

        records = await self.store.query_calibration_records(
            sensor_id=sensor_id,
            since=window_start(calibration_window),
            limit=self.config.calibration.query_limit,
        )
        summary = self.analytics.summarize(records)
        return {
            "sensor_id": sensor_id,
            "window": calibration_window.value,
            "tolerance": self.config.calibration.deviation_tolerance,
            "summary": summary.to_dict(),
            "records": [r.to_dict() for r in records],
        }

    async def record_calibration(
        self,
        sensor_id: str,
        lab_pol_value: float,
        sensor_pol_value: float,
        calibrated_by: str,
        notes: Optional[str] = None,
    ) -> CalibrationRecord:
        """Registra una calibración contra laboratorio para un sensor existente."""
        await self._require_sensor(sensor_id)
        record = CalibrationRecord.create(
            sensor_id=sensor_id,
            lab_pol_value=lab_pol_value,
            sensor_pol_value=sensor_pol_value,
            calibrated_by=calibrated_by,
            notes=notes,
        )
        await self.store.insert_calibration_record(record)
        return record

    async def inject_anomaly(self, sensor_id: str, duration: int = 1) -> Dict[str, Any]:
        """Fuerza picos de Pol en las próximas lecturas de un sensor."""
        sensor = await self._require_sensor(sensor_id)
        self.generator.inject_anomaly(sensor.id, duration)
        return {"sensor_id": sensor.id, "duration": duration, "active": sensor.is_active}

    # ─── Eventos en tiempo real (SSE) ────────────────────────────────────────

    def open_event_queue(self, maxsize: int = 100) -> asyncio.Queue:
        """Crea una cola de eventos (reading/alert) para un cliente SSE."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)

        def _put(event: str, payload: Dict[str, Any]) -> None:
            try:
                queue.put_nowait((event, payload))
            except asyncio.QueueFull:
                logger.debug("SSE queue full, event dropped")

        def on_reading(reading: Reading) -> None:
            _put("reading", self.reading_view(reading))

        def on_alert(alert: Alert) -> None:
            _put("alert", alert.to_dict())

        self.live_state.add_listener(on_reading)
        self.alert_registry.add_listener(on_alert)
        self._event_queues[id(queue)] = (queue, on_reading, on_alert)
        return queue

    def close_event_queue(self, queue: asyncio.Queue) -> None:
        entry = self._event_queues.pop(id(queue), None)
        if entry is None:
            return
        _, on_reading, on_alert = entry
        self.live_state.remove_listener(on_reading)
        self.alert_registry.remove_listener(on_alert)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "store": self.store.name,
            "hub": self.hub.get_stats(),
            "live_state": self.live_state.get_stats(),
            "active_alerts": len(self.alert_registry),
            "alert_registry": self.alert_registry.get_stats(),
            "generator": self.generator.get_stats(),
            "scheduler": self.scheduler.get_stats(),
            "event_clients": len(self._event_queues),
        }


# ═══════════════════════════════════════════════════════════════════════════════
# Instancia global
# ═══════════════════════════════════════════════════════════════════════════════

_global_dashboard: Optional[Dashboard] = None


def build_store(config: MonitorConfig) -> TelemetryStore:
    """RestStore si hay URL configurada; si no, store en memoria con sensores demo."""
    if config.store.base_url:
        return RestStore(config.store)
    return MemoryStore(sensors=DEMO_SENSORS)


def get_dashboard() -> Dashboard:
    """Obtiene la instancia global del Dashboard."""
    global _global_dashboard
    if _global_dashboard is None:
        config = MonitorConfig.from_env()
        _global_dashboard = Dashboard(build_store(config), config=config)
    return _global_dashboard


def reset_dashboard() -> None:
    """Reinicia la instancia global."""
    global _global_dashboard
    _global_dashboard = None
