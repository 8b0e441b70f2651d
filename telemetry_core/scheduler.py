"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                   ⏱️ Telemetry Scheduler - Pol Monitor                       ║
║                  Generación → Evaluación → Persistencia                      ║
╚══════════════════════════════════════════════════════════════════════════════╝

Orquesta el ciclo periódico de simulación:
1. Relee la lista de sensores al inicio de cada tick
2. Genera una lectura por sensor activo (ReadingGenerator)
3. Evalúa la tolerancia (ToleranceEvaluator)
4. Persiste la lectura y, si corresponde, la alerta (AlertEmitter)

Cada sensor se procesa como una tarea independiente: el fallo de uno
nunca impide procesar los demás dentro del mismo tick.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

from .alert_emitter import AlertEmitter
from .config import MonitorConfig, config as default_config
from .errors import PersistenceError, ValidationError
from .models import Alert, Reading, Sensor, utc_now
from .tolerance import ToleranceEvaluator


logger = logging.getLogger("telemetry_core.scheduler")

SensorProvider = Callable[[], Union[Iterable[Sensor], Awaitable[Iterable[Sensor]]]]


class SchedulerState(Enum):
    """Estados del scheduler."""
    IDLE = "idle"
    TICKING = "ticking"
    STOPPED = "stopped"


@dataclass
class SensorOutcome:
    """Resultado del procesamiento de un sensor en un tick."""
    sensor_id: str
    reading: Optional[Reading] = None
    alert: Optional[Alert] = None
    error: Optional[str] = None
    skipped: bool = False

    @property
    def failed(self) -> bool:
        return self.error is not None and not self.skipped


@dataclass
class TickReport:
    """Resumen de un tick completo (todas las tareas ya resueltas)."""
    tick: int
    started_at: str
    finished_at: Optional[str] = None
    readings: List[Reading] = field(default_factory=list)
    alerts: List[Alert] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tick": self.tick,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "readings": len(self.readings),
            "alerts": len(self.alerts),
            "skipped": list(self.skipped),
            "failures": dict(self.failures),
            "error": self.error,
        }


class TelemetryScheduler:
    """
    ⏱️ Scheduler de telemetría - máquina de estados idle/ticking/stopped.

    Ejemplo:
        scheduler = TelemetryScheduler(store, generator)
        await scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        store,
        generator,
        evaluator: Optional[ToleranceEvaluator] = None,
        emitter: Optional[AlertEmitter] = None,
        sensor_provider: Optional[SensorProvider] = None,
        live_state=None,
        alert_registry=None,
        config: Optional[MonitorConfig] = None,
        interval_seconds: Optional[float] = None,
    ):
        self.config = config or default_config
        self.store = store
        self.generator = generator
        self.evaluator = evaluator or ToleranceEvaluator(self.config)
        self.emitter = emitter or AlertEmitter(store, self.config)
        self.sensor_provider = sensor_provider or store.list_sensors
        self.live_state = live_state
        self.alert_registry = alert_registry
        self.interval_seconds = (
            interval_seconds if interval_seconds is not None
            else self.config.scheduler.interval_seconds
        )

        self._state = SchedulerState.IDLE
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._tick_lock: Optional[asyncio.Lock] = None

        # Estadísticas
        self._tick_count = 0
        self._readings_persisted = 0
        self._alerts_emitted = 0
        self._sensor_failures = 0
        self._last_report: Optional[TickReport] = None
        self._start_time: Optional[datetime] = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def last_report(self) -> Optional[TickReport]:
        return self._last_report

    async def _load_sensors(self) -> List[Sensor]:
        result = self.sensor_provider()
        if inspect.isawaitable(result):
            result = await result
        return list(result)

    async def _process_sensor(self, sensor: Sensor) -> SensorOutcome:
        """Procesa un sensor de forma aislada; nunca propaga errores."""
        try:
            reading = self.generator.generate_for(sensor)
        except ValidationError as e:
            logger.warning(f"⚠️ Invalid reading for {sensor.id}, skipped: {e}")
            return SensorOutcome(sensor.id, error=str(e), skipped=True)

        if reading is None:
            return SensorOutcome(sensor.id, skipped=True)

        result = self.evaluator.evaluate(reading)

        try:
            await self.store.insert_reading(reading)
        except PersistenceError as e:
            logger.error(f"insert_reading failed for {sensor.id}: {e}")
            return SensorOutcome(sensor.id, error=str(e))
        except Exception as e:
            logger.exception(f"Unexpected error persisting reading for {sensor.id}")
            return SensorOutcome(sensor.id, error=str(e))

        if self.live_state is not None:
            self.live_state.record_reading(reading)

        alert = None
        if result.flagged:
            try:
                alert = await self.emitter.emit(reading, sensor, result)
            except PersistenceError as e:
                logger.error(f"insert_alert failed for {sensor.id}: {e}")
                return SensorOutcome(sensor.id, reading=reading, error=str(e))

            if alert is not None and self.alert_registry is not None:
                self.alert_registry.register(alert)

        return SensorOutcome(sensor.id, reading=reading, alert=alert)

    def _stop_requested(self) -> bool:
        return self._stop_event is not None and self._stop_event.is_set()

    async def tick(self) -> TickReport:
        """
        Ejecuta un ciclo completo sobre la lista actual de sensores.

        Returns:
            TickReport cuando todas las tareas por sensor se resolvieron

        Raises:
            RuntimeError: Si el scheduler ya fue detenido o se pidió detenerlo
        """
        if self._state is SchedulerState.STOPPED or self._stop_requested():
            raise RuntimeError("Scheduler is stopped")
        if self._tick_lock is None:
            self._tick_lock = asyncio.Lock()

        async with self._tick_lock:
            # Un stop pudo llegar mientras se esperaba el tick anterior
            if self._stop_requested():
                raise RuntimeError("Scheduler is stopped")
            self._tick_count += 1
            self._state = SchedulerState.TICKING
            report = TickReport(tick=self._tick_count, started_at=utc_now())
            try:
                try:
                    sensors = await self._load_sensors()
                except Exception as e:
                    logger.error(f"Could not load sensors for tick {report.tick}: {e}")
                    report.error = str(e)
                    return report

                active = []
                for sensor in sensors:
                    if sensor.is_active:
                        active.append(sensor)
                    else:
                        report.skipped.append(sensor.id)

                outcomes = await asyncio.gather(
                    *(self._process_sensor(sensor) for sensor in active),
                    return_exceptions=True,
                )

                for sensor, outcome in zip(active, outcomes):
                    if isinstance(outcome, BaseException):
                        logger.error(f"Sensor {sensor.id} task crashed: {outcome}")
                        report.failures[sensor.id] = str(outcome)
                        continue
                    if outcome.reading is not None:
                        report.readings.append(outcome.reading)
                    if outcome.alert is not None:
                        report.alerts.append(outcome.alert)
                    if outcome.skipped:
                        report.skipped.append(sensor.id)
                    elif outcome.error is not None:
                        report.failures[sensor.id] = outcome.error

                self._readings_persisted += len(report.readings)
                self._alerts_emitted += len(report.alerts)
                self._sensor_failures += len(report.failures)
                return report
            finally:
                report.finished_at = utc_now()
                self._last_report = report
                if self._state is SchedulerState.TICKING:
                    self._state = SchedulerState.IDLE
                logger.debug(
                    f"Tick {report.tick}: {len(report.readings)} readings, "
                    f"{len(report.alerts)} alerts, {len(report.failures)} failures"
                )

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.tick()
            except RuntimeError:
                break
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass

    async def start(self) -> None:
        """Inicia el loop periódico en una tarea de fondo."""
        if self._state is SchedulerState.STOPPED:
            raise RuntimeError("Scheduler is stopped and cannot be restarted")
        if self.running:
            return
        self._stop_event = asyncio.Event()
        self._start_time = datetime.now()
        self._task = asyncio.create_task(self._run())
        logger.info(f"▶️ Telemetry scheduler started (every {self.interval_seconds}s)")

    async def stop(self) -> None:
        """
        Detiene el scheduler.
        Un tick en curso termina normalmente; no se inician ni reintentan ticks.
        """
        if self._state is SchedulerState.STOPPED:
            return
        if self._stop_event is None:
            self._stop_event = asyncio.Event()
        self._stop_event.set()
        if self._task is not None:
            await self._task
            self._task = None
        self._state = SchedulerState.STOPPED
        logger.info("⏹️ Telemetry scheduler stopped")

    def get_stats(self) -> Dict[str, Any]:
        """Retorna estadísticas del scheduler."""
        runtime = (datetime.now() - self._start_time).total_seconds() if self._start_time else 0.0
        return {
            "state": self._state.value,
            "ticks": self._tick_count,
            "readings_persisted": self._readings_persisted,
            "alerts_emitted": self._alerts_emitted,
            "sensor_failures": self._sensor_failures,
            "interval_seconds": self.interval_seconds,
            "runtime_seconds": runtime,
            "emitter": self.emitter.get_stats(),
            "last_tick": self._last_report.to_dict() if self._last_report else None,
        }
