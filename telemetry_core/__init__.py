"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                     🍬 Telemetry Core - Pol Monitor 🍬                        ║
║               Evaluación de Tolerancia, Alertas y Scheduling                 ║
╚══════════════════════════════════════════════════════════════════════════════╝

Núcleo del pipeline de telemetría del ingenio azucarero.
Recibe lecturas de proceso, decide si la Pol se desvió del objetivo y
emite alertas de desviación.

Módulos:
- models: Sensores, lecturas, alertas y registros de calibración
- tolerance: Evaluador de tolerancia de Pol
- alert_emitter: Emisión de alertas (una por lectura marcada)
- scheduler: Ciclo periódico generación/evaluación/persistencia
- analytics: Estadísticas de desviación de calibraciones
"""

from .errors import (
    MonitorError,
    ValidationError,
    PersistenceError,
    NotFoundError,
    AlreadyAcknowledgedError,
)
from .models import Sensor, SensorStatus, Reading, Alert, Severity, CalibrationRecord, LiveSnapshot
from .tolerance import ToleranceEvaluator, ToleranceResult, Decision, PolBand, AccuracyStatus
from .alert_emitter import AlertEmitter
from .scheduler import TelemetryScheduler, SchedulerState, TickReport
from .analytics import AnalyticsAggregator, CalibrationSummary, CalibrationWindow

__all__ = [
    "MonitorError",
    "ValidationError",
    "PersistenceError",
    "NotFoundError",
    "AlreadyAcknowledgedError",
    "Sensor",
    "SensorStatus",
    "Reading",
    "Alert",
    "Severity",
    "CalibrationRecord",
    "LiveSnapshot",
    "ToleranceEvaluator",
    "ToleranceResult",
    "Decision",
    "PolBand",
    "AccuracyStatus",
    "AlertEmitter",
    "TelemetryScheduler",
    "SchedulerState",
    "TickReport",
    "AnalyticsAggregator",
    "CalibrationSummary",
    "CalibrationWindow",
]

__version__ = "1.0.0"
