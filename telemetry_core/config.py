"""
Configuración centralizada para el monitor de Pol.
Define la banda de tolerancia, las distribuciones de simulación y los
parámetros de cadencia, buffers y almacenamiento.
"""

import math
import os
from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass
class ToleranceConfig:
    """Banda de referencia para alertas y clasificación de Pol."""
    target_pol: float = 14.0
    alert_threshold: float = 2.5  # Desviación que dispara una alerta
    optimal_margin: float = 0.5  # 13.5 - 14.5 = óptimo
    acceptable_min: float = 12.0
    acceptable_max: float = 16.0


@dataclass
class FieldRange:
    """Rango uniforme y precisión de redondeo de un campo simulado."""
    low: float
    high: float
    decimals: int = 2

    @property
    def center(self) -> float:
        return (self.low + self.high) / 2


# Distribuciones por defecto (valores realistas de proceso en ingenio)
DEFAULT_FIELD_RANGES: Dict[str, FieldRange] = {
    "pol_percentage": FieldRange(low=12.0, high=16.0, decimals=2),
    "brix_offset": FieldRange(low=0.0, high=2.0, decimals=2),
    "moisture_content": FieldRange(low=70.0, high=75.0, decimals=2),
    "temperature": FieldRange(low=28.0, high=32.0, decimals=1),
    "flow_rate": FieldRange(low=45.0, high=55.0, decimals=1),
    "quality_score": FieldRange(low=95.0, high=100.0, decimals=0),
}


@dataclass
class GeneratorConfig:
    """Configuración del generador de lecturas simuladas."""
    ranges: Dict[str, FieldRange] = field(default_factory=lambda: DEFAULT_FIELD_RANGES.copy())
    brix_factor: float = 1.2  # brix = pol * 1.2 + offset

    # Anomalías (picos de Pol fuera de banda)
    anomaly_range: FieldRange = field(
        default_factory=lambda: FieldRange(low=16.6, high=18.0, decimals=2)
    )
    auto_anomaly_probability: float = 0.0

    def get_range(self, name: str) -> FieldRange:
        """Obtiene el rango de un campo, con fallback a los valores por defecto."""
        return self.ranges.get(name, DEFAULT_FIELD_RANGES[name])


@dataclass
class SchedulerConfig:
    """Cadencia del ciclo de simulación."""
    interval_seconds: float = 3.0
    autostart: bool = True  # Iniciar el loop al levantar la API


@dataclass
class LiveViewConfig:
    """Capacidades de las vistas en memoria."""
    history_capacity: int = 50
    initial_history: int = 20
    alert_display_limit: int = 10
    emitted_memory: int = 10_000  # Lecturas recordadas para deduplicar alertas
    active_alert_capacity: int = 500  # Alertas activas retenidas (las más nuevas)
    acknowledged_memory: int = 1_000  # Reconocimientos recordados para detectar repetidos


@dataclass
class CalibrationConfig:
    """Parámetros de análisis de calibración."""
    deviation_tolerance: float = 0.2
    query_limit: int = 50


@dataclass
class StoreConfig:
    """Conexión al almacenamiento REST (estilo PostgREST)."""
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    timeout_seconds: float = 5.0


@dataclass
class MonitorConfig:
    """Configuración completa del monitor."""
    tolerance: ToleranceConfig = field(default_factory=ToleranceConfig)
    generator: GeneratorConfig = field(default_factory=GeneratorConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    live: LiveViewConfig = field(default_factory=LiveViewConfig)
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)
    store: StoreConfig = field(default_factory=StoreConfig)

    @classmethod
    def from_env(cls) -> "MonitorConfig":
        """
        Construye la configuración leyendo variables POL_MONITOR_*.

        Valores vacíos o inválidos conservan el default.
        """
        base = cls()
        return cls(
            tolerance=ToleranceConfig(
                target_pol=_read_float("POL_MONITOR_TARGET_POL", base.tolerance.target_pol),
                alert_threshold=_read_float("POL_MONITOR_ALERT_THRESHOLD", base.tolerance.alert_threshold),
            ),
            generator=GeneratorConfig(
                auto_anomaly_probability=_read_float(
                    "POL_MONITOR_ANOMALY_RATE", base.generator.auto_anomaly_probability
                ),
            ),
            scheduler=SchedulerConfig(
                interval_seconds=_read_float("POL_MONITOR_TICK_SECONDS", base.scheduler.interval_seconds),
                autostart=_read_bool("POL_MONITOR_AUTOSTART", base.scheduler.autostart),
            ),
            live=LiveViewConfig(
                history_capacity=_read_int("POL_MONITOR_HISTORY_CAPACITY", base.live.history_capacity),
                alert_display_limit=_read_int("POL_MONITOR_ALERT_LIMIT", base.live.alert_display_limit),
                active_alert_capacity=_read_int(
                    "POL_MONITOR_ACTIVE_ALERT_CAPACITY", base.live.active_alert_capacity
                ),
            ),
            calibration=CalibrationConfig(
                deviation_tolerance=_read_float(
                    "POL_MONITOR_CALIBRATION_TOLERANCE", base.calibration.deviation_tolerance
                ),
            ),
            store=StoreConfig(
                base_url=_read_optional("POL_MONITOR_STORE_URL"),
                api_key=_read_optional("POL_MONITOR_STORE_KEY"),
                timeout_seconds=_read_float("POL_MONITOR_STORE_TIMEOUT", base.store.timeout_seconds),
            ),
        )


def _read_optional(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return None
    return value.strip() or None


def _read_float(name: str, default: float) -> float:
    candidate = _read_optional(name)
    if candidate is None:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    if not math.isfinite(parsed) or parsed < 0:
        return default
    return parsed


def _read_int(name: str, default: int) -> int:
    candidate = _read_optional(name)
    if candidate is None:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_bool(name: str, default: bool) -> bool:
    candidate = _read_optional(name)
    if candidate is None:
        return default
    lowered = candidate.lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    return default


# Instancia global de configuración (puede ser sobrescrita)
config = MonitorConfig()
