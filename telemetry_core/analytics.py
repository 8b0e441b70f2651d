"""
Agregador de analítica de calibración.
Calcula estadísticas de desviación sobre una ventana de registros.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Iterable, Optional

from .config import MonitorConfig, config as default_config
from .models import CalibrationRecord


class CalibrationWindow(Enum):
    """Ventanas temporales de consulta."""
    LAST_24H = "24h"
    LAST_7D = "7d"
    LAST_30D = "30d"

    @property
    def delta(self) -> timedelta:
        deltas = {
            "24h": timedelta(hours=24),
            "7d": timedelta(days=7),
            "30d": timedelta(days=30),
        }
        return deltas[self.value]


def window_start(window: CalibrationWindow, now: Optional[datetime] = None) -> str:
    """Instante ISO-8601 desde el cual se consultan registros."""
    now = now or datetime.now(timezone.utc)
    return (now - window.delta).isoformat()


@dataclass(frozen=True)
class CalibrationSummary:
    """Estadísticas de desviación de una ventana de calibraciones."""
    count: int = 0
    mean_abs_deviation: float = 0.0
    max_abs_deviation: float = 0.0
    within_tolerance: int = 0

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "mean_abs_deviation": round(self.mean_abs_deviation, 3),
            "max_abs_deviation": round(self.max_abs_deviation, 3),
            "within_tolerance": self.within_tolerance,
        }


class AnalyticsAggregator:
    """Componente puro: no consulta ni persiste nada."""

    def __init__(self, config: Optional[MonitorConfig] = None):
        self.config = config or default_config

    def summarize(self, records: Iterable[CalibrationRecord]) -> CalibrationSummary:
        tolerance = self.config.calibration.deviation_tolerance
        count = 0
        total = 0.0
        maximum = 0.0
        within = 0

        for record in records:
            deviation = abs(record.deviation)
            count += 1
            total += deviation
            if deviation > maximum:
                maximum = deviation
            if deviation <= tolerance:
                within += 1

        if not count:
            return CalibrationSummary()

        return CalibrationSummary(
            count=count,
            mean_abs_deviation=total / count,
            max_abs_deviation=maximum,
            within_tolerance=within,
        )
