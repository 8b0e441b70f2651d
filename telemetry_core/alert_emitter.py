"""
Emisor de alertas de desviación de Pol.
Convierte una lectura marcada por el evaluador en exactamente una alerta
persistida.
"""

import logging
from collections import OrderedDict
from typing import Dict, Optional

from .config import MonitorConfig, config as default_config
from .errors import PersistenceError
from .models import Alert, Reading, Sensor, Severity
from .tolerance import ToleranceResult


logger = logging.getLogger("telemetry_core.alert_emitter")

ALERT_TYPE_POL_DEVIATION = "pol_deviation"


class AlertEmitter:
    """
    📢 Emisor de alertas - una alerta por lectura marcada.

    La lectura se reclama antes de llamar al almacenamiento, de modo que
    un fallo nunca se reintenta y re-evaluar la misma lectura no genera
    una segunda alerta.

    Ejemplo:
        emitter = AlertEmitter(store)
        alert = await emitter.emit(reading, sensor, evaluator.evaluate(reading))
        if alert:
            print(alert.message)
    """

    def __init__(self, store, config: Optional[MonitorConfig] = None):
        self.store = store
        self.config = config or default_config
        self._claimed: "OrderedDict[str, None]" = OrderedDict()
        self._capacity = self.config.live.emitted_memory

        # Estadísticas
        self._stats: Dict[str, int] = {
            "emitted": 0,
            "duplicates_skipped": 0,
            "failed": 0,
        }

    @staticmethod
    def build_message(reading: Reading, sensor: Sensor) -> str:
        return f"Pol percentage {reading.pol_percentage}% outside normal range for {sensor.name}"

    def build_alert(self, reading: Reading, sensor: Sensor) -> Alert:
        """Construye la alerta (sin persistir) para una lectura marcada."""
        return Alert(
            sensor_id=sensor.id,
            alert_type=ALERT_TYPE_POL_DEVIATION,
            severity=Severity.WARNING,
            message=self.build_message(reading, sensor),
        )

    def already_emitted(self, reading_id: str) -> bool:
        return reading_id in self._claimed

    def _claim(self, reading_id: str) -> bool:
        if reading_id in self._claimed:
            return False
        self._claimed[reading_id] = None
        while len(self._claimed) > self._capacity:
            self._claimed.popitem(last=False)
        return True

    async def emit(
        self,
        reading: Reading,
        sensor: Sensor,
        result: ToleranceResult,
    ) -> Optional[Alert]:
        """
        Persiste una alerta si la lectura fue marcada.

        Args:
            reading: Lectura evaluada
            sensor: Sensor dueño de la lectura
            result: Resultado del ToleranceEvaluator

        Returns:
            La alerta persistida, o None si no corresponde alerta

        Raises:
            PersistenceError: Si el almacenamiento rechaza la alerta
        """
        if not result.flagged:
            return None

        if not self._claim(reading.id):
            self._stats["duplicates_skipped"] += 1
            logger.debug(f"Alert already emitted for reading {reading.id}")
            return None

        alert = self.build_alert(reading, sensor)
        try:
            await self.store.insert_alert(alert)
        except PersistenceError:
            self._stats["failed"] += 1
            raise
        except Exception as e:
            self._stats["failed"] += 1
            raise PersistenceError(f"insert_alert failed for sensor {sensor.id}: {e}") from e

        self._stats["emitted"] += 1
        logger.warning(f"🟠 {alert.message} (deviation {result.deviation:.2f})")
        return alert

    def get_stats(self) -> Dict[str, int]:
        return dict(self._stats)
