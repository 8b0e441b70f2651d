"""
Evaluador de tolerancia para lecturas de Pol.
Compara cada lectura contra la banda de referencia (objetivo ± margen).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .config import MonitorConfig, ToleranceConfig, config as default_config
from .models import Reading, Sensor


class Decision(Enum):
    """Resultado de la evaluación de una lectura."""
    NO_ALERT = "no-alert"
    WARNING = "warning"


class PolBand(Enum):
    """Clasificación de la Pol para visualización."""
    OPTIMAL = "optimal"
    ACCEPTABLE = "acceptable"
    OUT_OF_RANGE = "out_of_range"

    @property
    def emoji(self) -> str:
        emojis = {"optimal": "🟢", "acceptable": "🟡", "out_of_range": "🔴"}
        return emojis.get(self.value, "⚪")


class AccuracyStatus(Enum):
    """Precisión de la última lectura respecto al rating del sensor."""
    WITHIN_SPEC = "within_spec"
    OUT_OF_SPEC = "out_of_spec"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ToleranceResult:
    decision: Decision
    deviation: float
    signed_deviation: float

    @property
    def flagged(self) -> bool:
        return self.decision is Decision.WARNING

    def to_dict(self) -> dict:
        return {
            "decision": self.decision.value,
            "deviation": round(self.deviation, 3),
            "signed_deviation": round(self.signed_deviation, 3),
        }


class ToleranceEvaluator:
    """
    🔧 Evaluador de tolerancia - función pura sobre lecturas.

    La alerta usa una banda fija (objetivo ± umbral de alerta). El rating de
    precisión de cada sensor es un valor independiente, usado solo para
    mostrar si la lectura está dentro de especificación.

    Ejemplo:
        evaluator = ToleranceEvaluator()
        result = evaluator.evaluate(reading)
        if result.flagged:
            print(f"Desviación: {result.deviation}")
    """

    def __init__(self, config: Optional[MonitorConfig] = None):
        self.config = config or default_config

    @property
    def band(self) -> ToleranceConfig:
        return self.config.tolerance

    def evaluate(self, reading: Reading, band: Optional[ToleranceConfig] = None) -> ToleranceResult:
        """
        Evalúa una lectura contra la banda de tolerancia.

        Args:
            reading: Lectura a evaluar
            band: Banda alternativa (por defecto la configurada)

        Returns:
            ToleranceResult con decisión y desviación
        """
        band = band or self.band
        signed = reading.pol_percentage - band.target_pol
        deviation = abs(signed)

        # Estricto: una desviación igual al umbral no alerta
        if deviation > band.alert_threshold:
            decision = Decision.WARNING
        else:
            decision = Decision.NO_ALERT

        return ToleranceResult(decision=decision, deviation=deviation, signed_deviation=signed)

    def pol_band(self, pol: float) -> PolBand:
        """Clasifica un valor de Pol en óptimo, aceptable o fuera de rango."""
        band = self.band
        if abs(pol - band.target_pol) <= band.optimal_margin:
            return PolBand.OPTIMAL
        if band.acceptable_min <= pol <= band.acceptable_max:
            return PolBand.ACCEPTABLE
        return PolBand.OUT_OF_RANGE

    def accuracy_status(self, reading: Optional[Reading], sensor: Sensor) -> AccuracyStatus:
        """Indica si la lectura está dentro del rating de precisión del sensor."""
        if reading is None:
            return AccuracyStatus.UNKNOWN
        deviation = abs(reading.pol_percentage - self.band.target_pol)
        if deviation <= sensor.accuracy_rating:
            return AccuracyStatus.WITHIN_SPEC
        return AccuracyStatus.OUT_OF_SPEC
