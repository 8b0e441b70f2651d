"""
Modelos de datos del monitor de Pol.
Define sensores, lecturas, alertas, registros de calibración y la vista
en memoria de valores recientes.
"""

import math
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from .errors import AlreadyAcknowledgedError, ValidationError


POL_MIN = 0.0
POL_MAX = 100.0


def utc_now() -> str:
    """Instante actual en ISO-8601 (UTC)."""
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return str(uuid.uuid4())


class SensorStatus(Enum):
    """Estado de ciclo de vida de un sensor."""
    ACTIVE = "active"
    MAINTENANCE = "maintenance"
    OFFLINE = "offline"

    @property
    def emoji(self) -> str:
        emojis = {"active": "🟢", "maintenance": "🔧", "offline": "🔴"}
        return emojis.get(self.value, "⚪")


class Severity(Enum):
    """Severidad de una alerta del sistema."""
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def priority(self) -> int:
        """Retorna prioridad numérica (mayor = más urgente)."""
        priorities = {"info": 1, "warning": 2, "critical": 3}
        return priorities.get(self.value, 0)


def _parse_enum(enum_cls, value, field_name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ValidationError(f"{field_name} must be one of {allowed}, got {value!r}")


def _finite(value: Any, field_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field_name} must be numeric, got {value!r}")
    value = float(value)
    if not math.isfinite(value):
        raise ValidationError(f"{field_name} must be finite, got {value!r}")
    return value


def _optional_finite(value: Any, field_name: str) -> Optional[float]:
    if value is None:
        return None
    return _finite(value, field_name)


@dataclass
class Sensor:
    """
    Sensor configurado en el ingenio.
    Pertenece al subsistema de configuración; el pipeline solo lo lee.
    """
    id: str
    name: str
    type: str = "pol_analyzer"
    location: str = ""
    status: SensorStatus = SensorStatus.ACTIVE
    calibration_date: str = field(default_factory=utc_now)
    accuracy_rating: float = 0.1

    def __post_init__(self):
        """Validación post-inicialización."""
        if not self.id:
            raise ValidationError("sensor id cannot be empty")
        if not self.name:
            raise ValidationError("sensor name cannot be empty")
        self.status = _parse_enum(SensorStatus, self.status, "status")
        self.accuracy_rating = _finite(self.accuracy_rating, "accuracy_rating")
        if self.accuracy_rating < 0:
            raise ValidationError("accuracy_rating must be nonnegative")

    @property
    def is_active(self) -> bool:
        return self.status is SensorStatus.ACTIVE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Sensor":
        """Crea una instancia desde una fila de la tabla sensors."""
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            type=data.get("type", "pol_analyzer"),
            location=data.get("location", ""),
            status=data.get("status", "active"),
            calibration_date=data.get("calibration_date") or utc_now(),
            accuracy_rating=data.get("accuracy_rating", 0.1),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "location": self.location,
            "status": self.status.value,
            "calibration_date": self.calibration_date,
            "accuracy_rating": self.accuracy_rating,
        }


@dataclass(frozen=True)
class Reading:
    """
    Lectura de proceso de un sensor.
    Inmutable una vez creada; la Pol debe estar en un rango físico plausible.
    """
    sensor_id: str
    pol_percentage: float
    brix: Optional[float] = None
    moisture_content: Optional[float] = None
    temperature: Optional[float] = None
    flow_rate: Optional[float] = None
    quality_score: int = 100
    timestamp: str = field(default_factory=utc_now)
    id: str = field(default_factory=new_id)

    def __post_init__(self):
        if not self.sensor_id:
            raise ValidationError("sensor_id cannot be empty")
        pol = _finite(self.pol_percentage, "pol_percentage")
        if not POL_MIN <= pol <= POL_MAX:
            raise ValidationError(f"pol_percentage {pol} outside [{POL_MIN}, {POL_MAX}]")
        for name in ("brix", "moisture_content", "temperature", "flow_rate"):
            _optional_finite(getattr(self, name), name)
        quality = _finite(self.quality_score, "quality_score")
        if not 0 <= quality <= 100:
            raise ValidationError(f"quality_score {quality} outside [0, 100]")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Reading":
        """Crea una instancia desde una fila de sensor_readings."""
        kwargs = {
            "sensor_id": data.get("sensor_id", ""),
            "pol_percentage": data.get("pol_percentage"),
            "brix": data.get("brix"),
            "moisture_content": data.get("moisture_content"),
            "temperature": data.get("temperature"),
            "flow_rate": data.get("flow_rate"),
            "quality_score": data.get("quality_score", 100),
        }
        if data.get("timestamp"):
            kwargs["timestamp"] = data["timestamp"]
        if data.get("id"):
            kwargs["id"] = data["id"]
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sensor_id": self.sensor_id,
            "pol_percentage": self.pol_percentage,
            "brix": self.brix,
            "moisture_content": self.moisture_content,
            "temperature": self.temperature,
            "flow_rate": self.flow_rate,
            "quality_score": self.quality_score,
            "timestamp": self.timestamp,
        }

    def __str__(self) -> str:
        return f"[{self.sensor_id}] Pol: {self.pol_percentage:.2f}% @ {self.timestamp}"


@dataclass(frozen=True)
class Alert:
    """
    Alerta del sistema asociada a un sensor.
    Transiciona una sola vez de no reconocida a reconocida.
    """
    sensor_id: str
    message: str
    alert_type: str = "pol_deviation"
    severity: Severity = Severity.WARNING
    acknowledged: bool = False
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[str] = None
    created_at: str = field(default_factory=utc_now)
    id: str = field(default_factory=new_id)

    def __post_init__(self):
        if not self.sensor_id:
            raise ValidationError("sensor_id cannot be empty")
        object.__setattr__(self, "severity", _parse_enum(Severity, self.severity, "severity"))

    def acknowledge(self, by: str, at: Optional[str] = None) -> "Alert":
        """Retorna una copia reconocida de la alerta."""
        if self.acknowledged:
            raise AlreadyAcknowledgedError(self.id, self.acknowledged_by, self.acknowledged_at)
        if not by:
            raise ValidationError("acknowledged_by cannot be empty")
        return replace(
            self,
            acknowledged=True,
            acknowledged_by=by,
            acknowledged_at=at or utc_now(),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Alert":
        """Crea una instancia desde una fila de system_alerts."""
        kwargs = {
            "sensor_id": data.get("sensor_id", ""),
            "message": data.get("message", ""),
            "alert_type": data.get("alert_type", "pol_deviation"),
            "severity": data.get("severity", "warning"),
            "acknowledged": bool(data.get("acknowledged", False)),
            "acknowledged_by": data.get("acknowledged_by"),
            "acknowledged_at": data.get("acknowledged_at"),
        }
        if data.get("created_at"):
            kwargs["created_at"] = data["created_at"]
        if data.get("id"):
            kwargs["id"] = data["id"]
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sensor_id": self.sensor_id,
            "alert_type": self.alert_type,
            "severity": self.severity.value,
            "message": self.message,
            "acknowledged": self.acknowledged,
            "acknowledged_by": self.acknowledged_by,
            "acknowledged_at": self.acknowledged_at,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class CalibrationRecord:
    """
    Registro de calibración contra laboratorio.
    La desviación se calcula una sola vez al crear el registro.
    """
    sensor_id: str
    lab_pol_value: float
    sensor_pol_value: float
    deviation: float
    calibrated_by: str
    notes: Optional[str] = None
    timestamp: str = field(default_factory=utc_now)
    id: str = field(default_factory=new_id)

    @classmethod
    def create(
        cls,
        sensor_id: str,
        lab_pol_value: float,
        sensor_pol_value: float,
        calibrated_by: str,
        notes: Optional[str] = None,
        timestamp: Optional[str] = None,
    ) -> "CalibrationRecord":
        """Factory method que calcula deviation = sensor - laboratorio."""
        if not sensor_id:
            raise ValidationError("sensor_id cannot be empty")
        if not calibrated_by:
            raise ValidationError("calibrated_by cannot be empty")
        lab = _finite(lab_pol_value, "lab_pol_value")
        measured = _finite(sensor_pol_value, "sensor_pol_value")
        return cls(
            sensor_id=sensor_id,
            lab_pol_value=lab,
            sensor_pol_value=measured,
            deviation=measured - lab,
            calibrated_by=calibrated_by,
            notes=notes,
            timestamp=timestamp or utc_now(),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CalibrationRecord":
        """Reconstruye un registro almacenado (la desviación no se recalcula)."""
        kwargs = {
            "sensor_id": data.get("sensor_id", ""),
            "lab_pol_value": _finite(data.get("lab_pol_value"), "lab_pol_value"),
            "sensor_pol_value": _finite(data.get("sensor_pol_value"), "sensor_pol_value"),
            "deviation": _finite(data.get("deviation"), "deviation"),
            "calibrated_by": data.get("calibrated_by", ""),
            "notes": data.get("notes"),
        }
        if data.get("timestamp"):
            kwargs["timestamp"] = data["timestamp"]
        if data.get("id"):
            kwargs["id"] = data["id"]
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sensor_id": self.sensor_id,
            "lab_pol_value": self.lab_pol_value,
            "sensor_pol_value": self.sensor_pol_value,
            "deviation": self.deviation,
            "calibrated_by": self.calibrated_by,
            "notes": self.notes,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class LiveSnapshot:
    """
    Vista inmutable de los valores en vivo.
    latest: última lectura por sensor. recent: lecturas más recientes primero.
    """
    latest: Mapping[str, Reading] = field(default_factory=lambda: MappingProxyType({}))
    recent: Tuple[Reading, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "latest": {sensor_id: r.to_dict() for sensor_id, r in self.latest.items()},
            "recent": [r.to_dict() for r in self.recent],
        }
