#!/usr/bin/env python3
"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                    🗄️ Telemetry Store Base - Pol Monitor                     ║
║                       Persistence Collaborator Contract                      ║
╚══════════════════════════════════════════════════════════════════════════════╝

Clase base abstracta que define el contrato del almacenamiento.
El pipeline de telemetría no implementa almacenamiento durable: consume
esta interfaz (lecturas, alertas, calibraciones y la lista de sensores).

Cada insert exitoso se publica en el NotificationHub adjunto, que es
como las vistas en vivo se enteran de los cambios.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from telemetry_core.models import Alert, CalibrationRecord, Reading, Sensor


logger = logging.getLogger("persistence")

READING_INSERTED = "reading-inserted"
ALERT_INSERTED = "alert-inserted"


class TelemetryStore(ABC):
    """
    🗄️ Contrato del colaborador de persistencia.

    Todas las operaciones son corrutinas. Los fallos se reportan con
    PersistenceError (o NotFoundError / AlreadyAcknowledgedError al
    reconocer alertas); el timeout de cada llamada es responsabilidad
    de la implementación.

    Example:
        >>> class MyStore(TelemetryStore):
        ...     async def insert_reading(self, reading):
        ...         ...
    """

    def __init__(self, hub=None):
        self.hub = hub

    def attach_hub(self, hub) -> None:
        """Conecta el hub de notificaciones que recibirá los inserts."""
        self.hub = hub

    def _publish(self, stream: str, entity: Any) -> None:
        if self.hub is None:
            return
        self.hub.publish(stream, entity)

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    async def list_sensors(self) -> List[Sensor]:
        """Sensores configurados actualmente (lado lectura de la configuración)."""
        pass

    @abstractmethod
    async def insert_reading(self, reading: Reading) -> str:
        """Persiste una lectura y retorna su id."""
        pass

    @abstractmethod
    async def insert_alert(self, alert: Alert) -> str:
        """Persiste una alerta y retorna su id."""
        pass

    @abstractmethod
    async def query_latest_reading(self, sensor_id: str) -> Optional[Reading]:
        """Última lectura (por timestamp) de un sensor, o None."""
        pass

    @abstractmethod
    async def query_recent_readings(self, limit: int) -> List[Reading]:
        """Lecturas más recientes, ordenadas de más nueva a más antigua."""
        pass

    @abstractmethod
    async def query_unacknowledged_alerts(self, limit: int) -> List[Alert]:
        """Alertas no reconocidas, de más reciente a más antigua."""
        pass

    @abstractmethod
    async def acknowledge_alert(self, alert_id: str, by: str, at: str) -> None:
        """Marca una alerta como reconocida."""
        pass

    @abstractmethod
    async def query_calibration_records(
        self,
        sensor_id: Optional[str] = None,
        since: Optional[str] = None,
        limit: int = 50,
    ) -> List[CalibrationRecord]:
        """Registros de calibración filtrados por sensor y ventana temporal."""
        pass

    @abstractmethod
    async def insert_calibration_record(self, record: CalibrationRecord) -> str:
        """Persiste un registro de calibración y retorna su id."""
        pass

    async def close(self) -> None:
        """Libera recursos del almacenamiento."""
        return None

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"
