"""
Excepciones del dominio de monitoreo de Pol.

Cada error corresponde a un límite concreto del pipeline:
- ValidationError: lectura o sensor mal formado (se descarta ese registro)
- PersistenceError: fallo del colaborador de almacenamiento
- NotFoundError: referencia a un id inexistente
- AlreadyAcknowledgedError: reconocimiento repetido de una alerta
"""


class MonitorError(Exception):
    """Excepción base del sistema."""
    pass


class ValidationError(MonitorError):
    """Datos de sensor o lectura inválidos."""
    pass


class PersistenceError(MonitorError):
    """La llamada al almacenamiento falló."""
    pass


class NotFoundError(MonitorError):
    """El id referenciado no existe."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} '{entity_id}' not found")


class AlreadyAcknowledgedError(MonitorError):
    """La alerta ya había sido reconocida."""

    def __init__(self, alert_id: str, acknowledged_by=None, acknowledged_at=None):
        self.alert_id = alert_id
        self.acknowledged_by = acknowledged_by
        self.acknowledged_at = acknowledged_at
        super().__init__(
            f"Alert '{alert_id}' already acknowledged by {acknowledged_by} at {acknowledged_at}"
        )
