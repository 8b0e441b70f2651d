"""
Capa de persistencia del monitor de Pol.

Components:
    - TelemetryStore: Contrato abstracto del almacenamiento
    - MemoryStore: Implementación en memoria (demo y tests)
    - RestStore: Adaptador HTTP estilo PostgREST
"""

from .base import TelemetryStore, READING_INSERTED, ALERT_INSERTED
from .memory_store import MemoryStore
from .rest_store import RestStore

__all__ = [
    "TelemetryStore",
    "READING_INSERTED",
    "ALERT_INSERTED",
    "MemoryStore",
    "RestStore",
]
