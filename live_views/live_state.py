"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                   👁️ Live State Store - Pol Monitor                          ║
║                 Latest Reading per Sensor + Rolling History                  ║
╚══════════════════════════════════════════════════════════════════════════════╝

Vista reconciliada en memoria de las lecturas en vivo:
- Última lectura por sensor (sobrescrita en orden de llegada)
- Buffer circular de las N lecturas más recientes (más nueva primero)

Los escritores se serializan con un lock; los lectores toman un snapshot
inmutable que se reemplaza atómicamente, por lo que una lectura nunca
espera a una escritura.
"""

import logging
import threading
from collections import deque
from types import MappingProxyType
from typing import Callable, Dict, Iterable, List, Optional, Set

from persistence.base import READING_INSERTED
from telemetry_core.config import MonitorConfig, config as default_config
from telemetry_core.models import LiveSnapshot, Reading


logger = logging.getLogger("live_views.live_state")


class LiveStateStore:
    """
    👁️ Live State Store - alimentado por el scheduler y por notificaciones.

    La última lectura de cada sensor es la última que llegó, sin importar
    su timestamp. Se aceptan lecturas de sensores desconocidos; resolver
    el nombre es tarea de la capa de presentación.

    Ejemplo:
        live = LiveStateStore(capacity=50)
        live.attach(hub)
        snapshot = live.snapshot()
        print(snapshot.latest["line-1"].pol_percentage)
    """

    def __init__(self, capacity: Optional[int] = None, config: Optional[MonitorConfig] = None):
        self.config = config or default_config
        self.capacity = capacity if capacity is not None else self.config.live.history_capacity
        if self.capacity < 1:
            raise ValueError("capacity must be at least 1")

        # Estado del escritor (protegido por el lock)
        self._latest: Dict[str, Reading] = {}
        self._recent: deque = deque(maxlen=self.capacity)
        self._recent_ids: Set[str] = set()
        self._lock = threading.Lock()

        # Snapshot publicado para lectores
        self._snapshot = LiveSnapshot()

        self._listeners: List[Callable[[Reading], None]] = []
        self._subscription = None
        self._total_recorded = 0

    def _publish_snapshot(self) -> None:
        self._snapshot = LiveSnapshot(
            latest=MappingProxyType(dict(self._latest)),
            recent=tuple(self._recent),
        )

    def _append_recent(self, reading: Reading) -> bool:
        if reading.id in self._recent_ids:
            return False
        if len(self._recent) == self._recent.maxlen:
            evicted = self._recent.pop()
            self._recent_ids.discard(evicted.id)
        self._recent.appendleft(reading)
        self._recent_ids.add(reading.id)
        return True

    def record_reading(self, reading: Reading) -> None:
        """
        Registra una lectura recién llegada.

        Sobrescribe la última lectura del sensor y la agrega al inicio del
        historial, expulsando la más antigua si se supera la capacidad. Una
        lectura ya presente en el historial (mismo id) no se duplica.
        """
        with self._lock:
            self._latest[reading.sensor_id] = reading
            is_new = self._append_recent(reading)
            if is_new:
                self._total_recorded += 1
            self._publish_snapshot()

        if not is_new:
            return

        for callback in list(self._listeners):
            try:
                callback(reading)
            except Exception:
                logger.exception("Error in live reading listener")

    def seed(self, latest: Iterable[Reading] = (), recent: Iterable[Reading] = ()) -> None:
        """
        Hidrata la vista con datos consultados al almacenamiento.

        Args:
            latest: Última lectura por sensor
            recent: Lecturas recientes, de más nueva a más antigua
        """
        with self._lock:
            for reading in latest:
                self._latest[reading.sensor_id] = reading
            # Se insertan de la más antigua a la más nueva para conservar el orden
            for reading in reversed(list(recent)):
                self._append_recent(reading)
            self._publish_snapshot()

    def snapshot(self) -> LiveSnapshot:
        """Vista inmutable actual (lock-free)."""
        return self._snapshot

    def latest(self, sensor_id: str) -> Optional[Reading]:
        return self._snapshot.latest.get(sensor_id)

    def recent(self, limit: Optional[int] = None) -> List[Reading]:
        readings = self._snapshot.recent
        if limit is not None:
            readings = readings[:limit]
        return list(readings)

    def average_pol(self) -> float:
        """Pol promedio sobre la última lectura de cada sensor (0 si no hay datos)."""
        latest = self._snapshot.latest
        if not latest:
            return 0.0
        return sum(r.pol_percentage for r in latest.values()) / len(latest)

    def add_listener(self, callback: Callable[[Reading], None]) -> None:
        """Agrega un callback para cada lectura nueva (SSE, consola)."""
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[Reading], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def attach(self, hub):
        """Suscribe la vista al stream reading-inserted del hub."""
        self.detach()
        self._subscription = hub.subscribe(READING_INSERTED, self.record_reading)
        return self._subscription

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def clear(self) -> None:
        """Limpia todos los datos."""
        with self._lock:
            self._latest.clear()
            self._recent.clear()
            self._recent_ids.clear()
            self._total_recorded = 0
            self._publish_snapshot()

    def get_stats(self) -> dict:
        snapshot = self._snapshot
        return {
            "sensors_tracked": len(snapshot.latest),
            "history_size": len(snapshot.recent),
            "history_capacity": self.capacity,
            "total_recorded": self._total_recorded,
        }
