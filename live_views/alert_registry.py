"""
Registro en memoria de alertas no reconocidas.
Mantiene el conjunto activo ordenado por creación (más reciente primero)
y aplica la transición de reconocimiento una sola vez.
"""

import bisect
import logging
import threading
from collections import OrderedDict
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from persistence.base import ALERT_INSERTED
from telemetry_core.config import MonitorConfig, config as default_config
from telemetry_core.errors import AlreadyAcknowledgedError, NotFoundError
from telemetry_core.models import Alert, utc_now


logger = logging.getLogger("live_views.alert_registry")


class AlertRegistry:
    """
    🔔 Registro de alertas activas.

    La vista se trunca a display_limit. El conjunto activo retiene hasta
    `capacity` alertas (se descartan las más antiguas) y los reconocimientos
    se recuerdan hasta `acknowledged_memory` entradas para poder señalar un
    reconocimiento repetido. El store sigue siendo la fuente de verdad.
    """

    def __init__(
        self,
        display_limit: Optional[int] = None,
        config: Optional[MonitorConfig] = None,
        capacity: Optional[int] = None,
        acknowledged_memory: Optional[int] = None,
    ):
        self.config = config or default_config
        self.display_limit = (
            display_limit if display_limit is not None else self.config.live.alert_display_limit
        )
        self.capacity = capacity if capacity is not None else self.config.live.active_alert_capacity
        self.acknowledged_memory = (
            acknowledged_memory if acknowledged_memory is not None
            else self.config.live.acknowledged_memory
        )
        if self.capacity < 1 or self.acknowledged_memory < 1:
            raise ValueError("capacity and acknowledged_memory must be >= 1")

        self._active: Dict[str, Alert] = {}
        # (created_at, id) ascendente; el primero es el más antiguo
        self._order: List[Tuple[str, str]] = []
        self._acknowledged: "OrderedDict[str, Alert]" = OrderedDict()
        self._lock = threading.Lock()
        self._view: Tuple[Alert, ...] = ()
        self._evicted = 0

        self._listeners: List[Callable[[Alert], None]] = []
        self._subscription = None

    def _rebuild_view(self) -> None:
        self._view = tuple(self._active[alert_id] for _, alert_id in reversed(self._order))

    def _insert_active(self, alert: Alert) -> bool:
        """Inserta en orden y descarta las más antiguas si se excede la capacidad."""
        key = (alert.created_at, alert.id)
        if len(self._order) >= self.capacity and key < self._order[0]:
            self._evicted += 1
            return False
        bisect.insort(self._order, key)
        self._active[alert.id] = alert
        while len(self._order) > self.capacity:
            _, oldest_id = self._order.pop(0)
            del self._active[oldest_id]
            self._evicted += 1
        return alert.id in self._active

    def _remember_acknowledged(self, alert: Alert) -> None:
        self._acknowledged[alert.id] = alert
        self._acknowledged.move_to_end(alert.id)
        while len(self._acknowledged) > self.acknowledged_memory:
            self._acknowledged.popitem(last=False)

    def register(self, alert: Alert) -> bool:
        """
        Agrega una alerta al conjunto activo.

        Returns:
            True si la alerta era nueva y quedó retenida
        """
        with self._lock:
            if alert.id in self._active or alert.id in self._acknowledged:
                return False
            if alert.acknowledged:
                self._remember_acknowledged(alert)
                return False
            if not self._insert_active(alert):
                return False
            self._rebuild_view()

        for callback in list(self._listeners):
            try:
                callback(alert)
            except Exception:
                logger.exception("Error in alert listener")
        return True

    def replace(self, alerts: Iterable[Alert]) -> None:
        """Reemplaza el conjunto activo con el resultado de una consulta."""
        with self._lock:
            self._active = {}
            self._order = []
            for alert in alerts:
                if not alert.acknowledged and alert.id not in self._active:
                    self._insert_active(alert)
            self._rebuild_view()

    def acknowledge(self, alert_id: str, by: str, at: Optional[str] = None) -> Alert:
        """
        Reconoce una alerta y la saca del conjunto activo.

        Raises:
            NotFoundError: Si la alerta no está retenida
            AlreadyAcknowledgedError: Si ya fue reconocida (sin cambios)
        """
        with self._lock:
            previous = self._acknowledged.get(alert_id)
            if previous is not None:
                raise AlreadyAcknowledgedError(
                    alert_id, previous.acknowledged_by, previous.acknowledged_at
                )
            alert = self._active.get(alert_id)
            if alert is None:
                raise NotFoundError("Alert", alert_id)

            acknowledged = alert.acknowledge(by, at or utc_now())
            key = (alert.created_at, alert.id)
            index = bisect.bisect_left(self._order, key)
            del self._order[index]
            del self._active[alert_id]
            self._remember_acknowledged(acknowledged)
            self._rebuild_view()

        logger.info(f"✅ Alert {alert_id} acknowledged by {by}")
        return acknowledged

    def get(self, alert_id: str) -> Optional[Alert]:
        with self._lock:
            return self._active.get(alert_id) or self._acknowledged.get(alert_id)

    def active(self, limit: Optional[int] = None) -> List[Alert]:
        """Alertas activas, más reciente primero, truncadas al límite de display."""
        limit = self.display_limit if limit is None else limit
        return list(self._view[:limit])

    def __len__(self) -> int:
        return len(self._view)

    def __contains__(self, alert_id: str) -> bool:
        return any(a.id == alert_id for a in self._view)

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "active": len(self._active),
                "acknowledged_tracked": len(self._acknowledged),
                "capacity": self.capacity,
                "acknowledged_memory": self.acknowledged_memory,
                "evicted": self._evicted,
            }

    def add_listener(self, callback: Callable[[Alert], None]) -> None:
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[Alert], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def attach(self, hub):
        """Suscribe el registro al stream alert-inserted del hub."""
        self.detach()
        self._subscription = hub.subscribe(ALERT_INSERTED, self.register)
        return self._subscription

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def clear(self) -> None:
        with self._lock:
            self._active.clear()
            self._order.clear()
            self._acknowledged.clear()
            self._view = ()
