"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                   📡 Notification Hub - Pol Monitor                          ║
║                     Change Streams for Live Views                            ║
╚══════════════════════════════════════════════════════════════════════════════╝

Publicación/suscripción sobre streams con nombre ("reading-inserted",
"alert-inserted"). Reemplaza la suscripción a cambios de la base de datos:
el almacenamiento publica cada insert y las vistas en vivo se suscriben.
"""

import logging
import threading
from typing import Any, Callable, Dict, List

from persistence.base import ALERT_INSERTED, READING_INSERTED


logger = logging.getLogger("live_views.notifications")

STREAMS = (READING_INSERTED, ALERT_INSERTED)


class Subscription:
    """Handle de una suscripción; unsubscribe() es determinista e idempotente."""

    def __init__(self, hub: "NotificationHub", stream: str, callback: Callable[[Any], None]):
        self.hub = hub
        self.stream = stream
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.hub._remove(self)
        self.active = False

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc) -> None:
        self.unsubscribe()

    def __repr__(self) -> str:
        return f"<Subscription(stream='{self.stream}', active={self.active})>"


class NotificationHub:
    """
    📡 Hub de notificaciones - patrón Observer con streams con nombre.

    Ejemplo:
        hub = NotificationHub()
        sub = hub.subscribe("reading-inserted", live_state.record_reading)
        hub.publish("reading-inserted", reading)
        sub.unsubscribe()
    """

    def __init__(self):
        self._subscribers: Dict[str, List[Subscription]] = {stream: [] for stream in STREAMS}
        self._lock = threading.Lock()
        self._published: Dict[str, int] = {stream: 0 for stream in STREAMS}

    def subscribe(self, stream: str, callback: Callable[[Any], None]) -> Subscription:
        """
        Suscribe un callback a un stream.

        Raises:
            ValueError: Si el stream no existe
        """
        if stream not in self._subscribers:
            raise ValueError(f"Unknown stream '{stream}'. Available: {', '.join(STREAMS)}")
        subscription = Subscription(self, stream, callback)
        with self._lock:
            self._subscribers[stream].append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            subscribers = self._subscribers.get(subscription.stream, [])
            if subscription in subscribers:
                subscribers.remove(subscription)

    def publish(self, stream: str, entity: Any) -> int:
        """
        Entrega la entidad a todos los suscriptores del stream.

        Returns:
            Número de callbacks que la recibieron sin error
        """
        if stream not in self._subscribers:
            raise ValueError(f"Unknown stream '{stream}'")
        with self._lock:
            targets = list(self._subscribers[stream])
            self._published[stream] += 1

        delivered = 0
        for subscription in targets:
            if not subscription.active:
                continue
            try:
                subscription.callback(entity)
                delivered += 1
            except Exception:
                logger.exception(f"Error in {stream} subscriber")
        return delivered

    def subscriber_count(self, stream: str) -> int:
        with self._lock:
            return len(self._subscribers.get(stream, []))

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "published": dict(self._published),
                "subscribers": {s: len(subs) for s, subs in self._subscribers.items()},
            }
