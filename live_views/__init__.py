"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                      📊 Live Views - Pol Monitor                             ║
║                   Dashboard, Notificaciones y API HTTP                       ║
╚══════════════════════════════════════════════════════════════════════════════╝

Vistas en vivo del monitor: se alimentan de los inserts publicados por el
almacenamiento y exponen el estado al operador.

Components:
    - NotificationHub: Streams reading-inserted / alert-inserted
    - LiveStateStore: Última lectura por sensor + historial acotado
    - AlertRegistry: Alertas activas y reconocimiento
    - Dashboard: Cableado completo del pipeline
"""

from .notifications import NotificationHub, Subscription
from .live_state import LiveStateStore
from .alert_registry import AlertRegistry
from .dashboard import Dashboard, get_dashboard, reset_dashboard

__all__ = [
    "NotificationHub",
    "Subscription",
    "LiveStateStore",
    "AlertRegistry",
    "Dashboard",
    "get_dashboard",
    "reset_dashboard",
]

__version__ = "1.0.0"
