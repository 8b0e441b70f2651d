#!/usr/bin/env python3
"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                      🍬 Pol Monitor Live API 🍬                              ║
║                   Dashboard, Alertas y Calibración via HTTP                  ║
╚══════════════════════════════════════════════════════════════════════════════╝

API FastAPI para:
- Servir el estado en vivo del ingenio al dashboard via REST y SSE
- Reconocer alertas de desviación de Pol
- Consultar y registrar calibraciones contra laboratorio

Usage:
    python -m live_views.api

    o con uvicorn:
    uvicorn live_views.api:app --reload --port 8001
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from telemetry_core.errors import (
    AlreadyAcknowledgedError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)

from .dashboard import DEFAULT_OPERATOR, get_dashboard, reset_dashboard


# ═══════════════════════════════════════════════════════════════════════════════
# Configuración de Logging
# ═══════════════════════════════════════════════════════════════════════════════

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(message)s"
)
logger = logging.getLogger("live_views.api")

HEARTBEAT_SECONDS = 30.0


# ═══════════════════════════════════════════════════════════════════════════════
# FastAPI App
# ═══════════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Hidrata el dashboard y arranca el scheduler junto con la API."""
    dashboard = get_dashboard()
    await dashboard.hydrate()
    if dashboard.config.scheduler.autostart:
        await dashboard.scheduler.start()
    try:
        yield
    finally:
        try:
            await dashboard.shutdown()
        finally:
            # La próxima ejecución del lifespan construye un dashboard nuevo
            reset_dashboard()


app = FastAPI(
    title="🍬 Pol Monitor Live API",
    description="Real-time Pol monitoring for sugar-mill process sensors",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS para desarrollo - permite conexión desde el dashboard web
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ═══════════════════════════════════════════════════════════════════════════════
# Manejo de errores del dominio
# ═══════════════════════════════════════════════════════════════════════════════

@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(AlreadyAcknowledgedError)
async def already_acknowledged_handler(request: Request, exc: AlreadyAcknowledgedError):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "detail": str(exc),
            "acknowledged_by": exc.acknowledged_by,
            "acknowledged_at": exc.acknowledged_at,
        },
    )


@app.exception_handler(ValidationError)
async def validation_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(PersistenceError)
async def persistence_handler(request: Request, exc: PersistenceError):
    logger.error(f"Storage error on {request.url.path}: {exc}")
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"detail": str(exc)})


# ═══════════════════════════════════════════════════════════════════════════════
# Pydantic Models
# ═══════════════════════════════════════════════════════════════════════════════

class AcknowledgeInput(BaseModel):
    """Operador que reconoce la alerta."""
    acknowledged_by: str = Field(DEFAULT_OPERATOR, min_length=1)


class CalibrationInput(BaseModel):
    """Calibración contra laboratorio."""
    sensor_id: str = Field(..., min_length=1)
    lab_pol_value: float
    sensor_pol_value: float
    calibrated_by: str = Field(..., min_length=1)
    notes: Optional[str] = None


class AnomalyInput(BaseModel):
    """Anomalía de Pol a inyectar en el generador."""
    duration: int = Field(1, ge=1, le=100)


class DashboardDataResponse(BaseModel):
    """Estructura completa de datos para Dashboard."""
    summary: Dict[str, Any]
    sensors: List[Dict[str, Any]]
    recent_readings: List[Dict[str, Any]]
    alerts: List[Dict[str, Any]]
    scheduler: Dict[str, Any]


class HealthResponse(BaseModel):
    """Respuesta del health check."""
    status: str
    timestamp: str
    stats: Dict[str, Any]


# ═══════════════════════════════════════════════════════════════════════════════
# Endpoints - Health & Info
# ═══════════════════════════════════════════════════════════════════════════════

@app.get("/", tags=["Health"])
async def root():
    """Endpoint raíz con información de la API."""
    return {
        "service": "Pol Monitor Live API",
        "version": "1.0.0",
        "docs": "/docs",
        "endpoints": {
            "dashboard": "/api/dashboard/data",
            "stream": "/api/dashboard/stream",
            "alerts": "/api/alerts",
            "calibration": "/api/analytics/calibration",
        }
    }


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Verifica el estado del servicio."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now().isoformat(),
        stats=get_dashboard().get_stats(),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Endpoints - Dashboard Data
# ═══════════════════════════════════════════════════════════════════════════════

@app.get("/api/dashboard/data", response_model=DashboardDataResponse, tags=["Dashboard"])
async def get_dashboard_data():
    """
    📊 Obtiene datos completos para el Dashboard.

    Retorna:
    - summary: sensores activos, Pol promedio, alertas activas
    - sensors: tarjeta por sensor con banda de Pol y estado de precisión
    - recent_readings: historial en vivo (más nueva primero)
    - alerts: alertas no reconocidas
    """
    return DashboardDataResponse(**get_dashboard().dashboard_data())


@app.get("/api/readings/latest", tags=["Dashboard"])
async def get_latest_readings():
    """📈 Última lectura de cada sensor."""
    dashboard = get_dashboard()
    latest = dashboard.live_state.snapshot().latest
    return {
        "total": len(latest),
        "readings": {sensor_id: dashboard.reading_view(r) for sensor_id, r in latest.items()},
    }


@app.get("/api/readings/recent", tags=["Dashboard"])
async def get_recent_readings(limit: int = Query(50, ge=1, le=500, description="Límite de lecturas")):
    """📈 Lecturas recientes, de más nueva a más antigua."""
    dashboard = get_dashboard()
    readings = [dashboard.reading_view(r) for r in dashboard.live_state.recent(limit)]
    return {"total": len(readings), "readings": readings}


# ═══════════════════════════════════════════════════════════════════════════════
# Endpoints - Alertas
# ═══════════════════════════════════════════════════════════════════════════════

@app.get("/api/alerts", tags=["Alerts"])
async def get_alerts(limit: Optional[int] = Query(None, ge=1, le=100)):
    """🔔 Alertas no reconocidas, más reciente primero."""
    alerts = get_dashboard().alert_registry.active(limit)
    return {"total": len(alerts), "alerts": [a.to_dict() for a in alerts]}


@app.post("/api/alerts/{alert_id}/acknowledge", tags=["Alerts"])
async def acknowledge_alert(alert_id: str, body: Optional[AcknowledgeInput] = None):
    """
    ✅ Reconoce una alerta.

    - 404 si la alerta no existe
    - 409 si ya fue reconocida
    """
    by = body.acknowledged_by if body else DEFAULT_OPERATOR
    alert = await get_dashboard().acknowledge(alert_id, by)
    return {"success": True, "alert": alert}


# ═══════════════════════════════════════════════════════════════════════════════
# Endpoints - Calibración y simulación
# ═══════════════════════════════════════════════════════════════════════════════

@app.get("/api/analytics/calibration", tags=["Analytics"])
async def get_calibration_analytics(
    sensor_id: Optional[str] = Query(None, description="Filtrar por sensor"),
    window: str = Query("24h", description="Ventana: 24h, 7d o 30d"),
):
    """📐 Desviación media y máxima de las calibraciones de la ventana."""
    return await get_dashboard().calibration_summary(sensor_id, window)


@app.post("/api/calibration", status_code=status.HTTP_201_CREATED, tags=["Analytics"])
async def create_calibration(data: CalibrationInput):
    """📐 Registra una calibración contra laboratorio."""
    record = await get_dashboard().record_calibration(
        sensor_id=data.sensor_id,
        lab_pol_value=data.lab_pol_value,
        sensor_pol_value=data.sensor_pol_value,
        calibrated_by=data.calibrated_by,
        notes=data.notes,
    )
    return record.to_dict()


@app.post("/api/sensors/{sensor_id}/anomaly", tags=["Simulation"])
async def inject_anomaly(sensor_id: str, body: Optional[AnomalyInput] = None):
    """🔥 Fuerza picos de Pol en las próximas lecturas del sensor."""
    duration = body.duration if body else 1
    return await get_dashboard().inject_anomaly(sensor_id, duration)


# ═══════════════════════════════════════════════════════════════════════════════
# Endpoints - Server-Sent Events (SSE) para Real-time
# ═══════════════════════════════════════════════════════════════════════════════

def format_event(event: str, payload: Dict[str, Any]) -> str:
    return f"event: {event}\ndata: {json.dumps(payload)}\n\n"


async def event_generator():
    """Generador de eventos SSE."""
    dashboard = get_dashboard()
    queue = dashboard.open_event_queue()

    try:
        yield format_event("connected", {"status": "connected", "timestamp": datetime.now().isoformat()})

        while True:
            try:
                event, payload = await asyncio.wait_for(queue.get(), timeout=HEARTBEAT_SECONDS)
                yield format_event(event, payload)
            except asyncio.TimeoutError:
                yield format_event("heartbeat", {"timestamp": datetime.now().isoformat()})
    finally:
        dashboard.close_event_queue(queue)


@app.get("/api/dashboard/stream", tags=["Real-time"])
async def stream_events():
    """
    📡 Stream de datos en tiempo real via Server-Sent Events (SSE).

    Eventos:
    - `connected`: Conexión establecida
    - `reading`: Nueva lectura de sensor
    - `alert`: Nueva alerta de desviación
    - `heartbeat`: Keep-alive cada 30 segundos
    """
    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no"
        }
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Main Entry Point
# ═══════════════════════════════════════════════════════════════════════════════

if __name__ == "__main__":
    import uvicorn

    print("""
╔══════════════════════════════════════════════════════════════════════════════╗
║                        🍬 Pol Monitor Live API 🍬                            ║
║                     Dashboard, Alertas y Calibración                         ║
╚══════════════════════════════════════════════════════════════════════════════╝
    """)

    uvicorn.run(
        "live_views.api:app",
        host="0.0.0.0",
        port=8001,
        reload=True,
        log_level="info",
    )
