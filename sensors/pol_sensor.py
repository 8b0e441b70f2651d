#!/usr/bin/env python3
"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                          🍬 Pol Sensor Simulator 🍬                          ║
║                   Virtual Process Sensors for Pol Monitor                    ║
╚══════════════════════════════════════════════════════════════════════════════╝

Genera lecturas sintéticas de proceso (Pol, Brix, humedad, temperatura,
caudal y calidad) para cada sensor activo del ingenio, y permite inyectar
anomalías de Pol para probar el sistema de alertas.

Usage:
    python -m sensors.pol_sensor
    python -m sensors.pol_sensor --interval 1 --ticks 20 --anomaly-rate 0.1
"""

import argparse
import asyncio
import logging
import random
from typing import Dict, Iterable, List, Optional

from telemetry_core.config import FieldRange, MonitorConfig, config as default_config
from telemetry_core.models import Reading, Sensor


logger = logging.getLogger("sensors.pol_sensor")


class ReadingGenerator:
    """
    🤖 Generador de lecturas - una lectura por sensor activo.

    Cada campo se extrae de una distribución uniforme acotada y se redondea
    a la precisión del campo (2 decimales para porcentajes, 1 para
    temperatura/caudal, entero para calidad). Sensores en mantenimiento o
    fuera de línea no generan lectura.

    La persistencia es responsabilidad de quien llama.
    """

    def __init__(self, config: Optional[MonitorConfig] = None, rng: Optional[random.Random] = None):
        self.config = config or default_config
        self.rng = rng or random.Random()
        self._anomalies: Dict[str, int] = {}

        # Estadísticas
        self.total_readings = 0
        self.total_anomalies = 0

    def _draw(self, value_range: FieldRange) -> float:
        return round(self.rng.uniform(value_range.low, value_range.high), value_range.decimals)

    def inject_anomaly(self, sensor_id: str, duration: int = 1) -> None:
        """
        Fuerza picos de Pol en las próximas lecturas de un sensor.

        Args:
            sensor_id: Sensor afectado
            duration: Número de lecturas que durará la anomalía
        """
        if duration < 1:
            raise ValueError("duration must be at least 1")
        self._anomalies[sensor_id] = duration
        logger.info(f"🔥 Anomaly injected on {sensor_id} for {duration} reading(s)")

    def stop_anomaly(self, sensor_id: Optional[str] = None) -> None:
        """Detiene una anomalía activa (o todas)."""
        if sensor_id is None:
            self._anomalies.clear()
        else:
            self._anomalies.pop(sensor_id, None)

    def pending_anomalies(self) -> Dict[str, int]:
        return dict(self._anomalies)

    def _take_anomaly(self, sensor_id: str) -> bool:
        remaining = self._anomalies.get(sensor_id, 0)
        if remaining > 0:
            if remaining == 1:
                del self._anomalies[sensor_id]
            else:
                self._anomalies[sensor_id] = remaining - 1
            return True
        probability = self.config.generator.auto_anomaly_probability
        return probability > 0 and self.rng.random() < probability

    def generate_for(self, sensor: Sensor) -> Optional[Reading]:
        """
        Genera una lectura candidata para un sensor.

        Returns:
            Reading, o None si el sensor no está activo
        """
        if not sensor.is_active:
            return None

        generator = self.config.generator
        is_anomaly = self._take_anomaly(sensor.id)
        if is_anomaly:
            pol = self._draw(generator.anomaly_range)
            self.total_anomalies += 1
        else:
            pol = self._draw(generator.get_range("pol_percentage"))

        brix_offset = generator.get_range("brix_offset")
        brix = round(pol * generator.brix_factor + self.rng.uniform(brix_offset.low, brix_offset.high), 2)

        reading = Reading(
            sensor_id=sensor.id,
            pol_percentage=pol,
            brix=brix,
            moisture_content=self._draw(generator.get_range("moisture_content")),
            temperature=self._draw(generator.get_range("temperature")),
            flow_rate=self._draw(generator.get_range("flow_rate")),
            quality_score=int(self._draw(generator.get_range("quality_score"))),
        )
        self.total_readings += 1
        return reading

    def generate(self, sensors: Iterable[Sensor]) -> List[Reading]:
        """Genera una lectura por cada sensor activo."""
        readings = []
        for sensor in sensors:
            reading = self.generate_for(sensor)
            if reading is not None:
                readings.append(reading)
        return readings

    def get_stats(self) -> Dict[str, int]:
        return {
            "total_readings": self.total_readings,
            "total_anomalies": self.total_anomalies,
            "pending_anomalies": sum(self._anomalies.values()),
        }


# ═══════════════════════════════════════════════════════════════════════════════
# Simulación en consola
# ═══════════════════════════════════════════════════════════════════════════════

DEMO_SENSORS = [
    Sensor(id="line-1", name="Line-1", type="pol_analyzer", location="Mill A/Juice Line 1", accuracy_rating=0.15),
    Sensor(id="line-2", name="Line-2", type="pol_analyzer", location="Mill A/Juice Line 2", accuracy_rating=0.2),
    Sensor(id="clarifier", name="Clarifier", type="nir_probe", location="Mill B/Clarifier", accuracy_rating=0.25),
    Sensor(id="evaporator", name="Evaporator", type="pol_analyzer", location="Mill B/Evaporator",
           status="maintenance", accuracy_rating=0.2),
]


def format_reading(reading: Reading, sensor_name: str, band) -> str:
    """Formatea una lectura para la consola."""
    colors = {"optimal": "\033[92m", "acceptable": "\033[93m", "out_of_range": "\033[91m"}
    color = colors.get(band.value, "")
    reset = "\033[0m"
    timestamp = reading.timestamp.split("T")[1][:8]

    return (
        f"{band.emoji} [{timestamp}] "
        f"{color}{reading.pol_percentage:6.2f}% Pol{reset} | "
        f"Brix {reading.brix:5.2f} | "
        f"{reading.temperature:4.1f}°C | "
        f"Sensor: {sensor_name}"
    )


async def simulate(ticks: int, interval: float, config: MonitorConfig, seed: Optional[int] = None) -> dict:
    """Ejecuta el pipeline completo contra un almacenamiento en memoria."""
    from live_views.dashboard import Dashboard
    from persistence.memory_store import MemoryStore

    store = MemoryStore(sensors=DEMO_SENSORS)
    generator = ReadingGenerator(config, rng=random.Random(seed))
    dashboard = Dashboard(store, generator=generator, config=config, interval_seconds=interval)
    await dashboard.hydrate()

    names = {sensor.id: sensor.name for sensor in DEMO_SENSORS}

    def _print_reading(reading: Reading) -> None:
        band = dashboard.evaluator.pol_band(reading.pol_percentage)
        print(format_reading(reading, names.get(reading.sensor_id, "Unknown"), band))

    dashboard.live_state.add_listener(_print_reading)

    try:
        for i in range(ticks):
            await dashboard.scheduler.tick()
            if i < ticks - 1:
                await asyncio.sleep(interval)
    finally:
        await dashboard.shutdown()

    return dashboard.dashboard_data()


def main():
    """Punto de entrada principal del simulador."""
    parser = argparse.ArgumentParser(
        description="🍬 Pol Sensor Simulator - sensores virtuales para Pol Monitor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Ejemplos de uso:
  python -m sensors.pol_sensor                      # 10 ticks cada 3 segundos
  python -m sensors.pol_sensor --interval 1         # Un tick por segundo
  python -m sensors.pol_sensor --anomaly-rate 0.1   # 10% de picos de Pol
        """
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=default_config.scheduler.interval_seconds,
        help="Intervalo entre ticks en segundos (default: 3)"
    )
    parser.add_argument(
        "--ticks",
        type=int,
        default=10,
        help="Número de ticks a simular (default: 10)"
    )
    parser.add_argument(
        "--anomaly-rate",
        type=float,
        default=0.0,
        help="Probabilidad de pico de Pol por lectura 0-1 (default: 0)"
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Semilla del generador para corridas reproducibles"
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Nivel de logging (default: INFO)"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s | %(levelname)s | %(message)s"
    )

    config = MonitorConfig.from_env()
    config.generator.auto_anomaly_probability = args.anomaly_rate

    print("""
╔══════════════════════════════════════════════════════════════════════════════╗
║                        🍬 Pol Sensor Simulator v1.0 🍬                       ║
║                      Virtual Process Sensors - Pol Monitor                   ║
╚══════════════════════════════════════════════════════════════════════════════╝
""")
    data = asyncio.run(simulate(args.ticks, args.interval, config, seed=args.seed))

    summary = data["summary"]
    print("─" * 70)
    print("📊 RESUMEN DE SESIÓN")
    print(f"   ├─ Sensores activos: {summary['active_sensors']}/{summary['total_sensors']}")
    print(f"   ├─ Pol promedio: {summary['average_pol']:.2f}%")
    print(f"   └─ Alertas activas: {summary['active_alerts']}")


if __name__ == "__main__":
    main()
