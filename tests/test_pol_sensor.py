"""
Tests para el simulador de sensores de Pol.
"""

import random

import pytest

from sensors.pol_sensor import DEMO_SENSORS, ReadingGenerator, format_reading, simulate
from telemetry_core.config import MonitorConfig
from telemetry_core.models import Sensor
from telemetry_core.tolerance import PolBand


@pytest.fixture
def generator():
    return ReadingGenerator(MonitorConfig(), rng=random.Random(42))


@pytest.fixture
def sensor():
    return Sensor(id="line-1", name="Line-1")


def test_readings_within_configured_ranges(generator, sensor):
    for _ in range(200):
        reading = generator.generate_for(sensor)

        assert 12.0 <= reading.pol_percentage <= 16.0
        assert round(reading.pol_percentage, 2) == reading.pol_percentage
        assert 70.0 <= reading.moisture_content <= 75.0
        assert 28.0 <= reading.temperature <= 32.0
        assert 45.0 <= reading.flow_rate <= 55.0
        assert isinstance(reading.quality_score, int)
        assert 95 <= reading.quality_score <= 100
        base = reading.pol_percentage * 1.2
        assert base - 0.01 <= reading.brix <= base + 2.01


def test_inactive_sensor_yields_nothing(generator):
    assert generator.generate_for(Sensor(id="s", name="S", status="offline")) is None
    assert [r.sensor_id for r in generator.generate(DEMO_SENSORS)] == ["line-1", "line-2", "clarifier"]


def test_injected_anomaly_lasts_for_duration(generator, sensor):
    generator.inject_anomaly("line-1", duration=2)

    spikes = [generator.generate_for(sensor).pol_percentage for _ in range(3)]

    assert all(16.6 <= pol <= 18.0 for pol in spikes[:2])
    assert 12.0 <= spikes[2] <= 16.0
    assert generator.get_stats()["total_anomalies"] == 2


def test_stop_anomaly(generator):
    generator.inject_anomaly("line-1", duration=5)
    generator.inject_anomaly("line-2", duration=5)

    generator.stop_anomaly("line-1")
    assert generator.pending_anomalies() == {"line-2": 5}

    generator.stop_anomaly()
    assert generator.pending_anomalies() == {}


def test_invalid_anomaly_duration(generator):
    with pytest.raises(ValueError):
        generator.inject_anomaly("line-1", duration=0)


def test_seeded_generators_are_reproducible(sensor):
    first = ReadingGenerator(MonitorConfig(), rng=random.Random(1)).generate_for(sensor)
    second = ReadingGenerator(MonitorConfig(), rng=random.Random(1)).generate_for(sensor)

    assert first.pol_percentage == second.pol_percentage
    assert first.brix == second.brix


def test_auto_anomaly_probability(sensor):
    config = MonitorConfig()
    config.generator.auto_anomaly_probability = 1.0
    generator = ReadingGenerator(config, rng=random.Random(3))

    assert generator.generate_for(sensor).pol_percentage >= 16.6


def test_format_reading(generator, sensor):
    reading = generator.generate_for(sensor)

    line = format_reading(reading, "Line-1", PolBand.OPTIMAL)

    assert "Line-1" in line
    assert f"{reading.pol_percentage:6.2f}% Pol" in line


@pytest.mark.asyncio
async def test_simulate_runs_full_pipeline(capsys):
    data = await simulate(ticks=2, interval=0, config=MonitorConfig(), seed=11)

    summary = data["summary"]
    assert summary["total_sensors"] == 4
    assert summary["active_sensors"] == 3
    assert len(data["recent_readings"]) == 6
    assert "Pol" in capsys.readouterr().out
