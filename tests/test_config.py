"""
Tests para la configuración por variables de entorno.
"""

from telemetry_core.config import DEFAULT_FIELD_RANGES, MonitorConfig


def test_defaults():
    config = MonitorConfig()

    assert config.tolerance.target_pol == 14.0
    assert config.tolerance.alert_threshold == 2.5
    assert config.scheduler.interval_seconds == 3.0
    assert config.live.history_capacity == 50
    assert config.live.alert_display_limit == 10
    assert config.generator.get_range("temperature").decimals == 1
    assert DEFAULT_FIELD_RANGES["pol_percentage"].center == 14.0


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("POL_MONITOR_TARGET_POL", "13.5")
    monkeypatch.setenv("POL_MONITOR_ALERT_THRESHOLD", "1.5")
    monkeypatch.setenv("POL_MONITOR_TICK_SECONDS", "0.5")
    monkeypatch.setenv("POL_MONITOR_HISTORY_CAPACITY", "25")
    monkeypatch.setenv("POL_MONITOR_STORE_URL", " https://db.example/rest/v1 ")
    monkeypatch.setenv("POL_MONITOR_AUTOSTART", "no")
    monkeypatch.setenv("POL_MONITOR_ACTIVE_ALERT_CAPACITY", "40")

    config = MonitorConfig.from_env()

    assert config.tolerance.target_pol == 13.5
    assert config.tolerance.alert_threshold == 1.5
    assert config.scheduler.interval_seconds == 0.5
    assert config.live.history_capacity == 25
    assert config.store.base_url == "https://db.example/rest/v1"
    assert config.scheduler.autostart is False
    assert config.live.active_alert_capacity == 40
    assert config.live.acknowledged_memory == 1_000


def test_invalid_values_keep_defaults(monkeypatch):
    monkeypatch.setenv("POL_MONITOR_TARGET_POL", "abc")
    monkeypatch.setenv("POL_MONITOR_ALERT_THRESHOLD", "nan")
    monkeypatch.setenv("POL_MONITOR_TICK_SECONDS", "-1")
    monkeypatch.setenv("POL_MONITOR_HISTORY_CAPACITY", "0")
    monkeypatch.setenv("POL_MONITOR_STORE_URL", "   ")
    monkeypatch.setenv("POL_MONITOR_AUTOSTART", "maybe")

    config = MonitorConfig.from_env()

    assert config.tolerance.target_pol == 14.0
    assert config.tolerance.alert_threshold == 2.5
    assert config.scheduler.interval_seconds == 3.0
    assert config.live.history_capacity == 50
    assert config.store.base_url is None
    assert config.scheduler.autostart is True
