"""Sensores virtuales del ingenio."""

from .pol_sensor import ReadingGenerator, DEMO_SENSORS

__all__ = ["ReadingGenerator", "DEMO_SENSORS"]
