"""Sensor-triggered lighting effects for WS2801 and APA102 LED stripes."""

__version__ = "0.1.0"