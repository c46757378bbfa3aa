"""Reading the infrared sensors, smoothing their values and emitting triggers."""

from __future__ import annotations

import logging
import queue
import random
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional

from .config import Config
from .hardware import Hardware

log = logging.getLogger(__name__)

STATS_SIZE = 500

_SIM_BASE = 30
_SIM_SPREAD = 250


@dataclass
class Sensor:
    """One sensor behind an ADC channel, with a moving-average window."""

    uid: str
    led_index: int
    spimultiplex: str
    adc_channel: int
    trigger_value: int
    smoothing_size: int
    values: list[int] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.smoothing_size < 0:
            raise ValueError(f"smoothing size must not be negative, got {self.smoothing_size}")
        self.values = [0] * self.smoothing_size

    def smooth_value(self, val: int) -> int:
        """Push ``val`` into the window and return the truncated window mean."""
        if self.smoothing_size < 1:
            raise ValueError("smoothing size must be at least 1")
        self.values = [*self.values[1:], val]
        total = sum(self.values)
        quotient = abs(total) // self.smoothing_size
        return quotient if total >= 0 else -quotient


@dataclass(frozen=True)
class Trigger:
    """A sensor reading above its trigger value."""

    uid: str
    value: int
    timestamp: float = field(default_factory=time.monotonic)


def build_sensors(config: Config) -> dict[str, Sensor]:
    """Create the sensors described in the configuration."""
    sensors_cfg = config.hardware.sensors
    return {
        uid: Sensor(
            uid=uid,
            led_index=cfg.led_index,
            spimultiplex=cfg.spi_multiplex,
            adc_channel=cfg.adc_channel,
            trigger_value=cfg.trigger_value,
            smoothing_size=sensors_cfg.smoothing_size,
        )
        for uid, cfg in sensors_cfg.sensor_cfg.items()
    }


class SensorDriver:
    """Polls the sensors periodically and puts triggers into :attr:`triggers`."""

    def __init__(
        self,
        config: Config,
        sensors: Mapping[str, Sensor],
        hardware: Optional[Hardware] = None,
        triggers: Optional["queue.Queue[Trigger]"] = None,
        display: Optional[Callable[[Mapping[str, deque]], None]] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.config = config
        self.sensors = dict(sensors)
        self.hardware = hardware
        self.triggers: "queue.Queue[Trigger]" = triggers if triggers is not None else queue.Queue()
        self.display = display
        self._rng = rng if rng is not None else random.Random()
        self.values: dict[str, deque] = {name: deque(maxlen=STATS_SIZE) for name in self.sensors}

    def _read(self, sensor: Sensor) -> int:
        if self.config.sensor_show and not self.config.real_hw:
            # statistics view without hardware: random values for testing it
            return _SIM_BASE + self._rng.randrange(_SIM_SPREAD)
        if self.hardware is None:
            raise RuntimeError("no hardware to read sensors from")
        return sensor.smooth_value(self.hardware.read_adc(sensor.spimultiplex, sensor.adc_channel))

    def poll(self) -> list[Trigger]:
        """Read every sensor once and emit triggers; returns the triggers emitted."""
        for name, sensor in self.sensors.items():
            self.values[name].append(self._read(sensor))
        if self.config.sensor_show and self.display is not None:
            self.display(self.values)
        fired = []
        for name, values in self.values.items():
            latest = values[-1]
            if latest > self.sensors[name].trigger_value:
                trigger = Trigger(name, latest)
                self.triggers.put(trigger)
                fired.append(trigger)
        return fired

    def run(self, stop: threading.Event) -> None:
        """Poll at the configured loop delay until ``stop`` is set.

        In pure simulation, triggers come from key presses, so this only waits.
        """
        if not self.config.real_hw and not self.config.sensor_show:
            stop.wait()
            log.info("Ending SensorDriver thread")
            return
        delay = self.config.hardware.sensors.loop_delay.total_seconds()
        if delay <= 0:
            raise ValueError("Sensors LoopDelay must be positive")
        while not stop.wait(delay):
            self.poll()
        log.info("Ending SensorDriver thread")