"""Coloured blobs moving along the stripe and bouncing off the ends and each other."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Union

from .atomicevent import AtomicEvent
from .config import BlobConfig, Config
from .led import Led, LedProducer, combine_leds
from .producer import AbstractProducer

log = logging.getLogger(__name__)

_FADE_INTERVALS = 20
_FADE_DELAY = 0.02


@dataclass
class Blob:
    uid: str
    led: Led
    last_x: float
    x: float
    width: float
    delta: float
    direction: float = 1.0

    def leds(self, leds_total: int) -> list[Led]:
        """The blob as a Gaussian bump over ``leds_total`` LEDs."""
        out = []
        for i in range(leds_total):
            y = math.exp(-((i - self.x) ** 2 / self.width))
            out.append(Led(self.led.red * y, self.led.green * y, self.led.blue * y))
        return out

    def switch_direction(self) -> None:
        self.direction = -self.direction


def blob_from_config(uid: str, cfg: BlobConfig) -> Blob:
    """Create a blob; the sign of DeltaX gives its initial direction."""
    return Blob(
        uid=uid,
        led=Led(cfg.led_rgb[0], cfg.led_rgb[1], cfg.led_rgb[2]),
        last_x=cfg.x,
        x=cfg.x,
        width=cfg.width,
        delta=abs(cfg.delta_x),
        direction=-1.0 if cfg.delta_x < 0 else 1.0,
    )


def detect_blob_collision(blob_a: Blob, blob_b: Blob) -> bool:
    """True if the paths of both blobs in the last step overlap; turns them as needed."""
    a_start, a_end = min(blob_a.x, blob_a.last_x), max(blob_a.x, blob_a.last_x)
    b_start, b_end = min(blob_b.x, blob_b.last_x), max(blob_b.x, blob_b.last_x)
    collide = a_start <= b_end and b_start <= a_end
    if collide:
        if blob_a.last_x < blob_b.last_x:
            left, right = blob_a, blob_b
        else:
            left, right = blob_b, blob_a
        if left.direction > 0 and right.direction < 0:
            left.switch_direction()
            right.switch_direction()
        elif left.direction > 0 and right.direction > 0:
            left.switch_direction()
        elif left.direction < 0 and right.direction < 0:
            right.switch_direction()
        elif left.direction < 0 and right.direction > 0:
            log.info(
                "%s - Direction %f  | %s - Direction %f",
                left.uid, left.direction, right.uid, right.direction,
            )
            log.info(
                "Caution: colliding blobs %s and %s are already heading in opposite directions",
                left.uid, right.uid,
            )
    return collide


def detect_and_handle_collisions(
    blobs: Union[Mapping[str, Blob], Iterable[Blob]], leds_total: int
) -> None:
    """Turn blobs at the stripe ends and blobs colliding with each other."""
    items = list(blobs.values()) if isinstance(blobs, Mapping) else list(blobs)
    limit = float(leds_total)
    to_check: list[Blob] = []
    collided: dict[str, Blob] = {}

    for blob in items:
        if (blob.x > limit and blob.direction > 0) or (blob.x < 0 and blob.direction < 0):
            blob.switch_direction()
            collided[blob.uid] = blob
        else:
            # blobs at a boundary are left out so they always turn away from it
            to_check.append(blob)

    if len(to_check) >= 2:
        for pos, blob_a in enumerate(to_check):
            for blob_b in to_check[pos + 1:]:
                if detect_blob_collision(blob_a, blob_b):
                    collided[blob_a.uid] = blob_a
                    collided[blob_b.uid] = blob_b
        for blob in collided.values():
            blob.x = blob.last_x


def _next_tick(current: float, delay: float, now: float) -> float:
    while current <= now:
        current += delay
    return current


class MultiBlobProducer(AbstractProducer):
    """Animates the configured blobs and hands over to an optional night light."""

    def __init__(
        self,
        uid: str,
        leds_changed: AtomicEvent,
        config: Config,
        nightlight: Optional[LedProducer] = None,
    ) -> None:
        super().__init__(uid, leds_changed, config.hardware.display.leds_total)
        cfg = config.multiblob_led
        self.duration = cfg.duration
        self.delay = cfg.delay
        self.blobs = {name: blob_from_config(name, blob) for name, blob in cfg.blob_cfg.items()}
        self.nightlight = nightlight

    def _replace_leds(self, values: list[Led]) -> None:
        with self._leds_lock:
            self._leds = values
        self._notify()

    def _fade(self, fade_in: bool) -> None:
        current = self.leds()
        for counter in range(_FADE_INTERVALS + 1):
            step = counter if fade_in else _FADE_INTERVALS - counter
            factor = step / _FADE_INTERVALS
            self._replace_leds(
                [Led(l.red * factor, l.green * factor, l.blue * factor) for l in current]
            )
            time.sleep(_FADE_DELAY)

    def _tick(self, faded_in: bool) -> None:
        for blob in self.blobs.values():
            blob.x += blob.delta * blob.direction
        detect_and_handle_collisions(self.blobs, self.leds_total)
        combined = combine_leds(
            {blob.uid: blob.leds(self.leds_total) for blob in self.blobs.values()},
            self.leds_total,
        )
        self._replace_leds(combined)
        if not faded_in:
            self._fade(True)
            if self.nightlight is not None and self.nightlight.is_running():
                self.nightlight.stop()
        for blob in self.blobs.values():
            blob.last_x = blob.x

    def run(self, start_time: float) -> None:
        delay = self.delay.total_seconds()
        duration = self.duration.total_seconds()
        if delay <= 0 or duration <= 0:
            raise ValueError("MultiBlobLED Delay and Duration must be positive")
        deadline = start_time + duration
        next_tick = start_time + delay
        faded_in = False
        while True:
            now = time.monotonic()
            if self._wait_stop(max(0.0, min(deadline, next_tick) - now)):
                self._fade(False)
                return
            now = time.monotonic()
            if now >= deadline:
                if self.nightlight is not None and not self.nightlight.is_running():
                    self.nightlight.start()
                self._fade(False)
                return
            if now >= next_tick:
                next_tick = _next_tick(next_tick, delay, now)
                self._tick(faded_in)
                faded_in = True