"""Split the combined LED values into the configured stripe segments."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Mapping, Optional, Sequence

from .config import Config, LedSegmentConfig
from .hardware import Hardware
from .led import Led

log = logging.getLogger(__name__)

_POLL = 0.1
_HIDDEN_MULTIPLEX = "__"


class SegmentOverlapError(ValueError):
    """Two display segments cover the same LED."""


def clamp(led: int, leds_total: int) -> int:
    """Limit an LED index to ``0 .. leds_total - 1``."""
    if led < 0:
        log.warning("led index %d is smaller than 0 - using 0", led)
        return 0
    if led <= leds_total - 1:
        return led
    log.warning("led index %d is bigger than max index %d - using max", led, leds_total - 1)
    return leds_total - 1


class LedSegment:
    """A contiguous part of a stripe; invisible segments fill the gaps."""

    def __init__(
        self,
        first_led: int,
        last_led: int,
        spimultiplex: str,
        reverse: bool,
        visible: bool,
        leds_total: int,
    ) -> None:
        if first_led > last_led:
            log.warning(
                "First led index %d is bigger than last led index %d - reversing",
                first_led,
                last_led,
            )
            first_led, last_led = last_led, first_led
        self.first_led = clamp(first_led, leds_total)
        self.last_led = clamp(last_led, leds_total)
        self.visible = visible
        self.reverse = reverse
        self.spimultiplex = spimultiplex if visible else _HIDDEN_MULTIPLEX
        self._leds: list[Led] = []

    def __repr__(self) -> str:
        return (
            f"LedSegment({self.first_led}, {self.last_led}, {self.spimultiplex!r}, "
            f"reverse={self.reverse}, visible={self.visible})"
        )

    def leds(self) -> list[Led]:
        """The LED values of a visible segment; empty for an invisible one."""
        return list(self._leds) if self.visible else []

    def set_leds(self, sumleds: Sequence[Led]) -> None:
        """Take this segment's part of the full stripe values."""
        if self.visible:
            part = list(sumleds[self.first_led : self.last_led + 1])
            if self.reverse:
                part.reverse()
            self._leds = part


def build_segments(
    led_segments: Mapping[str, Sequence[LedSegmentConfig]], leds_total: int
) -> dict[str, list[LedSegment]]:
    """Create the configured segments, fill gaps with invisible ones and sort them."""
    result: dict[str, list[LedSegment]] = {}
    for name, configs in led_segments.items():
        segments = [
            LedSegment(cfg.first_led, cfg.last_led, cfg.spi_multiplex, cfg.reverse, True, leds_total)
            for cfg in configs
        ]
        covered = [False] * leds_total
        for seg in segments:
            for index in range(seg.first_led, seg.last_led + 1):
                if covered[index]:
                    raise SegmentOverlapError(f"Overlapping display segments at index {index}")
                covered[index] = True

        start: Optional[int] = None
        for index, used in enumerate(covered):
            if start is None and not used:
                start = index
            elif start is not None and used:
                segments.append(LedSegment(start, index - 1, "", False, False, leds_total))
                start = None
        if start is not None:
            segments.append(LedSegment(start, leds_total - 1, "", False, False, leds_total))

        segments.sort(key=lambda seg: seg.first_led)
        result[name] = segments
    return result


class Display:
    """Sends combined LED values to the stripes, or to a renderer when simulating."""

    def __init__(
        self,
        config: Config,
        hardware: Optional[Hardware] = None,
        renderer: Optional[Callable[[dict[str, list[LedSegment]]], None]] = None,
    ) -> None:
        if config.real_hw and hardware is None:
            raise ValueError("running on real hardware needs a Hardware instance")
        self.config = config
        self.hardware = hardware
        self.renderer = renderer
        disp = config.hardware.display
        self.segments = build_segments(disp.led_segments, disp.leds_total)

    def update(self, sum_leds: Sequence[Led]) -> None:
        """Distribute ``sum_leds`` over the segments and show them."""
        for segments in self.segments.values():
            for seg in segments:
                seg.set_leds(sum_leds)
        if not self.config.real_hw:
            if self.renderer is not None:
                self.renderer(self.segments)
            return
        for segments in self.segments.values():
            for seg in segments:
                if seg.visible:
                    self.hardware.set_led_segment(seg.spimultiplex, seg.leds())

    def run(self, source: "queue.Queue[Sequence[Led]]", stop: threading.Event) -> None:
        """Show every value list taken from ``source`` until ``stop`` is set."""
        while not stop.is_set():
            try:
                sum_leds = source.get(timeout=_POLL)
            except queue.Empty:
                continue
            self.update(sum_leds)
        log.info("Ending DisplayDriver thread")