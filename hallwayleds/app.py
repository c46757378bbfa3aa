"""Wiring of sensors, producers and display, and the command-line entry point."""

from __future__ import annotations

import argparse
import logging
import queue
import signal
import sys
import threading
import time
from pathlib import Path
from typing import Callable, Optional, Sequence, TextIO

from .atomicevent import AtomicEvent
from .config import CONFILE, Config, read_config
from .cylonproducer import CylonProducer
from .display import Display, LedSegment
from .hardware import Hardware
from .holdproducer import HoldProducer
from .led import Led, LedProducer, combine_leds
from .multiblobproducer import MultiBlobProducer
from .nightlightproducer import NightlightProducer
from .sensor import Sensor, SensorDriver, Trigger, build_sensors
from .sensorledproducer import SensorLedProducer
from .tui import SimulationTUI, render_display, render_sensor_stats

log = logging.getLogger(__name__)

HOLD_LED_UID = "__hold_producer"
NIGHT_LED_UID = "__night_producer"
MULTI_BLOB_UID = "__multiblob_producer"
CYLON_LED_UID = "__cylon_producer"

_POLL = 0.1
_JOIN_TIMEOUT = 2.0


def _blank_trigger() -> Trigger:
    return Trigger("", 0, time.monotonic())


class Controller:
    """Owns one running set-up: producers, drivers and the threads linking them."""

    def __init__(
        self,
        config: Config,
        signals: Optional["queue.Queue[signal.Signals]"] = None,
        output: Optional[TextIO] = None,
        read_key: Optional[Callable[[], Optional[str]]] = None,
        settle: float = 0.5,
    ) -> None:
        self.config = config
        self.signals: "queue.Queue[signal.Signals]" = signals if signals is not None else queue.Queue()
        self.output = output
        self.read_key = read_key
        self.settle = settle
        self.producers: dict[str, LedProducer] = {}
        self.sensors: dict[str, Sensor] = {}
        self.triggers: "queue.Queue[Trigger]" = queue.Queue()
        self.led_events: AtomicEvent = AtomicEvent()
        self.led_writer: "queue.Queue[list[Led]]" = queue.Queue()
        self.stop_event = threading.Event()
        self.hardware: Optional[Hardware] = None
        self.display: Optional[Display] = None
        self.sensor_driver: Optional[SensorDriver] = None
        self.tui: Optional[SimulationTUI] = None
        self._threads: list[threading.Thread] = []
        self._led_ranges: dict[str, list[Led]] = {}
        self._old_sum_leds: Optional[list[Led]] = None
        self._old_sensor_running = False
        self._first_same_trigger = _blank_trigger()

    # set-up and tear-down

    def initialise(self) -> None:
        """Create hardware, drivers and producers and start the worker threads."""
        log.info("Initializing...")
        cfg = self.config
        if cfg.real_hw:
            self.hardware = Hardware(cfg)
            self.hardware.open()
        else:
            log.info("No GPIO init done as we are not running on real hardware...")

        self.sensors = build_sensors(cfg)
        self.triggers = queue.Queue()
        self.led_events = AtomicEvent()
        self.led_writer = queue.Queue()
        self.stop_event = threading.Event()
        self._led_ranges = {}
        self._old_sum_leds = None
        self._old_sensor_running = False
        self._first_same_trigger = _blank_trigger()

        if not cfg.real_hw or cfg.sensor_show:
            self.tui = SimulationTUI(
                cfg, self.sensors, self.triggers, self.signals,
                output=self.output, read_key=self.read_key,
            )
        self.display = Display(cfg, self.hardware, self._render_segments)
        self.sensor_driver = SensorDriver(
            cfg, self.sensors, self.hardware, self.triggers, self._render_sensor_values
        )

        self.producers = {}
        if cfg.sensor_led.enabled:
            for uid, sensor in self.sensors.items():
                self.producers[uid] = SensorLedProducer(uid, sensor.led_index, self.led_events, cfg)
        if cfg.hold_led.enabled:
            self.producers[HOLD_LED_UID] = HoldProducer(HOLD_LED_UID, self.led_events, cfg)
        nightlight: Optional[NightlightProducer] = None
        if cfg.night_led.enabled:
            nightlight = NightlightProducer(NIGHT_LED_UID, self.led_events, cfg)
            self.producers[NIGHT_LED_UID] = nightlight
            nightlight.start()
        if cfg.multiblob_led.enabled:
            self.producers[MULTI_BLOB_UID] = MultiBlobProducer(
                MULTI_BLOB_UID, self.led_events, cfg, nightlight
            )
        if cfg.cylon_led.enabled:
            self.producers[CYLON_LED_UID] = CylonProducer(CYLON_LED_UID, self.led_events, cfg)

        if self.tui is not None:
            self.tui.start()

        stop = self.stop_event
        targets = (
            ("combine", lambda: self.combine_and_update_display(stop)),
            ("fire-controller", lambda: self.fire_controller(stop)),
            ("display", lambda: self.display.run(self.led_writer, stop)),
            ("sensors", lambda: self.sensor_driver.run(stop)),
        )
        self._threads = [
            threading.Thread(target=target, name=name, daemon=True) for name, target in targets
        ]
        for thread in self._threads:
            thread.start()

    def reset(self) -> None:
        """Exit all producers, stop the worker threads and release the hardware."""
        log.info("Resetting...")
        for producer in self.producers.values():
            log.info("Exiting producer: %s", producer.uid)
            producer.exit()
        time.sleep(self.settle)
        log.info("Stopping running threads...")
        self.stop_event.set()
        for thread in self._threads:
            thread.join(timeout=_JOIN_TIMEOUT)
        self._threads = []
        time.sleep(self.settle)
        if self.tui is not None:
            self.tui.stop()
            self.tui = None
        if self.hardware is not None:
            self.hardware.close()
            self.hardware = None

    # rendering hooks for the simulation view

    def _render_segments(self, segments: dict[str, list[LedSegment]]) -> None:
        if self.tui is not None and not self.config.sensor_show:
            self.tui.set_text(render_display(segments, self.tui.sensorline))

    def _render_sensor_values(self, values) -> None:
        if self.tui is not None:
            self.tui.set_text(render_sensor_stats(self.sensors, values))

    # event handling

    def _sensor_leds_running(self) -> bool:
        running = False
        for uid in self.sensors:
            producer = self.producers.get(uid)
            if producer is not None and producer.is_running():
                running = True
        if self.config.hold_led.enabled:
            hold = self.producers.get(HOLD_LED_UID)
            if hold is not None and hold.is_running():
                running = True
        return running

    def _switch_idle_producers(self, start: bool) -> None:
        for enabled, uid in (
            (self.config.multiblob_led.enabled, MULTI_BLOB_UID),
            (self.config.cylon_led.enabled, CYLON_LED_UID),
        ):
            producer = self.producers.get(uid)
            if enabled and producer is not None:
                if start:
                    producer.start()
                else:
                    producer.stop()

    def handle_led_event(self, producer: LedProducer) -> bool:
        """Take new LEDs from ``producer``; queue the combined values if they changed.

        Also starts the idle animations once all sensor-driven producers went
        dark, and stops them again when one lights up. Returns whether the
        combined values were queued.
        """
        cfg = self.config
        if cfg.multiblob_led.enabled or cfg.cylon_led.enabled:
            running = self._sensor_leds_running()
            if self._old_sensor_running and not running:
                self._switch_idle_producers(start=True)
            elif not self._old_sensor_running and running:
                self._switch_idle_producers(start=False)
            self._old_sensor_running = running

        self._led_ranges[producer.uid] = producer.leds()
        sum_leds = combine_leds(self._led_ranges, cfg.hardware.display.leds_total)
        changed = sum_leds != self._old_sum_leds
        if changed:
            self.led_writer.put(sum_leds)
        self._old_sum_leds = sum_leds
        return changed

    def handle_trigger(self, trigger: Trigger) -> None:
        """Start the triggered producer, or toggle the hold producer on a long trigger."""
        hold = self.config.hold_led
        if hold.enabled and trigger.value >= hold.trigger_value:
            first = self._first_same_trigger
            elapsed = trigger.timestamp - first.timestamp
            delay = hold.trigger_delay.total_seconds()
            if trigger.uid != first.uid:
                self._first_same_trigger = trigger
            elif elapsed > delay:
                if elapsed < delay + 1:
                    producer = self.producers[HOLD_LED_UID]
                    if producer.is_running():
                        producer.stop()
                    else:
                        producer.start()
                self._first_same_trigger = trigger
            return
        self._first_same_trigger = _blank_trigger()
        producer = self.producers.get(trigger.uid)
        if producer is None:
            log.warning("Unknown UID %s", trigger.uid)
        else:
            producer.start()

    # worker loops

    def combine_and_update_display(self, stop: threading.Event) -> None:
        """Combine producer LEDs on every change, and force a refresh periodically."""
        delay = self.config.hardware.display.force_update_delay.total_seconds()
        next_force = time.monotonic() + delay if delay > 0 else None
        while not stop.is_set():
            timeout = _POLL
            if next_force is not None:
                timeout = max(0.0, min(_POLL, next_force - time.monotonic()))
            if self.led_events.wait(timeout):
                producer = self.led_events.value()
                if producer is not None:
                    self.handle_led_event(producer)
            if next_force is not None and time.monotonic() >= next_force:
                # guards against occasional glitches on the stripe
                self.led_writer.put(
                    combine_leds(self._led_ranges, self.config.hardware.display.leds_total)
                )
                now = time.monotonic()
                while next_force <= now:
                    next_force += delay
        log.info("Ending combineAndUpdateDisplay thread")

    def fire_controller(self, stop: threading.Event) -> None:
        """Dispatch sensor triggers until ``stop`` is set."""
        while not stop.is_set():
            try:
                trigger = self.triggers.get(timeout=_POLL)
            except queue.Empty:
                continue
            self.handle_trigger(trigger)
        log.info("Ending fireController thread")


def _default_config_path() -> str:
    return str(Path(sys.argv[0]).resolve().parent / CONFILE)


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Drive LED stripes from infrared sensors.")
    parser.add_argument("-config", "--config", default=None, help="Config file to use")
    parser.add_argument(
        "-real", "--real", action="store_true",
        help="Set if the program runs on real hardware",
    )
    parser.add_argument(
        "-show-sensors", "--show-sensors", dest="show_sensors", action="store_true",
        help="Only display sensor values (random values unless -real is given)",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run until interrupted; SIGHUP reloads the config file and restarts."""
    logging.basicConfig(level=logging.INFO)
    args = _parser().parse_args(argv)
    cfile = args.config if args.config is not None else _default_config_path()
    config = read_config(cfile, args.real, args.show_sensors)

    signals: "queue.Queue[signal.Signals]" = queue.Queue()
    wanted = [signal.SIGINT]
    hangup = getattr(signal, "SIGHUP", None)
    if hangup is not None:
        wanted.append(hangup)
    previous = {sig: signal.getsignal(sig) for sig in wanted}
    for sig in wanted:
        signal.signal(sig, lambda signum, _frame: signals.put(signal.Signals(signum)))

    controller = Controller(config, signals)
    try:
        controller.initialise()
        while True:
            sig = signals.get()
            if sig == signal.SIGINT:
                log.info("Exiting...")
                controller.reset()
                return 0
            if hangup is not None and sig == hangup:
                controller.reset()
                config = read_config(cfile, args.real, args.show_sensors)
                controller = Controller(config, signals)
                controller.initialise()
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)