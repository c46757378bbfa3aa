import io
import queue
import threading
import time
from datetime import timedelta

import pytest

from hallwayleds.app import (
    HOLD_LED_UID,
    MULTI_BLOB_UID,
    Controller,
    main,
)
from hallwayleds.config import (
    Config,
    LedSegmentConfig,
    SensorConfig,
)
from hallwayleds.led import Led
from hallwayleds.sensor import Sensor, Trigger


class MockLedProducer:
    def __init__(self, uid, leds=None):
        self.uid = uid
        self.running = False
        self._leds = list(leds or [])
        self.exited = False

    def start(self):
        self.running = True

    def stop(self):
        self.running = False

    def is_running(self):
        return self.running

    def leds(self):
        return list(self._leds)

    def exit(self):
        self.exited = True


def _wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def fire_setup():
    config = Config()
    config.hold_led.enabled = True
    config.hold_led.trigger_value = 100
    config.hold_led.trigger_delay = timedelta(seconds=1)
    controller = Controller(config, settle=0)
    normal = MockLedProducer("test")
    hold = MockLedProducer(HOLD_LED_UID)
    controller.producers = {"test": normal, HOLD_LED_UID: hold}
    return controller, normal, hold


def test_fire_controller_sequence(fire_setup):
    controller, normal, hold = fire_setup
    stop = threading.Event()
    thread = threading.Thread(target=controller.fire_controller, args=(stop,), daemon=True)
    thread.start()
    try:
        controller.triggers.put(Trigger("test", 10, time.monotonic()))
        assert _wait_until(normal.is_running)
        normal.stop()

        now = time.monotonic()
        controller.triggers.put(Trigger("holdtest", 110, now))
        time.sleep(0.1)
        assert hold.is_running() is False

        controller.triggers.put(Trigger("holdtest", 110, now + 1.2))
        assert _wait_until(hold.is_running)

        controller.triggers.put(Trigger("holdtest", 110, now + 2.4))
        assert _wait_until(lambda: not hold.is_running())
    finally:
        stop.set()
        thread.join(timeout=2)
    assert not thread.is_alive()


def test_hold_trigger_outside_window_does_not_toggle(fire_setup):
    controller, _, hold = fire_setup
    now = time.monotonic()
    controller.handle_trigger(Trigger("holdtest", 110, now))
    controller.handle_trigger(Trigger("holdtest", 110, now + 5.0))
    assert hold.is_running() is False
    controller.handle_trigger(Trigger("holdtest", 110, now + 6.5))
    assert hold.is_running() is True


def test_hold_trigger_needs_same_sensor(fire_setup):
    controller, _, hold = fire_setup
    now = time.monotonic()
    controller.handle_trigger(Trigger("a", 110, now))
    controller.handle_trigger(Trigger("b", 110, now + 1.2))
    assert hold.is_running() is False


def test_unknown_trigger_starts_nothing(fire_setup):
    controller, normal, hold = fire_setup
    controller.handle_trigger(Trigger("nope", 10, time.monotonic()))
    assert (normal.is_running(), hold.is_running()) == (False, False)


@pytest.fixture
def combine_setup():
    config = Config()
    config.hardware.display.force_update_delay = timedelta(seconds=1)
    config.multiblob_led.enabled = True
    controller = Controller(config, settle=0)
    controller.sensors = {"sensor": Sensor("sensor", 0, "", 0, 0, 0)}
    sensor_prod = MockLedProducer("sensor")
    blob = MockLedProducer(MULTI_BLOB_UID)
    controller.producers = {"sensor": sensor_prod, MULTI_BLOB_UID: blob}
    return controller, sensor_prod, blob


def test_combine_and_update_display(combine_setup):
    controller, sensor_prod, blob = combine_setup
    stop = threading.Event()
    thread = threading.Thread(
        target=controller.combine_and_update_display, args=(stop,), daemon=True
    )
    thread.start()
    try:
        with pytest.raises(queue.Empty):
            controller.led_writer.get_nowait()

        sensor_prod.start()
        controller.led_events.send(sensor_prod)
        assert controller.led_writer.get(timeout=0.5) == []

        sensor_prod.stop()
        controller.led_events.send(sensor_prod)
        assert _wait_until(blob.is_running, timeout=0.5)

        sensor_prod.start()
        controller.led_events.send(sensor_prod)
        assert _wait_until(lambda: not blob.is_running(), timeout=0.5)
    finally:
        stop.set()
        thread.join(timeout=2)
    assert not thread.is_alive()


def test_handle_led_event_queues_only_changes():
    config = Config()
    config.hardware.display.leds_total = 3
    controller = Controller(config, settle=0)
    producer = MockLedProducer("p", [Led(1, 2, 3)])
    assert controller.handle_led_event(producer) is True
    assert controller.led_writer.get_nowait() == [Led(1, 2, 3), Led(), Led()]
    assert controller.handle_led_event(producer) is False
    with pytest.raises(queue.Empty):
        controller.led_writer.get_nowait()


def test_handle_led_event_combines_by_maximum():
    config = Config()
    config.hardware.display.leds_total = 2
    controller = Controller(config, settle=0)
    controller.handle_led_event(MockLedProducer("a", [Led(5, 0, 0), Led(0, 1, 0)]))
    controller.handle_led_event(MockLedProducer("b", [Led(1, 7, 0)]))
    controller.led_writer.get_nowait()
    assert controller.led_writer.get_nowait() == [Led(5, 7, 0), Led(0, 1, 0)]


def _idle_key():
    time.sleep(0.01)
    return None


def test_initialise_and_reset_in_simulation():
    config = Config()
    config.sensor_led.enabled = True
    config.sensor_led.led_rgb = [10.0, 10.0, 10.0]
    config.sensor_led.run_up_delay = timedelta(milliseconds=1)
    config.sensor_led.run_down_delay = timedelta(milliseconds=1)
    config.sensor_led.hold_time = timedelta(seconds=5)
    config.hold_led.enabled = True
    config.hold_led.led_rgb = [20.0, 20.0, 20.0]
    config.hold_led.trigger_value = 1000
    config.hardware.display.leds_total = 10
    config.hardware.display.force_update_delay = timedelta(seconds=1)
    config.hardware.display.led_segments = {"a": [LedSegmentConfig(0, 9, "spi", False)]}
    config.hardware.sensors.smoothing_size = 1
    config.hardware.sensors.loop_delay = timedelta(milliseconds=50)
    config.hardware.sensors.sensor_cfg = {"s1": SensorConfig(2, "spi", 0, 100)}

    output = io.StringIO()
    controller = Controller(config, output=output, read_key=_idle_key, settle=0)
    controller.initialise()
    try:
        assert set(controller.producers) == {"s1", HOLD_LED_UID}
        controller.triggers.put(Trigger("s1", 80))
        assert _wait_until(controller.producers["s1"].is_running)
    finally:
        controller.reset()
    assert controller.stop_event.is_set()
    assert "GOLEDS Simulation" in output.getvalue()


def test_main_missing_config_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        main(["--config", str(tmp_path / "missing.yml")])