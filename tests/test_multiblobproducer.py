import time
from datetime import timedelta

import pytest

from hallwayleds.atomicevent import AtomicEvent
from hallwayleds.config import BlobConfig, Config
from hallwayleds.led import Led
from hallwayleds.multiblobproducer import (
    Blob,
    MultiBlobProducer,
    blob_from_config,
    detect_and_handle_collisions,
    detect_blob_collision,
)


def _wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def _blob(uid, x, last_x, direction, delta=1.0):
    return Blob(uid=uid, led=Led(10, 20, 30), last_x=last_x, x=x, width=4.0,
                delta=delta, direction=direction)


class _FakeNightlight:
    def __init__(self, running=False):
        self.running = running
        self.starts = 0
        self.stops = 0

    def start(self):
        self.starts += 1
        self.running = True

    def stop(self):
        self.stops += 1
        self.running = False

    def is_running(self):
        return self.running


def test_blob_from_config_negative_delta():
    blob = blob_from_config("a", BlobConfig(delta_x=-0.5, x=3.0, width=2.0, led_rgb=[1, 2, 3]))
    assert blob.direction == -1
    assert blob.delta == 0.5
    assert blob.x == blob.last_x == 3.0
    assert blob.led == Led(1, 2, 3)


def test_blob_from_config_positive_delta():
    blob = blob_from_config("b", BlobConfig(delta_x=0.25, x=0.0, width=1.0, led_rgb=[0, 0, 9]))
    assert blob.direction == 1
    assert blob.delta == 0.25


def test_blob_leds_peak_and_symmetry():
    blob = _blob("a", 5.0, 5.0, 1.0)
    leds = blob.leds(11)
    assert len(leds) == 11
    assert leds[5] == Led(10, 20, 30)
    assert leds[4] == leds[6]
    assert leds[3].red < leds[4].red < leds[5].red


def test_switch_direction_twice_restores():
    blob = _blob("a", 1.0, 1.0, 1.0)
    blob.switch_direction()
    assert blob.direction == -1.0
    blob.switch_direction()
    assert blob.direction == 1.0


def test_head_on_collision_turns_both():
    left = _blob("l", 5.0, 4.0, 1.0)
    right = _blob("r", 4.5, 5.5, -1.0)
    assert detect_blob_collision(left, right) is True
    assert left.direction == -1.0
    assert right.direction == 1.0


def test_chasing_left_to_right_turns_left_only():
    left = _blob("l", 4.0, 3.0, 1.0)
    right = _blob("r", 4.5, 3.5, 1.0)
    assert detect_blob_collision(right, left) is True
    assert left.direction == -1.0
    assert right.direction == 1.0


def test_chasing_right_to_left_turns_right_only():
    left = _blob("l", 3.0, 4.0, -1.0)
    right = _blob("r", 3.5, 4.5, -1.0)
    assert detect_blob_collision(left, right) is True
    assert left.direction == -1.0
    assert right.direction == 1.0


def test_no_collision_leaves_blobs():
    a = _blob("a", 1.0, 0.0, 1.0)
    b = _blob("b", 8.0, 9.0, -1.0)
    assert detect_blob_collision(a, b) is False
    assert a.direction == 1.0 and b.direction == -1.0


def test_boundary_and_collision_handling():
    edge = _blob("edge", 10.5, 9.5, 1.0)
    a = _blob("a", 5.0, 4.0, 1.0)
    b = _blob("b", 4.5, 5.5, -1.0)
    blobs = {blob.uid: blob for blob in (edge, a, b)}
    detect_and_handle_collisions(blobs, 10)
    assert edge.direction == -1.0
    assert edge.x == edge.last_x
    assert (a.x, a.direction) == (a.last_x, -1.0)
    assert (b.x, b.direction) == (b.last_x, 1.0)


def test_lower_boundary_turns_blob():
    blob = _blob("a", -0.5, 0.5, -1.0)
    detect_and_handle_collisions([blob], 10)
    assert blob.direction == 1.0


@pytest.mark.parametrize("x", [0.0, 3.0, 10.0])
def test_blob_inside_keeps_direction(x):
    blob = _blob("a", x, x, 1.0)
    detect_and_handle_collisions([blob], 10)
    assert blob.direction == 1.0
    assert blob.x == x


def _config(duration):
    config = Config()
    config.hardware.display.leds_total = 8
    config.multiblob_led.duration = timedelta(seconds=duration)
    config.multiblob_led.delay = timedelta(seconds=0.01)
    config.multiblob_led.blob_cfg = {
        "one": BlobConfig(delta_x=0.1, x=1.0, width=2.0, led_rgb=[50, 0, 0]),
        "two": BlobConfig(delta_x=-0.1, x=6.0, width=2.0, led_rgb=[0, 50, 0]),
    }
    return config


def test_producer_builds_blobs():
    producer = MultiBlobProducer("mb", AtomicEvent(), _config(1))
    assert sorted(producer.blobs) == ["one", "two"]
    assert producer.blobs["two"].direction == -1


def test_run_stops_nightlight_then_restarts_it():
    nightlight = _FakeNightlight(running=True)
    producer = MultiBlobProducer("mb", AtomicEvent(), _config(0.2), nightlight)
    producer.start()
    assert _wait_until(lambda: nightlight.stops == 1)
    assert _wait_until(lambda: not producer.is_running())
    assert nightlight.starts == 1
    assert nightlight.running is True
    assert all(led.is_empty() for led in producer.leds())


def test_stop_fades_out():
    producer = MultiBlobProducer("mb", AtomicEvent(), _config(30))
    producer.start()
    assert _wait_until(lambda: any(not led.is_empty() for led in producer.leds()))
    producer.stop()
    assert _wait_until(lambda: not producer.is_running())
    assert all(led.is_empty() for led in producer.leds())