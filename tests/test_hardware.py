import pytest

from hallwayleds.config import Config, MultiplexGPIOConfig
from hallwayleds.hardware import Hardware, HardwareError, encode_apa102, encode_ws2801
from hallwayleds.led import Led


class FakeSpi:
    def __init__(self, reply=None):
        self.reply = reply
        self.written = []

    def exchange(self, write):
        self.written.append(bytes(write))
        return self.reply if self.reply is not None else bytes(write)


class FakePin:
    log = []

    def __init__(self, number):
        self.number = number

    def output(self):
        FakePin.log.append(("out", self.number))

    def high(self):
        FakePin.log.append(("high", self.number))

    def low(self):
        FakePin.log.append(("low", self.number))


def _hardware(spi, led_type="ws2801", brightness=0):
    cfg = Config(real_hw=True)
    cfg.hardware.led_type = led_type
    cfg.hardware.display.color_correction = [1.0, 1.0, 1.0]
    cfg.hardware.display.apa102_brightness = brightness
    cfg.hardware.spi_multiplex_gpio = {"test": MultiplexGPIOConfig(low=[1], high=[2])}
    hw = Hardware(cfg, spi=spi, pin_factory=FakePin)
    hw.open()
    return hw


LEDS = [Led(10, 20, 30), Led(40, 50, 60)]


def test_read_adc():
    spi = FakeSpi(bytes([0, 0b11, 0b11111111]))
    hw = _hardware(spi)
    assert hw.read_adc("test", 3) == 1023
    assert spi.written == [bytes([1, (8 + 3) << 4, 0])]


def test_set_led_segment_ws2801():
    spi = FakeSpi()
    _hardware(spi).set_led_segment("test", LEDS)
    assert spi.written == [bytes([10, 20, 30, 40, 50, 60])]


def test_set_led_segment_apa102():
    spi = FakeSpi()
    _hardware(spi, "apa102", 31).set_led_segment("test", LEDS)
    assert spi.written == [
        bytes([0, 0, 0, 0, 0xE0 | 31, 30, 20, 10, 0xE0 | 31, 60, 50, 40, 0xFF])
    ]


def test_unknown_led_type_sends_nothing():
    spi = FakeSpi()
    _hardware(spi, "other").set_led_segment("test", LEDS)
    assert spi.written == []


def test_unknown_multiplex_raises():
    hw = _hardware(FakeSpi())
    with pytest.raises(HardwareError):
        hw.exchange_multiplex("missing", b"\x00")


def test_multiplex_pins_toggled():
    FakePin.log = []
    spi = FakeSpi(b"\x07")
    hw = _hardware(spi)
    result = hw.exchange_multiplex("test", b"\x01")
    assert result == b"\x07"
    assert spi.written == [b"\x01"]
    assert FakePin.log == [("out", 1), ("out", 2), ("low", 1), ("high", 2)]


def test_encoders_clamp_and_correct():
    assert encode_ws2801([Led(200, 0, 100)], [2.0, 1.0, 0.5]) == bytes([255, 0, 50])
    data = encode_apa102([Led()] * 16, [1, 1, 1], 0)
    assert len(data) == 4 + 16 * 4 + 2
    assert data[-2:] == b"\xff\xff"