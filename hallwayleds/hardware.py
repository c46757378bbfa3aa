"""SPI and GPIO access for the ADCs and LED stripes."""

from __future__ import annotations

import array
import logging
import struct
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Protocol, Sequence

from .config import Config
from .led import Led

log = logging.getLogger(__name__)

LED_TYPE = "ws2801"

_SPI_IOC_MESSAGE_1 = 0x40206B00
_SPI_IOC_WR_MODE = 0x40016B01
_SPI_IOC_WR_BITS_PER_WORD = 0x40016B03
_SPI_IOC_WR_MAX_SPEED_HZ = 0x40046B04


class SPI(Protocol):
    def exchange(self, write: bytes) -> bytes: ...


class HardwareError(Exception):
    """Raised when the hardware cannot be used as configured."""


class SpiDev:
    """Full-duplex transfers through a Linux spidev device."""

    def __init__(self, speed_hz: int, device: str = "/dev/spidev0.0") -> None:
        import fcntl

        self._fcntl = fcntl
        self.speed_hz = speed_hz
        try:
            self._file = open(device, "r+b", buffering=0)
        except OSError as exc:
            raise HardwareError(f"cannot open SPI device {device}: {exc}") from exc
        fd = self._file.fileno()
        fcntl.ioctl(fd, _SPI_IOC_WR_MODE, struct.pack("B", 0))
        fcntl.ioctl(fd, _SPI_IOC_WR_BITS_PER_WORD, struct.pack("B", 8))
        fcntl.ioctl(fd, _SPI_IOC_WR_MAX_SPEED_HZ, struct.pack("I", speed_hz))

    def exchange(self, write: bytes) -> bytes:
        """Send ``write`` and return the bytes clocked in meanwhile."""
        if not write:
            return b""
        tx = array.array("B", write)
        rx = array.array("B", bytes(len(write)))
        transfer = struct.pack(
            "QQIIHBBBBBB",
            tx.buffer_info()[0],
            rx.buffer_info()[0],
            len(write),
            self.speed_hz,
            0,
            8,
            0,
            0,
            0,
            0,
            0,
        )
        self._fcntl.ioctl(self._file.fileno(), _SPI_IOC_MESSAGE_1, transfer)
        return rx.tobytes()

    def close(self) -> None:
        self._file.close()


class SysfsPin:
    """A GPIO pin driven through the sysfs interface."""

    def __init__(self, number: int, root: str = "/sys/class/gpio") -> None:
        self.number = number
        self._root = Path(root)
        self._dir = self._root / f"gpio{number}"

    def output(self) -> None:
        if not self._dir.exists():
            (self._root / "export").write_text(str(self.number))
        (self._dir / "direction").write_text("out")

    def high(self) -> None:
        (self._dir / "value").write_text("1")

    def low(self) -> None:
        (self._dir / "value").write_text("0")


def _component(value: float, correction: float) -> int:
    return max(0, int(min(value * correction, 255)))


def encode_ws2801(values: Sequence[Led], correction: Sequence[float]) -> bytes:
    """Three bytes (R, G, B) per LED."""
    return bytes(
        b
        for led in values
        for b in (
            _component(led.red, correction[0]),
            _component(led.green, correction[1]),
            _component(led.blue, correction[2]),
        )
    )


def encode_apa102(values: Sequence[Led], correction: Sequence[float], brightness: int) -> bytes:
    """Start frame, (brightness, B, G, R) per LED, then the end frame."""
    head = (brightness | 0xE0) & 0xFF
    out = bytearray(4)
    for led in values:
        out += bytes(
            (
                head,
                _component(led.blue, correction[2]),
                _component(led.green, correction[1]),
                _component(led.red, correction[0]),
            )
        )
    out += b"\xff" * (len(values) // 16 + 1)
    return bytes(out)


@dataclass
class _PinGroup:
    low: list = field(default_factory=list)
    high: list = field(default_factory=list)


class Hardware:
    """SPI multiplexing between the ADCs and LED stripes."""

    def __init__(
        self,
        config: Config,
        spi: Optional[SPI] = None,
        pin_factory: Callable[[int], object] = SysfsPin,
    ) -> None:
        self.config = config
        self.spi = spi
        self._pin_factory = pin_factory
        self._lock = threading.Lock()
        self._multiplex: dict[str, _PinGroup] = {}

    def _make_pin(self, number: int):
        pin = self._pin_factory(number)
        pin.output()
        return pin

    def open(self) -> None:
        """Set up SPI and the multiplexing GPIOs when running on real hardware."""
        if not self.config.real_hw:
            log.info("No GPIO init done as we are not running on real hardware...")
            return
        log.info("Initialise GPIO and SPI...")
        if self.spi is None:
            self.spi = SpiDev(self.config.hardware.spi_frequency)
        self._multiplex = {
            key: _PinGroup(
                low=[self._make_pin(p) for p in cfg.low],
                high=[self._make_pin(p) for p in cfg.high],
            )
            for key, cfg in self.config.hardware.spi_multiplex_gpio.items()
        }

    def close(self) -> None:
        if self.config.real_hw and self.spi is not None:
            closer = getattr(self.spi, "close", None)
            if closer is not None:
                closer()

    def exchange_multiplex(self, index: str, write: bytes) -> bytes:
        """Select the multiplexed device ``index`` and exchange data with it."""
        with self._lock:
            group = self._multiplex.get(index)
            if group is None:
                raise HardwareError(
                    f"No SPI multiplexe device configuration with index {index} found in config file"
                )
            if self.spi is None:
                raise HardwareError("SPI is not initialised")
            for pin in group.low:
                pin.low()
            for pin in group.high:
                pin.high()
            return self.spi.exchange(write)

    def read_adc(self, multiplex: str, channel: int) -> int:
        """Read one channel of an MCP3008."""
        read = self.exchange_multiplex(multiplex, bytes((1, ((8 + channel) << 4) & 0xFF, 0)))
        return ((read[1] & 3) << 8) + read[2]

    def set_led_segment(self, multiplex: str, values: Sequence[Led]) -> None:
        """Send the LED values to the stripe behind ``multiplex``."""
        disp = self.config.hardware.display
        led_type = self.config.hardware.led_type
        if led_type == "ws2801":
            data = encode_ws2801(values, disp.color_correction)
        elif led_type == "apa102":
            data = encode_apa102(values, disp.color_correction, disp.apa102_brightness)
        else:
            log.warning("No LED stripe type defined. Please check the configuration.")
            return
        self.exchange_multiplex(multiplex, data)