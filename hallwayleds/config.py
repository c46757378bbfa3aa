"""Configuration model and YAML loading."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Mapping

import yaml

CONFILE = "config.yml"

log = logging.getLogger(__name__)

_UNITS_NS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60_000_000_000,
    "h": 3_600_000_000_000,
}
_NUM = r"(?:\d+\.?\d*|\.\d+)"
_UNIT = r"(?:ns|us|µs|μs|ms|s|m|h)"
_FULL_RE = re.compile(rf"(?:{_NUM}{_UNIT})+")
_PART_RE = re.compile(rf"({_NUM})({_UNIT})")


def parse_duration(value: Any) -> timedelta:
    """Parse a duration such as ``"1h30m"`` or ``"250ms"``; integers are nanoseconds."""
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise ValueError(f"invalid duration {value!r}")
    if isinstance(value, int):
        return timedelta(microseconds=value / 1000)
    if not isinstance(value, str):
        raise ValueError(f"invalid duration {value!r}")
    text = value
    sign = 1
    if text[:1] in "+-" and text:
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if text == "0":
        return timedelta(0)
    if not text or not _FULL_RE.fullmatch(text):
        raise ValueError(f"invalid duration {value!r}")
    total_ns = sum(float(num) * _UNITS_NS[unit] for num, unit in _PART_RE.findall(text))
    return timedelta(microseconds=sign * total_ns / 1000)


@dataclass
class SensorLEDConfig:
    enabled: bool = False
    run_up_delay: timedelta = timedelta(0)
    run_down_delay: timedelta = timedelta(0)
    hold_time: timedelta = timedelta(0)
    led_rgb: list[float] = field(default_factory=list)


@dataclass
class NightLEDConfig:
    enabled: bool = False
    latitude: float = 0.0
    longitude: float = 0.0
    led_rgb: list[list[float]] = field(default_factory=list)


@dataclass
class HoldLEDConfig:
    enabled: bool = False
    hold_time: timedelta = timedelta(0)
    trigger_delay: timedelta = timedelta(0)
    trigger_value: int = 0
    led_rgb: list[float] = field(default_factory=list)


@dataclass
class CylonLEDConfig:
    enabled: bool = False
    duration: timedelta = timedelta(0)
    delay: timedelta = timedelta(0)
    step: float = 0.0
    width: int = 0
    led_rgb: list[float] = field(default_factory=list)


@dataclass
class BlobConfig:
    delta_x: float = 0.0
    x: float = 0.0
    width: float = 0.0
    led_rgb: list[float] = field(default_factory=list)


@dataclass
class MultiBlobLEDConfig:
    enabled: bool = False
    duration: timedelta = timedelta(0)
    delay: timedelta = timedelta(0)
    blob_cfg: dict[str, BlobConfig] = field(default_factory=dict)


@dataclass
class LedSegmentConfig:
    first_led: int = 0
    last_led: int = 0
    spi_multiplex: str = ""
    reverse: bool = False


@dataclass
class DisplayConfig:
    force_update_delay: timedelta = timedelta(0)
    leds_total: int = 0
    color_correction: list[float] = field(default_factory=list)
    apa102_brightness: int = 0
    led_segments: dict[str, list[LedSegmentConfig]] = field(default_factory=dict)


@dataclass
class SensorConfig:
    led_index: int = 0
    spi_multiplex: str = ""
    adc_channel: int = 0
    trigger_value: int = 0


@dataclass
class SensorsConfig:
    smoothing_size: int = 0
    loop_delay: timedelta = timedelta(0)
    sensor_cfg: dict[str, SensorConfig] = field(default_factory=dict)


@dataclass
class MultiplexGPIOConfig:
    low: list[int] = field(default_factory=list)
    high: list[int] = field(default_factory=list)


@dataclass
class HardwareConfig:
    led_type: str = ""
    spi_frequency: int = 0
    display: DisplayConfig = field(default_factory=DisplayConfig)
    sensors: SensorsConfig = field(default_factory=SensorsConfig)
    spi_multiplex_gpio: dict[str, MultiplexGPIOConfig] = field(default_factory=dict)


@dataclass
class Config:
    real_hw: bool = False
    sensor_show: bool = False
    configfile: str = ""
    sensor_led: SensorLEDConfig = field(default_factory=SensorLEDConfig)
    night_led: NightLEDConfig = field(default_factory=NightLEDConfig)
    hold_led: HoldLEDConfig = field(default_factory=HoldLEDConfig)
    cylon_led: CylonLEDConfig = field(default_factory=CylonLEDConfig)
    multiblob_led: MultiBlobLEDConfig = field(default_factory=MultiBlobLEDConfig)
    hardware: HardwareConfig = field(default_factory=HardwareConfig)


def _section(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"section {key!r} must be a mapping")
    return value


def _dur(data: Mapping[str, Any], key: str) -> timedelta:
    return parse_duration(data[key]) if data.get(key) is not None else timedelta(0)


def _floats(values: Any) -> list[float]:
    return [float(v) for v in values or []]


def _ints(values: Any) -> list[int]:
    return [int(v) for v in values or []]


def config_from_mapping(data: Mapping[str, Any]) -> Config:
    """Build a Config from a decoded YAML mapping; missing keys take zero values."""
    sl = _section(data, "SensorLED")
    nl = _section(data, "NightLED")
    hl = _section(data, "HoldLED")
    cl = _section(data, "CylonLED")
    mb = _section(data, "MultiBlobLED")
    hw = _section(data, "Hardware")
    disp = _section(hw, "Display")
    sens = _section(hw, "Sensors")

    blobs = {
        str(name): BlobConfig(
            delta_x=float(cfg.get("DeltaX", 0) or 0),
            x=float(cfg.get("X", 0) or 0),
            width=float(cfg.get("Width", 0) or 0),
            led_rgb=_floats(cfg.get("LedRGB")),
        )
        for name, cfg in _section(mb, "BlobCfg").items()
    }
    segments = {
        str(name): [
            LedSegmentConfig(
                first_led=int(seg.get("FirstLed", 0) or 0),
                last_led=int(seg.get("LastLed", 0) or 0),
                spi_multiplex=str(seg.get("SpiMultiplex", "") or ""),
                reverse=bool(seg.get("Reverse", False)),
            )
            for seg in segs or []
        ]
        for name, segs in _section(disp, "LedSegments").items()
    }
    sensors = {
        str(name): SensorConfig(
            led_index=int(cfg.get("LedIndex", 0) or 0),
            spi_multiplex=str(cfg.get("SpiMultiplex", "") or ""),
            adc_channel=int(cfg.get("AdcChannel", 0) or 0),
            trigger_value=int(cfg.get("TriggerValue", 0) or 0),
        )
        for name, cfg in _section(sens, "SensorCfg").items()
    }
    gpio = {
        str(name): MultiplexGPIOConfig(low=_ints(cfg.get("Low")), high=_ints(cfg.get("High")))
        for name, cfg in _section(hw, "SpiMultiplexGPIO").items()
    }

    return Config(
        sensor_led=SensorLEDConfig(
            enabled=bool(sl.get("Enabled", False)),
            run_up_delay=_dur(sl, "RunUpDelay"),
            run_down_delay=_dur(sl, "RunDownDelay"),
            hold_time=_dur(sl, "HoldTime"),
            led_rgb=_floats(sl.get("LedRGB")),
        ),
        night_led=NightLEDConfig(
            enabled=bool(nl.get("Enabled", False)),
            latitude=float(nl.get("Latitude", 0) or 0),
            longitude=float(nl.get("Longitude", 0) or 0),
            led_rgb=[_floats(rgb) for rgb in nl.get("LedRGB") or []],
        ),
        hold_led=HoldLEDConfig(
            enabled=bool(hl.get("Enabled", False)),
            hold_time=_dur(hl, "HoldTime"),
            trigger_delay=_dur(hl, "TriggerDelay"),
            trigger_value=int(hl.get("TriggerValue", 0) or 0),
            led_rgb=_floats(hl.get("LedRGB")),
        ),
        cylon_led=CylonLEDConfig(
            enabled=bool(cl.get("Enabled", False)),
            duration=_dur(cl, "Duration"),
            delay=_dur(cl, "Delay"),
            step=float(cl.get("Step", 0) or 0),
            width=int(cl.get("Width", 0) or 0),
            led_rgb=_floats(cl.get("LedRGB")),
        ),
        multiblob_led=MultiBlobLEDConfig(
            enabled=bool(mb.get("Enabled", False)),
            duration=_dur(mb, "Duration"),
            delay=_dur(mb, "Delay"),
            blob_cfg=blobs,
        ),
        hardware=HardwareConfig(
            led_type=str(hw.get("LEDType", "") or ""),
            spi_frequency=int(hw.get("SPIFrequency", 0) or 0),
            display=DisplayConfig(
                force_update_delay=_dur(disp, "ForceUpdateDelay"),
                leds_total=int(disp.get("LedsTotal", 0) or 0),
                color_correction=_floats(disp.get("ColorCorrection")),
                apa102_brightness=int(disp.get("APA102_Brightness", 0) or 0) & 0xFF,
                led_segments=segments,
            ),
            sensors=SensorsConfig(
                smoothing_size=int(sens.get("SmoothingSize", 0) or 0),
                loop_delay=_dur(sens, "LoopDelay"),
                sensor_cfg=sensors,
            ),
            spi_multiplex_gpio=gpio,
        ),
    )


def read_config(cfile: str, realhw: bool, sensorshow: bool) -> Config:
    """Read the YAML config file and apply the command-line flags."""
    log.info("Reading config file %s...", cfile)
    with open(cfile, encoding="utf-8") as handle:
        data = yaml.safe_load(handle)
    if data is None:
        raise ValueError(f"config file {cfile} is empty")
    if not isinstance(data, Mapping):
        raise ValueError(f"config file {cfile} must hold a mapping")
    config = config_from_mapping(data)
    config.real_hw = realhw
    config.sensor_show = sensorshow
    config.configfile = str(cfile)
    log.info("%s", config)
    return config