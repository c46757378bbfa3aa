from datetime import timedelta

import pytest

from hallwayleds.config import config_from_mapping, parse_duration, read_config

CONFIG_DATA = """
SensorLED:
  Enabled: true
  RunUpDelay: 10ms
  RunDownDelay: 20ms
  HoldTime: 30s
  LedRGB: [255, 0, 0]
"""


def test_read_config(tmp_path):
    config_file = tmp_path / "config.yml"
    config_file.write_text(CONFIG_DATA)
    cfg = read_config(str(config_file), True, False)
    assert cfg.real_hw is True
    assert cfg.sensor_show is False
    assert cfg.configfile == str(config_file)
    assert cfg.sensor_led.enabled is True
    assert cfg.sensor_led.run_up_delay == timedelta(milliseconds=10)
    assert cfg.sensor_led.run_down_delay == timedelta(milliseconds=20)
    assert cfg.sensor_led.hold_time == timedelta(seconds=30)
    assert cfg.sensor_led.led_rgb == [255.0, 0.0, 0.0]


def test_read_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_config(str(tmp_path / "nope.yml"), False, False)


def test_read_empty_file(tmp_path):
    f = tmp_path / "config.yml"
    f.write_text("")
    with pytest.raises(ValueError):
        read_config(str(f), False, False)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("10ms", timedelta(milliseconds=10)),
        ("30s", timedelta(seconds=30)),
        ("1h30m", timedelta(hours=1, minutes=30)),
        ("0", timedelta(0)),
        ("-2s", timedelta(seconds=-2)),
        ("1.5s", timedelta(milliseconds=1500)),
    ],
)
def test_parse_duration(text, expected):
    assert parse_duration(text) == expected


@pytest.mark.parametrize("text", ["", "10", "5x", "ms", True])
def test_parse_duration_invalid(text):
    with pytest.raises(ValueError):
        parse_duration(text)


def test_nested_sections():
    cfg = config_from_mapping(
        {
            "Hardware": {
                "LEDType": "apa102",
                "Display": {
                    "LedsTotal": 10,
                    "LedSegments": {"a": [{"FirstLed": 0, "LastLed": 3, "SpiMultiplex": "s1", "Reverse": True}]},
                },
                "Sensors": {"SensorCfg": {"S1": {"LedIndex": 4, "AdcChannel": 2, "TriggerValue": 50}}},
                "SpiMultiplexGPIO": {"s1": {"Low": [1], "High": [2, 3]}},
            }
        }
    )
    hw = cfg.hardware
    assert hw.led_type == "apa102"
    assert hw.display.leds_total == 10
    seg = hw.display.led_segments["a"][0]
    assert (seg.first_led, seg.last_led, seg.spi_multiplex, seg.reverse) == (0, 3, "s1", True)
    assert hw.sensors.sensor_cfg["S1"].led_index == 4
    assert hw.spi_multiplex_gpio["s1"].high == [2, 3]
    assert cfg.hold_led.enabled is False