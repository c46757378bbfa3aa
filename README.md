# hallwayleds

Light up LED stripes in a hallway when someone walks by.

hallwayleds reads infrared distance sensors through MCP3008 ADCs and drives
WS2801 or APA102 LED stripes over SPI. Several SPI devices share one bus; GPIO
pins set logic gates that choose which device is active. The stripe segments,
ADCs and sensors are described in a YAML config file.

## Light producers

Each light effect is a producer, switched on or off with `Enabled` in its
config section:

- **SensorLED** (`SensorLedProducer`): a triggered sensor starts a pulse of
  light at the sensor's LED. The pulse spreads to both ends of the stripe,
  holds for `HoldTime`, then shrinks back. A new trigger during the hold makes
  it last longer; a new trigger while it shrinks makes it spread out again.
- **HoldLED** (`HoldProducer`): when the same sensor keeps reporting values at
  or above `TriggerValue` for longer than `TriggerDelay` (but less than one
  second longer), the whole stripe is lit for `HoldTime`. Doing it again while
  it is lit turns it off.
- **NightLED** (`NightlightProducer`): a glow between sunset and sunrise at the
  configured `Latitude` and `Longitude`. The night is split into as many equal
  intervals as there are colours in `LedRGB`. Where the sun neither rises nor
  sets that day, the night light stays off.
- **MultiBlobLED** (`MultiBlobProducer`): coloured blobs that move along the
  stripe and bounce off each other and off the ends. They fade in once all
  sensor-driven light has gone out, and fade out when a sensor lights the
  stripe again or `Duration` has passed; in the latter case the night light is
  started if it is enabled.
- **CylonLED** (`CylonProducer`): a bar that sweeps back and forth, also
  started once all sensor-driven light has gone out and stopped when it comes
  back.

When several producers are active at once, each LED shows the highest value
per colour channel across all of them (`hallwayleds.led.combine_leds`). The
combined values are sent again every `ForceUpdateDelay`, to clear occasional
glitches on the stripe.

## Installation

```
pip install .
```

## Running

```
hallwayleds -config /path/to/config.yml
```

Options (each also accepted with two dashes, e.g. `--real`):

- `-config FILE`: the config file to use. The default is `config.yml` in the
  directory of the started program.
- `-real`: run on real hardware, using SPI and GPIO. Without this flag the
  stripes are drawn in the terminal, and pressing `1`, `2`, … fires the
  sensors, numbered by their LED position from left to right.
- `-show-sensors`: show only statistics of the sensor values: min, mean, max
  and standard deviation over the last 500 readings, plus each sensor's
  trigger value. Without `-real` the values are random.

In the terminal view, press `q` to quit and `r` to reload the config file and
restart. The view uses ANSI escape codes with 24-bit colour; keys are read
from the terminal when standard input is one.

`SIGHUP` also reloads the config file and restarts all producers; `SIGINT`
(Ctrl-C) exits.

## Configuration

The config file is YAML. Durations are written as `10ms`, `1.5s`, `2h30m`
and the like (units `ns`, `us`, `ms`, `s`, `m`, `h`); a bare integer is taken
as nanoseconds. Missing keys take zero or empty values. The sections are:

- `SensorLED`: `Enabled`, `RunUpDelay`, `RunDownDelay`, `HoldTime`, `LedRGB`
- `HoldLED`: `Enabled`, `HoldTime`, `TriggerDelay`, `TriggerValue`, `LedRGB`
- `NightLED`: `Enabled`, `Latitude`, `Longitude`, `LedRGB` (a list of RGB
  triples, one for each interval of the night)
- `CylonLED`: `Enabled`, `Duration`, `Delay`, `Step`, `Width`, `LedRGB`
- `MultiBlobLED`: `Enabled`, `Duration`, `Delay`, `BlobCfg` (per blob:
  `DeltaX`, `X`, `Width`, `LedRGB`; the sign of `DeltaX` is the starting
  direction)
- `Hardware`:
  - `LEDType`: `ws2801` or `apa102`
  - `SPIFrequency`
  - `Display`: `ForceUpdateDelay`, `LedsTotal`, `ColorCorrection` (one factor
    per channel), `APA102_Brightness`, `LedSegments`
  - `Sensors`: `SmoothingSize` (readings averaged per value), `LoopDelay`,
    `SensorCfg`
  - `SpiMultiplexGPIO`: per device, the GPIO pins to pull `Low` and `High`

`Delay` and `Duration` of CylonLED and MultiBlobLED must be positive, as must
`LoopDelay` when sensors are polled.

An example:

```yaml
SensorLED:
  Enabled: true
  RunUpDelay: 10ms
  RunDownDelay: 20ms
  HoldTime: 30s
  LedRGB: [255, 0, 0]
Hardware:
  LEDType: ws2801
  SPIFrequency: 1000000
  Display:
    ForceUpdateDelay: 1s
    LedsTotal: 10
    ColorCorrection: [1, 1, 1]
    LedSegments:
      hallway:
        - {FirstLed: 0, LastLed: 3, SpiMultiplex: stripe1, Reverse: false}
        - {FirstLed: 8, LastLed: 9, SpiMultiplex: stripe2, Reverse: true}
  Sensors:
    SmoothingSize: 3
    LoopDelay: 25ms
    SensorCfg:
      S0: {LedIndex: 0, SpiMultiplex: adc1, AdcChannel: 0, TriggerValue: 120}
  SpiMultiplexGPIO:
    stripe1: {Low: [17], High: [27]}
    stripe2: {Low: [27], High: [17]}
    adc1: {Low: [17, 27], High: []}
```

LEDs that no segment of a stripe covers become invisible gaps. Segments of the
same stripe must not overlap; `build_segments` raises `SegmentOverlapError`
if they do.

## Hardware access

With `-real`, SPI goes through the Linux device `/dev/spidev0.0`
(`hallwayleds.hardware.SpiDev`) and GPIO pins are driven through
`/sys/class/gpio` (`SysfsPin`). Other SPI devices or GPIO interfaces are not
supported; a different `SPI` object or pin factory can be handed to
`Hardware` when it is used as a library.

## Using it as a library

```python
from hallwayleds.config import read_config
from hallwayleds.led import Led, combine_leds
from hallwayleds.hardware import encode_ws2801, encode_apa102

config = read_config("config.yml", False, False)
leds = combine_leds({"a": [Led(10, 0, 0)], "b": [Led(0, 0, 20)]}, 5)
ws2801_frame = encode_ws2801(leds, [1.0, 1.0, 1.0])
apa102_frame = encode_apa102(leds, [1.0, 1.0, 1.0], 31)
```

`hallwayleds.app.Controller` wires sensors, producers and the display for one
config; `main` is the command-line entry point.

## Running the tests

```
pip install .[test]
pytest
```