"""A terminal view simulating the LED stripes, or showing sensor statistics."""

from __future__ import annotations

import contextlib
import logging
import math
import os
import queue
import re
import select
import signal
import statistics
import sys
import threading
from typing import Callable, Iterator, Mapping, Optional, Sequence, TextIO

from .config import Config
from .display import LedSegment
from .led import Led
from .sensor import Sensor, Trigger

try:
    import termios
    import tty
except ImportError:  # not a POSIX terminal
    termios = None
    tty = None

log = logging.getLogger(__name__)

_KEY_TRIGGER_VALUE = 80
_POLL = 0.1
_TITLE = " GOLEDS Simulation "
_TITLE_COLOR = "#add8e6"
_BACKGROUND = "#2f4f4f"
_RESET = "\x1b[0m"

_NAMED_COLORS = {
    "black": "#000000",
    "white": "#ffffff",
    "red": "#ff0000",
    "green": "#008000",
    "blue": "#0000ff",
    "yellow": "#ffff00",
    "orange": "#ffa500",
    "purple": "#800080",
    "gray": "#808080",
    "grey": "#808080",
    "lightblue": "#add8e6",
    "darkslategray": "#2f4f4f",
}
_COLOR_RE = r"#[0-9a-fA-F]{6}|-|" + "|".join(sorted(_NAMED_COLORS, key=len, reverse=True))
_TAG_RE = re.compile(rf"\[(?:({_COLOR_RE})(?::[^\[\]]*)?|:[^\[\]]*)\]", re.IGNORECASE)

# (limit, exact match, top glyph, bottom glyph), checked in order
_LEVELS = (
    (2, False, " ", "▁"),
    (4, True, " ", "▂"),
    (6, False, " ", "▃"),
    (8, False, " ", "▄"),
    (10, False, " ", "▅"),
    (12, False, " ", "▆"),
    (14, False, " ", "▇"),
    (16, False, " ", "█"),
    (18, True, "▁", "█"),
    (20, False, "▂", "█"),
    (22, False, "▃", "█"),
    (24, False, "▄", "█"),
    (26, False, "▅", "█"),
    (28, False, "▆", "█"),
    (30, False, "▇", "█"),
)


def parse_markup(text: str) -> list[tuple[str, Optional[str]]]:
    """Split colour-tagged text into ``(text, colour)`` pieces.

    Tags are ``[#rrggbb]``, ``[name]``, ``[-]`` (back to default) and
    ``[fg:bg]`` forms where an empty foreground leaves the colour unchanged.
    Colours come back as lower-case ``#rrggbb``; ``None`` is the default.
    """
    pieces: list[tuple[str, Optional[str]]] = []
    color: Optional[str] = None
    pos = 0
    for match in _TAG_RE.finditer(text):
        if match.start() > pos:
            pieces.append((text[pos : match.start()], color))
        fg = match.group(1)
        if fg == "-":
            color = None
        elif fg:
            fg = fg.lower()
            color = _NAMED_COLORS.get(fg, fg)
        pos = match.end()
    if pos < len(text):
        pieces.append((text[pos:], color))
    return pieces


def _fg(color: Optional[str]) -> str:
    if color is None:
        return "\x1b[39m"
    return "\x1b[38;2;{};{};{}m".format(*_rgb(color))


def _bg(color: str) -> str:
    return "\x1b[48;2;{};{};{}m".format(*_rgb(color))


def _rgb(color: str) -> tuple[int, int, int]:
    return int(color[1:3], 16), int(color[3:5], 16), int(color[5:7], 16)


def _to_ansi(text: str) -> tuple[str, int]:
    pieces = parse_markup(text)
    ansi = "".join(_fg(color) + piece for piece, color in pieces)
    return ansi, sum(len(piece) for piece, _ in pieces)


def scaled_color(led: Led) -> str:
    """A colour tag for ``led`` scaled so its brightest component is 255."""
    peak = max(led.red, led.green, led.blue)
    if peak <= 0:
        return "[#000000]"
    factor = 255 / peak
    red, green, blue = (
        int(max(0.0, min(component * factor, 255))) for component in (led.red, led.green, led.blue)
    )
    return f"[#{red:02x}{green:02x}{blue:02x}]"


def _levels(value: int) -> tuple[str, str]:
    for limit, exact, top, bottom in _LEVELS:
        if (value == limit) if exact else (value <= limit):
            return top, bottom
    return "█", "█"


def simulate_led(segment: LedSegment) -> tuple[str, str]:
    """Two rows of bar glyphs (top, bottom) showing the segment's brightness."""
    width = segment.last_led - segment.first_led + 1
    if not segment.visible:
        return " " * width, "·" * width
    top: list[str] = []
    bottom: list[str] = []
    for led in segment.leds():
        if led.is_empty():
            top.append(" ")
            bottom.append(" ")
            continue
        value = min(255, max(0, math.floor((led.red + led.green + led.blue) / 3.0 + 0.5)))
        tag = scaled_color(led)
        upper, lower = _levels(value)
        top.append(f"{tag}{upper}[-]")
        bottom.append(f"{tag}{lower}[-]")
    return "".join(top), "".join(bottom)


def render_display(segments: Mapping[str, Sequence[LedSegment]], sensorline: str) -> str:
    """Markup text for all stripes, sorted by name, followed by the sensor line."""
    parts = []
    for name in sorted(segments):
        rendered = [simulate_led(seg) for seg in segments[name]]
        parts.append(
            " " + "".join(top for top, _ in rendered)
            + "\n " + "".join(bottom for _, bottom in rendered)
            + "\n\n"
        )
    parts.append(" [blue]" + sensorline + "[:]")
    return "".join(parts)


def _round_half_away(value: float) -> float:
    return math.copysign(math.floor(abs(value) + 0.5), value)


def _num(value: float, width: int, precision: int) -> str:
    if math.isnan(value):
        return "NaN".rjust(width)
    return f"{value:{width}.{precision}f}"


def render_sensor_stats(
    sensors: Mapping[str, Sensor], sensorvalues: Mapping[str, Sequence[int]]
) -> str:
    """Three lines of min/mean/max, standard deviation and trigger value per sensor."""
    top = [" [min|mean|max]       "]
    middle = [" Standard Deviation   "]
    bottom = [" Name: Trigger value  "]
    for sensor in sorted(sensors.values(), key=lambda s: s.led_index):
        data = list(sensorvalues.get(sensor.uid, ()))
        if data:
            low = _round_half_away(min(data))
            mean = _round_half_away(statistics.fmean(data))
            high = _round_half_away(max(data))
            stdev = statistics.pstdev(data)
        else:
            low = mean = high = stdev = math.nan
        top.append(f" [{_num(low, 3, 0)}|{_num(mean, 3, 0)}|{_num(high, 3, 0)}] ")
        middle.append(f"  {_num(stdev, 5, 1)}        ")
        bottom.append(f"  {sensor.uid:>3}: {sensor.trigger_value:3d}     ")
    return "".join(top) + "\n" + "".join(middle) + "\n" + "".join(bottom)


def sensor_line(sensors: Mapping[str, Sensor], leds_total: int) -> tuple[str, dict[str, str]]:
    """A line marking each sensor's LED with its key, and the key-to-sensor map."""
    line = " " * leds_total
    keys: dict[str, str] = {}
    for number, sensor in enumerate(sorted(sensors.values(), key=lambda s: s.led_index), start=1):
        index = sensor.led_index
        if not 0 <= index < leds_total:
            raise ValueError(f"sensor {sensor.uid} led index {index} is outside the stripe")
        line = line[:index] + str(number) + line[index + 1 : leds_total]
        keys[str(number)] = sensor.uid
    return line, keys


def intro_text(config: Config) -> str:
    """The help text shown at the top of the view."""
    parts = []
    if not config.sensor_show:
        count = len(config.hardware.sensors.sensor_cfg)
        parts.append(f"Hit [blue]1[-]...[blue]{count}[-] to fire a sensor\n")
    parts.append("Hit [#ff0000]q[-] to exit, [#ff0000]r[-] to reload config file and restart")
    if config.sensor_show and not config.real_hw:
        parts.append("\n[#ff0000] '-real' flag not given, using random numbers for testing![-]")
    return "".join(parts)


class SimulationTUI:
    """Draws the simulation into a terminal and turns key presses into events.

    ``read_key`` returns one key, ``None`` when nothing was pressed yet, or
    ``""`` when input has ended. Without it, keys come from the terminal.
    """

    def __init__(
        self,
        config: Config,
        sensors: Mapping[str, Sensor],
        triggers: "queue.Queue[Trigger]",
        signals: "queue.Queue[signal.Signals]",
        output: Optional[TextIO] = None,
        read_key: Optional[Callable[[], Optional[str]]] = None,
    ) -> None:
        self.config = config
        self.triggers = triggers
        self.signals = signals
        self.output = output if output is not None else sys.stdout
        self._read_key = read_key
        leds_total = config.hardware.display.leds_total
        self.intro = intro_text(config)
        self.sensorline, self.char_to_sensor = sensor_line(sensors, leds_total)
        if config.sensor_show:
            self.width = max(len(config.hardware.sensors.sensor_cfg) * 15 + 24, 70)
        else:
            self.width = leds_total + 4
        self._content = ""
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def set_text(self, text: str) -> None:
        """Replace the stripe content and redraw."""
        with self._lock:
            self._content = text
        self._draw()

    def start(self) -> None:
        """Draw the view and start listening for keys in the background."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._draw()
        self._thread = threading.Thread(target=self._loop, name="simulation-tui", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop listening for keys and reset the terminal colours."""
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1)
        self._thread = None
        with self._lock:
            self.output.write(_RESET + "\n")
            self.output.flush()

    def _box(self, lines: Sequence[str], centered: bool, title: str) -> list[str]:
        inner = self.width - 2
        background = _bg(_BACKGROUND)
        if title:
            left = max(0, (inner - len(title)) // 2)
            right = max(0, inner - len(title) - left)
            top = f"┌{'─' * left}{_fg(_TITLE_COLOR)}{title}{_fg(None)}{'─' * right}┐"
        else:
            top = f"┌{'─' * inner}┐"
        rows = [background + _fg(None) + top + _RESET]
        for line in lines:
            ansi, visible = _to_ansi(line)
            pad = max(0, inner - visible)
            left = pad // 2 if centered else 0
            rows.append(
                f"{background}{_fg(None)}│{' ' * left}{ansi}{_fg(None)}{' ' * (pad - left)}│{_RESET}"
            )
        rows.append(f"{background}{_fg(None)}└{'─' * inner}┘{_RESET}")
        return rows

    def _frame(self) -> str:
        with self._lock:
            content = self._content
        lines = self._box(self.intro.split("\n"), True, _TITLE)
        lines += self._box(content.split("\n"), False, "")
        return "\x1b[H\x1b[2J" + "\n".join(lines) + _RESET + "\n"

    def _draw(self) -> None:
        frame = self._frame()
        with self._lock:
            self.output.write(frame)
            self.output.flush()

    def _idle(self) -> Optional[str]:
        self._stop.wait(_POLL)
        return None

    @contextlib.contextmanager
    def _key_reader(self) -> Iterator[Callable[[], Optional[str]]]:
        if self._read_key is not None:
            yield self._read_key
            return
        stream = sys.stdin
        if termios is None or stream is None or not stream.isatty():
            yield self._idle
            return
        fd = stream.fileno()
        saved = termios.tcgetattr(fd)
        tty.setcbreak(fd)

        def read() -> Optional[str]:
            ready, _, _ = select.select([fd], [], [], _POLL)
            if not ready:
                return None
            data = os.read(fd, 1)
            return data.decode(errors="ignore") if data else ""

        try:
            yield read
        finally:
            termios.tcsetattr(fd, termios.TCSADRAIN, saved)

    def _loop(self) -> None:
        with self._key_reader() as read_key:
            while not self._stop.is_set():
                key = read_key()
                if key is None:
                    continue
                if key == "":
                    break
                self._handle_key(key)

    def _handle_key(self, key: str) -> None:
        uid = self.char_to_sensor.get(key)
        if uid is not None and not self.config.sensor_show:
            self.triggers.put(Trigger(uid, _KEY_TRIGGER_VALUE))
        elif key in ("q", "Q"):
            self._stop.set()
            self.signals.put(signal.SIGINT)
        elif key in ("r", "R"):
            self._stop.set()
            self.signals.put(signal.SIGHUP)