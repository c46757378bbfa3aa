"""A constant glow between sunset and sunrise, changing colour through the night."""

from __future__ import annotations

import logging
import math
from datetime import date, datetime, timedelta, timezone
from typing import Callable, NamedTuple, Optional, Sequence

from .atomicevent import AtomicEvent
from .config import Config
from .led import Led
from .producer import AbstractProducer

log = logging.getLogger(__name__)

_J1970 = 2440587.5
_J2000 = 2451545.0
_SECONDS_PER_DAY = 86400.0
# sin(-0.83 degrees): refraction and the size of the solar disc
_HORIZON = -0.01449
# sin(23.44 degrees): obliquity of the ecliptic
_OBLIQUITY = 0.39779
_PERIHELION = 102.9372
# how long to wait before looking again when the sun neither rises nor sets
_POLAR_RECHECK = timedelta(hours=1)


def _julian_day(moment: datetime) -> float:
    return moment.timestamp() / _SECONDS_PER_DAY + _J1970


def _from_julian(julian: float) -> datetime:
    return datetime.fromtimestamp((julian - _J1970) * _SECONDS_PER_DAY, tz=timezone.utc)


def sunrise_sunset(
    latitude: float, longitude: float, day: date
) -> tuple[Optional[datetime], Optional[datetime]]:
    """Sunrise and sunset (UTC) on ``day``; ``(None, None)`` during polar day or night."""
    noon = datetime(day.year, day.month, day.day, 12, tzinfo=timezone.utc)
    mean_noon = _julian_day(noon) - longitude / 360
    anomaly = (357.5291 + 0.98560028 * (mean_noon - _J2000)) % 360
    anomaly_rad = math.radians(anomaly)
    center = (
        1.9148 * math.sin(anomaly_rad)
        + 0.02 * math.sin(2 * anomaly_rad)
        + 0.0003 * math.sin(3 * anomaly_rad)
    )
    ecliptic = (anomaly + center + 180 + _PERIHELION) % 360
    ecliptic_rad = math.radians(ecliptic)
    transit = mean_noon + 0.0053 * math.sin(anomaly_rad) - 0.0069 * math.sin(2 * ecliptic_rad)
    declination = math.asin(math.sin(ecliptic_rad) * _OBLIQUITY)
    lat = math.radians(latitude)
    denominator = math.cos(lat) * math.cos(declination)
    if denominator == 0:
        return None, None
    ratio = (_HORIZON - math.sin(lat) * math.sin(declination)) / denominator
    if ratio > 1 or ratio < -1:
        return None, None
    fraction = math.degrees(math.acos(ratio)) / 360
    return _from_julian(transit - fraction), _from_julian(transit + fraction)


class NightInterval(NamedTuple):
    """Which night colour to show (``None`` by day) and how long until the next change."""

    index: Optional[int]
    wakeup: timedelta


def night_interval(
    now: datetime,
    rise: datetime,
    sunset: datetime,
    rise_next_day: datetime,
    set_prev_day: datetime,
    count: int,
) -> NightInterval:
    """Split the current night into ``count`` equal parts and locate ``now`` in it."""
    if count < 1:
        raise ValueError("at least one night colour is needed")
    if rise < now < sunset:
        return NightInterval(None, sunset - now)
    if now < rise:
        night_start, night_end = set_prev_day, rise
    else:
        night_start, night_end = sunset, rise_next_day
    interval = (night_end - night_start) // count
    if interval <= timedelta(0):
        raise ValueError("night duration is too short to split")
    current = (now - night_start) // interval
    current = min(max(current, 0), count - 1)
    till_next = night_start + (current + 1) * interval - now
    # one extra second makes sure the next interval has really begun
    return NightInterval(current, till_next + timedelta(seconds=1))


def _local_now() -> datetime:
    return datetime.now().astimezone()


class NightlightProducer(AbstractProducer):
    """Shows the configured night colours from sunset to sunrise."""

    def __init__(
        self,
        uid: str,
        leds_changed: AtomicEvent,
        config: Config,
        now: Callable[[], datetime] = _local_now,
    ) -> None:
        super().__init__(uid, leds_changed, config.hardware.display.leds_total)
        cfg = config.night_led
        self.latitude = cfg.latitude
        self.longitude = cfg.longitude
        self.led_night: Sequence[Led] = [Led(rgb[0], rgb[1], rgb[2]) for rgb in cfg.led_rgb]
        self._now = now

    def _current(self) -> NightInterval:
        now = self._now()
        rise, sunset = sunrise_sunset(self.latitude, self.longitude, now.date())
        rise_next_day, _ = sunrise_sunset(
            self.latitude, self.longitude, (now + timedelta(days=1)).date()
        )
        _, set_prev_day = sunrise_sunset(
            self.latitude, self.longitude, (now - timedelta(days=1)).date()
        )
        if None in (rise, sunset, rise_next_day, set_prev_day):
            log.warning("No sunrise or sunset at latitude %s; night light stays off", self.latitude)
            return NightInterval(None, _POLAR_RECHECK)
        return night_interval(now, rise, sunset, rise_next_day, set_prev_day, len(self.led_night))

    def run(self, start_time: float) -> None:
        try:
            while True:
                index, wakeup = self._current()
                self._set_all(Led() if index is None else self.led_night[index])
                if self._wait_stop(max(0.0, wakeup.total_seconds())):
                    return
        finally:
            self._set_all(Led())