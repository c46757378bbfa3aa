"""LED colour values and the producer protocol."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Protocol, Sequence


@dataclass(frozen=True)
class Led:
    red: float = 0.0
    green: float = 0.0
    blue: float = 0.0

    def is_empty(self) -> bool:
        """True if all components are zero."""
        return self.red == 0 and self.green == 0 and self.blue == 0

    def max(self, other: "Led") -> "Led":
        """Component-wise maximum of this LED and ``other``."""
        return Led(
            max(self.red, other.red),
            max(self.green, other.green),
            max(self.blue, other.blue),
        )


class LedProducer(Protocol):
    """What every producer offers to the controller."""

    uid: str

    def leds(self) -> list[Led]: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def exit(self) -> None: ...

    def is_running(self) -> bool: ...


def combine_leds(
    all_led_ranges: Mapping[str, Sequence[Led]] | Iterable[Sequence[Led]],
    leds_total: int,
) -> list[Led]:
    """Combine several LED ranges into one of ``leds_total`` by component maximum."""
    ranges = all_led_ranges.values() if isinstance(all_led_ranges, Mapping) else all_led_ranges
    total = [Led()] * leds_total
    for current in ranges:
        for index, led in enumerate(current):
            total[index] = led.max(total[index])
    return total