"""Interval gating for reconciliation cycles."""

import re
import time
from typing import Callable

import structlog

from repo_sync.exceptions import ConfigurationError

log = structlog.stdlib.get_logger()

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS
WEEK_MS = 7 * DAY_MS

UNIT_MS: dict[str, int] = {
    "m": MINUTE_MS,
    "h": HOUR_MS,
    "d": DAY_MS,
    "w": WEEK_MS,
}

_INTERVAL_PATTERN = re.compile(r"^(\d+)([a-zA-Z]?)$")


def parse_interval(interval: str) -> int:
    """Parse a time interval string (e.g. '30m', '6h', '1d', '2w') into milliseconds.

    Args:
        interval: Magnitude followed by a unit of m, h, d or w

    Returns:
        Interval length in milliseconds

    Raises:
        ConfigurationError: If the magnitude is not a non-negative integer or
            the unit is unknown
    """
    if not isinstance(interval, str):
        raise ConfigurationError(f"Invalid interval: {interval!r}")

    text = interval.strip()
    match = _INTERVAL_PATTERN.match(text)
    if not match:
        raise ConfigurationError(f"Invalid interval value: {text[:-1] or text!r}")

    value, unit = match.groups()
    if unit not in UNIT_MS:
        raise ConfigurationError(f"Invalid interval unit: {unit!r}. Use m, h, d, or w.")

    return int(value) * UNIT_MS[unit]


def should_run(now: int, last_cycle: int, min_interval_ms: int) -> bool:
    """Return True when enough time has elapsed since the last cycle."""
    return now - last_cycle >= min_interval_ms


def current_time_ms() -> int:
    return int(time.time() * 1000)


class UpdateScheduler:
    """Decides whether a cycle should proceed, using an injectable clock."""

    def __init__(self, min_interval_ms: int, clock: Callable[[], int] = current_time_ms):
        if min_interval_ms < 0:
            raise ConfigurationError(f"Interval must not be negative: {min_interval_ms}")
        self.min_interval_ms: int = min_interval_ms
        self._clock = clock

    @classmethod
    def from_interval(
        cls, interval: str, clock: Callable[[], int] = current_time_ms
    ) -> "UpdateScheduler":
        return cls(parse_interval(interval), clock)

    def now(self) -> int:
        return self._clock()

    def should_run(self, last_cycle: int, now: int | None = None) -> bool:
        """Check the gate for a cycle.

        Args:
            last_cycle: Epoch milliseconds of the previous cycle
            now: Override for the current time (defaults to the clock)

        Returns:
            True if the minimum interval has elapsed
        """
        now = self.now() if now is None else now
        proceed = should_run(now, last_cycle, self.min_interval_ms)
        if not proceed:
            log.debug(
                "update_interval_not_reached",
                elapsed_ms=now - last_cycle,
                min_interval_ms=self.min_interval_ms,
            )
        return proceed
