import time
from datetime import datetime, timezone
from typing import Protocol


def now_ms() -> int:
    return int(time.time() * 1000)


def iso_from_ms(ms: int) -> str:
    """Render epoch milliseconds as an ISO-8601 UTC string with a trailing 'Z'."""
    dt = datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class Clock(Protocol):
    def now_ms(self) -> int: ...


class SystemClock:
    def now_ms(self) -> int:
        return now_ms()


class FixedClock:
    """
    Manually driven clock for expiry tests.
    Time only moves when set() or advance() is called.
    """

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self._ms = int(start_ms)

    def now_ms(self) -> int:
        return self._ms

    def set(self, ms: int) -> None:
        self._ms = int(ms)

    def advance(self, seconds: float = 0.0, ms: int = 0) -> int:
        self._ms += int(seconds * 1000) + int(ms)
        return self._ms


system_clock = SystemClock()
