"""Logging setup and a keyed throttle for repetitive status lines."""
import logging
import time
from collections.abc import Callable, Hashable

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the root logger."""
    root = logging.getLogger()
    root.setLevel(level.upper())
    if not any(getattr(h, "_riskwise", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._riskwise = True  # type: ignore[attr-defined]
        root.addHandler(handler)


class LogThrottle:
    """Allow a log line per key at most once per interval."""

    def __init__(
        self,
        interval_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._interval = interval_seconds
        self._clock = clock
        self._last: dict[Hashable, float] = {}

    def should_log(self, key: Hashable) -> bool:
        """Return True (and mark the key) when the key has not logged recently."""
        now = self._clock()
        last = self._last.get(key)
        if last is not None and now - last < self._interval:
            return False
        self._last[key] = now
        return True

    def forget(self, key: Hashable) -> None:
        self._last.pop(key, None)
