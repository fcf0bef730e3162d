"""Sharp intraday drop detection over a sliding time window."""
import time
from collections import deque
from collections.abc import Callable


class DropDetector:
    """Flag a fall of ``threshold_pct`` or more from the window's high.

    Samples older than ``window_seconds`` are discarded. When a drop fires,
    the window restarts at the current sample so one move fires once.
    """

    def __init__(
        self,
        threshold_pct: float = 5.0,
        window_seconds: float = 900.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._threshold = threshold_pct / 100
        self._window = window_seconds
        self._clock = clock
        self._samples: dict[tuple[str, str], deque[tuple[float, float]]] = {}

    def observe(self, user_id: str, symbol: str, price: float) -> float | None:
        """Record a price; return the (negative) fractional drop if it crossed the threshold."""
        now = self._clock()
        samples = self._samples.setdefault((user_id, symbol), deque())
        while samples and now - samples[0][0] > self._window:
            samples.popleft()
        samples.append((now, price))
        high = max(p for _, p in samples)
        if high <= 0:
            return None
        change = (price - high) / high
        if change <= -self._threshold:
            samples.clear()
            samples.append((now, price))
            return change
        return None

    def forget(self, user_id: str, symbol: str | None = None) -> None:
        for key in [k for k in self._samples if k[0] == user_id and (symbol is None or k[1] == symbol)]:
            del self._samples[key]
