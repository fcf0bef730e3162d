"""Per-(user, symbol, trigger kind) minimum-interval gates."""
import logging
import time
from collections.abc import Callable, Hashable, Mapping
from enum import Enum

logger = logging.getLogger(__name__)

PORTFOLIO_KEY = "*"

# Recomputation and outgoing alerts keep separate windows: a forced rescore
# re-arms the recompute window without consuming the alert window.
RECOMPUTE_SCOPE = "recompute"
ALERT_SCOPE = "alert"


class TriggerKind(str, Enum):
    """Why an evaluation was requested; each kind has its own cooldown window."""

    PERIODIC = "periodic"
    DROP = "drop"
    EVENT = "event"
    WEBHOOK = "webhook"
    STOP_LOSS = "stop_loss"


class CooldownController:
    """Admit or reject triggers per (user, symbol, kind, scope).

    A key is ``idle`` until it fires and then ``cooling`` for its kind's
    window. Non-forced triggers while cooling are rejected. Forced triggers
    are always admitted and restart the window. The check and the mark happen
    in one synchronous call, so no other task can interleave between them.
    """

    def __init__(
        self,
        windows: Mapping[TriggerKind, float],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._windows = dict(windows)
        self._clock = clock
        self._last: dict[tuple[str, str, TriggerKind, str], float] = {}

    def window(self, kind: TriggerKind) -> float:
        return self._windows.get(kind, 0.0)

    def remaining(
        self, user_id: str, symbol: str, kind: TriggerKind, scope: str = RECOMPUTE_SCOPE
    ) -> float:
        """Seconds until the key is idle again (0 when idle)."""
        last = self._last.get((user_id, symbol, kind, scope))
        if last is None:
            return 0.0
        return max(0.0, self.window(kind) - (self._clock() - last))

    def state(
        self, user_id: str, symbol: str, kind: TriggerKind, scope: str = RECOMPUTE_SCOPE
    ) -> str:
        return "cooling" if self.remaining(user_id, symbol, kind, scope) > 0 else "idle"

    def try_acquire(
        self,
        user_id: str,
        symbol: str,
        kind: TriggerKind,
        *,
        force: bool = False,
        scope: str = RECOMPUTE_SCOPE,
    ) -> bool:
        """Admit the trigger and start its window, or reject it while cooling."""
        if not force:
            left = self.remaining(user_id, symbol, kind, scope)
            if left > 0:
                logger.debug(
                    "Cooldown: %s %s for %s/%s suppressed (%.0fs left)",
                    kind.value, scope, user_id, symbol, left,
                )
                return False
        self._last[(user_id, symbol, kind, scope)] = self._clock()
        return True

    def reset(self, user_id: str, symbol: str | None = None) -> None:
        """Forget cooldown state for a user, or for one of the user's symbols."""
        for key in [k for k in self._last if k[0] == user_id and (symbol is None or k[1] == symbol)]:
            del self._last[key]


class IntervalGate:
    """Let one item per key through per interval; drop the rest.

    Used to rate-limit streamed ticks before they reach evaluation.
    """

    def __init__(
        self,
        interval_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._interval = interval_seconds
        self._clock = clock
        self._passed: dict[Hashable, float] = {}

    def admit(self, key: Hashable) -> bool:
        now = self._clock()
        last = self._passed.get(key)
        if last is not None and now - last < self._interval:
            return False
        self._passed[key] = now
        return True
