from fakes import ManualClock

from riskwise.services.cooldown import (ALERT_SCOPE, CooldownController,
                                        IntervalGate, TriggerKind)

WINDOWS = {
    TriggerKind.PERIODIC: 900.0,
    TriggerKind.EVENT: 300.0,
    TriggerKind.STOP_LOSS: 120.0,
}


def _controller() -> tuple[CooldownController, ManualClock]:
    clock = ManualClock()
    return CooldownController(WINDOWS, clock=clock), clock


def test_second_trigger_within_window_is_suppressed():
    cooldowns, clock = _controller()

    assert cooldowns.try_acquire("u1", "AAPL", TriggerKind.PERIODIC)
    clock.advance(60)
    assert not cooldowns.try_acquire("u1", "AAPL", TriggerKind.PERIODIC)
    assert cooldowns.state("u1", "AAPL", TriggerKind.PERIODIC) == "cooling"


def test_trigger_admitted_after_window():
    cooldowns, clock = _controller()
    cooldowns.try_acquire("u1", "AAPL", TriggerKind.PERIODIC)

    clock.advance(900)

    assert cooldowns.state("u1", "AAPL", TriggerKind.PERIODIC) == "idle"
    assert cooldowns.try_acquire("u1", "AAPL", TriggerKind.PERIODIC)


def test_forced_trigger_bypasses_and_rearms_window():
    cooldowns, clock = _controller()
    cooldowns.try_acquire("u1", "AAPL", TriggerKind.EVENT)
    clock.advance(200)

    assert cooldowns.try_acquire("u1", "AAPL", TriggerKind.EVENT, force=True)
    clock.advance(200)
    # 400s after the first fire but only 200s after the forced one
    assert not cooldowns.try_acquire("u1", "AAPL", TriggerKind.EVENT)
    assert cooldowns.remaining("u1", "AAPL", TriggerKind.EVENT) == 100


def test_rejected_trigger_does_not_extend_or_shorten_window():
    cooldowns, clock = _controller()
    cooldowns.try_acquire("u1", "AAPL", TriggerKind.PERIODIC)
    clock.advance(500)
    cooldowns.try_acquire("u1", "AAPL", TriggerKind.PERIODIC)

    assert cooldowns.remaining("u1", "AAPL", TriggerKind.PERIODIC) == 400


def test_windows_are_independent_per_kind_and_key():
    cooldowns, _ = _controller()
    cooldowns.try_acquire("u1", "AAPL", TriggerKind.PERIODIC)

    assert cooldowns.try_acquire("u1", "AAPL", TriggerKind.EVENT)
    assert cooldowns.try_acquire("u1", "MSFT", TriggerKind.PERIODIC)
    assert cooldowns.try_acquire("u2", "AAPL", TriggerKind.PERIODIC)
    assert cooldowns.try_acquire("u1", "*", TriggerKind.STOP_LOSS)


def test_reset_forgets_one_symbol_or_whole_user():
    cooldowns, _ = _controller()
    cooldowns.try_acquire("u1", "AAPL", TriggerKind.PERIODIC)
    cooldowns.try_acquire("u1", "MSFT", TriggerKind.PERIODIC)

    cooldowns.reset("u1", "AAPL")
    assert cooldowns.state("u1", "AAPL", TriggerKind.PERIODIC) == "idle"
    assert cooldowns.state("u1", "MSFT", TriggerKind.PERIODIC) == "cooling"

    cooldowns.reset("u1")
    assert cooldowns.state("u1", "MSFT", TriggerKind.PERIODIC) == "idle"


def test_forced_recompute_leaves_alert_window_untouched():
    cooldowns, clock = _controller()

    assert cooldowns.try_acquire("u1", "AAPL", TriggerKind.EVENT, force=True)
    assert cooldowns.try_acquire("u1", "AAPL", TriggerKind.EVENT, scope=ALERT_SCOPE)
    clock.advance(30)
    assert cooldowns.try_acquire("u1", "AAPL", TriggerKind.EVENT, force=True)
    assert not cooldowns.try_acquire("u1", "AAPL", TriggerKind.EVENT, scope=ALERT_SCOPE)
    assert cooldowns.state("u1", "AAPL", TriggerKind.EVENT, ALERT_SCOPE) == "cooling"

    cooldowns.reset("u1", "AAPL")
    assert cooldowns.state("u1", "AAPL", TriggerKind.EVENT, ALERT_SCOPE) == "idle"


def test_interval_gate_admits_one_per_key_per_interval():
    clock = ManualClock()
    gate = IntervalGate(5, clock=clock)

    assert gate.admit("AAPL")
    assert not gate.admit("AAPL")
    assert gate.admit("MSFT")
    clock.advance(5)
    assert gate.admit("AAPL")
