"""Service layer: prices, risk, cooldowns, stop-losses, events, notifications, monitoring."""
from riskwise.services.cooldown import (CooldownController, IntervalGate,
                                        TriggerKind)
from riskwise.services.drop_detector import DropDetector
from riskwise.services.events import EventWatcher, SeenEventStore
from riskwise.services.monitor import (EvaluationOutcome, MonitoringLoop,
                                       Trigger)
from riskwise.services.prices import PriceCache, PriceSourceAdapter
from riskwise.services.scheduler import MonitorScheduler
from riskwise.services.stop_loss import (StopAllocation, StopChange,
                                         allocate_stop_losses,
                                         apply_stop_allocations)

__all__ = [
    "CooldownController",
    "DropDetector",
    "EvaluationOutcome",
    "EventWatcher",
    "IntervalGate",
    "MonitorScheduler",
    "MonitoringLoop",
    "PriceCache",
    "PriceSourceAdapter",
    "SeenEventStore",
    "StopAllocation",
    "StopChange",
    "Trigger",
    "TriggerKind",
    "allocate_stop_losses",
    "apply_stop_allocations",
]
