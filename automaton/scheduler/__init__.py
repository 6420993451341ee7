"""Effect scheduling: routing, per-queue flatten strategies, running producers."""

from automaton.scheduler.queues import (
    ConcatScheduler,
    LatestScheduler,
    MergeScheduler,
    QueueScheduler,
    scheduler_for,
)
from automaton.scheduler.router import EffectRouter, default_resolver
from automaton.scheduler.running import RunningEffect

__all__ = [
    "EffectRouter",
    "default_resolver",
    "QueueScheduler",
    "MergeScheduler",
    "LatestScheduler",
    "ConcatScheduler",
    "scheduler_for",
    "RunningEffect",
]
