"""Time tracking: idle policy, activity aggregation, allocation and orchestration."""

from worktrace.tracker.aggregator import ActivityAggregator, AggregatorState
from worktrace.tracker.allocation import AllocationEngine, seconds_to_hours
from worktrace.tracker.events import ActivityEvent, ActivityType
from worktrace.tracker.idle_policy import IdleConfig, IdlePolicy
from worktrace.tracker.orchestrator import (
    TrackerRegistry,
    TrackerState,
    WorkspaceOrchestrator,
)

__all__ = [
    "ActivityAggregator",
    "ActivityEvent",
    "ActivityType",
    "AggregatorState",
    "AllocationEngine",
    "IdleConfig",
    "IdlePolicy",
    "TrackerRegistry",
    "TrackerState",
    "WorkspaceOrchestrator",
    "seconds_to_hours",
]
