"""
Activity aggregator.

Per-workspace state machine turning timestamped activity events into
accumulated active seconds. Two states: IDLE (initial) and ACTIVE. An
ACTIVE period starts at the first event after IDLE and ends either when
the idle check finds the last event older than the threshold (credited
up to last event + threshold) or when the session is explicitly ended.
"""

import enum
from datetime import datetime
from typing import Optional

from worktrace.tracker.idle_policy import IdlePolicy, elapsed_seconds


class AggregatorState(str, enum.Enum):
    IDLE = "idle"
    ACTIVE = "active"


class ActivityAggregator:
    """Accumulates active time for one workspace."""

    def __init__(self, policy: Optional[IdlePolicy] = None):
        self.policy = policy or IdlePolicy()
        self.reset()

    @property
    def state(self) -> AggregatorState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is AggregatorState.ACTIVE

    @property
    def last_activity(self) -> Optional[datetime]:
        return self._last_activity

    def record_activity(self, timestamp: datetime) -> None:
        """
        Record an activity event.

        Opens a new active period when idle. The last-activity marker only
        moves forward; a late event carrying an older timestamp neither
        rewinds it nor reopens time already credited.
        """
        if self._state is AggregatorState.IDLE:
            start = timestamp
            if self._finalized_until is not None and start < self._finalized_until:
                start = self._finalized_until
            self._active_start = start
            self._state = AggregatorState.ACTIVE
            self._last_activity = max(timestamp, start)
            return

        if self._last_activity is None or timestamp > self._last_activity:
            self._last_activity = timestamp

    def check_idle(self, now: datetime) -> bool:
        """
        Check for an ACTIVE to IDLE transition.

        Returns:
            True if now idle (either just transitioned, or already idle),
            False if still active
        """
        if self._state is AggregatorState.IDLE:
            return True

        if not self.policy.is_idle(self._last_activity, now):
            return False

        capped_end = self._last_activity + self.policy.threshold
        self._close_period(capped_end)
        return True

    def get_accumulated_seconds(self, now: datetime) -> int:
        """
        Total active seconds, including the in-progress period.

        Applies the same capping as check_idle() without changing state,
        so it is safe to poll.
        """
        if self._state is AggregatorState.IDLE:
            return self._accumulated

        current = self.policy.capped_active_seconds(
            self._active_start, now, self._last_activity
        )
        return self._accumulated + current

    def end_session(self, now: datetime) -> int:
        """
        Finalize any open period as of now and reset.

        No idle capping is applied: the caller is closing the interval on
        purpose.

        Returns:
            Total accumulated seconds for the session
        """
        if self._state is AggregatorState.ACTIVE:
            self._close_period(now)

        total = self._accumulated
        self.reset()
        return total

    def reset(self) -> None:
        """Clear all state unconditionally."""
        self._state = AggregatorState.IDLE
        self._active_start: Optional[datetime] = None
        self._last_activity: Optional[datetime] = None
        self._finalized_until: Optional[datetime] = None
        self._accumulated = 0

    def _close_period(self, end: datetime) -> None:
        self._accumulated += elapsed_seconds(self._active_start, end)
        self._finalized_until = max(end, self._active_start)
        self._active_start = None
        self._state = AggregatorState.IDLE

    def __repr__(self) -> str:
        return (
            f"<ActivityAggregator(state={self._state.value}, "
            f"accumulated={self._accumulated}, last_activity={self._last_activity})>"
        )
