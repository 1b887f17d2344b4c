"""
Idle policy configuration and arithmetic.

The idle threshold is the longest gap between two activity events that
still counts as continuous presence. Time after the last event is
credited up to the threshold and no further.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta

DEFAULT_THRESHOLD_MINUTES = 5
DEFAULT_CHECK_INTERVAL_SECONDS = 30


@dataclass(frozen=True)
class IdleConfig:
    """Idle detection settings."""

    threshold_minutes: float = DEFAULT_THRESHOLD_MINUTES
    check_interval_seconds: float = DEFAULT_CHECK_INTERVAL_SECONDS

    def __post_init__(self) -> None:
        if self.threshold_minutes <= 0:
            raise ValueError(
                f"threshold_minutes must be positive, got {self.threshold_minutes}"
            )
        if self.check_interval_seconds <= 0:
            raise ValueError(
                "check_interval_seconds must be positive, "
                f"got {self.check_interval_seconds}"
            )


class IdlePolicy:
    """Idle threshold predicates over a reconfigurable IdleConfig."""

    def __init__(self, config: IdleConfig | None = None):
        self._config = config or IdleConfig()

    @property
    def config(self) -> IdleConfig:
        return self._config

    @property
    def threshold(self) -> timedelta:
        return timedelta(minutes=self._config.threshold_minutes)

    @property
    def check_interval(self) -> timedelta:
        return timedelta(seconds=self._config.check_interval_seconds)

    def update_config(self, **changes: float) -> IdleConfig:
        """
        Replace configuration values.

        New values apply to calculations made after this call; nothing
        already accumulated is recomputed.
        """
        self._config = replace(self._config, **changes)
        return self._config

    def is_idle(self, last_activity: datetime, now: datetime) -> bool:
        """True iff more than the threshold has passed since last_activity."""
        return now - last_activity > self.threshold

    def capped_end(self, end: datetime, last_activity: datetime) -> datetime:
        """Cap an interval end at last_activity + threshold."""
        limit = last_activity + self.threshold
        return limit if end > limit else end

    def capped_active_seconds(
        self, start: datetime, end: datetime, last_activity: datetime
    ) -> int:
        """
        Whole active seconds between start and end.

        If end is more than the threshold past last_activity, the interval
        is cut at last_activity + threshold. Never negative.
        """
        effective_end = self.capped_end(end, last_activity)
        return elapsed_seconds(start, effective_end)


def elapsed_seconds(start: datetime, end: datetime) -> int:
    """Whole seconds from start to end, floored, never negative."""
    return max(0, int((end - start) // timedelta(seconds=1)))
