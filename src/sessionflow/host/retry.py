"""Retry configuration for activity-style host calls.

A bounded exponential backoff: attempts are capped by ``maximum_attempts`` and
each delay grows by ``backoff_coefficient`` from ``initial_interval`` up to
``maximum_interval``. The same config drives Temporal's ``RetryPolicy`` and
the local host's retry loop.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from temporalio.common import RetryPolicy

if TYPE_CHECKING:
    from sessionflow.config import SessionFlowSettings


@dataclass(frozen=True, kw_only=True)
class RetryConfig:
    """Bounded retry policy for collaborator calls.

    Defaults match the session's thread and model activities: six attempts,
    5s initial backoff growing 4x per attempt, capped at 15 minutes.
    """

    maximum_attempts: int = 6
    initial_interval: timedelta = timedelta(seconds=5)
    maximum_interval: timedelta = timedelta(minutes=15)
    backoff_coefficient: float = 4.0

    def __post_init__(self) -> None:
        if self.maximum_attempts < 1:
            raise ValueError("maximum_attempts must be at least 1")
        if self.backoff_coefficient < 1.0:
            raise ValueError("backoff_coefficient must be >= 1.0")
        if self.maximum_interval < self.initial_interval:
            raise ValueError("maximum_interval must be >= initial_interval")

    def delay_for(self, attempt: int) -> timedelta:
        """Delay before retrying after the given (1-based) failed attempt."""
        seconds = self.initial_interval.total_seconds() * (
            self.backoff_coefficient ** (attempt - 1)
        )
        return min(timedelta(seconds=seconds), self.maximum_interval)

    def should_retry(self, attempt: int) -> bool:
        """True if another attempt is allowed after ``attempt`` failures."""
        return attempt < self.maximum_attempts

    def to_temporal(self) -> RetryPolicy:
        """Convert to a Temporal RetryPolicy."""
        return RetryPolicy(
            initial_interval=self.initial_interval,
            maximum_interval=self.maximum_interval,
            maximum_attempts=self.maximum_attempts,
            backoff_coefficient=self.backoff_coefficient,
        )

    @classmethod
    def from_settings(cls, settings: "SessionFlowSettings") -> "RetryConfig":
        return cls(
            maximum_attempts=settings.activity_max_attempts,
            initial_interval=timedelta(seconds=settings.activity_initial_interval_seconds),
            maximum_interval=timedelta(seconds=settings.activity_max_interval_seconds),
            backoff_coefficient=settings.activity_backoff_coefficient,
        )


DEFAULT_RETRY = RetryConfig()
