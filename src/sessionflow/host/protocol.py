"""Durable Execution Host protocol.

The session engine never talks to a workflow engine directly. Everything it
needs from the durable runtime goes through this narrow interface:

- call-with-retry for activity-style collaborator calls
- query/update handler registration for external clients
- child execution spawning for subagents
- deterministic ids, clock and bounded waits

``TemporalHost`` implements it on top of ``temporalio.workflow``;
``LocalHost`` implements it in-process for local runs and tests.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import Any, Protocol, runtime_checkable

from sessionflow.host.retry import RetryConfig

ActivityRef = str | Callable[..., Awaitable[Any]]
ChildTarget = str | Callable[..., Any]


@runtime_checkable
class DurableExecutionHost(Protocol):
    """Protocol for the runtime that hosts a session."""

    @property
    def workflow_id(self) -> str:
        """Identifier of the current durable execution."""
        ...

    @property
    def task_queue(self) -> str:
        """Task queue the current execution runs on."""
        ...

    @property
    def logger(self) -> logging.Logger | logging.LoggerAdapter:
        """Replay-safe logger for code running inside the execution."""
        ...

    def new_id(self) -> str:
        """Generate a replay-safe unique identifier."""
        ...

    def now(self) -> datetime:
        """Replay-safe current time."""
        ...

    async def call(
        self,
        activity: ActivityRef,
        *args: Any,
        retry: RetryConfig | None = None,
        timeout: timedelta | None = None,
    ) -> Any:
        """Call an activity with a bounded retry policy.

        Raises:
            Exception: When the retry budget is exhausted
        """
        ...

    async def execute_child(
        self,
        target: ChildTarget,
        *,
        id: str,
        args: list[Any],
        task_queue: str | None = None,
    ) -> Any:
        """Start a nested durable execution and await its result."""
        ...

    async def wait_condition(
        self,
        predicate: Callable[[], bool],
        timeout: timedelta | None = None,
    ) -> bool:
        """Wait until predicate is true or timeout elapses.

        Returns:
            True if the predicate became true, False on timeout
        """
        ...

    def set_query_handler(self, name: str, handler: Callable[..., Any]) -> None:
        """Expose a read-only query endpoint."""
        ...

    def set_update_handler(self, name: str, handler: Callable[..., Awaitable[Any]]) -> None:
        """Expose an update endpoint (may wait, returns a value)."""
        ...


def activity_name(activity: ActivityRef) -> str:
    """Best-effort display name of an activity reference."""
    if isinstance(activity, str):
        return activity
    defn = getattr(activity, "__temporal_activity_definition", None)
    if defn is not None and getattr(defn, "name", None):
        return defn.name
    return getattr(activity, "__name__", repr(activity))


__all__ = ["ActivityRef", "ChildTarget", "DurableExecutionHost", "activity_name"]
