"""Temporal implementation of the Durable Execution Host.

Must be constructed and used inside Temporal workflow code: every method
delegates to ``temporalio.workflow`` so that ids, time, activity calls and
child workflows stay deterministic under replay.

Usage:
    @workflow.defn(name="coding_agent")
    class CodingAgentWorkflow:
        @workflow.run
        async def run(self, input: dict) -> dict:
            host = TemporalHost()
            state = AgentStateManager("coding_agent")
            expose_state_handlers(host, state)
            session = Session(config, host=host, ...)
            message = await session.run(input["prompt"], state)
            ...

Hosts whose activity defaults come from a settings object resolved outside
the workflow are built with ``TemporalHost.from_settings(settings)``.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Optional

from temporalio import workflow

from sessionflow.host.protocol import ActivityRef, ChildTarget
from sessionflow.host.retry import RetryConfig

if TYPE_CHECKING:
    from sessionflow.config import SessionFlowSettings


class TemporalHost:
    """Host backed by the current Temporal workflow."""

    def __init__(
        self,
        retry: Optional[RetryConfig] = None,
        start_to_close_timeout: timedelta = timedelta(minutes=30),
        heartbeat_timeout: Optional[timedelta] = timedelta(minutes=5),
    ) -> None:
        """Initialize the host.

        Args:
            retry: Default retry policy for activity calls
            start_to_close_timeout: Default activity start-to-close timeout
            heartbeat_timeout: Default activity heartbeat timeout
        """
        self._retry = retry or RetryConfig()
        self._start_to_close_timeout = start_to_close_timeout
        self._heartbeat_timeout = heartbeat_timeout

    @classmethod
    def from_settings(cls, settings: "SessionFlowSettings") -> "TemporalHost":
        """Build a host whose activity defaults come from resolved settings."""
        return cls(
            retry=RetryConfig.from_settings(settings),
            start_to_close_timeout=settings.activity_start_to_close_timeout,
            heartbeat_timeout=settings.activity_heartbeat_timeout,
        )

    @property
    def workflow_id(self) -> str:
        return workflow.info().workflow_id

    @property
    def task_queue(self) -> str:
        return workflow.info().task_queue

    @property
    def logger(self) -> Any:
        return workflow.logger

    def new_id(self) -> str:
        return str(workflow.uuid4())

    def now(self) -> datetime:
        return workflow.now()

    async def call(
        self,
        activity: ActivityRef,
        *args: Any,
        retry: Optional[RetryConfig] = None,
        timeout: Optional[timedelta] = None,
    ) -> Any:
        """Execute an activity with a retry policy.

        ``activity`` may be an ``@activity.defn`` function or a registered
        activity name (required for activities defined as methods).
        """
        policy = (retry or self._retry).to_temporal()
        return await workflow.execute_activity(
            activity,
            args=list(args),
            start_to_close_timeout=timeout or self._start_to_close_timeout,
            heartbeat_timeout=self._heartbeat_timeout,
            retry_policy=policy,
        )

    async def execute_child(
        self,
        target: ChildTarget,
        *,
        id: str,
        args: list[Any],
        task_queue: Optional[str] = None,
    ) -> Any:
        """Start a child workflow and wait for its result."""
        return await workflow.execute_child_workflow(
            target,
            args=args,
            id=id,
            task_queue=task_queue or self.task_queue,
        )

    async def wait_condition(
        self,
        predicate: Callable[[], bool],
        timeout: Optional[timedelta] = None,
    ) -> bool:
        try:
            await workflow.wait_condition(predicate, timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    def set_query_handler(self, name: str, handler: Callable[..., Any]) -> None:
        workflow.set_query_handler(name, handler)

    def set_update_handler(self, name: str, handler: Callable[..., Awaitable[Any]]) -> None:
        workflow.set_update_handler(name, handler)


__all__ = ["TemporalHost"]
