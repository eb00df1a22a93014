"""In-process Durable Execution Host.

LocalHost runs a session directly on the asyncio event loop. It provides the
same surface as ``TemporalHost`` without durability: activities are plain
coroutines called with the configured retry/backoff, child executions are
registered coroutines, and query/update handlers can be invoked through
``query()`` and ``update()``.

Useful for local development, scripts, and tests.
"""

import asyncio
import inspect
import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sessionflow.errors import ActivityRetryExhaustedError
from sessionflow.host.protocol import ActivityRef, ChildTarget, activity_name
from sessionflow.host.retry import RetryConfig

logger = logging.getLogger(__name__)


class LocalHost:
    """Asyncio-backed host.

    Example:
        host = LocalHost(
            workflow_id="agent-1",
            activities={"run_agent": invoker.run_agent},
            workflows={"researcher": researcher_workflow},
        )
        session = Session(config, host=host, ...)
        await session.run("Summarize the repo", state_manager)
    """

    def __init__(
        self,
        workflow_id: str = "local",
        task_queue: str = "local",
        activities: Optional[Dict[str, Callable[..., Awaitable[Any]]]] = None,
        workflows: Optional[Dict[str, Callable[..., Awaitable[Any]]]] = None,
        retry: Optional[RetryConfig] = None,
        poll_interval: float = 0.05,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._workflow_id = workflow_id
        self._task_queue = task_queue
        self._activities: Dict[str, Callable[..., Awaitable[Any]]] = dict(activities or {})
        self._workflows: Dict[str, Callable[..., Awaitable[Any]]] = dict(workflows or {})
        self._default_retry = retry or RetryConfig(
            maximum_attempts=3,
            initial_interval=timedelta(milliseconds=100),
            maximum_interval=timedelta(seconds=2),
            backoff_coefficient=2.0,
        )
        self._poll_interval = poll_interval
        self._sleep = sleep
        self._queries: Dict[str, Callable[..., Any]] = {}
        self._updates: Dict[str, Callable[..., Awaitable[Any]]] = {}
        self.children_started: list[Dict[str, Any]] = []

    @property
    def workflow_id(self) -> str:
        return self._workflow_id

    @property
    def task_queue(self) -> str:
        return self._task_queue

    @property
    def logger(self) -> logging.Logger:
        return logger

    def new_id(self) -> str:
        return str(uuid.uuid4())

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def register_activity(self, name: str, fn: Callable[..., Awaitable[Any]]) -> None:
        self._activities[name] = fn

    def register_workflow(self, name: str, fn: Callable[..., Awaitable[Any]]) -> None:
        self._workflows[name] = fn

    def _resolve_activity(self, activity: ActivityRef) -> Callable[..., Awaitable[Any]]:
        if isinstance(activity, str):
            if activity not in self._activities:
                raise KeyError(f"Activity not registered: {activity}")
            return self._activities[activity]
        return activity

    async def call(
        self,
        activity: ActivityRef,
        *args: Any,
        retry: Optional[RetryConfig] = None,
        timeout: Optional[timedelta] = None,
    ) -> Any:
        """Call an activity, retrying with exponential backoff.

        Raises:
            KeyError: If a named activity is not registered
            ActivityRetryExhaustedError: If every attempt failed
        """
        fn = self._resolve_activity(activity)
        policy = retry or self._default_retry
        name = activity_name(activity)

        attempt = 0
        while True:
            attempt += 1
            try:
                result = fn(*args)
                if inspect.isawaitable(result):
                    if timeout is not None:
                        result = await asyncio.wait_for(result, timeout.total_seconds())
                    else:
                        result = await result
                return result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if not policy.should_retry(attempt):
                    logger.error(
                        f"[LocalHost] Activity {name} failed after {attempt} attempts: {e}"
                    )
                    raise ActivityRetryExhaustedError(name, attempt, e) from e
                delay = policy.delay_for(attempt)
                logger.warning(
                    f"[LocalHost] Activity {name} attempt {attempt} failed: {e}; "
                    f"retrying in {delay.total_seconds():.2f}s"
                )
                await self._sleep(delay.total_seconds())

    async def execute_child(
        self,
        target: ChildTarget,
        *,
        id: str,
        args: list[Any],
        task_queue: Optional[str] = None,
    ) -> Any:
        """Run a registered child workflow to completion."""
        if isinstance(target, str):
            if target not in self._workflows:
                raise KeyError(f"Workflow not registered: {target}")
            fn = self._workflows[target]
        else:
            fn = target

        self.children_started.append(
            {"id": id, "target": activity_name(target), "task_queue": task_queue or self._task_queue}
        )
        logger.info(f"[LocalHost] Starting child execution {id}")
        result = fn(*args)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def wait_condition(
        self,
        predicate: Callable[[], bool],
        timeout: Optional[timedelta] = None,
    ) -> bool:
        """Poll predicate at a fixed interval until true or timed out."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout.total_seconds() if timeout is not None else None
        while not predicate():
            if deadline is not None and loop.time() >= deadline:
                return False
            await asyncio.sleep(self._poll_interval)
        return True

    def set_query_handler(self, name: str, handler: Callable[..., Any]) -> None:
        self._queries[name] = handler

    def set_update_handler(self, name: str, handler: Callable[..., Awaitable[Any]]) -> None:
        self._updates[name] = handler

    def query(self, name: str, *args: Any) -> Any:
        """Invoke a registered query handler."""
        if name not in self._queries:
            raise KeyError(f"Query handler not registered: {name}")
        return self._queries[name](*args)

    async def update(self, name: str, *args: Any) -> Any:
        """Invoke a registered update handler."""
        if name not in self._updates:
            raise KeyError(f"Update handler not registered: {name}")
        return await self._updates[name](*args)


__all__ = ["LocalHost"]
