"""Thread activities and their workflow-side client.

``ThreadActivities`` wraps a ``RedisThreadStore`` in Temporal activities so
that all thread I/O happens outside workflow code. ``ActivityThreadOps`` is
the matching ``ThreadStore`` used inside the workflow: each call goes
through ``host.call`` with the bounded retry policy.

Values cross the host boundary as plain dicts.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Union

from temporalio import activity

from sessionflow.core.types import ToolResultConfig
from sessionflow.host.protocol import DurableExecutionHost
from sessionflow.host.retry import RetryConfig
from sessionflow.thread.store import Message, RedisThreadStore, extract_tool_calls
from sessionflow.tools.protocol import RawToolCall

logger = logging.getLogger(__name__)

INITIALIZE_THREAD = "initialize_thread"
APPEND_HUMAN_MESSAGE = "append_human_message"
APPEND_SYSTEM_MESSAGE = "append_system_message"
APPEND_THREAD_MESSAGES = "append_thread_messages"
APPEND_TOOL_RESULT = "append_tool_result"
PARSE_TOOL_CALLS = "parse_tool_calls"


class ThreadActivities:
    """Temporal activities backed by a thread store.

    Example:
        store = RedisThreadStore.from_url(settings.redis_url)
        thread_activities = ThreadActivities(store)
        worker = Worker(client, task_queue=..., activities=thread_activities.all())
    """

    def __init__(self, store: RedisThreadStore) -> None:
        self._store = store

    @activity.defn(name=INITIALIZE_THREAD)
    async def initialize_thread(self, thread_id: str) -> None:
        await self._store.initialize_thread(thread_id)
        logger.info(f"[ThreadActivities] Initialized thread {thread_id}")

    @activity.defn(name=APPEND_HUMAN_MESSAGE)
    async def append_human_message(self, thread_id: str, content: Any) -> None:
        await self._store.append_human_message(thread_id, content)

    @activity.defn(name=APPEND_SYSTEM_MESSAGE)
    async def append_system_message(self, thread_id: str, content: str) -> None:
        await self._store.append_system_message(thread_id, content)

    @activity.defn(name=APPEND_THREAD_MESSAGES)
    async def append_thread_messages(self, thread_id: str, messages: List[Message]) -> None:
        await self._store.append(thread_id, messages)

    @activity.defn(name=APPEND_TOOL_RESULT)
    async def append_tool_result(self, config: Dict[str, Any]) -> None:
        await self._store.append_tool_result(ToolResultConfig.from_value(config))

    @activity.defn(name=PARSE_TOOL_CALLS)
    async def parse_tool_calls(self, message: Message) -> List[Dict[str, Any]]:
        return [call.to_dict() for call in extract_tool_calls(message)]

    def all(self) -> List[Callable[..., Any]]:
        """Activity callables for worker registration."""
        return [
            self.initialize_thread,
            self.append_human_message,
            self.append_system_message,
            self.append_thread_messages,
            self.append_tool_result,
            self.parse_tool_calls,
        ]

    def by_name(self) -> Dict[str, Callable[..., Any]]:
        """Activities keyed by registered name, for ``LocalHost``."""
        return {
            INITIALIZE_THREAD: self.initialize_thread,
            APPEND_HUMAN_MESSAGE: self.append_human_message,
            APPEND_SYSTEM_MESSAGE: self.append_system_message,
            APPEND_THREAD_MESSAGES: self.append_thread_messages,
            APPEND_TOOL_RESULT: self.append_tool_result,
            PARSE_TOOL_CALLS: self.parse_tool_calls,
        }


class ActivityThreadOps:
    """ThreadStore implementation that forwards to thread activities."""

    def __init__(self, host: DurableExecutionHost, retry: Optional[RetryConfig] = None) -> None:
        self._host = host
        self._retry = retry

    async def initialize_thread(self, thread_id: str) -> None:
        await self._host.call(INITIALIZE_THREAD, thread_id, retry=self._retry)

    async def append_human_message(self, thread_id: str, content: Any) -> None:
        await self._host.call(APPEND_HUMAN_MESSAGE, thread_id, content, retry=self._retry)

    async def append_system_message(self, thread_id: str, content: str) -> None:
        await self._host.call(APPEND_SYSTEM_MESSAGE, thread_id, content, retry=self._retry)

    async def append_thread_messages(self, thread_id: str, messages: List[Message]) -> None:
        await self._host.call(APPEND_THREAD_MESSAGES, thread_id, messages, retry=self._retry)

    async def append_tool_result(self, config: Union[ToolResultConfig, Dict[str, Any]]) -> None:
        config = ToolResultConfig.from_value(config)
        await self._host.call(APPEND_TOOL_RESULT, config.to_dict(), retry=self._retry)

    async def parse_tool_calls(self, message: Message) -> List[RawToolCall]:
        raw = await self._host.call(PARSE_TOOL_CALLS, message, retry=self._retry)
        return [RawToolCall.from_value(item) for item in raw or []]


__all__ = [
    "APPEND_HUMAN_MESSAGE",
    "APPEND_SYSTEM_MESSAGE",
    "APPEND_THREAD_MESSAGES",
    "APPEND_TOOL_RESULT",
    "ActivityThreadOps",
    "INITIALIZE_THREAD",
    "PARSE_TOOL_CALLS",
    "ThreadActivities",
]
