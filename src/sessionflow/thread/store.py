"""Thread storage.

A thread is the ordered message history of one session. Messages use the
OpenAI chat shape (``role``, ``content``, ``tool_calls``, ``tool_call_id``)
so the model invoker can pass them to litellm unchanged.

``RedisThreadStore`` keeps each thread in a Redis list
``thread:<id>:messages`` with a TTL refreshed on every append.
"""

import json
import logging
import uuid
from typing import Any, Dict, List, Optional, Protocol, Sequence, Union, runtime_checkable

import redis.asyncio as aioredis

from sessionflow.core.types import ToolResultConfig
from sessionflow.tools.protocol import RawToolCall

logger = logging.getLogger(__name__)

THREAD_TTL_SECONDS = 60 * 60 * 24 * 90  # 90 days

Message = Dict[str, Any]


@runtime_checkable
class ThreadStore(Protocol):
    """Narrow thread surface used by the session and the router."""

    async def initialize_thread(self, thread_id: str) -> None:
        """Create (or reset) an empty thread."""
        ...

    async def append_human_message(self, thread_id: str, content: Any) -> None:
        ...

    async def append_tool_result(self, config: ToolResultConfig) -> None:
        ...

    async def parse_tool_calls(self, message: Message) -> List[RawToolCall]:
        """Extract raw tool calls from an assistant message."""
        ...


def thread_key(thread_id: str, key: str = "messages") -> str:
    return f"thread:{thread_id}:{key}"


def escape_control_chars(s: str) -> str:
    """Escape raw control characters inside a JSON string."""
    return s.replace("\n", "\\n").replace("\r", "\\r").replace("\t", "\\t")


def parse_raw_arguments(raw_args: Any) -> Any:
    """Decode tool call arguments.

    Returns the decoded value, or the raw input unchanged when it cannot be
    decoded so that schema validation reports the problem to the model.
    """
    if not isinstance(raw_args, str):
        return raw_args
    if not raw_args.strip():
        return {}

    try:
        return json.loads(raw_args)
    except json.JSONDecodeError:
        pass

    try:
        return json.loads(escape_control_chars(raw_args))
    except json.JSONDecodeError:
        logger.warning(f"[ThreadStore] Could not decode tool arguments: {raw_args[:200]}")
        return raw_args


def extract_tool_calls(message: Message) -> List[RawToolCall]:
    """Read ``tool_calls`` from an OpenAI-shaped assistant message."""
    calls: List[RawToolCall] = []
    for tool_call in message.get("tool_calls") or []:
        function = tool_call.get("function") or {}
        calls.append(
            RawToolCall(
                id=tool_call.get("id"),
                name=function.get("name", ""),
                args=parse_raw_arguments(function.get("arguments")),
            )
        )
    return calls


def _as_text(content: Any) -> Any:
    if content is None or isinstance(content, (str, list)):
        return content
    return json.dumps(content)


def human_message(content: Any) -> Message:
    return {"id": str(uuid.uuid4()), "role": "user", "content": content}


def system_message(content: str) -> Message:
    return {"id": str(uuid.uuid4()), "role": "system", "content": content}


def ai_message(content: Any, tool_calls: Optional[List[Dict[str, Any]]] = None) -> Message:
    message: Message = {"id": str(uuid.uuid4()), "role": "assistant", "content": content}
    if tool_calls:
        message["tool_calls"] = tool_calls
    return message


def tool_message(tool_call_id: str, content: Any, name: Optional[str] = None) -> Message:
    message: Message = {
        "id": str(uuid.uuid4()),
        "role": "tool",
        "tool_call_id": tool_call_id,
        "content": _as_text(content),
    }
    if name:
        message["name"] = name
    return message


class RedisThreadStore:
    """Thread store backed by Redis lists.

    Example:
        client = aioredis.from_url(settings.redis_url)
        store = RedisThreadStore(client, ttl_seconds=settings.thread_ttl_seconds)
        await store.initialize_thread("thread-1")
        await store.append_human_message("thread-1", "Hello")
    """

    def __init__(self, redis: aioredis.Redis, ttl_seconds: int = THREAD_TTL_SECONDS) -> None:
        self._redis = redis
        self._ttl_seconds = ttl_seconds

    @classmethod
    def from_url(cls, redis_url: str, ttl_seconds: int = THREAD_TTL_SECONDS) -> "RedisThreadStore":
        return cls(aioredis.from_url(redis_url, decode_responses=True), ttl_seconds)

    async def initialize_thread(self, thread_id: str) -> None:
        await self._redis.delete(thread_key(thread_id))

    async def load(self, thread_id: str) -> List[Message]:
        raw = await self._redis.lrange(thread_key(thread_id), 0, -1)
        return [json.loads(item) for item in raw]

    async def append(self, thread_id: str, messages: Sequence[Message]) -> None:
        if not messages:
            return
        key = thread_key(thread_id)
        await self._redis.rpush(key, *(json.dumps(m) for m in messages))
        await self._redis.expire(key, self._ttl_seconds)

    async def delete_thread(self, thread_id: str) -> None:
        await self._redis.delete(thread_key(thread_id))

    async def append_human_message(self, thread_id: str, content: Any) -> None:
        await self.append(thread_id, [human_message(content)])

    async def append_system_message(self, thread_id: str, content: str) -> None:
        await self.append(thread_id, [system_message(content)])

    async def append_ai_message(
        self,
        thread_id: str,
        content: Any,
        tool_calls: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        await self.append(thread_id, [ai_message(content, tool_calls)])

    async def append_tool_result(self, config: Union[ToolResultConfig, Dict[str, Any]]) -> None:
        config = ToolResultConfig.from_value(config)
        await self.append(
            config.thread_id,
            [tool_message(config.tool_call_id, config.content, config.tool_name)],
        )

    async def parse_tool_calls(self, message: Message) -> List[RawToolCall]:
        return extract_tool_calls(message)

    async def close(self) -> None:
        await self._redis.aclose()


__all__ = [
    "Message",
    "RedisThreadStore",
    "THREAD_TTL_SECONDS",
    "ThreadStore",
    "ai_message",
    "extract_tool_calls",
    "human_message",
    "parse_raw_arguments",
    "system_message",
    "thread_key",
    "tool_message",
]
