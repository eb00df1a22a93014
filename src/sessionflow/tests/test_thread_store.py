"""Tests for thread storage and the thread activities."""

import json
from unittest.mock import AsyncMock

import pytest

from sessionflow.core.types import ToolResultConfig
from sessionflow.host.local import LocalHost
from sessionflow.thread.activities import (
    APPEND_TOOL_RESULT,
    INITIALIZE_THREAD,
    ActivityThreadOps,
    ThreadActivities,
)
from sessionflow.thread.store import (
    THREAD_TTL_SECONDS,
    RedisThreadStore,
    extract_tool_calls,
    parse_raw_arguments,
    thread_key,
    tool_message,
)


class FakeRedis:
    """The handful of list commands the store uses, kept in memory."""

    def __init__(self) -> None:
        self.lists = {}
        self.ttls = {}

    async def delete(self, key):
        self.lists.pop(key, None)

    async def rpush(self, key, *values):
        self.lists.setdefault(key, []).extend(values)
        return len(self.lists[key])

    async def expire(self, key, seconds):
        self.ttls[key] = seconds

    async def lrange(self, key, start, end):
        items = self.lists.get(key, [])
        return items[start:] if end == -1 else items[start : end + 1]

    async def aclose(self):
        pass


@pytest.fixture
def redis():
    return FakeRedis()


@pytest.fixture
def store(redis):
    return RedisThreadStore(redis)


@pytest.mark.unit
class TestParsing:
    """Tests for thread keys and tool call parsing."""

    def test_thread_key(self) -> None:
        """Test the Redis key layout."""
        assert thread_key("abc") == "thread:abc:messages"

    def test_parse_json_arguments(self) -> None:
        """Test JSON argument strings are decoded."""
        assert parse_raw_arguments('{"path": "a.py"}') == {"path": "a.py"}

    def test_parse_empty_arguments(self) -> None:
        """Test blank arguments become an empty object."""
        assert parse_raw_arguments("") == {}
        assert parse_raw_arguments("   ") == {}

    def test_parse_already_decoded(self) -> None:
        """Test decoded arguments pass through."""
        assert parse_raw_arguments({"a": 1}) == {"a": 1}

    def test_parse_raw_control_characters(self) -> None:
        """Test raw newlines inside strings are tolerated."""
        assert parse_raw_arguments('{"cmd": "echo a\nb"}') == {"cmd": "echo a\nb"}

    def test_undecodable_arguments_passed_through(self) -> None:
        """Test invalid JSON is returned as the raw string."""
        assert parse_raw_arguments("{not json") == "{not json"

    def test_extract_tool_calls(self) -> None:
        """Test tool calls are extracted from an assistant message."""
        message = {
            "role": "assistant",
            "content": None,
            "tool_calls": [
                {
                    "id": "call_1",
                    "type": "function",
                    "function": {"name": "Read", "arguments": '{"path": "README.md"}'},
                },
                {"id": "call_2", "type": "function", "function": {"name": "TaskList", "arguments": ""}},
            ],
        }
        calls = extract_tool_calls(message)
        assert [(c.id, c.name, c.args) for c in calls] == [
            ("call_1", "Read", {"path": "README.md"}),
            ("call_2", "TaskList", {}),
        ]

    def test_extract_without_tool_calls(self) -> None:
        """Test a plain message has no tool calls."""
        assert extract_tool_calls({"role": "assistant", "content": "hi"}) == []

    def test_tool_message_serializes_structured_content(self) -> None:
        """Test structured tool content is JSON encoded."""
        message = tool_message("c1", {"skipped": True}, name="Echo")
        assert message["role"] == "tool"
        assert message["tool_call_id"] == "c1"
        assert json.loads(message["content"]) == {"skipped": True}
        assert message["name"] == "Echo"


@pytest.mark.unit
class TestRedisThreadStore:
    """Tests for RedisThreadStore."""

    async def test_append_and_load(self, store, redis) -> None:
        """Test messages are appended in order with the default TTL."""
        await store.initialize_thread("t1")
        await store.append_human_message("t1", "hello")
        await store.append_ai_message(
            "t1",
            None,
            tool_calls=[{"id": "c1", "type": "function", "function": {"name": "Echo", "arguments": "{}"}}],
        )
        await store.append_tool_result(
            ToolResultConfig(thread_id="t1", tool_call_id="c1", tool_name="Echo", content="ok")
        )

        messages = await store.load("t1")

        assert [m["role"] for m in messages] == ["user", "assistant", "tool"]
        assert messages[0]["content"] == "hello"
        assert messages[1]["tool_calls"][0]["id"] == "c1"
        assert messages[2]["tool_call_id"] == "c1"
        assert redis.ttls["thread:t1:messages"] == THREAD_TTL_SECONDS

    async def test_initialize_resets_thread(self, store) -> None:
        """Test initialization clears earlier messages."""
        await store.append_human_message("t1", "old")
        await store.initialize_thread("t1")
        assert await store.load("t1") == []

    async def test_custom_ttl(self, redis) -> None:
        """Test a custom TTL is applied."""
        store = RedisThreadStore(redis, ttl_seconds=60)
        await store.append_system_message("t1", "You are helpful")
        assert redis.ttls["thread:t1:messages"] == 60

    async def test_append_nothing(self) -> None:
        """Test an empty append skips Redis."""
        redis = AsyncMock()
        await RedisThreadStore(redis).append("t1", [])
        redis.rpush.assert_not_awaited()

    async def test_tool_result_from_dict(self, store) -> None:
        """Test a tool result may arrive as a dict."""
        await store.append_tool_result(
            {"thread_id": "t1", "tool_call_id": "c1", "tool_name": "Echo", "content": {"a": 1}}
        )
        messages = await store.load("t1")
        assert json.loads(messages[0]["content"]) == {"a": 1}

    async def test_close(self) -> None:
        """Test close releases the client."""
        redis = AsyncMock()
        await RedisThreadStore(redis).close()
        redis.aclose.assert_awaited_once()


@pytest.mark.unit
class TestThreadActivities:
    """Tests for thread activities and ActivityThreadOps."""

    def test_registered_names(self, store) -> None:
        """Test the registered activity names."""
        activities = ThreadActivities(store)
        assert set(activities.by_name()) == {
            "initialize_thread",
            "append_human_message",
            "append_system_message",
            "append_thread_messages",
            "append_tool_result",
            "parse_tool_calls",
        }
        assert len(activities.all()) == 6

    async def test_ops_through_local_host(self, store) -> None:
        """Test thread ops run end to end through LocalHost."""
        host = LocalHost(activities=ThreadActivities(store).by_name(), sleep=AsyncMock())
        ops = ActivityThreadOps(host)

        await ops.initialize_thread("t1")
        await ops.append_human_message("t1", "hi")
        await ops.append_tool_result(
            ToolResultConfig(thread_id="t1", tool_call_id="c1", tool_name="Echo", content="ok")
        )
        calls = await ops.parse_tool_calls(
            {"tool_calls": [{"id": "c9", "function": {"name": "Echo", "arguments": '{"text": "x"}'}}]}
        )

        assert [m["role"] for m in await store.load("t1")] == ["user", "tool"]
        assert calls[0].id == "c9"
        assert calls[0].args == {"text": "x"}

    async def test_ops_pass_dicts_across_boundary(self) -> None:
        """Test configs cross the host as plain dicts."""
        host = AsyncMock()
        ops = ActivityThreadOps(host)
        await ops.append_tool_result(
            ToolResultConfig(thread_id="t1", tool_call_id="c1", tool_name="Echo", content="ok")
        )
        await ops.initialize_thread("t1")

        first, second = host.call.await_args_list
        assert first.args == (
            APPEND_TOOL_RESULT,
            {"thread_id": "t1", "tool_call_id": "c1", "tool_name": "Echo", "content": "ok"},
        )
        assert second.args == (INITIALIZE_THREAD, "t1")
