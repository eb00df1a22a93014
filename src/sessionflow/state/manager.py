"""Agent State Manager.

Owns the state of one agent session: status, a monotonic version counter,
the turn count, the tool-definition snapshot, the task graph, and arbitrary
caller-supplied custom fields.

All mutation goes through the manager's methods and every mutation bumps
``version``, which external clients use for optimistic change detection
(``should_return_from_wait``). The manager is owned by exactly one session;
it is not shared between executions and needs no locking because all
mutation happens on the session's single logical thread.
"""

import logging
from collections.abc import Iterable
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Set

from sessionflow.core.types import AgentStatus, WorkflowTask, is_terminal_status

if TYPE_CHECKING:
    from sessionflow.host.protocol import DurableExecutionHost
    from sessionflow.tools.protocol import ToolDefinition

logger = logging.getLogger(__name__)

_BASE_KEYS = frozenset({"status", "version", "turns", "tools", "tasks"})

DEFAULT_WAIT_TIMEOUT = timedelta(seconds=55)


def _check_json_compatible(value: Any, path: str, seen: Optional[Set[int]] = None) -> None:
    """Raise ValueError if value cannot cross the host boundary as JSON."""
    if value is None or isinstance(value, (str, bool, int, float)):
        return
    if not isinstance(value, (list, tuple, dict)):
        raise ValueError(f"{path}: {type(value).__name__} is not JSON-compatible")

    # ids of the containers on the current path
    seen = set() if seen is None else seen
    if id(value) in seen:
        raise ValueError(f"{path}: cyclic reference")
    seen.add(id(value))
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise ValueError(f"{path}: keys must be strings, got {type(key).__name__}")
            _check_json_compatible(item, f"{path}.{key}", seen)
    else:
        for i, item in enumerate(value):
            _check_json_compatible(item, f"{path}[{i}]", seen)
    seen.discard(id(value))


class AgentStateManager:
    """Versioned state machine for an agent session.

    Usage:
        state = AgentStateManager("researcher", initial_state={"notes": []})
        state.increment_turns()
        state.set("notes", ["found X"])
        snapshot = state.get_current_state()
    """

    def __init__(
        self,
        agent_name: str,
        initial_state: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize the manager.

        Args:
            agent_name: Name of the agent, used for query/update handler names
            initial_state: Optional base fields (status, version, turns, tools,
                tasks) and custom JSON-compatible fields

        Raises:
            ValueError: If a custom field is not JSON-compatible
        """
        initial = dict(initial_state or {})
        self.agent_name = agent_name

        self._status = AgentStatus(initial.get("status", AgentStatus.RUNNING))
        self._version: int = int(initial.get("version", 0))
        self._turns: int = int(initial.get("turns", 0))
        self._tools: List[Dict[str, Any]] = list(initial.get("tools") or [])

        self._tasks: Dict[str, WorkflowTask] = {}
        raw_tasks = initial.get("tasks") or {}
        task_items = raw_tasks.values() if isinstance(raw_tasks, dict) else raw_tasks
        for item in task_items:
            task = item if isinstance(item, WorkflowTask) else WorkflowTask.from_dict(item)
            self._tasks[task.id] = task

        self._custom: Dict[str, Any] = {}
        for key, value in initial.items():
            if key in _BASE_KEYS:
                continue
            _check_json_compatible(value, key)
            self._custom[key] = value

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def status(self) -> AgentStatus:
        return self._status

    def get_status(self) -> AgentStatus:
        return self._status

    def is_running(self) -> bool:
        return self._status == AgentStatus.RUNNING

    def is_terminal(self) -> bool:
        return is_terminal_status(self._status)

    @property
    def version(self) -> int:
        return self._version

    def get_version(self) -> int:
        return self._version

    @property
    def turns(self) -> int:
        return self._turns

    def get_turns(self) -> int:
        return self._turns

    def get(self, key: str, default: Any = None) -> Any:
        """Get a custom field value."""
        return self._custom.get(key, default)

    def get_task(self, task_id: str) -> Optional[WorkflowTask]:
        """Get a task by id; None if absent."""
        return self._tasks.get(task_id)

    def get_tasks(self) -> List[WorkflowTask]:
        return list(self._tasks.values())

    def get_tools(self) -> List[Dict[str, Any]]:
        return [dict(tool) for tool in self._tools]

    def get_current_state(self) -> Dict[str, Any]:
        """Full JSON-compatible snapshot for queries."""
        return {
            "status": self._status.value,
            "version": self._version,
            "turns": self._turns,
            "tools": self.get_tools(),
            "tasks": {task_id: task.to_dict() for task_id, task in self._tasks.items()},
            **self._custom,
        }

    def should_return_from_wait(self, last_known_version: int) -> bool:
        """True iff something changed since last_known_version or status is terminal."""
        return self._version > last_known_version or self.is_terminal()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _can_mutate(self, operation: str) -> bool:
        if self.is_terminal():
            logger.warning(
                f"[AgentStateManager] Ignoring {operation} on {self.agent_name}: "
                f"state is terminal ({self._status.value})"
            )
            return False
        return True

    def _transition(self, status: AgentStatus) -> None:
        if not self._can_mutate(f"transition to {status.value}"):
            return
        logger.debug(
            f"[AgentStateManager] {self.agent_name}: {self._status.value} -> {status.value}"
        )
        self._status = status
        self._version += 1

    def run(self) -> None:
        self._transition(AgentStatus.RUNNING)

    def wait_for_input(self) -> None:
        self._transition(AgentStatus.WAITING_FOR_INPUT)

    def complete(self) -> None:
        self._transition(AgentStatus.COMPLETED)

    def fail(self) -> None:
        self._transition(AgentStatus.FAILED)

    def cancel(self) -> None:
        self._transition(AgentStatus.CANCELLED)

    def increment_version(self) -> None:
        """Bump the version after mutating a stored object in place."""
        if self._can_mutate("increment_version"):
            self._version += 1

    def increment_turns(self) -> None:
        if self._can_mutate("increment_turns"):
            self._turns += 1
            self._version += 1

    def set(self, key: str, value: Any) -> None:
        """Set a custom field.

        Raises:
            ValueError: If key collides with a base field or value is not
                JSON-compatible
        """
        if key in _BASE_KEYS:
            raise ValueError(f"'{key}' is a base state field and cannot be set directly")
        _check_json_compatible(value, key)
        if self._can_mutate(f"set({key})"):
            self._custom[key] = value
            self._version += 1

    def set_task(self, task: WorkflowTask) -> None:
        """Store a task as given and bump the version.

        Relation consistency (blocked_by/blocks) is the caller's job.
        """
        if self._can_mutate("set_task"):
            self._tasks[task.id] = task
            self._version += 1

    def set_tasks(self, tasks: Iterable[WorkflowTask]) -> None:
        """Store several tasks as one logical mutation (single version bump)."""
        tasks = list(tasks)
        if not tasks or not self._can_mutate("set_tasks"):
            return
        for task in tasks:
            self._tasks[task.id] = task
        self._version += 1

    def delete_task(self, task_id: str) -> bool:
        """Delete a task. Bumps the version only if a task was removed."""
        if task_id not in self._tasks or not self._can_mutate("delete_task"):
            return False
        del self._tasks[task_id]
        self._version += 1
        return True

    def set_tools(self, definitions: Iterable["ToolDefinition"]) -> None:
        """Store the JSON-Schema snapshot of the given tool definitions."""
        if self._can_mutate("set_tools"):
            self._tools = [d.to_serializable().to_dict() for d in definitions]
            self._version += 1


def state_query_name(agent_name: str) -> str:
    return f"get_{agent_name}_state"


def state_update_name(agent_name: str) -> str:
    return f"wait_for_{agent_name}_state_change"


def expose_state_handlers(
    host: "DurableExecutionHost",
    state_manager: AgentStateManager,
    wait_timeout: timedelta = DEFAULT_WAIT_TIMEOUT,
) -> None:
    """Register state query and wait-for-change update handlers on the host.

    The update handler blocks for at most ``wait_timeout`` and always returns
    the current state, whether or not it changed.
    """

    def get_state() -> Dict[str, Any]:
        return state_manager.get_current_state()

    async def wait_for_state_change(last_known_version: int) -> Dict[str, Any]:
        await host.wait_condition(
            lambda: state_manager.should_return_from_wait(last_known_version),
            timeout=wait_timeout,
        )
        return state_manager.get_current_state()

    host.set_query_handler(state_query_name(state_manager.agent_name), get_state)
    host.set_update_handler(state_update_name(state_manager.agent_name), wait_for_state_change)


__all__ = [
    "AgentStateManager",
    "DEFAULT_WAIT_TIMEOUT",
    "expose_state_handlers",
    "state_query_name",
    "state_update_name",
]
