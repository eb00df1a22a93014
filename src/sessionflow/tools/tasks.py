"""Task graph tools: TaskCreate, TaskGet, TaskList, TaskUpdate.

The tools operate only on the agent state manager. ``blocked_by`` and
``blocks`` are kept bidirectional: TaskUpdate writes both sides of every
new relation in a single ``set_tasks`` call, so a snapshot taken between a
request and its result never shows half a relation.
"""

import copy
import json
import uuid
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from sessionflow.core.types import TaskStatus, WorkflowTask
from sessionflow.state.manager import AgentStateManager
from sessionflow.tools.protocol import Tool, ToolDefinition, ToolHandlerResponse

TASK_CREATE = "TaskCreate"
TASK_GET = "TaskGet"
TASK_LIST = "TaskList"
TASK_UPDATE = "TaskUpdate"


class TaskCreateArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    subject: str = Field(description="A brief title for the task")
    description: str = Field(description="What needs to be done and how to tell it is done")
    active_form: str = Field(
        alias="activeForm",
        description='Present continuous form shown while the task runs, e.g. "Running tests"',
    )
    metadata: Optional[Dict[str, str]] = Field(
        default=None, description="Arbitrary string metadata to attach to the task"
    )


class TaskGetArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    task_id: str = Field(alias="taskId", description="The ID of the task to get")


class TaskListArgs(BaseModel):
    pass


class TaskUpdateArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    task_id: str = Field(alias="taskId", description="The ID of the task to update")
    status: Optional[TaskStatus] = Field(default=None, description="The new status of the task")
    add_blocked_by: List[str] = Field(
        default_factory=list,
        alias="addBlockedBy",
        description="The IDs of the tasks that are blocking this task",
    )
    add_blocks: List[str] = Field(
        default_factory=list,
        alias="addBlocks",
        description="The IDs of the tasks that this task is blocking",
    )


def _task_response(task: WorkflowTask) -> ToolHandlerResponse:
    data = task.to_dict()
    return ToolHandlerResponse(content=json.dumps(data, indent=2), data=data)


def _not_found(task_id: str) -> ToolHandlerResponse:
    return ToolHandlerResponse(
        content=json.dumps({"error": f"Task not found: {task_id}"}),
        data=None,
    )


class TaskToolHandlers:
    """Handlers for the task tools, bound to one state manager."""

    def __init__(
        self,
        state_manager: AgentStateManager,
        id_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        self._state = state_manager
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))

    def create(self, args: TaskCreateArgs, context: Any = None) -> ToolHandlerResponse:
        task = WorkflowTask(
            id=self._id_factory(),
            subject=args.subject,
            description=args.description,
            active_form=args.active_form,
            status=TaskStatus.PENDING,
            metadata=dict(args.metadata or {}),
        )
        self._state.set_task(task)
        return _task_response(task)

    def get(self, args: TaskGetArgs, context: Any = None) -> ToolHandlerResponse:
        task = self._state.get_task(args.task_id)
        if task is None:
            return _not_found(args.task_id)
        return _task_response(task)

    def list(self, args: TaskListArgs, context: Any = None) -> ToolHandlerResponse:
        data = [task.to_dict() for task in self._state.get_tasks()]
        return ToolHandlerResponse(content=json.dumps(data, indent=2), data=data)

    def update(self, args: TaskUpdateArgs, context: Any = None) -> ToolHandlerResponse:
        current = self._state.get_task(args.task_id)
        if current is None:
            return _not_found(args.task_id)

        related_ids = [*args.add_blocked_by, *args.add_blocks]
        if args.task_id in related_ids:
            return ToolHandlerResponse(
                content=json.dumps({"error": f"A task cannot block itself: {args.task_id}"}),
                data=None,
            )
        for related_id in related_ids:
            if self._state.get_task(related_id) is None:
                return _not_found(related_id)

        # Work on copies so nothing is visible until set_tasks.
        touched: Dict[str, WorkflowTask] = {}

        def working_copy(task_id: str) -> WorkflowTask:
            if task_id not in touched:
                touched[task_id] = copy.deepcopy(self._state.get_task(task_id))
            return touched[task_id]

        task = working_copy(args.task_id)
        if args.status is not None:
            task.status = args.status

        for blocker_id in args.add_blocked_by:
            if blocker_id not in task.blocked_by:
                task.blocked_by.append(blocker_id)
            blocker = working_copy(blocker_id)
            if task.id not in blocker.blocks:
                blocker.blocks.append(task.id)

        for blocked_id in args.add_blocks:
            if blocked_id not in task.blocks:
                task.blocks.append(blocked_id)
            blocked = working_copy(blocked_id)
            if task.id not in blocked.blocked_by:
                blocked.blocked_by.append(task.id)

        self._state.set_tasks(touched.values())
        return _task_response(task)


def create_task_tools(
    state_manager: AgentStateManager,
    id_factory: Optional[Callable[[], str]] = None,
) -> List[Tool]:
    """Build the four task tools for a session.

    Args:
        state_manager: State manager that owns the task graph
        id_factory: Generates task ids (pass ``host.new_id`` inside workflows)
    """
    handlers = TaskToolHandlers(state_manager, id_factory)
    return [
        Tool(
            definition=ToolDefinition(
                name=TASK_CREATE,
                description=(
                    "Create a task to track a unit of work. New tasks start as pending "
                    "with no dependencies."
                ),
                schema=TaskCreateArgs,
            ),
            handler=handlers.create,
        ),
        Tool(
            definition=ToolDefinition(
                name=TASK_GET,
                description="Get a task by ID.",
                schema=TaskGetArgs,
            ),
            handler=handlers.get,
        ),
        Tool(
            definition=ToolDefinition(
                name=TASK_LIST,
                description="List all tasks with their status and dependencies.",
                schema=TaskListArgs,
            ),
            handler=handlers.list,
        ),
        Tool(
            definition=ToolDefinition(
                name=TASK_UPDATE,
                description="Update status, add blockers, modify details.",
                schema=TaskUpdateArgs,
            ),
            handler=handlers.update,
        ),
    ]


__all__ = [
    "TASK_CREATE",
    "TASK_GET",
    "TASK_LIST",
    "TASK_UPDATE",
    "TaskCreateArgs",
    "TaskGetArgs",
    "TaskListArgs",
    "TaskToolHandlers",
    "TaskUpdateArgs",
    "create_task_tools",
]
