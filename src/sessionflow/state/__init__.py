"""Agent state management for sessionflow."""

from sessionflow.state.manager import (
    AgentStateManager,
    expose_state_handlers,
    state_query_name,
    state_update_name,
)

__all__ = [
    "AgentStateManager",
    "expose_state_handlers",
    "state_query_name",
    "state_update_name",
]
