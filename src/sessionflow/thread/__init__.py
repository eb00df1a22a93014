"""Thread storage and thread activities for sessionflow."""

from sessionflow.thread.activities import ActivityThreadOps, ThreadActivities
from sessionflow.thread.store import (
    RedisThreadStore,
    ThreadStore,
    extract_tool_calls,
    parse_raw_arguments,
)

__all__ = [
    "ActivityThreadOps",
    "RedisThreadStore",
    "ThreadActivities",
    "ThreadStore",
    "extract_tool_calls",
    "parse_raw_arguments",
]
