"""Durable execution hosts for sessionflow.

Provides:
- DurableExecutionHost protocol
- TemporalHost (temporalio workflow runtime)
- LocalHost (in-process asyncio runtime)
- RetryConfig (bounded exponential backoff)
"""

from sessionflow.host.local import LocalHost
from sessionflow.host.protocol import DurableExecutionHost
from sessionflow.host.retry import DEFAULT_RETRY, RetryConfig
from sessionflow.host.temporal import TemporalHost

__all__ = [
    "DEFAULT_RETRY",
    "DurableExecutionHost",
    "LocalHost",
    "RetryConfig",
    "TemporalHost",
]
