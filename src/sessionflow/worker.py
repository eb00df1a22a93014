"""Temporal worker wiring for sessionflow.

Registers the thread activities and the litellm ``run_agent`` activity next
to the caller's agent workflows.

Usage:
    from sessionflow.worker import run_worker
    from myapp.workflows import ResearcherWorkflow

    asyncio.run(run_worker([ResearcherWorkflow], PromptManager("You are ...")))
"""

import asyncio
import logging
import os
import signal
from typing import Any, Callable, List, Optional, Sequence

from temporalio.client import Client
from temporalio.worker import Worker

from sessionflow.config import SessionFlowSettings, configure_logging, get_settings
from sessionflow.llm.config import LLMConfig
from sessionflow.llm.invoker import LiteLLMModelInvoker
from sessionflow.prompt import PromptManager
from sessionflow.thread.activities import ThreadActivities
from sessionflow.thread.store import RedisThreadStore

logger = logging.getLogger(__name__)


def build_activities(
    store: RedisThreadStore,
    settings: SessionFlowSettings,
    prompt_manager: Optional[PromptManager] = None,
) -> List[Callable[..., Any]]:
    """Thread activities plus the ``run_agent`` activity."""
    invoker = LiteLLMModelInvoker(
        LLMConfig.from_settings(settings),
        store=store,
        prompt_manager=prompt_manager,
    )
    return [*ThreadActivities(store).all(), invoker.as_activity()]


def create_worker(
    client: Client,
    workflows: Sequence[type],
    activities: Sequence[Callable[..., Any]],
    settings: Optional[SessionFlowSettings] = None,
) -> Worker:
    settings = settings or get_settings()
    return Worker(
        client,
        task_queue=settings.temporal_task_queue,
        workflows=list(workflows),
        activities=list(activities),
    )


async def run_worker(
    workflows: Sequence[type],
    prompt_manager: Optional[PromptManager] = None,
    extra_activities: Sequence[Callable[..., Any]] = (),
    settings: Optional[SessionFlowSettings] = None,
) -> None:
    """Connect to Temporal and run a worker until SIGINT/SIGTERM."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    logger.info(f"Starting sessionflow worker (PID: {os.getpid()})...")
    logger.info(f"Temporal server: {settings.temporal_host}")
    logger.info(f"Task queue: {settings.temporal_task_queue}")

    store = RedisThreadStore.from_url(settings.redis_url, settings.thread_ttl_seconds)
    client = await Client.connect(settings.temporal_host, namespace=settings.temporal_namespace)
    logger.info("Connected to Temporal server")

    worker = create_worker(
        client,
        workflows,
        [*build_activities(store, settings, prompt_manager), *extra_activities],
        settings,
    )

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda: asyncio.create_task(worker.shutdown()))

    logger.info("Worker is ready and waiting for tasks...")
    try:
        await worker.run()
    finally:
        await store.close()
        logger.info("Worker shutdown complete")


__all__ = ["build_activities", "create_worker", "run_worker"]
