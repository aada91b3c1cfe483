"""
Task naming helpers. Tasks spawned for a client carry its address in their name,
so that asyncio's own error reports and task dumps point at a connection.
"""

import asyncio
from collections.abc import Coroutine

from tlsgate.utils import human


def task_name(name: str, client: tuple | None = None) -> str:
    if client:
        return f"{name} ({human.format_address(client)})"
    return name


def create_task(
    coro: Coroutine,
    *,
    name: str,
    client: tuple | None = None,
) -> asyncio.Task:
    """
    Wrapper around `asyncio.create_task` that names the task.
    The caller is responsible for keeping a reference to the returned task.
    """
    return asyncio.create_task(coro, name=task_name(name, client))


def set_current_task_name(name: str, client: tuple | None = None) -> None:
    """Name a task we did not spawn ourselves, e.g. an `asyncio.start_server` callback."""
    task = asyncio.current_task()
    assert task
    task.set_name(task_name(name, client))
