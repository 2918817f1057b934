"""Fire-and-forget dispatch for side effects of accepted votes and bumps."""

import asyncio

# Track background tasks to prevent GC before completion
_background_tasks: set[asyncio.Task] = set()


def track_task(coro) -> asyncio.Task:
    """Create a tracked background task that removes itself when done."""
    task = asyncio.create_task(coro)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


async def drain_background_tasks() -> None:
    """Wait for every in-flight dispatch, including ones spawned meanwhile."""
    while _background_tasks:
        await asyncio.gather(*list(_background_tasks), return_exceptions=True)
