"""
Helpers for orchestrating asyncio tasks.

These utilities only support tasks, not more generic futures, coroutines,
or other awaitables. In most case where we use it, we need specifically tasks,
as we not only wait for them, but also cancel them.
"""
import asyncio
from typing import TYPE_CHECKING, Any, Collection, Optional, Set, Tuple

from callflow._cogs.helpers import typedefs

# A workaround for a difference in tasks at runtime and type-checking time.
# Otherwise, at runtime: TypeError: 'type' object is not subscriptable.
if TYPE_CHECKING:
    Task = asyncio.Task[Any]
else:
    Task = asyncio.Task


async def wait(
        tasks: Collection[Task],
        *,
        timeout: Optional[float] = None,
        return_when: Any = asyncio.ALL_COMPLETED,
) -> Tuple[Set[Task], Set[Task]]:
    """
    A safer version of :func:`asyncio.wait` -- does not fail on an empty list.
    """
    if not tasks:
        return set(), set()
    done, pending = await asyncio.wait(tasks, timeout=timeout, return_when=return_when)
    return done, pending


async def stop(
        tasks: Collection[Task],
        *,
        title: str,
        cancelled: bool = False,
        logger: Optional[typedefs.Logger] = None,
) -> Tuple[Set[Task], Set[Task]]:
    """
    Cancel the tasks and wait for them to finish.

    The stopping itself does not have timeouts. It always ends either with
    the tasks stopped/exited, or with the stopping routine itself being cancelled.
    The synchronous hooks in the threads are not interrupted, but awaited.

    For better logging only, if the stopping routine is marked as performing
    the cancellation already (via ``cancelled=True``), then the cancellation
    of the stopping routine is considered as "double-cancelling".
    """
    captitle = title.capitalize()

    if not tasks:
        return set(), set()

    for task in tasks:
        task.cancel()

    try:
        done, pending = await wait(tasks)
    except asyncio.CancelledError:
        pending = {task for task in tasks if not task.done()}
        if logger is not None:
            why = 'double-cancelling at stopping' if cancelled else 'cancelling at stopping'
            logger.debug(f"{captitle} tasks are not stopped: {why}; tasks left: {pending!r}")
        raise
    else:
        if logger is not None:
            why = 'cancelling normally' if cancelled else 'finishing normally'
            logger.debug(f"{captitle} tasks are stopped: {why}; tasks left: {pending!r}")
    return done, pending
