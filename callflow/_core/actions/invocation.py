"""
Invoking the hooks of the calls with the kwargs, sync or async alike.

The hooks can be plain functions, coroutine functions, their partials,
or decorated wrappers of either: the sync ones go to the executor.
"""
import asyncio
import concurrent.futures
import contextlib
import contextvars
import functools
import inspect
from typing import Any, Callable, Coroutine, Iterable, Iterator, \
                   List, Mapping, Optional, Tuple, TypeVar, Union

from callflow._cogs.configs import configuration

# An internal typing hack shows that the hook can be sync fn with the result,
# or an async fn which returns a coroutine which, in turn, returns the result.
# Used in some protocols only and is never exposed to other modules.
_R = TypeVar('_R')
SyncOrAsync = Union[_R, Coroutine[None, None, _R]]

# A generic sync-or-async callable with no args/kwargs checks (unlike in protocols).
Invokable = Callable[..., SyncOrAsync[Optional[object]]]


@contextlib.contextmanager
def context(
        values: Iterable[Tuple[contextvars.ContextVar[Any], Any]],
) -> Iterator[None]:
    """
    A context manager to set the context variables temporarily.
    """
    tokens: List[Tuple[contextvars.ContextVar[Any], contextvars.Token[Any]]] = []
    try:
        for var, val in values:
            token = var.set(val)
            tokens.append((var, token))
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


async def invoke(
        fn: Invokable,
        *,
        settings: Optional[configuration.Settings] = None,
        kwargs: Optional[Mapping[str, Any]] = None,
) -> Any:
    """
    Invoke a hook of a call with the kwargs, either sync or async.

    The async hooks are awaited in the current task. The sync hooks are
    potentially slow and blocking (e.g. the vendors' SDK clients), so they
    are moved to the executor of the settings (or the loop's default one),
    and the other calls of the same process keep running meanwhile.

    The hooks are expected to accept ``**kwargs`` for the kwargs they ignore.
    """
    kwargs = {} if kwargs is None else kwargs
    if is_async_fn(fn):
        return await fn(**kwargs)  # type: ignore
    executor = settings.execution.executor if settings is not None else None
    return await _run_in_executor(fn, kwargs=kwargs, executor=executor)


async def _run_in_executor(
        fn: Callable[..., Any],
        *,
        kwargs: Mapping[str, Any],
        executor: Optional[concurrent.futures.Executor],
) -> Any:
    # The hook's thread sees the same call, settings & logger in the contextvars as the caller.
    # run_in_executor() takes no kwargs, so they are bound via a partial.
    hook_context = contextvars.copy_context()
    bound_fn = functools.partial(hook_context.run, functools.partial(fn, **kwargs))

    # A thread cannot be interrupted: the cancelled call waits for its hook to return,
    # and only then re-raises the cancellation. Otherwise, the executor's workers are
    # occupied by the hooks of the calls that are already reported as finished.
    loop = asyncio.get_running_loop()
    future = loop.run_in_executor(executor, bound_fn)
    postponed: Optional[asyncio.CancelledError] = None
    while not future.done():
        try:
            await asyncio.shield(future)
        except asyncio.CancelledError as e:
            postponed = e
    if postponed is not None:
        raise postponed
    return future.result()


def is_async_fn(
        fn: Optional[Invokable],
) -> bool:
    if fn is None:
        return False
    elif isinstance(fn, functools.partial):
        return is_async_fn(fn.func)
    elif hasattr(fn, '__wrapped__'):  # @functools.wraps()
        return is_async_fn(fn.__wrapped__)
    else:
        return inspect.iscoroutinefunction(fn)
