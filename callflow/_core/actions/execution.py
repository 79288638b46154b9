"""
Execution of the individual calls: the atomic units of the orchestrated work.

A call is a named remote operation with its request payload and up to four
hooks, which are invoked in a fixed order: the pre-check, the execution,
the error recovery (only on failures), and the post-processing.

The calls are executed by the runners: either strictly in order with
fail-fast semantics (`callflow._core.engines.sequential`), or concurrently
with best-effort semantics (`callflow._core.engines.concurrent`).
Both runners go through the same contract here, so the calls behave
the same regardless of how they are dispatched.

The calls know nothing about the remote APIs or the resources:
everything specific is inside the hooks, which are supplied by the callers.
"""
import collections.abc
import dataclasses
import enum
import types
from contextvars import ContextVar
from typing import Any, Callable, Mapping, MutableMapping, Optional

from callflow._cogs.clients import errors
from callflow._cogs.configs import configuration
from callflow._cogs.helpers import typedefs
from callflow._core.actions import invocation, loggers

Payload = MutableMapping[str, Any]
Response = Mapping[str, Any]

# All hooks are invoked with kwargs only; they should accept `**kwargs` for forward-compatibility.
# Common kwargs: call, action, payload, context, state, settings, logger, dry_run.
PreCheckFn = Callable[..., invocation.SyncOrAsync[bool]]  # True to execute, False to skip.
ExecuteFn = Callable[..., invocation.SyncOrAsync[Optional[Response]]]
OnErrorFn = Callable[..., invocation.SyncOrAsync[Optional[Response]]]  # + error=...
PostProcessFn = Callable[..., invocation.SyncOrAsync[None]]  # + response=...

# The task-local context; propagated down the stack instead of multiple kwargs.
# Used in the helpers invoked from the hooks, e.g. in `callflow.retry()`.
call_var: ContextVar['Call'] = ContextVar('call_var')
settings_var: ContextVar[configuration.Settings] = ContextVar('settings_var')
logger_var: ContextVar[typedefs.Logger] = ContextVar('logger_var')


class CallStatus(enum.Enum):
    """ Where the call is in its lifecycle. Only the last 4 are final. """
    QUEUED = 'queued'
    DISPATCHED = 'dispatched'
    SKIPPED = 'skipped'
    SUCCEEDED = 'succeeded'
    RECOVERED = 'recovered'
    FAILED = 'failed'

    @property
    def final(self) -> bool:
        return self not in (CallStatus.QUEUED, CallStatus.DISPATCHED)


@dataclasses.dataclass(eq=False)
class Call:
    """
    A remote operation bound with its payload and its lifecycle hooks.

    The call is built by the caller right before the dispatching, and is owned
    by one runner at a time. The payload is owned by the call exclusively:
    the hooks can modify it in place (e.g. the dry-run marker is injected
    and removed by the runners), but it must never be shared between calls.
    """
    action: str
    execute: ExecuteFn
    payload: Payload = dataclasses.field(default_factory=dict)
    pre_check: Optional[PreCheckFn] = None
    on_error: Optional[OnErrorFn] = None
    post_process: Optional[PostProcessFn] = None
    dry_run_exempt: bool = False

    # Diagnostics only: never used for the flow control.
    attempts: int = 0  # the number of successfully passed stages (hooks).
    status: CallStatus = CallStatus.QUEUED
    response: Optional[Response] = None

    # Used in the logs.
    def __str__(self) -> str:
        return f"Call {self.action!r}"


class CallError(Exception):
    """
    A failure of one specific call, as collected by the concurrent processes.

    The original error is available both as ``error`` and as the cause.
    """

    def __init__(self, call: Call, error: BaseException) -> None:
        super().__init__(f"{call} has failed: {str(error) or repr(error)}")
        self.call = call
        self.error = error
        self.__cause__ = error

    @property
    def action(self) -> str:
        return self.call.action


class EarlyStopError(Exception):
    """ The process was stopped before all the queued calls were dispatched. """

    def __init__(self, reason: str, *, undispatched: int) -> None:
        super().__init__(f"Stopped the calls early: {reason}; {undispatched} call(s) not dispatched.")
        self.reason = reason
        self.undispatched = undispatched


def is_dry_run_passed(
        exc: BaseException,
        *,
        settings: configuration.Settings,
) -> bool:
    """ Check if the error actually means that the dry-run validation has passed. """
    status = errors.get_status(exc)
    return status is not None and status in settings.dryrun.passed_statuses


def protect(context: Any) -> Any:
    """
    Make the shared context read-only for the hooks, if possible.

    The context is shared by all calls, including those running concurrently,
    so the hooks must not modify it. For mappings, it is enforced; for other
    objects, it is only a convention (use frozen dataclasses to enforce it).
    """
    if isinstance(context, collections.abc.MutableMapping):
        return types.MappingProxyType(context)  # type: ignore
    return context


async def invoke_call(
        call: Call,
        *,
        dry_run: bool,
        settings: configuration.Settings,
        context: Any = None,
        state: Any = None,
        logger: Optional[typedefs.Logger] = None,
) -> None:
    """
    Invoke one and only one call for one and only one time.

    Returns normally if the call has succeeded, was skipped, or has recovered.
    Raises the first unrecovered error otherwise: either of the execution,
    of the error recovery, of the pre-check, or of the post-processing.

    In the dry-run mode, only the execution hook is invoked, and the payload
    is marked for the remote API to validate the request without mutations.
    The errors that signal the passed validation are not raised.
    """
    logger = logger if logger is not None else loggers.CallLogger(action=call.action)
    kwargs = dict(
        call=call,
        action=call.action,
        payload=call.payload,
        context=protect(context),
        state=state,
        settings=settings,
        logger=logger,
        dry_run=dry_run,
    )
    with invocation.context([
        (call_var, call),
        (settings_var, settings),
        (logger_var, logger),
    ]):
        if dry_run:
            await _invoke_dry_run(call, settings=settings, logger=logger, kwargs=kwargs)
        else:
            await _invoke_for_real(call, settings=settings, logger=logger, kwargs=kwargs)


async def _invoke_dry_run(
        call: Call,
        *,
        settings: configuration.Settings,
        logger: typedefs.Logger,
        kwargs: Mapping[str, Any],
) -> None:
    if call.dry_run_exempt:
        logger.debug(f"{call} is exempt from the dry run.")
        return

    marker = settings.dryrun.marker
    call.payload[marker] = True
    try:
        logger.debug(f"{call} is invoked in the dry-run mode.")
        await invocation.invoke(call.execute, settings=settings, kwargs=kwargs)
    except Exception as e:
        if not is_dry_run_passed(e, settings=settings):
            call.status = CallStatus.FAILED
            logger.error(f"{call} failed the dry run: {str(e) or repr(e)}")
            raise
        logger.debug(f"{call} passed the dry run.")
    else:
        logger.debug(f"{call} passed the dry run with no errors.")
    finally:
        call.payload.pop(marker, None)
    call.attempts += 1


async def _invoke_for_real(
        call: Call,
        *,
        settings: configuration.Settings,
        logger: typedefs.Logger,
        kwargs: Mapping[str, Any],
) -> None:
    call.status = CallStatus.DISPATCHED

    # The pre-check decides if the call is needed at all (e.g. if the remote state already matches).
    if call.pre_check is not None:
        logger.debug(f"{call} is pre-checked.")
        try:
            needed = await invocation.invoke(call.pre_check, settings=settings, kwargs=kwargs)
        except Exception as e:
            call.status = CallStatus.FAILED
            logger.error(f"{call} failed in the pre-check: {str(e) or repr(e)}")
            raise
        call.attempts += 1
        if not needed:
            call.status = CallStatus.SKIPPED
            logger.info(f"{call} is skipped by the pre-check.")
            return

    response: Optional[Response]
    recovered = False
    try:
        logger.debug(f"{call} is executed.")
        response = await invocation.invoke(call.execute, settings=settings, kwargs=kwargs)
    except Exception as e:
        if call.on_error is None:
            call.status = CallStatus.FAILED
            logger.error(f"{call} failed: {str(e) or repr(e)}")
            raise

        # The recovery hook can retry, ignore, or re-classify the error (by raising it or another one).
        logger.warning(f"{call} failed: {str(e) or repr(e)}. Recovering.")
        try:
            response = await invocation.invoke(call.on_error, settings=settings,
                                               kwargs=dict(kwargs, error=e))
        except Exception as e2:
            call.status = CallStatus.FAILED
            logger.error(f"{call} failed to recover: {str(e2) or repr(e2)}")
            raise
        recovered = True
    else:
        call.attempts += 1

    call.response = response
    if call.post_process is not None:
        logger.debug(f"{call} is post-processed.")
        try:
            await invocation.invoke(call.post_process, settings=settings,
                                    kwargs=dict(kwargs, response=response))
        except Exception as e:
            call.status = CallStatus.FAILED
            logger.error(f"{call} failed in the post-processing: {str(e) or repr(e)}")
            raise
        call.attempts += 1

    if recovered:
        call.status = CallStatus.RECOVERED
        logger.info(f"{call} has recovered.")
    else:
        call.status = CallStatus.SUCCEEDED
        logger.info(f"{call} succeeded.")
