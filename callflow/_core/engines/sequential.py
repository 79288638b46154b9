"""
Sequential execution of the dependent calls: strictly ordered, fail-fast.

Dependent operations (e.g. "create a load balancer", then "attach a listener
to it") must run in the order they are listed, and the whole sequence must
stop on the first unrecovered error: there is no sense in attaching anything
to a load balancer that was not created.

Optionally, the whole sequence is validated with a dry-run pass first:
the remote API checks every request without mutating anything, so that
the validation errors surface before any real change is made.
"""
import logging
from typing import Any, Iterable, List, Optional

from callflow._cogs.configs import configuration
from callflow._core.actions import execution, invocation, loggers

logger = logging.getLogger(__name__)


async def run_sequence(
        calls: Iterable[Optional[execution.Call]],
        *,
        dry_run: bool = False,
        context: Any = None,
        state: Any = None,
        settings: Optional[configuration.Settings] = None,
        plan: Optional[str] = None,
) -> None:
    """
    Execute the calls one by one, in the order they are listed.

    If the dry-run is requested (and enabled in the settings), all the calls
    are first executed in the dry-run mode, and then for real. Any error
    in the dry-run pass prevents all the real calls.

    ``None`` values are skipped: the callers often build optional calls
    conditionally, and it is easier to pass them as is.

    The first unrecovered error is raised; the remaining calls are abandoned.
    """
    settings = settings if settings is not None else configuration.Settings()
    sequence = [call for call in calls if call is not None]

    if dry_run and settings.dryrun.enabled:
        logger.debug(f"Validating {len(sequence)} call(s) in the dry-run mode.")
        await _run_pass(sequence, dry_run=True, context=context, state=state,
                        settings=settings, plan=plan)

    await _run_pass(sequence, dry_run=False, context=context, state=state,
                    settings=settings, plan=plan)


async def run_now(
        call: execution.Call,
        *,
        dry_run: bool = False,
        context: Any = None,
        state: Any = None,
        settings: Optional[configuration.Settings] = None,
        plan: Optional[str] = None,
) -> None:
    """ Execute a single call right now, with its own dry-run pass if requested. """
    await run_sequence([call], dry_run=dry_run, context=context, state=state,
                       settings=settings, plan=plan)


async def _run_pass(
        sequence: List[execution.Call],
        *,
        dry_run: bool,
        context: Any,
        state: Any,
        settings: configuration.Settings,
        plan: Optional[str],
) -> None:
    for call in sequence:
        await execution.invoke_call(
            call,
            dry_run=dry_run,
            context=context,
            state=state,
            settings=settings,
            logger=loggers.CallLogger(action=call.action, plan=plan),
        )


async def run_steps(
        steps: Iterable[Optional[invocation.Invokable]],
        *,
        context: Any = None,
        state: Any = None,
        settings: Optional[configuration.Settings] = None,
) -> None:
    """
    Execute plain step functions one by one, stopping on the first error.

    This is the simplest form of orchestration, with no hooks and no dry-runs:
    each step is a sync or async function, which gets ``context``, ``state``,
    ``settings``, and ``logger`` as kwargs, and does everything it needs itself.
    """
    settings = settings if settings is not None else configuration.Settings()
    for step in steps:
        if step is not None:
            await invocation.invoke(step, settings=settings, kwargs=dict(
                context=execution.protect(context),
                state=state,
                settings=settings,
                logger=logger,
            ))
