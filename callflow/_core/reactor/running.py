import asyncio
import collections.abc
import logging
from typing import Any, Dict, Iterable, List, Optional

from callflow._cogs.aiokits import aioadapters
from callflow._cogs.configs import configuration
from callflow._core.actions import execution, invocation
from callflow._core.engines import concurrent, sequential
from callflow._core.intents import registries

logger = logging.getLogger(__name__)


def run(
        *,
        registry: Optional[registries.PlanRegistry] = None,
        names: Optional[Iterable[str]] = None,
        context: Any = None,
        state: Any = None,
        settings: Optional[configuration.Settings] = None,
        stop_flag: Optional[aioadapters.Flag] = None,
        dry_run: Optional[bool] = None,
        limit: Optional[int] = None,
) -> bool:
    """
    Run the plans synchronously; return ``True`` if all of them have succeeded.

    This function should be used to run the plans in normal sync mode,
    e.g. from the CLI or from the scripts.
    """
    results = asyncio.run(run_plans(
        registry=registry,
        names=names,
        context=context,
        state=state,
        settings=settings,
        stop_flag=stop_flag,
        dry_run=dry_run,
        limit=limit,
    ))
    return not any(results.values())


async def run_plans(
        *,
        registry: Optional[registries.PlanRegistry] = None,
        names: Optional[Iterable[str]] = None,
        context: Any = None,
        state: Any = None,
        settings: Optional[configuration.Settings] = None,
        stop_flag: Optional[aioadapters.Flag] = None,
        dry_run: Optional[bool] = None,
        limit: Optional[int] = None,
) -> Dict[str, List[Exception]]:
    """
    Run the selected plans (or all of them) one after another.

    A failed plan does not prevent the following plans: they are supposedly
    independent, as they would be if run separately from the CLI.
    The raised stop-flag does: no new plans are started once it is raised.

    Returns the errors of each plan by its name; empty lists for the succeeded plans.
    """
    registry = registry if registry is not None else registries.get_default_registry()
    settings = settings if settings is not None else configuration.Settings()
    plans = registry.get_plans(names)
    results: Dict[str, List[Exception]] = {}
    for plan in plans:
        if aioadapters.check_flag(stop_flag):
            logger.warning(f"Stopped before {plan}: the stop-flag is raised.")
            break
        results[plan.name] = await run_plan(
            plan,
            context=context,
            state=state,
            settings=settings,
            stop_flag=stop_flag,
            dry_run=dry_run,
            limit=limit,
        )
    return results


async def run_plan(
        plan: registries.Plan,
        *,
        context: Any = None,
        state: Any = None,
        settings: Optional[configuration.Settings] = None,
        stop_flag: Optional[aioadapters.Flag] = None,
        dry_run: Optional[bool] = None,
        limit: Optional[int] = None,
) -> List[Exception]:
    """
    Build the calls of one plan and execute them in the plan's mode.

    The plan function gets ``context``, ``state``, ``settings``, ``plan``
    (the name), ``dry_run``, ``stop_flag``, and ``logger`` as kwargs.
    It returns the calls to run (a call or an iterable of calls),
    or ``None`` if it has done everything itself.

    The errors are returned, not raised: in the sequential mode, it is
    the one that has stopped the sequence; in the concurrent mode, all
    of them. The failure of the plan function itself is returned too.
    """
    settings = settings if settings is not None else configuration.Settings()
    dry_run = dry_run if dry_run is not None else plan.dry_run
    limit = limit if limit is not None else plan.limit

    logger.info(f"{plan} is started in the {plan.mode} mode{' with a dry run' if dry_run else ''}.")
    try:
        result = await invocation.invoke(plan.fn, settings=settings, kwargs=dict(
            context=execution.protect(context),
            state=state,
            settings=settings,
            plan=plan.name,
            dry_run=dry_run,
            stop_flag=stop_flag,
            logger=logger,
        ))
    except Exception as e:
        logger.error(f"{plan} failed to build the calls: {str(e) or repr(e)}")
        return [e]

    if result is None:
        calls: List[Optional[execution.Call]] = []
    elif isinstance(result, execution.Call):
        calls = [result]
    elif isinstance(result, collections.abc.Iterable):
        calls = list(result)
    else:
        error = TypeError(f"{plan} returned neither calls nor None: {result!r}")
        logger.error(str(error))
        return [error]

    errors: List[Exception]
    if plan.mode is registries.PlanMode.CONCURRENT:
        process = concurrent.Process(
            limit=limit,
            dry_run=dry_run,
            stop_flag=stop_flag,
            timeout=plan.timeout,
            context=context,
            state=state,
            settings=settings,
            plan=plan.name,
        )
        process.enqueue(*calls)
        errors = await process.run()
    else:
        try:
            await sequential.run_sequence(
                calls,
                dry_run=dry_run,
                context=context,
                state=state,
                settings=settings,
                plan=plan.name,
            )
        except Exception as e:
            errors = [e]
        else:
            errors = []

    if errors:
        logger.error(f"{plan} has failed with {len(errors)} error(s).")
    else:
        logger.info(f"{plan} has succeeded.")
    return errors
