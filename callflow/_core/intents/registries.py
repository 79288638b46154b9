"""
A registry of the plans: the named functions that orchestrate the calls.

The default registry is populated by the `callflow.plan` decorator
when the plan scripts or modules are imported (e.g. by the CLI),
and is used by the `callflow._core.reactor.running` to run the plans.

A plan function builds the calls and either returns them (to be run
by the framework in the plan's mode), or runs them itself via the runners
and returns nothing.
"""
import dataclasses
import enum
from typing import Callable, Iterable, Iterator, List, Optional, TypeVar, Union

from callflow._core.actions import invocation

PlanFn = Callable[..., invocation.SyncOrAsync[object]]
PlanFnT = TypeVar('PlanFnT', bound=PlanFn)


class PlanMode(str, enum.Enum):
    """ How the calls returned from the plan are executed. """
    SEQUENTIAL = 'sequential'
    CONCURRENT = 'concurrent'

    def __str__(self) -> str:
        return str(self.value)


@dataclasses.dataclass(frozen=True)
class Plan:
    name: str
    fn: PlanFn
    mode: PlanMode
    dry_run: bool
    limit: Optional[int]
    timeout: Optional[float]

    def __str__(self) -> str:
        return f"Plan {self.name!r}"


class PlanRegistry:
    """ A collection of the plans, unique by their names, in the order of registration. """
    _plans: List[Plan]

    def __init__(self) -> None:
        super().__init__()
        self._plans = []

    def __len__(self) -> int:
        return len(self._plans)

    def __iter__(self) -> Iterator[Plan]:
        return iter(list(self._plans))

    def register(self, plan: Plan) -> None:
        if any(existing.name == plan.name for existing in self._plans):
            raise ValueError(f"The plan {plan.name!r} is already registered.")
        self._plans.append(plan)

    def get_plans(self, names: Optional[Iterable[str]] = None) -> List[Plan]:
        """
        Get the plans by their names, in the requested order; or all of them.

        Unknown names are reported all at once, so that the typos are visible.
        """
        if names is None:
            return list(self._plans)
        names = list(names)
        if not names:
            return list(self._plans)
        known = {plan.name: plan for plan in self._plans}
        unknown = [name for name in names if name not in known]
        if unknown:
            raise LookupError(f"Unknown plan(s): {', '.join(unknown)}")
        return [known[name] for name in names]


_default_registry: Optional[PlanRegistry] = None


def get_default_registry() -> PlanRegistry:
    """
    Get the default registry to be used by the decorators and the runners
    unless the explicit registry is provided to them.
    """
    global _default_registry
    if _default_registry is None:
        _default_registry = PlanRegistry()
    return _default_registry


def set_default_registry(registry: PlanRegistry) -> None:
    """
    Set the default registry to be used by the decorators and the runners
    unless the explicit registry is provided to them.
    """
    global _default_registry
    _default_registry = registry


def plan(
        name: Optional[str] = None,
        *,
        mode: Union[str, PlanMode] = PlanMode.SEQUENTIAL,
        dry_run: bool = False,
        limit: Optional[int] = None,
        timeout: Optional[float] = None,
        registry: Optional[PlanRegistry] = None,
) -> Callable[[PlanFnT], PlanFnT]:
    """
    Register a function as a named plan. The function itself is not modified.

    The name defaults to the function's name with underscores as dashes.
    """
    if limit is not None and limit < 1:
        raise ValueError(f"The concurrency limit must be 1 or above, got {limit!r}.")

    def decorator(fn: PlanFnT) -> PlanFnT:
        real_registry = registry if registry is not None else get_default_registry()
        real_name = name if name is not None else fn.__name__.replace('_', '-')
        real_registry.register(Plan(
            name=real_name,
            fn=fn,
            mode=PlanMode(mode),
            dry_run=dry_run,
            limit=limit,
            timeout=timeout,
        ))
        return fn
    return decorator
