"""
The main Callflow module for all the exported functions & classes.
"""
# isort: skip_file

# Unlike all other places, where we import other modules and refer
# the functions via the modules, this is the library's top-level interface,
# as it is seen by the users. So, we export the individual functions.

from callflow._cogs.aiokits.aioadapters import (
    Flag,
    check_flag,
    raise_flag,
    wait_flag,
)
from callflow._cogs.clients.errors import (
    APIError,
    APIUnauthorizedError,
    APIForbiddenError,
    APINotFoundError,
    APIConflictError,
    APIPreconditionFailedError,
    check_response,
    parse_response,
)
from callflow._cogs.configs.configuration import (
    Settings,
    DryRunSettings,
    ConcurrencySettings,
    RetryingSettings,
    ExecutionSettings,
)
from callflow._cogs.helpers.typedefs import (
    Logger,
)
from callflow._cogs.helpers.versions import (
    version as __version__,
)
from callflow._core.actions.execution import (
    Call,
    CallStatus,
    CallError,
    EarlyStopError,
)
from callflow._core.actions.loggers import (
    CallLogger,
    LogFormat,
    configure,
)
from callflow._core.actions.retrying import (
    retry,
    PermanentError,
    TemporaryError,
    RetryTimeoutError,
)
from callflow._core.engines.sequential import (
    run_sequence,
    run_now,
    run_steps,
)
from callflow._core.engines.concurrent import (
    Process,
)
from callflow._core.intents.registries import (
    Plan,
    PlanMode,
    PlanRegistry,
    plan,
    get_default_registry,
    set_default_registry,
)
from callflow._core.reactor.running import (
    run,
    run_plan,
    run_plans,
)

__all__ = [
    'Flag', 'check_flag', 'raise_flag', 'wait_flag',
    'APIError',
    'APIUnauthorizedError',
    'APIForbiddenError',
    'APINotFoundError',
    'APIConflictError',
    'APIPreconditionFailedError',
    'check_response',
    'parse_response',
    'Settings',
    'DryRunSettings',
    'ConcurrencySettings',
    'RetryingSettings',
    'ExecutionSettings',
    'Logger',
    'Call',
    'CallStatus',
    'CallError',
    'EarlyStopError',
    'CallLogger',
    'LogFormat',
    'configure',
    'retry',
    'PermanentError',
    'TemporaryError',
    'RetryTimeoutError',
    'run_sequence',
    'run_now',
    'run_steps',
    'Process',
    'Plan',
    'PlanMode',
    'PlanRegistry',
    'plan',
    'get_default_registry',
    'set_default_registry',
    'run',
    'run_plan',
    'run_plans',
]
