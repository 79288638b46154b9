"""
All configuration flags, options, settings to fine-tune the call orchestration.

All settings are grouped semantically just for convenience
(instead of a flat mega-object with all the values in it).

The settings object is created once per top-level action (or per process
of the CLI) and is then passed by reference to every runner and every hook.
The hooks can read it, but must not modify it: the same object is shared
by all calls, including the calls running concurrently.

Some of the settings are flags, some are scalars, some are optional,
some are not (but all of them have reasonable defaults).
"""
import concurrent.futures
import dataclasses
import os
from typing import Any, Collection, Iterable, Mapping, Optional, Union

import yaml

DEFAULT_DRY_RUN_MARKER = 'DryRun'
""" The payload key that turns a remote request into a validation-only one. """

DEFAULT_DRY_RUN_STATUSES = (412,)
""" The remote statuses that mean "validation passed, nothing was mutated". """


@dataclasses.dataclass
class DryRunSettings:

    enabled: bool = True
    """
    Should the dry-run pass be performed when the callers request it?

    This is a client-level switch: the dry-run gate of a sequence runs only
    if it is both requested for a specific sequence and enabled here.
    When disabled, the sequences go straight to the real pass.
    """

    marker: str = DEFAULT_DRY_RUN_MARKER
    """
    The key injected into the call's payload for the dry-run invocation.

    The value is always ``True``. The key is removed after the invocation,
    regardless of its outcome, so the real pass never sees it.
    """

    passed_statuses: Collection[int] = DEFAULT_DRY_RUN_STATUSES
    """
    Which remote error statuses mean that the validation has passed.

    The remote API rejects a dry-run request with this status when the request
    would have succeeded. Such errors are suppressed in the dry-run pass.
    Any other error fails the dry-run pass and prevents the real pass.
    """


@dataclasses.dataclass
class ConcurrencySettings:

    _limit: int = 10

    @property
    def limit(self) -> int:
        """
        How many calls can be executed simultaneously by a concurrent process.

        It is used when the process is created with no explicit limit.
        There is no "unlimited" mode: use a big number if needed.
        """
        return self._limit

    @limit.setter
    def limit(self, value: int) -> None:
        if value < 1:
            raise ValueError("Can't set the concurrency limit lower than 1.")
        self._limit = value


@dataclasses.dataclass
class RetryingSettings:
    """
    Defaults for `callflow.retry`, as typically used in the error-recovery hooks.
    """

    timeout: Optional[float] = 15 * 60
    """
    For how long (in seconds) to keep retrying before giving up.

    Set to ``None`` to retry until the delays are exhausted (if they are finite).
    """

    delays: Iterable[float] = (1, 1, 2, 3, 5, 8, 13, 21, 34)
    """
    Backoff intervals between the attempts (in seconds).

    When the intervals are exhausted, the last one is reused for all further
    attempts (until the timeout is reached). Make sure it is re-iterable,
    since only ``iter()`` is called on every new retrying cycle.
    """


@dataclasses.dataclass
class ExecutionSettings:
    """
    Settings for synchronous hooks execution (e.g. thread-/process-pools).
    """

    executor: concurrent.futures.Executor = dataclasses.field(
        default_factory=concurrent.futures.ThreadPoolExecutor)
    """
    The executor to be used for synchronous hook invocation.

    It can be changed at runtime (e.g. to reset the pool size). Already running
    hooks (specific invocations) will continue with their original executors.
    """

    _max_workers: Optional[int] = None

    @property
    def max_workers(self) -> Optional[int]:
        """
        How many threads/processes is dedicated to the synchronous hooks.

        It can be changed at runtime (the threads/processes are not terminated).
        """
        return self._max_workers

    @max_workers.setter
    def max_workers(self, value: int) -> None:
        if value < 1:
            raise ValueError("Can't set thread pool limit lower than 1.")
        self._max_workers = value

        if hasattr(self.executor, '_max_workers'):
            self.executor._max_workers = value  # type: ignore
        else:
            raise TypeError("Current executor does not support `max_workers`.")


@dataclasses.dataclass
class Settings:
    dryrun: DryRunSettings = dataclasses.field(default_factory=DryRunSettings)
    concurrency: ConcurrencySettings = dataclasses.field(default_factory=ConcurrencySettings)
    retrying: RetryingSettings = dataclasses.field(default_factory=RetryingSettings)
    execution: ExecutionSettings = dataclasses.field(default_factory=ExecutionSettings)

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "Settings":
        """
        Build the settings from a nested mapping, e.g. as loaded from a file.

        Only the scalar settings can be set this way (not the executor).
        The groups and the fields are named the same as the attributes::

            dryrun:
              enabled: false
            concurrency:
              limit: 5
        """
        settings = cls()
        for group_name, values in (data or {}).items():
            group = getattr(settings, group_name, None)
            if group is None or not dataclasses.is_dataclass(group):
                raise ValueError(f"Unknown settings group: {group_name!r}")
            if not isinstance(values, Mapping):
                raise ValueError(f"Settings group {group_name!r} must be a mapping, "
                                 f"got {values!r}")
            for name, value in values.items():
                if name.startswith('_') or not hasattr(group, name) or name == 'executor':
                    raise ValueError(f"Unknown setting: {group_name}.{name}")
                if isinstance(value, list):
                    value = tuple(value)
                setattr(group, name, value)  # properties validate the values.
        return settings

    @classmethod
    def from_yaml(cls, path: Union[str, "os.PathLike[str]"]) -> "Settings":
        """ Load the settings from a YAML file (see `from_mapping` for the format). """
        with open(path, encoding='utf-8') as f:
            data = yaml.safe_load(f)
        if data is not None and not isinstance(data, Mapping):
            raise ValueError(f"The settings file must contain a mapping: {path}")
        return cls.from_mapping(data)
