"""
Concurrent execution of the independent calls: bounded, best-effort.

Independent operations (e.g. setting the bandwidth limits on many NAT
interfaces at once) do not need to wait for each other. They are queued
into a process, which runs them in parallel, but no more than the limit
at a time --- to not overload the remote API and to not hit its rate limits.

Unlike the sequential execution, a failure of one call does not stop
the others: all the errors are collected and returned at the end.
The only way to stop the process early is the cooperative stop-flag
(or the timeout): no new calls are dispatched once it is raised,
but the calls already in flight are always allowed to finish.

The callers that need the strict ordering must use the sequential execution,
or split the dependent calls into stages, each stage being a separate process.
"""
import asyncio
import logging
from typing import Any, List, Optional, Sequence

from callflow._cogs.aiokits import aioadapters, aiotasks
from callflow._cogs.configs import configuration
from callflow._core.actions import execution
from callflow._core.engines import sequential

logger = logging.getLogger(__name__)


class Process:
    """
    A one-time batch of independent calls, executed concurrently.

    The process is created once per logical action, populated with the calls
    via `enqueue`, and then `run` exactly once. It cannot be reused:
    create a new process for a new batch.

    Every call goes through the same contract as in the sequential execution,
    including its own dry-run pass if the process is in the dry-run mode.
    """

    def __init__(
            self,
            *,
            limit: Optional[int] = None,
            dry_run: bool = False,
            stop_flag: Optional[aioadapters.Flag] = None,
            timeout: Optional[float] = None,
            context: Any = None,
            state: Any = None,
            settings: Optional[configuration.Settings] = None,
            plan: Optional[str] = None,
    ) -> None:
        super().__init__()
        settings = settings if settings is not None else configuration.Settings()
        limit = limit if limit is not None else settings.concurrency.limit
        if limit < 1:
            raise ValueError(f"The concurrency limit must be 1 or above, got {limit!r}.")
        self._limit = limit
        self._dry_run = dry_run
        self._stop_flag = stop_flag
        self._timeout = timeout
        self._context = context
        self._state = state
        self._settings = settings
        self._plan = plan
        self._queue: List[execution.Call] = []
        self._errors: List[Exception] = []
        self._running = False
        self._finished = False

    def __repr__(self) -> str:
        clsname = self.__class__.__name__
        stage = 'finished' if self._finished else 'running' if self._running else 'pending'
        return f'<{clsname}: {stage}, {len(self._queue)} call(s), limit={self._limit}>'

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    @property
    def queue(self) -> Sequence[execution.Call]:
        return tuple(self._queue)

    @property
    def errors(self) -> Sequence[Exception]:
        """ The errors collected so far (all of them once the process is finished). """
        return tuple(self._errors)

    @property
    def running(self) -> bool:
        return self._running

    @property
    def finished(self) -> bool:
        return self._finished

    def enqueue(self, *calls: Optional[execution.Call]) -> None:
        """
        Add the calls to the end of the queue. ``None`` values are ignored.

        The queue is dispatched in the insertion order, though the calls
        can finish in any order. No calls can be added once the process runs.
        """
        if self._running or self._finished:
            raise RuntimeError("Cannot enqueue calls to a running or finished process.")
        self._queue.extend(call for call in calls if call is not None)

    async def run(self) -> List[Exception]:
        """
        Execute all the queued calls, at most ``limit`` of them at a time.

        Returns all the errors: one `CallError` per failed call, and
        an `EarlyStopError` at the end if the dispatching was stopped early.
        The list is empty if all the calls have succeeded.

        The calls' failures are never raised. Only the cancellation of
        the process itself is raised --- after the in-flight calls are cancelled.
        """
        if self._running or self._finished:
            raise RuntimeError("The process can run only once.")
        self._running = True
        try:
            loop = asyncio.get_running_loop()
            deadline = loop.time() + self._timeout if self._timeout is not None else None
            semaphore = asyncio.Semaphore(self._limit)
            early_stop: Optional[execution.EarlyStopError] = None
            tasks: List[aiotasks.Task] = []
            try:
                for idx, call in enumerate(self._queue):

                    # Check for the stop only when the call can actually start, not while waiting.
                    await semaphore.acquire()
                    reason = self._check_stop(loop=loop, deadline=deadline)
                    if reason is not None:
                        semaphore.release()
                        early_stop = execution.EarlyStopError(reason, undispatched=len(self._queue) - idx)
                        logger.warning(f"{early_stop}")
                        break

                    call.status = execution.CallStatus.DISPATCHED
                    task = asyncio.create_task(self._execute(call, semaphore),
                                               name=f"call {call.action!r}")
                    tasks.append(task)

                    # Let the dispatched calls (and the flag's raisers) run before the next check,
                    # even if the slots are free and the acquiring does not switch the context.
                    await asyncio.sleep(0)

                # The bulk synchronisation point: all dispatched calls finish, even when stopped early.
                await aiotasks.wait(tasks)

            except asyncio.CancelledError:
                await aiotasks.stop(tasks, title="calls", cancelled=True, logger=logger)
                raise

            if early_stop is not None:
                self._errors.append(early_stop)
            return list(self._errors)
        finally:
            self._running = False
            self._finished = True

    def _check_stop(
            self,
            *,
            loop: asyncio.AbstractEventLoop,
            deadline: Optional[float],
    ) -> Optional[str]:
        if aioadapters.check_flag(self._stop_flag):
            return "the stop-flag is raised"
        if deadline is not None and loop.time() >= deadline:
            return f"the timeout of {self._timeout}s is reached"
        return None

    async def _execute(
            self,
            call: execution.Call,
            semaphore: asyncio.Semaphore,
    ) -> None:
        try:
            await sequential.run_now(
                call,
                dry_run=self._dry_run,
                context=self._context,
                state=self._state,
                settings=self._settings,
                plan=self._plan,
            )
        except Exception as e:
            self._errors.append(execution.CallError(call, e))
        finally:
            semaphore.release()
