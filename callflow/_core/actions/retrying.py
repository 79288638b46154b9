"""
Retrying of arbitrary operations, mostly for the error-recovery hooks.

A typical use is in the ``on_error`` hook of a deletion call: the remote API
refuses to delete a resource while its dependants are being detached, so the
deletion is repeated until it succeeds, or until the resource is gone::

    async def delete_again(call, context, **_):
        async def attempt(**_):
            if not await context.exists(call.payload['Id']):
                return None  # already gone
            try:
                return await context.delete(call.payload)
            except SomeValidationError as e:
                raise callflow.PermanentError("Cannot be deleted.") from e

        return await callflow.retry(attempt, timeout=15 * 60)

The retried function signals how to proceed by its errors:
`PermanentError` stops the retrying, `TemporaryError` and any other errors
make it retry after a delay (its own, or the next one from the settings).
"""
import asyncio
from typing import Any, Iterable, Mapping, Optional

from callflow._cogs.aiokits import aiotime
from callflow._cogs.configs import configuration
from callflow._cogs.helpers import typedefs
from callflow._core.actions import execution, invocation, loggers


class PermanentError(Exception):
    """ A fatal error, the retries are useless. """


class TemporaryError(Exception):
    """ A potentially recoverable error, should be retried. """
    def __init__(
            self,
            __msg: Optional[str] = None,
            delay: Optional[float] = None,
    ) -> None:
        super().__init__(__msg)
        self.delay = delay


class RetryTimeoutError(Exception):
    """ The retrying has not succeeded in time; the last error is the cause. """


async def retry(
        fn: invocation.Invokable,
        *,
        timeout: Optional[float] = None,
        delays: Optional[Iterable[float]] = None,
        wakeup: Optional[asyncio.Event] = None,
        settings: Optional[configuration.Settings] = None,
        logger: Optional[typedefs.Logger] = None,
        kwargs: Optional[Mapping[str, Any]] = None,
) -> Any:
    """
    Call the function until it succeeds, fails permanently, or times out.

    The function can be sync or async. It gets the extra ``kwargs`` plus
    ``attempt`` (1-based). Its result is returned as soon as it succeeds.

    The timeout and the delays default to those of ``settings.retrying``.
    When called from inside the call's hooks, the call's settings and logger
    are used by default; otherwise, the default settings and a module logger.

    Setting the ``wakeup`` event interrupts the sleep between the attempts
    and stops the retrying with `RetryTimeoutError`.
    """
    settings = settings if settings is not None else execution.settings_var.get(None)
    settings = settings if settings is not None else configuration.Settings()
    logger = logger if logger is not None else execution.logger_var.get(None)
    logger = logger if logger is not None else loggers.logger
    timeout = timeout if timeout is not None else settings.retrying.timeout
    delays = delays if delays is not None else settings.retrying.delays

    loop = asyncio.get_running_loop()
    started = loop.time()
    source_of_delays = iter(delays)
    last_used_delay: Optional[float] = None
    attempt = 0
    while True:
        attempt += 1
        delay: Optional[float]
        try:
            return await invocation.invoke(fn, settings=settings,
                                           kwargs=dict(kwargs or {}, attempt=attempt))
        except PermanentError as e:
            logger.error(f"Attempt #{attempt} failed permanently: {str(e) or repr(e)}")
            raise
        except TemporaryError as e:
            error: Exception = e
            delay = e.delay
        except Exception as e:
            error = e
            delay = None

        # Use the delays one by one; reuse the last one when they are over.
        if delay is None:
            delay = next(source_of_delays, last_used_delay)
            last_used_delay = delay
        if delay is None:
            raise RetryTimeoutError(f"Gave up after {attempt} attempt(s): no delays.") from error

        elapsed = loop.time() - started
        if timeout is not None and elapsed + delay > timeout:
            raise RetryTimeoutError(f"Gave up after {attempt} attempt(s) "
                                    f"in {elapsed:.1f}s of {timeout}s.") from error

        logger.warning(f"Attempt #{attempt} failed: {str(error) or repr(error)}. "
                       f"Retrying in {delay}s.")
        unslept = await aiotime.sleep(delay, wakeup=wakeup)
        if unslept is not None:
            raise RetryTimeoutError(f"Interrupted after {attempt} attempt(s).") from error
