import asyncio
from unittest.mock import Mock

import pytest

from callflow._core.actions.execution import Call, CallStatus, invoke_call
from callflow._core.actions.retrying import PermanentError, RetryTimeoutError, \
                                            TemporaryError, retry


class SampleError(Exception):
    pass


async def test_first_attempt_succeeds(settings):
    fn = Mock(return_value='ok')

    result = await retry(fn, settings=settings, kwargs=dict(x=1))

    assert result == 'ok'
    assert fn.call_count == 1
    assert fn.call_args.kwargs == {'x': 1, 'attempt': 1}


async def test_async_functions_are_retried(settings):
    attempts = []

    async def fn(attempt, **_):
        attempts.append(attempt)
        if attempt < 3:
            raise TemporaryError("not yet")
        return 'ok'

    result = await retry(fn, delays=[0], settings=settings)

    assert result == 'ok'
    assert attempts == [1, 2, 3]


async def test_arbitrary_errors_are_retried(settings, assert_logs):
    fn = Mock(side_effect=[SampleError("boom"), 'ok'])

    result = await retry(fn, delays=[0], settings=settings)

    assert result == 'ok'
    assert fn.call_count == 2
    assert_logs([r"Attempt #1 failed: boom. Retrying in 0s."])


async def test_permanent_errors_are_not_retried(settings):
    fn = Mock(side_effect=PermanentError("fatal"))

    with pytest.raises(PermanentError, match="fatal"):
        await retry(fn, delays=[0], settings=settings)

    assert fn.call_count == 1


async def test_gives_up_when_no_delays(settings):
    error = SampleError("boom")
    fn = Mock(side_effect=error)

    with pytest.raises(RetryTimeoutError) as err:
        await retry(fn, delays=[], settings=settings)

    assert fn.call_count == 1
    assert err.value.__cause__ is error


async def test_the_last_delay_is_reused(settings):
    fn = Mock(side_effect=[SampleError(), SampleError(), SampleError(), 'ok'])

    result = await retry(fn, delays=[0], settings=settings)

    assert result == 'ok'
    assert fn.call_count == 4


async def test_gives_up_when_timed_out(settings):
    error = SampleError("boom")
    fn = Mock(side_effect=error)

    with pytest.raises(RetryTimeoutError) as err:
        await retry(fn, timeout=0.5, delays=[1], settings=settings)

    assert fn.call_count == 1
    assert err.value.__cause__ is error


async def test_temporary_error_delay_overrides_the_delays(settings):
    fn = Mock(side_effect=[TemporaryError("soon", delay=0), 'ok'])

    result = await retry(fn, timeout=10, delays=[100], settings=settings)

    assert result == 'ok'


async def test_wakeup_interrupts_the_retrying(settings):
    wakeup = asyncio.Event()
    wakeup.set()
    fn = Mock(side_effect=SampleError("boom"))

    with pytest.raises(RetryTimeoutError, match="Interrupted"):
        await retry(fn, delays=[10], wakeup=wakeup, settings=settings)

    assert fn.call_count == 1


async def test_defaults_come_from_settings(settings):
    settings.retrying.delays = []
    fn = Mock(side_effect=SampleError("boom"))

    with pytest.raises(RetryTimeoutError):
        await retry(fn, settings=settings)


async def test_settings_of_the_current_call_are_used(settings):
    settings.retrying.delays = [0]
    attempts = []

    def execute(**_):
        raise SampleError("boom")

    async def on_error(**_):
        def again(attempt, **_):
            attempts.append(attempt)
            if attempt < 2:
                raise SampleError("still")
            return {'Id': 'id1'}
        return await retry(again)

    call = Call(action='DeleteThing', execute=execute, on_error=on_error)
    await invoke_call(call, dry_run=False, settings=settings)

    assert attempts == [1, 2]
    assert call.status is CallStatus.RECOVERED
    assert call.response == {'Id': 'id1'}
