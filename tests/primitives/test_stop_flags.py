import asyncio
import concurrent.futures
import threading

import pytest

from callflow._cogs.aiokits.aioadapters import check_flag, raise_flag, wait_flag


FACTORIES = {
    "asyncio-future": lambda: asyncio.get_running_loop().create_future(),
    "asyncio-event": asyncio.Event,
    "concurrent-future": concurrent.futures.Future,
    "threading-event": threading.Event,
}


# The asyncio futures can only be created inside a running loop, i.e. in the tests.
@pytest.fixture(params=list(FACTORIES))
def make_flag(request):
    return FACTORIES[request.param]


async def test_checking_a_none_flag():
    assert check_flag(None) is None


async def test_raising_a_none_flag():
    await raise_flag(None)


async def test_waiting_for_a_none_flag():
    assert await wait_flag(None) is None


async def test_checking_an_unraised_flag(make_flag):
    flag = make_flag()
    assert not check_flag(flag)


async def test_checking_a_raised_flag(make_flag):
    flag = make_flag()
    await raise_flag(flag)
    assert check_flag(flag)


async def test_waiting_for_a_raised_flag(make_flag):
    flag = make_flag()
    await raise_flag(flag)
    await asyncio.wait_for(wait_flag(flag), timeout=1)


async def test_waiting_for_a_flag_raised_later(make_flag):
    flag = make_flag()
    task = asyncio.create_task(wait_flag(flag))
    await asyncio.sleep(0.01)
    assert not task.done()
    await raise_flag(flag)
    await asyncio.wait_for(task, timeout=1)


@pytest.mark.parametrize('fn', [check_flag])
def test_unsupported_flags_for_checking(fn):
    with pytest.raises(TypeError):
        fn(object())


async def test_unsupported_flags_for_raising():
    with pytest.raises(TypeError):
        await raise_flag(object())


async def test_unsupported_flags_for_waiting():
    with pytest.raises(TypeError):
        await wait_flag(object())
