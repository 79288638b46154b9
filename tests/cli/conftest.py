import functools
import logging
import sys

import click.testing
import pytest

from callflow.cli import main

SCRIPT1 = """
import callflow

def say_hello(**_):
    print('Hello from plan1!')

@callflow.plan('plan1')
def plan1(**_):
    return [callflow.Call(action='Hello', execute=say_hello)]
"""

SCRIPT2 = """
import callflow

def fail(**_):
    raise Exception('Failed in plan2!')

@callflow.plan('plan2', mode='concurrent', limit=3)
def plan2(**_):
    return [callflow.Call(action='Fail', execute=fail)]
"""


@pytest.fixture(autouse=True)
def srcdir(tmpdir):
    tmpdir.join('plans1.py').write(SCRIPT1)
    tmpdir.join('plans2.py').write(SCRIPT2)
    pkgdir = tmpdir.mkdir('package')
    pkgdir.join('__init__.py').write('')
    pkgdir.join('module_1.py').write(SCRIPT1)
    pkgdir.join('module_2.py').write(SCRIPT2)

    sys.path.insert(0, str(tmpdir))
    try:
        with tmpdir.as_cwd():
            yield tmpdir
    finally:
        sys.path.remove(str(tmpdir))


@pytest.fixture(autouse=True)
def clean_modules_cache():
    # Otherwise, the first loaded test-modules remain there forever,
    # preventing 2nd and further tests from passing.
    for key in list(sys.modules.keys()):
        if key.startswith('package'):
            del sys.modules[key]


@pytest.fixture(autouse=True)
def clean_root_logger():
    # The CLI configures the logging globally; undo it after every test.
    logger = logging.getLogger()
    handlers = list(logger.handlers)
    level = logger.level
    try:
        yield
    finally:
        logger.handlers[:] = handlers
        logger.setLevel(level)


@pytest.fixture()
def runner():
    runner = click.testing.CliRunner()
    return runner


@pytest.fixture()
def invoke(runner):
    return functools.partial(runner.invoke, main)


@pytest.fixture()
def preload(mocker):
    return mocker.patch('callflow._cogs.helpers.loaders.preload')


@pytest.fixture()
def real_run(mocker):
    return mocker.patch('callflow._core.reactor.running.run', return_value=True)
