import concurrent.futures

import pytest

from callflow._cogs.configs.configuration import Settings


def test_defaults():
    settings = Settings()
    assert settings.dryrun.enabled is True
    assert settings.dryrun.marker == 'DryRun'
    assert tuple(settings.dryrun.passed_statuses) == (412,)
    assert settings.concurrency.limit == 10
    assert settings.retrying.timeout == 15 * 60
    assert tuple(settings.retrying.delays)[:3] == (1, 1, 2)
    assert isinstance(settings.execution.executor, concurrent.futures.ThreadPoolExecutor)
    assert settings.execution.max_workers is None


def test_groups_are_not_shared():
    settings1 = Settings()
    settings2 = Settings()
    settings1.concurrency.limit = 3
    assert settings2.concurrency.limit == 10


@pytest.mark.parametrize('value', [0, -1])
def test_concurrency_limit_is_validated(value):
    settings = Settings()
    with pytest.raises(ValueError):
        settings.concurrency.limit = value


def test_max_workers_are_applied_to_the_executor():
    settings = Settings()
    settings.execution.max_workers = 3
    assert settings.execution.max_workers == 3
    assert settings.execution.executor._max_workers == 3


def test_max_workers_are_validated():
    settings = Settings()
    with pytest.raises(ValueError):
        settings.execution.max_workers = 0


def test_from_mapping():
    settings = Settings.from_mapping({
        'dryrun': {'enabled': False, 'marker': 'ValidateOnly', 'passed_statuses': [200, 412]},
        'concurrency': {'limit': 5},
        'retrying': {'timeout': 60, 'delays': [1, 2]},
    })
    assert settings.dryrun.enabled is False
    assert settings.dryrun.marker == 'ValidateOnly'
    assert settings.dryrun.passed_statuses == (200, 412)
    assert settings.concurrency.limit == 5
    assert settings.retrying.timeout == 60
    assert settings.retrying.delays == (1, 2)


@pytest.mark.parametrize('data', [None, {}])
def test_from_empty_mapping(data):
    settings = Settings.from_mapping(data)
    assert settings.concurrency.limit == 10


@pytest.mark.parametrize('data, match', [
    ({'unknown': {}}, r"Unknown settings group"),
    ({'concurrency': 5}, r"must be a mapping"),
    ({'concurrency': {'unknown': 5}}, r"Unknown setting: concurrency.unknown"),
    ({'concurrency': {'_limit': 5}}, r"Unknown setting: concurrency._limit"),
    ({'execution': {'executor': None}}, r"Unknown setting: execution.executor"),
    ({'concurrency': {'limit': 0}}, r"lower than 1"),
])
def test_from_mapping_errors(data, match):
    with pytest.raises(ValueError, match=match):
        Settings.from_mapping(data)


def test_from_yaml(tmp_path):
    path = tmp_path / 'settings.yaml'
    path.write_text("dryrun:\n  enabled: false\nconcurrency:\n  limit: 7\n")

    settings = Settings.from_yaml(path)

    assert settings.dryrun.enabled is False
    assert settings.concurrency.limit == 7


def test_from_empty_yaml(tmp_path):
    path = tmp_path / 'settings.yaml'
    path.write_text("")

    settings = Settings.from_yaml(str(path))

    assert settings.concurrency.limit == 10


def test_from_non_mapping_yaml(tmp_path):
    path = tmp_path / 'settings.yaml'
    path.write_text("- a\n- b\n")

    with pytest.raises(ValueError, match="must contain a mapping"):
        Settings.from_yaml(path)
