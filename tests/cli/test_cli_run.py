import callflow
from callflow._core.actions.loggers import LogFormat


def test_help(invoke):
    result = invoke(['run', '--help'])
    assert result.exit_code == 0
    assert '--dry-run' in result.output
    assert '--plan' in result.output


def test_nothing(invoke, real_run):
    result = invoke(['run'])
    assert result.exit_code == 0
    assert real_run.call_count == 1

    registry = callflow.get_default_registry()
    assert len(registry) == 0


def test_one_file(invoke, real_run):
    result = invoke(['run', 'plans1.py'])
    assert result.exit_code == 0

    registry = callflow.get_default_registry()
    assert [plan.name for plan in registry] == ['plan1']


def test_two_files(invoke, real_run):
    result = invoke(['run', 'plans1.py', 'plans2.py'])
    assert result.exit_code == 0

    registry = callflow.get_default_registry()
    assert [plan.name for plan in registry] == ['plan1', 'plan2']


def test_one_module(invoke, real_run):
    result = invoke(['run', '-m', 'package.module_1'])
    assert result.exit_code == 0

    registry = callflow.get_default_registry()
    assert [plan.name for plan in registry] == ['plan1']


def test_mixed_sources(invoke, real_run):
    result = invoke(['run', 'plans1.py', '-m', 'package.module_2'])
    assert result.exit_code == 0

    registry = callflow.get_default_registry()
    assert [plan.name for plan in registry] == ['plan1', 'plan2']


def test_options_are_passed(invoke, real_run):
    result = invoke(['run', '--dry-run', '--limit', '3', '--plan', 'a', '-p', 'b'])
    assert result.exit_code == 0

    kwargs = real_run.call_args.kwargs
    assert kwargs['dry_run'] is True
    assert kwargs['limit'] == 3
    assert kwargs['names'] == ('a', 'b')


def test_defaults_are_passed(invoke, real_run):
    result = invoke(['run'])
    assert result.exit_code == 0

    kwargs = real_run.call_args.kwargs
    assert kwargs['dry_run'] is None
    assert kwargs['limit'] is None
    assert kwargs['names'] is None
    assert kwargs['settings'] is None


def test_no_dry_run(invoke, real_run):
    result = invoke(['run', '--no-dry-run'])
    assert result.exit_code == 0
    assert real_run.call_args.kwargs['dry_run'] is False


def test_limit_is_validated(invoke, real_run):
    result = invoke(['run', '--limit', '0'])
    assert result.exit_code == 2
    assert real_run.call_count == 0


def test_config_file(invoke, real_run, srcdir):
    srcdir.join('settings.yaml').write("concurrency:\n  limit: 4\ndryrun:\n  enabled: false\n")

    result = invoke(['run', '--config', 'settings.yaml'])
    assert result.exit_code == 0

    settings = real_run.call_args.kwargs['settings']
    assert settings.concurrency.limit == 4
    assert settings.dryrun.enabled is False


def test_missing_config_file(invoke, real_run):
    result = invoke(['run', '--config', 'absent.yaml'])
    assert result.exit_code == 2
    assert real_run.call_count == 0


def test_environment_variables(invoke, real_run):
    result = invoke(['run'], env={'CALLFLOW_RUN_LIMIT': '7'})
    assert result.exit_code == 0
    assert real_run.call_args.kwargs['limit'] == 7


def test_log_format_is_configured(invoke, real_run, mocker):
    configure = mocker.patch('callflow._core.actions.loggers.configure')

    result = invoke(['run', '--log-format', 'json', '--log-refkey', 'op', '-v'])
    assert result.exit_code == 0

    kwargs = configure.call_args.kwargs
    assert kwargs['log_format'] is LogFormat.JSON
    assert kwargs['log_refkey'] == 'op'
    assert kwargs['verbose'] is True


def test_successful_plans(invoke):
    result = invoke(['run', 'plans1.py'])
    assert result.exit_code == 0
    assert 'Hello from plan1!' in result.output


def test_failed_plans(invoke):
    result = invoke(['run', 'plans1.py', 'plans2.py'])
    assert result.exit_code == 1


def test_selected_plans(invoke):
    result = invoke(['run', 'plans1.py', 'plans2.py', '--plan', 'plan1'])
    assert result.exit_code == 0


def test_unknown_plans(invoke):
    result = invoke(['run', 'plans1.py', '--plan', 'unknown'])
    assert result.exit_code == 2
    assert 'Unknown plan(s): unknown' in result.output
