import dataclasses
import functools
import logging
from typing import Any, Callable, List, Optional

import click

from callflow._cogs.aiokits import aioadapters
from callflow._cogs.configs import configuration
from callflow._cogs.helpers import loaders
from callflow._core.actions import loggers
from callflow._core.intents import registries
from callflow._core.reactor import running

logger = logging.getLogger(__name__)


@dataclasses.dataclass()
class CLIControls:
    """ `CliRunner` controls, which are impossible to pass via CLI. """
    stop_flag: Optional[aioadapters.Flag] = None
    registry: Optional[registries.PlanRegistry] = None
    settings: Optional[configuration.Settings] = None
    context: Any = None
    state: Any = None


class LogFormatParamType(click.Choice):

    def __init__(self) -> None:
        super().__init__(choices=[v.name.lower() for v in loggers.LogFormat])

    def convert(self, value: Any, param: Any, ctx: Any) -> loggers.LogFormat:
        if isinstance(value, loggers.LogFormat):
            return value
        name: str = super().convert(value, param, ctx)
        return loggers.LogFormat[name.upper()]


def logging_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """ A decorator to configure logging in all commands the same way."""
    @click.option('-v', '--verbose', is_flag=True)
    @click.option('-d', '--debug', is_flag=True)
    @click.option('-q', '--quiet', is_flag=True)
    @click.option('--log-format', type=LogFormatParamType(), default='full')
    @click.option('--log-refkey', type=str)
    @click.option('--log-prefix/--no-log-prefix', default=None)
    @functools.wraps(fn)  # to preserve other opts/args
    def wrapper(verbose: bool, quiet: bool, debug: bool,
                log_format: loggers.LogFormat = loggers.LogFormat.FULL,
                log_prefix: Optional[bool] = False,
                log_refkey: Optional[str] = None,
                *args: Any, **kwargs: Any) -> Any:
        loggers.configure(debug=debug, verbose=verbose, quiet=quiet,
                          log_format=log_format, log_refkey=log_refkey, log_prefix=log_prefix)
        return fn(*args, **kwargs)

    return wrapper


def preload(paths: List[str], modules: List[str]) -> None:
    """ Load the plans' sources and report which plans came from which of them. """
    registry = registries.get_default_registry()
    known = {plan.name for plan in registry}

    def loaded(source: str) -> None:
        names = [plan.name for plan in registry if plan.name not in known]
        known.update(names)
        if names:
            logger.info(f"Loaded {len(names)} plan(s) from {source!r}: {', '.join(names)}")
        else:
            logger.info(f"Loaded no plans from {source!r}.")

    loaders.preload(paths=paths, modules=modules, loaded=loaded)


@click.version_option(prog_name='callflow')
@click.group(name='callflow', context_settings=dict(
    auto_envvar_prefix='CALLFLOW',
))
def main() -> None:
    pass


@main.command()
@logging_options
@click.option('-m', '--module', 'modules', multiple=True)
@click.option('-c', '--config', 'config_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--dry-run/--no-dry-run', default=None)
@click.option('-l', '--limit', type=click.IntRange(min=1))
@click.option('-p', '--plan', 'names', multiple=True)
@click.argument('paths', nargs=-1)
@click.make_pass_decorator(CLIControls, ensure=True)
def run(
        __controls: CLIControls,
        paths: List[str],
        modules: List[str],
        config_path: Optional[str],
        dry_run: Optional[bool],
        limit: Optional[int],
        names: List[str],
) -> None:
    """ Load the plans and execute them: all of them, or only the named ones. """
    if __controls.registry is not None:
        registries.set_default_registry(__controls.registry)
    settings = __controls.settings
    if config_path is not None:
        settings = configuration.Settings.from_yaml(config_path)
    preload(paths=paths, modules=modules)
    try:
        succeeded = running.run(
            registry=__controls.registry,
            names=names or None,
            context=__controls.context,
            state=__controls.state,
            settings=settings,
            stop_flag=__controls.stop_flag,
            dry_run=dry_run,
            limit=limit,
        )
    except LookupError as e:
        raise click.UsageError(str(e))
    if not succeeded:
        raise click.exceptions.Exit(1)


@main.command()
@click.option('-m', '--module', 'modules', multiple=True)
@click.argument('paths', nargs=-1)
@click.make_pass_decorator(CLIControls, ensure=True)
def plans(
        __controls: CLIControls,
        paths: List[str],
        modules: List[str],
) -> None:
    """ Load the plans and list them without executing. """
    if __controls.registry is not None:
        registries.set_default_registry(__controls.registry)
    preload(paths=paths, modules=modules)
    registry = registries.get_default_registry()
    for plan in registry:
        extras = []
        if plan.dry_run:
            extras.append('dry-run')
        if plan.limit is not None:
            extras.append(f'limit={plan.limit}')
        if plan.timeout is not None:
            extras.append(f'timeout={plan.timeout}')
        suffix = f" ({', '.join(extras)})" if extras else ""
        click.echo(f"{plan.name}\t{plan.mode}{suffix}")
