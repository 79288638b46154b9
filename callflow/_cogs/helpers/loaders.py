"""
Module- and file-loading to trigger the plans to be registered.

Since the plans are registered with decorators (``@callflow.plan``),
the files/modules with these plans should be loaded first,
thus executing the decorators.

The files/modules to be loaded are usually specified on the command-line,
the same way as for Python itself:

* Plain files (`callflow run file.py`).
* Importable modules (`callflow run -m pkg.mod`).

Multiple files/modules can be specified. They are loaded in the given order.
"""
import importlib
import importlib.util
import logging
import os.path
import sys
import types
from typing import Callable, Iterable, Optional

logger = logging.getLogger(__name__)

# Notified with the file path or the module name once it is loaded.
LoadedFn = Callable[[str], None]


def preload(
        paths: Iterable[str],
        modules: Iterable[str],
        *,
        loaded: Optional[LoadedFn] = None,
) -> None:
    """
    Load the plans' scripts & modules so that their decorators are executed.

    The scripts go first, then the modules, each in the order as given.
    The first failure is raised as is: the remaining sources are not loaded.
    """
    for idx, path in enumerate(paths):
        _load_script(path, name=f'__callflow_script_{idx}__')
        logger.debug(f"Loaded the plans' script {path!r}.")
        if loaded is not None:
            loaded(path)

    for name in modules:
        importlib.import_module(name)
        logger.debug(f"Imported the plans' module {name!r}.")
        if loaded is not None:
            loaded(name)


def _load_script(path: str, *, name: str) -> types.ModuleType:
    # The script's siblings are importable from the script, as with `python file.py`.
    sys.path.insert(0, os.path.abspath(os.path.dirname(path)))
    spec = importlib.util.spec_from_file_location(name, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load the plans from {path!r}: not a Python script.")
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    spec.loader.exec_module(module)
    return module
