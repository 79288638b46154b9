"""
Detecting the library's own version.

The version is not in the codebase: it is taken from the versioning system
at packaging time, and is read from the installed distribution's metadata.
It is determined only once at startup when the code is loaded.
"""
import importlib.metadata
from typing import Optional

version: Optional[str] = None

try:
    name, *_ = __name__.split('.')  # usually "callflow", unless renamed/forked.
    version = importlib.metadata.version(name)
except importlib.metadata.PackageNotFoundError:
    pass  # not installed, e.g. run from the source tree.
