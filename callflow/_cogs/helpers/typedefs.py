"""
Rudimentary type [re-]definitions for cross-versioned Python & mypy.

New mypy versions bring type-sheds with StdLib types defined as generics,
while the older Python runtimes do not support the subscripted syntax.
Example: logging.LoggerAdapter.
"""
import logging
from typing import TYPE_CHECKING, Any, Union

if TYPE_CHECKING:
    LoggerAdapter = logging.LoggerAdapter[Any]
else:
    LoggerAdapter = logging.LoggerAdapter

# As publicly exposed: we only promise that it is based on one of the built-in loggable classes.
Logger = Union[logging.Logger, LoggerAdapter]
