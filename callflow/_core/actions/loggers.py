"""
Per-call logging: the loggers, the formatters, and the logging setup.

Every call is logged via its own logger adapter, which carries a reference
to the call (its action, and the plan if the call belongs to one).
The reference is then rendered either as a message prefix in the text logs,
or as a separate field in the JSON logs --- for the log parsers.
"""
import copy
import enum
import logging
from typing import TYPE_CHECKING, Any, MutableMapping, Optional, TextIO, Tuple

# Luckily, we do not mock these ones in tests, so we can import them into our namespace.
try:
    # python-json-logger>=3.1.0
    from pythonjsonlogger.core import RESERVED_ATTRS as _pjl_RESERVED_ATTRS
    from pythonjsonlogger.json import JsonFormatter as _pjl_JsonFormatter
except ImportError:
    # python-json-logger<3.1.0
    from pythonjsonlogger.jsonlogger import JsonFormatter as _pjl_JsonFormatter  # type: ignore
    from pythonjsonlogger.jsonlogger import RESERVED_ATTRS as _pjl_RESERVED_ATTRS  # type: ignore

from callflow._cogs.helpers import typedefs

logger = logging.getLogger('callflow.calls')

# A key for call references in JSON logs, as seen by the log parsers.
DEFAULT_JSON_REFKEY = 'call'


class LogFormat(enum.Enum):
    """ Log formats, as specified on CLI. """
    PLAIN = '%(message)s'
    FULL = '[%(asctime)s] %(name)-20.20s [%(levelname)-8.8s] %(message)s'
    JSON = '-json-'  # not used for formatting, only for detection


class CallFormatter(logging.Formatter):
    pass


class CallTextFormatter(CallFormatter, logging.Formatter):
    pass


class CallJsonFormatter(CallFormatter, _pjl_JsonFormatter):
    def __init__(
            self,
            *args: Any,
            refkey: Optional[str] = None,
            **kwargs: Any,
    ) -> None:
        # Avoid type checking, as the args are not in the parent consructor.
        reserved_attrs = kwargs.pop('reserved_attrs', _pjl_RESERVED_ATTRS)
        reserved_attrs = set(reserved_attrs)
        reserved_attrs |= {'call_ref'}
        kwargs.update(reserved_attrs=reserved_attrs)
        kwargs.setdefault('timestamp', True)
        super().__init__(*args, **kwargs)
        self._refkey: str = refkey or DEFAULT_JSON_REFKEY

    def add_fields(
            self,
            log_record: MutableMapping[str, object],
            record: logging.LogRecord,
            message_dict: MutableMapping[str, object],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        if self._refkey and hasattr(record, 'call_ref'):
            ref = getattr(record, 'call_ref')
            log_record[self._refkey] = ref

        if 'severity' not in log_record:
            log_record['severity'] = (
                "debug" if record.levelno <= logging.DEBUG else
                "info" if record.levelno <= logging.INFO else
                "warn" if record.levelno <= logging.WARNING else
                "error" if record.levelno <= logging.ERROR else
                "fatal")


class CallPrefixingMixin(CallFormatter):
    def format(self, record: logging.LogRecord) -> str:
        if hasattr(record, 'call_ref'):
            ref = getattr(record, 'call_ref')
            plan = ref.get('plan') or ''
            action = ref.get('action') or ''
            prefix = f"[{plan}/{action}]" if plan else f"[{action}]"
            record = copy.copy(record)  # shallow
            record.msg = f"{prefix} {record.msg}"
        return super().format(record)


class CallPrefixingTextFormatter(CallPrefixingMixin, CallTextFormatter):
    pass


class CallPrefixingJsonFormatter(CallPrefixingMixin, CallJsonFormatter):
    pass


class CallLogger(typedefs.LoggerAdapter):
    """
    A logger/adapter to carry the call identifiers for formatting.

    Constructed by the runners for each individual call, and passed
    to all the hooks of that call as the ``logger`` kwarg.

    Only the identifiers are carried (not the payload): the payloads can be
    big, can contain credentials, and are modified by the hooks in place.
    """

    def __init__(
            self,
            *,
            action: str,
            plan: Optional[str] = None,
            base: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(base if base is not None else logger, dict(
            call_ref=dict(
                action=action,
                plan=plan,
            ),
        ))

    def process(
            self,
            msg: str,
            kwargs: MutableMapping[str, Any],
    ) -> Tuple[str, MutableMapping[str, Any]]:
        # Native logging overwrites the message's extra with the adapter's extra.
        # We merge them, so that both message's & adapter's extras are available.
        kwargs["extra"] = dict(self.extra or {}, **kwargs.get('extra', {}))
        return msg, kwargs


# Used to identify and remove our own handlers on repeated configuration (e.g. in CLI tests).
if TYPE_CHECKING:
    class _CallflowStreamHandler(logging.StreamHandler[TextIO]):
        pass
else:
    class _CallflowStreamHandler(logging.StreamHandler):
        pass


def configure(
        debug: Optional[bool] = None,
        verbose: Optional[bool] = None,
        quiet: Optional[bool] = None,
        log_format: LogFormat = LogFormat.FULL,
        log_prefix: Optional[bool] = False,
        log_refkey: Optional[str] = None,
) -> None:
    log_level = 'DEBUG' if debug or verbose else 'WARNING' if quiet else 'INFO'
    formatter = make_formatter(log_format=log_format, log_prefix=log_prefix, log_refkey=log_refkey)
    handler = _CallflowStreamHandler()
    handler.setFormatter(formatter)
    logger = logging.getLogger()
    logger.handlers[:] = [h for h in logger.handlers if not isinstance(h, _CallflowStreamHandler)]
    logger.addHandler(handler)
    logger.setLevel(log_level)

    # Prevent the low-level logging unless in the debug mode. Keep only our own messages.
    # For no-propagation loggers, add a dummy null handler to prevent printing the messages.
    for name in ['asyncio']:
        logger = logging.getLogger(name)
        logger.propagate = bool(debug)
        if not debug:
            logger.handlers[:] = [logging.NullHandler()]


def make_formatter(
        log_format: LogFormat = LogFormat.FULL,
        log_prefix: Optional[bool] = False,
        log_refkey: Optional[str] = None,
) -> CallFormatter:
    log_prefix = log_prefix if log_prefix is not None else bool(log_format is not LogFormat.JSON)
    if log_format is LogFormat.JSON:
        if log_prefix:
            return CallPrefixingJsonFormatter(refkey=log_refkey)
        else:
            return CallJsonFormatter(refkey=log_refkey)
    elif isinstance(log_format, LogFormat):
        if log_prefix:
            return CallPrefixingTextFormatter(log_format.value)
        else:
            return CallTextFormatter(log_format.value)
    elif isinstance(log_format, str):
        if log_prefix:
            return CallPrefixingTextFormatter(log_format)
        else:
            return CallTextFormatter(log_format)
    else:
        raise ValueError(f"Unsupported log format: {log_format!r}")
