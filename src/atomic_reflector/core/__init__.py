from .Exceptions import (
    ErrorKind,
    ReflectorError,
    TypeNotFoundError,
    MethodNotFoundError,
    AmbiguousMethodError,
    ParameterMismatchError,
    ConverterError,
    UnsupportedTypeError,
    SchemaGenerationError,
    ExecutionError,
)
from .Logs import Logs, LogEntry, LogKind, padding, indent
from .Scope import MemberScope
from .Settings import ReflectorSettings, configure_logging
from .sentinels import NO_VAL

__all__ = [
    "ErrorKind",
    "ReflectorError",
    "TypeNotFoundError",
    "MethodNotFoundError",
    "AmbiguousMethodError",
    "ParameterMismatchError",
    "ConverterError",
    "UnsupportedTypeError",
    "SchemaGenerationError",
    "ExecutionError",
    "Logs",
    "LogEntry",
    "LogKind",
    "padding",
    "indent",
    "MemberScope",
    "ReflectorSettings",
    "configure_logging",
    "NO_VAL",
]
