from importlib.metadata import PackageNotFoundError, version

try:  # populated when installed or when a wheel is built
    __version__ = version("atomic-reflector")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"

from .codec import ValueNode
from .converters import Converter, ConverterRegistry
from .core import (
    ErrorKind,
    Logs,
    MemberScope,
    NO_VAL,
    ReflectorError,
    ReflectorSettings,
    configure_logging,
)
from .methods import (
    DirectExecutor,
    InvocationResult,
    MainThread,
    MatchLevel,
    MethodDescriptor,
    MethodFilter,
    ParameterFilter,
    ParameterMatch,
)
from .reflector import Reflector
from .typeinfo import TypeCatalog, description, ignore, type_id

__all__ = [
    "Reflector",
    "ReflectorSettings",
    "configure_logging",
    "ValueNode",
    "Converter",
    "ConverterRegistry",
    "TypeCatalog",
    "MethodDescriptor",
    "MethodFilter",
    "ParameterFilter",
    "MatchLevel",
    "ParameterMatch",
    "MemberScope",
    "InvocationResult",
    "DirectExecutor",
    "MainThread",
    "ErrorKind",
    "ReflectorError",
    "Logs",
    "NO_VAL",
    "description",
    "ignore",
    "type_id",
]
