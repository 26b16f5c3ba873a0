# ───────────────────────────────────────────────────────────────────────────────
# Exceptions
# ───────────────────────────────────────────────────────────────────────────────
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Stable error categories surfaced by the public entry points."""

    TYPE_NOT_FOUND = "TypeNotFound"
    METHOD_NOT_FOUND = "MethodNotFound"
    AMBIGUOUS_METHOD = "AmbiguousMethod"
    PARAMETER_MISMATCH = "ParameterMismatch"
    UNSUPPORTED_TYPE = "UnsupportedType"
    SCHEMA_GENERATION_FAILED = "SchemaGenerationFailed"
    EXECUTION_FAILED = "ExecutionFailed"


class ReflectorError(Exception):
    """Base class for every failure raised by the reflection engine.

    Each subclass pins a :class:`ErrorKind`. ``depth`` is the nesting level the
    failure was raised at; it drives the indentation of multi-line messages.
    """

    kind: ErrorKind = ErrorKind.EXECUTION_FAILED

    def __init__(self, message: str, *, depth: int = 0) -> None:
        super().__init__(message)
        self.message = message
        self.depth = depth

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message, "depth": self.depth}


class TypeNotFoundError(ReflectorError, LookupError):
    """Raised when a recorded type name cannot be resolved against the catalog."""

    kind = ErrorKind.TYPE_NOT_FOUND

    def __init__(self, type_name: Optional[str], message: Optional[str] = None, *, depth: int = 0) -> None:
        self.type_name = type_name
        super().__init__(message or f"Type '{type_name}' not found.", depth=depth)


class MethodNotFoundError(ReflectorError, LookupError):
    """Raised when no candidate satisfies a method filter."""

    kind = ErrorKind.METHOD_NOT_FOUND


class AmbiguousMethodError(ReflectorError):
    """Raised when a single method was required but several matched."""

    kind = ErrorKind.AMBIGUOUS_METHOD

    def __init__(self, message: str, candidates: Optional[list] = None, *, depth: int = 0) -> None:
        super().__init__(message, depth=depth)
        self.candidates = list(candidates or [])


class ParameterMismatchError(ReflectorError, ValueError):
    """Raised for unknown/missing parameters or values of an incompatible type."""

    kind = ErrorKind.PARAMETER_MISMATCH


class ConverterError(ParameterMismatchError):
    """Raised when a converter cannot read a payload as the requested type."""


class UnsupportedTypeError(ReflectorError, TypeError):
    """Raised for types that have neither a converter nor an introspection path."""

    kind = ErrorKind.UNSUPPORTED_TYPE


class SchemaGenerationError(ReflectorError):
    """Raised while walking a type for its schema; reported as an ``error`` field."""

    kind = ErrorKind.SCHEMA_GENERATION_FAILED


class ExecutionError(ReflectorError, RuntimeError):
    """Raised when the invoked method (or its target construction) fails at runtime."""

    kind = ErrorKind.EXECUTION_FAILED
