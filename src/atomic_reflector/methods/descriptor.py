from __future__ import annotations

import functools
import inspect
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Sequence

from ..codec.node import ValueNode
from ..core.Exceptions import ParameterMismatchError
from ..schema.generator import returns_nothing, unwrap_awaitable
from ..typeinfo.introspection import describe, short_name, type_id
from .parameters import ParameterDescriptor, extract_parameters

if TYPE_CHECKING:  # pragma: no cover
    from ..schema.generator import SchemaGenerator


# ───────────────────────────────────────────────────────────────────────────────
# Filters
# ───────────────────────────────────────────────────────────────────────────────
@dataclass
class ParameterFilter:
    name: Optional[str] = None
    type_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"typeName": self.type_name, "name": self.name}

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "ParameterFilter":
        return cls(name=d.get("name"), type_name=d.get("typeName"))

    def __str__(self) -> str:
        return f"{self.type_name or '?'} {self.name or '?'}"


@dataclass
class MethodFilter:
    """Partial method specification used as a search key.

    Every field is optional; an unset field matches anything. ``parameters``
    set to ``None`` means "any parameter list", while an empty list asks for
    a method without parameters.
    """

    namespace: Optional[str] = None
    type_name: Optional[str] = None
    method_name: Optional[str] = None
    parameters: Optional[List[ParameterFilter]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "namespace": self.namespace,
            "typeName": self.type_name,
            "methodName": self.method_name,
            "inputParameters": None if self.parameters is None else [p.to_dict() for p in self.parameters],
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "MethodFilter":
        params = d.get("inputParameters")
        return cls(
            namespace=d.get("namespace"),
            type_name=d.get("typeName"),
            method_name=d.get("methodName"),
            parameters=None if params is None else [ParameterFilter.from_dict(p) for p in params],
        )

    def with_arguments(self, arguments: Any) -> "MethodFilter":
        """Copy of this filter whose parameter list is taken from call arguments.

        ``arguments`` is a sequence of named :class:`ValueNode` objects or a
        mapping of name to value. An explicit parameter list is kept as is.
        """
        if self.parameters is not None or arguments is None:
            return self
        if isinstance(arguments, Mapping):
            params = [
                ParameterFilter(name=name, type_name=value.type_name if isinstance(value, ValueNode) else None)
                for name, value in arguments.items()
            ]
        else:
            params = [ParameterFilter(name=node.name, type_name=node.type_name) for node in arguments]
        return MethodFilter(self.namespace, self.type_name, self.method_name, params)

    def __str__(self) -> str:
        head = ".".join(part for part in (self.namespace, self.type_name, self.method_name) if part)
        params = "" if self.parameters is None else ", ".join(str(p) for p in self.parameters)
        return f"{head or '*'}({params})"


# ───────────────────────────────────────────────────────────────────────────────
# Method descriptor
# ───────────────────────────────────────────────────────────────────────────────
class MethodDescriptor:
    """Resolved identity of one reflected method or function.

    Parameters and schemas are derived from the raw function once; the
    argument and return schemas are generated lazily on first access and
    kept for the lifetime of the descriptor.
    """

    def __init__(
        self,
        function: Callable[..., Any],
        *,
        owner: Optional[type] = None,
        name: Optional[str] = None,
        is_static: bool = False,
        is_classmethod: bool = False,
        generator: Optional["SchemaGenerator"] = None,
    ) -> None:
        if not callable(function):
            raise ParameterMismatchError(f"Expected a method or function, got {type(function).__name__} {function!r}.")
        self._function = function
        self._owner = owner
        self._name = name or getattr(function, "__name__", "unnamed_callable")
        self._is_classmethod = is_classmethod
        self._is_static = is_static or is_classmethod or owner is None
        self._generator = generator

        skip_first = owner is not None and (is_classmethod or not self._is_static)
        try:
            self._parameters, self._return_annotation = extract_parameters(function, skip_first=skip_first)
        except (TypeError, ValueError) as e:
            raise ParameterMismatchError(f"Cannot read the signature of '{self._name}': {e}") from e
        self._is_async = inspect.iscoroutinefunction(function)

    # ------------------------------------------------------------------ #
    # Properties
    # ------------------------------------------------------------------ #
    @property
    def function(self) -> Callable[..., Any]:
        return self._function

    @property
    def owner(self) -> Optional[type]:
        return self._owner

    @property
    def name(self) -> str:
        return self._name

    @property
    def namespace(self) -> Optional[str]:
        if self._owner is not None:
            return self._owner.__module__
        return getattr(self._function, "__module__", None)

    @property
    def type_name(self) -> Optional[str]:
        return self._owner.__qualname__ if self._owner is not None else None

    @property
    def full_name(self) -> str:
        return ".".join(part for part in (self.namespace, self.type_name, self._name) if part)

    @property
    def is_public(self) -> bool:
        return not self._name.startswith("_")

    @property
    def is_static(self) -> bool:
        return self._is_static

    @property
    def is_classmethod(self) -> bool:
        return self._is_classmethod

    @property
    def is_async(self) -> bool:
        return self._is_async

    @property
    def parameters(self) -> List[ParameterDescriptor]:
        return list(self._parameters)

    @property
    def return_annotation(self) -> Any:
        return self._return_annotation

    @property
    def result_annotation(self) -> Any:
        """Return annotation with the asynchronous wrapper removed."""
        if self._is_async:
            return self._return_annotation
        return unwrap_awaitable(self._return_annotation)

    @property
    def returns_value(self) -> bool:
        return not returns_nothing(self.result_annotation)

    @property
    def return_type(self) -> Optional[str]:
        return type_id(self.result_annotation) if self.returns_value else None

    @property
    def description(self) -> Optional[str]:
        return describe(self._function)

    @functools.cached_property
    def arguments_schema(self) -> Dict[str, Any]:
        return self._require_generator().get_arguments_schema(self)

    @functools.cached_property
    def return_schema(self) -> Optional[Dict[str, Any]]:
        return self._require_generator().get_return_schema(self)

    @property
    def signature(self) -> str:
        """Human-readable form ``module.Type.name(a: int, b: str = 'x') -> bool``."""
        params: List[str] = []
        for spec in self._parameters:
            prefix = "*" if spec.kind == "VAR_POSITIONAL" else "**" if spec.kind == "VAR_KEYWORD" else ""
            text = f"{prefix}{spec.name}: {short_name(spec.annotation)}"
            if spec.has_default:
                text += f" = {spec.default!r}"
            params.append(text)
        ret = short_name(self.result_annotation) if self.returns_value else "None"
        head = "async " if self._is_async else ""
        return f"{head}{self.full_name}({', '.join(params)}) -> {ret}"

    # ------------------------------------------------------------------ #
    # Binding
    # ------------------------------------------------------------------ #
    def bind(self, target: Any = None) -> Callable[..., Any]:
        """Callable ready to receive the method arguments."""
        if self._is_classmethod:
            return functools.partial(self._function, self._owner)
        if self._is_static:
            return self._function
        return functools.partial(self._function, target)

    def accepts(self, names: Sequence[str]) -> bool:
        """True when ``names`` cover every required parameter and nothing unknown."""
        declared = {p.name for p in self._parameters if not p.is_variadic}
        open_keywords = any(p.kind == "VAR_KEYWORD" for p in self._parameters)
        if not open_keywords and not set(names) <= declared:
            return False
        required = {p.name for p in self._parameters if not p.is_variadic and not p.has_default}
        return required <= set(names)

    # ------------------------------------------------------------------ #
    # Serialization
    # ------------------------------------------------------------------ #
    def to_dict(self, include_schemas: bool = True) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "namespace": self.namespace,
            "typeName": self.type_name,
            "methodName": self._name,
            "isPublic": self.is_public,
            "isStatic": self._is_static,
            "isAsync": self._is_async,
            "returnType": self.return_type,
            "inputParameters": [{"typeName": p.type, "name": p.name} for p in self._parameters],
        }
        if self.description:
            d["description"] = self.description
        if include_schemas and self._generator is not None:
            d["inputParametersSchema"] = self.arguments_schema
            d["returnSchema"] = self.return_schema
        return d

    def _require_generator(self) -> "SchemaGenerator":
        if self._generator is None:
            raise RuntimeError(f"{self.full_name}: no schema generator attached")
        return self._generator

    def __repr__(self) -> str:
        return f"<MethodDescriptor {self.signature}>"
