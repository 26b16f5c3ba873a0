"""Parameter descriptors extracted from callable signatures.

This module provides:
- ParameterDescriptor: a self-contained, read-only description of one parameter
- extract_parameters: signature + resolved annotations of any Python callable
"""
from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, List, Mapping, Optional, Tuple

from ..core.sentinels import NO_VAL
from ..typeinfo.introspection import describe, resolve_hints, type_id

logger = logging.getLogger(__name__)

VARIADIC_KINDS = ("VAR_POSITIONAL", "VAR_KEYWORD")


class ParameterDescriptor(dict):
    """Typed parameter specification for a reflected callable.

    Behaves like a read-only mapping (``name``, ``index``, ``kind``, ``type``
    and, when declared, ``default``) so it serializes as plain JSON, while the
    resolved annotation and description stay available as attributes.

    Fields:
      - name: str (parameter name)
      - index: int (position among the reflected parameters)
      - kind: str (``POSITIONAL_ONLY``, ``KEYWORD_ONLY``, ``VAR_POSITIONAL`` ...)
      - type: str (canonical type identifier)
      - default: Any or ``NO_VAL`` when no default is declared
    """

    __slots__ = ("_name", "_index", "_kind", "_annotation", "_type", "_default", "_description")

    def __init__(
        self,
        name: str,
        index: int,
        kind: str,
        annotation: Any = Any,
        default: Any = NO_VAL,
        description: Optional[str] = None,
    ) -> None:
        type_str = type_id(annotation)
        dict.__init__(self, name=name, index=index, kind=kind, type=type_str)
        if default is not NO_VAL:
            dict.__setitem__(self, "default", default)
        self._name = name
        self._index = index
        self._kind = kind
        self._annotation = annotation
        self._type = type_str
        self._default = default
        self._description = description

    # Attribute accessors
    @property
    def name(self) -> str:
        return self._name

    @property
    def index(self) -> int:
        return self._index

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def annotation(self) -> Any:
        return self._annotation

    @property
    def type(self) -> str:
        return self._type

    @property
    def default(self) -> Any:
        return self._default

    @property
    def has_default(self) -> bool:
        return self._default is not NO_VAL

    @property
    def description(self) -> Optional[str]:
        return self._description

    @property
    def is_variadic(self) -> bool:
        return self._kind in VARIADIC_KINDS

    # Read-only mapping (prevent mutation)
    def __setitem__(self, key, value):  # pragma: no cover - trivial immutability
        raise TypeError("ParameterDescriptor is immutable")

    def __delitem__(self, key):  # pragma: no cover - trivial immutability
        raise TypeError("ParameterDescriptor is immutable")

    def to_dict(self) -> dict:
        d = {"name": self._name, "index": self._index, "kind": self._kind, "type": self._type}
        if self._default is not NO_VAL:
            d["default"] = self._default
        if self._description:
            d["description"] = self._description
        return d

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "ParameterDescriptor":
        """Rebuild from :meth:`to_dict` output; the annotation is kept as its identifier."""
        if not isinstance(d, Mapping):
            raise TypeError("ParameterDescriptor.from_dict expects a mapping")
        name, idx, kind, type_str = d.get("name"), d.get("index"), d.get("kind"), d.get("type")
        if not all(isinstance(v, t) for v, t in [(name, str), (idx, int), (kind, str), (type_str, str)]):
            raise TypeError("ParameterDescriptor.from_dict expects 'name', 'index', 'kind' and 'type'")
        return cls(
            name=name,
            index=idx,
            kind=kind,
            annotation=type_str,
            default=d.get("default", NO_VAL),
            description=d.get("description"),
        )


def extract_parameters(function: Callable, *, skip_first: bool = False) -> Tuple[List[ParameterDescriptor], Any]:
    """Extract parameter descriptors and the return annotation of ``function``.

    Parameters
    ----------
    function : Callable
        A plain function (unbound methods included).
    skip_first : bool
        Drop the first parameter (``self``/``cls`` of methods reflected
        through their class).

    Returns
    -------
    tuple[list[ParameterDescriptor], Any]
        Descriptors in signature order and the return annotation (``Any``
        when missing).

    Raises
    ------
    TypeError
        If ``function`` is not callable.
    """
    if not callable(function):
        raise TypeError(f"extract_parameters expects a callable, got {type(function)!r}")

    sig = inspect.signature(function)
    hints = resolve_hints(function)
    parameters: List[ParameterDescriptor] = []

    items = list(sig.parameters.items())
    if skip_first and items:
        items = items[1:]

    for index, (name, param) in enumerate(items):
        ann = hints.get(name, param.annotation)
        default = param.default

        # Type source: annotation, then the default's type, then Any
        if ann is inspect.Parameter.empty:
            ann = type(default) if default is not inspect.Parameter.empty and default is not None else Any

        parameters.append(
            ParameterDescriptor(
                name=name,
                index=index,
                kind=param.kind.name,
                annotation=ann,
                default=default if default is not inspect.Parameter.empty else NO_VAL,
                description=describe(ann),
            )
        )

    ret = hints.get("return", sig.return_annotation)
    if ret is inspect.Signature.empty:
        ret = Any
    return parameters, ret
