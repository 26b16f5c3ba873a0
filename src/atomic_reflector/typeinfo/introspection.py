"""Type identity and introspection.

Every other component sees runtime types through this module. It answers four
questions about an annotation:

- what is its canonical identifier (:func:`type_id`),
- is it primitive, enumerable, a mapping or a composite,
- which members (fields and properties) does a composite declare,
- is there a human-readable description attached to it.

Annotations are plain Python annotations: classes, parametrized generics,
``Optional``/``Union``, ``Annotated``, ``Literal``, ``TypeVar`` and ``Any``.
"""
from __future__ import annotations

import collections
import collections.abc as cabc
import ctypes
import dataclasses
import datetime
import decimal
import inspect
import io
import logging
import types
import typing
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import (
    Annotated,
    Any,
    ClassVar,
    Dict,
    ForwardRef,
    List,
    Literal,
    Optional,
    Tuple,
    TypeVar,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from ..core.Scope import MemberScope

logger = logging.getLogger(__name__)

NoneType = type(None)
ARRAY_SUFFIX = "Array"

PRIMITIVE_TYPES: Tuple[type, ...] = (
    bool,
    int,
    float,
    complex,
    decimal.Decimal,
    str,
    bytes,
    datetime.datetime,
    datetime.date,
    datetime.time,
    datetime.timedelta,
    uuid.UUID,
)

_ZERO_VALUES: Dict[type, Any] = {
    bool: False,
    int: 0,
    float: 0.0,
    complex: 0j,
    decimal.Decimal: decimal.Decimal(0),
    datetime.datetime: datetime.datetime.min,
    datetime.date: datetime.date.min,
    datetime.time: datetime.time.min,
    datetime.timedelta: datetime.timedelta(0),
    uuid.UUID: uuid.UUID(int=0),
}

_SEQUENCE_ORIGINS = (
    cabc.Iterable,
    cabc.Collection,
    cabc.Sequence,
    cabc.MutableSequence,
    cabc.Set,
    cabc.MutableSet,
)
_MAPPING_ORIGINS = (cabc.Mapping, cabc.MutableMapping)

_UNSUPPORTED_TYPES: Tuple[type, ...] = (
    types.ModuleType,
    types.FunctionType,
    types.BuiltinFunctionType,
    types.MethodType,
    types.GeneratorType,
    types.CoroutineType,
    types.AsyncGeneratorType,
    types.FrameType,
    types.TracebackType,
    types.CodeType,
    io.IOBase,
    memoryview,
    ctypes._SimpleCData,
    ctypes._Pointer,
)


# ───────────────────────────────────────────────────────────────────────────────
# Annotation markers
# ───────────────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class Description:
    """``Annotated`` marker carrying a human-readable description.

    >>> age: Annotated[int, Description("Age in years")]
    """

    text: str


class _IgnoreMarker:
    __slots__ = ()

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return "Ignore"


Ignore = _IgnoreMarker()


def description(text: str):
    """Decorator attaching a description to a class, function or method."""

    def decorate(obj):
        target = obj.__func__ if isinstance(obj, (staticmethod, classmethod)) else obj
        if isinstance(target, property):
            target = target.fget
        target.__description__ = text
        return obj

    return decorate


def ignore(obj):
    """Decorator excluding a property getter or method from reflection."""
    target = obj.fget if isinstance(obj, property) else obj
    target = target.__func__ if isinstance(target, (staticmethod, classmethod)) else target
    target.__reflector_ignore__ = True
    return obj


# ───────────────────────────────────────────────────────────────────────────────
# Unwrapping
# ───────────────────────────────────────────────────────────────────────────────
def _is_union(tp: Any) -> bool:
    return get_origin(tp) in (Union, types.UnionType)


def strip_annotated(tp: Any) -> Any:
    while get_origin(tp) is Annotated:
        tp = get_args(tp)[0]
    return tp


def annotated_metadata(tp: Any) -> Tuple[Any, ...]:
    """Collect ``Annotated`` metadata from ``tp`` and its nullable wrapper."""
    found: List[Any] = []
    while True:
        if get_origin(tp) is Annotated:
            found.extend(tp.__metadata__)
            tp = get_args(tp)[0]
        elif _is_union(tp):
            rest = [a for a in get_args(tp) if a is not NoneType]
            if len(rest) != 1:
                break
            tp = rest[0]
        else:
            break
    return tuple(found)


def unwrap_optional(tp: Any) -> Tuple[Any, bool]:
    """Return ``(inner, nullable)`` with ``Optional``/``Annotated`` removed."""
    nullable = False
    while True:
        tp = strip_annotated(tp)
        if isinstance(tp, TypeVar):
            tp = tp.__bound__ if tp.__bound__ is not None else Any
            continue
        if _is_union(tp):
            args = get_args(tp)
            rest = tuple(a for a in args if a is not NoneType)
            if len(rest) != len(args):
                nullable = True
            if len(rest) == 1:
                tp = rest[0]
                continue
            return Union[rest], nullable
        return tp, nullable


def unwrap(tp: Any) -> Any:
    return unwrap_optional(tp)[0]


def is_nullable(tp: Any) -> bool:
    return tp is None or tp is NoneType or unwrap_optional(tp)[1]


def is_union(tp: Any) -> bool:
    """True for a union that still has two or more non-null branches."""
    return _is_union(unwrap(tp))


def union_members(tp: Any) -> Tuple[Any, ...]:
    t = unwrap(tp)
    return tuple(a for a in get_args(t) if a is not NoneType) if _is_union(t) else (t,)


# ───────────────────────────────────────────────────────────────────────────────
# Classification
# ───────────────────────────────────────────────────────────────────────────────
def is_any(tp: Any) -> bool:
    t = unwrap(tp)
    return t is Any or t is object or t is inspect.Parameter.empty


def is_enum(tp: Any) -> bool:
    t = unwrap(tp)
    return inspect.isclass(t) and issubclass(t, Enum)


def is_literal(tp: Any) -> bool:
    return get_origin(unwrap(tp)) is Literal


def is_primitive(tp: Any) -> bool:
    t = unwrap(tp)
    if is_enum(t) or is_literal(t):
        return True
    return inspect.isclass(t) and issubclass(t, PRIMITIVE_TYPES)


def is_value_type(tp: Any) -> bool:
    """Primitive types that have a zero value (everything but text and bytes)."""
    t = unwrap(tp)
    if is_literal(t):
        return not any(isinstance(v, str) for v in get_args(t))
    if is_enum(t):
        return True
    return is_primitive(t) and not issubclass(t, (str, bytes))


def zero_value(tp: Any) -> Any:
    """The zero value of a value type, ``None`` for anything else."""
    t = unwrap(tp)
    if is_enum(t):
        members = list(t)
        return members[0] if members else None
    if is_literal(t):
        values = get_args(t)
        return values[0] if values else None
    if inspect.isclass(t):
        for base in t.__mro__:
            if base in _ZERO_VALUES:
                return _ZERO_VALUES[base]
    return None


def container_origin(tp: Any) -> Any:
    t = unwrap(tp)
    return get_origin(t) or t


def is_mapping(tp: Any) -> bool:
    origin = container_origin(tp)
    if origin in _MAPPING_ORIGINS:
        return True
    return inspect.isclass(origin) and issubclass(origin, dict)


def is_fixed_tuple(tp: Any) -> bool:
    """A tuple whose positions carry their own types: ``tuple[int, str]``, not ``tuple[int, ...]``."""
    t = unwrap(tp)
    origin = get_origin(t)
    if not inspect.isclass(origin) or not issubclass(origin, tuple) or _is_named_tuple(origin):
        return False
    args = get_args(t)
    return bool(args) and not (len(args) == 2 and args[1] is Ellipsis)


def is_enumerable(tp: Any) -> bool:
    t = unwrap(tp)
    origin = get_origin(t) or t
    if origin in _SEQUENCE_ORIGINS:
        return True
    if not inspect.isclass(origin) or is_primitive(origin) or is_mapping(origin) or is_fixed_tuple(t):
        return False
    return issubclass(origin, (list, tuple, set, frozenset, collections.deque)) and not _is_named_tuple(origin)


def enumerable_item_type(tp: Any) -> Optional[Any]:
    """Item type of an enumerable annotation, ``None`` when not enumerable."""
    if not is_enumerable(tp):
        return None
    args = get_args(unwrap(tp))
    return args[0] if args else Any


def generic_arguments(tp: Any) -> Tuple[Any, ...]:
    return tuple(a for a in get_args(unwrap(tp)) if a is not Ellipsis)


def is_unsupported(tp: Any) -> bool:
    t = unwrap(tp)
    return inspect.isclass(t) and issubclass(t, _UNSUPPORTED_TYPES)


def is_unsupported_value(value: Any) -> bool:
    return isinstance(value, _UNSUPPORTED_TYPES) or inspect.isroutine(value)


def is_composite(tp: Any) -> bool:
    """A class with declared members: dataclasses, named tuples, plain classes."""
    t = unwrap(tp)
    if is_any(t) or t is NoneType or _is_union(t) or is_literal(t):
        return False
    origin = get_origin(t) or t
    if not inspect.isclass(origin):
        return False
    return not (
        is_primitive(origin) or is_enumerable(t) or is_fixed_tuple(t) or is_mapping(t) or is_unsupported(origin)
    )


def is_assignable(source: Any, target: Any) -> bool:
    """Whether a value of ``source`` type may be passed where ``target`` is declared."""
    if is_any(target):
        return True
    if source is None or source is NoneType:
        return is_nullable(target)
    src = unwrap(source)
    if is_union(target):
        return any(is_assignable(src, branch) for branch in union_members(target))
    dst = unwrap(target)
    if is_literal(dst):
        return is_literal(src) and set(get_args(src)) <= set(get_args(dst))
    src_origin, dst_origin = get_origin(src) or src, get_origin(dst) or dst
    if not (inspect.isclass(src_origin) and inspect.isclass(dst_origin)):
        return src == dst
    if dst_origin is float and src_origin is int and src_origin is not bool:
        return True
    if dst_origin is complex and src_origin in (int, float):
        return True
    if not issubclass(src_origin, dst_origin):
        return False
    src_args, dst_args = generic_arguments(src), generic_arguments(dst)
    if not dst_args or not src_args:
        return True
    if len(src_args) != len(dst_args):
        return False
    return all(is_assignable(s, d) for s, d in zip(src_args, dst_args))


def _is_named_tuple(cls: Any) -> bool:
    return inspect.isclass(cls) and issubclass(cls, tuple) and hasattr(cls, "_fields")


# ───────────────────────────────────────────────────────────────────────────────
# Identity
# ───────────────────────────────────────────────────────────────────────────────
def _class_id(cls: type) -> str:
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


def type_id(tp: Any) -> str:
    """Canonical identifier of an annotation.

    - ``Optional``/``Annotated`` wrappers are transparent.
    - builtins use their bare name, other classes ``module.QualName``.
    - enumerables append ``Array`` to the item identifier (one per rank).
    - other generics render as ``Outer<Arg1,Arg2>``; fixed-arity tuples too (``tuple<int,str>``).
    """
    t = unwrap(tp)
    if t is Any or t is inspect.Parameter.empty:
        return "Any"
    if t is None or t is NoneType:
        return "None"
    if isinstance(t, str):
        return t
    if isinstance(t, ForwardRef):
        return t.__forward_arg__
    if is_enumerable(t):
        return type_id(enumerable_item_type(t)) + ARRAY_SUFFIX
    origin = get_origin(t)
    if origin is Literal:
        return "Literal<" + ",".join(repr(v) for v in get_args(t)) + ">"
    if _is_union(t):
        return "Union<" + ",".join(type_id(a) for a in get_args(t)) + ">"
    if origin is not None:
        args = generic_arguments(t)
        base = _class_id(origin) if inspect.isclass(origin) else str(origin)
        if not args:
            return base
        return f"{base}<{','.join(type_id(a) for a in args)}>"
    if inspect.isclass(t):
        return _class_id(t)
    return getattr(t, "__name__", None) or repr(t)


def short_name(ann: Any) -> str:
    """Readable rendering of an annotation for messages (``list[Node]``)."""
    if ann is inspect.Parameter.empty or ann is Any:
        return "Any"
    if ann is None or ann is NoneType:
        return "None"
    if isinstance(ann, str):
        return ann
    if isinstance(ann, ForwardRef):
        return ann.__forward_arg__
    ann = strip_annotated(ann)
    if _is_union(ann):
        args = get_args(ann)
        rest = [a for a in args if a is not NoneType]
        if len(rest) == 1 and len(args) == 2:
            return f"Optional[{short_name(rest[0])}]"
        return " | ".join(short_name(a) for a in args)
    origin = get_origin(ann)
    if origin is Literal:
        return f"Literal[{', '.join(repr(a) for a in get_args(ann))}]"
    if origin is not None:
        args = get_args(ann)
        origin_str = short_name(origin)
        if not args:
            return origin_str
        return f"{origin_str}[{', '.join('...' if a is Ellipsis else short_name(a) for a in args)}]"
    name = getattr(ann, "__name__", None)
    return name if name else str(ann)


# ───────────────────────────────────────────────────────────────────────────────
# Descriptions
# ───────────────────────────────────────────────────────────────────────────────
def describe(obj: Any) -> Optional[str]:
    """Attached description of a type, member or annotation, or ``None``.

    Sources, in order: ``Annotated[..., Description(...)]`` metadata, the
    ``description`` entry of dataclass field metadata, and the
    ``__description__`` attribute set by :func:`description`. Empty strings
    count as absent.
    """
    for meta in annotated_metadata(obj):
        if isinstance(meta, Description) and meta.text:
            return meta.text
    if isinstance(obj, dataclasses.Field):
        text = obj.metadata.get("description")
        return text or None
    if isinstance(obj, property):
        obj = obj.fget
    if isinstance(obj, (staticmethod, classmethod)):
        obj = obj.__func__
    if inspect.isclass(obj):
        text = vars(obj).get("__description__")
    else:
        text = getattr(obj, "__description__", None)
    return text if isinstance(text, str) and text else None


# ───────────────────────────────────────────────────────────────────────────────
# Members
# ───────────────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class MemberInfo:
    name: str
    annotation: Any
    kind: str  # "field" or "property"
    description: Optional[str] = None
    writable: bool = True

    @property
    def is_public(self) -> bool:
        return not self.name.startswith("_")


def resolve_hints(obj: Any) -> Dict[str, Any]:
    """``get_type_hints`` with extras, falling back to raw annotations."""
    try:
        return get_type_hints(obj, include_extras=True)
    except Exception as e:  # unresolved forward references, exotic objects
        logger.debug(f"Falling back to raw annotations for {obj!r}: {e}")
    raw: Dict[str, Any] = {}
    if inspect.isclass(obj):
        for klass in reversed(obj.__mro__):
            raw.update(getattr(klass, "__annotations__", {}) or {})
    else:
        raw.update(getattr(obj, "__annotations__", {}) or {})
    return raw


def _type_var_map(tp: Any) -> Tuple[Any, Dict[Any, Any]]:
    t = unwrap(tp)
    origin = get_origin(t)
    if origin is None:
        return t, {}
    params = getattr(origin, "__parameters__", ())
    return origin, dict(zip(params, get_args(t)))


def substitute(ann: Any, mapping: Dict[Any, Any]) -> Any:
    """Replace type variables in ``ann`` using ``mapping``."""
    if not mapping:
        return ann
    if isinstance(ann, TypeVar):
        return mapping.get(ann, ann)
    params = getattr(ann, "__parameters__", ())
    if params and get_origin(ann) is not None:
        try:
            return ann[tuple(mapping.get(p, p) for p in params)]
        except TypeError:
            return ann
    return ann


def _is_class_var(ann: Any) -> bool:
    ann = strip_annotated(ann)
    return ann is ClassVar or get_origin(ann) is ClassVar


def fields_of(tp: Any, scope: MemberScope = MemberScope.DEFAULT) -> List[MemberInfo]:
    """Declared instance fields of a composite, in declaration order."""
    cls, mapping = _type_var_map(tp)
    if not inspect.isclass(cls):
        return []
    hints = resolve_hints(cls)

    entries: List[Tuple[str, Any, Optional[str]]] = []
    if dataclasses.is_dataclass(cls):
        for f in dataclasses.fields(cls):
            if f.metadata.get("ignore") or f.metadata.get("deprecated"):
                continue
            entries.append((f.name, hints.get(f.name, f.type), describe(f)))
    elif _is_named_tuple(cls):
        for name in cls._fields:
            entries.append((name, hints.get(name, Any), None))
    else:
        for name, ann in hints.items():
            entries.append((name, ann, None))

    members: List[MemberInfo] = []
    for name, ann, text in entries:
        if _is_class_var(ann) or Ignore in annotated_metadata(ann):
            continue
        if not scope.admits(public=not name.startswith("_"), static=False):
            continue
        members.append(
            MemberInfo(
                name=name,
                annotation=substitute(ann, mapping),
                kind="field",
                description=describe(ann) or text,
            )
        )
    return members


def properties_of(tp: Any, scope: MemberScope = MemberScope.DEFAULT, *, writable_only: bool = False) -> List[MemberInfo]:
    """``property`` members of a composite; overrides replace base definitions."""
    cls, mapping = _type_var_map(tp)
    if not inspect.isclass(cls):
        return []
    found: Dict[str, property] = {}
    for klass in reversed(cls.__mro__):
        if klass is object:
            continue
        for name, attr in vars(klass).items():
            if isinstance(attr, property):
                found[name] = attr
            elif name in found:
                del found[name]

    members: List[MemberInfo] = []
    for name, prop in found.items():
        getter = prop.fget
        if getter is None or getattr(getter, "__reflector_ignore__", False):
            continue
        if getattr(getter, "__deprecated__", None):
            continue
        if writable_only and prop.fset is None:
            continue
        if not scope.admits(public=not name.startswith("_"), static=False):
            continue
        ann = resolve_hints(getter).get("return", Any)
        members.append(
            MemberInfo(
                name=name,
                annotation=substitute(ann, mapping),
                kind="property",
                description=describe(ann) or describe(getter),
                writable=prop.fset is not None,
            )
        )
    return members


__all__ = [
    "ARRAY_SUFFIX",
    "PRIMITIVE_TYPES",
    "Description",
    "Ignore",
    "MemberInfo",
    "NoneType",
    "annotated_metadata",
    "container_origin",
    "describe",
    "description",
    "enumerable_item_type",
    "fields_of",
    "generic_arguments",
    "ignore",
    "is_any",
    "is_assignable",
    "is_composite",
    "is_enum",
    "is_enumerable",
    "is_fixed_tuple",
    "is_literal",
    "is_mapping",
    "is_nullable",
    "is_primitive",
    "is_union",
    "is_unsupported",
    "is_unsupported_value",
    "is_value_type",
    "properties_of",
    "resolve_hints",
    "short_name",
    "strip_annotated",
    "substitute",
    "type_id",
    "union_members",
    "unwrap",
    "unwrap_optional",
    "zero_value",
]
