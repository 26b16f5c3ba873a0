"""Value codec: runtime values <-> ValueNode trees <-> plain JSON.

Two layers share one set of rules:

- the JSON layer (:meth:`ValueCodec.to_json` / :meth:`ValueCodec.from_json`)
  turns a value into plain JSON and back. Composites become JSON objects of
  their members. It is used for ``value`` payloads, converter payloads and
  result envelopes.
- the node layer (:meth:`ValueCodec.to_node` / :meth:`ValueCodec.from_node`)
  keeps composites as member trees so every level records its own type name.
  Collections of composites hold one typed node per item.

Converters registered on the engine always win over the generic paths.
"""
from __future__ import annotations

import collections
import collections.abc as cabc
import dataclasses
import inspect
import json
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple

from ..core.Exceptions import (
    ConverterError,
    ParameterMismatchError,
    ReflectorError,
    TypeNotFoundError,
    UnsupportedTypeError,
)
from ..core.Logs import Logs
from ..typeinfo.introspection import (
    MemberInfo,
    container_origin,
    enumerable_item_type,
    fields_of,
    is_any,
    is_assignable,
    is_composite,
    is_enum,
    is_enumerable,
    is_fixed_tuple,
    is_literal,
    is_mapping,
    is_nullable,
    is_union,
    is_unsupported,
    is_unsupported_value,
    is_value_type,
    properties_of,
    short_name,
    type_id,
    union_members,
    unwrap,
    zero_value,
)
from .context import SerializationContext
from .node import KEY_REF, ValueNode

if TYPE_CHECKING:  # pragma: no cover
    from ..reflector import Reflector

logger = logging.getLogger(__name__)

_ACTIVE: ContextVar[Optional[SerializationContext]] = ContextVar("atomic_reflector_serialization", default=None)

_MAX_DECODE_PASSES = 8


class ValueCodec:
    """Converts values to and from the generic member tree."""

    def __init__(self, reflector: "Reflector") -> None:
        self._reflector = reflector

    @property
    def _registry(self):
        return self._reflector.converters

    @property
    def _scope(self):
        return self._reflector.settings.member_scope

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def to_node(self, value: Any, tp: Any = None, name: Optional[str] = None) -> ValueNode:
        """Serialize ``value`` (declared as ``tp``) into a :class:`ValueNode`."""
        with self._context() as ctx:
            return self._guard("serialize", lambda: self._to_node(value, tp, name, ctx))

    def from_node(self, node: Any, tp: Any = None) -> Any:
        """Rebuild a runtime value from ``node``.

        The node's own ``typeName`` decides the type; ``tp`` is used when the
        node carries none and to check compatibility otherwise. Reference
        nodes are returned unchanged.

        Raises
        ------
        TypeNotFoundError
            The recorded type name is not known to the catalog.
        UnsupportedTypeError
            The type has no converter and no introspection path.
        """
        return self._guard("deserialize", lambda: self._from_node(node, tp))

    def to_json(self, value: Any, tp: Any = None) -> Any:
        with self._context() as ctx:
            return self._guard("serialize", lambda: self._write(value, tp, ctx))

    def from_json(self, payload: Any, tp: Any = None) -> Any:
        return self._guard("deserialize", lambda: self._read(payload, tp))

    def coerce(self, raw: Any, tp: Any) -> Any:
        """Loosely convert caller input to ``tp``.

        Accepts runtime values, plain JSON, JSON text (repeatedly encoded), a
        :class:`ValueNode` or the dict form of one.
        """
        if isinstance(raw, ValueNode):
            return self.from_node(raw, tp)
        raw = self.unwrap_encoded(raw, tp)
        if ValueNode.looks_like(raw) and not (is_mapping(tp) or is_any(tp) or unwrap(tp) is ValueNode):
            return self.from_node(raw, tp)
        return self.from_json(raw, tp)

    def populate(self, target: Any, node: Any, depth: int = 0) -> Logs:
        """Write the members recorded in ``node`` into ``target`` in place."""
        logs = Logs()
        try:
            self._populate(target, ValueNode.from_dict(node), logs, depth)
        except ReflectorError as e:
            logs.error(e.message, depth)
        return logs

    @staticmethod
    def unwrap_encoded(raw: Any, tp: Any) -> Any:
        """Decode ``raw`` while it is a string holding JSON and ``tp`` is structured."""
        if not isinstance(raw, str) or not _wants_structure(tp):
            return raw
        for _ in range(_MAX_DECODE_PASSES):
            if not isinstance(raw, str):
                break
            try:
                raw = json.loads(raw)
            except ValueError:
                break
        return raw

    def resolve_node_type(self, node: ValueNode, declared: Any = None) -> Any:
        name = node.type_name
        if not name:
            if declared is None:
                raise TypeNotFoundError(None, "Type name is missing and no target type was given.")
            return declared
        if declared is not None and type_id(declared) == name:
            return declared
        tp = self._reflector.catalog.resolve(name)
        if tp is None:
            raise TypeNotFoundError(name)
        return tp

    # ------------------------------------------------------------------ #
    # Node layer
    # ------------------------------------------------------------------ #
    def _to_node(self, value: Any, tp: Any, name: Optional[str], ctx: SerializationContext) -> ValueNode:
        self._check_depth(ctx)
        if value is None:
            return ValueNode(type_name=type_id(tp if tp is not None else Any), name=name)
        t = self._runtime_type(value, tp)
        if self._registry.is_blacklisted(t):
            return ValueNode(type_name=type_id(t), name=name)
        if self._has_item_nodes(t):
            return ValueNode(type_name=type_id(t), name=name, value=self._item_nodes(value, t, ctx))
        if not is_composite(t) or self._registry.resolve(t) is not None:
            return ValueNode(type_name=type_id(t), name=name, value=self._write(value, t, ctx))

        path = ctx.reference_to(value)
        if path is not None:
            return ValueNode.from_reference(path, name)

        node = ValueNode(type_name=type_id(t), name=name)
        with ctx.visiting(value):
            for member in fields_of(t, self._scope):
                found, member_value = _read_member(value, member)
                if found:
                    with ctx.member(member.name):
                        node.add_field(self._to_node(member_value, member.annotation, member.name, ctx))
            for member in properties_of(t, self._scope):
                found, member_value = _read_member(value, member)
                if found:
                    with ctx.member(member.name):
                        node.add_prop(self._to_node(member_value, member.annotation, member.name, ctx))
        if not node.fields and not node.props:
            node.value = {}
        return node

    def _has_item_nodes(self, t: Any) -> bool:
        """Collections of composites keep one typed node per item, so subtypes survive."""
        return is_enumerable(t) and is_composite(enumerable_item_type(t)) and self._registry.resolve(t) is None

    def _item_nodes(self, value: Any, t: Any, ctx: SerializationContext) -> List[Dict[str, Any]]:
        item_type = enumerable_item_type(t)
        items: List[Dict[str, Any]] = []
        with self._container_guard(value, ctx):
            for index, item in enumerate(value):
                with ctx.member(index):
                    items.append(self._to_node(item, item_type, f"[{index}]", ctx).to_dict())
        return items

    def _from_node(self, node: Any, tp: Any) -> Any:
        if node is None:
            return _null_value(tp)
        node = ValueNode.from_dict(node)
        if node.is_reference:
            return node

        t = self.resolve_node_type(node, tp)
        if tp is not None and t is not tp and not is_assignable(t, tp):
            raise ParameterMismatchError(f"Type mismatch. Expected '{type_id(tp)}', but got '{node.type_name}'.")
        if node.is_null:
            return _null_value(tp if tp is not None else t)
        if self._registry.is_blacklisted(t):
            return None
        if is_unsupported(t):
            raise UnsupportedTypeError(f"Type '{short_name(t)}' not supported for deserialization.")
        if not is_composite(t) or self._registry.resolve(t) is not None:
            return self._read(node.value, t)

        fields = {m.name: m for m in fields_of(t, self._scope)}
        props = {m.name: m for m in properties_of(t, self._scope)}
        values: Dict[str, Any] = {}
        if isinstance(node.value, Mapping):
            values.update(self._read_members(node.value, t))
        for child in node.fields or ():
            member = fields.get(child.name)
            if member is None:
                logger.warning(f"Field '{child.name}' not found on '{short_name(t)}'")
                continue
            values[member.name] = self._from_node(child, member.annotation)
        for child in node.props or ():
            member = props.get(child.name)
            if member is None:
                logger.warning(f"Property '{child.name}' not found on '{short_name(t)}'")
                continue
            if not member.writable:
                logger.debug(f"Property '{child.name}' of '{short_name(t)}' is read-only; skipped")
                continue
            values[member.name] = self._from_node(child, member.annotation)
        return self._instantiate(t, values)

    def _populate(self, target: Any, node: ValueNode, logs: Logs, depth: int) -> None:
        if node.is_reference:
            logs.warning(f"Reference '{node.reference_path}' is not resolved.", depth)
            return
        t = type(target)
        if node.type_name:
            recorded = self.resolve_node_type(node, t)
            origin = container_origin(recorded)
            if inspect.isclass(origin) and not isinstance(target, origin):
                logs.error(f"Type mismatch. Expected '{type_id(t)}', but got '{node.type_name}'.", depth)
                return
        logs.info(f"Populating '{short_name(t)}'", depth)

        fields = {m.name: m for m in fields_of(t, self._scope)}
        props = {m.name: m for m in properties_of(t, self._scope)}
        for kind, children, members in (("Field", node.fields, fields), ("Property", node.props, props)):
            for child in children or ():
                member = members.get(child.name)
                if member is None:
                    logs.warning(f"{kind} '{child.name}' not found on '{short_name(t)}'.", depth + 1)
                    continue
                if not member.writable:
                    logs.warning(f"{kind} '{child.name}' is read-only.", depth + 1)
                    continue
                try:
                    current = getattr(target, member.name, None)
                    if (child.fields or child.props) and current is not None and is_composite(type(current)):
                        self._populate(current, child, logs, depth + 1)
                        continue
                    value = self._from_node(child, member.annotation)
                    _assign(target, member.name, value)
                    logs.success(f"{kind} '{child.name}' modified to '{value}'.", depth + 1)
                except ReflectorError as e:
                    logs.error(f"{kind} '{child.name}': {e.message}", depth + 1)

    # ------------------------------------------------------------------ #
    # JSON layer
    # ------------------------------------------------------------------ #
    def _write(self, value: Any, tp: Any, ctx: SerializationContext) -> Any:
        self._check_depth(ctx)
        if value is None:
            return None
        t = self._runtime_type(value, tp)
        if self._registry.is_blacklisted(t):
            return None
        if is_unsupported(t) or is_unsupported_value(value):
            raise UnsupportedTypeError(f"Type '{short_name(type(value))}' not supported for serialization.")

        converter = self._registry.resolve(t)
        if converter is not None:
            with self._container_guard(value, ctx):
                return converter.write_value(self._reflector, value, t)
        if is_enumerable(t):
            item_type = enumerable_item_type(t)
            with self._container_guard(value, ctx):
                out = []
                for index, item in enumerate(value):
                    with ctx.member(index):
                        out.append(self._write(item, item_type, ctx))
                return out
        if is_composite(t):
            path = ctx.reference_to(value)
            if path is not None:
                return {KEY_REF: path}
            out: Dict[str, Any] = {}
            with ctx.visiting(value):
                for member in fields_of(t, self._scope) + properties_of(t, self._scope):
                    found, member_value = _read_member(value, member)
                    if found:
                        with ctx.member(member.name):
                            out[member.name] = self._write(member_value, member.annotation, ctx)
            return out
        raise UnsupportedTypeError(f"Type '{short_name(t)}' not supported for serialization.")

    def _read(self, payload: Any, tp: Any) -> Any:
        if isinstance(payload, ValueNode):
            return self._from_node(payload, tp)
        if payload is None:
            return _null_value(tp)
        t = unwrap(tp) if tp is not None else Any
        if is_any(t):
            return payload
        if is_union(t):
            return self._read_union(payload, t)
        if self._registry.is_blacklisted(t):
            return None
        payload = self.unwrap_encoded(payload, t)

        if is_composite(t):
            origin = container_origin(t)
            if isinstance(payload, origin):
                return payload
            if ValueNode.looks_like(payload):
                return self._from_node(payload, tp)

        converter = self._registry.resolve(t)
        if converter is not None:
            return converter.read_value(self._reflector, payload, t)
        if is_enumerable(t):
            if isinstance(payload, (str, bytes, Mapping)) or not isinstance(payload, cabc.Iterable):
                raise ConverterError(f"Expected a JSON array for '{short_name(t)}', got {type(payload).__name__}")
            item_type = enumerable_item_type(t)
            return _build_container(t, [self._read(item, item_type) for item in payload])
        if is_unsupported(t):
            raise UnsupportedTypeError(f"Type '{short_name(t)}' not supported for deserialization.")
        if is_composite(t):
            if not isinstance(payload, Mapping):
                raise ConverterError(f"Expected a JSON object for '{short_name(t)}', got {type(payload).__name__}")
            if set(payload) == {KEY_REF}:
                return ValueNode.from_reference(payload[KEY_REF])
            return self._instantiate(t, self._read_members(payload, t))
        raise UnsupportedTypeError(f"Type '{short_name(t)}' not supported for deserialization.")

    def _read_union(self, payload: Any, t: Any) -> Any:
        errors: List[str] = []
        for branch in union_members(t):
            try:
                return self._read(payload, branch)
            except ReflectorError as e:
                errors.append(f"{short_name(branch)}: {e.message}")
        raise ConverterError(f"Value {payload!r} matches none of '{short_name(t)}' ({'; '.join(errors)})")

    def _read_members(self, payload: Mapping[str, Any], t: Any) -> Dict[str, Any]:
        members = {m.name: m for m in fields_of(t, self._scope)}
        members.update({m.name: m for m in properties_of(t, self._scope, writable_only=True)})
        values: Dict[str, Any] = {}
        for key, raw in payload.items():
            member = members.get(key)
            if member is None:
                logger.debug(f"Ignoring unknown member '{key}' for '{short_name(t)}'")
                continue
            values[key] = self._read(raw, member.annotation)
        return values

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    @contextmanager
    def _context(self) -> Iterator[SerializationContext]:
        ctx = _ACTIVE.get()
        if ctx is not None:
            yield ctx
            return
        ctx = SerializationContext(self._reflector.settings.max_depth)
        token = _ACTIVE.set(ctx)
        try:
            yield ctx
        finally:
            _ACTIVE.reset(token)

    @contextmanager
    def _container_guard(self, value: Any, ctx: SerializationContext) -> Iterator[None]:
        if not isinstance(value, (list, dict, set, collections.deque)):
            yield
            return
        if ctx.reference_to(value) is not None:
            raise UnsupportedTypeError(f"Container at '{ctx.path}' contains itself and has no JSON representation.")
        with ctx.visiting(value):
            yield

    @staticmethod
    def _check_depth(ctx: SerializationContext) -> None:
        if ctx.depth > ctx.max_depth:
            raise UnsupportedTypeError(f"Value nesting exceeds the maximum depth of {ctx.max_depth} at '{ctx.path}'.")

    def _runtime_type(self, value: Any, tp: Any) -> Any:
        """The type to serialize ``value`` as: declared, or the runtime subtype."""
        runtime = type(value)
        if tp is None:
            return runtime
        t = unwrap(tp)
        if is_any(t):
            return runtime
        if is_union(t):
            for branch in union_members(t):
                origin = container_origin(branch)
                if inspect.isclass(origin) and isinstance(value, origin):
                    return branch
            return runtime
        origin = container_origin(t)
        if (
            origin is t
            and inspect.isclass(origin)
            and runtime is not origin
            and issubclass(runtime, origin)
            and is_composite(runtime)
        ):
            return runtime
        return t

    def _instantiate(self, t: Any, values: Dict[str, Any]) -> Any:
        cls = container_origin(t)
        if inspect.isabstract(cls):
            raise UnsupportedTypeError(f"Cannot create an instance of abstract type '{short_name(t)}'.")
        values = dict(values)
        annotations = {m.name: m.annotation for m in fields_of(t, self._scope)}
        try:
            kwargs = self._constructor_arguments(cls, values, annotations)
            instance = cls(**kwargs)
        except ReflectorError:
            raise
        except Exception as e:
            raise ConverterError(f"Could not create an instance of '{short_name(t)}': {e}") from e
        for name, value in values.items():
            _assign(instance, name, value)
        return instance

    def _constructor_arguments(self, cls: type, values: Dict[str, Any], annotations: Dict[str, Any]) -> Dict[str, Any]:
        """Pop the constructor arguments out of ``values``; required ones default to zero/None."""
        kwargs: Dict[str, Any] = {}
        if dataclasses.is_dataclass(cls):
            for f in dataclasses.fields(cls):
                if not f.init:
                    continue
                if f.name in values:
                    kwargs[f.name] = values.pop(f.name)
                elif f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
                    kwargs[f.name] = _null_value(annotations.get(f.name, f.type))
            return kwargs
        try:
            sig = inspect.signature(cls)
        except (TypeError, ValueError):
            return kwargs
        for name, param in sig.parameters.items():
            if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
                continue
            if name in values:
                kwargs[name] = values.pop(name)
            elif param.default is inspect.Parameter.empty:
                ann = annotations.get(name, param.annotation)
                kwargs[name] = _null_value(None if ann is inspect.Parameter.empty else ann)
        return kwargs

    @staticmethod
    def _guard(action: str, fn: Callable[[], Any]) -> Any:
        try:
            return fn()
        except ReflectorError:
            raise
        except RecursionError as e:
            raise UnsupportedTypeError(f"Failed to {action}: value is nested too deeply") from e
        except Exception as e:
            logger.debug(f"ValueCodec: unexpected failure during {action}", exc_info=True)
            raise ConverterError(f"Failed to {action}: {e}") from e


# ───────────────────────────────────────────────────────────────────────────────
# Module helpers
# ───────────────────────────────────────────────────────────────────────────────
def _null_value(tp: Any) -> Any:
    """Zero value for non-nullable value types, ``None`` otherwise."""
    if tp is None or is_nullable(tp):
        return None
    return zero_value(tp) if is_value_type(tp) else None


def _wants_structure(tp: Any) -> bool:
    if tp is None:
        return False
    t = unwrap(tp)
    if is_any(t) or is_enum(t) or is_literal(t):
        return False
    if is_union(t):
        return all(_wants_structure(branch) for branch in union_members(t))
    return is_enumerable(t) or is_fixed_tuple(t) or is_mapping(t) or is_composite(t)


def _read_member(obj: Any, member: MemberInfo) -> Tuple[bool, Any]:
    try:
        return True, getattr(obj, member.name)
    except AttributeError:
        return False, None
    except Exception as e:  # property getters may raise anything
        logger.debug(f"Skipping member '{member.name}' of {type(obj).__name__}: {e}")
        return False, None


def _assign(instance: Any, name: str, value: Any) -> None:
    try:
        setattr(instance, name, value)
    except AttributeError:
        if isinstance(instance, tuple):
            logger.debug(f"Cannot assign '{name}' on immutable {type(instance).__name__}")
            return
        object.__setattr__(instance, name, value)


def _build_container(t: Any, items: List[Any]) -> Any:
    origin = container_origin(t)
    if origin in (cabc.Set, cabc.MutableSet) or (inspect.isclass(origin) and issubclass(origin, set)):
        return set(items) if origin in (cabc.Set, cabc.MutableSet, set) else origin(items)
    if inspect.isclass(origin) and issubclass(origin, frozenset):
        return origin(items)
    if inspect.isclass(origin) and issubclass(origin, tuple):
        return tuple(items) if origin is tuple else origin(items)
    if origin is collections.deque:
        return collections.deque(items)
    if inspect.isclass(origin) and issubclass(origin, list) and origin is not list:
        return origin(items)
    return items
