"""JSON Schema generation for runtime types and callables.

Composite types are defined once in a shared ``$defs`` map keyed by their
canonical identifier and referenced with ``{"$ref": "#/$defs/<id>"}``. A
placeholder is written into ``$defs`` before a composite's members are walked,
so recursive and mutually recursive types terminate. Primitives are always
inlined.

The finished tree is post-processed once: nullable unions (``anyOf`` with a
``null`` branch, or ``type`` arrays containing ``"null"``) collapse to their
first non-null alternative, since tool-calling consumers reject them.
"""
from __future__ import annotations

import collections.abc as cabc
import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional, get_args, get_origin

from ..converters.builtin import primitive_schema
from ..core.Exceptions import SchemaGenerationError, UnsupportedTypeError
from ..core.Logs import padding
from ..typeinfo.introspection import (
    NoneType,
    describe,
    enumerable_item_type,
    fields_of,
    generic_arguments,
    is_any,
    is_composite,
    is_enumerable,
    is_fixed_tuple,
    is_mapping,
    is_nullable,
    is_primitive,
    is_union,
    is_unsupported,
    is_value_type,
    properties_of,
    type_id,
    union_members,
    unwrap,
)

if TYPE_CHECKING:  # pragma: no cover
    from ..methods.descriptor import MethodDescriptor
    from ..reflector import Reflector

logger = logging.getLogger(__name__)

DEFS = "$defs"
REF = "$ref"
REF_PREFIX = "#/$defs/"

SchemaNode = Dict[str, Any]

_AWAITABLE_ORIGINS = (cabc.Awaitable, cabc.Coroutine)


def ref_to(identifier: str) -> SchemaNode:
    return {REF: REF_PREFIX + identifier}


class SchemaGenerator:
    def __init__(self, reflector: "Reflector") -> None:
        self._reflector = reflector

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def get_schema(self, tp: Any, just_ref: bool = False, defs: Optional[Dict[str, Any]] = None) -> SchemaNode:
        """Schema of ``tp``.

        Parameters
        ----------
        tp : Any
            Any annotation.
        just_ref : bool
            Return a ``$ref`` for composites instead of their definition.
        defs : dict, optional
            Shared definitions map. When omitted this is a top-level call: the
            result is self-contained (``$defs`` attached), post-processed and
            carries the type's description.

        Returns
        -------
        dict
            The schema node, or ``{"error": ...}`` when generation failed.
        """
        top_level = defs is None
        if top_level:
            defs = {}
        try:
            node = self._schema(tp, just_ref, defs, top_level=top_level)
        except Exception as e:
            return self._error_node(tp, e)
        if not top_level:
            return node

        if defs and not just_ref:
            node[DEFS] = defs
        node = postprocess(node)
        text = describe(tp) or describe(unwrap(tp))
        if text and "description" not in node:
            node["description"] = text
        return node

    def get_arguments_schema(self, method: "MethodDescriptor | Any") -> SchemaNode:
        """Object schema of a method's parameters; ``required`` lists those without defaults."""
        descriptor = self._descriptor(method)
        params = [p for p in descriptor.parameters if not p.is_variadic]
        if not params:
            return {"type": "object"}
        defs: Dict[str, Any] = {}
        properties: Dict[str, Any] = {}
        required: List[str] = []
        for param in params:
            try:
                node = self._schema(param.annotation, True, defs)
            except Exception as e:
                node = self._error_node(param.annotation, e)
            if param.description:
                node["description"] = param.description
            properties[param.name] = node
            if not param.has_default:
                required.append(param.name)
        schema: SchemaNode = {"type": "object", "properties": properties}
        if required:
            schema["required"] = required
        if defs:
            schema[DEFS] = defs
        return postprocess(schema)

    def get_return_schema(self, method: "MethodDescriptor | Any") -> Optional[SchemaNode]:
        """Schema wrapping the (awaited) return type as ``result``; ``None`` for no value."""
        descriptor = self._descriptor(method)
        result_type = descriptor.result_annotation
        if returns_nothing(result_type):
            return None
        defs: Dict[str, Any] = {}
        try:
            node = self._schema(result_type, True, defs)
        except Exception as e:
            node = self._error_node(result_type, e)
        schema: SchemaNode = {"type": "object", "properties": {"result": node}}
        if not is_nullable(result_type):
            schema["required"] = ["result"]
        if defs:
            schema[DEFS] = defs
        return postprocess(schema)

    # ------------------------------------------------------------------ #
    # Walk
    # ------------------------------------------------------------------ #
    def _schema(self, tp: Any, just_ref: bool, defs: Dict[str, Any], top_level: bool = False) -> SchemaNode:
        t = unwrap(tp)
        converter = self._reflector.converters.resolve(t)
        if converter is not None:
            emitted = (
                converter.emit_schema_ref(self._reflector, t, defs)
                if just_ref
                else converter.emit_schema(self._reflector, t, defs)
            )
            if emitted is not None:
                return dict(emitted)
        if is_any(t):
            return {}
        if t is NoneType:
            return {"type": "null"}
        if is_primitive(t):
            return primitive_schema(t) or {"type": "string"}
        if is_union(t):
            return {"anyOf": [self._schema(branch, True, defs) for branch in union_members(t)]}
        if is_enumerable(t):
            node = {"type": "array", "items": self._schema(enumerable_item_type(t), True, defs)}
            if top_level and not just_ref:
                defs.setdefault(type_id(t), dict(node))
            return node
        if is_mapping(t):
            args = generic_arguments(t)
            value_type = args[1] if len(args) == 2 else Any
            return {"type": "object", "additionalProperties": self._schema(value_type, True, defs)}
        if is_unsupported(t) or not is_composite(t):
            raise UnsupportedTypeError(f"Type '{type_id(t)}' has no schema representation.")

        identifier = type_id(t)
        if identifier not in defs:
            self._define(t, identifier, defs)
        if just_ref or top_level:
            node = ref_to(identifier)
        else:
            node = dict(defs[identifier])
        return node

    def _define(self, t: Any, identifier: str, defs: Dict[str, Any]) -> None:
        logger.debug(f"SchemaGenerator: defining {identifier!r}")
        defs[identifier] = {"type": "object"}  # placeholder until members are walked

        scope = self._reflector.settings.member_scope
        properties: Dict[str, Any] = {}
        required: List[str] = []
        members = fields_of(t, scope) + properties_of(t, scope, writable_only=True)
        for member in members:
            node = self._schema(member.annotation, True, defs)
            if member.description:
                node["description"] = member.description
            properties[member.name] = node
            if is_value_type(member.annotation) and not is_nullable(member.annotation):
                required.append(member.name)

        for argument in generic_arguments(t):
            if is_composite(argument) or is_enumerable(argument) or is_fixed_tuple(argument) or is_union(argument):
                self._schema(argument, True, defs)

        definition: SchemaNode = {"type": "object", "properties": properties}
        if required:
            definition["required"] = required
        text = describe(t) or describe(get_origin(t))
        if text:
            definition["description"] = text
        defs[identifier] = definition

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    def _descriptor(self, method: Any) -> "MethodDescriptor":
        from ..methods.descriptor import MethodDescriptor

        if isinstance(method, MethodDescriptor):
            return method
        return self._reflector.describe_method(method)

    @staticmethod
    def _error_node(tp: Any, error: Exception) -> SchemaNode:
        try:
            name = type_id(tp)
        except Exception:
            name = repr(tp)
        if not isinstance(error, SchemaGenerationError):
            error = SchemaGenerationError(str(error))
        logger.warning(f"SchemaGenerator: failed to get schema for {name!r}: {error}")
        return {"error": f"Failed to get schema for '{name}':\n{padding(1)}{error.message}"}


# ───────────────────────────────────────────────────────────────────────────────
# Module helpers
# ───────────────────────────────────────────────────────────────────────────────
def unwrap_awaitable(tp: Any) -> Any:
    """Inner result type of an awaitable annotation (``None`` for a bare awaitable)."""
    origin = get_origin(tp)
    if tp in _AWAITABLE_ORIGINS:
        return None
    if origin in _AWAITABLE_ORIGINS:
        args = get_args(tp)
        return args[-1] if args else None
    return tp


def returns_nothing(tp: Any) -> bool:
    return tp is None or tp is NoneType


def postprocess(node: Any) -> Any:
    """Collapse nullable unions to their first non-null alternative, recursively."""
    if isinstance(node, list):
        return [postprocess(item) for item in node]
    if not isinstance(node, dict):
        return node

    out = {key: postprocess(value) for key, value in node.items()}
    kind = out.get("type")
    if isinstance(kind, list):
        rest = [k for k in kind if k != "null"]
        if rest:
            out["type"] = rest[0]
        else:
            out.pop("type")
    branches = out.get("anyOf")
    if isinstance(branches, list):
        rest = [b for b in branches if b != {"type": "null"}]
        out.pop("anyOf")
        if rest:
            chosen = rest[0]
            out = {**chosen, **out} if isinstance(chosen, dict) else out
    return out
