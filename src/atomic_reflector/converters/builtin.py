"""Built-in converters: primitives, enums, literals, dictionaries, tuples, raw JSON and ValueNode."""
from __future__ import annotations

import base64
import binascii
import datetime
import decimal
import json
import re
import uuid
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, Mapping, NamedTuple, Optional, get_args

from ..codec.node import KEY_FIELDS, KEY_NAME, KEY_PROPS, KEY_TYPE_NAME, KEY_VALUE, ValueNode
from ..core.Exceptions import ConverterError, UnsupportedTypeError
from ..typeinfo.introspection import (
    container_origin,
    is_enum,
    is_literal,
    is_fixed_tuple,
    is_mapping,
    generic_arguments,
    short_name,
    type_id,
    unwrap,
)
from .base import Converter, ConverterRegistry, SchemaDefs

if TYPE_CHECKING:  # pragma: no cover
    from ..reflector import Reflector


# ───────────────────────────────────────────────────────────────────────────────
# ISO-8601 durations
# ───────────────────────────────────────────────────────────────────────────────
def iso8601_duration_from_timedelta(td: datetime.timedelta) -> str:
    """Serialize timedelta to ISO-8601 duration (e.g., 'PT3H5M7.25S')."""
    total = td.total_seconds()
    sign = "-" if total < 0 else ""
    total = abs(total)
    days, rem = divmod(total, 86400)
    hours, rem = divmod(rem, 3600)
    minutes, seconds = divmod(rem, 60)
    s = "P"
    if days:
        s += f"{int(days)}D"
    s += "T"
    if hours:
        s += f"{int(hours)}H"
    if minutes:
        s += f"{int(minutes)}M"
    if float(seconds).is_integer():
        s += f"{int(seconds)}S"
    else:
        s += f"{seconds:.6f}".rstrip("0").rstrip(".") + "S"
    return sign + s


_DURATION = re.compile(
    r"^(?P<sign>-)?P(?:(?P<days>\d+(?:\.\d+)?)D)?"
    r"(?:T(?:(?P<hours>\d+(?:\.\d+)?)H)?(?:(?P<minutes>\d+(?:\.\d+)?)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$"
)


def timedelta_from_iso8601(text: str) -> datetime.timedelta:
    match = _DURATION.match(text.strip())
    if not match or text.strip() in ("P", "PT", "-P", "-PT"):
        raise ValueError(f"not an ISO-8601 duration: {text!r}")
    parts = {k: float(v) for k, v in match.groupdict().items() if v and k != "sign"}
    td = datetime.timedelta(**parts)
    return -td if match.group("sign") else td


# ───────────────────────────────────────────────────────────────────────────────
# Primitive scalars
# ───────────────────────────────────────────────────────────────────────────────
class _Rule(NamedTuple):
    schema: Dict[str, Any]
    write: Callable[[Any], Any]
    read: Callable[[Any], Any]


def _read_bool(payload: Any) -> bool:
    if isinstance(payload, bool):
        return payload
    if isinstance(payload, str) and payload.strip().lower() in ("true", "false"):
        return payload.strip().lower() == "true"
    if isinstance(payload, int) and payload in (0, 1):
        return bool(payload)
    raise ValueError(f"{payload!r} is not a boolean")


def _read_int(payload: Any) -> int:
    if isinstance(payload, bool):
        raise ValueError(f"{payload!r} is not an integer")
    if isinstance(payload, int):
        return payload
    if isinstance(payload, float) and payload.is_integer():
        return int(payload)
    if isinstance(payload, str):
        return int(payload.strip())
    raise ValueError(f"{payload!r} is not an integer")


def _read_float(payload: Any) -> float:
    if isinstance(payload, bool) or not isinstance(payload, (int, float, str, decimal.Decimal)):
        raise ValueError(f"{payload!r} is not a number")
    return float(payload)


def _read_decimal(payload: Any) -> decimal.Decimal:
    if isinstance(payload, bool) or not isinstance(payload, (int, float, str)):
        raise ValueError(f"{payload!r} is not a decimal")
    try:
        return decimal.Decimal(str(payload).strip())
    except decimal.InvalidOperation:
        raise ValueError(f"{payload!r} is not a decimal") from None


def _read_str(payload: Any) -> str:
    if isinstance(payload, str):
        return payload
    if isinstance(payload, (dict, list)):
        return json.dumps(payload)
    if isinstance(payload, bool):
        return "true" if payload else "false"
    if isinstance(payload, (int, float)):
        return str(payload)
    raise ValueError(f"{payload!r} is not a string")


def _read_bytes(payload: Any) -> bytes:
    if not isinstance(payload, str):
        raise ValueError(f"{payload!r} is not base64 text")
    try:
        return base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValueError(f"invalid base64 payload: {e}") from None


def _reader(parse: Callable[[str], Any], expected: type) -> Callable[[Any], Any]:
    def read(payload: Any) -> Any:
        if not isinstance(payload, str):
            raise ValueError(f"expected text for {expected.__name__}, got {type(payload).__name__}")
        return parse(payload.strip())

    return read


def _read_timedelta(payload: Any) -> datetime.timedelta:
    if isinstance(payload, (int, float)) and not isinstance(payload, bool):
        return datetime.timedelta(seconds=payload)
    if not isinstance(payload, str):
        raise ValueError(f"{payload!r} is not a duration")
    return timedelta_from_iso8601(payload)


_RULES: Dict[type, _Rule] = {
    bool: _Rule({"type": "boolean"}, bool, _read_bool),
    int: _Rule({"type": "integer"}, int, _read_int),
    float: _Rule({"type": "number"}, float, _read_float),
    complex: _Rule({"type": "string", "format": "complex"}, str, _reader(lambda s: complex(s.replace(" ", "")), complex)),
    decimal.Decimal: _Rule({"type": "string", "format": "decimal"}, str, _read_decimal),
    str: _Rule({"type": "string"}, str, _read_str),
    bytes: _Rule(
        {"type": "string", "format": "base64"},
        lambda v: base64.b64encode(v).decode("ascii"),
        _read_bytes,
    ),
    datetime.datetime: _Rule(
        {"type": "string", "format": "date-time"},
        lambda v: v.isoformat(),
        _reader(datetime.datetime.fromisoformat, datetime.datetime),
    ),
    datetime.date: _Rule(
        {"type": "string", "format": "date"},
        lambda v: v.isoformat(),
        _reader(datetime.date.fromisoformat, datetime.date),
    ),
    datetime.time: _Rule(
        {"type": "string", "format": "time"},
        lambda v: v.isoformat(),
        _reader(datetime.time.fromisoformat, datetime.time),
    ),
    datetime.timedelta: _Rule({"type": "string", "format": "duration"}, iso8601_duration_from_timedelta, _read_timedelta),
    uuid.UUID: _Rule({"type": "string", "format": "uuid"}, str, _reader(uuid.UUID, uuid.UUID)),
}


def primitive_schema(tp: Any) -> Optional[Dict[str, Any]]:
    """Inline schema of a primitive scalar, enum or literal (``None`` otherwise)."""
    t = unwrap(tp)
    if is_enum(t):
        return {"type": "string", "enum": [m.name for m in t]}
    if is_literal(t):
        values = [v.name if isinstance(v, Enum) else v for v in get_args(t)]
        kinds = {_json_kind(v) for v in values}
        node: Dict[str, Any] = {"enum": values}
        if len(kinds) == 1:
            node = {"type": kinds.pop(), "enum": values}
        return node
    rule = _rule_for(t)
    return dict(rule.schema) if rule else None


def _json_kind(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if value is None:
        return "null"
    return "string"


def _rule_for(tp: Any) -> Optional[_Rule]:
    if not isinstance(tp, type) or issubclass(tp, Enum):
        return None
    for base in tp.__mro__:
        if base in _RULES:
            return _RULES[base]
    return None


class PrimitiveConverter(Converter):
    """Scalars: bool, numbers, text, bytes, date/time, durations and UUIDs."""

    def handles(self, tp: Any) -> bool:
        return _rule_for(unwrap(tp)) is not None

    def read_value(self, reflector: "Reflector", payload: Any, tp: Any) -> Any:
        t = unwrap(tp)
        if isinstance(payload, t) and not (t is int and isinstance(payload, bool)):
            return payload
        try:
            value = _rule_for(t).read(payload)
        except (ValueError, TypeError, OverflowError) as e:
            raise ConverterError(f"Value {payload!r} could not be parsed as '{short_name(t)}': {e}") from e
        return value if type(value) is t else _coerce_subclass(t, value)

    def write_value(self, reflector: "Reflector", value: Any, tp: Any) -> Any:
        rule = _rule_for(type(value)) or _rule_for(unwrap(tp))
        return rule.write(value)

    def emit_schema(self, reflector: "Reflector", tp: Any, defs: SchemaDefs) -> Optional[Dict[str, Any]]:
        return primitive_schema(tp)


def _coerce_subclass(t: type, value: Any) -> Any:
    try:
        return t(value)
    except (TypeError, ValueError):
        return value


# ───────────────────────────────────────────────────────────────────────────────
# Enums and literals
# ───────────────────────────────────────────────────────────────────────────────
class EnumConverter(Converter):
    """Enums travel as member names; reading also accepts values and any casing."""

    def handles(self, tp: Any) -> bool:
        return is_enum(tp)

    def read_value(self, reflector: "Reflector", payload: Any, tp: Any) -> Any:
        t = unwrap(tp)
        if isinstance(payload, t):
            return payload
        if isinstance(payload, str):
            text = payload.strip()
            if text in t.__members__:
                return t.__members__[text]
            for name, member in t.__members__.items():
                if name.lower() == text.lower():
                    return member
        try:
            return t(payload)
        except (ValueError, TypeError):
            pass
        valid = ", ".join(t.__members__)
        raise ConverterError(f"Value '{payload}' could not be parsed as '{short_name(t)}'. Valid values are: {valid}")

    def write_value(self, reflector: "Reflector", value: Any, tp: Any) -> Any:
        return value.name

    def emit_schema(self, reflector: "Reflector", tp: Any, defs: SchemaDefs) -> Optional[Dict[str, Any]]:
        return primitive_schema(tp)


class LiteralConverter(Converter):
    def handles(self, tp: Any) -> bool:
        return is_literal(tp)

    def read_value(self, reflector: "Reflector", payload: Any, tp: Any) -> Any:
        values = get_args(unwrap(tp))
        for value in values:
            if payload == value or (isinstance(value, Enum) and payload == value.name):
                return value
        raise ConverterError(
            f"Value {payload!r} is not one of the allowed values: {', '.join(repr(v) for v in values)}"
        )

    def write_value(self, reflector: "Reflector", value: Any, tp: Any) -> Any:
        return value.name if isinstance(value, Enum) else value

    def emit_schema(self, reflector: "Reflector", tp: Any, defs: SchemaDefs) -> Optional[Dict[str, Any]]:
        return primitive_schema(tp)


# ───────────────────────────────────────────────────────────────────────────────
# Dictionaries and raw JSON
# ───────────────────────────────────────────────────────────────────────────────
class DictConverter(Converter):
    """Mappings as JSON objects; keys are stringified on write and parsed back on read."""

    def handles(self, tp: Any) -> bool:
        return is_mapping(tp)

    @staticmethod
    def _key_value_types(tp: Any) -> tuple[Any, Any]:
        args = generic_arguments(tp)
        if len(args) == 2:
            return args[0], args[1]
        return str, Any

    def read_value(self, reflector: "Reflector", payload: Any, tp: Any) -> Any:
        if not isinstance(payload, dict):
            raise ConverterError(f"Expected a JSON object for '{short_name(tp)}', got {type(payload).__name__}")
        key_type, value_type = self._key_value_types(tp)
        return {
            reflector.codec.from_json(key, key_type): reflector.codec.from_json(value, value_type)
            for key, value in payload.items()
        }

    def write_value(self, reflector: "Reflector", value: Any, tp: Any) -> Any:
        key_type, value_type = self._key_value_types(tp)
        out: Dict[str, Any] = {}
        for key, item in value.items():
            encoded = reflector.codec.to_json(key, key_type)
            out[encoded if isinstance(encoded, str) else json.dumps(encoded)] = reflector.codec.to_json(item, value_type)
        return out

    def emit_schema(self, reflector: "Reflector", tp: Any, defs: SchemaDefs) -> Optional[Dict[str, Any]]:
        _, value_type = self._key_value_types(tp)
        return {
            "type": "object",
            "additionalProperties": reflector.schema.get_schema(value_type, just_ref=True, defs=defs),
        }


class TupleConverter(Converter):
    """Fixed-arity tuples as JSON arrays; every position keeps its own declared type."""

    def handles(self, tp: Any) -> bool:
        return is_fixed_tuple(tp)

    @staticmethod
    def _positions(tp: Any, count: int) -> tuple[Any, ...]:
        positions = get_args(unwrap(tp))
        if count != len(positions):
            raise ConverterError(f"Expected {len(positions)} item(s) for '{short_name(tp)}', got {count}")
        return positions

    def read_value(self, reflector: "Reflector", payload: Any, tp: Any) -> Any:
        if isinstance(payload, (str, bytes, Mapping)) or not isinstance(payload, Iterable):
            raise ConverterError(f"Expected a JSON array for '{short_name(tp)}', got {type(payload).__name__}")
        items = list(payload)
        positions = self._positions(tp, len(items))
        values = tuple(reflector.codec.from_json(item, position) for item, position in zip(items, positions))
        origin = container_origin(tp)
        return values if origin is tuple else origin(values)

    def write_value(self, reflector: "Reflector", value: Any, tp: Any) -> Any:
        positions = self._positions(tp, len(value))
        return [reflector.codec.to_json(item, position) for item, position in zip(value, positions)]

    def emit_schema(self, reflector: "Reflector", tp: Any, defs: SchemaDefs) -> Optional[Dict[str, Any]]:
        positions = get_args(unwrap(tp))
        return {
            "type": "array",
            "prefixItems": [reflector.schema.get_schema(p, just_ref=True, defs=defs) for p in positions],
            "items": False,
            "minItems": len(positions),
            "maxItems": len(positions),
        }


class RawJsonConverter(Converter):
    """``Any``/``object``: payloads pass through untouched."""

    def read_value(self, reflector: "Reflector", payload: Any, tp: Any) -> Any:
        return payload

    def write_value(self, reflector: "Reflector", value: Any, tp: Any) -> Any:
        if value is None or isinstance(value, (bool, int, float, str)):
            return value
        if type(value) is object:
            raise UnsupportedTypeError("A bare 'object' instance has no JSON representation.")
        return reflector.codec.to_json(value, type(value))

    def emit_schema(self, reflector: "Reflector", tp: Any, defs: SchemaDefs) -> Optional[Dict[str, Any]]:
        return {}


# ───────────────────────────────────────────────────────────────────────────────
# ValueNode
# ───────────────────────────────────────────────────────────────────────────────
class ValueNodeConverter(Converter):
    """A ValueNode parameter receives the wire shape itself."""

    def read_value(self, reflector: "Reflector", payload: Any, tp: Any) -> Any:
        if isinstance(payload, ValueNode):
            return payload
        return ValueNode.from_dict(payload)

    def write_value(self, reflector: "Reflector", value: Any, tp: Any) -> Any:
        return value.to_dict()

    def _define(self, defs: SchemaDefs) -> str:
        key = type_id(ValueNode)
        if key not in defs:
            ref = {"$ref": f"#/$defs/{key}"}
            defs[key] = {
                "type": "object",
                "properties": {
                    KEY_TYPE_NAME: {"type": "string"},
                    KEY_NAME: {"type": "string"},
                    KEY_VALUE: {},
                    KEY_FIELDS: {"type": "array", "items": ref},
                    KEY_PROPS: {"type": "array", "items": ref},
                },
                "required": [KEY_TYPE_NAME],
            }
        return key

    def emit_schema(self, reflector: "Reflector", tp: Any, defs: SchemaDefs) -> Optional[Dict[str, Any]]:
        return dict(defs[self._define(defs)])

    def emit_schema_ref(self, reflector: "Reflector", tp: Any, defs: SchemaDefs) -> Optional[Dict[str, Any]]:
        return {"$ref": f"#/$defs/{self._define(defs)}"}


def register_defaults(registry: ConverterRegistry) -> ConverterRegistry:
    """Install the built-in converters; enums are tried before plain scalars."""
    registry.add_family(PrimitiveConverter())
    registry.add_family(DictConverter())
    registry.add_family(TupleConverter())
    registry.add_family(LiteralConverter())
    registry.add_family(EnumConverter())
    raw = RawJsonConverter()
    registry.add(Any, raw)
    registry.add(object, raw)
    registry.add(ValueNode, ValueNodeConverter())
    return registry
