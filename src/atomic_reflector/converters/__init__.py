from .base import Converter, ConverterRegistry
from .builtin import (
    DictConverter,
    EnumConverter,
    LiteralConverter,
    PrimitiveConverter,
    RawJsonConverter,
    TupleConverter,
    ValueNodeConverter,
    primitive_schema,
    register_defaults,
)

__all__ = [
    "Converter",
    "ConverterRegistry",
    "DictConverter",
    "EnumConverter",
    "LiteralConverter",
    "PrimitiveConverter",
    "RawJsonConverter",
    "TupleConverter",
    "ValueNodeConverter",
    "primitive_schema",
    "register_defaults",
]
