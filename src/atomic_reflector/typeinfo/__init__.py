from .catalog import TypeCatalog
from .introspection import (
    ARRAY_SUFFIX,
    Description,
    Ignore,
    MemberInfo,
    describe,
    description,
    enumerable_item_type,
    fields_of,
    generic_arguments,
    ignore,
    is_composite,
    is_enumerable,
    is_fixed_tuple,
    is_nullable,
    is_primitive,
    properties_of,
    short_name,
    type_id,
)

__all__ = [
    "TypeCatalog",
    "ARRAY_SUFFIX",
    "Description",
    "Ignore",
    "MemberInfo",
    "describe",
    "description",
    "enumerable_item_type",
    "fields_of",
    "generic_arguments",
    "ignore",
    "is_composite",
    "is_enumerable",
    "is_fixed_tuple",
    "is_nullable",
    "is_primitive",
    "properties_of",
    "short_name",
    "type_id",
]
