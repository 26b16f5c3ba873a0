from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

import pytest

from atomic_reflector.core import MemberScope
from atomic_reflector.typeinfo.introspection import (
    Description,
    describe,
    enumerable_item_type,
    fields_of,
    is_assignable,
    is_composite,
    is_enumerable,
    is_fixed_tuple,
    is_mapping,
    is_nullable,
    is_primitive,
    is_value_type,
    properties_of,
    short_name,
    type_id,
    zero_value,
)
from tests.models import Address, Box, Calculator, Color, Counter, Node, Person


@pytest.mark.parametrize(
    "annotation, expected",
    [
        (int, "int"),
        (str, "str"),
        (Optional[int], "int"),
        (Annotated[int, Description("count")], "int"),
        (List[int], "intArray"),
        (list[list[int]], "intArrayArray"),
        (Tuple[str, ...], "strArray"),
        (Tuple[int, str], "tuple<int,str>"),
        (tuple[int, int], "tuple<int,int>"),
        (Dict[str, int], "dict<str,int>"),
        (Any, "Any"),
        (None, "None"),
        (Union[int, str], "Union<int,str>"),
        (Literal["a", "b"], "Literal<'a','b'>"),
        (Node, "tests.models.Node"),
        (List[Node], "tests.models.NodeArray"),
        (Box[int], "tests.models.Box<int>"),
    ],
)
def test_type_id(annotation, expected):
    assert type_id(annotation) == expected


def test_short_name_is_readable():
    assert short_name(Optional[List[Node]]) == "Optional[list[Node]]"
    assert short_name(Dict[str, int]) == "dict[str, int]"
    assert short_name(Literal["a"]) == "Literal['a']"


def test_classification():
    assert is_primitive(int) and is_primitive(Color) and is_primitive(Literal[1, 2])
    assert not is_primitive(Person)
    assert is_enumerable(List[int]) and is_enumerable(set) and not is_enumerable(str)
    assert is_mapping(Dict[str, int]) and not is_enumerable(Dict[str, int])
    assert is_composite(Person) and is_composite(Box[int]) and is_composite(Counter)
    assert not is_composite(List[Person]) and not is_composite(Any)
    assert enumerable_item_type(List[Node]) is Node
    assert enumerable_item_type(Tuple[int, ...]) is int
    assert is_fixed_tuple(Tuple[int, str]) and not is_fixed_tuple(Tuple[int, ...]) and not is_fixed_tuple(tuple)
    assert not is_enumerable(Tuple[int, str]) and not is_composite(Tuple[int, str])


def test_value_types_and_zero_values():
    assert is_value_type(int) and is_value_type(Color) and is_value_type(Literal[1, 2])
    assert not is_value_type(str) and not is_value_type(bytes) and not is_value_type(Literal["a"])
    assert zero_value(int) == 0
    assert zero_value(Color) is Color.RED
    assert zero_value(str) is None


def test_nullable():
    assert is_nullable(Optional[int])
    assert is_nullable(Union[int, str, None])
    assert not is_nullable(int)


def test_assignability():
    assert is_assignable(int, float)
    assert is_assignable(bool, int)
    assert not is_assignable(str, int)
    assert is_assignable(list[int], List[int])
    assert not is_assignable(list[str], List[int])
    assert is_assignable(Node, Optional[Node])
    assert is_assignable(None, Optional[Node])
    assert not is_assignable(None, Node)
    assert is_assignable(str, Union[int, str])
    assert is_assignable(Person, Any)


def test_fields_of_dataclass_keep_declaration_order():
    names = [m.name for m in fields_of(Person)]
    assert names == ["name", "age", "height", "active", "color", "tags", "scores", "address"]


def test_fields_of_generic_substitutes_type_variables():
    (item,) = fields_of(Box[int])
    assert type_id(item.annotation) == "int"
    assert is_nullable(item.annotation)


def test_field_description_from_annotated():
    city = next(m for m in fields_of(Address) if m.name == "city")
    assert city.description == "City name"


def test_properties_of_reports_writability():
    props = {m.name: m for m in properties_of(Counter)}
    assert set(props) == {"count", "doubled"}
    assert props["count"].writable and not props["doubled"].writable
    assert [m.name for m in properties_of(Counter, writable_only=True)] == ["count"]


def test_scope_filters_non_public_members():
    class Secretive:
        visible: int
        _hidden: int

    assert [m.name for m in fields_of(Secretive)] == ["visible"]
    assert [m.name for m in fields_of(Secretive, MemberScope.ALL)] == ["visible", "_hidden"]


def test_describe_reads_decorator_and_markers():
    assert describe(Address) == "A postal address."
    assert describe(Calculator.add) == "Adds two numbers and the calculator offset."
    assert describe(Annotated[int, Description("Age")]) == "Age"
    assert describe(Person) is None
