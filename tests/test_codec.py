import datetime
import decimal
import json
import uuid
from typing import Dict, List, Optional, Tuple

import pytest

from atomic_reflector import ValueNode
from atomic_reflector.core import (
    ConverterError,
    ErrorKind,
    ParameterMismatchError,
    TypeNotFoundError,
    UnsupportedTypeError,
)
from atomic_reflector.typeinfo import type_id
from tests.models import Address, Box, Circle, Color, Counter, Drawing, Linked, Node, Person, Profile, Shape


def _person() -> Person:
    return Person(
        name="Ada",
        age=36,
        height=1.7,
        active=False,
        color=Color.BLUE,
        tags=["math", "engines"],
        scores={"logic": 10},
        address=Address(street="1 Main St", city="London", zip_code=12345),
    )


def test_composite_node_lists_fields(reflector):
    node = reflector.to_node(_person())

    assert node.type_name == type_id(Person)
    assert [f.name for f in node.fields] == [
        "name", "age", "height", "active", "color", "tags", "scores", "address"
    ]
    assert node.get_field("age").to_dict() == {"typeName": "int", "name": "age", "value": 36}
    assert node.get_field("tags").type_name == "strArray"
    assert node.get_field("color").value == "BLUE"
    assert node.get_field("address").get_field("city").value == "London"


def test_nested_composite_round_trip(reflector):
    person = _person()
    assert reflector.from_node(reflector.to_node(person)) == person


def test_round_trip_through_wire_text(reflector):
    person = _person()
    text = reflector.to_node(person).to_json()
    assert reflector.from_node(ValueNode.from_json(text)) == person
    assert reflector.from_node(json.loads(text), Person) == person


@pytest.mark.parametrize(
    "value, tp",
    [
        (decimal.Decimal("10.25"), decimal.Decimal),
        (b"\x00\xff", bytes),
        (datetime.datetime(2024, 5, 1, 12, 30), datetime.datetime),
        (datetime.timedelta(days=1, seconds=90), datetime.timedelta),
        (uuid.UUID("12345678-1234-5678-1234-567812345678"), uuid.UUID),
        ({"a": [1, 2], "b": []}, Dict[str, List[int]]),
    ],
)
def test_scalar_and_collection_round_trip(reflector, value, tp):
    assert reflector.from_node(reflector.to_node(value, tp)) == value


def test_recursive_tree_round_trip(reflector):
    tree = Node(1, [Node(2), Node(3, [Node(4)])])
    node = reflector.to_node(tree)

    assert node.get_field("children").type_name == f"{type_id(Node)}Array"
    assert reflector.from_node(node) == tree


def test_fixed_tuple_keeps_each_position_type(reflector):
    stamp = (1, datetime.date(2020, 1, 2))
    node = reflector.to_node(stamp, Tuple[int, datetime.date])

    assert node.to_dict() == {"typeName": "tuple<int,datetime.date>", "value": [1, "2020-01-02"]}
    assert reflector.from_node(node, Tuple[int, datetime.date]) == stamp
    assert reflector.from_node(node) == stamp
    assert reflector.from_json(["7", "2021-03-04"], Tuple[int, datetime.date]) == (7, datetime.date(2021, 3, 4))

    with pytest.raises(ConverterError, match="Expected 2 item"):
        reflector.from_json([1], Tuple[int, datetime.date])


def test_subclass_items_keep_their_type(reflector):
    drawing = Drawing(shapes=[Circle("c", 2.5), Shape("s")], stamp=(3, datetime.date(2021, 5, 6)))
    node = reflector.to_node(drawing)

    shapes = node.get_field("shapes")
    assert shapes.type_name == f"{type_id(Shape)}Array"
    assert [item["typeName"] for item in shapes.value] == [type_id(Circle), type_id(Shape)]
    assert shapes.value[0]["name"] == "[0]"
    assert node.get_field("stamp").value == [3, "2021-05-06"]

    restored = reflector.from_node(ValueNode.from_json(node.to_json()))
    assert restored == drawing
    assert isinstance(restored.shapes[0], Circle)
    assert restored.stamp[1] == datetime.date(2021, 5, 6)


def test_ignored_and_obsolete_members_are_skipped(reflector):
    node = reflector.to_node(Profile(keep="k", secret="s", note="n"))

    assert [f.name for f in node.fields] == ["keep"]
    assert node.props is None
    assert reflector.to_json(Profile(keep="k", secret="s", note="n")) == {"keep": "k"}
    assert reflector.from_node(node) == Profile(keep="k")


def test_generic_composite_round_trip(reflector):
    node = reflector.to_node(Box(5), Box[int])
    assert node.type_name == "tests.models.Box<int>"
    assert reflector.from_node(node) == Box(5)


def test_properties_are_written_and_read_only_ones_skipped(reflector):
    counter = Counter()
    counter.count = 3
    node = reflector.to_node(counter)

    assert [p.name for p in node.props] == ["count", "doubled"]
    node.get_prop("doubled").value = 100
    restored = reflector.from_node(node)
    assert restored.count == 3
    assert restored.doubled == 6
    assert restored.label == "counter"


def test_cycle_becomes_reference(reflector):
    a, b = Linked("a"), Linked("b")
    a.next, b.next = b, a

    node = reflector.to_node(a)
    back = node.get_field("next").get_field("next")
    assert back.is_reference
    assert back.reference_path == "#"
    assert back.to_dict() == {"typeName": "$ref", "name": "next", "value": {"$ref": "#"}}

    assert reflector.to_json(a) == {"name": "a", "next": {"name": "b", "next": {"$ref": "#"}}}


def test_references_are_not_dereferenced(reflector):
    a = Linked("a")
    a.next = a
    restored = reflector.from_node(reflector.to_node(a))
    assert isinstance(restored.next, ValueNode)
    assert restored.next.is_reference


def test_shared_siblings_are_serialized_twice(reflector):
    shared = Node(7)
    payload = reflector.to_json(Node(0, [shared, shared]))
    assert payload["children"] == [{"value": 7, "children": []}, {"value": 7, "children": []}]


def test_self_containing_list_is_unsupported(reflector):
    items: list = []
    items.append(items)
    with pytest.raises(UnsupportedTypeError, match="contains itself"):
        reflector.to_json(items)


def test_depth_guard(reflector):
    reflector.settings.max_depth = 3
    deep = Node(0, [Node(1, [Node(2, [Node(3, [Node(4)])])])])
    with pytest.raises(UnsupportedTypeError, match="maximum depth"):
        reflector.to_node(deep)


def test_null_handling(reflector):
    node = reflector.to_node(None, Optional[Person])
    assert node.to_dict() == {"typeName": type_id(Person)}
    assert reflector.from_node(node) is None
    assert reflector.from_node({"typeName": "int"}, int) == 0
    assert reflector.from_node({"typeName": "int"}, Optional[int]) is None


def test_unknown_type_name(reflector):
    with pytest.raises(TypeNotFoundError, match="Not.A.Real.Type") as info:
        reflector.from_node({"typeName": "Not.A.Real.Type", "value": {}}, Person)
    assert info.value.kind is ErrorKind.TYPE_NOT_FOUND

    with pytest.raises(TypeNotFoundError):
        reflector.from_node({"typeName": "Not.A.Real.Type"})


def test_type_mismatch(reflector):
    with pytest.raises(ParameterMismatchError, match="Type mismatch. Expected 'int', but got 'str'."):
        reflector.from_node({"typeName": "str", "value": "x"}, int)


def test_malformed_node(reflector):
    with pytest.raises(ConverterError):
        reflector.from_node({"typeName": 5})
    with pytest.raises(ConverterError):
        ValueNode.from_json("{not json")


def test_plain_json_for_composites(reflector):
    payload = reflector.to_json(_person())
    assert payload["address"] == {"street": "1 Main St", "city": "London", "zip_code": 12345}
    assert reflector.from_json(payload, Person) == _person()


def test_double_encoded_payload_is_unwrapped(reflector):
    raw = json.dumps(json.dumps(["a", "b"]))
    assert reflector.codec.coerce(raw, List[str]) == ["a", "b"]
    assert reflector.codec.coerce('{"value": 2}', Node) == Node(2)
    assert reflector.codec.coerce('"quoted"', str) == '"quoted"'


def test_coerce_accepts_node_dicts(reflector):
    node = reflector.to_node(Node(3)).to_dict()
    assert reflector.codec.coerce(node, Node) == Node(3)
    assert reflector.codec.coerce(ValueNode.from_dict(node), Node) == Node(3)


def test_populate_updates_in_place(reflector):
    person = Person(name="Ada", address=Address(city="Paris"))
    logs = reflector.populate(
        person,
        {
            "typeName": type_id(Person),
            "fields": [
                {"typeName": "str", "name": "name", "value": "Grace"},
                {"typeName": "int", "name": "shoe_size", "value": 9},
                {
                    "typeName": type_id(Address),
                    "name": "address",
                    "fields": [{"typeName": "str", "name": "street", "value": "Elm"}],
                },
            ],
        },
    )

    assert person.name == "Grace"
    assert person.address.street == "Elm"
    assert person.address.city == "Paris"
    assert not logs.has_errors
    text = str(logs)
    assert "[Success] Field 'name' modified to 'Grace'." in text
    assert "[Warning] Field 'shoe_size' not found on 'Person'." in text


def test_populate_reports_errors_as_logs(reflector):
    person = Person()
    logs = reflector.populate(person, {"typeName": "Not.A.Real.Type"})
    assert logs.has_errors
    assert "Not.A.Real.Type" in str(logs)

    logs = reflector.populate(person, {"typeName": type_id(Node)})
    assert "[Error] Type mismatch." in str(logs)


def test_edit_node_before_reading(reflector):
    counter = Counter()
    node = reflector.to_node(counter)
    assert node.set_field_value("label", "edited")
    assert node.set_prop_value("count", 4)
    assert not node.set_field_value("missing", 1)

    restored = reflector.from_node(node)
    assert (restored.label, restored.count) == ("edited", 4)


def test_wire_keys():
    node = ValueNode(type_name="int", name="x", value=1)
    assert node.to_dict() == {"typeName": "int", "name": "x", "value": 1}
    assert ValueNode.looks_like({"typeName": "int", "value": 1})
    assert not ValueNode.looks_like({"typeName": "int", "other": 1})
