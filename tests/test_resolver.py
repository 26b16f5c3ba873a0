import json

import pytest

from atomic_reflector import MatchLevel, MemberScope, MethodFilter, ParameterFilter
from atomic_reflector.core import AmbiguousMethodError, ErrorKind, MethodNotFoundError
from atomic_reflector.methods import compare
from tests import models
from tests.models import Calculator


@pytest.mark.parametrize(
    "candidate, wanted, level",
    [
        ("add", "add", MatchLevel.EXACT),
        ("Add", "add", MatchLevel.EQUALS_IGNORE_CASE),
        ("addition", "add", MatchLevel.STARTS_WITH),
        ("Addition", "add", MatchLevel.STARTS_WITH_IGNORE_CASE),
        ("readd", "add", MatchLevel.CONTAINS),
        ("reAdd", "add", MatchLevel.CONTAINS_IGNORE_CASE),
        ("multiply", "add", 0),
        ("", "add", 0),
        ("add", None, 0),
    ],
)
def test_compare_scale(candidate, wanted, level):
    assert compare(candidate, wanted) == level


def _names(descriptors):
    return sorted(d.name for d in descriptors)


def test_loose_match_finds_every_candidate(reflector):
    found = reflector.find_method(MethodFilter(type_name="Calculator", method_name="add"))
    assert _names(found) == ["add", "add_async"]


def test_match_level_monotonicity(reflector):
    wanted = MethodFilter(type_name="calc", method_name="ADD")
    previous = None
    for level in range(1, 7):
        current = set(
            reflector.find_method(wanted, type_name_match_level=1, method_name_match_level=level)
        )
        if previous is not None:
            assert current <= previous
        previous = current


def test_exact_level_narrows_to_one(reflector):
    found = reflector.find_method(
        MethodFilter(type_name="Calculator", method_name="add"), method_name_match_level=MatchLevel.EXACT
    )
    assert _names(found) == ["add"]


def test_unset_fields_match_anything(reflector):
    found = reflector.find_method(MethodFilter(method_name="greet"))
    assert len(found) == 1
    descriptor = found[0]
    assert descriptor.type_name is None
    assert descriptor.namespace == "tests.models"
    assert descriptor.is_static


def test_known_namespace_requires_equality(reflector):
    assert len(reflector.find_method({"namespace": "tests.models", "methodName": "greet"}, known_namespace=True)) == 1
    assert reflector.find_method({"namespace": "tests", "methodName": "greet"}, known_namespace=True) == []
    assert len(reflector.find_method({"namespace": "tests", "methodName": "greet"}, namespace_match_level=4)) == 1


def test_scope_selects_members(reflector):
    assert reflector.find_method("_hidden") == []
    assert _names(reflector.find_method("_hidden", scope=MemberScope.ALL)) == ["_hidden"]
    instance_only = MemberScope.PUBLIC | MemberScope.INSTANCE
    assert reflector.find_method(MethodFilter(type_name="Calculator", method_name="multiply"), scope=instance_only) == []


def test_ignored_methods_are_invisible(reflector):
    assert reflector.find_method("skipped", scope=MemberScope.ALL) == []


def test_parameter_matching_levels(reflector):
    ints = [ParameterFilter(name="a", type_name="int"), ParameterFilter(name="b", type_name="int")]
    by_type = MethodFilter(type_name="Calculator", parameters=ints)

    exact = reflector.find_method(by_type, parameters_match_level=3)
    assert _names(exact) == ["add", "add_async"]

    compatible = reflector.find_method(by_type, parameters_match_level=2)
    assert _names(compatible) == ["add", "add_async", "multiply"]

    one = reflector.find_method(MethodFilter(type_name="Calculator", parameters=[ParameterFilter()]), parameters_match_level=1)
    assert _names(one) == ["paint"]

    two = reflector.find_method(
        MethodFilter(type_name="Calculator", parameters=[ParameterFilter(), ParameterFilter()]), parameters_match_level=1
    )
    assert _names(two) == ["add", "add_async", "join", "multiply"]

    none = reflector.find_method(MethodFilter(type_name="Calculator", parameters=[]), parameters_match_level=1)
    assert "reset" in _names(none) and "add" not in _names(none)


def test_find_single_reports_ambiguity(reflector):
    with pytest.raises(AmbiguousMethodError) as info:
        reflector.find_single(MethodFilter(type_name="Calculator", method_name="add"))

    error = info.value
    assert error.kind is ErrorKind.AMBIGUOUS_METHOD
    assert len(error.candidates) == 2
    assert error.message.startswith("Found more than one method. Only single method should be targeted.")
    assert "Found 2 method(s):" in error.message
    listing = error.message.split("```json\n", 1)[1].rsplit("\n```", 1)[0]
    assert sorted(entry["methodName"] for entry in json.loads(listing)) == ["add", "add_async"]


def test_find_single_narrows_by_argument_names(reflector):
    descriptor = reflector.find_single(
        MethodFilter(type_name="Calculator", method_name="add"), argument_names=["a"]
    )
    assert descriptor.name == "add"


def test_find_single_not_found(reflector):
    with pytest.raises(MethodNotFoundError, match="Method not found."):
        reflector.find_single("does_not_exist")


def test_descriptor_identity(reflector):
    descriptor = reflector.describe_method(Calculator.add)

    assert descriptor.owner is Calculator
    assert descriptor.full_name == "tests.models.Calculator.add"
    assert not descriptor.is_static
    assert [p.name for p in descriptor.parameters] == ["a", "b"]
    assert descriptor.parameters[1].default == 10
    assert descriptor.return_type == "int"
    assert descriptor.signature == "tests.models.Calculator.add(a: int, b: int = 10) -> int"
    assert descriptor.description == "Adds two numbers and the calculator offset."
    assert reflector.describe_method(Calculator.add) is descriptor


def test_descriptor_static_and_class_methods(reflector):
    assert reflector.describe_method(Calculator.multiply).is_static
    create = reflector.describe_method(Calculator.create)
    assert create.is_static and create.is_classmethod
    assert create.parameters == []


def test_descriptor_dict_form(reflector):
    d = reflector.describe_method(models.greet).to_dict()
    assert d["namespace"] == "tests.models"
    assert d["typeName"] is None
    assert d["methodName"] == "greet"
    assert d["inputParameters"] == [{"typeName": "str", "name": "name"}, {"typeName": "str", "name": "punctuation"}]
    assert d["inputParametersSchema"]["required"] == ["name"]
    assert d["returnSchema"]["properties"]["result"] == {"type": "string"}


def test_filter_dict_round_trip():
    wanted = MethodFilter("ns", "T", "m", [ParameterFilter("a", "int")])
    assert MethodFilter.from_dict(wanted.to_dict()) == wanted
    assert str(wanted) == "ns.T.m(int a)"
