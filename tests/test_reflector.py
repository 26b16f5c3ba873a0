from dataclasses import dataclass

from atomic_reflector import MemberScope, MethodFilter, Reflector
from tests import models
from tests.models import Calculator


@dataclass
class Thermostat:
    target: float = 20.0

    def raise_by(self, delta: float) -> float:
        self.target += delta
        return self.target


def test_call_method_narrows_by_argument_names(reflector):
    result = reflector.call_method({"typeName": "Calculator", "methodName": "add"}, arguments={"a": 5})
    assert result.ok
    assert result.value == 15


def test_call_method_with_target_and_node_arguments(reflector):
    calc = Calculator()
    calc.offset = 1
    result = reflector.call_method(
        MethodFilter(type_name="Calculator", method_name="add"),
        target=calc,
        arguments=[{"typeName": "int", "name": "a", "value": 1}, {"typeName": "int", "name": "b", "value": 1}],
        method_name_match_level=6,
    )
    assert result.value == 3


def test_call_method_by_name_string(reflector):
    result = reflector.call_method("greet", arguments={"name": "Ada"})
    assert result.to_text() == '[Success] Execution result:\n```json\n"Hello, Ada!"\n```'


def test_call_method_reports_ambiguity_as_result(reflector):
    result = reflector.call_method({"typeName": "Calculator", "methodName": "add"})
    assert not result.ok
    assert result.error.kind == "AmbiguousMethod"
    assert result.to_text().startswith("[Error] Found more than one method.")


def test_call_method_reports_missing_method(reflector):
    result = reflector.call_method("no_such_method")
    assert result.error.kind == "MethodNotFound"
    assert result.error.message == "Method not found.\nno_such_method()"


def test_call_method_with_unmatched_parameter_types(reflector):
    result = reflector.call_method(
        "greet",
        arguments=[{"typeName": "int", "name": "name", "value": 1}],
        parameters_match_level=3,
    )
    assert result.error.kind == "MethodNotFound"


def test_describe_method_infers_owner(reflector):
    assert reflector.describe_method(Calculator.paint).owner is Calculator
    assert reflector.describe_method(Calculator().paint).owner is Calculator
    assert reflector.describe_method(models.greet).owner is None

    def local(x: int) -> int:
        return x

    descriptor = reflector.describe_method(local)
    assert descriptor.owner is None
    assert descriptor.is_static


def test_registered_types_become_reachable():
    reflector = Reflector()
    assert reflector.find_method("raise_by") == []

    reflector.register_type(Thermostat)
    result = reflector.call_method("raise_by", target={"target": 18.5}, arguments={"delta": 1})
    assert result.value == 19.5
    assert reflector.from_node({"typeName": "tests.test_reflector.Thermostat", "value": {}}) == Thermostat()


def test_register_module_by_name():
    reflector = Reflector()
    assert "tests.models.Calculator" in reflector.register_module("tests.models")
    assert len(reflector.find_method("greet")) == 1


def test_from_env_reads_settings(monkeypatch):
    monkeypatch.setenv("ATOMIC_REFLECTOR_METHOD_SCOPE", "PUBLIC|STATIC")
    reflector = Reflector.from_env(modules=[models])

    assert reflector.settings.method_scope == MemberScope.PUBLIC | MemberScope.STATIC
    assert reflector.find_method(MethodFilter(type_name="Calculator", method_name="add")) == []
    assert [d.name for d in reflector.find_method("multiply")] == ["multiply"]


def test_repr(reflector):
    assert repr(reflector).startswith("<Reflector types=")
