import collections
import datetime
import decimal
from typing import Any

from atomic_reflector.typeinfo import TypeCatalog, type_id
from tests import models
from tests.models import Box, Color, Node


def test_resolves_builtin_seeds():
    catalog = TypeCatalog()
    assert catalog.resolve("int") is int
    assert catalog.resolve("Any") is Any
    assert catalog.resolve("decimal.Decimal") is decimal.Decimal
    assert catalog.resolve("datetime.timedelta") is datetime.timedelta


def test_resolves_array_and_generic_identifiers():
    catalog = TypeCatalog(types=[Node])
    assert catalog.resolve("strArray") == list[str]
    assert catalog.resolve("intArrayArray") == list[list[int]]
    assert catalog.resolve("dict<str,int>") == dict[str, int]
    assert catalog.resolve("tests.models.NodeArray") == list[Node]
    assert catalog.resolve("tuple<int,str>") == tuple[int, str]


def test_every_identifier_resolves_back_to_its_type():
    catalog = TypeCatalog(modules=[models])
    for tp in (Node, Color, Box[int], list[Node], dict[str, list[int]], tuple[int, datetime.date]):
        assert catalog.resolve(type_id(tp)) == tp


def test_register_module_catalogues_its_classes():
    catalog = TypeCatalog()
    registered = catalog.register_module("tests.models")
    assert type_id(Node) in registered
    assert catalog.modules() == [models]
    assert len(catalog) == len(registered)


def test_bare_name_resolves_when_unique():
    catalog = TypeCatalog(types=[Node])
    assert catalog.resolve("Node") is Node


def test_loaded_modules_are_searched_without_importing():
    catalog = TypeCatalog()
    assert catalog.resolve("collections.OrderedDict") is collections.OrderedDict
    assert catalog.resolve("Not.A.Real.Type") is None
    assert "Not.A.Real.Type" not in catalog


def test_register_under_alias_and_unregister():
    catalog = TypeCatalog()
    catalog.register(Node, name="TreeNode")
    assert catalog.resolve("TreeNode") is Node
    assert catalog.unregister("TreeNode")
    assert not catalog.unregister("TreeNode")
