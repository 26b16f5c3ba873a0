from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from ..core.Exceptions import ConverterError

# Wire keys
KEY_TYPE_NAME = "typeName"
KEY_NAME = "name"
KEY_VALUE = "value"
KEY_FIELDS = "fields"
KEY_PROPS = "props"
KEY_REF = "$ref"

REFERENCE_TYPE_NAME = "$ref"


@dataclass
class ValueNode:
    """Generic member tree for one value.

    ``value`` holds the plain JSON payload of primitives, enumerables and
    mappings. Composites list their members in ``fields`` and ``props``
    instead. A reference node (``type_name == "$ref"``) carries only a path
    pointer in ``value`` and stands for an object denoted elsewhere in the
    same tree.
    """

    type_name: Optional[str]
    name: Optional[str] = None
    value: Any = None
    fields: Optional[List["ValueNode"]] = None
    props: Optional[List["ValueNode"]] = None

    # ------------------------------------------------------------------ #
    # Construction
    # ------------------------------------------------------------------ #
    @classmethod
    def from_reference(cls, path: str, name: Optional[str] = None) -> "ValueNode":
        return cls(type_name=REFERENCE_TYPE_NAME, name=name, value={KEY_REF: path})

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ValueNode":
        if isinstance(data, ValueNode):
            return data
        if not isinstance(data, Mapping):
            raise ConverterError(f"ValueNode expects a JSON object, got {type(data).__name__}")
        type_name = data.get(KEY_TYPE_NAME)
        if type_name is not None and not isinstance(type_name, str):
            raise ConverterError(f"'{KEY_TYPE_NAME}' must be a string, got {type(type_name).__name__}")
        return cls(
            type_name=type_name,
            name=data.get(KEY_NAME),
            value=data.get(KEY_VALUE),
            fields=_children(data, KEY_FIELDS),
            props=_children(data, KEY_PROPS),
        )

    @classmethod
    def from_json(cls, text: str) -> "ValueNode":
        try:
            data = json.loads(text)
        except ValueError as e:
            raise ConverterError(f"ValueNode text is not valid JSON: {e}") from e
        return cls.from_dict(data)

    @staticmethod
    def looks_like(data: Any) -> bool:
        """True for a mapping shaped like the wire form of a node."""
        return (
            isinstance(data, Mapping)
            and isinstance(data.get(KEY_TYPE_NAME), str)
            and set(data) <= {KEY_TYPE_NAME, KEY_NAME, KEY_VALUE, KEY_FIELDS, KEY_PROPS}
        )

    # ------------------------------------------------------------------ #
    # Properties
    # ------------------------------------------------------------------ #
    @property
    def is_reference(self) -> bool:
        return self.type_name == REFERENCE_TYPE_NAME

    @property
    def reference_path(self) -> Optional[str]:
        if self.is_reference and isinstance(self.value, Mapping):
            return self.value.get(KEY_REF)
        return None

    @property
    def is_null(self) -> bool:
        return self.value is None and not self.fields and not self.props

    # ------------------------------------------------------------------ #
    # Members
    # ------------------------------------------------------------------ #
    def get_field(self, name: str) -> Optional["ValueNode"]:
        return next((f for f in self.fields or () if f.name == name), None)

    def get_prop(self, name: str) -> Optional["ValueNode"]:
        return next((p for p in self.props or () if p.name == name), None)

    def add_field(self, node: "ValueNode") -> "ValueNode":
        if self.fields is None:
            self.fields = []
        self.fields.append(node)
        return self

    def add_prop(self, node: "ValueNode") -> "ValueNode":
        if self.props is None:
            self.props = []
        self.props.append(node)
        return self

    def set_field_value(self, name: str, value: Any) -> bool:
        node = self.get_field(name)
        if node is None:
            return False
        node.value = value
        return True

    def set_prop_value(self, name: str, value: Any) -> bool:
        node = self.get_prop(name)
        if node is None:
            return False
        node.value = value
        return True

    # ------------------------------------------------------------------ #
    # Serialization
    # ------------------------------------------------------------------ #
    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {KEY_TYPE_NAME: self.type_name}
        if self.name is not None:
            out[KEY_NAME] = self.name
        if self.value is not None:
            out[KEY_VALUE] = self.value
        if self.fields:
            out[KEY_FIELDS] = [f.to_dict() for f in self.fields]
        if self.props:
            out[KEY_PROPS] = [p.to_dict() for p in self.props]
        return out

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)


def _children(data: Mapping[str, Any], key: str) -> Optional[List[ValueNode]]:
    raw = data.get(key)
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise ConverterError(f"'{key}' must be a list of nodes, got {type(raw).__name__}")
    return [ValueNode.from_dict(item) for item in raw]
