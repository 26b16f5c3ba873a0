from .node import REFERENCE_TYPE_NAME, ValueNode
from .context import SerializationContext
from .codec import ValueCodec

__all__ = ["REFERENCE_TYPE_NAME", "ValueNode", "SerializationContext", "ValueCodec"]
