from .generator import SchemaGenerator, postprocess, ref_to, returns_nothing, unwrap_awaitable

__all__ = ["SchemaGenerator", "postprocess", "ref_to", "returns_nothing", "unwrap_awaitable"]
