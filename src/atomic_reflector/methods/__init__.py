from .parameters import ParameterDescriptor, extract_parameters
from .descriptor import MethodDescriptor, MethodFilter, ParameterFilter
from .resolver import MatchLevel, MethodResolver, ParameterMatch, compare, name_matches
from .invoker import (
    DirectExecutor,
    Executor,
    InvocationError,
    InvocationResult,
    Invoker,
    MainThread,
    named_arguments,
    run_awaitable,
)

__all__ = [
    "ParameterDescriptor",
    "extract_parameters",
    "MethodDescriptor",
    "MethodFilter",
    "ParameterFilter",
    "MatchLevel",
    "ParameterMatch",
    "MethodResolver",
    "compare",
    "name_matches",
    "Executor",
    "DirectExecutor",
    "MainThread",
    "InvocationError",
    "InvocationResult",
    "Invoker",
    "run_awaitable",
    "named_arguments",
]
