"""Engine facade wiring the reflection components to one set of settings."""
from __future__ import annotations

import inspect
import logging
import sys
from types import ModuleType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .codec.codec import ValueCodec
from .codec.node import ValueNode
from .converters.base import ConverterRegistry
from .converters.builtin import register_defaults
from .core.Exceptions import ReflectorError
from .core.Logs import Logs
from .core.Settings import ReflectorSettings
from .methods.descriptor import MethodDescriptor, MethodFilter
from .methods.invoker import Executor, InvocationResult, Invoker, named_arguments
from .methods.resolver import MethodResolver
from .schema.generator import SchemaGenerator
from .typeinfo.catalog import TypeCatalog

logger = logging.getLogger(__name__)

FilterLike = Union[MethodFilter, Mapping[str, Any], str, None]


class Reflector:
    """Reflection engine.

    Owns a :class:`ConverterRegistry`, a :class:`TypeCatalog` and the
    components built on them (schema generator, value codec, method resolver,
    invoker). Schema generation, the codec and resolution are safe to share
    between threads as long as the converter registry and the catalog are not
    mutated concurrently.

    Example
    -------
    >>> reflector = Reflector(modules=["my_app.tools"])
    >>> reflector.call_method("add", arguments={"a": 1, "b": 2}).to_text()
    """

    def __init__(
        self,
        settings: Optional[ReflectorSettings] = None,
        *,
        converters: Optional[ConverterRegistry] = None,
        catalog: Optional[TypeCatalog] = None,
        executor: Optional[Executor] = None,
        types: Iterable[Any] = (),
        modules: Iterable[Union[ModuleType, str]] = (),
    ) -> None:
        self.settings = settings or ReflectorSettings()
        self.settings.apply_logging()
        self.converters = converters if converters is not None else register_defaults(ConverterRegistry())
        self.catalog = catalog if catalog is not None else TypeCatalog()
        for tp in types:
            self.catalog.register(tp)
        for module in modules:
            self.catalog.register_module(module)

        self.schema = SchemaGenerator(self)
        self.codec = ValueCodec(self)
        self.resolver = MethodResolver(self)
        self.invoker = Invoker(self, executor)

    @classmethod
    def from_env(cls, *, dotenv_path: Optional[str] = None, **kwargs: Any) -> "Reflector":
        """Engine configured from ``ATOMIC_REFLECTOR_*`` variables (``.env`` honoured)."""
        return cls(ReflectorSettings.from_env(dotenv_path=dotenv_path), **kwargs)

    # ------------------------------------------------------------------ #
    # Catalog
    # ------------------------------------------------------------------ #
    def register_type(self, tp: Any, *, name: Optional[str] = None) -> str:
        return self.catalog.register(tp, name=name)

    def register_module(self, module: Union[ModuleType, str]) -> List[str]:
        return self.catalog.register_module(module)

    # ------------------------------------------------------------------ #
    # Schemas
    # ------------------------------------------------------------------ #
    def get_schema(self, tp: Any, just_ref: bool = False) -> Dict[str, Any]:
        return self.schema.get_schema(tp, just_ref=just_ref)

    def get_arguments_schema(self, method: Any) -> Dict[str, Any]:
        return self.schema.get_arguments_schema(self.describe_method(method))

    def get_return_schema(self, method: Any) -> Optional[Dict[str, Any]]:
        return self.schema.get_return_schema(self.describe_method(method))

    # ------------------------------------------------------------------ #
    # Values
    # ------------------------------------------------------------------ #
    def to_node(self, value: Any, tp: Any = None, name: Optional[str] = None) -> ValueNode:
        return self.codec.to_node(value, tp, name)

    def from_node(self, node: Any, tp: Any = None) -> Any:
        return self.codec.from_node(node, tp)

    def to_json(self, value: Any, tp: Any = None) -> Any:
        return self.codec.to_json(value, tp)

    def from_json(self, payload: Any, tp: Any = None) -> Any:
        return self.codec.from_json(payload, tp)

    def populate(self, target: Any, node: Any, depth: int = 0) -> Logs:
        return self.codec.populate(target, node, depth)

    # ------------------------------------------------------------------ #
    # Methods
    # ------------------------------------------------------------------ #
    def describe_method(self, method: Any, *, owner: Optional[type] = None) -> MethodDescriptor:
        """Descriptor of a function, bound method, static/class method or callable.

        A plain function read off a class (``Type.method``) is recognised as a
        member of that class through its qualified name.
        """
        if isinstance(method, MethodDescriptor):
            return method
        if inspect.isfunction(method):
            owner = owner or _owner_of(method)
            if owner is not None:
                attr = inspect.getattr_static(owner, method.__name__, None)
                if isinstance(attr, (staticmethod, classmethod)) and attr.__func__ is method:
                    return self.resolver.describe(attr, owner=owner, name=method.__name__)
                return self.resolver.describe(method, owner=owner, name=method.__name__)
        return self.resolver.describe(method, owner=owner)

    def find_method(self, method_filter: FilterLike = None, **options: Any) -> List[MethodDescriptor]:
        """Every method matching ``method_filter``; see :meth:`MethodResolver.find_method`."""
        return self.resolver.find_method(_as_filter(method_filter), **options)

    def find_single(
        self,
        method_filter: FilterLike = None,
        *,
        argument_names: Optional[Sequence[str]] = None,
        **options: Any,
    ) -> MethodDescriptor:
        return self.resolver.find_single(_as_filter(method_filter), argument_names=argument_names, **options)

    def verify_parameters(self, method: Any, arguments: Any = None) -> Tuple[bool, Optional[str]]:
        return self.invoker.verify_parameters(method, arguments)

    def invoke(
        self,
        method: Any,
        target: Any = None,
        arguments: Optional[Sequence[Any]] = None,
        *,
        executor: Optional[Executor] = None,
    ) -> InvocationResult:
        return self.invoker.invoke(method, target, arguments, executor=executor)

    def invoke_by_name(
        self,
        method: Any,
        target: Any = None,
        arguments: Any = None,
        *,
        executor: Optional[Executor] = None,
    ) -> InvocationResult:
        return self.invoker.invoke_by_name(method, target, arguments, executor=executor)

    def call_method(
        self,
        method_filter: FilterLike = None,
        *,
        target: Any = None,
        arguments: Any = None,
        executor: Optional[Executor] = None,
        **options: Any,
    ) -> InvocationResult:
        """Resolve exactly one method from a filter and call it with named ``arguments``.

        The filter's parameter list is filled from the argument names and node
        type names; it only takes part in matching when a
        ``parameters_match_level`` is given. Among several candidates those
        whose parameters fit the argument names win.
        """
        try:
            named = named_arguments(arguments)
            resolved = _as_filter(method_filter).with_arguments(named if arguments is not None else None)
            descriptor = self.resolver.find_single(resolved, argument_names=list(named), **options)
        except ReflectorError as e:
            logger.info(f"Reflector: call_method({method_filter}) failed: {e.kind.value}")
            return InvocationResult.failure(e)
        return self.invoker.invoke_by_name(descriptor, target, named, executor=executor)

    def __repr__(self) -> str:
        return f"<Reflector types={len(self.catalog)} converters={len(self.converters)}>"


def _as_filter(method_filter: FilterLike) -> MethodFilter:
    if method_filter is None:
        return MethodFilter()
    if isinstance(method_filter, MethodFilter):
        return method_filter
    if isinstance(method_filter, str):
        return MethodFilter(method_name=method_filter)
    if isinstance(method_filter, Mapping):
        return MethodFilter.from_dict(method_filter)
    raise TypeError(f"Expected a MethodFilter, mapping or method name, got {type(method_filter).__name__}")


def _owner_of(function: Callable[..., Any]) -> Optional[type]:
    """Class declaring ``function``, found through its ``__qualname__``."""
    parts = function.__qualname__.split(".")
    if len(parts) < 2 or "<locals>" in parts:
        return None
    obj: Any = sys.modules.get(function.__module__)
    for part in parts[:-1]:
        obj = getattr(obj, part, None)
        if obj is None:
            return None
    return obj if inspect.isclass(obj) else None
