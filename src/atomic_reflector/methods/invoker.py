"""Dynamic dispatch of reflected methods.

Every call runs through the same stages: bind the supplied arguments to the
declared parameters, coerce each raw value to its parameter type, execute the
bound callable (optionally on an injected execution context), resolve an
awaitable result, and package the outcome as an :class:`InvocationResult`.
Failures at any stage are packaged as well; nothing raised by the invoked
method escapes :meth:`Invoker.invoke` or :meth:`Invoker.invoke_by_name`.
"""
from __future__ import annotations

import asyncio
import inspect
import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    TypeVar,
    runtime_checkable,
)

from ..codec.node import ValueNode
from ..core.Exceptions import ErrorKind, ExecutionError, ParameterMismatchError, ReflectorError, TypeNotFoundError
from ..core.Logs import indent, padding
from ..typeinfo.introspection import is_any, short_name
from .descriptor import MethodDescriptor

if TYPE_CHECKING:  # pragma: no cover
    from ..reflector import Reflector

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ───────────────────────────────────────────────────────────────────────────────
# Execution contexts
# ───────────────────────────────────────────────────────────────────────────────
@runtime_checkable
class Executor(Protocol):
    """Anything able to run a zero-argument callable and hand back its result."""

    def run(self, fn: Callable[[], T]) -> T:
        ...


class DirectExecutor:
    """Runs the call on the calling thread."""

    def run(self, fn: Callable[[], T]) -> T:
        return fn()


class MainThread:
    """Runs every call on one dedicated worker thread.

    Callers block until the worker finished the call. A call issued from the
    worker thread itself runs inline so nested invocations cannot deadlock.
    """

    def __init__(self, name: str = "atomic-reflector-main") -> None:
        self._ident: Optional[int] = None
        self._pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name, initializer=self._mark)

    def _mark(self) -> None:
        self._ident = threading.get_ident()

    @property
    def is_current(self) -> bool:
        return self._ident is not None and self._ident == threading.get_ident()

    def run(self, fn: Callable[[], T]) -> T:
        if self.is_current:
            return fn()
        return self._pool.submit(fn).result()

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)

    def __enter__(self) -> "MainThread":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.shutdown()


def run_awaitable(value: Any) -> Any:
    """Resolve ``value`` synchronously when it is awaitable.

    - If no loop is running in this thread, uses ``asyncio.run``.
    - If a loop *is* running, runs the awaitable on a fresh event loop in a
      worker thread and waits for it.
    """
    if not inspect.isawaitable(value):
        return value

    async def _await() -> Any:
        return await value

    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(_await())

    result_box: List[Any] = []
    error_box: List[BaseException] = []

    def runner() -> None:
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            result_box.append(loop.run_until_complete(_await()))
        except BaseException as exc:  # noqa: BLE001
            error_box.append(exc)
        finally:
            loop.close()

    thread = threading.Thread(target=runner, daemon=True)
    thread.start()
    thread.join()

    if error_box:
        raise error_box[0]
    if not result_box:
        raise RuntimeError("Awaitable completed without result")
    return result_box[0]


# ───────────────────────────────────────────────────────────────────────────────
# Results
# ───────────────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class InvocationError:
    kind: str
    message: str
    depth: int = 0

    @classmethod
    def from_exception(cls, error: BaseException) -> "InvocationError":
        if isinstance(error, ReflectorError):
            return cls(error.kind.value, error.message, error.depth)
        return cls(ErrorKind.EXECUTION_FAILED.value, str(error))

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "depth": self.depth}


@dataclass(frozen=True)
class InvocationResult:
    """Outcome of one invocation.

    ``value`` is the raw returned object, ``payload`` its JSON form. Methods
    declared without a return value have ``has_value`` set to False.
    """

    ok: bool
    value: Any = None
    payload: Any = None
    error: Optional[InvocationError] = None
    has_value: bool = False

    @classmethod
    def success(cls, value: Any = None, payload: Any = None, has_value: bool = True) -> "InvocationResult":
        return cls(ok=True, value=value, payload=payload, has_value=has_value)

    @classmethod
    def failure(cls, error: BaseException | InvocationError) -> "InvocationResult":
        if not isinstance(error, InvocationError):
            error = InvocationError.from_exception(error)
        return cls(ok=False, error=error)

    def to_text(self, json_indent: Optional[int] = 2) -> str:
        if not self.ok:
            assert self.error is not None
            return f"{padding(self.error.depth)}[Error] {self.error.message}"
        if not self.has_value:
            return "[Success] Execution completed."
        body = json.dumps(self.payload, indent=json_indent, ensure_ascii=False)
        return f"[Success] Execution result:\n```json\n{body}\n```"

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"ok": self.ok}
        if self.ok:
            if self.has_value:
                d["result"] = self.payload
        else:
            assert self.error is not None
            d["error"] = self.error.to_dict()
        return d

    def __str__(self) -> str:
        return self.to_text()


# ───────────────────────────────────────────────────────────────────────────────
# Invoker
# ───────────────────────────────────────────────────────────────────────────────
class Invoker:
    def __init__(self, reflector: "Reflector", executor: Optional[Executor] = None) -> None:
        self._reflector = reflector
        self._executor: Executor = executor or DirectExecutor()

    @property
    def executor(self) -> Executor:
        return self._executor

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def verify_parameters(self, method: Any, arguments: Any = None) -> Tuple[bool, Optional[str]]:
        """Check ``arguments`` names against the declared parameters of ``method``.

        Returns ``(True, None)`` when the names can be bound, otherwise
        ``(False, message)`` naming the offending parameter.
        """
        try:
            descriptor = self._descriptor(method)
            named = named_arguments(arguments)
        except ReflectorError as e:
            return False, e.message

        params = descriptor.parameters
        declared = {p.name for p in params if not p.is_variadic}
        open_keywords = any(p.kind == "VAR_KEYWORD" for p in params)
        has_var_positional = any(p.kind == "VAR_POSITIONAL" for p in params)

        if not params and named:
            return False, (
                f"Method '{descriptor.name}' does not accept any parameters, but {len(named)} were provided."
            )
        required = [p.name for p in params if not p.is_variadic and not p.has_default]
        if required and not named:
            return False, f"Method '{descriptor.name}' requires parameters, but none were provided."
        for key in named:
            if key in declared or open_keywords:
                continue
            if has_var_positional and any(p.kind == "VAR_POSITIONAL" and p.name == key for p in params):
                continue
            return False, f"Method '{descriptor.name}' does not have a parameter named '{key}'."
        missing = [name for name in required if name not in named]
        if missing:
            return False, f"{descriptor.name}: missing required parameters: {missing}"
        return True, None

    def invoke(
        self,
        method: Any,
        target: Any = None,
        arguments: Optional[Sequence[Any]] = None,
        *,
        executor: Optional[Executor] = None,
    ) -> InvocationResult:
        """Call ``method`` with positional ``arguments``.

        Values fill the non-variadic parameters in declaration order; omitted
        trailing parameters take their declared defaults. Extra values go to
        ``*args`` when the method declares one.
        """
        try:
            descriptor = self._descriptor(method)
            instance = self._resolve_target(descriptor, target)
            args, kwargs = self._bind_positional(descriptor, list(arguments or ()))
        except ReflectorError as e:
            return self._failure(method, e)
        return self._run(descriptor, instance, args, kwargs, executor)

    def invoke_by_name(
        self,
        method: Any,
        target: Any = None,
        arguments: Any = None,
        *,
        executor: Optional[Executor] = None,
    ) -> InvocationResult:
        """Call ``method`` with named ``arguments``.

        ``arguments`` is a mapping of parameter name to raw value, or a
        sequence of named :class:`ValueNode` objects (or their dict form).
        """
        try:
            descriptor = self._descriptor(method)
            named = named_arguments(arguments)
            ok, message = self.verify_parameters(descriptor, named)
            if not ok:
                raise ParameterMismatchError(message or "Parameters do not match.")
            instance = self._resolve_target(descriptor, target)
            args, kwargs = self._bind_named(descriptor, named)
        except ReflectorError as e:
            return self._failure(method, e)
        return self._run(descriptor, instance, args, kwargs, executor)

    # ------------------------------------------------------------------ #
    # Bind
    # ------------------------------------------------------------------ #
    def _bind_positional(self, descriptor: MethodDescriptor, values: List[Any]) -> Tuple[Tuple[Any, ...], Dict[str, Any]]:
        params = descriptor.parameters
        fixed = [p for p in params if not p.is_variadic]
        var_positional = next((p for p in params if p.kind == "VAR_POSITIONAL"), None)
        if len(values) > len(fixed) and var_positional is None:
            raise ParameterMismatchError(
                f"Method '{descriptor.name}' accepts {len(fixed)} parameter(s), but {len(values)} were provided."
            )

        args: List[Any] = []
        kwargs: Dict[str, Any] = {}
        for index, param in enumerate(fixed):
            if index < len(values):
                value = self._coerce(param.name, values[index], param.annotation)
            elif param.has_default:
                value = param.default
            else:
                raise ParameterMismatchError(
                    f"No value provided for parameter '{param.name}' and no default value is defined."
                )
            if param.kind == "KEYWORD_ONLY":
                kwargs[param.name] = value
            else:
                args.append(value)
        if var_positional is not None:
            args.extend(
                self._coerce(var_positional.name, value, var_positional.annotation) for value in values[len(fixed):]
            )
        return tuple(args), kwargs

    def _bind_named(self, descriptor: MethodDescriptor, data: Dict[str, Any]) -> Tuple[Tuple[Any, ...], Dict[str, Any]]:
        """Map named inputs onto ``(*args, **kwargs)``.

        - Positional-capable parameters are passed positionally in declaration
          order, taking the declared default when omitted.
        - ``KEYWORD_ONLY`` parameters are passed as keywords when present.
        - ``VAR_POSITIONAL`` expects a list or tuple under its own name.
        - ``VAR_KEYWORD`` collects unknown keys plus an explicit mapping given
          under its own name.
        """
        params = sorted(descriptor.parameters, key=lambda p: p.index)
        known = {p.name for p in params}
        varkw = next((p for p in params if p.kind == "VAR_KEYWORD"), None)

        args: List[Any] = []
        kwargs: Dict[str, Any] = {}
        for param in params:
            provided = param.name in data
            if param.kind == "VAR_POSITIONAL":
                if provided:
                    raw = self._reflector.codec.unwrap_encoded(_plain(data[param.name]), List[Any])
                    if not isinstance(raw, (list, tuple)):
                        raise ParameterMismatchError(
                            f"{descriptor.name}: var-positional parameter '{param.name}' must be a list or tuple"
                        )
                    args.extend(self._coerce(param.name, item, param.annotation) for item in raw)
                continue
            if param.kind == "VAR_KEYWORD":
                continue
            if provided:
                value = self._coerce(param.name, data[param.name], param.annotation)
            elif param.has_default:
                value = param.default
            else:
                continue
            if param.kind == "KEYWORD_ONLY":
                kwargs[param.name] = value
            else:
                args.append(value)

        if varkw is not None:
            extra: Dict[str, Any] = {}
            if varkw.name in data:
                explicit = self._reflector.codec.unwrap_encoded(_plain(data[varkw.name]), Dict[str, Any])
                if not isinstance(explicit, Mapping):
                    raise ParameterMismatchError(
                        f"{descriptor.name}: var-keyword parameter '{varkw.name}' must be a mapping if provided"
                    )
                extra.update({k: self._coerce(k, v, varkw.annotation) for k, v in explicit.items()})
            for key in data.keys() - known:
                if key in extra or key in kwargs:
                    raise ParameterMismatchError(f"{descriptor.name}: duplicate key '{key}' in **kwargs aggregation")
                extra[key] = self._coerce(key, data[key], varkw.annotation)
            kwargs.update(extra)
        return tuple(args), kwargs

    # ------------------------------------------------------------------ #
    # Coerce / execute / package
    # ------------------------------------------------------------------ #
    def _coerce(self, name: str, raw: Any, annotation: Any) -> Any:
        try:
            return self._reflector.codec.coerce(raw, annotation)
        except TypeNotFoundError:
            raise
        except ReflectorError as e:
            raise ParameterMismatchError(
                f"Failed to convert parameter '{name}' to '{short_name(annotation)}':\n{indent(e.message, 1)}"
            ) from e

    def _resolve_target(self, descriptor: MethodDescriptor, target: Any) -> Any:
        if descriptor.is_static:
            return None
        owner = descriptor.owner
        if target is None:
            try:
                return owner()
            except Exception as e:
                raise ParameterMismatchError(
                    f"Method '{descriptor.name}' needs an instance of '{short_name(owner)}' "
                    f"and it could not be created without arguments: {e}"
                ) from e
        if isinstance(target, owner):
            return target
        if isinstance(target, ValueNode) or ValueNode.looks_like(target):
            return self._reflector.codec.from_node(target, owner)
        if isinstance(target, Mapping):
            return self._reflector.codec.from_json(target, owner)
        raise ParameterMismatchError(
            f"Target of type '{short_name(type(target))}' is not an instance of '{short_name(owner)}'."
        )

    def _run(
        self,
        descriptor: MethodDescriptor,
        instance: Any,
        args: Tuple[Any, ...],
        kwargs: Dict[str, Any],
        executor: Optional[Executor],
    ) -> InvocationResult:
        fn = descriptor.bind(instance)
        runner = executor or self._executor
        logger.debug(f"Invoker: calling {descriptor.full_name} with {len(args)} positional, {len(kwargs)} keyword")
        try:
            value = runner.run(lambda: run_awaitable(fn(*args, **kwargs)))
        except Exception as e:
            logger.debug(f"Invoker: {descriptor.full_name} raised", exc_info=True)
            return InvocationResult.failure(ExecutionError(f"{descriptor.full_name}: invocation failed: {e}"))

        has_value = descriptor.returns_value and not (value is None and is_any(descriptor.result_annotation))
        if not has_value:
            return InvocationResult.success(value, None, has_value=False)
        try:
            payload = self._reflector.codec.to_json(value, descriptor.result_annotation)
        except ReflectorError as e:
            return self._failure(descriptor, e)
        return InvocationResult.success(value, payload)

    def _descriptor(self, method: Any) -> MethodDescriptor:
        if isinstance(method, MethodDescriptor):
            return method
        return self._reflector.describe_method(method)

    @staticmethod
    def _failure(method: Any, error: ReflectorError) -> InvocationResult:
        name = method.full_name if isinstance(method, MethodDescriptor) else getattr(method, "__qualname__", method)
        logger.info(f"Invoker: {name} failed: {error.kind.value}: {error.message}")
        return InvocationResult.failure(error)


# ───────────────────────────────────────────────────────────────────────────────
# Helpers
# ───────────────────────────────────────────────────────────────────────────────
def named_arguments(arguments: Any) -> Dict[str, Any]:
    """Normalize call arguments to ``{name: raw value}``."""
    if arguments is None:
        return {}
    if isinstance(arguments, Mapping):
        return dict(arguments)
    named: Dict[str, Any] = {}
    for position, item in enumerate(arguments):
        node = item if isinstance(item, ValueNode) else ValueNode.from_dict(item)
        if not node.name:
            raise ParameterMismatchError(f"Argument at position {position} has no name.")
        named[node.name] = node
    return named


def _plain(raw: Any) -> Any:
    """Payload of a node argument, or ``raw`` itself."""
    return raw.value if isinstance(raw, ValueNode) else raw
