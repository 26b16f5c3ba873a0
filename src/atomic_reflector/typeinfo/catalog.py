from __future__ import annotations

import builtins
import datetime
import decimal
import importlib
import inspect
import logging
import sys
import uuid
from types import ModuleType
from typing import Any, Dict, Iterable, List, Optional, Union

from .introspection import ARRAY_SUFFIX, NoneType, type_id

logger = logging.getLogger(__name__)

_SEED_TYPES = (
    bool,
    int,
    float,
    complex,
    str,
    bytes,
    bytearray,
    object,
    list,
    tuple,
    set,
    frozenset,
    dict,
    decimal.Decimal,
    datetime.datetime,
    datetime.date,
    datetime.time,
    datetime.timedelta,
    uuid.UUID,
)


class TypeCatalog:
    """Explicit registry mapping canonical identifiers to runtime types.

    The catalog is the only place a type name is turned back into a type.
    ``resolve`` never imports anything: dotted names are looked up among the
    modules already present in ``sys.modules``. Modules registered with
    :meth:`register_module` also contribute their functions to method
    resolution.
    """

    def __init__(self, types: Iterable[Any] = (), modules: Iterable[Union[ModuleType, str]] = ()) -> None:
        self._types: Dict[str, Any] = {}
        self._modules: Dict[str, ModuleType] = {}
        self._builtins: Dict[str, Any] = {type_id(t): t for t in _SEED_TYPES}
        self._builtins.update({"Any": Any, "None": NoneType, "Union": Union})
        for tp in types:
            self.register(tp)
        for module in modules:
            self.register_module(module)

    # ------------------------------------------------------------------ #
    # Registration
    # ------------------------------------------------------------------ #
    def register(self, tp: Any, *, name: Optional[str] = None) -> str:
        key = name or type_id(tp)
        self._types[key] = tp
        logger.debug(f"TypeCatalog: registered {key!r}")
        return key

    def register_module(self, module: Union[ModuleType, str]) -> List[str]:
        """Register every class defined in ``module`` and keep it for method lookup.

        A module given by name is imported.
        """
        if isinstance(module, str):
            module = importlib.import_module(module)
        self._modules[module.__name__] = module
        registered = []
        for _, obj in vars(module).items():
            if inspect.isclass(obj) and obj.__module__ == module.__name__:
                registered.append(self.register(obj))
        return registered

    def unregister(self, tp_or_name: Any) -> bool:
        key = tp_or_name if isinstance(tp_or_name, str) else type_id(tp_or_name)
        return self._types.pop(key, None) is not None

    def types(self) -> List[Any]:
        return list(self._types.values())

    def modules(self) -> List[ModuleType]:
        return list(self._modules.values())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.resolve(name) is not None

    def __len__(self) -> int:
        return len(self._types)

    # ------------------------------------------------------------------ #
    # Resolution
    # ------------------------------------------------------------------ #
    def resolve(self, name: Optional[str]) -> Optional[Any]:
        """Turn a canonical identifier back into a type, or ``None``."""
        if not name or not isinstance(name, str):
            return None
        name = name.strip()
        if name in self._types:
            return self._types[name]
        if name in self._builtins:
            return self._builtins[name]

        if name.endswith(ARRAY_SUFFIX) and len(name) > len(ARRAY_SUFFIX):
            item = self.resolve(name[: -len(ARRAY_SUFFIX)])
            if item is not None:
                return list[item]

        if name.endswith(">") and "<" in name:
            resolved = self._resolve_generic(name)
            if resolved is not None:
                return resolved

        if "." not in name:
            # bare class name: accepted when exactly one registered type carries it
            matches = [tp for tp in self._types.values() if getattr(tp, "__qualname__", None) == name]
            if len(matches) == 1:
                return matches[0]

        return self._resolve_loaded(name)

    def _resolve_generic(self, name: str) -> Optional[Any]:
        outer, _, inner = name[:-1].partition("<")
        origin = self.resolve(outer)
        if origin is None:
            return None
        args = []
        for part in _split_arguments(inner):
            arg = self.resolve(part)
            if arg is None:
                return None
            args.append(arg)
        if not args:
            return origin
        try:
            return origin[tuple(args)] if len(args) > 1 else origin[args[0]]
        except TypeError as e:
            logger.debug(f"TypeCatalog: cannot parametrize {outer!r} with {args!r}: {e}")
            return None

    @staticmethod
    def _resolve_loaded(name: str) -> Optional[Any]:
        parts = name.split(".")
        if len(parts) == 1:
            obj = getattr(builtins, name, None)
            return obj if inspect.isclass(obj) else None
        for split in range(len(parts) - 1, 0, -1):
            module = sys.modules.get(".".join(parts[:split]))
            if module is None:
                continue
            obj: Any = module
            for attr in parts[split:]:
                obj = getattr(obj, attr, None)
                if obj is None:
                    break
            if inspect.isclass(obj):
                return obj
        return None


def _split_arguments(text: str) -> List[str]:
    """Split ``A,B<C,D>,E`` at top-level commas."""
    parts: List[str] = []
    depth = 0
    current = []
    for ch in text:
        if ch == "<":
            depth += 1
        elif ch == ">":
            depth -= 1
        if ch == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return parts
