from __future__ import annotations

import inspect
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional, get_origin

from ..typeinfo.introspection import short_name, unwrap

if TYPE_CHECKING:  # pragma: no cover
    from ..reflector import Reflector

logger = logging.getLogger(__name__)

SchemaDefs = Dict[str, Any]


# ───────────────────────────────────────────────────────────────────────────────
# Converter contract
# ───────────────────────────────────────────────────────────────────────────────
class Converter(ABC):
    """Dual-purpose converter for one type (or one family of types).

    A converter turns runtime values into plain JSON (``write_value``) and back
    (``read_value``). It may also take over schema emission for the types it
    serves by returning a schema node from ``emit_schema`` /
    ``emit_schema_ref``; returning ``None`` leaves schema generation to the
    generic reflection path.

    Converters registered with :meth:`ConverterRegistry.add_family` decide
    which types they serve through :meth:`handles`.
    """

    def handles(self, tp: Any) -> bool:
        return False

    @abstractmethod
    def read_value(self, reflector: "Reflector", payload: Any, tp: Any) -> Any:
        """Convert plain JSON ``payload`` into a value of ``tp``."""
        raise NotImplementedError

    @abstractmethod
    def write_value(self, reflector: "Reflector", value: Any, tp: Any) -> Any:
        """Convert ``value`` into plain JSON."""
        raise NotImplementedError

    def emit_schema(self, reflector: "Reflector", tp: Any, defs: SchemaDefs) -> Optional[Dict[str, Any]]:
        return None

    def emit_schema_ref(self, reflector: "Reflector", tp: Any, defs: SchemaDefs) -> Optional[Dict[str, Any]]:
        return self.emit_schema(reflector, tp, defs)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


# ───────────────────────────────────────────────────────────────────────────────
# Registry
# ───────────────────────────────────────────────────────────────────────────────
class ConverterRegistry:
    """Per-engine, mutable mapping from runtime type to :class:`Converter`.

    Resolution order for a type ``T``:

    1. a converter registered for exactly ``T``,
    2. one registered for ``T``'s generic origin (``dict`` for ``dict[str, int]``),
    3. family converters, newest first, whose :meth:`Converter.handles` accepts ``T``,
    4. a converter registered for one of ``T``'s base classes (MRO order).

    The registry is not synchronized; mutate it before concurrent use begins.
    It also holds a blacklist of types whose values are never reflected.
    """

    def __init__(self) -> None:
        self._exact: Dict[Any, Converter] = {}
        self._families: List[Converter] = []
        self._blacklist: List[type] = []

    # ------------------------------------------------------------------ #
    # Mutation
    # ------------------------------------------------------------------ #
    def add(self, tp: Any, converter: Converter) -> None:
        if not isinstance(converter, Converter):
            raise TypeError(f"expected a Converter, got {type(converter)!r}")
        self._exact[tp] = converter
        logger.debug(f"ConverterRegistry: {converter!r} registered for {short_name(tp)}")

    def add_family(self, converter: Converter) -> None:
        if not isinstance(converter, Converter):
            raise TypeError(f"expected a Converter, got {type(converter)!r}")
        self._families.append(converter)

    def remove(self, tp_or_converter: Any) -> bool:
        """Remove a registration by type, or every registration of a converter instance."""
        if isinstance(tp_or_converter, Converter):
            before = len(self)
            self._exact = {t: c for t, c in self._exact.items() if c is not tp_or_converter}
            self._families = [c for c in self._families if c is not tp_or_converter]
            return len(self) != before
        return self._exact.pop(tp_or_converter, None) is not None

    def clear(self) -> None:
        self._exact.clear()
        self._families.clear()

    # ------------------------------------------------------------------ #
    # Lookup
    # ------------------------------------------------------------------ #
    def resolve(self, tp: Any) -> Optional[Converter]:
        t = unwrap(tp)
        try:
            if t in self._exact:
                return self._exact[t]
        except TypeError:  # unhashable annotation
            pass
        origin = get_origin(t)
        if origin is not None and origin in self._exact:
            return self._exact[origin]
        for converter in reversed(self._families):
            if converter.handles(t):
                return converter
        if inspect.isclass(t):
            for base in t.__mro__[1:]:
                if base is not object and base in self._exact:
                    return self._exact[base]
        return None

    def __contains__(self, tp: Any) -> bool:
        return self.resolve(tp) is not None

    def __len__(self) -> int:
        return len(self._exact) + len(self._families)

    # ------------------------------------------------------------------ #
    # Blacklist
    # ------------------------------------------------------------------ #
    def blacklist(self, tp: type) -> None:
        if tp not in self._blacklist:
            self._blacklist.append(tp)

    def unblacklist(self, tp: type) -> bool:
        if tp in self._blacklist:
            self._blacklist.remove(tp)
            return True
        return False

    def is_blacklisted(self, tp: Any) -> bool:
        t = unwrap(tp)
        t = get_origin(t) or t
        return inspect.isclass(t) and any(issubclass(t, b) for b in self._blacklist)
