from __future__ import annotations

from typing import Any


class _NoValSentinel:
    """Marks a parameter without a declared default.

    ``None`` is a legitimate default value, so absence needs its own object.
    Compare with ``is NO_VAL``.
    """
    __slots__ = ()

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return "NO_VAL"

    def __bool__(self) -> bool:
        return False


NO_VAL: Any = _NoValSentinel()


def has_value(value: Any) -> bool:
    """True when ``value`` is anything other than the ``NO_VAL`` marker."""
    return value is not NO_VAL


__all__ = ["NO_VAL", "has_value"]
