from __future__ import annotations

from enum import Flag


class MemberScope(Flag):
    """Selects which declared members take part in reflection.

    Visibility follows the Python convention: a leading underscore is
    non-public. ``STATIC`` covers ``staticmethod``/``classmethod`` members and
    module-level functions; everything else is ``INSTANCE``.
    """

    PUBLIC = 1
    NON_PUBLIC = 2
    INSTANCE = 4
    STATIC = 8

    DEFAULT = 5  # PUBLIC | INSTANCE
    METHODS = 13  # PUBLIC | INSTANCE | STATIC
    ALL = 15

    def admits(self, *, public: bool, static: bool) -> bool:
        visibility = MemberScope.PUBLIC if public else MemberScope.NON_PUBLIC
        lifetime = MemberScope.STATIC if static else MemberScope.INSTANCE
        return bool(self & visibility) and bool(self & lifetime)

    @classmethod
    def parse(cls, text: str) -> "MemberScope":
        """Parse ``"PUBLIC|STATIC"`` style text (``|``, ``,`` or ``+`` separated)."""
        scope = cls(0)
        for token in text.replace(",", "|").replace("+", "|").split("|"):
            token = token.strip().upper()
            if not token:
                continue
            try:
                scope |= cls[token]
            except KeyError:
                raise ValueError(f"unknown member scope {token!r}") from None
        return scope
