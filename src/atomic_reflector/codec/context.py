from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional


class SerializationContext:
    """Tracks the path of the value being serialized.

    Objects currently being serialized are remembered with the path they were
    entered at, so a cycle back to one of them becomes a reference node
    (``#/child/child``) instead of unbounded recursion. Objects that are merely
    shared between siblings are serialized again.
    """

    ROOT = "#"

    def __init__(self, max_depth: int = 64) -> None:
        self.max_depth = max_depth
        self._segments: List[str] = []
        self._active: Dict[int, str] = {}

    @property
    def path(self) -> str:
        return self.ROOT + "".join("/" + s for s in self._segments)

    @property
    def depth(self) -> int:
        return len(self._segments)

    @contextmanager
    def member(self, segment: Any) -> Iterator[None]:
        self._segments.append(str(segment))
        try:
            yield
        finally:
            self._segments.pop()

    @contextmanager
    def visiting(self, obj: Any) -> Iterator[None]:
        key = id(obj)
        self._active[key] = self.path
        try:
            yield
        finally:
            self._active.pop(key, None)

    def reference_to(self, obj: Any) -> Optional[str]:
        return self._active.get(id(obj))
