"""Depth-aware in-memory log used to build multi-line status and error text.

Every entry carries a nesting depth; rendering indents each entry by a fixed
two spaces per level so nested causes read as a tree::

    [Info] Populating 'Person'
      [Success] Field 'name' modified to 'Ada'.
      [Warning] Field 'nickname' not found on 'Person'.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List

PADDING_UNIT = "  "


def padding(depth: int) -> str:
    """Return the indentation prefix for ``depth`` (two spaces per level)."""
    return PADDING_UNIT * max(depth, 0)


def indent(text: str, depth: int) -> str:
    """Indent every line of ``text`` by ``depth`` levels."""
    pad = padding(depth)
    return "\n".join(pad + line if line else line for line in str(text).splitlines())


class LogKind(str, Enum):
    TRACE = "Trace"
    DEBUG = "Debug"
    INFO = "Info"
    SUCCESS = "Success"
    WARNING = "Warning"
    ERROR = "Error"
    CRITICAL = "Critical"


@dataclass(frozen=True)
class LogEntry:
    depth: int
    message: str
    kind: LogKind = LogKind.INFO

    def __str__(self) -> str:
        return f"{padding(self.depth)}[{self.kind.value}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {"depth": self.depth, "message": self.message, "kind": self.kind.value}


class Logs:
    """Ordered collection of :class:`LogEntry` objects."""

    def __init__(self) -> None:
        self._entries: List[LogEntry] = []

    # ------------------------------------------------------------------ #
    # Recording
    # ------------------------------------------------------------------ #
    def add(self, message: str, kind: LogKind = LogKind.INFO, depth: int = 0) -> "Logs":
        self._entries.append(LogEntry(depth=depth, message=message, kind=kind))
        return self

    def trace(self, message: str, depth: int = 0) -> "Logs":
        return self.add(message, LogKind.TRACE, depth)

    def debug(self, message: str, depth: int = 0) -> "Logs":
        return self.add(message, LogKind.DEBUG, depth)

    def info(self, message: str, depth: int = 0) -> "Logs":
        return self.add(message, LogKind.INFO, depth)

    def success(self, message: str, depth: int = 0) -> "Logs":
        return self.add(message, LogKind.SUCCESS, depth)

    def warning(self, message: str, depth: int = 0) -> "Logs":
        return self.add(message, LogKind.WARNING, depth)

    def error(self, message: str, depth: int = 0) -> "Logs":
        return self.add(message, LogKind.ERROR, depth)

    def critical(self, message: str, depth: int = 0) -> "Logs":
        return self.add(message, LogKind.CRITICAL, depth)

    def extend(self, other: "Logs", depth_offset: int = 0) -> "Logs":
        """Append ``other``'s entries, shifting their depth by ``depth_offset``."""
        for entry in other:
            self._entries.append(LogEntry(entry.depth + depth_offset, entry.message, entry.kind))
        return self

    # ------------------------------------------------------------------ #
    # Views
    # ------------------------------------------------------------------ #
    @property
    def entries(self) -> List[LogEntry]:
        return list(self._entries)

    @property
    def has_errors(self) -> bool:
        return any(e.kind in (LogKind.ERROR, LogKind.CRITICAL) for e in self._entries)

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __str__(self) -> str:
        return "\n".join(str(entry) for entry in self._entries)

    def __repr__(self) -> str:
        return f"Logs({len(self._entries)} entries)"

    def to_list(self) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self._entries]
