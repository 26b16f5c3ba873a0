"""Sample types and callables reflected by the test-suite."""
from __future__ import annotations

import asyncio
import datetime
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Awaitable, Dict, Generic, List, Optional, Tuple, TypeVar

from atomic_reflector import description, ignore
from atomic_reflector.typeinfo import Description, Ignore

T = TypeVar("T")


class Color(Enum):
    RED = 1
    GREEN = 2
    BLUE = 3


@dataclass
class Node:
    value: int = 0
    children: List[Node] = field(default_factory=list)


@dataclass
class Linked:
    name: str = ""
    next: Optional[Linked] = None


@description("A postal address.")
@dataclass
class Address:
    street: str = ""
    city: Annotated[str, Description("City name")] = ""
    zip_code: Optional[int] = None


@dataclass
class Person:
    name: str = ""
    age: int = 0
    height: float = 0.0
    active: bool = True
    color: Color = Color.RED
    tags: List[str] = field(default_factory=list)
    scores: Dict[str, int] = field(default_factory=dict)
    address: Optional[Address] = None


@dataclass
class Box(Generic[T]):
    item: Optional[T] = None


class Counter:
    label: str

    def __init__(self) -> None:
        self.label = "counter"
        self._count = 0

    @property
    def count(self) -> int:
        return self._count

    @count.setter
    def count(self, value: int) -> None:
        self._count = value

    @property
    def doubled(self) -> int:
        return self._count * 2


@dataclass
class Shape:
    name: str = ""


@dataclass
class Circle(Shape):
    radius: float = 0.0


@dataclass
class Drawing:
    shapes: List[Shape] = field(default_factory=list)
    stamp: Tuple[int, datetime.date] = (0, datetime.date(2000, 1, 1))


@dataclass
class Profile:
    keep: str = ""
    secret: str = field(default="", metadata={"ignore": True})
    note: Annotated[str, Ignore] = ""

    @property
    def legacy(self) -> str:
        return self.keep

    @legacy.setter
    def legacy(self, value: str) -> None:
        self.keep = value

    legacy.fget.__deprecated__ = "Use 'keep' instead."


class Calculator:
    offset: int

    def __init__(self) -> None:
        self.offset = 0

    @description("Adds two numbers and the calculator offset.")
    def add(self, a: int, b: int = 10) -> int:
        return a + b + self.offset

    async def add_async(self, a: int, b: int) -> int:
        await asyncio.sleep(0)
        return a + b

    def join(self, items: List[str], separator: str = ",") -> str:
        return separator.join(items)

    def paint(self, color: Color) -> str:
        return color.name

    def reset(self) -> None:
        self.offset = 0

    async def ping(self) -> None:
        await asyncio.sleep(0)

    def schedule(self) -> Awaitable[None]:
        return asyncio.sleep(0)

    def fail(self) -> int:
        raise RuntimeError("boom")

    @staticmethod
    def multiply(a: float, b: float) -> float:
        return a * b

    @classmethod
    def create(cls) -> Calculator:
        return cls()

    def _hidden(self) -> int:
        return 42

    @ignore
    def skipped(self) -> int:
        return 0


def greet(name: str, punctuation: str = "!") -> str:
    return f"Hello, {name}{punctuation}"


def make_node(value: int) -> Node:
    return Node(value=value, children=[Node(value=value + 1)])


def total(*values: int) -> int:
    return sum(values)


def options(name: str, **extra: str) -> Dict[str, str]:
    return {"name": name, **extra}


def current_thread_name() -> str:
    return threading.current_thread().name
