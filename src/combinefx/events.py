"""Events and results — the values that flow through a stream.

A stream emits zero or more Value events followed by at most one terminal
event (Completed or Failed). Nothing follows a terminal event.

Success/Failure are the two shapes of a Result: what a promise is resolved
with, and what a decoder returns.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Value(Generic[T]):
    value: T


@dataclass(frozen=True)
class Completed:
    pass


@dataclass(frozen=True)
class Failed:
    error: BaseException


COMPLETED = Completed()

Event = Union[Value[Any], Completed, Failed]


def is_terminal(event: Event) -> bool:
    return isinstance(event, (Completed, Failed))


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T


@dataclass(frozen=True)
class Failure:
    error: BaseException


Result = Union[Success[Any], Failure]
