"""Tagged result values returned by the engine facade."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from .errors import FunnelError

T = TypeVar("T")
E = TypeVar("E", bound=FunnelError)


@dataclass(slots=True, frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(slots=True, frozen=True)
class Err(Generic[E]):
    error: E

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self):
        raise self.error


Result = Union[Ok[T], Err[FunnelError]]

__all__ = ["Err", "Ok", "Result"]
