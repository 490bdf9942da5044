"""Small Maybe/Either containers.

``Maybe`` wraps an optional backend lookup (``first(rows)``); ``Either``
threads form checks so the first ``Left`` stops the chain.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, TypeVar

T = TypeVar('T')
U = TypeVar('U')


class Maybe(Generic[T], ABC):

    @abstractmethod
    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    def is_some(self) -> bool:
        return isinstance(self, Some)


@dataclass(frozen=True)
class Some(Maybe[T]):
    value: T

    def map(self, f: Callable[[T], U]) -> Maybe[U]:
        return Some(f(self.value))

    def get_or_else(self, default: T) -> T:
        return self.value


@dataclass(frozen=True)
class Nothing(Maybe[T]):

    def map(self, f: Callable[[T], U]) -> Maybe[U]:
        return self

    def get_or_else(self, default: T) -> T:
        return default


class Either(ABC):

    @abstractmethod
    def bind(self, f: Callable[[Any], 'Either']) -> 'Either':
        pass

    def is_right(self) -> bool:
        return isinstance(self, Right)


@dataclass(frozen=True)
class Right(Either):
    value: Any

    def bind(self, f: Callable[[Any], Either]) -> Either:
        return f(self.value)

    def get_error(self):
        raise ValueError("Cannot get error from Right")


@dataclass(frozen=True)
class Left(Either):
    error: Any

    def bind(self, f: Callable[[Any], Either]) -> Either:
        return self

    def get_error(self):
        return self.error


def first(items: Iterable[T]) -> Maybe[T]:
    """First element of an iterable, or Nothing() when it is empty."""
    for item in items:
        return Some(item)
    return Nothing()
