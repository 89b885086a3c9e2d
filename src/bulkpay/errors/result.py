"""Ok/Err values for the forwarding retry loop.

The retry loop hands back one of these instead of raising, so the forwarder
decides between a success outcome and a fallback outcome with an ordinary
`match` rather than a try/except.

Examples:
    >>> Ok(2).map(lambda x: x * 3).unwrap()
    6
    >>> Err("boom").unwrap_or(0)
    0
    >>> match execute_with_retry(op, policy, name="TX001"):
    ...     case Ok(ack): ...
    ...     case Err(trace): ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Generic, NoReturn, TypeVar, Union

if TYPE_CHECKING:
    from collections.abc import Iterator

T = TypeVar("T")
E = TypeVar("E")
U = TypeVar("U")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful attempt carrying its value."""
    value: T
    
    def is_ok(self) -> bool:
        return True
    
    def is_err(self) -> bool:
        return False
    
    def unwrap(self) -> T:
        return self.value
    
    def unwrap_err(self) -> NoReturn:
        raise RuntimeError(f"unwrap_err() called on {self!r}")
    
    def unwrap_or(self, default: object) -> T:
        return self.value
    
    def ok(self) -> T:
        return self.value
    
    def err(self) -> None:
        return None
    
    def map(self, f: Callable[[T], U]) -> Ok[U]:
        return Ok(f(self.value))
    
    def map_err(self, f: Callable[[Any], Any]) -> Ok[T]:
        return self
    
    def flat_map(self, f: Callable[[T], Result[U, E]]) -> Result[U, E]:
        return f(self.value)
    
    def match(self, *, ok: Callable[[T], U], err: Callable[[Any], U]) -> U:
        """Run the branch for this variant; both must be given."""
        return ok(self.value)
    
    def __bool__(self) -> bool:
        return True
    
    def __iter__(self) -> Iterator[T]:
        yield self.value


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """Failed attempt carrying its error."""
    error: E
    
    def is_ok(self) -> bool:
        return False
    
    def is_err(self) -> bool:
        return True
    
    def unwrap(self) -> NoReturn:
        raise RuntimeError(f"unwrap() called on {self!r}")
    
    def unwrap_err(self) -> E:
        return self.error
    
    def unwrap_or(self, default: U) -> U:
        return default
    
    def ok(self) -> None:
        return None
    
    def err(self) -> E:
        return self.error
    
    def map(self, f: Callable[[Any], Any]) -> Err[E]:
        return self
    
    def map_err(self, f: Callable[[E], U]) -> Err[U]:
        return Err(f(self.error))
    
    def flat_map(self, f: Callable[[Any], Any]) -> Err[E]:
        return self
    
    def match(self, *, ok: Callable[[Any], U], err: Callable[[E], U]) -> U:
        return err(self.error)
    
    def __bool__(self) -> bool:
        return False
    
    def __iter__(self) -> Iterator[Any]:
        return iter(())


Result = Union[Ok[T], Err[E]]
