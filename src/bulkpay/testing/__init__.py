"""Test helpers: a scriptable downstream channel."""

from .mock import Invocation, MockChannel

__all__ = ["Invocation", "MockChannel"]
