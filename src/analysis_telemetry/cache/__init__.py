"""Bounded storage for correlation state."""

from .bounded import BoundedStore

__all__ = ["BoundedStore"]
