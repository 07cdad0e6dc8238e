"""Core naming and reconciliation components."""

from streamreset.core import topic

__all__ = ["topic"]
