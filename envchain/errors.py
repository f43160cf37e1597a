"""
Error types raised by envchain.

All errors derive from ``EnvChainError`` and from ``ValueError``, so code that
already guards against ``ValueError`` keeps working.
"""

from __future__ import annotations

from typing import Any, Optional


class EnvChainError(Exception):
    """Base class for all envchain errors."""


class DomainMismatch(EnvChainError, ValueError):
    """A Space constructor received a structurally wrong value."""

    def __init__(self, message: str, expected: Any = None, observed: Any = None):
        if expected is not None or observed is not None:
            message = f"{message} (expected {expected}, got {observed})"
        super().__init__(message)
        self.expected = expected
        self.observed = observed


class UnsupportedSpace(EnvChainError, ValueError):
    """The space translator saw a shape tag it does not know."""

    def __init__(self, tag: Any):
        super().__init__(f"Unsupported space type: {tag!r}")
        self.tag = tag


class ShapeMismatch(EnvChainError, ValueError):
    """A flat vector or structured value does not match a Space's shape."""

    def __init__(self, message: str, expected: Any = None, observed: Any = None):
        if expected is not None or observed is not None:
            message = f"{message} (expected {expected}, got {observed})"
        super().__init__(message)
        self.expected = expected
        self.observed = observed


class WrapperPrecondition(EnvChainError, ValueError):
    """A wrapper's structural precondition does not hold."""


class InvalidConfiguration(EnvChainError, ValueError):
    """A configuration value is out of range or inconsistent."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field
