"""
Error taxonomy of the cart and order core.

Operations that can fail for real reasons (order placement, address writes,
status updates) return a ``Result`` instead of raising, so callers always get
a reason they can show. Reads raise the exceptions below directly.
"""
from dataclasses import dataclass
from typing import Any, Optional


class ShopError(Exception):
    """Base class. ``reason`` is a human-readable explanation."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ValidationError(ShopError):
    """A precondition was not met (empty cart, no address, bad transition...)."""


class ConstraintViolation(ShopError):
    """A write would break the single-default-address invariant."""


class StorageError(ShopError):
    """The underlying store failed."""


class NotFound(ShopError):
    """Lookup by id found nothing."""


@dataclass
class Result:
    ok: bool
    value: Any = None
    error: Optional[ShopError] = None

    @classmethod
    def success(cls, value=None) -> "Result":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: ShopError) -> "Result":
        return cls(ok=False, error=error)

    @property
    def reason(self) -> Optional[str]:
        return self.error.reason if self.error else None
