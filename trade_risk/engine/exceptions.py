"""Exception taxonomy for the trade engine.

Only ``NotFound`` and ``ValidationFailure`` (and its subclasses) are tied to
the originating request. ``ConcurrencyConflict`` is transient: callers may
retry. Side-effect failures never surface as exceptions.
"""

from __future__ import annotations


class TradeRiskError(Exception):
    """Base class for all engine errors."""


class NotFound(TradeRiskError):
    """Instrument, user, portfolio, or other resource is missing."""


class ValidationFailure(TradeRiskError):
    """Request is well-formed but violates a business rule."""


class NoHolding(ValidationFailure):
    """SELL against an instrument the portfolio does not hold."""


class InsufficientHolding(ValidationFailure):
    """SELL quantity exceeds the held quantity."""

    def __init__(self, message: str, available: int, requested: int) -> None:
        super().__init__(message)
        self.available = available
        self.requested = requested


class DuplicateResource(TradeRiskError):
    """Unique resource (portfolio per user, instrument symbol) already exists."""


class ConcurrencyConflict(TradeRiskError):
    """Concurrent writers kept conflicting after the bounded retry."""
