"""Exception types raised inside pricestream."""

from __future__ import annotations


class PriceStreamError(Exception):
    """Base exception for pricestream errors."""

    pass


class MessageDecodeError(PriceStreamError):
    """Raised when an inbound stream frame cannot be decoded."""

    pass


class InvalidTransition(PriceStreamError):
    """Raised when a connection event is not valid for the current state."""

    def __init__(self, state: object, event: object) -> None:
        super().__init__(f"Event {event!r} is not valid in state {state!r}")
        self.state = state
        self.event = event


class CatalogError(PriceStreamError):
    """Raised when an asset catalog cannot be loaded."""

    pass
