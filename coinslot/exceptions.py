"""Exceptions raised by the coin slot drivers."""


class CoinSlotError(Exception):
    """Base exception for all coinslot errors."""


class GateUnavailableError(CoinSlotError):
    """The enable/inhibit output line could not be driven."""
