"""Coin slot pulse counting service."""

from .acceptor import CoinAcceptor, RunningTotal
from .denominations import resolve_denomination
from .exceptions import CoinSlotError, GateUnavailableError
from .hardware import CoinSlotDriver, MockCoinSlot, create_driver

__all__ = [
    "CoinAcceptor",
    "CoinSlotDriver",
    "CoinSlotError",
    "GateUnavailableError",
    "MockCoinSlot",
    "RunningTotal",
    "create_driver",
    "resolve_denomination",
]
