"""
Coin slot drivers

A driver delivers one callback per rising edge of the acceptor's pulse line
and drives its enable/inhibit line. The variant is picked once at startup by
create_driver(); the rest of the service only sees CoinSlotDriver.
"""

import logging
import threading
from typing import Callable, List, Optional

from . import config
from .exceptions import CoinSlotError, GateUnavailableError

logger = logging.getLogger(__name__)

EdgeCallback = Callable[[], None]


class CoinSlotDriver:
    """Base class for coin slot drivers"""

    name = "base"

    def __init__(self):
        self._callbacks: List[EdgeCallback] = []
        self._callbacks_lock = threading.Lock()

    def subscribe(self, callback: EdgeCallback) -> None:
        """Register a callback for every pulse edge"""
        with self._callbacks_lock:
            self._callbacks.append(callback)

    def _notify_edge(self) -> None:
        with self._callbacks_lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Error in edge callback")

    @property
    def output_available(self) -> bool:
        return False

    def set_level(self, high: bool) -> None:
        raise GateUnavailableError(f"{self.name} driver has no output line")

    def close(self) -> None:
        pass

    def __repr__(self):
        return f"<{type(self).__name__} output={self.output_available}>"


class MockCoinSlot(CoinSlotDriver):
    """Simulated coin slot for machines without the acceptor attached"""

    name = "mock"

    def __init__(self, has_output: bool = True):
        super().__init__()
        self._has_output = has_output
        self.level: Optional[bool] = None
        logger.info("[GPIO Mock] Initialized coin slot (output=%s)", has_output)

    @property
    def output_available(self) -> bool:
        return self._has_output

    def set_level(self, high: bool) -> None:
        if not self._has_output:
            raise GateUnavailableError("Mock coin slot has no output line")
        self.level = high
        logger.debug("[GPIO Mock] Enable line -> %s", "HIGH" if high else "LOW")

    def simulate_pulse(self) -> None:
        logger.debug("[GPIO Mock] Simulating pulse")
        self._notify_edge()

    def close(self) -> None:
        logger.info("[GPIO Mock] Closed coin slot")


def create_driver(kind: Optional[str] = None) -> CoinSlotDriver:
    """
    Build the coin slot driver

    Args:
        kind: "gpio", "serial", "mock" or "auto" (defaults to config.DRIVER).
              "auto" uses GPIO when RPi.GPIO can be loaded, otherwise the mock.

    Returns:
        The driver instance
    """
    kind = (kind or config.DRIVER).lower()

    if kind == "mock":
        return MockCoinSlot()

    if kind == "serial":
        from .serial_manager import SerialCoinSlot
        return SerialCoinSlot(config.SERIAL_PORT, config.BAUDRATE, config.TIMEOUT)

    if kind not in ("gpio", "auto"):
        raise CoinSlotError(f"Unknown coin slot driver: {kind}")

    try:
        from .gpio import GpioCoinSlot
        return GpioCoinSlot(config.SENSOR_PIN, config.ENABLE_PIN, config.HARDWARE_BOUNCETIME_MS)
    except (ImportError, RuntimeError) as e:
        if kind == "gpio":
            raise CoinSlotError(f"GPIO coin slot unavailable: {e}") from e
        logger.warning("GPIO unavailable (%s), using GPIO mock", e)
        return MockCoinSlot()
