import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

from .config import DEBOUNCE_WINDOW, DENOMINATIONS, PULSE_INTERVAL
from .denominations import resolve_denomination
from .exceptions import GateUnavailableError
from .hardware import CoinSlotDriver

logger = logging.getLogger(__name__)

Scheduler = Callable[..., Any]


def start_timer(delay: float, callback: Callable[..., None], *args: Any) -> threading.Timer:
    """Run callback(*args) on a daemon timer thread after delay seconds"""
    timer = threading.Timer(delay, callback, args=args)
    timer.daemon = True
    timer.start()
    return timer


class RunningTotal:
    """Append-only sum of accepted coin values"""

    def __init__(self):
        self._value = 0
        self._lock = threading.Lock()

    def add(self, value: int) -> int:
        if value < 0:
            raise ValueError("Value must not be negative")
        with self._lock:
            self._value += value
            return self._value

    def read(self) -> int:
        with self._lock:
            return self._value


class CoinAcceptor:
    """
    Turns coin slot pulse bursts into a running coin total

    A coin produces one pulse per unit of value in quick succession. Every
    counted pulse schedules a check debounce_window seconds later; the check
    that finds no newer pulse closes the burst and credits the coin.

    Args:
        driver: Hardware (or simulated) coin slot
        debounce_window: Quiet time after the last pulse that ends a burst
        denominations: Pulse count to coin value mapping
        clock: Monotonic time source
        schedule: Called as schedule(delay, callback, *args) to run a check later
        sleep: Used to space injected pulses
    """

    def __init__(
        self,
        driver: CoinSlotDriver,
        debounce_window: float = DEBOUNCE_WINDOW,
        denominations: Optional[Dict[int, int]] = None,
        clock: Callable[[], float] = time.monotonic,
        schedule: Scheduler = start_timer,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.driver = driver
        self.debounce_window = debounce_window
        self.denominations = dict(DENOMINATIONS if denominations is None else denominations)
        self._clock = clock
        self._schedule = schedule
        self._sleep = sleep

        self._active = False
        self._total = RunningTotal()

        # Current burst, guarded by _pulse_lock
        self._pulse_lock = threading.Lock()
        self._pulse_count = 0
        self._last_pulse_time = clock()
        self._generation = 0

        driver.subscribe(self.handle_pulse)

    # Activation gate

    @property
    def active(self) -> bool:
        return self._active

    def activate(self) -> bool:
        """Start accepting coins and enable the acceptor"""
        return self._set_active(True)

    def deactivate(self) -> bool:
        """Stop accepting coins and inhibit the acceptor"""
        return self._set_active(False)

    def _set_active(self, active: bool) -> bool:
        # The flag follows the command even if the line cannot be driven
        with self._pulse_lock:
            self._active = active
        state = "ENABLED" if active else "DISABLED"
        try:
            self.driver.set_level(active)
        except GateUnavailableError as e:
            logger.error("Coin slot %s but output could not be driven: %s", state, e)
            return False
        logger.info("Coin slot %s", state)
        return True

    # Pulse path

    def handle_pulse(self) -> None:
        """Edge callback: count one pulse of the current coin"""
        with self._pulse_lock:
            if not self._active:
                logger.debug("Pulse ignored, coin slot disabled")
                return
            self._pulse_count += 1
            self._last_pulse_time = self._clock()
            self._generation += 1
            generation = self._generation
            logger.debug("Pulse %d", self._pulse_count)

        self._schedule(self.debounce_window, self._check_burst, generation)

    def _check_burst(self, generation: int) -> None:
        with self._pulse_lock:
            # A newer pulse owns the burst; its own check will close it
            if generation != self._generation or self._pulse_count == 0:
                return
            pulses = self._pulse_count
            self._pulse_count = 0
            self._last_pulse_time = self._clock()

            value = resolve_denomination(pulses, self.denominations)
            if value is None:
                logger.warning("Unrecognized coin: %d pulses, ignored", pulses)
                return
            total = self._total.add(value)

        logger.info("Coin detected! Value: %d, Total: %d", value, total)

    def inject_pulses(self, count: int, interval: float = PULSE_INTERVAL) -> None:
        """
        Synthesize pulses as if a coin were inserted

        Args:
            count: Number of pulses to generate
            interval: Seconds between pulses
        """
        if count <= 0:
            raise ValueError("Count must be positive")

        logger.info("Simulating %d pulses", count)
        for i in range(count):
            if i:
                self._sleep(interval)
            self.handle_pulse()

    # Queries

    @property
    def pulse_count(self) -> int:
        return self._pulse_count

    @property
    def last_pulse_time(self) -> float:
        return self._last_pulse_time

    @property
    def total(self) -> int:
        return self._total.read()

    def status(self) -> Dict[str, Any]:
        """Snapshot of the acceptor state, safe to call at any time"""
        return {
            "total_value": self._total.read(),
            "active": self._active,
            "pulse_count": self._pulse_count,
        }

    def close(self) -> None:
        self.driver.close()
