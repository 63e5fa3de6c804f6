import logging
from typing import Optional

import RPi.GPIO as GPIO

from .exceptions import GateUnavailableError
from .hardware import CoinSlotDriver

logger = logging.getLogger(__name__)


class GpioCoinSlot(CoinSlotDriver):
    """Coin acceptor wired straight to the Raspberry Pi header"""

    name = "gpio"

    def __init__(self, sensor_pin: int, enable_pin: Optional[int] = None, bouncetime: int = 50):
        super().__init__()
        self.sensor_pin = sensor_pin
        self.enable_pin = enable_pin
        GPIO.setmode(GPIO.BCM)
        GPIO.setwarnings(False)
        GPIO.setup(self.sensor_pin, GPIO.IN, pull_up_down=GPIO.PUD_UP)
        if self.enable_pin is not None:
            # Start inhibited
            GPIO.setup(self.enable_pin, GPIO.OUT, initial=GPIO.LOW)
        GPIO.add_event_detect(self.sensor_pin, GPIO.RISING, callback=self._count_pulse, bouncetime=bouncetime)
        logger.info("Using real GPIO: sensor pin %s, enable pin %s", sensor_pin, enable_pin)

    def _count_pulse(self, channel):
        """Callback function for each pulse received."""
        self._notify_edge()

    @property
    def output_available(self) -> bool:
        return self.enable_pin is not None

    def set_level(self, high: bool) -> None:
        if self.enable_pin is None:
            raise GateUnavailableError("No enable pin configured")
        try:
            GPIO.output(self.enable_pin, GPIO.HIGH if high else GPIO.LOW)
        except RuntimeError as e:
            raise GateUnavailableError(f"GPIO output failed: {e}") from e

    def close(self) -> None:
        GPIO.remove_event_detect(self.sensor_pin)
        pins = [self.sensor_pin]
        if self.enable_pin is not None:
            pins.append(self.enable_pin)
        GPIO.cleanup(pins)
        logger.info("GPIO cleanup complete")
