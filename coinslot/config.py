import os
from typing import Optional


def _env_pin(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return int(value) if value else None


# Driver selection: auto, gpio, serial or mock
DRIVER = os.getenv("COINSLOT_DRIVER", "auto").lower()

# GPIO configuration (BCM numbering)
SENSOR_PIN = _env_pin("COINSLOT_SENSOR_PIN", 17)
ENABLE_PIN = _env_pin("COINSLOT_ENABLE_PIN", 27)  # empty string = no enable line
HARDWARE_BOUNCETIME_MS = 50

# Serial port configuration
SERIAL_PORT = os.getenv("COINSLOT_SERIAL_PORT", "/dev/ttyACM0")  # Default Arduino port on Raspberry Pi
BAUDRATE = int(os.getenv("COINSLOT_BAUDRATE", "9600"))
TIMEOUT = 1.0

# Pulse timing (seconds)
DEBOUNCE_WINDOW = float(os.getenv("COINSLOT_DEBOUNCE_WINDOW", "0.5"))
PULSE_INTERVAL = float(os.getenv("COINSLOT_PULSE_INTERVAL", "0.05"))

# Pulse count -> coin value
DENOMINATIONS = {
    1: 1,
    5: 5,
    10: 10,
    20: 20,
}

LOG_FILE = os.getenv("COINSLOT_LOG_FILE", "coinslot.log")

HOST = os.getenv("COINSLOT_HOST", "0.0.0.0")
PORT = int(os.getenv("COINSLOT_PORT", "8000"))
