import logging
import queue
import threading
import time
from typing import Any, Dict, Optional

import serial

from .exceptions import GateUnavailableError
from .hardware import CoinSlotDriver

logger = logging.getLogger(__name__)

PULSE_LINE = "PULSE"


class SerialCoinSlot(CoinSlotDriver):
    """
    Coin acceptor fronted by an Arduino on a serial port

    The Arduino prints PULSE for every pulse from the acceptor and answers
    COINSLOT ON / COINSLOT OFF with OK COINSLOT ENABLED / DISABLED.
    """

    name = "serial"

    def __init__(self, port: str, baud: int, timeout: float = 1.0,
                 ack_timeout: float = 2.0, settle_time: float = 0.5, retry_delay: float = 5.0):
        super().__init__()
        self.port = port
        self.baud = baud
        self.timeout = timeout
        self.ack_timeout = ack_timeout
        self.settle_time = settle_time
        self.retry_delay = retry_delay
        self.ser = None
        self.lock = threading.Lock()
        # Held for a whole command exchange so replies reach the right caller
        self._command_lock = threading.Lock()
        self.connected = False
        self.last_error: Optional[str] = None
        self._responses: "queue.Queue[str]" = queue.Queue()
        self._running = True
        self._reader_thread: Optional[threading.Thread] = None
        self._auto_reconnect_thread: Optional[threading.Thread] = None
        self.connect()

    def connect(self) -> bool:
        """Open the serial port, retrying in the background on failure"""
        with self.lock:
            if not self._running:
                return False
            try:
                # Close if already open
                if self.ser and self.ser.is_open:
                    self.ser.close()
                    time.sleep(0.3)

                self.ser = serial.Serial(
                    port=self.port,
                    baudrate=self.baud,
                    timeout=self.timeout,
                    write_timeout=1.0
                )
                time.sleep(self.settle_time)  # Give Arduino time to initialize

                # Send a newline to reset Arduino buffer
                self.ser.write(b"\n")
                self.ser.flush()

                self.connected = True
                self.last_error = None
                logger.info("Successfully connected to %s at %s baud", self.port, self.baud)

            except (serial.SerialException, OSError) as e:
                self.connected = False
                self.last_error = f"Serial connection error: {e}"
                logger.error("Connection failed: %s", e)
                self._start_auto_reconnect()
                return False

            if not self._reader_thread or not self._reader_thread.is_alive():
                self._reader_thread = threading.Thread(target=self._read_loop, daemon=True)
                self._reader_thread.start()
            return True

    def _start_auto_reconnect(self) -> None:
        if not self._running:
            return
        if not self._auto_reconnect_thread or not self._auto_reconnect_thread.is_alive():
            self._auto_reconnect_thread = threading.Thread(target=self._auto_reconnect, daemon=True)
            self._auto_reconnect_thread.start()

    def _auto_reconnect(self) -> None:
        """Background thread that attempts to reconnect periodically"""
        while self._running and not self.connected:
            time.sleep(self.retry_delay)
            if not self._running:
                break
            logger.info("Attempting auto-reconnect to %s...", self.port)
            if self.connect():
                logger.info("Auto-reconnect successful!")
                break

    def _read_loop(self) -> None:
        while self._running and self.connected:
            try:
                raw = self.ser.readline()
            except (serial.SerialException, OSError) as e:
                if not self._running:
                    break
                self.connected = False
                self.last_error = f"Serial error: {e}"
                logger.error(self.last_error)
                self._start_auto_reconnect()
                break

            line = raw.decode("utf-8", "ignore").strip()
            if not line:
                continue
            if line == PULSE_LINE:
                self._notify_edge()
            else:
                logger.debug("RECV: %s", line)
                self._responses.put(line)

    def send_command(self, cmd: str, expect: Optional[str] = None,
                     timeout: Optional[float] = None) -> Dict[str, Any]:
        """
        Send a command to Arduino and optionally wait for a matching line

        Args:
            cmd: Command to send
            expect: Prefix of the line that completes the command
            timeout: How long to wait for the expected line

        Returns:
            Dictionary with response lines or error
        """
        if not self.connected and not self.connect():
            return {"error": f"Not connected to {self.port}"}

        with self._command_lock:
            return self._exchange(cmd, expect, timeout)

    def _exchange(self, cmd: str, expect: Optional[str], timeout: Optional[float]) -> Dict[str, Any]:
        # Drop stale responses
        while not self._responses.empty():
            try:
                self._responses.get_nowait()
            except queue.Empty:
                break

        with self.lock:
            try:
                if not cmd.endswith("\n"):
                    cmd += "\n"
                self.ser.write(cmd.encode("utf-8"))
                self.ser.flush()
                logger.debug("SEND: %s", cmd.strip())
            except (serial.SerialException, OSError) as e:
                self.connected = False
                self.last_error = f"Serial error: {e}"
                logger.error(self.last_error)
                return {"error": self.last_error}

        if expect is None:
            return {"success": True}

        response_lines = []
        end_time = time.time() + (self.ack_timeout if timeout is None else timeout)
        while time.time() < end_time:
            try:
                line = self._responses.get(timeout=max(0.0, end_time - time.time()))
            except queue.Empty:
                break
            response_lines.append(line)
            if line.startswith("ERR"):
                return {"error": line, "response": response_lines}
            if line.startswith(expect):
                return {"success": True, "response": response_lines}

        if not response_lines:
            return {"error": "No response from device"}
        return {"error": "Expected response not received within timeout", "response": response_lines}

    @property
    def output_available(self) -> bool:
        return self.connected

    def set_level(self, high: bool) -> None:
        action = "ON" if high else "OFF"
        expected = f"OK COINSLOT {'ENABLED' if high else 'DISABLED'}"
        result = self.send_command(f"COINSLOT {action}", expect=expected)
        if "error" in result:
            raise GateUnavailableError(result["error"])

    def close(self) -> None:
        """Close the serial connection safely"""
        self._running = False
        with self.lock:
            if self.ser and self.ser.is_open:
                self.ser.close()
            self.connected = False
        if self._reader_thread and self._reader_thread is not threading.current_thread():
            self._reader_thread.join(timeout=self.timeout + 1.0)
