"""Potentiometer readers for the supported ADC front-ends.

Every reader returns the wiper position as a fraction between 0 and 1,
except the Arduino bridge which already reports a percentage.
"""

from __future__ import annotations

import json
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..logger import get_logger
from .i2c import SMBusNotAvailable, read_block

logger = get_logger(__name__)

NEUTRAL_READING = 0.5
DEFAULT_POT_PERCENT = 50
MCP3008_MAX = 1023.0
MCP3008_SPI_BUS = 0
MCP3008_SPI_SPEED_HZ = 1_000_000
MCP3421_FULL_SCALE = 2048.0
ARDUINO_READY_BANNER = "ARDUINO_READY"


class ADCUnavailable(RuntimeError):
    """Raised when the potentiometer ADC cannot be read."""


def read_mcp3008(channel: int, spi_device: int = 0) -> float:
    """Single-ended conversion on an MCP3008 channel over SPI."""

    try:
        import spidev  # type: ignore
    except ImportError as exc:  # pragma: no cover - optional dependency
        raise ADCUnavailable("spidev is not installed.") from exc

    spi = spidev.SpiDev()
    try:
        spi.open(MCP3008_SPI_BUS, spi_device)
        spi.max_speed_hz = MCP3008_SPI_SPEED_HZ
        reply = spi.xfer2([1, (8 + channel) << 4, 0])
    except OSError as exc:  # pragma: no cover - hardware interaction
        raise ADCUnavailable(f"MCP3008 read failed: {exc}") from exc
    finally:
        spi.close()
    return (((reply[1] & 3) << 8) + reply[2]) / MCP3008_MAX


def read_mcp3421(bus_id: int, address: int) -> float:
    """Read the MCP3421 output register over I²C."""

    try:
        data = read_block(bus_id, address, 0x00, 3)
    except SMBusNotAvailable as exc:
        raise ADCUnavailable(str(exc)) from exc
    except OSError as exc:  # pragma: no cover - hardware interaction
        raise ADCUnavailable(f"MCP3421 read failed: {exc}") from exc
    return (((data[0] & 0x1F) << 8) | data[1]) / MCP3421_FULL_SCALE


def read_neutral() -> float:
    # HX711, the Pi 5 built-in ADC and the generic bridge have no driver here.
    return NEUTRAL_READING


def parse_arduino_line(line: str) -> Optional[Dict[str, Any]]:
    """Decode one line emitted by the Arduino sketch, ``None`` if not JSON."""

    try:
        message = json.loads(line)
    except (json.JSONDecodeError, TypeError):
        return None
    return message if isinstance(message, dict) else None


class ArduinoBridge:
    """Serial link to an Arduino that streams potentiometer readings as JSON lines."""

    def __init__(
        self,
        ports: Iterable[str],
        baud_rate: int = 9600,
        on_value: Optional[Callable[[float], None]] = None,
        debug: bool = False,
    ) -> None:
        self.ports: List[str] = list(ports)
        self.baud_rate = baud_rate
        self.on_value = on_value
        self.debug = debug
        self.last_value: float = DEFAULT_POT_PERCENT
        self.port_name: Optional[str] = None
        self._serial = None
        self._ready = threading.Event()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_open(self) -> bool:
        return self._serial is not None and bool(getattr(self._serial, "is_open", False))

    def open(self, ready_timeout: float = 5.0) -> None:
        try:
            import serial  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise ADCUnavailable("pyserial is not installed.") from exc

        for port in self.ports:
            try:
                self._serial = serial.Serial(port, baudrate=self.baud_rate, timeout=0.2)
            except (serial.SerialException, OSError):
                logger.debug("No Arduino on %s", port)
                continue
            self.port_name = port
            logger.info("Arduino connected on %s", port)
            break
        else:
            raise ADCUnavailable("No Arduino found on common serial ports")

        self._stop.clear()
        self._thread = threading.Thread(target=self._read_loop, name="infomirror-arduino", daemon=True)
        self._thread.start()
        if not self._ready.wait(timeout=ready_timeout):
            logger.warning("Arduino did not announce readiness within %.1fs; continuing", ready_timeout)
        else:
            logger.info("Arduino ADC bridge ready")

    def _read_loop(self) -> None:
        while not self._stop.is_set():
            try:
                raw = self._serial.readline()
            except Exception as exc:  # pragma: no cover - hardware interaction
                logger.error("Arduino serial read failed: %s", exc)
                break
            if not raw:
                continue
            self.handle_line(raw.decode("utf-8", errors="replace"))

    def handle_line(self, line: str) -> None:
        line = line.strip()
        if ARDUINO_READY_BANNER in line:
            self._ready.set()
            return
        message = parse_arduino_line(line)
        if message is None:
            if self.debug and line:
                logger.debug("Arduino message: %s", line)
            return
        if message.get("type") != "potentiometer":
            return
        value = message.get("value")
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            return
        self.last_value = value
        if self.debug:
            logger.debug("Potentiometer: %s%% (raw: %s)", value, message.get("raw"))
        if self.on_value:
            self.on_value(value)

    def close(self) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=1)
            self._thread = None
        if self._serial is not None:
            try:
                self._serial.close()
            finally:
                self._serial = None
            logger.info("Arduino connection closed")


__all__ = [
    "ADCUnavailable",
    "ArduinoBridge",
    "NEUTRAL_READING",
    "parse_arduino_line",
    "read_mcp3008",
    "read_mcp3421",
    "read_neutral",
]
