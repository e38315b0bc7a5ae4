"""Shared helpers for the Raspberry Pi I²C bus."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, List

from ..logger import get_logger

try:  # pragma: no cover - optional dependency
    from smbus2 import SMBus  # type: ignore
except ImportError:  # pragma: no cover - optional dependency
    SMBus = None  # type: ignore

logger = get_logger(__name__)


class SMBusNotAvailable(RuntimeError):
    """Raised when smbus2 is not installed."""


@contextmanager
def open_bus(bus_id: int) -> Iterator["SMBus"]:
    """Context manager yielding an I²C bus instance."""

    if SMBus is None:
        logger.error("Attempted to open I²C bus %s without smbus2 installed", bus_id)
        raise SMBusNotAvailable("smbus2 library is not installed.")
    bus = SMBus(bus_id)
    try:
        yield bus
    finally:
        bus.close()


def read_block(bus_id: int, address: int, register: int, length: int) -> List[int]:
    """Read ``length`` bytes starting at ``register`` from a device."""

    with open_bus(bus_id) as bus:
        data = list(bus.read_i2c_block_data(address, register, length))
    logger.debug("Read %d bytes from 0x%02X on bus %s: %s", length, address, bus_id, data)
    return data


def has_smbus() -> bool:
    """Return True if smbus2 is importable."""

    return SMBus is not None
