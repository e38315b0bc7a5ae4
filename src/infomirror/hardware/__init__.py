"""Sensor and LED wrappers for the InfoMirror controller."""

from ..logger import get_logger
from .adc import ADCUnavailable, ArduinoBridge, read_mcp3008, read_mcp3421
from .controller import GPIOController
from .neopixel import NeoPixelStrip, NeoPixelUnavailable, scale_color
from .ultrasonic import UltrasonicSensor, UltrasonicUnavailable, echo_to_distance

get_logger(__name__).debug("Hardware package loaded")

__all__ = [
    "ADCUnavailable",
    "ArduinoBridge",
    "GPIOController",
    "NeoPixelStrip",
    "NeoPixelUnavailable",
    "UltrasonicSensor",
    "UltrasonicUnavailable",
    "echo_to_distance",
    "read_mcp3008",
    "read_mcp3421",
    "scale_color",
]
