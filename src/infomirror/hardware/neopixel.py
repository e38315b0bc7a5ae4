"""Helpers for driving the WS281x (NeoPixel) LED strip."""

from __future__ import annotations

from typing import List, Tuple

from ..logger import get_logger

logger = get_logger(__name__)

LED_FREQ_HZ = 800000
LED_DMA = 10
LED_INVERT = False

RGB = Tuple[int, int, int]

# Colour orders accepted in configuration, mapped to rpi_ws281x constants.
STRIP_TYPES = {
    "grb": "WS2811_STRIP_GRB",
    "rgb": "WS2811_STRIP_RGB",
    "ws2812": "WS2811_STRIP_GRB",
    "ws2811": "WS2811_STRIP_RGB",
    "grbw": "SK6812_STRIP_GRBW",
    "rgbw": "SK6812_STRIP_RGBW",
}


class NeoPixelUnavailable(RuntimeError):
    """Raised when the LED strip cannot be driven."""


def _channel(value: int, intensity: float) -> int:
    # Half-up rounding; channels are never negative.
    return int(value * intensity / 100 + 0.5)


def scale_color(red: int, green: int, blue: int, intensity: float = 100) -> RGB:
    """Scale an RGB triple by an intensity percentage."""

    return _channel(red, intensity), _channel(green, intensity), _channel(blue, intensity)


def _import_ws281x():
    try:
        from rpi_ws281x import Color, PixelStrip, ws  # type: ignore
    except ImportError as exc:  # pragma: no cover - optional dependency
        logger.warning("rpi_ws281x not available for NeoPixel control: %s", exc)
        raise NeoPixelUnavailable("rpi_ws281x is not installed.") from exc
    return PixelStrip, Color, ws


class NeoPixelStrip:
    """A strip of identically coloured pixels."""

    def __init__(self, count: int, pin: int, strip_type: str = "grb", brightness: int = 255) -> None:
        key = strip_type.lower()
        if key not in STRIP_TYPES:
            raise ValueError(f"Unsupported NeoPixel strip type: {strip_type!r}")
        self.count = int(count)
        self.pin = int(pin)
        self.strip_type = key
        self.brightness = int(brightness)
        self._pixels: List[RGB] = [(0, 0, 0)] * self.count
        self._strip = None
        self._color = None

    @property
    def ready(self) -> bool:
        return self._strip is not None

    @property
    def pixels(self) -> List[RGB]:
        return list(self._pixels)

    def begin(self) -> None:
        PixelStrip, Color, ws = _import_ws281x()
        try:
            strip = PixelStrip(
                self.count,
                self.pin,
                LED_FREQ_HZ,
                LED_DMA,
                LED_INVERT,
                self.brightness,
                0,
                getattr(ws, STRIP_TYPES[self.strip_type]),
            )
            strip.begin()
        except Exception as exc:  # pragma: no cover - hardware interaction
            logger.error("Failed to initialise NeoPixel strip: %s", exc)
            raise NeoPixelUnavailable(f"Failed to initialise NeoPixel strip: {exc}") from exc
        self._strip = strip
        self._color = Color
        self.clear()
        logger.info("NeoPixel strip initialised: %d LEDs on GPIO %d", self.count, self.pin)

    def fill(self, red: int, green: int, blue: int) -> None:
        """Set every pixel to the same colour and render."""

        if self._strip is None:
            raise NeoPixelUnavailable("NeoPixel strip has not been started.")
        value = self._color(red, green, blue)
        try:
            for index in range(self.count):
                self._strip.setPixelColor(index, value)
            self._strip.show()
        except Exception as exc:  # pragma: no cover - hardware interaction
            raise NeoPixelUnavailable(f"Failed to render NeoPixel strip: {exc}") from exc
        self._pixels = [(red, green, blue)] * self.count

    def clear(self) -> None:
        self.fill(0, 0, 0)

    def close(self) -> None:
        if self._strip is None:
            return
        try:
            self.clear()
        finally:
            self._strip = None
            self._color = None
        logger.debug("NeoPixel strip released")


__all__ = ["NeoPixelStrip", "NeoPixelUnavailable", "STRIP_TYPES", "scale_color"]
