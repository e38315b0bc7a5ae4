"""HC-SR04 ultrasonic distance sensor driven through RPi.GPIO."""

from __future__ import annotations

import time
from contextlib import suppress
from typing import Callable, Optional

from ..logger import get_logger

logger = get_logger(__name__)

SPEED_OF_SOUND_CM_PER_S = 34300
TRIGGER_PULSE_SECONDS = 0.00001
MIN_RANGE_CM = 2.0
MAX_RANGE_CM = 400.0


class UltrasonicUnavailable(RuntimeError):
    """Raised when the ultrasonic sensor cannot be accessed."""


def echo_to_distance(echo_seconds: float) -> float:
    """Convert a round-trip echo pulse width into centimetres."""

    return (echo_seconds * SPEED_OF_SOUND_CM_PER_S) / 2


def _import_gpio():
    try:
        import RPi.GPIO as GPIO  # type: ignore
    except ImportError as exc:  # pragma: no cover - optional dependency
        logger.warning("RPi.GPIO not available for the ultrasonic sensor: %s", exc)
        raise UltrasonicUnavailable("RPi.GPIO is not installed.") from exc
    except RuntimeError as exc:  # pragma: no cover - not running on a Pi
        logger.warning("RPi.GPIO refused to load: %s", exc)
        raise UltrasonicUnavailable(str(exc)) from exc
    GPIO.setwarnings(False)
    GPIO.setmode(GPIO.BCM)
    return GPIO


class UltrasonicSensor:
    """Trigger/echo pair of an HC-SR04 sensor."""

    def __init__(self, trig_pin: int, echo_pin: int, clock: Callable[[], float] = time.perf_counter) -> None:
        self.trig_pin = int(trig_pin)
        self.echo_pin = int(echo_pin)
        self._clock = clock
        self._gpio = None

    @property
    def ready(self) -> bool:
        return self._gpio is not None

    def setup(self) -> None:
        GPIO = _import_gpio()
        try:
            GPIO.setup(self.trig_pin, GPIO.OUT, initial=GPIO.LOW)
            GPIO.setup(self.echo_pin, GPIO.IN, pull_up_down=GPIO.PUD_DOWN)
        except Exception as exc:  # pragma: no cover - hardware interaction
            logger.error("Failed to configure HC-SR04 pins: %s", exc)
            raise UltrasonicUnavailable(f"Failed to configure HC-SR04 pins: {exc}") from exc
        self._gpio = GPIO
        logger.info("HC-SR04 sensor initialised (trig=%s echo=%s)", self.trig_pin, self.echo_pin)

    def _wait_for(self, level: int, timeout: float) -> Optional[float]:
        deadline = self._clock() + timeout
        while self._gpio.input(self.echo_pin) != level:
            if self._clock() > deadline:
                return None
        return self._clock()

    def measure(self, timeout: float = 0.1) -> Optional[float]:
        """Fire one ping and return the distance in cm.

        Returns ``None`` when the echo times out or the result is outside the
        sensor's 2-400 cm range.
        """

        if self._gpio is None:
            raise UltrasonicUnavailable("Ultrasonic sensor has not been set up.")
        GPIO = self._gpio
        try:
            GPIO.output(self.trig_pin, GPIO.HIGH)
            time.sleep(TRIGGER_PULSE_SECONDS)
            GPIO.output(self.trig_pin, GPIO.LOW)
            start = self._wait_for(GPIO.HIGH, timeout)
            if start is None:
                logger.debug("Timeout waiting for echo HIGH")
                return None
            end = self._wait_for(GPIO.LOW, timeout)
            if end is None:
                logger.debug("Timeout waiting for echo LOW")
                return None
        except Exception as exc:  # pragma: no cover - hardware interaction
            logger.error("Ultrasonic measurement failed: %s", exc)
            raise UltrasonicUnavailable(f"Ultrasonic measurement failed: {exc}") from exc

        distance = echo_to_distance(end - start)
        if not MIN_RANGE_CM <= distance <= MAX_RANGE_CM:
            logger.debug("Discarding out-of-range echo: %.1f cm", distance)
            return None
        return distance

    def close(self) -> None:
        if self._gpio is None:
            return
        with suppress(Exception):
            self._gpio.output(self.trig_pin, self._gpio.LOW)
        for pin in (self.trig_pin, self.echo_pin):
            with suppress(Exception):
                self._gpio.cleanup(pin)
        self._gpio = None
        logger.debug("HC-SR04 pins released")


__all__ = ["UltrasonicSensor", "UltrasonicUnavailable", "echo_to_distance"]
