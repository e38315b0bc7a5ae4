"""GPIO controller: ultrasonic sensor, NeoPixel strip and potentiometer ADC.

Missing vendor libraries (or a forced ``mock_hardware`` setting) put the
affected device into mock mode instead of failing, so the mirror keeps
running on a development machine.
"""

from __future__ import annotations

import random
import threading
import time
from typing import Any, Callable, Dict, Optional

from ..config import ADCType, AppSettings
from ..events import EventEmitter
from ..logger import get_logger
from ..periodic import PeriodicTask
from .adc import (
    DEFAULT_POT_PERCENT,
    ADCUnavailable,
    ArduinoBridge,
    read_mcp3008,
    read_mcp3421,
    read_neutral,
)
from .neopixel import NeoPixelStrip, NeoPixelUnavailable, scale_color
from .ultrasonic import UltrasonicSensor, UltrasonicUnavailable

logger = get_logger(__name__)

NO_READING_CM = 999.0
MIN_DETECTION_DISTANCE_CM = 10
MAX_DETECTION_DISTANCE_CM = 400
TEST_COLORS = ((255, 0, 0), (0, 255, 0), (0, 0, 255), (255, 255, 255))


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class GPIOController(EventEmitter):
    """Owns the mirror's GPIO peripherals.

    Events:
        ``distance_changed`` (distance_cm), ``potentiometer_changed`` (percent),
        ``error`` (exception).
    """

    def __init__(
        self,
        settings: AppSettings,
        detection_distance: float = 100,
        debug_mode: bool = False,
        ultrasonic: Optional[UltrasonicSensor] = None,
        strip: Optional[NeoPixelStrip] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        super().__init__()
        self._settings = settings
        self.detection_distance = clamp(detection_distance, MIN_DETECTION_DISTANCE_CM, MAX_DETECTION_DISTANCE_CM)
        self.debug_mode = debug_mode
        self._ultrasonic = ultrasonic or UltrasonicSensor(settings.ultrasonic_trig_pin, settings.ultrasonic_echo_pin)
        self._strip = strip or NeoPixelStrip(
            settings.neopixel_count,
            settings.neopixel_pin,
            settings.neopixel_type,
            settings.neopixel_brightness,
        )
        self._rng = rng or random.Random()
        self._led_lock = threading.Lock()
        self._distance_task: Optional[PeriodicTask] = None
        self._adc_reader: Optional[Callable[[], float]] = None
        self._arduino: Optional[ArduinoBridge] = None

        self.initialized = False
        self.mock_mode = False
        self.neopixel_mock_mode = False
        self.adc_type: Optional[str] = None
        self.adc_ready = False
        self.current_distance = NO_READING_CM
        self.current_led_intensity = 0.0

    # ------------------------------------------------------------------ #
    # Lifecycle                                                          #
    # ------------------------------------------------------------------ #

    @property
    def full_mock_mode(self) -> bool:
        return self.mock_mode and self.neopixel_mock_mode

    def initialize(self) -> None:
        logger.info("Initialising GPIO controller")
        if self._settings.mock_hardware:
            logger.info("Hardware mocking forced by configuration")
            self.mock_mode = True
            self.neopixel_mock_mode = True
        else:
            self._setup_ultrasonic()
            self._setup_neopixels()

        if self.full_mock_mode:
            self.adc_type = "mock"
            self.adc_ready = True
            logger.info("GPIO controller running in full mock mode")
        else:
            self._setup_adc()
        self.initialized = True
        logger.info("GPIO controller initialised")

    def _setup_ultrasonic(self) -> None:
        try:
            self._ultrasonic.setup()
        except UltrasonicUnavailable as exc:
            logger.warning("Ultrasonic sensor unavailable, using mock readings: %s", exc)
            self.mock_mode = True

    def _setup_neopixels(self) -> None:
        try:
            self._strip.begin()
        except NeoPixelUnavailable as exc:
            logger.warning("NeoPixel strip unavailable, using mock LEDs: %s", exc)
            self.neopixel_mock_mode = True

    def _setup_adc(self) -> None:
        adc_type = self._settings.adc_type
        logger.info("Setting up ADC: %s", adc_type.value)
        self.adc_type = adc_type.value
        if adc_type is ADCType.ARDUINO:
            bridge = ArduinoBridge(
                self._settings.arduino_ports,
                self._settings.arduino_baud_rate,
                on_value=lambda value: self.emit("potentiometer_changed", value),
                debug=self.debug_mode,
            )
            try:
                bridge.open(ready_timeout=self._settings.arduino_ready_timeout_seconds)
            except ADCUnavailable as exc:
                logger.error("Failed to set up Arduino ADC: %s", exc)
                self.adc_ready = False
                return
            self._arduino = bridge
        elif adc_type is ADCType.MCP3008:
            channel, device = self._settings.adc_channel, self._settings.spi_device
            self._adc_reader = lambda: read_mcp3008(channel, device)
        elif adc_type is ADCType.MCP3421:
            bus_id, address = self._settings.i2c_bus_id, self._settings.mcp3421_address
            self._adc_reader = lambda: read_mcp3421(bus_id, address)
        elif adc_type in (ADCType.HX711, ADCType.BUILTIN, ADCType.PYTHON):
            self._adc_reader = read_neutral
        else:
            logger.info("No ADC configured, potentiometer disabled")
            self.adc_ready = False
            return
        self.adc_ready = True

    def cleanup(self) -> None:
        logger.info("Cleaning up GPIO controller")
        self.stop_distance_monitoring()
        if not self.neopixel_mock_mode:
            try:
                self._strip.close()
            except NeoPixelUnavailable as exc:
                logger.error("Error clearing LEDs during cleanup: %s", exc)
        if not self.mock_mode:
            self._ultrasonic.close()
        if self._arduino is not None:
            self._arduino.close()
            self._arduino = None
        self.initialized = False
        logger.info("GPIO cleanup completed")

    # ------------------------------------------------------------------ #
    # Distance                                                           #
    # ------------------------------------------------------------------ #

    def _mock_distance(self) -> float:
        if self._rng.random() > 0.8:
            return self._rng.random() * 80 + 20
        return self._rng.random() * 200 + 150

    def measure_distance(self) -> Optional[float]:
        """Take one reading and publish it; ``None`` when nothing valid came back."""

        if not self.initialized:
            return None
        if self.mock_mode:
            distance: Optional[float] = self._mock_distance()
        else:
            try:
                distance = self._ultrasonic.measure()
            except UltrasonicUnavailable as exc:
                logger.error("Error triggering distance measurement: %s", exc)
                self.emit("error", exc)
                return None
        if distance is None:
            return None
        self.current_distance = distance
        if self.debug_mode:
            logger.debug("Distance measured: %.1f cm", distance)
        self.emit("distance_changed", distance)
        return distance

    def start_distance_monitoring(self, interval: float = 0.5) -> None:
        self.stop_distance_monitoring()
        self._distance_task = PeriodicTask("distance", interval, self.measure_distance)
        self._distance_task.start()
        logger.info(
            "Distance monitoring started (%.0fms interval%s)",
            interval * 1000,
            ", mock mode" if self.mock_mode else "",
        )

    def stop_distance_monitoring(self) -> None:
        if self._distance_task is not None:
            self._distance_task.stop()
            self._distance_task = None
            logger.info("Distance monitoring stopped")

    @property
    def monitoring(self) -> bool:
        return self._distance_task is not None and self._distance_task.running

    def is_object_detected(self) -> bool:
        return self.current_distance <= self.detection_distance

    def set_detection_distance(self, distance: float) -> float:
        self.detection_distance = clamp(distance, MIN_DETECTION_DISTANCE_CM, MAX_DETECTION_DISTANCE_CM)
        logger.info("Detection distance set to %s cm", self.detection_distance)
        return self.detection_distance

    # ------------------------------------------------------------------ #
    # LEDs                                                               #
    # ------------------------------------------------------------------ #

    def set_led_intensity(self, intensity: float) -> None:
        if not self.initialized:
            logger.warning("GPIO not initialised; ignoring LED intensity %s", intensity)
            return
        clamped = clamp(intensity, 0, 100)
        self.current_led_intensity = clamped
        if self.neopixel_mock_mode:
            logger.info("Mock: setting NeoPixel intensity to %s%%", clamped)
            return
        if clamped == 0:
            self.clear_leds()
        else:
            self.set_strip_color(255, 255, 255, clamped)
        if self.debug_mode:
            logger.debug("NeoPixel intensity set to %s%%", clamped)

    def set_strip_color(self, red: int, green: int, blue: int, intensity: float = 100) -> None:
        if not self.initialized or self.neopixel_mock_mode:
            if self.debug_mode:
                logger.debug("Mock: setting colour RGB(%d, %d, %d) at %s%%", red, green, blue, intensity)
            return
        with self._led_lock:
            try:
                self._strip.fill(*scale_color(red, green, blue, intensity))
            except NeoPixelUnavailable as exc:
                logger.error("Error setting strip colour: %s", exc)
                self.emit("error", exc)

    def clear_leds(self) -> None:
        if not self.initialized or self.neopixel_mock_mode:
            return
        with self._led_lock:
            try:
                self._strip.clear()
            except NeoPixelUnavailable as exc:
                logger.error("Error clearing LEDs: %s", exc)
                self.emit("error", exc)

    def turn_off_leds(self) -> None:
        self.set_led_intensity(0)

    def test_leds(
        self,
        intensity: float = 50,
        duration: float = 3.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Cycle red, green, blue and white, then switch the strip off."""

        logger.info("Testing NeoPixel strip at %s%% for %.1fs", intensity, duration)
        if self.neopixel_mock_mode:
            logger.info("Mock: LED test completed")
            return
        step = duration / (len(TEST_COLORS) + 1)
        for red, green, blue in TEST_COLORS:
            self.set_strip_color(red, green, blue, intensity)
            sleep(step)
        self.clear_leds()

    # ------------------------------------------------------------------ #
    # Potentiometer                                                      #
    # ------------------------------------------------------------------ #

    def read_potentiometer(self) -> float:
        """Return the potentiometer position in percent."""

        if self.full_mock_mode:
            return self._rng.randrange(100)
        if not self.adc_ready:
            return DEFAULT_POT_PERCENT
        if self._arduino is not None:
            return self._arduino.last_value
        if self._adc_reader is None:
            return DEFAULT_POT_PERCENT
        try:
            value = self._adc_reader()
        except ADCUnavailable as exc:
            if self.debug_mode:
                logger.debug("Error reading potentiometer: %s", exc)
            return DEFAULT_POT_PERCENT
        return int(value * 100 + 0.5)

    # ------------------------------------------------------------------ #
    # Status                                                             #
    # ------------------------------------------------------------------ #

    @property
    def pixels(self):
        return self._strip.pixels

    def status(self) -> Dict[str, Any]:
        return {
            "initialized": self.initialized,
            "mockMode": self.mock_mode,
            "neopixelMockMode": self.neopixel_mock_mode,
            "adcType": self.adc_type,
            "adcReady": self.adc_ready,
            "currentDistance": self.current_distance,
            "objectDetected": self.is_object_detected(),
            "ledIntensity": self.current_led_intensity,
            "detectionDistance": self.detection_distance,
            "monitoring": self.monitoring,
        }
