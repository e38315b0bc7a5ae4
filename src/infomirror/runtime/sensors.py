"""Presence detection and light regulation on top of the GPIO controller."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import asdict, dataclass, fields
from typing import Any, Callable, Deque, Dict, Mapping, Optional

from ..config import AppSettings
from ..events import EventEmitter
from ..hardware.controller import (
    MAX_DETECTION_DISTANCE_CM,
    MIN_DETECTION_DISTANCE_CM,
    NO_READING_CM,
    GPIOController,
    clamp,
)
from ..logger import get_logger
from ..periodic import PeriodicTask

logger = get_logger(__name__)

MIN_PRESENCE_TIMEOUT_SECONDS = 1.0
HISTORY_LENGTH = 5
DEFAULT_POT_PERCENT = 50

TimerFactory = Callable[[float, Callable[[], None]], Any]


@dataclass
class SensorConfig:
    """Tunables for presence detection and potentiometer polling."""

    detection_distance: float = 100.0
    presence_timeout: float = 30.0
    distance_check_interval: float = 0.5
    potentiometer_poll_interval: float = 1.0
    potentiometer_threshold: float = 5.0
    distance_smoothing: bool = True
    smoothing_factor: float = 0.3
    min_valid_distance: float = 10.0
    max_valid_distance: float = 300.0
    debug_mode: bool = False

    @classmethod
    def from_settings(cls, settings: AppSettings, **overrides: Any) -> "SensorConfig":
        config = cls(
            distance_check_interval=settings.distance_check_interval_seconds,
            potentiometer_poll_interval=settings.potentiometer_poll_interval_seconds,
            potentiometer_threshold=settings.potentiometer_threshold,
            distance_smoothing=settings.distance_smoothing,
            smoothing_factor=settings.smoothing_factor,
            min_valid_distance=settings.min_valid_distance_cm,
            max_valid_distance=settings.max_valid_distance_cm,
        )
        for key, value in overrides.items():
            setattr(config, key, value)
        return config


def _start_timer(delay: float, callback: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


class SensorManager(EventEmitter):
    """Turn raw distance and potentiometer readings into mirror events.

    Events:
        ``distance_update`` ({raw, smoothed, within_range}),
        ``presence_detected`` ({distance, detection_distance[, forced]}),
        ``presence_timeout`` ({} or {forced: True}),
        ``potentiometer_changed`` (percent),
        ``detection_distance_changed`` (cm),
        ``presence_timeout_changed`` (seconds),
        ``configuration_updated`` (dict),
        ``error`` (exception).
    """

    def __init__(self, config: Optional[SensorConfig] = None, timer_factory: TimerFactory = _start_timer) -> None:
        super().__init__()
        self.config = config or SensorConfig()
        self._timer_factory = timer_factory
        self._lock = threading.RLock()
        self.gpio: Optional[GPIOController] = None
        self._presence_timer: Any = None
        self._presence_task: Optional[PeriodicTask] = None
        self._potentiometer_task: Optional[PeriodicTask] = None

        self.current_distance = NO_READING_CM
        self.smoothed_distance = NO_READING_CM
        self.last_potentiometer_value: float = DEFAULT_POT_PERCENT
        self.object_present = False
        self.initialized = False
        self._history: Deque[float] = deque(maxlen=HISTORY_LENGTH)

    # ------------------------------------------------------------------ #
    # Lifecycle                                                          #
    # ------------------------------------------------------------------ #

    def initialize(self, gpio: GPIOController, start_monitoring: bool = True) -> None:
        logger.info("Initialising sensor manager for HC-SR04")
        self.gpio = gpio
        gpio.set_detection_distance(self.config.detection_distance)
        gpio.on("distance_changed", self.handle_distance_change)
        gpio.on("error", self._on_gpio_error)
        if start_monitoring:
            self.start_distance_monitoring()
            self.start_potentiometer_monitoring()
        self.initialized = True
        logger.info("Sensor manager initialised")

    def _on_gpio_error(self, error: Exception) -> None:
        logger.error("GPIO controller error: %s", error)
        self.emit("error", error)

    def start_distance_monitoring(self) -> None:
        if self.gpio is None:
            return
        logger.info("Starting distance monitoring")
        interval = self.config.distance_check_interval
        self.gpio.start_distance_monitoring(interval)
        self._presence_task = PeriodicTask("presence", interval, self.check_presence)
        self._presence_task.start()

    def stop_distance_monitoring(self) -> None:
        if self._presence_task is not None:
            self._presence_task.stop()
            self._presence_task = None
        if self.gpio is not None:
            self.gpio.stop_distance_monitoring()

    def start_potentiometer_monitoring(self) -> None:
        if self.gpio is None:
            return
        logger.info("Starting potentiometer monitoring")
        self._potentiometer_task = PeriodicTask(
            "potentiometer",
            self.config.potentiometer_poll_interval,
            self.poll_potentiometer,
        )
        self._potentiometer_task.start()

    def stop_potentiometer_monitoring(self) -> None:
        if self._potentiometer_task is not None:
            self._potentiometer_task.stop()
            self._potentiometer_task = None

    def cleanup(self) -> None:
        logger.info("Cleaning up sensor manager")
        self.stop_distance_monitoring()
        self.stop_potentiometer_monitoring()
        with self._lock:
            self._cancel_presence_timer()
            self._history.clear()
        if self.gpio is not None:
            self.gpio.off("distance_changed", self.handle_distance_change)
            self.gpio.off("error", self._on_gpio_error)
        self.initialized = False
        logger.info("Sensor manager cleanup completed")

    # ------------------------------------------------------------------ #
    # Distance & presence                                                #
    # ------------------------------------------------------------------ #

    def apply_smoothing_filter(self, distance: float) -> float:
        """Exponential moving average; the first reading passes through."""

        self._history.append(distance)
        if len(self._history) == 1:
            return distance
        factor = self.config.smoothing_factor
        previous = self.smoothed_distance or distance
        return factor * distance + (1 - factor) * previous

    def handle_distance_change(self, raw_distance: float) -> None:
        cfg = self.config
        if not cfg.min_valid_distance <= raw_distance <= cfg.max_valid_distance:
            if cfg.debug_mode:
                logger.debug("Invalid distance reading: %s cm (outside valid range)", raw_distance)
            return

        with self._lock:
            self.current_distance = raw_distance
            if cfg.distance_smoothing:
                self.smoothed_distance = self.apply_smoothing_filter(raw_distance)
            else:
                self.smoothed_distance = raw_distance
            smoothed = self.smoothed_distance

        if cfg.debug_mode:
            logger.debug("Distance: %.1f cm, smoothed: %.1f cm", raw_distance, smoothed)
        self.emit(
            "distance_update",
            {
                "raw": raw_distance,
                "smoothed": smoothed,
                "within_range": smoothed <= cfg.detection_distance,
            },
        )

    def check_presence(self) -> None:
        with self._lock:
            within_range = self.smoothed_distance <= self.config.detection_distance
            if within_range and not self.object_present:
                self.object_present = True
                payload = {
                    "distance": self.smoothed_distance,
                    "detection_distance": self.config.detection_distance,
                }
                self._reset_presence_timer()
            elif within_range:
                self._reset_presence_timer()
                return
            else:
                if self.object_present and self.config.debug_mode:
                    logger.debug(
                        "Object moved away (%.1f cm), waiting for timeout",
                        self.smoothed_distance,
                    )
                return

        if self.config.debug_mode:
            logger.debug("Presence detected at %.1f cm", payload["distance"])
        self.emit("presence_detected", payload)

    def _cancel_presence_timer(self) -> None:
        if self._presence_timer is not None:
            self._presence_timer.cancel()
            self._presence_timer = None

    def _reset_presence_timer(self) -> None:
        self._cancel_presence_timer()
        timer: Any = None

        def _expire() -> None:
            self._on_presence_timeout(timer)

        timer = self._timer_factory(self.config.presence_timeout, _expire)
        self._presence_timer = timer

    def _on_presence_timeout(self, timer: Any) -> None:
        with self._lock:
            # A re-armed timer supersedes this one.
            if timer is not self._presence_timer:
                return
            self._presence_timer = None
            self.object_present = False
        if self.config.debug_mode:
            logger.debug("Presence timeout - no object detected within range")
        self.emit("presence_timeout", {})

    def force_presence_detection(self) -> bool:
        with self._lock:
            if self.object_present:
                return False
            self.object_present = True
            payload = {
                "distance": self.smoothed_distance,
                "detection_distance": self.config.detection_distance,
                "forced": True,
            }
            self._reset_presence_timer()
        logger.info("Presence detection forced manually")
        self.emit("presence_detected", payload)
        return True

    def force_presence_timeout(self) -> bool:
        with self._lock:
            if not self.object_present:
                return False
            self.object_present = False
            self._cancel_presence_timer()
        logger.info("Presence timeout forced manually")
        self.emit("presence_timeout", {"forced": True})
        return True

    # ------------------------------------------------------------------ #
    # Potentiometer                                                      #
    # ------------------------------------------------------------------ #

    def poll_potentiometer(self) -> None:
        if self.gpio is None:
            return
        try:
            value = self.gpio.read_potentiometer()
        except Exception as exc:
            if self.config.debug_mode:
                logger.debug("Error reading potentiometer: %s", exc)
            return
        if abs(value - self.last_potentiometer_value) < self.config.potentiometer_threshold:
            return
        self.last_potentiometer_value = value
        if self.config.debug_mode:
            logger.debug("Potentiometer changed to %s%%", value)
        self.emit("potentiometer_changed", value)

    # ------------------------------------------------------------------ #
    # Configuration                                                      #
    # ------------------------------------------------------------------ #

    def set_detection_distance(self, distance: float) -> float:
        previous = self.config.detection_distance
        self.config.detection_distance = clamp(distance, MIN_DETECTION_DISTANCE_CM, MAX_DETECTION_DISTANCE_CM)
        if self.gpio is not None:
            self.gpio.set_detection_distance(self.config.detection_distance)
        if self.config.debug_mode:
            logger.debug(
                "Detection distance changed from %s cm to %s cm",
                previous,
                self.config.detection_distance,
            )
        self.emit("detection_distance_changed", self.config.detection_distance)
        return self.config.detection_distance

    def set_presence_timeout(self, seconds: float) -> float:
        previous = self.config.presence_timeout
        self.config.presence_timeout = max(MIN_PRESENCE_TIMEOUT_SECONDS, seconds)
        if self.config.debug_mode:
            logger.debug("Presence timeout changed from %ss to %ss", previous, self.config.presence_timeout)
        self.emit("presence_timeout_changed", self.config.presence_timeout)
        return self.config.presence_timeout

    def configuration(self) -> Dict[str, Any]:
        return asdict(self.config)

    def update_configuration(self, changes: Mapping[str, Any]) -> Dict[str, Any]:
        """Apply ``changes`` (SensorConfig field names), restarting affected loops."""

        known = {field.name for field in fields(SensorConfig)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"Unknown sensor settings: {', '.join(sorted(unknown))}")
        previous = self.configuration()
        for key, value in changes.items():
            if key not in ("detection_distance", "presence_timeout"):
                setattr(self.config, key, value)

        if "distance_check_interval" in changes and changes["distance_check_interval"] != previous["distance_check_interval"]:
            if self._presence_task is not None:
                self.stop_distance_monitoring()
                self.start_distance_monitoring()
        if (
            "potentiometer_poll_interval" in changes
            and changes["potentiometer_poll_interval"] != previous["potentiometer_poll_interval"]
        ):
            if self._potentiometer_task is not None:
                self.stop_potentiometer_monitoring()
                self.start_potentiometer_monitoring()
        if "detection_distance" in changes:
            self.set_detection_distance(changes["detection_distance"])
        if "presence_timeout" in changes:
            self.set_presence_timeout(changes["presence_timeout"])

        logger.info("Sensor manager configuration updated")
        updated = self.configuration()
        self.emit("configuration_updated", updated)
        return updated

    def status(self) -> Dict[str, Any]:
        return {
            "initialized": self.initialized,
            "currentDistance": self.current_distance,
            "smoothedDistance": self.smoothed_distance,
            "detectionDistance": self.config.detection_distance,
            "objectPresent": self.object_present,
            "potentiometerValue": self.last_potentiometer_value,
            "presenceTimeout": self.config.presence_timeout,
        }
