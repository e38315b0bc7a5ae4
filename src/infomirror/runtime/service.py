"""Mirror service: glue between the dashboard, the hardware and the helper script."""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

from ..config import AppSettings
from ..hardware.controller import GPIOController
from ..logger import get_logger, set_debug_mode
from ..store import ConfigurationStore, validate_configuration
from .display import DisplayController
from .helper import HelperProcess
from .notifications import NotificationBus
from .sensors import SensorConfig, SensorManager

logger = get_logger(__name__)

DISTANCE_REPORT_DELTA_CM = 5


class HardwareNotReady(RuntimeError):
    """Raised when an operation needs hardware that has not been initialised."""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _ms_to_seconds(value: float) -> float:
    return float(value) / 1000.0


class InfoMirrorService:
    """Owns configuration, hardware, the helper process and dashboard notifications."""

    def __init__(
        self,
        settings: AppSettings,
        store: Optional[ConfigurationStore] = None,
        bus: Optional[NotificationBus] = None,
        helper: Optional[HelperProcess] = None,
        gpio_factory: Optional[Callable[[Mapping[str, Any]], GPIOController]] = None,
        sensor_factory: Optional[Callable[[Mapping[str, Any]], SensorManager]] = None,
    ) -> None:
        self.settings = settings
        self.store = store or ConfigurationStore(settings.config_path, settings.helper_script_path)
        self.bus = bus or NotificationBus()
        self.helper = helper or HelperProcess(settings.helper_interpreter)
        self._gpio_factory = gpio_factory or self._build_gpio
        self._sensor_factory = sensor_factory or self._build_sensors
        self._lock = threading.RLock()

        self.current_config: Dict[str, Any] = self.store.load()
        self.instances: Dict[str, Dict[str, Any]] = {}
        self.gpio: Optional[GPIOController] = None
        self.sensors: Optional[SensorManager] = None
        self.hardware_initialized = False
        self.config_server_running = False
        self.object_present = False
        self.current_distance: Optional[float] = None
        self.current_led_intensity: float = self.current_config.get("ledIntensity", 0)
        self.potentiometer_value: Optional[float] = None
        self.last_arduino_data: Dict[str, Any] = {}

        self.display = DisplayController(self.current_config, self.publish, config_port=settings.port)
        set_debug_mode(bool(self.current_config.get("debugMode", False)))

        self.helper.on("ready", self._on_helper_ready)
        self.helper.on("stopped", self._on_helper_stopped)
        self.helper.on("error", self._on_helper_error)
        self.helper.on("message", self.handle_helper_message)

    # ------------------------------------------------------------------ #
    # Notifications                                                      #
    # ------------------------------------------------------------------ #

    def publish(self, name: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self.bus.publish(name, payload)

    def broadcast(self, name: str, payload: Optional[Dict[str, Any]] = None) -> None:
        """Publish ``name`` once per registered dashboard instance."""

        payload = dict(payload or {})
        identifiers = list(self.instances) or [None]
        for identifier in identifiers:
            self.publish(name, {**payload, "identifier": identifier})

    def handle_notification(self, name: str, payload: Optional[Mapping[str, Any]] = None) -> bool:
        """Dispatch a notification sent by the dashboard; False if unhandled."""

        payload = dict(payload or {})
        identifier = payload.get("identifier")
        handlers: Dict[str, Callable[[], Any]] = {
            "INIT_HARDWARE": lambda: self.initialize_instance(identifier, payload.get("config") or {}),
            "START_PYTHON_APP": lambda: self.start_helper(payload.get("scriptPath")),
            "STOP_PYTHON_APP": self.stop_helper,
            "SEND_CONFIG_TO_PYTHON": lambda: self.send_configuration_to_helper(payload.get("config") or {}),
            "GET_SYSTEM_STATUS": lambda: self.publish(
                "SYSTEM_STATUS", {"status": self.system_status(), "identifier": identifier}
            ),
            "GET_HARDWARE_STATUS": lambda: self.publish(
                "HARDWARE_STATUS", {"status": self.hardware_status(), "identifier": identifier}
            ),
            "UPDATE_LEDS": lambda: self.update_leds(
                bool(payload.get("enabled")), float(payload.get("intensity", 0))
            ),
            "UPDATE_DETECTION_DISTANCE": lambda: self.update_detection_distance(float(payload["distance"])),
            "UPDATE_PRESENCE_TIMEOUT": lambda: self.update_presence_timeout(float(payload["timeout"])),
            "FORCE_PRESENCE_DETECTION": self.force_presence,
            "DISPLAY_CONTROL": lambda: self.control_display(payload.get("action", "")),
            "MODULE_VISIBILITY_CHANGED": lambda: self.display.record_visibility(
                payload.get("module", ""), bool(payload.get("hidden"))
            ),
        }
        handler = handlers.get(name)
        if handler is None:
            logger.info("Unhandled notification: %s", name)
            return False
        try:
            handler()
        except HardwareNotReady as exc:
            logger.error("%s ignored: %s", name, exc)
        except (KeyError, TypeError, ValueError) as exc:
            logger.error("Malformed %s notification: %s", name, exc)
        return True

    # ------------------------------------------------------------------ #
    # Instances & hardware                                               #
    # ------------------------------------------------------------------ #

    def initialize_instance(self, identifier: Optional[str], config: Mapping[str, Any]) -> bool:
        key = identifier or "default"
        logger.info("Initialising system communication for instance %s", key)
        with self._lock:
            self.instances[key] = dict(config)
            self.current_config = self.store.merge(self.current_config, config)
        self.display.handle_configuration_change(config)
        if self.settings.hardware_enabled:
            try:
                self.initialize_hardware()
            except Exception as exc:
                logger.exception("Hardware initialisation failed")
                self.publish("HARDWARE_ERROR", {"error": str(exc), "identifier": identifier})
                return False
        self.apply_hardware_configuration(config)
        if "debugMode" in config:
            set_debug_mode(bool(config["debugMode"]))
        self.display.mark_ready()
        self.publish("HARDWARE_READY", {"identifier": identifier})
        return True

    def _build_gpio(self, config: Mapping[str, Any]) -> GPIOController:
        return GPIOController(
            self.settings,
            detection_distance=config.get("detectionDistance", 100),
            debug_mode=bool(config.get("debugMode", False)),
        )

    def _build_sensors(self, config: Mapping[str, Any]) -> SensorManager:
        return SensorManager(
            SensorConfig.from_settings(
                self.settings,
                detection_distance=config.get("detectionDistance", 100),
                presence_timeout=_ms_to_seconds(config.get("motionTimeout", 30000)),
                debug_mode=bool(config.get("debugMode", False)),
            )
        )

    def initialize_hardware(self) -> None:
        """Bring up the GPIO controller and sensor manager once."""

        with self._lock:
            if self.hardware_initialized:
                return
            config = dict(self.current_config)
            gpio = self._gpio_factory(config)
            sensors = self._sensor_factory(config)
            sensors.on("presence_detected", self._on_presence_detected)
            sensors.on("presence_timeout", self._on_presence_timeout)
            sensors.on("distance_update", self._on_distance_update)
            sensors.on("potentiometer_changed", self._on_potentiometer_changed)
            sensors.on("detection_distance_changed", self._on_detection_distance_changed)
            sensors.on("error", self._on_hardware_error)
            gpio.initialize()
            sensors.initialize(gpio)
            self.gpio = gpio
            self.sensors = sensors
            self.hardware_initialized = True
        logger.info("Hardware initialised successfully")

    def _require_gpio(self) -> GPIOController:
        if self.gpio is None:
            raise HardwareNotReady("Hardware not initialized")
        return self.gpio

    def _require_sensors(self) -> SensorManager:
        if self.sensors is None:
            raise HardwareNotReady("Sensor manager not initialized")
        return self.sensors

    # ------------------------------------------------------------------ #
    # Sensor events                                                      #
    # ------------------------------------------------------------------ #

    def _on_presence_detected(self, data: Mapping[str, Any]) -> None:
        logger.info("Object detected at %.1f cm", data["distance"])
        self.object_present = True
        self.current_distance = data["distance"]
        if self.gpio is not None:
            self.gpio.set_led_intensity(self.current_led_intensity)
        self.display.set_display_enabled(True)
        self.broadcast(
            "MOTION_DETECTED",
            {"distance": data["distance"], "detectionDistance": data["detection_distance"]},
        )

    def _on_presence_timeout(self, _data: Mapping[str, Any]) -> None:
        logger.info("Presence timeout - no object within detection range")
        self.object_present = False
        if self.gpio is not None:
            self.gpio.turn_off_leds()
        self.display.set_display_enabled(False)
        self.broadcast("MOTION_TIMEOUT")

    def _on_distance_update(self, data: Mapping[str, Any]) -> None:
        self.current_distance = data["smoothed"]
        if abs(data["raw"] - data["smoothed"]) > DISTANCE_REPORT_DELTA_CM:
            self.broadcast(
                "DISTANCE_CHANGED",
                {
                    "rawDistance": data["raw"],
                    "smoothedDistance": data["smoothed"],
                    "withinRange": data["within_range"],
                },
            )

    def _on_potentiometer_changed(self, value: float) -> None:
        self.potentiometer_value = value
        self.current_led_intensity = value
        if self.object_present and self.gpio is not None:
            self.gpio.set_led_intensity(value)
        self.broadcast("LIGHT_INTENSITY_CHANGED", {"intensity": value})

    def _on_detection_distance_changed(self, distance: float) -> None:
        self.broadcast("DETECTION_DISTANCE_CHANGED", {"distance": distance})

    def _on_hardware_error(self, error: Exception) -> None:
        logger.error("Hardware error: %s", error)
        self.broadcast("HARDWARE_ERROR", {"error": str(error)})

    # ------------------------------------------------------------------ #
    # Configuration                                                      #
    # ------------------------------------------------------------------ #

    def update_configuration(self, patch: Any) -> Dict[str, Any]:
        """Validate, persist and apply a partial configuration update."""

        changes = validate_configuration(patch)
        logger.info("Received configuration update: %s", changes)
        with self._lock:
            merged = self.store.merge(self.current_config, changes)
            self.current_config = self.store.save(merged)
        self.apply_hardware_configuration(changes)
        self.display.handle_configuration_change(changes)
        if "debugMode" in changes:
            set_debug_mode(bool(changes["debugMode"]))
        if self.helper.ready:
            self.send_configuration_to_helper(changes)
        self.broadcast("CONFIG_UPDATED", {"config": changes})
        return dict(self.current_config)

    def apply_hardware_configuration(self, changes: Mapping[str, Any]) -> None:
        if "ledIntensity" in changes:
            self.current_led_intensity = changes["ledIntensity"]
        if self.sensors is None or self.gpio is None:
            return
        if "detectionDistance" in changes:
            self.sensors.set_detection_distance(changes["detectionDistance"])
        if "motionTimeout" in changes:
            self.sensors.set_presence_timeout(_ms_to_seconds(changes["motionTimeout"]))
        if "ledIntensity" in changes and self.object_present:
            self.gpio.set_led_intensity(changes["ledIntensity"])

    # ------------------------------------------------------------------ #
    # Hardware operations                                                #
    # ------------------------------------------------------------------ #

    def update_leds(self, enabled: bool, intensity: float = 0) -> None:
        gpio = self._require_gpio()
        if enabled:
            gpio.set_led_intensity(intensity)
            self.current_led_intensity = gpio.current_led_intensity
        else:
            gpio.turn_off_leds()
            self.current_led_intensity = 0

    def update_detection_distance(self, distance: float) -> float:
        return self._require_sensors().set_detection_distance(distance)

    def update_presence_timeout(self, timeout_ms: float) -> float:
        return self._require_sensors().set_presence_timeout(_ms_to_seconds(timeout_ms))

    def force_presence(self) -> bool:
        return self._require_sensors().force_presence_detection()

    def test_leds(self, intensity: float = 50, duration_ms: float = 3000) -> None:
        self._require_gpio().test_leds(intensity, _ms_to_seconds(duration_ms))

    def distance(self) -> Dict[str, Any]:
        status = self._require_gpio().status()
        return {
            "current": status["currentDistance"],
            "detectionThreshold": status["detectionDistance"],
            "objectDetected": status["objectDetected"],
        }

    def control_display(self, action: str) -> bool:
        enabled = self.display.handle_display_control(action)
        self.broadcast("DISPLAY_CONTROL", {"enabled": enabled})
        return enabled

    # ------------------------------------------------------------------ #
    # Helper process                                                     #
    # ------------------------------------------------------------------ #

    def helper_script(self, override: Optional[str] = None) -> Optional[Path]:
        candidate = override or self.current_config.get("pythonAppPath") or self.settings.helper_script_path
        return Path(candidate) if candidate else None

    def start_helper(self, script_path: Optional[str] = None) -> bool:
        path = self.helper_script(script_path)
        if path is None:
            raise ValueError("No helper script configured")
        return self.helper.start(path)

    def stop_helper(self) -> None:
        self.helper.stop()

    def send_configuration_to_helper(self, config: Mapping[str, Any]) -> bool:
        return self.helper.send_configuration(config)

    def handle_helper_message(self, message: Mapping[str, Any]) -> None:
        kind = message.get("type")
        data = message.get("data")
        if kind == "arduino_data":
            self.last_arduino_data = dict(data or {})
            self.broadcast("ARDUINO_DATA_UPDATE", {"data": self.last_arduino_data})
        elif kind == "status_update":
            self.broadcast("PYTHON_STATUS_UPDATE", {"status": data})
        elif kind == "error":
            logger.error("Helper application error: %s", data)
        elif kind == "ready":
            logger.info("Helper application is ready")
        else:
            logger.info("Unknown helper message type: %s", kind)

    def _on_helper_ready(self) -> None:
        self.publish("PYTHON_APP_READY", {})

    def _on_helper_stopped(self, code: Optional[int]) -> None:
        self.publish("PYTHON_APP_STOPPED", {"code": code})

    def _on_helper_error(self, error: Exception) -> None:
        self.publish("PYTHON_APP_ERROR", {"error": str(error)})

    # ------------------------------------------------------------------ #
    # Status & lifecycle                                                 #
    # ------------------------------------------------------------------ #

    def hardware_status(self) -> Dict[str, Any]:
        gpio_status = self.gpio.status() if self.gpio else {}
        sensor_status = self.sensors.status() if self.sensors else {}
        return {
            "hardwareInitialized": self.hardware_initialized,
            "objectPresent": self.object_present,
            "currentDistance": self.current_distance,
            "detectionDistance": sensor_status.get("detectionDistance", self.current_config.get("detectionDistance")),
            "ledIntensity": self.current_led_intensity,
            "potentiometerValue": self.potentiometer_value,
            "presenceTimeout": sensor_status.get(
                "presenceTimeout", _ms_to_seconds(self.current_config.get("motionTimeout", 30000))
            ),
            "timestamp": _now(),
            "gpio": gpio_status,
            "sensor": sensor_status,
        }

    def system_status(self) -> Dict[str, Any]:
        return {
            "configServerRunning": self.config_server_running,
            "hardwareInitialized": self.hardware_initialized,
            "pythonAppReady": self.helper.ready,
            "pythonProcessRunning": self.helper.running,
            "moduleInstances": len(self.instances),
            "lastArduinoData": self.last_arduino_data,
            "currentConfig": dict(self.current_config),
            "display": {"loaded": self.display.loaded, "enabled": self.display.display_enabled},
            "timestamp": _now(),
        }

    def shutdown(self) -> None:
        logger.info("Stopping InfoMirror service")
        self.helper.stop()
        with self._lock:
            if self.sensors is not None:
                self.sensors.cleanup()
                self.sensors = None
            if self.gpio is not None:
                self.gpio.cleanup()
                self.gpio = None
            self.hardware_initialized = False
            self.instances.clear()
        self.config_server_running = False
