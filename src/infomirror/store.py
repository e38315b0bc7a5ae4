"""JSON-backed mirror configuration shared by the dashboard and the API."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from threading import RLock
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, ValidationError

from .logger import get_logger

logger = get_logger(__name__)

DEFAULT_LED_INTENSITY = 50
DEFAULT_MOTION_TIMEOUT_MS = 30000
DEFAULT_DETECTION_DISTANCE_CM = 100
DEFAULT_ARDUINO_PORT = "/dev/ttyACM0"
DEFAULT_HELPER_SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "mirror_helper.py"

VISIBILITY_FIELDS = ("showWeather", "showTime", "showCalendar", "showCompliments", "showNewsfeed")


class ConfigurationError(ValueError):
    """Raised when a configuration update does not pass validation."""


class ConfigurationPatch(BaseModel):
    """Shape accepted by ``POST /api/config``; unknown keys pass through."""

    model_config = ConfigDict(extra="allow", allow_inf_nan=False)

    showWeather: Optional[StrictBool] = None
    showTime: Optional[StrictBool] = None
    showCalendar: Optional[StrictBool] = None
    showCompliments: Optional[StrictBool] = None
    showNewsfeed: Optional[StrictBool] = None
    debugMode: Optional[StrictBool] = None
    ledIntensity: Optional[StrictFloat] = Field(default=None, ge=0, le=100)
    motionTimeout: Optional[StrictFloat] = None
    detectionDistance: Optional[StrictFloat] = Field(default=None, ge=10, le=400)


def default_configuration(helper_script: Optional[Path] = None) -> Dict[str, Any]:
    """Return the configuration used when nothing has been saved yet."""

    return {
        "showWeather": True,
        "showTime": True,
        "showCalendar": True,
        "showCompliments": False,
        "showNewsfeed": False,
        "ledIntensity": DEFAULT_LED_INTENSITY,
        "motionTimeout": DEFAULT_MOTION_TIMEOUT_MS,
        "detectionDistance": DEFAULT_DETECTION_DISTANCE_CM,
        "debugMode": False,
        "pythonAppPath": str(helper_script or DEFAULT_HELPER_SCRIPT),
        "arduinoPort": DEFAULT_ARDUINO_PORT,
    }


def validate_configuration(patch: Any) -> Dict[str, Any]:
    """Return ``patch`` unchanged if it is an acceptable update, else raise."""

    if not isinstance(patch, Mapping):
        raise ConfigurationError("Invalid configuration format")
    try:
        ConfigurationPatch.model_validate(dict(patch))
    except ValidationError as exc:
        logger.warning("Rejected configuration update: %s", exc.errors(include_url=False))
        raise ConfigurationError("Invalid configuration format") from exc
    return dict(patch)


class ConfigurationStore:
    """Load, merge and persist the mirror configuration document."""

    def __init__(self, path: Path, helper_script: Optional[Path] = None) -> None:
        self._path = Path(path)
        self._helper_script = helper_script
        self._lock = RLock()
        self._ensure_directory()

    @property
    def path(self) -> Path:
        return self._path

    def _ensure_directory(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def defaults(self) -> Dict[str, Any]:
        return default_configuration(self._helper_script)

    def load(self) -> Dict[str, Any]:
        """Return the saved configuration, falling back to defaults."""

        with self._lock:
            if self._path.exists():
                try:
                    data = json.loads(self._path.read_text(encoding="utf-8"))
                except (OSError, json.JSONDecodeError) as exc:
                    logger.error("Error loading configuration from %s: %s", self._path, exc)
                else:
                    if isinstance(data, dict):
                        logger.debug("Loaded configuration from %s", self._path)
                        return data
                    logger.error("Configuration file %s does not hold an object; using defaults", self._path)
            return self.defaults()

    def save(self, config: Mapping[str, Any]) -> Dict[str, Any]:
        """Persist ``config`` stamped with ``lastUpdated`` and return what was written."""

        to_save = dict(config)
        to_save["lastUpdated"] = datetime.now(timezone.utc).isoformat()
        with self._lock:
            self._ensure_directory()
            try:
                self._path.write_text(json.dumps(to_save, indent=2), encoding="utf-8")
            except OSError as exc:
                logger.error("Error saving configuration to %s: %s", self._path, exc)
                raise
        logger.info("Configuration saved successfully")
        return to_save

    @staticmethod
    def merge(current: Mapping[str, Any], patch: Mapping[str, Any]) -> Dict[str, Any]:
        merged = dict(current)
        merged.update(patch)
        return merged
