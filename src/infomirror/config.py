"""Application configuration for InfoMirror."""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from threading import RLock
from typing import Any, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3001
DEFAULT_LOG_LEVEL = "info"
DEFAULT_LOG_ERROR_ENABLED = True
DEFAULT_LOG_WARNING_ENABLED = True
DEFAULT_LOG_INFO_ENABLED = True
DEFAULT_LOG_DEBUG_ENABLED = False
DEFAULT_ALLOWED_ORIGINS = ("*",)
DEFAULT_ULTRASONIC_TRIG_PIN = 18
DEFAULT_ULTRASONIC_ECHO_PIN = 24
DEFAULT_NEOPIXEL_PIN = 12
DEFAULT_NEOPIXEL_COUNT = 30
DEFAULT_NEOPIXEL_TYPE = "grb"
DEFAULT_NEOPIXEL_BRIGHTNESS = 255
DEFAULT_ADC_CHANNEL = 0
DEFAULT_SPI_DEVICE = 0
DEFAULT_I2C_BUS_ID = 1
DEFAULT_MCP3421_I2C_ADDRESS = 0x68
DEFAULT_ARDUINO_PORTS = ("/dev/ttyACM0", "/dev/ttyACM1", "/dev/ttyUSB0", "/dev/ttyUSB1")
DEFAULT_ARDUINO_BAUD_RATE = 9600
DEFAULT_ARDUINO_READY_TIMEOUT_SECONDS = 5.0
DEFAULT_DISTANCE_CHECK_INTERVAL_SECONDS = 0.5
DEFAULT_POTENTIOMETER_POLL_INTERVAL_SECONDS = 1.0
DEFAULT_POTENTIOMETER_THRESHOLD = 5
DEFAULT_SMOOTHING_FACTOR = 0.3
DEFAULT_MIN_VALID_DISTANCE_CM = 10.0
DEFAULT_MAX_VALID_DISTANCE_CM = 300.0
DEFAULT_CONFIG_PATH = "config/hardware_config.json"
DEFAULT_HELPER_INTERPRETER = "python3"


class ADCType(str, Enum):
    """Supported potentiometer front-ends."""

    ARDUINO = "arduino"
    MCP3008 = "mcp3008"
    MCP3421 = "mcp3421"
    HX711 = "hx711"
    BUILTIN = "builtin"
    PYTHON = "python"
    NONE = "none"


def _parse_string_list(value: Any) -> list[str]:
    """Accept JSON arrays or comma/space separated strings."""

    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple, set)):
        return [str(item).strip() for item in value if str(item).strip()]
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return []
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            return [token for token in raw.replace(",", " ").split() if token]
        if isinstance(parsed, list):
            return [str(item).strip() for item in parsed if str(item).strip()]
        return [str(parsed)]
    raise ValueError(f"Unsupported list specification: {value!r}")


class AppSettings(BaseSettings):
    """Settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="INFOMIRROR_",
        env_file=".env",
        extra="ignore",
    )

    host: str = Field(default=DEFAULT_HOST, description="Interface for the configuration server.")
    port: int = Field(default=DEFAULT_PORT, description="Port for the configuration server.")
    reload: bool = Field(default=False, description="Enable auto-reload. Use only during development.")
    log_level: str = Field(default=DEFAULT_LOG_LEVEL, description="Uvicorn log level.")
    log_error_enabled: bool = Field(default=DEFAULT_LOG_ERROR_ENABLED, description="Emit error-level log records.")
    log_warning_enabled: bool = Field(
        default=DEFAULT_LOG_WARNING_ENABLED,
        description="Emit warning-level log records.",
    )
    log_info_enabled: bool = Field(default=DEFAULT_LOG_INFO_ENABLED, description="Emit information-level log records.")
    log_debug_enabled: bool = Field(default=DEFAULT_LOG_DEBUG_ENABLED, description="Emit debug-level log records.")
    allowed_origins: list[str] | str = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS),
        description="CORS origins allowed to access the API.",
    )

    ultrasonic_trig_pin: int = Field(default=DEFAULT_ULTRASONIC_TRIG_PIN, description="BCM pin driving the HC-SR04 trigger.")
    ultrasonic_echo_pin: int = Field(default=DEFAULT_ULTRASONIC_ECHO_PIN, description="BCM pin reading the HC-SR04 echo.")
    neopixel_pin: int = Field(default=DEFAULT_NEOPIXEL_PIN, description="BCM pin carrying the NeoPixel data line.")
    neopixel_count: int = Field(default=DEFAULT_NEOPIXEL_COUNT, gt=0, description="Number of pixels on the strip.")
    neopixel_type: str = Field(default=DEFAULT_NEOPIXEL_TYPE, description="Strip colour order (grb, rgb, ws2812 ...).")
    neopixel_brightness: int = Field(
        default=DEFAULT_NEOPIXEL_BRIGHTNESS,
        ge=0,
        le=255,
        description="Global brightness passed to the WS281x driver.",
    )

    adc_type: ADCType = Field(default=ADCType.MCP3008, description="Potentiometer front-end.")
    adc_channel: int = Field(default=DEFAULT_ADC_CHANNEL, ge=0, le=7, description="MCP3008 channel for the potentiometer.")
    spi_device: int = Field(default=DEFAULT_SPI_DEVICE, ge=0, description="SPI chip-select used by the MCP3008.")
    i2c_bus_id: int = Field(default=DEFAULT_I2C_BUS_ID, description="I2C bus number used by the MCP3421.")
    mcp3421_address: int = Field(default=DEFAULT_MCP3421_I2C_ADDRESS, description="I2C address of the MCP3421.")
    arduino_ports: list[str] | str = Field(
        default_factory=lambda: list(DEFAULT_ARDUINO_PORTS),
        description="Serial ports probed for the Arduino potentiometer bridge.",
    )
    arduino_baud_rate: int = Field(default=DEFAULT_ARDUINO_BAUD_RATE, gt=0, description="Arduino serial baud rate.")
    arduino_ready_timeout_seconds: float = Field(
        default=DEFAULT_ARDUINO_READY_TIMEOUT_SECONDS,
        ge=0.0,
        description="How long to wait for the Arduino ARDUINO_READY banner.",
    )

    distance_check_interval_seconds: float = Field(
        default=DEFAULT_DISTANCE_CHECK_INTERVAL_SECONDS,
        gt=0.0,
        description="Polling interval for ultrasonic measurements and presence checks.",
    )
    potentiometer_poll_interval_seconds: float = Field(
        default=DEFAULT_POTENTIOMETER_POLL_INTERVAL_SECONDS,
        gt=0.0,
        description="Polling interval for the light regulator potentiometer.",
    )
    potentiometer_threshold: float = Field(
        default=DEFAULT_POTENTIOMETER_THRESHOLD,
        ge=0.0,
        description="Minimum change (percent) that counts as a potentiometer movement.",
    )
    distance_smoothing: bool = Field(default=True, description="Apply exponential smoothing to distance readings.")
    smoothing_factor: float = Field(
        default=DEFAULT_SMOOTHING_FACTOR,
        gt=0.0,
        le=1.0,
        description="Weight of the newest distance reading in the moving average.",
    )
    min_valid_distance_cm: float = Field(default=DEFAULT_MIN_VALID_DISTANCE_CM, ge=0.0)
    max_valid_distance_cm: float = Field(default=DEFAULT_MAX_VALID_DISTANCE_CM, gt=0.0)

    hardware_enabled: bool = Field(default=True, description="Initialise sensors and LEDs when the server starts.")
    mock_hardware: bool = Field(default=False, description="Simulate every sensor and LED instead of touching GPIO.")
    config_path: Path = Field(
        default=Path(DEFAULT_CONFIG_PATH),
        description="JSON document holding the mirror configuration.",
    )
    helper_script_path: Optional[Path] = Field(default=None, description="External helper script started on demand.")
    helper_interpreter: str = Field(default=DEFAULT_HELPER_INTERPRETER, description="Interpreter used for the helper script.")
    helper_autostart: bool = Field(default=False, description="Start the helper script together with the server.")

    @field_validator("allowed_origins", "arduino_ports", mode="before")
    @classmethod
    def _parse_lists(cls, value: Any) -> list[str]:
        return _parse_string_list(value)


_SETTINGS_LOCK = RLock()
_SETTINGS: AppSettings | None = None


def get_settings() -> AppSettings:
    """Return the current application settings, loading them if necessary."""

    global _SETTINGS
    with _SETTINGS_LOCK:
        if _SETTINGS is None:
            _SETTINGS = AppSettings()
        return _SETTINGS


def reload_settings() -> AppSettings:
    """Reload settings from the environment, replacing the current cache."""

    global _SETTINGS
    with _SETTINGS_LOCK:
        _SETTINGS = AppSettings()
        return _SETTINGS
