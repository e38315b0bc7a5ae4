"""Runtime services for the InfoMirror controller."""

from .display import DisplayController
from .helper import HelperProcess
from .notifications import NotificationBus
from .sensors import SensorConfig, SensorManager
from .service import HardwareNotReady, InfoMirrorService

__all__ = [
    "DisplayController",
    "HardwareNotReady",
    "HelperProcess",
    "InfoMirrorService",
    "NotificationBus",
    "SensorConfig",
    "SensorManager",
]
