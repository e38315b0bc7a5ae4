"""Dashboard widget controller: module visibility and the status panel."""

from __future__ import annotations

from datetime import datetime, timezone
from html import escape
from typing import Any, Callable, Dict, List, Mapping, MutableMapping, Optional

from ..logger import get_logger

logger = get_logger(__name__)

MODULE_NAME = "mmm-infomirror"

DEFAULT_CONTROLLED_MODULES: Dict[str, List[str]] = {
    "weather": ["weather", "currentweather", "weatherforecast"],
    "time": ["clock"],
    "calendar": ["calendar"],
    "compliments": ["compliments"],
    "newsfeed": ["newsfeed"],
}

DISPLAY_ACTIONS = ("enable", "disable", "toggle")

Notifier = Callable[[str, Dict[str, Any]], None]


def visibility_flag(module_type: str) -> str:
    """``weather`` -> ``showWeather``."""

    return f"show{module_type[:1].upper()}{module_type[1:]}"


LOADING_TEMPLATE = """<div class="mmm-infomirror-controller">
  <div class="infomirror-status loading">
    <i class="fa fa-cog fa-spin"></i>
    <div>Initializing InfoMirror Controller...</div>
    <small>Preparing module communication</small>
  </div>
</div>"""

DEBUG_TEMPLATE = """<div class="mmm-infomirror-controller">
  <div class="infomirror-status debug">
    <div class="status-header">InfoMirror Controller</div>
    <div class="status-items">
      <div class="status-item {system_class}">System: {system_label}</div>
      <div class="status-item {display_class}">Display: {display_label}</div>
      <div class="status-item">Config Port: {config_port}</div>
      <div class="status-item">Controlled Modules: {modules}</div>
    </div>
  </div>
</div>"""

HIDDEN_TEMPLATE = '<div class="mmm-infomirror-controller" style="display: none"></div>'


class DisplayController:
    """Decide which dashboard modules are visible and render the controller widget.

    Visibility changes are published through ``notifier`` as
    ``MODULE_VISIBILITY_REQUEST`` notifications, one per dashboard module.
    """

    def __init__(
        self,
        config: Mapping[str, Any],
        notifier: Notifier,
        controlled_modules: Optional[Mapping[str, List[str]]] = None,
        config_port: Optional[int] = None,
    ) -> None:
        self._config: MutableMapping[str, Any] = dict(config)
        self._notify = notifier
        self.controlled_modules: Dict[str, List[str]] = {
            key: list(value) for key, value in (controlled_modules or DEFAULT_CONTROLLED_MODULES).items()
        }
        self.config_port = config_port
        self.loaded = False
        self.display_enabled = bool(self._config.get("displayEnabled", True))
        self.module_states: Dict[str, bool] = {}

    @property
    def debug_mode(self) -> bool:
        return bool(self._config.get("debugMode", False))

    def flag(self, module_type: str) -> bool:
        return bool(self._config.get(visibility_flag(module_type), False))

    def mark_ready(self) -> None:
        self.loaded = True
        self.apply_visibility()

    def control_module_type(self, module_type: str, show: bool) -> List[str]:
        """Request every module of ``module_type`` to be shown or hidden."""

        names = self.controlled_modules.get(module_type)
        if not names:
            logger.warning("Unknown module type: %s", module_type)
            return []
        for name in names:
            self._notify(
                "MODULE_VISIBILITY_REQUEST",
                {"module": name, "hidden": not show, "sender": MODULE_NAME},
            )
        if self.debug_mode:
            logger.debug("%s modules %s: %s", module_type, "shown" if show else "hidden", ", ".join(names))
        return names

    def apply_visibility(self) -> None:
        for module_type in self.controlled_modules:
            self.control_module_type(module_type, self.display_enabled and self.flag(module_type))

    def handle_configuration_change(self, changes: Mapping[str, Any]) -> List[str]:
        """Merge ``changes`` and re-issue visibility only for flags that flipped."""

        old = dict(self._config)
        self._config.update(changes)
        summary: List[str] = []
        for module_type in self.controlled_modules:
            key = visibility_flag(module_type)
            if old.get(key) == self._config.get(key):
                continue
            show = self.flag(module_type)
            if self.display_enabled:
                self.control_module_type(module_type, show)
            summary.append(f"{module_type.capitalize()}: {'shown' if show else 'hidden'}")
        if summary:
            logger.info("Module visibility changes: %s", ", ".join(summary))
        return summary

    def control_all(self, enable: bool) -> None:
        for module_type in self.controlled_modules:
            self.control_module_type(module_type, enable and self.flag(module_type))
        logger.info("All controlled modules %s", "enabled" if enable else "disabled")

    def set_display_enabled(self, enabled: bool) -> None:
        if enabled == self.display_enabled:
            return
        self.display_enabled = enabled
        self.control_all(enabled)

    def handle_display_control(self, action: str) -> bool:
        if action == "enable":
            self.display_enabled = True
        elif action == "disable":
            self.display_enabled = False
        elif action == "toggle":
            self.display_enabled = not self.display_enabled
        else:
            raise ValueError(f"Unknown display action: {action!r}")
        self.control_all(self.display_enabled)
        logger.info("Display control - %s, enabled: %s", action, self.display_enabled)
        return self.display_enabled

    def record_visibility(self, module: str, hidden: bool) -> None:
        if self.debug_mode:
            logger.debug("Module visibility changed: %s hidden=%s", module, hidden)
        self.module_states[module] = hidden

    def module_status(self) -> Dict[str, Any]:
        return {
            "loaded": self.loaded,
            "systemReady": self.loaded,
            "displayEnabled": self.display_enabled,
            "moduleVisibility": {module_type: self.flag(module_type) for module_type in self.controlled_modules},
            "controlledModules": self.controlled_modules,
            "moduleStates": dict(self.module_states),
            "configPort": self.config_port,
            "debugMode": self.debug_mode,
            "lastUpdate": datetime.now(timezone.utc).isoformat(),
        }

    def render(self) -> str:
        """Return the widget markup for the current state."""

        if not self.loaded:
            return LOADING_TEMPLATE
        if not self.debug_mode:
            return HIDDEN_TEMPLATE
        modules = ", ".join(
            f"{module_type.capitalize()}({str(self.flag(module_type)).lower()})"
            for module_type in self.controlled_modules
        )
        return DEBUG_TEMPLATE.format(
            system_class="ready",
            system_label="Ready",
            display_class="enabled" if self.display_enabled else "disabled",
            display_label="Active" if self.display_enabled else "Disabled",
            config_port=escape(str(self.config_port if self.config_port is not None else "-")),
            modules=escape(modules),
        )
