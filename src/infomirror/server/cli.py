"""Command-line utilities for InfoMirror."""

from __future__ import annotations

import os
import time
from typing import Optional

from click.core import UNSET
import typer
import uvicorn

from ..config import get_settings, reload_settings
from ..hardware import GPIOController
from ..logger import configure_logging, get_logger

app = typer.Typer(add_completion=False, help="InfoMirror sensor, LED and configuration tooling.")

_BOOL_TRUE_VALUES = {"1", "true", "yes", "on"}
_BOOL_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_optional_bool(value: Optional[str]) -> Optional[bool]:
    """Convert a CLI-provided string into an optional boolean."""

    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized in _BOOL_TRUE_VALUES:
        return True
    if normalized in _BOOL_FALSE_VALUES:
        return False
    raise typer.BadParameter("Expected a boolean value (true/false).")


def _controller(mock: bool) -> GPIOController:
    if mock:
        os.environ["INFOMIRROR_MOCK_HARDWARE"] = "true"
        reload_settings()
    settings = get_settings()
    configure_logging(settings)
    controller = GPIOController(settings)
    controller.initialize()
    return controller


@app.callback()
def _root_callback() -> None:
    """InfoMirror CLI command group."""


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, flag_value=UNSET, help="Interface to bind the server to."),
    port: Optional[int] = typer.Option(None, flag_value=UNSET, help="Port to bind the server to."),
    reload: Optional[str] = typer.Option(
        None,
        flag_value=UNSET,
        help="Enable auto-reload (development only). Provide true/false to override configured value.",
    ),
    log_level: Optional[str] = typer.Option(None, flag_value=UNSET, help="Logging level passed to Uvicorn."),
    mock: Optional[str] = typer.Option(
        None,
        flag_value=UNSET,
        help="Simulate sensors and LEDs. Provide true/false to override configured value.",
    ),
) -> None:
    """Start the configuration API server."""

    reload_override = _parse_optional_bool(reload)
    mock_override = _parse_optional_bool(mock)
    if mock_override is not None:
        os.environ["INFOMIRROR_MOCK_HARDWARE"] = "true" if mock_override else "false"
        reload_settings()
    settings = get_settings()
    configure_logging(settings)
    logger = get_logger(__name__)
    bound_host = host or settings.host
    bound_port = port or settings.port
    logger.info(
        "Starting InfoMirror configuration server (host=%s port=%s reload=%s mock=%s)",
        bound_host,
        bound_port,
        reload_override if reload_override is not None else settings.reload,
        settings.mock_hardware,
    )
    logger.debug(
        "Logging toggles - error=%s warning=%s info=%s debug=%s",
        settings.log_error_enabled,
        settings.log_warning_enabled,
        settings.log_info_enabled,
        settings.log_debug_enabled,
    )
    uvicorn.run(
        "infomirror.server.app:create_application",
        factory=True,
        host=bound_host,
        port=bound_port,
        reload=reload_override if reload_override is not None else settings.reload,
        log_level=log_level or settings.log_level,
    )


@app.command("test-leds")
def test_leds(
    intensity: float = typer.Option(50.0, min=0.0, max=100.0, help="Brightness percentage for the test colours."),
    duration: float = typer.Option(3.0, min=0.0, help="Total test duration in seconds."),
    mock: bool = typer.Option(False, "--mock", help="Run against simulated hardware."),
) -> None:
    """Cycle the LED strip through red, green, blue and white."""

    controller = _controller(mock)
    try:
        controller.test_leds(intensity, duration)
        typer.echo(f"LED test finished (mock={controller.neopixel_mock_mode}).")
    finally:
        controller.cleanup()


@app.command()
def distance(
    samples: int = typer.Option(5, min=1, help="Number of readings to take."),
    interval: float = typer.Option(0.5, min=0.0, help="Seconds between readings."),
    mock: bool = typer.Option(False, "--mock", help="Run against simulated hardware."),
) -> None:
    """Print ultrasonic distance readings."""

    controller = _controller(mock)
    try:
        for index in range(samples):
            reading = controller.measure_distance()
            if reading is None:
                typer.echo(f"[{index + 1}/{samples}] no echo")
            else:
                detected = "yes" if controller.is_object_detected() else "no"
                typer.echo(f"[{index + 1}/{samples}] {reading:.1f} cm (object detected: {detected})")
            if index + 1 < samples:
                time.sleep(interval)
    finally:
        controller.cleanup()


def main() -> None:
    """Entrypoint for the ``infomirror`` console script."""

    logger = get_logger(__name__)
    logger.debug("Invoked InfoMirror CLI entrypoint")
    app()
