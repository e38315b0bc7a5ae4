"""API routes for the InfoMirror configuration server."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field

from ..logger import get_logger
from ..runtime import HardwareNotReady, InfoMirrorService
from ..store import ConfigurationError

router = APIRouter()
logger = get_logger(__name__)


class LedTestRequest(BaseModel):
    intensity: float = Field(50, ge=0, le=100)
    duration: float = Field(3000, ge=0, le=60000, description="Total test time in milliseconds.")


class StartHelperRequest(BaseModel):
    scriptPath: Optional[str] = None


class NotificationRequest(BaseModel):
    name: str = Field(..., min_length=1)
    payload: Dict[str, Any] = Field(default_factory=dict)


INDEX_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <title>InfoMirror Configuration</title>
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <style>
    :root {
      color-scheme: light dark;
      font-family: system-ui, -apple-system, "Segoe UI", sans-serif;
    }
    body {
      margin: 0 auto;
      padding: 1.5rem;
      max-width: 900px;
      line-height: 1.5;
    }
    code {
      font-size: 0.95em;
    }
    li {
      margin-bottom: 0.25rem;
    }
  </style>
</head>
<body>
  <h1>InfoMirror Configuration Server</h1>
  <p>Server is running. Available endpoints:</p>
  <ul>
    <li><code>GET /api/config</code> - current configuration and status</li>
    <li><code>POST /api/config</code> - update configuration</li>
    <li><code>GET /api/status</code> - system status</li>
    <li><code>GET /api/distance</code> - latest ultrasonic reading</li>
    <li><code>POST /api/test-led</code> - run the LED colour test</li>
    <li><code>POST /api/force-presence</code> - simulate a presence detection</li>
    <li><code>GET /api/arduino</code> - last data reported by the helper</li>
    <li><code>POST /api/send-to-python</code> - forward configuration to the helper</li>
    <li><code>POST /api/start-python</code> - start the helper application</li>
    <li><code>POST /api/stop-python</code> - stop the helper application</li>
    <li><code>GET /api/display</code> - module visibility status</li>
    <li><code>POST /api/display/{action}</code> - enable, disable or toggle the display</li>
    <li><code>GET /api/display/widget</code> - rendered dashboard widget</li>
    <li><code>GET /api/notifications</code> - recent dashboard notifications</li>
    <li><code>POST /api/notifications</code> - deliver a notification from the dashboard</li>
  </ul>
</body>
</html>
"""


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_service(request: Request) -> InfoMirrorService:
    """Retrieve the shared mirror service from the application state."""

    service = getattr(request.app.state, "service", None)
    if service is None:
        logger.error("Mirror service not initialised on application state")
        raise RuntimeError("Mirror service not initialised.")
    return service


@router.get("/", response_class=HTMLResponse)
async def index() -> HTMLResponse:
    """Serve the endpoint overview page."""

    logger.debug("Serving index HTML")
    return HTMLResponse(content=INDEX_HTML)


@router.get("/api/config")
async def read_configuration(service: InfoMirrorService = Depends(get_service)) -> Dict[str, Any]:
    """Return the stored configuration with hardware and system status."""

    return {
        "success": True,
        "config": dict(service.current_config),
        "hardwareStatus": service.hardware_status(),
        "systemStatus": service.system_status(),
        "timestamp": _timestamp(),
    }


@router.post("/api/config")
async def write_configuration(
    payload: Any = Body(...),
    service: InfoMirrorService = Depends(get_service),
) -> Dict[str, Any]:
    """Validate, persist and apply a configuration update."""

    try:
        await asyncio.to_thread(service.update_configuration, payload)
    except ConfigurationError as exc:
        logger.warning("Rejected configuration update: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except OSError as exc:
        logger.error("Configuration update failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return {
        "success": True,
        "message": "Configuration updated successfully",
        "timestamp": _timestamp(),
    }


@router.get("/api/status")
async def system_status(service: InfoMirrorService = Depends(get_service)) -> Dict[str, Any]:
    """Return the overall system status."""

    return {"success": True, "status": service.system_status(), "timestamp": _timestamp()}


@router.get("/api/distance")
async def distance(service: InfoMirrorService = Depends(get_service)) -> Dict[str, Any]:
    """Return the latest distance reading and the detection threshold."""

    try:
        reading = service.distance()
    except HardwareNotReady as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return {"success": True, "distance": reading}


@router.post("/api/test-led")
async def test_leds(
    payload: Optional[LedTestRequest] = None,
    service: InfoMirrorService = Depends(get_service),
) -> Dict[str, Any]:
    """Cycle the LED strip through the test colours."""

    payload = payload or LedTestRequest()
    logger.debug("Executing LED test (payload=%s)", payload.model_dump())
    try:
        await asyncio.to_thread(service.test_leds, payload.intensity, payload.duration)
    except HardwareNotReady as exc:
        logger.warning("LED test unavailable: %s", exc)
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    logger.info("LED test completed")
    return {"success": True, "message": "NeoPixel test completed"}


@router.post("/api/force-presence")
async def force_presence(service: InfoMirrorService = Depends(get_service)) -> Dict[str, Any]:
    """Simulate a presence detection."""

    try:
        service.force_presence()
    except HardwareNotReady as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return {"success": True, "message": "Presence detection forced"}


@router.get("/api/arduino")
async def arduino_data(service: InfoMirrorService = Depends(get_service)) -> Dict[str, Any]:
    """Return the last Arduino data relayed by the helper application."""

    return {"success": True, "data": dict(service.last_arduino_data), "timestamp": _timestamp()}


@router.post("/api/send-to-python")
async def send_to_helper(
    payload: Optional[Dict[str, Any]] = Body(None),
    service: InfoMirrorService = Depends(get_service),
) -> Dict[str, Any]:
    """Forward a configuration fragment to the helper application."""

    sent = service.send_configuration_to_helper(payload or {})
    return {"success": sent, "message": "Sent to Python app" if sent else "Python app not ready"}


@router.post("/api/start-python")
async def start_helper(
    payload: Optional[StartHelperRequest] = None,
    service: InfoMirrorService = Depends(get_service),
) -> Dict[str, Any]:
    """Start the helper application."""

    try:
        started = service.start_helper(payload.scriptPath if payload else None)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    message = "Python application start initiated" if started else "Python application already running or failed to start"
    return {"success": True, "started": started, "message": message}


@router.post("/api/stop-python")
async def stop_helper(service: InfoMirrorService = Depends(get_service)) -> Dict[str, Any]:
    """Stop the helper application."""

    await asyncio.to_thread(service.stop_helper)
    return {"success": True, "message": "Python application stopped"}


@router.get("/api/display")
async def display_status(service: InfoMirrorService = Depends(get_service)) -> Dict[str, Any]:
    """Return module visibility and display state."""

    return {"success": True, "status": service.display.module_status()}


@router.get("/api/display/widget", response_class=HTMLResponse)
async def display_widget(service: InfoMirrorService = Depends(get_service)) -> HTMLResponse:
    """Render the dashboard widget for the current state."""

    return HTMLResponse(content=service.display.render())


@router.post("/api/display/{action}")
async def display_control(action: str, service: InfoMirrorService = Depends(get_service)) -> Dict[str, Any]:
    """Enable, disable or toggle every controlled module."""

    try:
        enabled = service.control_display(action)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"success": True, "enabled": enabled}


@router.get("/api/notifications")
async def list_notifications(
    since: Optional[int] = Query(None, ge=0, description="Only return notifications after this sequence number."),
    name: Optional[str] = Query(None),
    service: InfoMirrorService = Depends(get_service),
) -> Dict[str, List[Dict[str, Any]]]:
    """Return recent notifications published for the dashboard."""

    return {"notifications": service.bus.recent(since=since, name=name)}


@router.post("/api/notifications")
async def deliver_notification(
    payload: NotificationRequest,
    service: InfoMirrorService = Depends(get_service),
) -> Dict[str, Any]:
    """Deliver a notification sent by the dashboard to the service."""

    handled = await asyncio.to_thread(service.handle_notification, payload.name, payload.payload)
    return {"success": True, "handled": handled}
