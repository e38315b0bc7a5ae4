#!/usr/bin/env python3
"""Reference helper application driven by the InfoMirror service over stdio.

Protocol: one JSON object per line. The helper announces ``{"type": "ready"}``,
relays Arduino potentiometer readings as ``arduino_data`` messages, reports
``status_update`` after every ``config_update`` it receives and answers
malformed input with ``error``. Logging goes to stderr so stdout stays clean.
"""

from __future__ import annotations

import argparse
import json
import sys
import threading
from datetime import datetime, timezone
from typing import Any, Dict

from _paths import add_project_src_to_path

add_project_src_to_path()

from infomirror.config import get_settings
from infomirror.hardware.adc import ADCUnavailable, ArduinoBridge
from infomirror.logger import configure_logging, get_logger

logger = get_logger("helper")
_write_lock = threading.Lock()


def emit(kind: str, data: Any = None) -> None:
    message: Dict[str, Any] = {"type": kind, "timestamp": datetime.now(timezone.utc).isoformat()}
    if data is not None:
        message["data"] = data
    with _write_lock:
        sys.stdout.write(json.dumps(message) + "\n")
        sys.stdout.flush()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="InfoMirror helper application.")
    parser.add_argument(
        "--no-arduino",
        action="store_true",
        help="Skip probing serial ports for the potentiometer Arduino.",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    settings = get_settings()
    configure_logging(settings)
    config: Dict[str, Any] = {}

    bridge = None
    if not args.no_arduino:
        bridge = ArduinoBridge(
            settings.arduino_ports,
            settings.arduino_baud_rate,
            on_value=lambda value: emit("arduino_data", {"potentiometer": value}),
        )
        try:
            bridge.open(ready_timeout=settings.arduino_ready_timeout_seconds)
        except ADCUnavailable as exc:
            logger.warning("Arduino unavailable: %s", exc)
            bridge = None

    emit("ready")
    try:
        for line in sys.stdin:
            line = line.strip()
            if not line:
                continue
            try:
                message = json.loads(line)
            except json.JSONDecodeError:
                emit("error", f"Malformed message: {line[:80]}")
                continue
            if not isinstance(message, dict):
                emit("error", "Expected a JSON object")
                continue
            if message.get("type") == "config_update":
                config.update(message.get("data") or {})
                emit("status_update", {"config": config, "arduino": bridge is not None})
            else:
                logger.info("Ignoring message type %s", message.get("type"))
    except KeyboardInterrupt:  # pragma: no cover - manual use
        pass
    finally:
        if bridge is not None:
            bridge.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
