"""Line-delimited JSON messaging with the external helper script."""

from __future__ import annotations

import json
import signal
import subprocess
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any, Dict, Mapping, Optional, Sequence

from ..events import EventEmitter
from ..logger import get_logger

logger = get_logger(__name__)

READY_MARKER = "READY"


class HelperProcess(EventEmitter):
    """Supervise the helper script and exchange JSON messages over stdio.

    Events:
        ``ready`` (), ``message`` (dict), ``stopped`` (exit code),
        ``error`` (exception).
    """

    def __init__(self, interpreter: str = "python3") -> None:
        super().__init__()
        self.interpreter = interpreter
        self.script_path: Optional[Path] = None
        self.ready = False
        self._process: Optional[subprocess.Popen] = None
        self._lock = threading.RLock()
        self._threads: list[threading.Thread] = []

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process is not None else None

    def start(self, script_path: Path | str, args: Sequence[str] = ()) -> bool:
        """Launch the helper; returns False if one is already running."""

        with self._lock:
            if self.running:
                logger.info("Helper application already running")
                return False
            self.script_path = Path(script_path)
            self.ready = False
            logger.info("Starting helper application: %s", self.script_path)
            try:
                process = subprocess.Popen(
                    [self.interpreter, str(self.script_path), *args],
                    stdin=subprocess.PIPE,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    text=True,
                    bufsize=1,
                )
            except OSError as exc:
                logger.error("Failed to start helper process: %s", exc)
                self.emit("error", exc)
                return False
            self._process = process
            self._threads = [
                threading.Thread(target=self._read_stdout, args=(process,), name="infomirror-helper-out", daemon=True),
                threading.Thread(target=self._read_stderr, args=(process.stderr,), name="infomirror-helper-err", daemon=True),
            ]
            for thread in self._threads:
                thread.start()
        return True

    def _read_stdout(self, process: subprocess.Popen) -> None:
        for line in process.stdout:
            self.handle_output(line)
        code = process.wait()
        logger.info("Helper process exited with code %s", code)
        with self._lock:
            if self._process is process:
                self._process = None
                self.ready = False
        self.emit("stopped", code)

    def _read_stderr(self, stream: IO[str]) -> None:
        for line in stream:
            line = line.rstrip()
            if line:
                logger.info("Helper stderr: %s", line)

    def handle_output(self, line: str) -> None:
        output = line.strip()
        if not output:
            return
        logger.info("Helper: %s", output)
        try:
            message = json.loads(output)
        except json.JSONDecodeError:
            message = None
        if isinstance(message, dict):
            if message.get("type") == "ready":
                self._mark_ready()
            self.emit("message", message)
        elif READY_MARKER in output:
            self._mark_ready()

    def _mark_ready(self) -> None:
        if not self.ready:
            self.ready = True
            self.emit("ready")

    def send(self, message: Mapping[str, Any]) -> bool:
        with self._lock:
            process = self._process
            if process is None or process.poll() is not None or process.stdin is None:
                return False
            try:
                process.stdin.write(json.dumps(message) + "\n")
                process.stdin.flush()
            except (OSError, ValueError) as exc:
                logger.error("Failed to write to helper: %s", exc)
                return False
        return True

    def send_configuration(self, config: Mapping[str, Any]) -> bool:
        """Forward a configuration change; False when the helper is not ready."""

        if not self.running or not self.ready:
            logger.info("Helper application not ready, cannot send configuration")
            return False
        message: Dict[str, Any] = {
            "type": "config_update",
            "data": dict(config),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        sent = self.send(message)
        if sent:
            logger.info("Configuration sent to helper application")
        return sent

    def stop(self, timeout: float = 5.0) -> None:
        with self._lock:
            process = self._process
            self._process = None
            self.ready = False
        if process is None:
            return
        logger.info("Stopping helper application")
        if process.poll() is None:
            process.send_signal(signal.SIGTERM)
            try:
                process.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                logger.warning("Helper did not exit after SIGTERM; killing it")
                process.kill()
                process.wait(timeout=timeout)
        if process.stdin is not None:
            try:
                process.stdin.close()
            except OSError:
                pass
        for thread in self._threads:
            if thread is not threading.current_thread():
                thread.join(timeout=1)
        self._threads = []

    def status(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "ready": self.ready,
            "pid": self.pid if self.running else None,
            "scriptPath": str(self.script_path) if self.script_path else None,
        }
