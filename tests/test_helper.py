import io
import sys
import threading
from pathlib import Path

from infomirror.runtime.helper import HelperProcess

ECHO_HELPER = """
import json
import sys

print(json.dumps({"type": "ready"}), flush=True)
for line in sys.stdin:
    print(json.dumps({"type": "echo", "data": json.loads(line)}), flush=True)
"""


def test_helper_round_trip(tmp_path: Path) -> None:
    script = tmp_path / "echo_helper.py"
    script.write_text(ECHO_HELPER, encoding="utf-8")
    helper = HelperProcess(sys.executable)
    ready = threading.Event()
    echoed = threading.Event()
    messages = []

    def on_message(message):
        messages.append(message)
        if message["type"] == "echo":
            echoed.set()

    helper.on("ready", ready.set)
    helper.on("message", on_message)

    assert helper.start(script) is True
    try:
        assert ready.wait(10)
        assert helper.running
        assert helper.start(script) is False
        assert helper.send_configuration({"ledIntensity": 10}) is True
        assert echoed.wait(10)
    finally:
        helper.stop()

    echo = [message for message in messages if message["type"] == "echo"][0]
    assert echo["data"]["type"] == "config_update"
    assert echo["data"]["data"] == {"ledIntensity": 10}
    assert "timestamp" in echo["data"]
    assert not helper.running
    assert not helper.ready


def test_helper_reports_spawn_failure(tmp_path: Path) -> None:
    helper = HelperProcess(str(tmp_path / "missing-interpreter"))
    errors = []
    helper.on("error", errors.append)
    assert helper.start(tmp_path / "script.py") is False
    assert len(errors) == 1
    assert isinstance(errors[0], OSError)


def test_send_configuration_requires_running_helper() -> None:
    helper = HelperProcess()
    assert helper.send_configuration({"debugMode": True}) is False
    assert helper.status()["running"] is False


def test_output_parsing() -> None:
    helper = HelperProcess()
    messages, ready = [], []
    helper.on("message", messages.append)
    helper.on("ready", lambda: ready.append(True))

    helper.handle_output("starting up\n")
    helper.handle_output('{"type": "status_update", "data": {"ok": true}}\n')
    assert messages == [{"type": "status_update", "data": {"ok": True}}]
    assert ready == []

    helper.handle_output("HELPER READY\n")
    helper.handle_output('{"type": "ready"}\n')
    assert helper.ready
    assert ready == [True]


MIRROR_HELPER = Path(__file__).resolve().parents[1] / "scripts" / "mirror_helper.py"


def test_mirror_helper_script() -> None:
    helper = HelperProcess(sys.executable)
    ready = threading.Event()
    replies = threading.Event()
    messages = []

    def on_message(message):
        messages.append(message)
        if len([item for item in messages if item["type"] in ("status_update", "error")]) == 2:
            replies.set()

    helper.on("ready", ready.set)
    helper.on("message", on_message)

    assert helper.start(MIRROR_HELPER, ["--no-arduino"]) is True
    try:
        assert ready.wait(20)
        assert helper.send_configuration({"showClock": True}) is True
        helper._process.stdin.write("not json\n")
        helper._process.stdin.flush()
        assert replies.wait(20)
    finally:
        helper.stop()

    status = [message for message in messages if message["type"] == "status_update"][0]
    assert status["data"] == {"config": {"showClock": True}, "arduino": False}
    errors = [message for message in messages if message["type"] == "error"]
    assert errors[0]["data"].startswith("Malformed message")


def test_helper_stderr_is_not_reported_as_error(monkeypatch) -> None:
    from infomirror.runtime import helper as helper_module

    calls = []

    class RecordingLogger:
        def info(self, *args):
            calls.append(("info", args))

        def error(self, *args):
            calls.append(("error", args))

    monkeypatch.setattr(helper_module, "logger", RecordingLogger())
    HelperProcess()._read_stderr(io.StringIO("2024-01-01 INFO starting\n\n"))
    assert calls == [("info", ("Helper stderr: %s", "2024-01-01 INFO starting"))]
