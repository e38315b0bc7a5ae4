import pytest

from infomirror.runtime.display import (
    HIDDEN_TEMPLATE,
    LOADING_TEMPLATE,
    DisplayController,
    visibility_flag,
)
from infomirror.store import default_configuration


@pytest.fixture()
def sent() -> list:
    return []


@pytest.fixture()
def display(sent: list) -> DisplayController:
    return DisplayController(default_configuration(), lambda name, payload: sent.append((name, payload)), config_port=3001)


def hidden_by_module(sent: list) -> dict:
    return {payload["module"]: payload["hidden"] for name, payload in sent if name == "MODULE_VISIBILITY_REQUEST"}


def test_visibility_flag() -> None:
    assert visibility_flag("weather") == "showWeather"
    assert visibility_flag("newsfeed") == "showNewsfeed"


def test_mark_ready_applies_configured_visibility(display: DisplayController, sent: list) -> None:
    display.mark_ready()
    states = hidden_by_module(sent)
    assert states["weather"] is False
    assert states["currentweather"] is False
    assert states["clock"] is False
    assert states["calendar"] is False
    assert states["compliments"] is True
    assert states["newsfeed"] is True
    assert all(payload["sender"] == "mmm-infomirror" for _, payload in sent)


def test_configuration_change_only_touches_flipped_flags(display: DisplayController, sent: list) -> None:
    summary = display.handle_configuration_change({"showWeather": False, "showTime": True, "ledIntensity": 10})
    assert summary == ["Weather: hidden"]
    assert hidden_by_module(sent) == {"weather": True, "currentweather": True, "weatherforecast": True}


def test_unknown_module_type(display: DisplayController, sent: list) -> None:
    assert display.control_module_type("radio", True) == []
    assert sent == []


def test_display_control(display: DisplayController, sent: list) -> None:
    assert display.handle_display_control("toggle") is False
    assert all(hidden for hidden in hidden_by_module(sent).values())
    sent.clear()

    assert display.handle_display_control("enable") is True
    assert hidden_by_module(sent)["clock"] is False
    assert hidden_by_module(sent)["newsfeed"] is True

    with pytest.raises(ValueError):
        display.handle_display_control("flip")


def test_set_display_enabled_is_idempotent(display: DisplayController, sent: list) -> None:
    display.set_display_enabled(True)
    assert sent == []
    display.set_display_enabled(False)
    assert len(sent) == 7


def test_render_states(display: DisplayController) -> None:
    assert display.render() == LOADING_TEMPLATE
    display.mark_ready()
    assert display.render() == HIDDEN_TEMPLATE

    display.handle_configuration_change({"debugMode": True})
    html = display.render()
    assert "Display: Active" in html
    assert "Config Port: 3001" in html
    assert "Weather(true)" in html
    assert "Compliments(false)" in html


def test_module_status(display: DisplayController) -> None:
    display.record_visibility("clock", True)
    status = display.module_status()
    assert status["displayEnabled"] is True
    assert status["moduleVisibility"]["weather"] is True
    assert status["moduleStates"] == {"clock": True}
