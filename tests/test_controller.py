import random

import pytest

pytest.importorskip("pydantic")

import infomirror.hardware.controller as controller_module
from infomirror.config import AppSettings
from infomirror.hardware.controller import GPIOController
from infomirror.hardware.ultrasonic import UltrasonicUnavailable


class FakeUltrasonic:
    def __init__(self, readings=()):
        self.readings = list(readings)
        self.closed = False

    def setup(self):
        pass

    def measure(self):
        reading = self.readings.pop(0)
        if isinstance(reading, Exception):
            raise reading
        return reading

    def close(self):
        self.closed = True


class FakeStrip:
    def __init__(self):
        self.fills = []
        self.clears = 0
        self.closed = False

    def begin(self):
        pass

    def fill(self, red, green, blue):
        self.fills.append((red, green, blue))

    def clear(self):
        self.clears += 1

    def close(self):
        self.closed = True

    @property
    def pixels(self):
        return list(self.fills[-1:])


def make_controller(readings=(), **settings_overrides) -> tuple[GPIOController, FakeUltrasonic, FakeStrip]:
    settings = AppSettings(adc_type="none", **settings_overrides)
    ultrasonic = FakeUltrasonic(readings)
    strip = FakeStrip()
    controller = GPIOController(settings, ultrasonic=ultrasonic, strip=strip, rng=random.Random(7))
    controller.initialize()
    return controller, ultrasonic, strip


def test_forced_mock_mode() -> None:
    controller = GPIOController(AppSettings(mock_hardware=True), rng=random.Random(1))
    controller.initialize()
    assert controller.full_mock_mode
    assert controller.adc_type == "mock"
    assert controller.adc_ready
    reading = controller.measure_distance()
    assert 20 <= reading <= 350
    assert 0 <= controller.read_potentiometer() < 100


def test_led_intensity_scales_white() -> None:
    controller, _, strip = make_controller()
    controller.set_led_intensity(50)
    assert strip.fills[-1] == (128, 128, 128)
    assert controller.current_led_intensity == 50

    controller.set_led_intensity(150)
    assert strip.fills[-1] == (255, 255, 255)
    assert controller.current_led_intensity == 100

    controller.turn_off_leds()
    assert strip.clears == 1
    assert controller.current_led_intensity == 0


def test_led_intensity_ignored_before_initialise() -> None:
    strip = FakeStrip()
    controller = GPIOController(AppSettings(), ultrasonic=FakeUltrasonic(), strip=strip)
    controller.set_led_intensity(80)
    assert strip.fills == []
    assert controller.current_led_intensity == 0


def test_led_test_cycles_colours() -> None:
    controller, _, strip = make_controller()
    sleeps = []
    controller.test_leds(intensity=100, duration=5.0, sleep=sleeps.append)
    assert strip.fills == [(255, 0, 0), (0, 255, 0), (0, 0, 255), (255, 255, 255)]
    assert sleeps == [1.0, 1.0, 1.0, 1.0]
    assert strip.clears == 1


def test_measure_distance_emits_events() -> None:
    controller, _, _ = make_controller([42.0, None, UltrasonicUnavailable("echo pin stuck")])
    distances, errors = [], []
    controller.on("distance_changed", distances.append)
    controller.on("error", errors.append)

    assert controller.measure_distance() == 42.0
    assert controller.measure_distance() is None
    assert controller.measure_distance() is None

    assert distances == [42.0]
    assert len(errors) == 1
    assert controller.current_distance == 42.0
    assert controller.is_object_detected()


def test_detection_distance_is_clamped() -> None:
    controller, _, _ = make_controller()
    assert controller.set_detection_distance(2) == 10
    assert controller.set_detection_distance(1000) == 400
    assert controller.set_detection_distance(75) == 75


def test_potentiometer_defaults_without_adc() -> None:
    controller, _, _ = make_controller()
    assert not controller.adc_ready
    assert controller.read_potentiometer() == 50


def test_potentiometer_reads_mcp3008(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(controller_module, "read_mcp3008", lambda channel, device: 0.336)
    settings = AppSettings(adc_type="mcp3008")
    controller = GPIOController(settings, ultrasonic=FakeUltrasonic(), strip=FakeStrip())
    controller.initialize()
    assert controller.adc_ready
    assert controller.read_potentiometer() == 34


def test_status_and_cleanup() -> None:
    controller, ultrasonic, strip = make_controller([120.0])
    controller.measure_distance()
    status = controller.status()
    assert status["initialized"] is True
    assert status["mockMode"] is False
    assert status["currentDistance"] == 120.0
    assert status["objectDetected"] is False
    assert status["adcType"] == "none"

    controller.cleanup()
    assert ultrasonic.closed
    assert strip.closed
    assert not controller.initialized
