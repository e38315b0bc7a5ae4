import pytest

pytest.importorskip("pydantic")

from infomirror.events import EventEmitter
from infomirror.runtime.sensors import SensorConfig, SensorManager


class FakeTimer:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.callback()


class TimerRecorder:
    def __init__(self):
        self.timers = []

    def __call__(self, delay, callback):
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer


class FakeGPIO(EventEmitter):
    def __init__(self, potentiometer=()):
        super().__init__()
        self.potentiometer = list(potentiometer)
        self.detection_distance = None

    def set_detection_distance(self, distance):
        self.detection_distance = distance
        return distance

    def read_potentiometer(self):
        return self.potentiometer.pop(0)

    def start_distance_monitoring(self, interval):
        pass

    def stop_distance_monitoring(self):
        pass


@pytest.fixture()
def timers() -> TimerRecorder:
    return TimerRecorder()


@pytest.fixture()
def manager(timers: TimerRecorder) -> SensorManager:
    sensors = SensorManager(SensorConfig(presence_timeout=30.0), timer_factory=timers)
    sensors.initialize(FakeGPIO(), start_monitoring=False)
    return sensors


def record(emitter, event):
    captured = []
    emitter.on(event, lambda *args: captured.append(args[0] if args else None))
    return captured


def test_initialize_pushes_detection_distance(manager: SensorManager) -> None:
    assert manager.gpio.detection_distance == 100.0
    assert manager.initialized


def test_smoothing_filter(manager: SensorManager) -> None:
    updates = record(manager, "distance_update")
    manager.handle_distance_change(100.0)
    manager.handle_distance_change(200.0)
    assert updates[0] == {"raw": 100.0, "smoothed": 100.0, "within_range": True}
    assert updates[1]["smoothed"] == pytest.approx(130.0)
    assert updates[1]["within_range"] is False


def test_smoothing_can_be_disabled(timers: TimerRecorder) -> None:
    sensors = SensorManager(SensorConfig(distance_smoothing=False), timer_factory=timers)
    sensors.handle_distance_change(100.0)
    sensors.handle_distance_change(200.0)
    assert sensors.smoothed_distance == 200.0


@pytest.mark.parametrize("reading", [5.0, 9.9, 300.1, 999.0])
def test_out_of_range_readings_are_ignored(manager: SensorManager, reading: float) -> None:
    updates = record(manager, "distance_update")
    manager.handle_distance_change(reading)
    assert updates == []
    assert manager.smoothed_distance == 999.0


def test_gpio_readings_feed_the_manager(manager: SensorManager) -> None:
    manager.gpio.emit("distance_changed", 80.0)
    assert manager.current_distance == 80.0


def test_presence_detected_and_timeout(manager: SensorManager, timers: TimerRecorder) -> None:
    detected = record(manager, "presence_detected")
    timeouts = record(manager, "presence_timeout")

    manager.handle_distance_change(50.0)
    manager.check_presence()
    assert detected == [{"distance": 50.0, "detection_distance": 100.0}]
    assert manager.object_present
    assert len(timers.timers) == 1
    assert timers.timers[0].delay == 30.0

    manager.check_presence()
    assert len(detected) == 1
    assert len(timers.timers) == 2
    assert timers.timers[0].cancelled

    timers.timers[0].fire()
    assert timeouts == []
    assert manager.object_present

    timers.timers[1].fire()
    assert timeouts == [{}]
    assert not manager.object_present


def test_object_moving_away_waits_for_timeout(manager: SensorManager, timers: TimerRecorder) -> None:
    manager.handle_distance_change(50.0)
    manager.check_presence()
    for _ in range(10):
        manager.handle_distance_change(290.0)
    manager.check_presence()
    assert manager.object_present
    assert len(timers.timers) == 1


def test_force_presence(manager: SensorManager, timers: TimerRecorder) -> None:
    detected = record(manager, "presence_detected")
    timeouts = record(manager, "presence_timeout")
    assert manager.force_presence_detection() is True
    assert manager.force_presence_detection() is False
    assert detected[0]["forced"] is True

    assert manager.force_presence_timeout() is True
    assert timeouts == [{"forced": True}]
    assert timers.timers[0].cancelled
    assert manager.force_presence_timeout() is False


def test_potentiometer_threshold(timers: TimerRecorder) -> None:
    sensors = SensorManager(SensorConfig(), timer_factory=timers)
    sensors.initialize(FakeGPIO(potentiometer=[52, 60, 62, 40]), start_monitoring=False)
    changes = record(sensors, "potentiometer_changed")
    for _ in range(4):
        sensors.poll_potentiometer()
    assert changes == [60, 40]
    assert sensors.last_potentiometer_value == 40


def test_setters_clamp(manager: SensorManager) -> None:
    distances = record(manager, "detection_distance_changed")
    assert manager.set_detection_distance(5) == 10
    assert manager.set_detection_distance(450) == 400
    assert distances == [10, 400]
    assert manager.gpio.detection_distance == 400
    assert manager.set_presence_timeout(0.2) == 1.0
    assert manager.set_presence_timeout(45) == 45


def test_update_configuration(manager: SensorManager) -> None:
    updated = manager.update_configuration({"smoothing_factor": 0.5, "detection_distance": 80})
    assert updated["smoothing_factor"] == 0.5
    assert updated["detection_distance"] == 80
    with pytest.raises(ValueError):
        manager.update_configuration({"unknown": 1})


def test_status_uses_wire_keys(manager: SensorManager) -> None:
    status = manager.status()
    assert status["detectionDistance"] == 100.0
    assert status["objectPresent"] is False
    assert status["presenceTimeout"] == 30.0
    assert status["potentiometerValue"] == 50


def test_cleanup_detaches_from_gpio(manager: SensorManager, timers: TimerRecorder) -> None:
    manager.force_presence_detection()
    gpio = manager.gpio
    manager.cleanup()
    assert timers.timers[-1].cancelled
    assert gpio.listener_count("distance_changed") == 0
    assert not manager.initialized
