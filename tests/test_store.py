import json
from pathlib import Path

import pytest

pytest.importorskip("pydantic")

from infomirror.store import (
    ConfigurationError,
    ConfigurationStore,
    default_configuration,
    validate_configuration,
)


@pytest.fixture()
def store(tmp_path: Path) -> ConfigurationStore:
    return ConfigurationStore(tmp_path / "config" / "hardware_config.json", tmp_path / "helper.py")


def test_store_creates_directory(store: ConfigurationStore) -> None:
    assert store.path.parent.is_dir()


def test_load_returns_defaults_when_missing(store: ConfigurationStore, tmp_path: Path) -> None:
    config = store.load()
    assert config == default_configuration(tmp_path / "helper.py")
    assert config["ledIntensity"] == 50
    assert config["motionTimeout"] == 30000
    assert config["showCompliments"] is False


def test_load_returns_defaults_when_corrupt(store: ConfigurationStore) -> None:
    store.path.write_text("{not json", encoding="utf-8")
    assert store.load()["detectionDistance"] == 100


def test_save_then_load(store: ConfigurationStore) -> None:
    saved = store.save(store.merge(store.defaults(), {"ledIntensity": 80, "showNewsfeed": True}))
    assert "lastUpdated" in saved
    on_disk = json.loads(store.path.read_text(encoding="utf-8"))
    assert on_disk["ledIntensity"] == 80
    assert store.path.read_text(encoding="utf-8").startswith('{\n  "')
    loaded = store.load()
    assert loaded["showNewsfeed"] is True
    assert loaded["lastUpdated"] == saved["lastUpdated"]


def test_merge_is_shallow_and_patch_wins() -> None:
    merged = ConfigurationStore.merge({"a": 1, "b": {"x": 1}}, {"b": {"y": 2}, "c": 3})
    assert merged == {"a": 1, "b": {"y": 2}, "c": 3}


@pytest.mark.parametrize(
    "patch",
    [
        ["not", "an", "object"],
        "text",
        {"showWeather": "yes"},
        {"debugMode": 1},
        {"ledIntensity": 150},
        {"ledIntensity": -1},
        {"ledIntensity": True},
        {"motionTimeout": "30s"},
        {"detectionDistance": 5},
        {"detectionDistance": 401},
    ],
)
def test_validate_rejects_invalid_patches(patch) -> None:
    with pytest.raises(ConfigurationError, match="Invalid configuration format"):
        validate_configuration(patch)


def test_validate_accepts_numbers_and_unknown_keys() -> None:
    patch = {"ledIntensity": 0, "detectionDistance": 55.5, "motionTimeout": 10000, "customField": "kept"}
    assert validate_configuration(patch) == patch


def test_validate_accepts_empty_patch() -> None:
    assert validate_configuration({}) == {}
