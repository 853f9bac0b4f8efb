from pathlib import Path

import pytest

from safepath.utils.config import get, get_secret, load_yaml

CONFIG = Path(__file__).resolve().parents[1] / "configs" / "safepath.yaml"


def test_shipped_config_matches_defaults():
    cfg = load_yaml(CONFIG)
    assert get(cfg, "sampling.interval_s") == 1.5
    assert get(cfg, "alerts.debounce_ms") == 8000
    assert get(cfg, "alerts.clear_reset_ms") == 5000
    assert get(cfg, "brightness.low_light_threshold") == 30
    assert get(cfg, "detector.kind") in ("yolo", "remote")


def test_get_dot_path_defaults():
    cfg = {"a": {"b": {"c": 3}}, "x": 1}
    assert get(cfg, "a.b.c") == 3
    assert get(cfg, "a.missing", "d") == "d"
    assert get(cfg, "x.y", 7) == 7


def test_missing_config_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_yaml(tmp_path / "nope.yaml")


def test_empty_yaml_is_empty_dict(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_yaml(path) == {}


def test_get_secret_reads_named_env(monkeypatch):
    monkeypatch.setenv("MY_KEY", " secret ")
    monkeypatch.delenv("DEFAULT_KEY", raising=False)
    assert get_secret({"scene": {"api_key_env": "MY_KEY"}}, "scene.api_key_env", "DEFAULT_KEY") == "secret"
    assert get_secret({}, "scene.api_key_env", "DEFAULT_KEY") is None
