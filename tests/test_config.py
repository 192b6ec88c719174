import json

import pytest

from imgtranslate.config import Settings, load_settings
from imgtranslate.errors import ConfigurationError
from imgtranslate.llm.client import DEFAULT_BASE_URL, load_model_config


def _write(path, payload):
    path.write_text(payload if isinstance(payload, str) else json.dumps(payload), encoding="utf-8")
    return str(path)


def test_missing_settings_file_gives_defaults(tmp_path):
    settings = load_settings(str(tmp_path / "absent.json"))
    assert settings == Settings()
    assert settings.max_image_dimension == 2000
    assert settings.max_concurrent_translations == 10
    assert settings.cache_size == 1000


def test_partial_settings_override_defaults(tmp_path):
    path = _write(tmp_path / "settings.json", {"pivot_language": "en", "cache_size": 5, "unknown": 1})
    settings = load_settings(path)
    assert settings.pivot_language == "en"
    assert settings.cache_size == 5
    assert settings.default_ocr_language == "en"


def test_invalid_settings_are_rejected(tmp_path):
    with pytest.raises(ConfigurationError):
        load_settings(_write(tmp_path / "a.json", {"ocr_mode": "fancy"}))
    with pytest.raises(ConfigurationError):
        load_settings(_write(tmp_path / "b.json", {"max_concurrent_translations": 0}))
    with pytest.raises(ConfigurationError):
        load_settings(_write(tmp_path / "c.json", "{not json"))


def test_load_model_config(tmp_path):
    path = _write(tmp_path / "models.json", {
        "model_number_picked": 1,
        "models": [
            {"model": "a/first", "api_key": "k1"},
            {"model": "b/second", "api_key": "k2", "base_url": "http://localhost:8000/v1"},
        ],
    })
    config = load_model_config(path)
    assert config.model == "b/second"
    assert config.api_key == "k2"
    assert config.base_url == "http://localhost:8000/v1"


def test_load_model_config_defaults_base_url(tmp_path):
    path = _write(tmp_path / "models.json", {"model_number_picked": 0, "models": [{"model": "m", "api_key": "k"}]})
    assert load_model_config(path).base_url == DEFAULT_BASE_URL


def test_load_model_config_errors(tmp_path):
    with pytest.raises(ConfigurationError):
        load_model_config(str(tmp_path / "missing.json"))
    with pytest.raises(ConfigurationError):
        load_model_config(_write(tmp_path / "idx.json", {"model_number_picked": 3, "models": []}))
    with pytest.raises(ConfigurationError):
        load_model_config(_write(tmp_path / "key.json", {"model_number_picked": 0, "models": [{"model": "m"}]}))
