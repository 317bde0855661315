from pathlib import Path

import pytest
from pydantic import ValidationError

from gensnitch.app.config import DEFAULT_TRUST_LIST_PATH, GenSnitchConfig


def test_defaults():
    config = GenSnitchConfig()

    assert config.max_image_bytes == 25 * 1024 * 1024
    assert config.FETCH_TIMEOUT_SECONDS == 30.0
    assert config.MAX_CHUNK_DISPLAY_CHARS == 500
    assert config.ENABLE_C2PA_VERIFICATION is True
    assert config.TRUST_LIST_PATH == DEFAULT_TRUST_LIST_PATH
    assert config.GRANTED_ORIGINS == ()


def test_from_env(monkeypatch, tmp_path):
    trust_list = tmp_path / "trusted.txt"
    trust_list.write_text("")

    monkeypatch.setenv("GENSNITCH_MAX_IMAGE_SIZE_MB", "5")
    monkeypatch.setenv("GENSNITCH_FETCH_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("GENSNITCH_ENABLE_C2PA_VERIFICATION", "off")
    monkeypatch.setenv("GENSNITCH_ENABLE_RASTER_FALLBACK", "yes")
    monkeypatch.setenv("GENSNITCH_TRUST_LIST_PATH", str(trust_list))
    monkeypatch.setenv(
        "GENSNITCH_GRANTED_ORIGINS", "https://cdn.example/*, https://img.example/*"
    )

    config = GenSnitchConfig.from_env()

    assert config.max_image_bytes == 5 * 1024 * 1024
    assert config.FETCH_TIMEOUT_SECONDS == 2.5
    assert config.ENABLE_C2PA_VERIFICATION is False
    assert config.ENABLE_RASTER_FALLBACK is True
    assert config.TRUST_LIST_PATH == trust_list
    assert config.GRANTED_ORIGINS == ("https://cdn.example/*", "https://img.example/*")


@pytest.mark.parametrize(
    "overrides",
    [
        {"MAX_IMAGE_SIZE_MB": 0},
        {"MAX_CHUNK_DISPLAY_CHARS": -1},
        {"FETCH_TIMEOUT_SECONDS": 0},
        {"TRUST_LIST_PATH": Path("/nonexistent/trusted.txt")},
    ],
)
def test_invalid_values_are_rejected(overrides):
    with pytest.raises(ValidationError):
        GenSnitchConfig(**overrides)


def test_trust_list_path_must_be_a_file(tmp_path):
    with pytest.raises(ValidationError):
        GenSnitchConfig(TRUST_LIST_PATH=tmp_path)


def test_config_is_frozen():
    config = GenSnitchConfig()

    with pytest.raises(ValidationError):
        config.MAX_IMAGE_SIZE_MB = 10
