import os

import pytest

from cpe_guesser.core.config import Settings, get_cpe_path, load_settings, load_yaml_config
from cpe_guesser.core.exceptions import ConfigError

SETTINGS_YAML = """
server:
  port: 8100
database:
  url: sqlite:///./from-yaml.db
cpe:
  path: ./data/dict.xml
  source: http://mirror.example.test/dict.xml.gz
logging:
  level: debug
import:
  batch_size: 250
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(SETTINGS_YAML)
    return path


def test_load_yaml_config_maps_sections(config_file):
    values = load_yaml_config(config_file)
    assert values == {
        "SERVER_PORT": 8100,
        "DATABASE_URL": "sqlite:///./from-yaml.db",
        "CPE_PATH": "./data/dict.xml",
        "CPE_SOURCE": "http://mirror.example.test/dict.xml.gz",
        "LOG_LEVEL": "debug",
        "IMPORT_BATCH_SIZE": 250,
    }


def test_load_yaml_config_ignores_unknown_keys(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("server:\n  port: 9000\n  colour: blue\nvalkey: 3\n")
    assert load_yaml_config(path) == {"SERVER_PORT": 9000}


def test_load_yaml_config_empty_file(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("")
    assert load_yaml_config(path) == {}


def test_load_yaml_config_invalid_yaml(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("server: [unclosed\n")
    with pytest.raises(ConfigError):
        load_yaml_config(path)


def test_load_settings_from_file(config_file):
    settings = load_settings(config_file)
    assert settings.SERVER_PORT == 8100
    assert settings.LOG_LEVEL == "DEBUG"
    assert settings.IMPORT_BATCH_SIZE == 250


def test_overrides_beat_file(config_file):
    settings = load_settings(config_file, SERVER_PORT=9999, DATABASE_URL=None)
    assert settings.SERVER_PORT == 9999
    assert settings.DATABASE_URL == "sqlite:///./from-yaml.db"


def test_file_beats_environment(config_file, monkeypatch):
    monkeypatch.setenv("SERVER_PORT", "9001")
    assert load_settings(config_file).SERVER_PORT == 8100


def test_environment_used_without_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SERVER_PORT", "9001")
    assert load_settings().SERVER_PORT == 9001


def test_default_settings_file_in_working_directory(config_file, monkeypatch):
    monkeypatch.chdir(config_file.parent)
    assert load_settings().SERVER_PORT == 8100


def test_defaults_without_any_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("SERVER_PORT", raising=False)
    settings = load_settings()
    assert settings.SERVER_PORT == 8000
    assert settings.IMPORT_BATCH_SIZE == 5000


def test_missing_explicit_config_file(tmp_path):
    with pytest.raises(ConfigError):
        load_settings(tmp_path / "nope.yaml")


@pytest.mark.parametrize("override", [
    {"LOG_LEVEL": "LOUD"},
    {"IMPORT_BATCH_SIZE": 0},
    {"SERVER_PORT": 70000},
])
def test_invalid_values_raise_config_error(tmp_path, monkeypatch, override):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(ConfigError):
        load_settings(**override)


def test_get_cpe_path_is_absolute(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    settings = Settings(CPE_PATH="data/dict.xml")
    assert get_cpe_path(settings) == os.path.join(str(tmp_path), "data", "dict.xml")
