"""
Tests for configuration loading from YAML and environment variables.
"""

from pathlib import Path

import pytest
import yaml

from docversion.config import ConfigManager, DocVersionConfig
from docversion.core.exceptions import ValidationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "DOCVERSION_RETENTION_LIMIT",
        "DOCVERSION_MAX_WRITE_ATTEMPTS",
        "DOCVERSION_STORAGE_BACKEND",
        "DOCVERSION_STORAGE_PATH",
        "DOCVERSION_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_file(tmp_path):
    config = ConfigManager(tmp_path / "missing.yaml").load_config()

    assert config.versioning.retention_limit == 100
    assert config.versioning.max_write_attempts == 3
    assert config.storage.backend == "file"


def test_load_from_yaml(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(yaml.safe_dump({
        "versioning": {"retention_limit": 5},
        "storage": {"backend": "memory", "path": str(tmp_path / "store")},
        "log_level": "info",
    }))

    config = ConfigManager(config_file).load_config()

    assert config.versioning.retention_limit == 5
    assert config.storage.backend == "memory"
    assert config.storage.path == tmp_path / "store"
    assert config.log_level == "INFO"


def test_env_overrides_file(tmp_path, monkeypatch):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(yaml.safe_dump({"versioning": {"retention_limit": 5}}))
    monkeypatch.setenv("DOCVERSION_RETENTION_LIMIT", "7")
    monkeypatch.setenv("DOCVERSION_STORAGE_PATH", str(tmp_path / "elsewhere"))

    config = ConfigManager(config_file).load_config()

    assert config.versioning.retention_limit == 7
    assert config.storage.path == tmp_path / "elsewhere"


def test_invalid_env_value(tmp_path, monkeypatch):
    monkeypatch.setenv("DOCVERSION_MAX_WRITE_ATTEMPTS", "many")

    with pytest.raises(ValidationError):
        ConfigManager(tmp_path / "missing.yaml").load_config()


def test_invalid_retention_limit(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(yaml.safe_dump({"versioning": {"retention_limit": 0}}))

    with pytest.raises(ValidationError):
        ConfigManager(config_file).load_config()


def test_unknown_backend(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(yaml.safe_dump({"storage": {"backend": "s3"}}))

    with pytest.raises(ValidationError):
        ConfigManager(config_file).load_config()


def test_unreadable_yaml_falls_back_to_defaults(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("versioning: [unclosed")

    config = ConfigManager(config_file).load_config()
    assert config.versioning.retention_limit == 100


def test_save_and_reload(tmp_path):
    config_file = tmp_path / "nested" / "config.yaml"
    config = DocVersionConfig()
    config.versioning.retention_limit = 12
    config.storage.path = Path("/var/lib/docversion")

    ConfigManager(config_file).save_config(config)
    reloaded = ConfigManager(config_file).load_config()

    assert reloaded.versioning.retention_limit == 12
    assert reloaded.storage.path == Path("/var/lib/docversion")


def test_config_info(tmp_path):
    info = ConfigManager(tmp_path / "missing.yaml").get_config_info()

    assert info["config_exists"] is False
    assert info["retention_limit"] == 100


@pytest.mark.parametrize("section", ["versioning", "storage"])
def test_non_mapping_section_rejected(tmp_path, section):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(yaml.safe_dump({section: ["retention_limit", 5]}))

    with pytest.raises(ValidationError):
        ConfigManager(config_file).load_config()
