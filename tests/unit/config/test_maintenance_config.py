"""Unit tests for layered YAML/environment configuration."""

import os

import pytest
import yaml

from src.config.config_manager import ConfigManager, ConfigurationError


@pytest.fixture
def config_dir(tmp_path):
    base = {
        "firestore": {"project_id": "crm-base", "max_batch_size": 500},
        "maintenance": {
            "timestamp_field": "createdAt",
            "collections": ["notes", "opportunities", "accounts", "inboundEmails"],
            "aliases": {"emails": "inboundEmails"},
            "preview_size": 5,
            "grace_seconds": 5,
        },
        "logging": {"level": "INFO"},
    }
    (tmp_path / "base.yaml").write_text(yaml.safe_dump(base))
    (tmp_path / "dev.yaml").write_text(yaml.safe_dump({"logging": {"level": "DEBUG"}}))
    return tmp_path


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for key in list(os.environ):
        if key.startswith("APP_"):
            monkeypatch.delenv(key)


def _write(config_dir, name, data):
    (config_dir / f"{name}.yaml").write_text(yaml.safe_dump(data))


def test_base_and_environment_layers_merge(config_dir):
    manager = ConfigManager(str(config_dir), "dev")

    assert manager.get_logging_config().level == "DEBUG"
    assert manager.get_firestore_config().project_id == "crm-base"
    maintenance = manager.get_maintenance_config()
    assert maintenance.collections == ["notes", "opportunities", "accounts", "inboundEmails"]
    assert maintenance.aliases == {"emails": "inboundEmails"}
    assert maintenance.grace_seconds == 5.0


def test_missing_environment_file_is_empty_layer(config_dir):
    manager = ConfigManager(str(config_dir), "staging")
    assert manager.get_logging_config().level == "INFO"


def test_defaults_without_any_files(tmp_path):
    manager = ConfigManager(str(tmp_path), "dev")

    assert manager.get_firestore_config().max_batch_size == 500
    assert manager.get_maintenance_config().timestamp_field == "createdAt"
    assert manager.get_firestore_config().project_id is None


def test_environment_variables_override_files(config_dir, monkeypatch):
    monkeypatch.setenv("APP_FIRESTORE_PROJECT_ID", "crm-override")
    monkeypatch.setenv("APP_MAINTENANCE_GRACE_SECONDS", "0")
    monkeypatch.setenv("APP_FIRESTORE_MAX_BATCH_SIZE", "250")

    manager = ConfigManager(str(config_dir), "dev")

    assert manager.get_firestore_config().project_id == "crm-override"
    assert manager.get_firestore_config().max_batch_size == 250
    assert manager.get_maintenance_config().grace_seconds == 0.0


def test_env_reference_for_credentials(config_dir, monkeypatch):
    _write(config_dir, "prod", {"firestore": {"credentials_path": "env:CRM_TEST_KEY_PATH"}})
    monkeypatch.setenv("CRM_TEST_KEY_PATH", "/secrets/key.json")

    manager = ConfigManager(str(config_dir), "prod")

    assert manager.get_firestore_config().credentials_path == "/secrets/key.json"


def test_unset_env_reference_resolves_to_none(config_dir, monkeypatch):
    _write(config_dir, "prod", {"firestore": {"credentials_path": "env:CRM_TEST_UNSET_KEY"}})
    monkeypatch.delenv("CRM_TEST_UNSET_KEY", raising=False)

    manager = ConfigManager(str(config_dir), "prod")

    assert manager.get_firestore_config().credentials_path is None


def test_env_file_is_loaded(config_dir, tmp_path):
    env_file = tmp_path / "crm.env"
    env_file.write_text("APP_FIRESTORE_DATABASE=crm-secondary\n")

    try:
        manager = ConfigManager(str(config_dir), "dev", env_file=str(env_file))
    finally:
        os.environ.pop("APP_FIRESTORE_DATABASE", None)

    assert manager.get_firestore_config().database == "crm-secondary"


def test_existing_environment_wins_over_env_file(config_dir, tmp_path, monkeypatch):
    env_file = tmp_path / "crm.env"
    env_file.write_text("APP_FIRESTORE_DATABASE=from-file\n")
    monkeypatch.setenv("APP_FIRESTORE_DATABASE", "from-env")

    manager = ConfigManager(str(config_dir), "dev", env_file=str(env_file))

    assert manager.get_firestore_config().database == "from-env"


@pytest.mark.parametrize("size", [0, 501, "many"])
def test_batch_size_bounds(config_dir, size):
    _write(config_dir, "dev", {"firestore": {"max_batch_size": size}})

    with pytest.raises(ConfigurationError):
        ConfigManager(str(config_dir), "dev")


@pytest.mark.parametrize("preview_size", [-1, "many"])
def test_preview_size_must_be_non_negative_integer(config_dir, preview_size):
    _write(config_dir, "dev", {"maintenance": {"preview_size": preview_size}})

    with pytest.raises(ConfigurationError):
        ConfigManager(str(config_dir), "dev")


@pytest.mark.parametrize("field", ["", "   ", 42])
def test_timestamp_field_must_be_named(config_dir, field):
    _write(config_dir, "dev", {"maintenance": {"timestamp_field": field}})

    with pytest.raises(ConfigurationError):
        ConfigManager(str(config_dir), "dev")


def test_empty_collection_list_rejected(config_dir):
    _write(config_dir, "dev", {"maintenance": {"collections": []}})

    with pytest.raises(ConfigurationError):
        ConfigManager(str(config_dir), "dev")


def test_alias_to_unknown_collection_rejected(config_dir):
    _write(config_dir, "dev", {"maintenance": {"aliases": {"contacts": "people"}}})

    with pytest.raises(ConfigurationError):
        ConfigManager(str(config_dir), "dev")


def test_negative_grace_rejected(config_dir):
    _write(config_dir, "dev", {"maintenance": {"grace_seconds": -1}})

    with pytest.raises(ConfigurationError):
        ConfigManager(str(config_dir), "dev")


def test_unknown_log_level_rejected(config_dir):
    _write(config_dir, "dev", {"logging": {"level": "CHATTY"}})

    with pytest.raises(ConfigurationError):
        ConfigManager(str(config_dir), "dev")


def test_malformed_yaml_rejected(config_dir):
    (config_dir / "dev.yaml").write_text("logging: [unclosed")

    with pytest.raises(ConfigurationError):
        ConfigManager(str(config_dir), "dev")


def test_non_mapping_yaml_rejected(config_dir):
    (config_dir / "dev.yaml").write_text("- just\n- a list\n")

    with pytest.raises(ConfigurationError):
        ConfigManager(str(config_dir), "dev")
