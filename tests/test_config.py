"""Tests for configuration management."""

import json

import pytest
from pydantic import ValidationError

from plansync.config import Config, ConfigManager, get_config_manager


def test_defaults(isolate_dirs):
    manager = ConfigManager()
    assert manager.config == Config()
    assert manager.config.remote.endpoint is None
    assert manager.config.sync.interval == 60
    assert manager.db_path == isolate_dirs / "planner.db"


def test_set_persists(isolate_dirs):
    manager = ConfigManager()
    manager.set("remote.endpoint", "https://sync.example.com")

    saved = json.loads((isolate_dirs / "default.json").read_text())
    assert saved["remote"]["endpoint"] == "https://sync.example.com"
    assert ConfigManager().get("remote.endpoint") == "https://sync.example.com"


def test_set_validates():
    manager = ConfigManager()
    with pytest.raises(ValidationError):
        manager.set("sync.interval", 0)


def test_get_unknown_key():
    manager = ConfigManager()
    assert manager.get("remote.nope") is None
    assert manager.get("remote.timeout.deeper") is None


def test_reset_single_key():
    manager = ConfigManager()
    manager.set("remote.timeout", 5)
    manager.set("sync.auto", False)

    manager.reset("remote.timeout")

    assert manager.get("remote.timeout") == 30
    assert manager.get("sync.auto") is False


def test_reset_all():
    manager = ConfigManager()
    manager.set("sync.auto", False)
    manager.reset()
    assert ConfigManager().config == Config()


def test_corrupted_file_falls_back_to_defaults(isolate_dirs):
    (isolate_dirs / "default.json").write_text("{not json")
    assert ConfigManager().config == Config()


def test_custom_db_path(tmp_path):
    manager = ConfigManager()
    manager.set("store.db_path", str(tmp_path / "other.db"))
    assert manager.db_path == tmp_path / "other.db"


def test_profiles_are_separate():
    ConfigManager("work").set("remote.endpoint", "https://work.example.com")
    assert ConfigManager().get("remote.endpoint") is None


def test_credentials(isolate_dirs):
    manager = ConfigManager()
    assert manager.load_credentials() is None

    manager.save_credentials("alice", "alice@example.com", token="tok")

    assert manager.load_credentials() == {
        "user_id": "alice",
        "email": "alice@example.com",
        "token": "tok",
    }
    assert manager.credentials_file.stat().st_mode & 0o777 == 0o600

    manager.clear_credentials()
    assert manager.load_credentials() is None


def test_get_config_manager_is_cached():
    manager = get_config_manager()
    assert get_config_manager() is manager
    assert get_config_manager("work") is not manager
