"""Configuration management for plansync.

Settings are pydantic models stored as JSON per profile under the user config
directory; the identity handed over by ``plansync login`` is stored next to
the local database with owner-only permissions.
"""

import json
from pathlib import Path
from typing import Any, Optional

from platformdirs import user_config_dir, user_data_dir
from pydantic import BaseModel, Field

APP_NAME = "plansync"


class RemoteConfig(BaseModel):
    """Remote document service configuration."""

    endpoint: Optional[str] = Field(default=None)
    timeout: int = Field(default=30)
    retry: int = Field(default=3)


class StoreConfig(BaseModel):
    """Local store configuration."""

    db_path: Optional[str] = Field(default=None)


class SyncConfig(BaseModel):
    """Sync and lifecycle scheduler configuration."""

    auto: bool = Field(default=True)
    interval: int = Field(default=60, ge=1)


class Config(BaseModel):
    """Main configuration."""

    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)


def _read_json(path: Path) -> Optional[Any]:
    if not path.exists():
        return None
    try:
        with open(path, "r") as f:
            return json.load(f)
    except (OSError, ValueError):
        return None


class ConfigManager:
    """Manages plansync configuration and stored credentials."""

    def __init__(self, profile: str = "default"):
        self.profile = profile
        self.config_dir = Path(user_config_dir(APP_NAME))
        self.data_dir = Path(user_data_dir(APP_NAME))
        self.config_file = self.config_dir / f"{profile}.json"
        self.credentials_file = self.data_dir / f"{profile}.credentials.json"

        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.data_dir.mkdir(parents=True, exist_ok=True)

        self._config: Optional[Config] = None

    @property
    def config(self) -> Config:
        """The current configuration, loaded on first access."""
        if self._config is None:
            self._config = self.load_config()
        return self._config

    @property
    def db_path(self) -> Path:
        """Path of the local SQLite store."""
        if self.config.store.db_path:
            return Path(self.config.store.db_path)
        return self.data_dir / "planner.db"

    def load_config(self) -> Config:
        """Load the profile's configuration; unreadable files give the defaults."""
        data = _read_json(self.config_file)
        if not isinstance(data, dict):
            return Config()
        try:
            return Config(**data)
        except ValueError:
            return Config()

    def save_config(self, config: Optional[Config] = None) -> None:
        config = config or self.config
        self.config_dir.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "w") as f:
            json.dump(config.model_dump(), f, indent=2)

    def get(self, key: str) -> Any:
        """Get a value by dotted key, e.g. "sync.interval"."""
        return self.get_from_config(self.config, key)

    def set(self, key: str, value: Any) -> None:
        """Set a value by dotted key and persist it.

        Raises:
            pydantic.ValidationError: If the new value is invalid for the key
        """
        *sections, field = key.split(".")
        data = self.config.model_dump()
        target = data
        for section in sections:
            target = target.setdefault(section, {})
        target[field] = value

        self._config = Config(**data)
        self.save_config()

    def reset(self, key: Optional[str] = None) -> None:
        """Reset one key, or the whole profile when key is None."""
        if key is None:
            self._config = Config()
            self.save_config()
        else:
            self.set(key, self.get_from_config(Config(), key))

    @staticmethod
    def get_from_config(config: Config, key: str) -> Any:
        value: Any = config
        for part in key.split("."):
            if not isinstance(value, BaseModel):
                return None
            value = getattr(value, part, None)
        return value

    def save_credentials(
        self,
        user_id: str,
        email: str,
        *,
        name: Optional[str] = None,
        token: Optional[str] = None,
    ) -> None:
        """Store the identity handed over by the identity provider."""
        credentials = {"user_id": user_id, "email": email}
        if name:
            credentials["name"] = name
        if token:
            credentials["token"] = token

        self.data_dir.mkdir(parents=True, exist_ok=True)
        with open(self.credentials_file, "w") as f:
            json.dump(credentials, f, indent=2)
        self.credentials_file.chmod(0o600)

    def load_credentials(self) -> Optional[dict[str, str]]:
        data = _read_json(self.credentials_file)
        return data if isinstance(data, dict) else None

    def clear_credentials(self) -> None:
        self.credentials_file.unlink(missing_ok=True)


_config_manager: Optional[ConfigManager] = None


def get_config_manager(profile: str = "default") -> ConfigManager:
    """Get or create the process-wide config manager for profile."""
    global _config_manager
    if _config_manager is None or _config_manager.profile != profile:
        _config_manager = ConfigManager(profile)
    return _config_manager
