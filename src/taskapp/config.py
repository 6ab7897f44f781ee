"""Configuration management for TaskApp."""

import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "TASKAPP_CONFIG"

# Environment variables that override values from the YAML file
ENV_OVERRIDES = {
    "TASKAPP_DATA_DIR": "data_dir",
    "TASKAPP_SECRET_KEY": "jwt_secret",
    "TASKAPP_SLACK_BOT_TOKEN": "slack_bot_token",
    "TASKAPP_APP_URL": "app_url",
}


@dataclass
class ConfigModel:
    """Global configuration model for TaskApp."""

    # Storage
    data_dir: str = "~/.taskapp"

    # Calendar days are bucketed at this UTC offset
    timezone_offset_hours: int = 0

    # Burndown
    default_burndown_days: int = 14

    # Risk forecasting
    velocity_window_days: int = 14
    at_risk_grace_days: int = 3
    insufficient_data_days: int = 7

    # Web API
    app_url: str = "http://localhost:8000"
    cors_origins: List[str] = field(default_factory=lambda: [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ])
    rate_limit_requests: int = 60
    rate_limit_window_seconds: float = 60.0
    auth_cache_ttl_seconds: float = 5.0

    # Auth
    jwt_secret: str = "dev-secret-change-me"
    jwt_algorithm: str = "HS256"

    # Notifications
    slack_bot_token: Optional[str] = None
    slack_channels: Dict[str, str] = field(default_factory=dict)  # space id -> channel id
    slack_events: Dict[str, bool] = field(default_factory=lambda: {
        "task_created": True,
        "ball_passed": True,
        "status_changed": True,
        "comment_added": False,
    })
    webhook_urls: Dict[str, str] = field(default_factory=dict)  # space id -> URL

    def __post_init__(self):
        """Post-initialization setup."""
        self.data_dir = os.path.expanduser(self.data_dir)

    @property
    def utc_offset(self) -> timedelta:
        return timedelta(hours=self.timezone_offset_hours)

    def get_spaces_dir(self) -> Path:
        """Directory holding one YAML snapshot per space."""
        return Path(self.data_dir) / "spaces"

    def get_config_path(self) -> Path:
        """Get the config file path."""
        return Path(self.data_dir) / "config.yaml"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data_dir": self.data_dir,
            "timezone_offset_hours": self.timezone_offset_hours,
            "default_burndown_days": self.default_burndown_days,
            "velocity_window_days": self.velocity_window_days,
            "at_risk_grace_days": self.at_risk_grace_days,
            "insufficient_data_days": self.insufficient_data_days,
            "app_url": self.app_url,
            "cors_origins": self.cors_origins,
            "rate_limit_requests": self.rate_limit_requests,
            "rate_limit_window_seconds": self.rate_limit_window_seconds,
            "auth_cache_ttl_seconds": self.auth_cache_ttl_seconds,
            "jwt_secret": self.jwt_secret,
            "jwt_algorithm": self.jwt_algorithm,
            "slack_bot_token": self.slack_bot_token,
            "slack_channels": self.slack_channels,
            "slack_events": self.slack_events,
            "webhook_urls": self.webhook_urls,
        }

    def to_yaml(self) -> str:
        """Serialize config to YAML."""
        return yaml.dump(self.to_dict(), default_flow_style=False)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "ConfigModel":
        """Deserialize config from YAML.

        Unknown keys are ignored so older binaries can read newer files.
        """
        data = yaml.safe_load(yaml_str) or {}
        if not isinstance(data, dict):
            raise ValueError("Configuration must be a YAML mapping")

        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown configuration keys: %s", ", ".join(unknown))

        return cls(**{k: v for k, v in data.items() if k in known})

    def apply_env(self, environ: Optional[Dict[str, str]] = None) -> "ConfigModel":
        """Apply environment variable overrides in place."""
        environ = os.environ if environ is None else environ
        for env_name, attr in ENV_OVERRIDES.items():
            value = environ.get(env_name)
            if value:
                setattr(self, attr, os.path.expanduser(value) if attr == "data_dir" else value)
        return self


class Config:
    """Configuration manager for TaskApp."""

    _instance: Optional[ConfigModel] = None

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> ConfigModel:
        """Load configuration from file, falling back to defaults."""
        if cls._instance is not None:
            return cls._instance

        config = ConfigModel()

        if config_path is None:
            env_path = os.environ.get(CONFIG_PATH_ENV)
            config_path = Path(env_path) if env_path else config.get_config_path()

        if config_path.exists():
            try:
                config = ConfigModel.from_yaml(config_path.read_text())
                logger.info("Loaded configuration from %s", config_path)
            except (OSError, ValueError, TypeError, yaml.YAMLError) as e:
                logger.warning("Failed to load config from %s: %s; using defaults", config_path, e)
                config = ConfigModel()
        else:
            logger.info("No configuration at %s; using defaults", config_path)

        cls._instance = config.apply_env()
        return cls._instance

    @classmethod
    def save(cls, config: ConfigModel, config_path: Optional[Path] = None) -> None:
        """Save configuration to file."""
        if config_path is None:
            config_path = config.get_config_path()

        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(config.to_yaml())
        logger.info("Configuration saved to %s", config_path)

    @classmethod
    def get(cls) -> ConfigModel:
        """Get the current configuration instance."""
        if cls._instance is None:
            cls._instance = cls.load()
        return cls._instance

    @classmethod
    def set(cls, config: Optional[ConfigModel]) -> None:
        """Replace the active configuration (tests, embedding)."""
        cls._instance = config

    @classmethod
    def reload(cls) -> ConfigModel:
        """Reload configuration from file."""
        cls._instance = None
        return cls.load()


def get_config() -> ConfigModel:
    """Get the current configuration."""
    return Config.get()


def load_config(config_path: Optional[Path] = None) -> ConfigModel:
    """Load configuration from file."""
    return Config.load(config_path)


def save_config(config: ConfigModel, config_path: Optional[Path] = None) -> None:
    """Save configuration to file."""
    Config.save(config, config_path)
