"""Settings management using Pydantic for type validation and configuration."""

import logging
import os
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, Field, PrivateAttr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "CALHUB_"


class LoggingSettings(BaseModel):
    """Logging configuration settings."""

    console_enabled: bool = Field(default=True, description="Enable console logging")
    console_level: str = Field(
        default="INFO",
        description="Console log level: DEBUG, VERBOSE, INFO, WARNING, ERROR, CRITICAL",
    )
    console_colors: bool = Field(
        default=True, description="Enable colored console output (auto-detected)"
    )

    file_enabled: bool = Field(default=False, description="Enable file logging")
    file_level: str = Field(default="DEBUG", description="File log level")
    file_directory: Optional[str] = Field(
        default=None, description="Custom log directory (defaults to data_dir/logs)"
    )
    file_prefix: str = Field(default="calhub", description="Log file prefix")
    max_log_files: int = Field(default=5, description="Maximum number of log files to keep")

    third_party_level: str = Field(
        default="WARNING", description="Log level for httpx, httpcore and asyncio"
    )


class CalHubSettings(BaseSettings):
    """Application settings.

    Priority: explicit arguments > environment (``CALHUB_*``) > YAML > defaults.
    """

    _explicit_args: set = PrivateAttr(default_factory=set)
    _env_vars_set: set = PrivateAttr(default_factory=set)

    # File Paths
    config_dir: Path = Field(default_factory=lambda: Path.home() / ".config" / "calhub")
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".local" / "share" / "calhub")
    config_file: Optional[Path] = Field(
        default=None, description="Explicit YAML config file (skips the search path)"
    )
    database_path: Optional[Path] = Field(
        default=None, description="SQLite database file (defaults to data_dir/calhub.db)"
    )

    # Sources
    ics_urls: Union[list[str], str] = Field(
        default_factory=list, description="ICS feed URLs registered at startup"
    )
    google_client_id: Optional[str] = Field(default=None, description="Google OAuth client id")
    google_client_secret: Optional[str] = Field(
        default=None, description="Google OAuth client secret"
    )
    google_scopes: str = Field(
        default="https://www.googleapis.com/auth/calendar.readonly",
        description="OAuth scopes requested for Google Calendar",
    )
    token_encryption_key: Optional[str] = Field(
        default=None, description="Fernet key used to encrypt stored OAuth tokens"
    )
    google_max_cursor_restarts: int = Field(
        default=1, description="Full resyncs allowed per calendar after an expired sync token"
    )

    # Sync and network
    sync_interval: int = Field(default=300, description="Seconds between scheduled syncs")
    request_timeout: float = Field(default=30.0, description="HTTP request timeout in seconds")
    user_agent: str = Field(default="calhub/0.1 (+local)", description="HTTP User-Agent")

    # Expansion cache
    expansion_cache_ttl: float = Field(
        default=30.0, description="Seconds an expanded window stays cached"
    )
    expansion_cache_size: int = Field(
        default=200, description="Maximum number of cached expansion windows"
    )

    logging: LoggingSettings = Field(
        default_factory=LoggingSettings, description="Logging settings"
    )

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    def __init__(self, **kwargs: Any) -> None:
        env_vars_set = {
            key[len(ENV_PREFIX) :].lower()
            for key in os.environ
            if key.upper().startswith(ENV_PREFIX)
        }

        super().__init__(**kwargs)

        self._explicit_args = set(kwargs.keys())
        self._env_vars_set = env_vars_set

        self._load_yaml_config()

    @field_validator("ics_urls", mode="before")
    @classmethod
    def _split_ics_urls(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [url.strip() for url in value.split(",") if url.strip()]
        return value

    def _find_config_file(self) -> Optional[Path]:
        """Find config file: explicit path, then project config/, then config_dir."""
        if self.config_file is not None:
            return self.config_file if self.config_file.exists() else None

        project_config = Path(__file__).parent.parent.parent / "config" / "config.yaml"
        if project_config.exists():
            return project_config

        user_config = self.config_dir / "config.yaml"
        if user_config.exists():
            return user_config

        return None

    def _should_apply(self, name: str) -> bool:
        return name not in self._explicit_args and name not in self._env_vars_set

    def _load_basic_settings(self, config_data: dict) -> None:
        basic_settings = [
            "data_dir",
            "database_path",
            "sync_interval",
            "request_timeout",
            "user_agent",
            "google_max_cursor_restarts",
        ]
        for setting in basic_settings:
            if setting in config_data and self._should_apply(setting):
                value = config_data[setting]
                if setting in ("data_dir", "database_path") and value is not None:
                    value = Path(value).expanduser()
                setattr(self, setting, value)

    def _load_ics_config(self, config_data: dict) -> None:
        ics_config = config_data.get("ics") or {}
        urls = ics_config.get("urls", config_data.get("ics_urls"))
        if urls is not None and self._should_apply("ics_urls"):
            self.ics_urls = self._split_ics_urls(urls)

    def _load_google_config(self, config_data: dict) -> None:
        google_config = config_data.get("google") or {}
        for key in ("client_id", "client_secret", "scopes", "max_cursor_restarts"):
            field_name = f"google_{key}"
            if key in google_config and self._should_apply(field_name):
                setattr(self, field_name, google_config[key])
        if "token_encryption_key" in google_config and self._should_apply(
            "token_encryption_key"
        ):
            self.token_encryption_key = google_config["token_encryption_key"]

    def _load_cache_config(self, config_data: dict) -> None:
        cache_config = config_data.get("cache") or {}
        for key in ("ttl", "size"):
            field_name = f"expansion_cache_{key}"
            if key in cache_config and self._should_apply(field_name):
                setattr(self, field_name, cache_config[key])

    def _load_logging_config(self, config_data: dict) -> None:
        logging_config = config_data.get("logging") or {}
        if "logging" in self._explicit_args:
            return
        for setting, value in logging_config.items():
            if setting in LoggingSettings.model_fields:
                setattr(self.logging, setting, value)

    def _load_yaml_config(self) -> None:
        """Load configuration from YAML file if it exists."""
        config_file = self._find_config_file()
        if not config_file:
            return

        try:
            with config_file.open() as f:
                config_data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logging.getLogger(__name__).warning(
                f"Could not load YAML config from {config_file}: {e}"
            )
            return

        if not config_data:
            return

        self._load_basic_settings(config_data)
        self._load_ics_config(config_data)
        self._load_google_config(config_data)
        self._load_cache_config(config_data)
        self._load_logging_config(config_data)

    @property
    def database_file(self) -> Path:
        """Path to SQLite database file."""
        if self.database_path is not None:
            return Path(self.database_path)
        return self.data_dir / "calhub.db"


_settings_instance: Optional[CalHubSettings] = None


def get_settings() -> CalHubSettings:
    """Get the global settings instance, creating it lazily."""
    if globals()["_settings_instance"] is None:
        globals()["_settings_instance"] = CalHubSettings()
    return globals()["_settings_instance"]


def reset_settings() -> None:
    """Reset the global settings instance (primarily for testing)."""
    globals()["_settings_instance"] = None
