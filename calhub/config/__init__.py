"""Configuration management for calhub."""

from .settings import CalHubSettings, LoggingSettings, get_settings, reset_settings

__all__ = ["CalHubSettings", "LoggingSettings", "get_settings", "reset_settings"]
