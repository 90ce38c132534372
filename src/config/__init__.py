"""Configuration module - settings and source rules."""

from src.config.settings import (
    ConfigurationError,
    DEFAULT_SOURCES,
    Settings,
    SourceRule,
    SourceSelectors,
    load_settings,
    load_sources,
)

__all__ = [
    "ConfigurationError",
    "DEFAULT_SOURCES",
    "Settings",
    "SourceRule",
    "SourceSelectors",
    "load_settings",
    "load_sources",
]
