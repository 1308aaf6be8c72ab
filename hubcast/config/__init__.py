"""Configuration package."""

from hubcast.config.settings import Settings, settings

__all__ = [
    "Settings",
    "settings",
]
