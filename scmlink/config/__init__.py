"""Configuration package."""

from scmlink.config.settings import Settings, settings

__all__ = [
    "Settings",
    "settings",
]
