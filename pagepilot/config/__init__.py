"""
pagepilot configuration package.

This package contains the centralized settings used to build sessions and
surfaces.
"""

from pagepilot.config.manager import EnvironmentManager, env_manager
from pagepilot.config.types import SettingDescriptor

# Re-export the singleton instance for easy access
env = env_manager

__all__ = [
    "EnvironmentManager",
    "env_manager",
    "env",
    "SettingDescriptor",
]
