"""
Repository Pattern for SQLAlchemy Operations
Centralized query logic for plugins and plugin versions
"""

from .base_repository import BaseRepository
from .plugin_repository import PluginRepository, PluginVersionRepository

__all__ = [
    "BaseRepository",
    "PluginRepository",
    "PluginVersionRepository",
]
