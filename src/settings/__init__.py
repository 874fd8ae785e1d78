"""Application settings loading."""

from .app import AppSettings, get_settings
from .sync import SyncConfig


__all__ = ["AppSettings", "SyncConfig", "get_settings"]
