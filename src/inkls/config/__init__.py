"""Configuration loading for the Ink language server."""

from .server_config import load_server_config
from .settings import get_default_settings, normalize_settings

__all__ = ["load_server_config", "get_default_settings", "normalize_settings"]
