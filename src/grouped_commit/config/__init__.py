"""
Configuration loading for grouped_commit.

Settings are resolved once at startup into an immutable
:class:`~grouped_commit.config.loader.Settings` instance which is then
passed explicitly to every component.
"""

from .loader import ConfigError, Settings, load_config, require_api_key  # noqa: F401
