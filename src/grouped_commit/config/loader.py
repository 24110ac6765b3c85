"""
Configuration loader for grouped_commit.

Settings come from four layers, later layers winning:

1. built-in defaults,
2. an optional JSON file ``config.json`` in ``~/.grouped_commit/``
   (the directory can be moved with ``GROUPED_COMMIT_HOME``),
3. environment variables (``ANTHROPIC_API_KEY``/``CLAUDE_API_KEY``,
   ``USE_EMOJI``, ``DEBUG``),
4. keyword overrides supplied by the CLI.

The result is a frozen :class:`Settings` dataclass. A malformed file or a
value of the wrong type raises :class:`ConfigError`.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


logger = logging.getLogger(__name__)
# Attach a null handler to avoid "No handler" warnings when the CLI has not
# configured logging yet.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


DEFAULT_API_URL = "https://api.anthropic.com/v1/messages"
DEFAULT_MODEL = "claude-sonnet-4-20250514"
UNKNOWN_TYPE_POLICIES = ("chore", "reject")


class ConfigError(Exception):
    """Raised when the configuration is missing, malformed, or invalid."""

    pass


@dataclass(frozen=True)
class Settings:
    """Immutable runtime configuration.

    Attributes
    ----------
    api_key : str, optional
        Key for the completion service. Required for grouped mode.
    api_url : str
        Messages endpoint of the completion service.
    model : str
        Model identifier sent with every request.
    max_tokens : int
        Token budget for commit message requests.
    group_max_tokens : int
        Token budget for the grouping request, which lists every file.
    request_timeout : float
        Timeout in seconds for each HTTP request.
    use_emoji : bool
        Prefix summaries with the emoji of their commit type.
    skip_ai : bool
        Use template messages instead of AI suggestions. Grouping still
        needs the service.
    assume_yes : bool
        Confirm the group count and every message without prompting.
    dry_run : bool
        Show the proposed groups and stop before touching the index.
    debug, verbose : bool
        Logging verbosity.
    trailers : tuple of str
        Lines appended to every commit message, e.g. co-author annotations.
    max_diff_chars : int
        Truncation limit for diff text sent to the service.
    unknown_type_policy : str
        ``"chore"`` maps unrecognised commit types to chore, ``"reject"``
        turns them into a parse failure.
    """

    api_key: Optional[str] = None
    api_url: str = DEFAULT_API_URL
    model: str = DEFAULT_MODEL
    max_tokens: int = 300
    group_max_tokens: int = 2000
    request_timeout: float = 60.0
    use_emoji: bool = False
    skip_ai: bool = False
    assume_yes: bool = False
    dry_run: bool = False
    debug: bool = False
    verbose: bool = False
    trailers: Tuple[str, ...] = field(default_factory=tuple)
    max_diff_chars: int = 20000
    unknown_type_policy: str = "chore"

    @property
    def ai_messages(self) -> bool:
        """Whether commit messages should be requested from the service."""
        return not self.skip_ai and bool(self.api_key)


# Expected JSON types for keys accepted in the config file.
_FILE_KEYS: Dict[str, Tuple[type, ...]] = {
    "api_url": (str,),
    "model": (str,),
    "max_tokens": (int,),
    "group_max_tokens": (int,),
    "request_timeout": (int, float),
    "use_emoji": (bool,),
    "trailers": (list,),
    "max_diff_chars": (int,),
    "unknown_type_policy": (str,),
}


def _get_config_directory() -> Path:
    """Return the directory holding ``config.json``."""
    override = os.environ.get("GROUPED_COMMIT_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".grouped_commit"


def _env_flag(name: str) -> Optional[bool]:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return None
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _read_config_file(config_path: Path) -> Dict[str, Any]:
    if not config_path.exists():
        logger.debug("No configuration file at %s; using defaults", config_path)
        return {}
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Failed to read or parse configuration file: %s", exc)
        raise ConfigError(f"Invalid JSON in {config_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a JSON object")

    values: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in _FILE_KEYS:
            logger.warning("Ignoring unknown configuration key '%s'", key)
            continue
        expected = _FILE_KEYS[key]
        # bool is a subclass of int; reject it where a number is expected
        if isinstance(value, bool) and bool not in expected:
            raise ConfigError(f"'{key}' must be of type {expected[0].__name__}")
        if not isinstance(value, expected):
            raise ConfigError(f"'{key}' must be of type {expected[0].__name__}")
        values[key] = value

    if "trailers" in values:
        if not all(isinstance(item, str) for item in values["trailers"]):
            raise ConfigError("'trailers' must be a list of strings")
        values["trailers"] = tuple(values["trailers"])
    if "request_timeout" in values:
        values["request_timeout"] = float(values["request_timeout"])
    return values


def load_config(**overrides: Any) -> Settings:
    """Build the :class:`Settings` for this run.

    Keyword arguments whose value is ``None`` are ignored so the CLI can
    pass unset options straight through.

    Raises
    ------
    ConfigError
        If the configuration file is malformed or a value is invalid.
    """
    config_path = _get_config_directory() / "config.json"
    values = _read_config_file(config_path)

    api_key = os.environ.get("ANTHROPIC_API_KEY") or os.environ.get("CLAUDE_API_KEY")
    if api_key:
        values["api_key"] = api_key.strip()
    for env_name, key in (("USE_EMOJI", "use_emoji"), ("DEBUG", "debug")):
        flag = _env_flag(env_name)
        if flag is not None:
            values[key] = flag

    known = {f.name for f in fields(Settings)}
    for key, value in overrides.items():
        if key not in known:
            raise ConfigError(f"Unknown setting '{key}'")
        if value is not None:
            values[key] = tuple(value) if key == "trailers" else value

    settings = replace(Settings(), **values)
    if settings.unknown_type_policy not in UNKNOWN_TYPE_POLICIES:
        raise ConfigError(
            f"'unknown_type_policy' must be one of: {', '.join(UNKNOWN_TYPE_POLICIES)}"
        )
    if settings.max_tokens <= 0 or settings.group_max_tokens <= 0:
        raise ConfigError("Token budgets must be positive integers")
    if settings.max_diff_chars <= 0:
        raise ConfigError("'max_diff_chars' must be a positive integer")

    logger.debug(
        "Loaded settings (model=%s, emoji=%s, skip_ai=%s, dry_run=%s)",
        settings.model,
        settings.use_emoji,
        settings.skip_ai,
        settings.dry_run,
    )
    return settings


def require_api_key(settings: Settings) -> str:
    """Return the API key or raise :class:`ConfigError` when it is missing."""
    if not settings.api_key:
        raise ConfigError(
            "ANTHROPIC_API_KEY environment variable is not set. "
            "Grouped commits need the completion service: "
            'export ANTHROPIC_API_KEY="your-api-key"'
        )
    return settings.api_key
