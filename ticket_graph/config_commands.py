"""Configuration commands for tracker credentials and analysis settings."""

from typing import Any

import structlog
from cyclopts import App

from ticket_graph.config import AnalysisSettings, Config, get_config, mask

logger = structlog.get_logger()

config_app = App(name="config", help="Manage tracker credentials and analysis settings")

# Recognized keys, in the order ``list`` prints their sections.
KNOWN_KEYS: dict[str, list[str]] = {
    "general": ["backend"],
    "jira": ["jira.base_url", "jira.email", "jira.token"],
    "confluence": ["confluence.base_url", "confluence.email", "confluence.token"],
    "github": ["github.owner", "github.repository", "github.token"],
    "analysis": ["analysis.depth", "analysis.comment_limit", "analysis.similar_limit", "analysis.strategies"],
}

# Keys each record store needs before it can be constructed.
REQUIRED_KEYS: dict[str, list[str]] = {
    "jira": ["jira.base_url", "jira.email", "jira.token"],
    "github": ["github.owner", "github.repository", "github.token"],
}


def section_of(key: str) -> str:
    return key.split(".", 1)[0] if "." in key else "general"


def validate_setting(config: Config, key: str, value: str) -> None:
    """Check ``key = value`` against the current settings without saving it.

    Raises:
        ValueError: if the key is unknown or the value would be rejected at analysis time
    """
    if not any(key in keys for keys in KNOWN_KEYS.values()):
        known = ", ".join(k for keys in KNOWN_KEYS.values() for k in keys)
        raise ValueError(f"Unknown configuration key: {key}. Known keys: {known}")
    if key == "backend" and value not in REQUIRED_KEYS:
        raise ValueError(f"backend must be one of: {', '.join(REQUIRED_KEYS)}")
    if section_of(key) == "analysis":
        AnalysisSettings.from_config({**config.list(), key: value})


def check_config(config: Config) -> list[str]:
    """Problems that would stop ``tg analyze`` from running, empty when ready."""
    problems: list[str] = []
    settings = config.list()
    backend = settings.get("backend", "jira")
    required = REQUIRED_KEYS.get(backend)
    if required is None:
        problems.append(f"unknown backend: {backend}")
    else:
        problems.extend(f"{key} is not set" for key in required if not settings.get(key))
    try:
        AnalysisSettings.from_config(config)
    except ValueError as e:
        problems.append(str(e))
    return problems


def group_settings(settings: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Group settings by section, known sections first and unrecognized keys last."""
    groups: dict[str, dict[str, Any]] = {section: {} for section in KNOWN_KEYS}
    for key, value in settings.items():
        section = section_of(key)
        groups.setdefault(section if section in KNOWN_KEYS else "other", {})[key] = value
    return {section: values for section, values in groups.items() if values}


@config_app.command
def set(key: str, value: str, global_: bool = False) -> None:
    """Set a configuration setting.

    Args:
        key: Configuration key, e.g. jira.base_url or analysis.depth
        value: Configuration value
        global_: If True, set in global config. If False, set in local config.
    """
    config = get_config(use_global=global_)
    validate_setting(config, key, value)
    config.set(key, value)
    scope = "global" if global_ else "local"
    print(f"Set {key} = {mask(key, value)} ({scope})")


@config_app.command
def unset(key: str, global_: bool = False) -> None:
    """Unset a configuration setting.

    Args:
        key: Configuration key
        global_: If True, unset from global config. If False, unset from local config.
    """
    config = get_config(use_global=global_)
    scope = "global" if global_ else "local"
    if key not in config.list():
        print(f"{key} is not set ({scope})")
        return
    config.unset(key)
    print(f"Unset {key} ({scope})")
    if config.get(key) is not None:
        print(f"{key} still set in global config")


@config_app.command
def get(key: str, global_: bool = False, reveal: bool = False) -> None:
    """Get the value of a configuration setting.

    Args:
        key: Configuration key
        global_: If True, get from global config only. If False, get with global fallback.
        reveal: Print tokens in full
    """
    config = get_config(use_global=global_)
    value = config.get(key)
    if value is None:
        print(f"{key} is not set")
    else:
        print(f"{key} = {value if reveal else mask(key, value)}")


@config_app.command(name="list")
def list_config(global_: bool = False) -> None:
    """List configuration settings by section, tokens masked.

    Args:
        global_: If True, list global config only. If False, list merged config.
    """
    config = get_config(use_global=global_)
    groups = group_settings(config.list())

    if not groups:
        scope = "global" if global_ else "local"
        print(f"No {scope} configuration settings")
        return

    for section, values in groups.items():
        print(f"[{section}]")
        for key, value in values.items():
            print(f"  {key} = {mask(key, value)}")


@config_app.command
def check() -> None:
    """Report settings that would stop an analysis from running."""
    config = get_config()
    problems = check_config(config)
    logger.debug("Checked configuration", problems=len(problems))

    if not problems:
        print(f"Configuration OK (backend: {config.get('backend', 'jira')})")
        return

    raise ValueError("Configuration problems:\n" + "\n".join(f"  - {problem}" for problem in problems))
