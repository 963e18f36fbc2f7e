"""Configuration management for ticket-graph using YAML files."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import structlog
import yaml

from ticket_graph.models import StrategyKind

logger = structlog.get_logger()

CONFIG_DIR_NAME = ".ticket-graph"
SECRET_KEYS = ("token",)


class Config:
    """Configuration manager using YAML file storage.

    Local config lives in .ticket-graph/config.yaml in the current directory,
    global config in ~/.ticket-graph/config.yaml. Reads check local first,
    then global.
    """

    def __init__(self, use_global: bool = False, config_dir: Path | None = None) -> None:
        """Initialize configuration manager.

        Args:
            use_global: If True, use global config only. If False, use local config with global fallback.
            config_dir: Custom directory to store config file (overrides use_global)
        """
        if config_dir is not None:
            self.config_dir = Path(config_dir)
            self.is_global = use_global
        elif use_global:
            self.config_dir = Path.home() / CONFIG_DIR_NAME
            self.is_global = True
        else:
            self.config_dir = Path.cwd() / CONFIG_DIR_NAME
            self.is_global = False

        self.config_file = self.config_dir / "config.yaml"
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self._config: dict[str, Any] = self._load(self.config_file)

        self._global_config: dict[str, Any] = {}
        if not self.is_global:
            global_config_file = Path.home() / CONFIG_DIR_NAME / "config.yaml"
            if global_config_file.exists() and global_config_file != self.config_file:
                try:
                    self._global_config = self._load(global_config_file)
                except ValueError as e:
                    logger.warning("Failed to load global config", error=str(e))

        logger.debug("Config initialized", config_file=str(self.config_file), is_global=self.is_global)

    @staticmethod
    def _load(path: Path) -> dict[str, Any]:
        """Load a YAML mapping, treating a missing file as empty."""
        if not path.exists():
            logger.debug("Config file does not exist, initializing empty config", path=str(path))
            return {}
        try:
            with open(path, "r") as f:
                config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error("Failed to load config", path=str(path), error=str(e))
            raise ValueError(f"Failed to load config from {path}: {e}") from e
        if not isinstance(config, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        logger.debug("Config loaded successfully", keys=list(config.keys()))
        return config

    def _save(self) -> None:
        try:
            with open(self.config_file, "w") as f:
                yaml.safe_dump(self._config, f, default_flow_style=False, sort_keys=False)
            logger.debug("Config saved successfully")
        except (OSError, yaml.YAMLError) as e:
            logger.error("Failed to save config", error=str(e))
            raise ValueError(f"Failed to save config to {self.config_file}: {e}") from e

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value, falling back to global config for local instances."""
        if key in self._config:
            logger.debug("Getting config value from local", key=key)
            return self._config[key]
        if not self.is_global and key in self._global_config:
            logger.debug("Getting config value from global", key=key)
            return self._global_config[key]
        logger.debug("Config value not found", key=key)
        return default

    def set(self, key: str, value: str) -> None:
        logger.debug("Setting config value", key=key)
        self._config[key] = value
        self._save()

    def unset(self, key: str) -> None:
        logger.debug("Unsetting config value", key=key)
        if key in self._config:
            del self._config[key]
            self._save()

    def list(self) -> dict[str, Any]:
        """All settings; local instances merge global under local."""
        if self.is_global:
            return self._config.copy()
        merged = self._global_config.copy()
        merged.update(self._config)
        return merged


def is_secret(key: str) -> bool:
    return key.rsplit(".", 1)[-1] in SECRET_KEYS


def mask(key: str, value: Any) -> str:
    """Hide all but the last four characters of secret values."""
    text = str(value)
    if not is_secret(key):
        return text
    if len(text) <= 4:
        return "****"
    return "*" * (len(text) - 4) + text[-4:]


def get_config(use_global: bool = False) -> Config:
    """Get a configuration instance."""
    return Config(use_global=use_global)


def _int_setting(config: Config | Mapping[str, Any], key: str, default: int, low: int, high: int) -> int:
    raw = config.get(key, default)
    try:
        value = int(raw)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from e
    if not low <= value <= high:
        raise ValueError(f"{key} must be between {low} and {high}, got {value}")
    return value


@dataclass
class AnalysisSettings:
    """Validated analysis knobs."""

    depth: int = 3
    comment_limit: int = 5
    similar_limit: int = 10
    strategies: tuple[StrategyKind, ...] = field(default_factory=lambda: tuple(StrategyKind))

    @classmethod
    def from_config(cls, config: Config | Mapping[str, Any]) -> "AnalysisSettings":
        """Read ``analysis.*`` keys from a config or a plain mapping of settings.

        Raises:
            ValueError: if a value is malformed or out of range
        """
        raw_strategies = config.get("analysis.strategies")
        if raw_strategies:
            names = raw_strategies if isinstance(raw_strategies, list) else str(raw_strategies).split(",")
            try:
                strategies = tuple(StrategyKind(name.strip().lower()) for name in names if name.strip())
            except ValueError as e:
                valid = ", ".join(k.value for k in StrategyKind)
                raise ValueError(f"analysis.strategies must be a subset of: {valid}") from e
        else:
            strategies = tuple(StrategyKind)

        return cls(
            depth=_int_setting(config, "analysis.depth", 3, 1, 10),
            comment_limit=_int_setting(config, "analysis.comment_limit", 5, 0, 100),
            similar_limit=_int_setting(config, "analysis.similar_limit", 10, 1, 100),
            strategies=strategies,
        )
