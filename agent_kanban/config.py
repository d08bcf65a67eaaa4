"""Configuration for agent-kanban using YAML files."""

import copy
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog
import yaml

from agent_kanban.agent import DEFAULT_BASE_URL
from agent_kanban.creation import TicketForm

logger = structlog.get_logger()

CONFIG_DIR_NAME = ".agent-kanban"
CONFIG_FILE_NAME = "config.yaml"


def _global_config_dir() -> Path:
    return Path.home() / CONFIG_DIR_NAME


class Config:
    """Configuration manager using YAML file storage.

    Local config lives in .agent-kanban/config.yaml under the current directory,
    global config in ~/.agent-kanban/config.yaml. Reads check local first and
    fall back to global.
    """

    def __init__(self, use_global: bool = False, config_dir: Path | None = None) -> None:
        """Initialize configuration manager.

        Args:
            use_global: If True, use global config only. If False, use local config with global fallback.
            config_dir: Custom directory to store config file (overrides the default location)
        """
        if config_dir is not None:
            self.config_dir = Path(config_dir)
        elif use_global:
            self.config_dir = _global_config_dir()
        else:
            self.config_dir = Path.cwd() / CONFIG_DIR_NAME
        self.is_global = use_global
        self.config_file = self.config_dir / CONFIG_FILE_NAME

        self._config: dict[str, Any] = self._read(self.config_file)

        self._global_config: dict[str, Any] = {}
        if not self.is_global:
            global_file = _global_config_dir() / CONFIG_FILE_NAME
            if global_file != self.config_file:
                try:
                    self._global_config = self._read(global_file)
                except ValueError as e:
                    logger.warning("Failed to load global config", error=str(e))

        logger.debug("Config initialized", config_file=str(self.config_file), is_global=self.is_global)

    @staticmethod
    def _read(path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ValueError(f"Failed to load config from {path}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        return data

    def _save(self) -> None:
        self.config_dir.mkdir(parents=True, exist_ok=True)
        try:
            with open(self.config_file, "w") as f:
                yaml.safe_dump(self._config, f, default_flow_style=False, sort_keys=False)
        except OSError as e:
            logger.error("Failed to save config", error=str(e))
            raise ValueError(f"Failed to save config to {self.config_file}: {e}") from e
        logger.debug("Config saved", config_file=str(self.config_file))

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._config:
            return self._config[key]
        if not self.is_global and key in self._global_config:
            return self._global_config[key]
        return default

    def set(self, key: str, value: Any) -> None:
        logger.debug("Setting config value", key=key)
        self._config[key] = value
        self._save()

    def staged(self, key: str, value: Any) -> "Config":
        """Return an unsaved copy of this config with one value changed.

        Args:
            key: Configuration key
            value: Value the copy should hold for ``key``

        Returns:
            A Config reading the same files, with ``key`` overridden in memory only.
        """
        candidate = copy.copy(self)
        candidate._config = {**self._config, key: value}
        return candidate

    def unset(self, key: str) -> None:
        logger.debug("Unsetting config value", key=key)
        if key in self._config:
            del self._config[key]
            self._save()

    def list(self) -> dict[str, Any]:
        """All settings; for local config, global values overlaid by local ones."""
        if self.is_global:
            return self._config.copy()
        merged = self._global_config.copy()
        merged.update(self._config)
        return merged


def get_config(use_global: bool = False) -> Config:
    return Config(use_global=use_global)


@dataclass(frozen=True)
class Settings:
    """Typed view over the configuration keys the board uses."""

    agent_base_url: str = DEFAULT_BASE_URL
    agent_timeout: float = 30.0
    ticket_window: int = 8
    chat_window: int = 10
    default_form: TicketForm = TicketForm()


def _as_int(config: Config, key: str, default: int) -> int:
    value = config.get(key, default)
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Config value {key} must be an integer, got {value!r}") from e


def _as_float(config: Config, key: str, default: float) -> float:
    value = config.get(key, default)
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Config value {key} must be a number, got {value!r}") from e


def load_settings(config: Config) -> Settings:
    """Read and validate the board settings.

    Raises:
        ValueError: If a value has the wrong type or is outside its allowed set.
    """
    base = Settings()
    form = TicketForm(
        priority=str(config.get("defaults.priority", base.default_form.priority)),
        assignee=str(config.get("defaults.assignee", base.default_form.assignee)),
        story_points=_as_int(config, "defaults.story_points", base.default_form.story_points),
    )
    settings = Settings(
        agent_base_url=str(config.get("agent.base_url", base.agent_base_url)),
        agent_timeout=_as_float(config, "agent.timeout", base.agent_timeout),
        ticket_window=_as_int(config, "conversation.ticket_window", base.ticket_window),
        chat_window=_as_int(config, "conversation.chat_window", base.chat_window),
        default_form=form,
    )
    if settings.agent_timeout <= 0:
        raise ValueError("agent.timeout must be positive")
    logger.debug("Settings loaded", base_url=settings.agent_base_url)
    return settings


def settings_items(settings: Settings) -> dict[str, Any]:
    """Flatten settings back into their configuration keys."""
    return {
        "agent.base_url": settings.agent_base_url,
        "agent.timeout": settings.agent_timeout,
        "conversation.ticket_window": settings.ticket_window,
        "conversation.chat_window": settings.chat_window,
        "defaults.priority": settings.default_form.priority,
        "defaults.assignee": settings.default_form.assignee,
        "defaults.story_points": settings.default_form.story_points,
    }


KNOWN_KEYS = tuple(settings_items(Settings()))


def check_key(key: str) -> None:
    """Raise ValueError unless ``key`` is a setting the board reads."""
    if key not in KNOWN_KEYS:
        raise ValueError(f"Unknown config key: {key} (known keys: {', '.join(KNOWN_KEYS)})")
