"""Configuration commands for the agent-kanban CLI.

Only the keys the board reads are accepted, and a value is written only after
the settings it would produce have been validated.
"""

import structlog
from cyclopts import App

from agent_kanban.config import check_key, get_config, load_settings, settings_items

logger = structlog.get_logger()

config_app = App(name="config", help="Manage agent-kanban settings")


def _scope(global_: bool) -> str:
    return "global" if global_ else "local"


@config_app.command
def set(key: str, value: str, global_: bool = False) -> None:
    """Set a board setting after checking that it is valid.

    Args:
        key: Setting name, e.g. agent.base_url or defaults.story_points
        value: New value; numbers are given as text and typed when loaded
        global_: If True, write ~/.agent-kanban/config.yaml instead of the local file.

    Raises:
        ValueError: If the key is unknown or the value would make the settings invalid.
    """
    check_key(key)
    config = get_config(use_global=global_)
    try:
        load_settings(config.staged(key, value))
    except ValueError as e:
        logger.warning("Rejected config value", key=key, value=value, error=str(e))
        raise ValueError(f"Not saving {key} = {value}: {e}") from e
    config.set(key, value)
    print(f"Set {key} = {value} ({_scope(global_)})")


@config_app.command
def unset(key: str, global_: bool = False) -> None:
    """Remove a board setting so its default applies again."""
    check_key(key)
    config = get_config(use_global=global_)
    config.unset(key)
    print(f"Unset {key} ({_scope(global_)})")


@config_app.command
def get(key: str, global_: bool = False) -> None:
    """Show the effective value of a board setting."""
    check_key(key)
    config = get_config(use_global=global_)
    value = settings_items(load_settings(config))[key]
    suffix = "" if config.get(key) is not None else " (default)"
    print(f"{key} = {value}{suffix}")


@config_app.command(name="list")
def list_config(global_: bool = False) -> None:
    """List every board setting with its effective value.

    Values that come from no config file are marked as defaults. Keys in the
    files that the board does not read are listed separately.
    """
    config = get_config(use_global=global_)
    stored = config.list()
    effective = settings_items(load_settings(config))

    title = "Global settings" if global_ else "Settings"
    print(f"{title}:\n")
    for key, value in effective.items():
        suffix = "" if key in stored else " (default)"
        print(f"{key} = {value}{suffix}")

    ignored = sorted(key for key in stored if key not in effective)
    if ignored:
        print(f"\nIgnored keys: {', '.join(ignored)}")
