"""Load cmsum's own settings from TOML."""

import tomllib
from pathlib import Path

from cmsum.config.models import ToolSettings

DEFAULT_SETTINGS_FILE = "cmsum.toml"


def load_settings(config_path: Path | None = None) -> ToolSettings:
    """Load tool settings from a TOML file.

    Example ``cmsum.toml``::

        [connection]
        connect_timeout = 5
        pool_size = 2
        echo = false

        [logging]
        level = "INFO"

    Args:
        config_path: Explicit settings file. If None, ``cmsum.toml`` in the
            current directory is used when present, otherwise defaults.

    Returns:
        ToolSettings

    Raises:
        FileNotFoundError: If an explicit config_path doesn't exist
        ValueError: If the TOML is malformed
    """
    if config_path is None:
        config_path = Path.cwd() / DEFAULT_SETTINGS_FILE
        if not config_path.exists():
            return ToolSettings()
    elif not config_path.exists():
        raise FileNotFoundError(f"Settings file not found: {config_path}")

    with open(config_path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid settings file {config_path}: {e}") from e

    fields = dict(data.get("connection", {}))
    logging_settings = data.get("logging", {})
    if "level" in logging_settings:
        fields["log_level"] = str(logging_settings["level"]).upper()

    return ToolSettings(**fields)
