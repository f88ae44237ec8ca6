"""Loading of testgate.yaml configuration files."""

import asyncio
from pathlib import Path

import yaml
from pydantic import ValidationError

from testgate.models.config import ConfigFile


class ConfigError(ValueError):
    """Raised when a configuration file cannot be used."""


async def load_config_file(path: Path) -> ConfigFile:
    """Load and validate a YAML configuration file.

    Args:
        path: Path to the YAML file

    Returns:
        Parsed configuration

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigError: If the file is not valid YAML or not a valid configuration

    """
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    content = await asyncio.to_thread(path.read_text, encoding="utf-8")

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return ConfigFile()
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    try:
        return ConfigFile.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e
