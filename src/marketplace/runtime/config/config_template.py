"""Load ``config.yaml`` with ``${VAR}`` placeholders resolved from the environment."""

import os
import re
from pathlib import Path

import yaml
from loguru import logger
from pydantic import ValidationError

from src.marketplace.runtime.config.config_data import ConfigData

_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")


def _resolve(expression: str) -> str:
    """Resolve ``VAR``, ``VAR:-default`` or ``VAR:?message``."""
    if ":-" in expression:
        name, default = expression.split(":-", 1)
        return os.getenv(name, default)

    name, _, message = expression.partition(":?")
    value = os.getenv(name)
    if value is None:
        raise ValueError(
            f"Required environment variable {name}: {message}"
            if message
            else f"Required environment variable {name} not set"
        )
    return value


def substitute_env_vars(text: str) -> str:
    """Resolve placeholders line by line; full-line ``#`` comments are left as they are."""
    return "".join(
        line
        if line.lstrip().startswith("#")
        else _PLACEHOLDER.sub(lambda match: _resolve(match.group(1)), line)
        for line in text.splitlines(keepends=True)
    )


def _promote_environment_overrides(environment: str) -> None:
    # PRODUCTION_DATABASE_URL overrides DATABASE_URL when running in production
    prefix = f"{environment.upper()}_"
    for name, value in list(os.environ.items()):
        if name.startswith(prefix):
            os.environ[name.removeprefix(prefix)] = value


def load_templated_yaml(file_path: Path) -> ConfigData:
    """Parse the ``config:`` section of ``file_path`` into ``ConfigData``.

    A missing file yields the defaults. Raises ValueError when a required
    variable is unset or the content does not validate.
    """
    if not file_path.exists():
        logger.debug("No configuration file at {}; using defaults", file_path)
        return ConfigData()

    _promote_environment_overrides(os.getenv("APP_ENVIRONMENT", "development"))
    try:
        document = yaml.safe_load(substitute_env_vars(file_path.read_text())) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing {file_path}: {e}") from e

    try:
        return ConfigData.model_validate(document.get("config") or {})
    except ValidationError as e:
        raise ValueError(f"Invalid configuration in {file_path}: {e}") from e
