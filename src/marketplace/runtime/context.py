"""Context-scoped application configuration.

The active ``AppContext`` lives in a ``ContextVar`` so that each asyncio task
and each test sees its own configuration. It holds configuration only: the
identity of whoever is calling is always passed explicitly.
"""

import os
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from src.marketplace.runtime.config.config_data import ConfigData
from src.marketplace.runtime.config.config_template import load_templated_yaml

CONFIG_PATH_ENV = "MARKETPLACE_CONFIG"


@dataclass(frozen=True)
class AppContext:
    config: ConfigData


_app_context: ContextVar[AppContext] = ContextVar(
    "app_context",
    default=AppContext(config=load_templated_yaml(Path(os.getenv(CONFIG_PATH_ENV, "config.yaml")))),
)


def get_context() -> AppContext:
    return _app_context.get()


def set_context(context: AppContext) -> Token[AppContext]:
    return _app_context.set(context)


def get_config() -> ConfigData:
    """The configuration visible to the current task."""
    return _app_context.get().config


def set_config(config: ConfigData) -> None:
    """Replace the configuration for the rest of the current context."""
    set_context(replace(get_context(), config=config))


def _explicit_fields(model: BaseModel) -> dict[str, Any]:
    """Fields that were set on ``model`` explicitly, nested models included."""
    explicit: dict[str, Any] = {}
    for name in type(model).model_fields:
        value = getattr(model, name)
        if isinstance(value, BaseModel):
            nested = _explicit_fields(value)
            if nested:
                explicit[name] = nested
            elif name in model.model_fields_set:
                explicit[name] = value.model_dump()
        elif name in model.model_fields_set:
            explicit[name] = value
    return explicit


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


@contextmanager
def with_context(config_override: ConfigData | None = None) -> Iterator[None]:
    """Overlay the explicitly set fields of ``config_override`` for the block.

    Example:
        override = ConfigData(entitlement=EntitlementConfig(protected_account_id="root"))
        with with_context(override):
            assert get_config().entitlement.protected_account_id == "root"
    """
    if config_override is None:
        yield
        return
    if not isinstance(config_override, ConfigData):
        raise ValueError(f"config_override must be ConfigData or None, got {type(config_override)}")

    current = get_context()
    merged = ConfigData.model_validate(
        _deep_merge(current.config.model_dump(), _explicit_fields(config_override))
    )
    token = set_context(replace(current, config=merged))
    try:
        yield
    finally:
        _app_context.reset(token)
