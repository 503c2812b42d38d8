"""Unit tests for configuration loading and the application context."""

import asyncio
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from src.marketplace.runtime.config.config_data import ConfigData, EntitlementConfig
from src.marketplace.runtime.config.config_template import (
    load_templated_yaml,
    substitute_env_vars,
)
from src.marketplace.runtime.context import (
    AppContext,
    get_config,
    get_context,
    with_context,
)
from src.marketplace.runtime.settings import (
    EnvironmentVariables,
    resolve_protected_account_id,
)

REPOSITORY_CONFIG = Path(__file__).resolve().parents[3] / "config.yaml"


class TestSubstituteEnvVars:
    """Tests for ${VAR} placeholder substitution."""

    def test_default_used_when_unset(self):
        with patch.dict(os.environ, {}, clear=True):
            assert substitute_env_vars("url: ${DB_URL:-sqlite:///x.db}") == "url: sqlite:///x.db"

    def test_environment_value_wins(self):
        with patch.dict(os.environ, {"DB_URL": "postgresql://db"}, clear=True):
            assert substitute_env_vars("url: ${DB_URL:-sqlite:///x.db}") == "url: postgresql://db"

    def test_required_variable_missing(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValueError, match="SECRET"):
                substitute_env_vars("key: ${SECRET}")
            with pytest.raises(ValueError, match="must be set"):
                substitute_env_vars("key: ${SECRET:?must be set}")

    def test_comment_lines_are_not_substituted(self):
        text = "# use ${SECRET} here\n  # or ${OTHER:-x}\nkey: ${KEY:-value}\n"
        with patch.dict(os.environ, {}, clear=True):
            assert substitute_env_vars(text) == (
                "# use ${SECRET} here\n  # or ${OTHER:-x}\nkey: value\n"
            )


class TestLoadTemplatedYaml:
    def test_repository_config_loads_with_empty_environment(self):
        with patch.dict(os.environ, {}, clear=True):
            config = load_templated_yaml(REPOSITORY_CONFIG)

        assert config.app.environment == "development"
        assert config.app.port == 8000
        assert config.database.password_env_var == "DATABASE_PASSWORD"
        assert config.redis.enabled is False
        assert config.change_feed.backend == "memory"
        assert config.entitlement.protected_account_id is None
        assert config.session.ttl_seconds == 86400

    def test_missing_file_yields_defaults(self, tmp_path):
        config = load_templated_yaml(tmp_path / "absent.yaml")

        assert config == ConfigData()

    def test_loads_sections_with_substitution(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "config:\n"
            "  change_feed:\n"
            "    backend: ${FEED_BACKEND:-memory}\n"
            "  entitlement:\n"
            "    protected_account_id: ${PROTECTED_ACCOUNT_ID:-root-admin}\n"
            "  retry:\n"
            "    max_attempts: 5\n"
        )

        with patch.dict(os.environ, {"FEED_BACKEND": "redis"}, clear=True):
            config = load_templated_yaml(path)

        assert config.change_feed.backend == "redis"
        assert config.entitlement.protected_account_id == "root-admin"
        assert config.retry.max_attempts == 5
        assert config.session.cookie_name == "session_id"

    def test_invalid_values_are_reported(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("config:\n  change_feed:\n    backend: carrier-pigeon\n")

        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValueError, match="Invalid configuration"):
                load_templated_yaml(path)


class TestContext:
    """Tests for the context-scoped configuration."""

    def test_default_context_available(self):
        context = get_context()

        assert isinstance(context, AppContext)
        assert context.config is get_config()

    def test_override_applies_only_inside_block(self):
        original = get_config()
        override = ConfigData(entitlement=EntitlementConfig(protected_account_id="root-admin"))

        with with_context(override):
            assert get_config().entitlement.protected_account_id == "root-admin"
            # Unset sections are inherited
            assert get_config().session == original.session

        assert get_config() is original

    def test_nested_overrides_unwind(self):
        outer = ConfigData(entitlement=EntitlementConfig(protected_account_id="outer"))
        inner = ConfigData(entitlement=EntitlementConfig(protected_account_id="inner"))

        with with_context(outer):
            with with_context(inner):
                assert get_config().entitlement.protected_account_id == "inner"
            assert get_config().entitlement.protected_account_id == "outer"

    def test_none_is_a_no_op(self):
        original = get_config()
        with with_context(None):
            assert get_config() is original

    def test_rejects_other_types(self):
        with pytest.raises(ValueError):
            with with_context({"entitlement": {}}):
                pass

    @pytest.mark.asyncio
    async def test_tasks_keep_their_own_override(self):
        async def read_in(account_id: str) -> str | None:
            override = ConfigData(entitlement=EntitlementConfig(protected_account_id=account_id))
            with with_context(override):
                await asyncio.sleep(0)
                return get_config().entitlement.protected_account_id

        assert await asyncio.gather(read_in("a"), read_in("b")) == ["a", "b"]


class TestEnvironmentVariables:
    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            env = EnvironmentVariables(_env_file=None)

        assert env.environment == "development"
        assert env.protected_account_id is None

    def test_protected_account_resolution(self, monkeypatch):
        monkeypatch.setenv("PROTECTED_ACCOUNT_ID", "from-env")

        assert resolve_protected_account_id(ConfigData()) == "from-env"
        configured = ConfigData(entitlement=EntitlementConfig(protected_account_id="from-config"))
        assert resolve_protected_account_id(configured) == "from-config"
