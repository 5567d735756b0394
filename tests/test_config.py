from __future__ import annotations

import os
from unittest.mock import patch

import pytest

from prediction_resolver.config import DEFAULT_PROGRAM_ID, DEFAULT_RPC_URL, AppConfig, load_config


class TestAppConfig:
    def test_frozen(self) -> None:
        cfg = AppConfig()
        try:
            cfg.rpc_url = "other"  # type: ignore[misc]
            assert False, "Should be frozen"
        except AttributeError:
            pass

    def test_secrets_hidden_from_repr(self) -> None:
        cfg = AppConfig(authority_keypair="secret-key", internal_api_token="tok")
        assert "secret-key" not in repr(cfg)
        assert "tok" not in repr(cfg)


class TestLoadConfig:
    def test_defaults(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            cfg = load_config()

        assert cfg.db_dsn == ""
        assert cfg.redis_url == "redis://localhost:6379"
        assert cfg.rpc_url == DEFAULT_RPC_URL
        assert cfg.program_id == DEFAULT_PROGRAM_ID
        assert cfg.coingecko_rpm_limit == 30
        assert cfg.single_lock_ttl_seconds == 90
        assert cfg.batch_lock_ttl_seconds == 120
        assert cfg.confirm_timeout_seconds == 60
        assert cfg.agent_wallets == {}
        assert cfg.enable_sweep is False
        assert cfg.sweep_interval_seconds == 3600

    def test_loads_from_env(self) -> None:
        env = {
            "DATABASE_URL": "postgresql://u:p@host:5432/db",
            "REDIS_URL": "redis://cache:6379/2",
            "SOLANA_RPC_URL": "https://rpc.example",
            "COINGECKO_API_KEY": "cg-123",
            "COINGECKO_RPM_LIMIT": "500",
            "BATCH_LOCK_TTL_SECONDS": "180",
            "AGENT_WALLETS": '{"gpt-5.2": "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin"}',
            "ENABLE_SWEEP": "yes",
            "SWEEP_INTERVAL_SECONDS": "600",
        }
        with patch.dict(os.environ, env, clear=True):
            cfg = load_config()

        assert cfg.db_dsn == "postgresql://u:p@host:5432/db"
        assert cfg.redis_url == "redis://cache:6379/2"
        assert cfg.rpc_url == "https://rpc.example"
        assert cfg.coingecko_api_key == "cg-123"
        assert cfg.coingecko_rpm_limit == 500
        assert cfg.batch_lock_ttl_seconds == 180
        assert cfg.agent_wallets == {"gpt-5.2": "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin"}
        assert cfg.enable_sweep is True
        assert cfg.sweep_interval_seconds == 600

    def test_agent_wallets_must_be_object(self) -> None:
        with patch.dict(os.environ, {"AGENT_WALLETS": '["a", "b"]'}, clear=True):
            with pytest.raises(ValueError):
                load_config()

    @pytest.mark.parametrize("name", ["SINGLE_LOCK_TTL_SECONDS", "BATCH_LOCK_TTL_SECONDS"])
    def test_lock_ttl_must_exceed_confirm_timeout(self, name: str) -> None:
        env = {name: "60", "CONFIRM_TIMEOUT_SECONDS": "60"}
        with patch.dict(os.environ, env, clear=True):
            with pytest.raises(ValueError, match="confirm_timeout_seconds"):
                load_config()

    def test_longer_confirm_timeout_needs_longer_locks(self) -> None:
        env = {
            "CONFIRM_TIMEOUT_SECONDS": "150",
            "SINGLE_LOCK_TTL_SECONDS": "200",
            "BATCH_LOCK_TTL_SECONDS": "300",
        }
        with patch.dict(os.environ, env, clear=True):
            cfg = load_config()

        assert cfg.single_lock_ttl_seconds == 200
        assert cfg.confirm_timeout_seconds == 150
