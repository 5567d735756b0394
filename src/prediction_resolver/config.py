from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"
DEFAULT_PROGRAM_ID = "GGw3GTVpjwLhHdsK4dY3Kb1Lb3vpz5Ns6zV3aMWcf9xe"
DEFAULT_COINGECKO_URL = "https://api.coingecko.com/api/v3"


@dataclass(frozen=True)
class AppConfig:
    db_dsn: str = ""
    redis_url: str = "redis://localhost:6379"
    rpc_url: str = DEFAULT_RPC_URL
    program_id: str = DEFAULT_PROGRAM_ID
    authority_keypair: str = field(default="", repr=False)
    coingecko_api_key: str = field(default="", repr=False)
    coingecko_base_url: str = DEFAULT_COINGECKO_URL
    coingecko_rpm_limit: int = 30
    single_lock_ttl_seconds: int = 90
    batch_lock_ttl_seconds: int = 120
    confirm_timeout_seconds: int = 60
    agent_wallets: dict[str, str] = field(default_factory=dict)
    enable_sweep: bool = False
    sweep_interval_seconds: int = 3600
    internal_api_token: str = field(default="", repr=False)


def _flag(name: str, default: str = "") -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


def _agent_wallets(raw: str) -> dict[str, str]:
    if not raw.strip():
        return {}
    parsed = json.loads(raw)
    if not isinstance(parsed, dict):
        raise ValueError("AGENT_WALLETS must be a JSON object of agent name -> wallet")
    return {str(k): str(v) for k, v in parsed.items()}


def _check_lock_ttls(config: AppConfig) -> None:
    # a lock must outlive the confirmation wait of the workflow holding it
    for name in ("single_lock_ttl_seconds", "batch_lock_ttl_seconds"):
        if getattr(config, name) <= config.confirm_timeout_seconds:
            raise ValueError(
                f"{name}={getattr(config, name)} must exceed "
                f"confirm_timeout_seconds={config.confirm_timeout_seconds}"
            )


def load_config() -> AppConfig:
    """Load application config from environment variables.

    Loads .env file if present in the current directory.
    """
    env_path = Path(".env")
    if env_path.exists():
        load_dotenv(env_path)

    config = AppConfig(
        db_dsn=os.environ.get("DATABASE_URL", ""),
        redis_url=os.environ.get("REDIS_URL", "redis://localhost:6379"),
        rpc_url=os.environ.get("SOLANA_RPC_URL", DEFAULT_RPC_URL),
        program_id=os.environ.get("PROGRAM_ID", DEFAULT_PROGRAM_ID),
        authority_keypair=os.environ.get("AUTHORITY_KEYPAIR", ""),
        coingecko_api_key=os.environ.get("COINGECKO_API_KEY", ""),
        coingecko_base_url=os.environ.get("COINGECKO_BASE_URL", DEFAULT_COINGECKO_URL),
        coingecko_rpm_limit=int(os.environ.get("COINGECKO_RPM_LIMIT", "30")),
        single_lock_ttl_seconds=int(os.environ.get("SINGLE_LOCK_TTL_SECONDS", "90")),
        batch_lock_ttl_seconds=int(os.environ.get("BATCH_LOCK_TTL_SECONDS", "120")),
        confirm_timeout_seconds=int(os.environ.get("CONFIRM_TIMEOUT_SECONDS", "60")),
        agent_wallets=_agent_wallets(os.environ.get("AGENT_WALLETS", "")),
        enable_sweep=_flag("ENABLE_SWEEP"),
        sweep_interval_seconds=int(os.environ.get("SWEEP_INTERVAL_SECONDS", "3600")),
        internal_api_token=os.environ.get("INTERNAL_API_TOKEN", ""),
    )
    _check_lock_ttls(config)
    return config
