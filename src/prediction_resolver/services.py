"""Wiring of clients and the resolution engine from an AppConfig."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from prediction_resolver.config import AppConfig
from prediction_resolver.ledger.client import LedgerClient
from prediction_resolver.ledger.program import (
    AuthorityNotConfigured,
    LedgerGateway,
    PredictionProgram,
    SigningAuthority,
)
from prediction_resolver.pricing.coingecko import CoinGeckoProvider
from prediction_resolver.pricing.oracle import PriceOracle, preview_oracle
from prediction_resolver.registry.db import Database
from prediction_resolver.registry.queries import ResolutionRegistry
from prediction_resolver.resolution.actors import ActorDirectory
from prediction_resolver.resolution.engine import ResolutionEngine
from prediction_resolver.resolution.sweep import ResolutionSweeper
from prediction_resolver.store.kv import RedisStore
from prediction_resolver.store.lock import LockManager

logger = logging.getLogger(__name__)


def load_authority(config: AppConfig) -> SigningAuthority | None:
    try:
        return SigningAuthority.from_secret(config.authority_keypair)
    except AuthorityNotConfigured:
        logger.warning("AUTHORITY_KEYPAIR not set; resolutions will fail at submission")
        return None


@dataclass
class Services:
    config: AppConfig
    db: Database | None
    registry: ResolutionRegistry | None
    store: RedisStore
    ledger_client: LedgerClient
    gateway: LedgerGateway
    provider: CoinGeckoProvider
    engine: ResolutionEngine
    sweeper: ResolutionSweeper
    actors: ActorDirectory

    async def close(self) -> None:
        await self.provider.close()
        await self.ledger_client.close()
        await self.store.close()
        if self.db is not None:
            self.db.close()


async def open_services(config: AppConfig) -> Services:
    """Connect every backing client and assemble the engine.

    The database is optional: without DATABASE_URL the engine still
    resolves against the ledger but keeps no history.
    """
    db: Database | None = None
    registry: ResolutionRegistry | None = None
    if config.db_dsn:
        db = Database(config.db_dsn)
        db.connect()
        registry = ResolutionRegistry(db)
    else:
        logger.warning("DATABASE_URL not set; resolution records will not be persisted")

    store = RedisStore(config.redis_url)
    store.connect()

    ledger_client = LedgerClient(config.rpc_url)
    await ledger_client.start()
    gateway = LedgerGateway(
        ledger_client,
        PredictionProgram(config.program_id),
        authority=load_authority(config),
        confirm_timeout_seconds=config.confirm_timeout_seconds,
    )

    provider = CoinGeckoProvider(
        api_key=config.coingecko_api_key,
        base_url=config.coingecko_base_url,
        rpm_limit=config.coingecko_rpm_limit,
    )
    await provider.start()

    engine = ResolutionEngine(
        ledger=gateway,
        oracle=PriceOracle(provider, store),
        preview_oracle=preview_oracle(provider, store),
        locks=LockManager(store),
        registry=registry,
        single_lock_ttl=config.single_lock_ttl_seconds,
        batch_lock_ttl=config.batch_lock_ttl_seconds,
    )

    return Services(
        config=config,
        db=db,
        registry=registry,
        store=store,
        ledger_client=ledger_client,
        gateway=gateway,
        provider=provider,
        engine=engine,
        sweeper=ResolutionSweeper(gateway, engine),
        actors=ActorDirectory(config.agent_wallets),
    )
