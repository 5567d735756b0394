"""Dependency injection for the FastAPI application."""

from __future__ import annotations

from prediction_resolver.config import AppConfig
from prediction_resolver.ledger.client import LedgerClient
from prediction_resolver.pricing.coingecko import CoinGeckoProvider
from prediction_resolver.registry.db import Database
from prediction_resolver.registry.queries import ResolutionRegistry
from prediction_resolver.resolution.actors import ActorDirectory
from prediction_resolver.resolution.engine import ResolutionEngine
from prediction_resolver.resolution.sweep import ResolutionSweeper
from prediction_resolver.store.kv import RedisStore


class AppState:
    """Holds shared application state initialised during lifespan."""

    def __init__(self) -> None:
        self.config: AppConfig | None = None
        self.db: Database | None = None
        self.registry: ResolutionRegistry | None = None
        self.store: RedisStore | None = None
        self.ledger_client: LedgerClient | None = None
        self.price_provider: CoinGeckoProvider | None = None
        self.engine: ResolutionEngine | None = None
        self.actors: ActorDirectory | None = None
        self.sweeper: ResolutionSweeper | None = None


# Singleton shared across the app
app_state = AppState()


def get_engine() -> ResolutionEngine:
    if app_state.engine is None:
        raise RuntimeError("ResolutionEngine not initialised")
    return app_state.engine


def get_actors() -> ActorDirectory:
    if app_state.actors is None:
        raise RuntimeError("ActorDirectory not initialised")
    return app_state.actors
