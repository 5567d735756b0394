"""FastAPI application factory with internal-token middleware and lifespan management."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from prediction_resolver.api.deps import app_state
from prediction_resolver.config import load_config
from prediction_resolver.resolution.sweep import sweep_loop
from prediction_resolver.services import open_services

logger = logging.getLogger(__name__)

API_PREFIX = "/api/resolve"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage startup/shutdown of DB, Redis, ledger and price clients."""
    config = load_config()
    services = await open_services(config)

    # Populate shared state
    app_state.config = config
    app_state.db = services.db
    app_state.registry = services.registry
    app_state.store = services.store
    app_state.ledger_client = services.ledger_client
    app_state.price_provider = services.provider
    app_state.engine = services.engine
    app_state.actors = services.actors
    app_state.sweeper = services.sweeper

    _bg_tasks = []
    if config.enable_sweep:
        _bg_tasks.append(
            asyncio.create_task(sweep_loop(services.sweeper, config.sweep_interval_seconds))
        )
        logger.info("Resolution sweep enabled every %ds", config.sweep_interval_seconds)
    logger.info("API started: ledger %s, program %s", config.rpc_url, config.program_id)
    yield

    for task in _bg_tasks:
        task.cancel()

    await services.close()
    logger.info("API shutdown complete")


# Paths that don't require the internal token
PUBLIC_PATHS = {
    f"{API_PREFIX}/system/health",
}


class InternalTokenMiddleware(BaseHTTPMiddleware):
    """Require ``x-internal-token`` on API routes when INTERNAL_API_TOKEN is set."""

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if not path.startswith(API_PREFIX) or path in PUBLIC_PATHS:
            return await call_next(request)

        # No token configured (dev mode)
        config = app_state.config
        if not config or not config.internal_api_token:
            return await call_next(request)

        if request.headers.get("x-internal-token") != config.internal_api_token:
            return JSONResponse(status_code=401, content={"detail": "Not authenticated"})

        return await call_next(request)


def create_app(*, use_lifespan: bool = True) -> FastAPI:
    """Build and return the FastAPI application.

    Args:
        use_lifespan: If False, skip the production lifespan (useful for testing
            where deps are injected via app_state directly).
    """
    app = FastAPI(
        title="Prediction Resolver API",
        version="0.1.0",
        lifespan=lifespan if use_lifespan else None,
    )

    # Token middleware must be added before routes
    app.add_middleware(InternalTokenMiddleware)

    from prediction_resolver.api.routes import resolve, system

    app.include_router(resolve.router, prefix=API_PREFIX, tags=["resolve"])
    app.include_router(system.router, prefix=API_PREFIX, tags=["system"])

    return app
