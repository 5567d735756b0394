"""System health endpoints."""

from __future__ import annotations

import time

from fastapi import APIRouter

from prediction_resolver.api.deps import app_state

router = APIRouter()

_start_time = time.time()


@router.get("/system/health")
async def health_check() -> dict:
    """Report database, Redis, and ledger RPC reachability."""
    checks: dict[str, str] = {}

    if app_state.db is None:
        checks["database"] = "not_configured"
    else:
        checks["database"] = "ok" if app_state.db.health_check() else "error"

    if app_state.store is None:
        checks["redis"] = "not_configured"
    else:
        checks["redis"] = "ok" if await app_state.store.health_check() else "error"

    if app_state.ledger_client is None:
        checks["ledger"] = "not_configured"
    else:
        checks["ledger"] = "ok" if await app_state.ledger_client.health_check() else "error"

    healthy = all(v != "error" for v in checks.values())
    return {
        "status": "healthy" if healthy else "degraded",
        **checks,
        "uptime": int(time.time() - _start_time),
    }
