"""CLI entry point for the prediction resolver.

Provides commands for operating the resolution service:
  - resolve: Resolve one matured slot for a wallet or agent
  - resolve-batch: Resolve every matured slot for a wallet or agent
  - preview: Projected score for explicit inputs
  - decode: Fetch and print a decoded prediction account
  - sweep: Run one resolution sweep over all accounts
  - migrate: Run database migrations
  - serve: Run the HTTP API
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from decimal import Decimal

from prediction_resolver.config import load_config
from prediction_resolver.ledger.codec import CorruptAccountError, decode
from prediction_resolver.models.prediction import Category, PredictionAccount
from prediction_resolver.models.resolution import ResolvedBy, ScoredSlot
from prediction_resolver.registry.db import Database
from prediction_resolver.resolution.errors import ResolutionError
from prediction_resolver.services import Services, open_services


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _print(data: dict) -> None:
    print(json.dumps(data, indent=2, default=str))


def _scored_dict(s: ScoredSlot) -> dict:
    return {
        "predictionType": str(s.slot.category),
        "siloIndex": s.slot.rank,
        "symbol": s.slot.asset_id,
        "predictedPercentage": s.slot.predicted_percentage,
        "actualPercentage": f"{s.actual_percentage:.4f}",
        "resolutionPrice": str(s.resolution_price),
        "points": s.points,
        "accuracy": str(s.score.label),
    }


def _account_dict(account: PredictionAccount) -> dict:
    return {
        "owner": account.owner,
        "schema": account.schema,
        "points": account.points,
        "lastUpdated": account.last_updated,
        "predictionCount": account.prediction_count,
        "slots": [
            {
                "predictionType": str(s.category),
                "siloIndex": s.rank,
                "symbol": s.asset_id,
                "entryTimestamp": s.entry_timestamp,
                "duration": s.duration,
                "predictedPercentage": s.predicted_percentage,
                "entryPrice": str(s.entry_price),
                "resolved": s.is_resolved,
            }
            for s in account.active_slots
        ],
    }


async def _with_services(action) -> int:
    """Open services, run ``action(services)``, and map errors to an exit code."""
    services = await open_services(load_config())
    try:
        _print(await action(services))
        return 0
    except ResolutionError as exc:
        _print(exc.to_dict())
        return 1
    finally:
        await services.close()


def cmd_resolve(args: argparse.Namespace) -> int:
    """Resolve one matured slot."""

    async def _run(services: Services) -> dict:
        wallet = services.actors.resolve(args.wallet, args.agent)
        result = await services.engine.resolve_one(
            wallet, Category(args.type), args.index, ResolvedBy.USER,
        )
        return {
            "walletAddress": wallet,
            **_scored_dict(result.scored),
            "previousTotal": result.previous_total,
            "newTotal": result.new_total,
            "signature": result.signature,
        }

    return asyncio.run(_with_services(_run))


def cmd_resolve_batch(args: argparse.Namespace) -> int:
    """Resolve every matured slot and clear the account."""

    async def _run(services: Services) -> dict:
        wallet = services.actors.resolve(args.wallet, args.agent)
        result = await services.engine.resolve_batch(wallet, ResolvedBy.USER)
        return {
            "walletAddress": wallet,
            "resolvedCount": len(result.scored),
            "totalPointsAwarded": result.total_points_awarded,
            "newTotal": result.new_total,
            "signature": result.signature,
            "results": [_scored_dict(s) for s in result.scored],
            "dropped": [f"{s.category}#{s.rank}" for s in result.dropped],
        }

    return asyncio.run(_with_services(_run))


def cmd_preview(args: argparse.Namespace) -> int:
    """Projected score without touching the ledger."""

    async def _run(services: Services) -> dict:
        result = await services.engine.preview(
            asset_id=args.asset,
            entry_timestamp=args.entry_timestamp,
            duration=args.duration,
            entry_price=Decimal(args.entry_price),
            predicted_percentage=Decimal(args.predicted),
            category=Category(args.type),
        )
        return {
            "resolutionPrice": str(result.resolution_price),
            "actualPercentage": f"{result.actual_percentage:.4f}",
            "points": result.score.points,
            "accuracy": str(result.score.label),
        }

    return asyncio.run(_with_services(_run))


def cmd_decode(args: argparse.Namespace) -> int:
    """Fetch and print an actor's decoded prediction account."""

    async def _run(services: Services) -> dict:
        wallet = services.actors.resolve(args.wallet, args.agent)
        data = await services.gateway.fetch_account(wallet)
        if data is None:
            return {"walletAddress": wallet, "account": None}
        try:
            account = decode(data)
        except CorruptAccountError as exc:
            return {"walletAddress": wallet, "error": str(exc)}
        return _account_dict(account)

    return asyncio.run(_with_services(_run))


def cmd_sweep(args: argparse.Namespace) -> int:
    """Run one resolution sweep pass."""

    async def _run(services: Services) -> dict:
        report = await services.sweeper.run_once()
        return report.to_dict()

    return asyncio.run(_with_services(_run))


def cmd_migrate(args: argparse.Namespace) -> int:
    """Run database migrations."""
    config = load_config()
    with Database(config.db_dsn) as db:
        applied = db.run_migrations()
    print(f"Migrations complete ({len(applied)} applied).")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from prediction_resolver.api.app import create_app

    uvicorn.run(create_app(use_lifespan=True), host=args.host, port=args.port)
    return 0


def _add_actor_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--wallet", help="Wallet address of the predictor")
    p.add_argument("--agent", help="Agent name (looked up in AGENT_WALLETS)")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="prediction-resolver",
        description="Resolve matured on-chain price predictions",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    subs = parser.add_subparsers(dest="command", required=True)
    categories = [str(c) for c in Category]

    # resolve
    p_resolve = subs.add_parser("resolve", help="Resolve one matured prediction slot")
    _add_actor_args(p_resolve)
    p_resolve.add_argument("--type", required=True, choices=categories, help="Prediction category")
    p_resolve.add_argument("--index", required=True, type=int, help="Slot index (0-4)")

    # resolve-batch
    p_batch = subs.add_parser("resolve-batch", help="Resolve all matured slots and clear them")
    _add_actor_args(p_batch)

    # preview
    p_preview = subs.add_parser("preview", help="Projected score for explicit inputs")
    p_preview.add_argument("--asset", required=True, help="CoinGecko asset ID")
    p_preview.add_argument("--entry-timestamp", required=True, type=int, help="Unix seconds")
    p_preview.add_argument("--duration", required=True, type=int, help="Seconds until resolution")
    p_preview.add_argument("--entry-price", required=True, help="Price at prediction time (USD)")
    p_preview.add_argument("--predicted", required=True, help="Predicted percentage move")
    p_preview.add_argument("--type", required=True, choices=categories, help="Prediction category")

    # decode
    p_decode = subs.add_parser("decode", help="Print a decoded prediction account")
    _add_actor_args(p_decode)

    # sweep
    subs.add_parser("sweep", help="Run one resolution sweep over all accounts")

    # migrate
    subs.add_parser("migrate", help="Run database migrations")

    # serve
    p_serve = subs.add_parser("serve", help="Run the HTTP API")
    p_serve.add_argument("--host", default="0.0.0.0")
    p_serve.add_argument("--port", type=int, default=8000)

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    commands = {
        "resolve": cmd_resolve,
        "resolve-batch": cmd_resolve_batch,
        "preview": cmd_preview,
        "decode": cmd_decode,
        "sweep": cmd_sweep,
        "migrate": cmd_migrate,
        "serve": cmd_serve,
    }
    sys.exit(commands[args.command](args))


if __name__ == "__main__":
    main()
