"""Minimal async JSON-RPC client for the handful of ledger calls we need."""

from __future__ import annotations

import asyncio
import base64
import itertools
import logging
import time
from typing import Any

import httpx

logger = logging.getLogger(__name__)

COMMITMENT = "confirmed"
_CONFIRMED_STATES = {"confirmed", "finalized"}


class LedgerError(Exception):
    """RPC failure, rejected transaction, or confirmation timeout."""


def _decode_account_data(account: dict | None) -> bytes | None:
    if not account:
        return None
    data = account.get("data")
    if not data:
        return None
    # [payload, "base64"]
    payload = data[0] if isinstance(data, list) else data
    return base64.b64decode(payload)


class LedgerClient:
    """JSON-RPC 2.0 client over httpx.

    Reads use ``confirmed`` commitment. ``send_transaction`` runs preflight
    simulation; ``confirm_transaction`` polls signature status until the
    transaction is confirmed, fails, or the timeout elapses.
    """

    def __init__(
        self,
        rpc_url: str,
        timeout_seconds: float = 30.0,
        poll_interval: float = 1.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._rpc_url = rpc_url
        self._timeout = timeout_seconds
        self._poll_interval = poll_interval
        self._client = client
        self._ids = itertools.count(1)

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _call(self, method: str, params: list) -> Any:
        if self._client is None:
            await self.start()
        body = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            response = await self._client.post(self._rpc_url, json=body)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise LedgerError(f"{method} failed: {exc}") from exc
        except ValueError as exc:
            raise LedgerError(f"{method} returned invalid JSON") from exc

        if payload.get("error"):
            err = payload["error"]
            raise LedgerError(f"{method} error {err.get('code')}: {err.get('message')}")
        return payload.get("result")

    async def get_account_data(self, address: str) -> bytes | None:
        """Raw account bytes, or None if the account does not exist."""
        result = await self._call(
            "getAccountInfo",
            [address, {"encoding": "base64", "commitment": COMMITMENT}],
        )
        return _decode_account_data((result or {}).get("value"))

    async def get_program_accounts(
        self, program_id: str, data_size: int | None = None,
    ) -> list[tuple[str, bytes]]:
        config: dict[str, Any] = {"encoding": "base64", "commitment": COMMITMENT}
        if data_size is not None:
            config["filters"] = [{"dataSize": data_size}]
        result = await self._call("getProgramAccounts", [program_id, config])
        accounts: list[tuple[str, bytes]] = []
        for item in result or []:
            data = _decode_account_data(item.get("account"))
            if data is not None:
                accounts.append((item["pubkey"], data))
        return accounts

    async def get_latest_blockhash(self) -> str:
        result = await self._call("getLatestBlockhash", [{"commitment": COMMITMENT}])
        return result["value"]["blockhash"]

    async def send_transaction(self, raw: bytes) -> str:
        """Submit a signed transaction; returns its signature."""
        encoded = base64.b64encode(raw).decode("ascii")
        return await self._call(
            "sendTransaction",
            [
                encoded,
                {
                    "encoding": "base64",
                    "skipPreflight": False,
                    "preflightCommitment": COMMITMENT,
                },
            ],
        )

    async def confirm_transaction(self, signature: str, timeout_seconds: float = 60.0) -> None:
        deadline = time.monotonic() + timeout_seconds
        while True:
            result = await self._call("getSignatureStatuses", [[signature]])
            status = ((result or {}).get("value") or [None])[0]
            if status is not None:
                if status.get("err"):
                    raise LedgerError(f"Transaction {signature} failed: {status['err']}")
                if status.get("confirmationStatus") in _CONFIRMED_STATES:
                    logger.debug("Transaction %s %s", signature, status["confirmationStatus"])
                    return
            if time.monotonic() >= deadline:
                raise LedgerError(
                    f"Transaction {signature} not confirmed within {timeout_seconds:.0f}s"
                )
            await asyncio.sleep(self._poll_interval)

    async def health_check(self) -> bool:
        try:
            return (await self._call("getHealth", [])) == "ok"
        except LedgerError:
            logger.exception("Ledger health check failed")
            return False
