from __future__ import annotations

from prediction_resolver.ledger.program import parse_pubkey
from prediction_resolver.resolution.errors import ErrorCode, ResolutionError


class ActorDirectory:
    """Maps request identity (wallet address or named agent) to a wallet."""

    def __init__(self, agent_wallets: dict[str, str] | None = None) -> None:
        self._agents = dict(agent_wallets or {})

    @property
    def agent_names(self) -> list[str]:
        return sorted(self._agents)

    def resolve(self, wallet_address: str | None = None, agent_name: str | None = None) -> str:
        wallet = (wallet_address or "").strip()
        if not wallet and agent_name:
            if agent_name not in self._agents:
                raise ResolutionError(ErrorCode.INVALID_AGENT, f"Invalid agent name: {agent_name}")
            wallet = self._agents[agent_name]
        if not wallet:
            raise ResolutionError(
                ErrorCode.MISSING_WALLET, "Wallet address or agent name required",
            )
        try:
            return str(parse_pubkey(wallet))
        except ValueError:
            raise ResolutionError(ErrorCode.INVALID_WALLET, f"Invalid wallet address: {wallet}")
