"""Address derivation, signing, and transaction submission for the prediction program."""

from __future__ import annotations

import json
import logging
from typing import Protocol, Sequence

from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from prediction_resolver.ledger.client import LedgerClient, LedgerError
from prediction_resolver.ledger.codec import FULL_SCHEMA
from prediction_resolver.ledger.instructions import LedgerInstruction

logger = logging.getLogger(__name__)

USER_PREDICTIONS_SEED = b"user_predictions"
GLOBAL_STATE_SEED = b"global_state"


class AuthorityNotConfigured(RuntimeError):
    """No signing key is available for mutating instructions."""


def parse_pubkey(value: str) -> Pubkey:
    """Parse a base58 public key, raising ValueError on malformed input."""
    try:
        return Pubkey.from_string(value.strip())
    except Exception as exc:
        raise ValueError(f"Invalid public key: {value!r}") from exc


class PredictionProgram:
    """Derives program addresses and wraps instruction payloads."""

    def __init__(self, program_id: str) -> None:
        self.program_id = parse_pubkey(program_id)
        self.global_state, _ = Pubkey.find_program_address([GLOBAL_STATE_SEED], self.program_id)

    def predictions_address(self, owner: str) -> Pubkey:
        pda, _ = Pubkey.find_program_address(
            [USER_PREDICTIONS_SEED, bytes(parse_pubkey(owner))], self.program_id,
        )
        return pda

    def to_instruction(
        self, ix: LedgerInstruction, owner: str, authority: Pubkey,
    ) -> Instruction:
        accounts = [
            AccountMeta(self.predictions_address(owner), is_signer=False, is_writable=True),
            AccountMeta(self.global_state, is_signer=False, is_writable=False),
            AccountMeta(authority, is_signer=True, is_writable=False),
        ]
        return Instruction(self.program_id, ix.data, accounts)


class SigningAuthority:
    """Holds the admin keypair permitted to submit mutating instructions."""

    def __init__(self, keypair: Keypair) -> None:
        self._keypair = keypair

    @classmethod
    def from_secret(cls, secret: str) -> SigningAuthority:
        """Load from a base58 secret key or a JSON array of 64 byte values."""
        secret = secret.strip()
        if not secret:
            raise AuthorityNotConfigured("AUTHORITY_KEYPAIR is not set")
        if secret.startswith("["):
            return cls(Keypair.from_bytes(bytes(json.loads(secret))))
        return cls(Keypair.from_base58_string(secret))

    @property
    def pubkey(self) -> Pubkey:
        return self._keypair.pubkey()

    def sign(self, instructions: Sequence[Instruction], blockhash: str) -> Transaction:
        message = Message(list(instructions), self.pubkey)
        return Transaction([self._keypair], message, Hash.from_string(blockhash))


class TransactionSubmitter(Protocol):
    """Capability the engine needs: submit one transaction and await confirmation."""

    async def submit(self, owner: str, instructions: Sequence[LedgerInstruction]) -> str: ...


class LedgerGateway:
    """Reads prediction accounts and submits signed admin transactions."""

    def __init__(
        self,
        client: LedgerClient,
        program: PredictionProgram,
        authority: SigningAuthority | None = None,
        confirm_timeout_seconds: float = 60.0,
    ) -> None:
        self._client = client
        self._program = program
        self._authority = authority
        self._confirm_timeout = confirm_timeout_seconds

    async def fetch_account(self, owner: str) -> bytes | None:
        address = self._program.predictions_address(owner)
        data = await self._client.get_account_data(str(address))
        if not data:
            return None
        return data

    async def list_prediction_accounts(self) -> list[tuple[str, bytes]]:
        return await self._client.get_program_accounts(
            str(self._program.program_id), data_size=FULL_SCHEMA.size,
        )

    async def submit(self, owner: str, instructions: Sequence[LedgerInstruction]) -> str:
        if self._authority is None:
            raise AuthorityNotConfigured("No signing authority configured")
        compiled = [
            self._program.to_instruction(ix, owner, self._authority.pubkey)
            for ix in instructions
        ]
        blockhash = await self._client.get_latest_blockhash()
        tx = self._authority.sign(compiled, blockhash)
        logger.info("Sending transaction with %d instructions for %s", len(compiled), owner)
        signature = await self._client.send_transaction(bytes(tx))
        if not isinstance(signature, str):
            raise LedgerError(f"Unexpected sendTransaction result: {signature!r}")
        await self._client.confirm_transaction(signature, self._confirm_timeout)
        logger.info("Transaction confirmed: %s", signature)
        return signature
