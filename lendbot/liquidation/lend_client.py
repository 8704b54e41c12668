"""
Lending protocol clients.

LendClient is the seam the scanner and executor depend on. JupiterLendClient
talks to the Jupiter Lend REST API for vault snapshots and to a liquidation
service for candidates and instruction building.
"""

import base64
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from solders.address_lookup_table_account import AddressLookupTableAccount
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from .decorators import make_api_request
from .exceptions import MalformedPayloadError, TransactionBuildError
from .logging_config import setup_logger
from .models import LiquidateInstructions, LiquidationCandidate, VaultSnapshot
from .rpc_pool import RpcConnection

logger = setup_logger()


class LendClient(ABC):
    """Abstract lending protocol client."""

    @abstractmethod
    def get_vaults(self) -> List[VaultSnapshot]:
        """Return a fresh snapshot of every vault."""

    @abstractmethod
    def get_liquidations(self, vault_id: int, connection: RpcConnection) -> List[LiquidationCandidate]:
        """Return liquidatable positions for a vault, read through the given connection."""

    @abstractmethod
    def get_liquidate_instructions(
        self,
        vault_id: int,
        debt_amount: int,
        signer: Pubkey,
        recipient: Pubkey,
        connection: RpcConnection,
    ) -> LiquidateInstructions:
        """Build the instructions that liquidate debt_amount of a vault's debt."""


def decode_records(payload: Any, decoder, kind: str) -> List[Any]:
    """
    Decode a list payload record by record, dropping malformed entries.

    Args:
        payload: Decoded JSON; None is treated as an empty list.
        decoder: from_dict constructor for one record.
        kind: Label used in log messages.

    Returns:
        The successfully decoded records, in payload order.
    """
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise MalformedPayloadError(f"Expected a list of {kind}, got {type(payload).__name__}")

    records = []
    for raw in payload:
        try:
            records.append(decoder(raw))
        except MalformedPayloadError as ex:
            logger.warning("LendClient: Rejected malformed %s record: %s", kind, ex)
    return records


def _decode_instruction(data: Dict[str, Any]) -> Instruction:
    try:
        accounts = [
            AccountMeta(
                pubkey=Pubkey.from_string(account["pubkey"]),
                is_signer=bool(account["isSigner"]),
                is_writable=bool(account["isWritable"]),
            )
            for account in data["accounts"]
        ]
        return Instruction(
            program_id=Pubkey.from_string(data["programId"]),
            data=base64.b64decode(data["data"]),
            accounts=accounts,
        )
    except Exception as ex:
        raise TransactionBuildError(f"Malformed instruction in builder response: {ex}") from ex


def _decode_lookup_table(data: Dict[str, Any]) -> AddressLookupTableAccount:
    try:
        return AddressLookupTableAccount(
            key=Pubkey.from_string(data["key"]),
            addresses=[Pubkey.from_string(address) for address in data["addresses"]],
        )
    except Exception as ex:
        raise TransactionBuildError(f"Malformed lookup table in builder response: {ex}") from ex


class JupiterLendClient(LendClient):
    """
    REST client for Jupiter Lend.

    Args:
        api_url: Base URL of the Jupiter Lend API (vault listing).
        liquidation_api_url: Base URL of the liquidation service.
        api_key: Optional API key sent as x-api-key.
        timeout: Per-request timeout in seconds.
    """

    def __init__(self, api_url: str, liquidation_api_url: str, api_key: Optional[str] = None, timeout: float = 10):
        self.api_url = api_url.rstrip("/")
        self.liquidation_api_url = liquidation_api_url.rstrip("/")
        self.timeout = timeout
        self.headers = {"Accept": "application/json"}
        if api_key:
            self.headers["x-api-key"] = api_key

    def get_vaults(self) -> List[VaultSnapshot]:
        payload = make_api_request(f"{self.api_url}/borrow/vaults", headers=self.headers, timeout=self.timeout)
        return decode_records(payload, VaultSnapshot.from_dict, "vault")

    def get_liquidations(self, vault_id: int, connection: RpcConnection) -> List[LiquidationCandidate]:
        payload = make_api_request(
            f"{self.liquidation_api_url}/liquidations",
            headers=self.headers,
            params={"vaultId": vault_id, "rpcUrl": connection.endpoint},
            timeout=self.timeout,
        )
        return decode_records(payload, LiquidationCandidate.from_dict, "liquidation candidate")

    def get_liquidate_instructions(
        self,
        vault_id: int,
        debt_amount: int,
        signer: Pubkey,
        recipient: Pubkey,
        connection: RpcConnection,
    ) -> LiquidateInstructions:
        payload = make_api_request(
            f"{self.liquidation_api_url}/liquidate-instructions",
            headers=self.headers,
            json_body={
                "vaultId": vault_id,
                "debtAmount": str(debt_amount),
                "signer": str(signer),
                "to": str(recipient),
                "rpcUrl": connection.endpoint,
            },
            method="POST",
            timeout=self.timeout,
        )
        if not isinstance(payload, dict) or not payload.get("instructions"):
            raise TransactionBuildError(f"Instruction builder returned no instructions for vault {vault_id}")

        return LiquidateInstructions(
            instructions=[_decode_instruction(ix) for ix in payload["instructions"]],
            address_lookup_tables=[_decode_lookup_table(t) for t in payload.get("addressLookupTables") or []],
        )
