"""
Data classes for structured returns in the liquidation bot.

Records coming from the lending API are decoded through the ``from_dict``
constructors, which reject malformed payloads instead of letting missing or
non-numeric values flow into the profit math.
"""

import dataclasses
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from solders.instruction import Instruction
from solders.pubkey import Pubkey

from .exceptions import MalformedPayloadError


def _require(data: Dict[str, Any], key: str, context: str) -> Any:
    if not isinstance(data, dict):
        raise MalformedPayloadError(f"{context}: expected an object, got {type(data).__name__}")
    value = data.get(key)
    if value is None:
        raise MalformedPayloadError(f"{context}: missing field '{key}'")
    return value


def _parse_int(value: Any, name: str, context: str) -> int:
    """Parse a raw on-chain amount, accepting ints and integer strings only."""
    if isinstance(value, bool):
        raise MalformedPayloadError(f"{context}: '{name}' must be an integer, got {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise MalformedPayloadError(f"{context}: '{name}' must be an integer, got {value!r}")
        value = int(value)
    try:
        parsed = int(value)
    except (TypeError, ValueError) as ex:
        raise MalformedPayloadError(f"{context}: '{name}' is not an integer: {value!r}") from ex
    if parsed < 0:
        raise MalformedPayloadError(f"{context}: '{name}' is negative: {parsed}")
    return parsed


def _parse_price(value: Any, context: str) -> float:
    if isinstance(value, bool):
        raise MalformedPayloadError(f"{context}: price must be numeric, got {value!r}")
    try:
        price = float(value)
    except (TypeError, ValueError) as ex:
        raise MalformedPayloadError(f"{context}: price is not numeric: {value!r}") from ex
    if math.isnan(price) or math.isinf(price) or price < 0:
        raise MalformedPayloadError(f"{context}: invalid price {value!r}")
    return price


def _parse_address(value: Any, context: str) -> str:
    try:
        return str(Pubkey.from_string(str(value)))
    except Exception as ex:
        raise MalformedPayloadError(f"{context}: invalid address {value!r}") from ex


@dataclass(frozen=True)
class TokenInfo:
    """Token metadata attached to a vault."""

    address: str
    decimals: int
    price: float
    symbol: str = ""

    def to_human(self, raw_amount: int) -> float:
        return raw_amount / 10**self.decimals

    @classmethod
    def from_dict(cls, data: Dict[str, Any], context: str = "token") -> "TokenInfo":
        decimals = _parse_int(_require(data, "decimals", context), "decimals", context)
        if decimals > 255:
            raise MalformedPayloadError(f"{context}: decimals out of range: {decimals}")
        return cls(
            address=_parse_address(_require(data, "address", context), context),
            decimals=decimals,
            price=_parse_price(_require(data, "price", context), context),
            symbol=str(data.get("symbol") or ""),
        )


@dataclass(frozen=True)
class VaultSnapshot:
    """A lending vault as reported by the lending API at fetch time."""

    id: int
    address: str
    borrow_token: TokenInfo
    supply_token: TokenInfo
    total_borrow: int
    total_supply: int

    @property
    def borrow_amount(self) -> float:
        return self.borrow_token.to_human(self.total_borrow)

    @property
    def supply_amount(self) -> float:
        return self.supply_token.to_human(self.total_supply)

    @property
    def utilization(self) -> float:
        """Borrowed amount as a percentage of supplied amount."""
        supply = self.supply_amount
        if supply == 0:
            return 0.0
        return self.borrow_amount * 100 / supply

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VaultSnapshot":
        """
        Decode a vault record from the lending API.

        Args:
            data: Raw JSON object with camelCase keys.

        Returns:
            Validated VaultSnapshot.

        Raises:
            MalformedPayloadError: if any field is missing or invalid.
        """
        vault_id = _parse_int(_require(data, "id", "vault"), "id", "vault")
        context = f"vault {vault_id}"
        return cls(
            id=vault_id,
            address=_parse_address(_require(data, "address", context), context),
            borrow_token=TokenInfo.from_dict(_require(data, "borrowToken", context), f"{context} borrowToken"),
            supply_token=TokenInfo.from_dict(_require(data, "supplyToken", context), f"{context} supplyToken"),
            total_borrow=_parse_int(_require(data, "totalBorrow", context), "totalBorrow", context),
            total_supply=_parse_int(_require(data, "totalSupply", context), "totalSupply", context),
        )


@dataclass(frozen=True)
class LiquidationCandidate:
    """A liquidatable position reported for one vault, in raw token units."""

    amt_in: int
    amt_out: int
    position_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LiquidationCandidate":
        context = "liquidation candidate"
        position_id = data.get("positionId") if isinstance(data, dict) else None
        return cls(
            amt_in=_parse_int(_require(data, "amtIn", context), "amtIn", context),
            amt_out=_parse_int(_require(data, "amtOut", context), "amtOut", context),
            position_id=str(position_id) if position_id is not None else None,
        )


@dataclass(frozen=True)
class LiquidationOpportunity:
    """A profitable liquidation detected during one scan cycle."""

    vault_address: str
    obligation_id: str
    debt_mint: str
    collateral_mint: str
    debt_amount: int
    collateral_amount: int
    estimated_profit_usd: float


@dataclass
class LiquidateInstructions:
    """Instructions returned by the lending protocol's liquidation builder."""

    instructions: List[Instruction]
    address_lookup_tables: List[Any] = field(default_factory=list)


@dataclass(frozen=True)
class LiquidationResult:
    """Outcome of one executed liquidation."""

    success: bool
    signature: Optional[str] = None
    profit_usd: Optional[float] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, signature: str, profit_usd: float) -> "LiquidationResult":
        return cls(success=True, signature=signature, profit_usd=profit_usd)

    @classmethod
    def failed(cls, error: str) -> "LiquidationResult":
        return cls(success=False, error=error or "Unknown error")


@dataclass
class LiquidationStats:
    """Running counters for the bot's liquidation attempts."""

    total_attempts: int = 0
    successful_liquidations: int = 0
    failed_liquidations: int = 0
    total_profit_usd: float = 0.0
    last_liquidation_time: Optional[datetime] = None

    def snapshot(self) -> "LiquidationStats":
        return dataclasses.replace(self)

    def to_dict(self) -> Dict[str, Any]:
        data = dataclasses.asdict(self)
        if self.last_liquidation_time is not None:
            data["last_liquidation_time"] = self.last_liquidation_time.isoformat()
        return data
