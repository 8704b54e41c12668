"""
Custom exceptions for the liquidation bot.
"""

from typing import Optional


class LiquidationBotError(Exception):
    """Base exception for all liquidation bot errors."""


class ConfigError(LiquidationBotError):
    """Raised for configuration-related errors."""


class MalformedPayloadError(LiquidationBotError):
    """Raised when an API record fails validation."""


class TransportError(LiquidationBotError):
    """Raised when an RPC or HTTP call fails."""

    def __init__(self, message: str, endpoint: Optional[str] = None):
        super().__init__(message)
        self.endpoint = endpoint


class RateLimitedError(TransportError):
    """Raised when an endpoint answers with a rate-limit response."""

    def __init__(self, message: str, endpoint: Optional[str] = None, retry_after: Optional[float] = None):
        super().__init__(message, endpoint)
        self.retry_after = retry_after


class LiquidationError(LiquidationBotError):
    """Raised for errors during liquidation execution."""


class VaultNotFoundError(LiquidationError):
    """Raised when the opportunity's vault is missing from a fresh vault list."""


class TransactionBuildError(LiquidationError):
    """Raised when building a liquidation transaction fails."""


class TransactionExpiredError(LiquidationError):
    """Raised when the blockhash expires before the transaction is confirmed."""


class TransactionFailedError(LiquidationError):
    """Raised when a confirmed transaction carries an on-chain error."""
