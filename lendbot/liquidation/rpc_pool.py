"""
RPC connection pool - rotates requests across several Solana RPC providers
while keeping each endpoint under its request budget.
"""

import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
from solana.exceptions import SolanaRpcException
from solana.rpc.api import Client
from solana.rpc.commitment import Commitment, Confirmed
from solana.rpc.core import RPCException, TransactionExpiredBlockheightExceededError
from solana.rpc.types import TxOpts
from solders.hash import Hash
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from .exceptions import (
    ConfigError,
    RateLimitedError,
    TransactionExpiredError,
    TransactionFailedError,
    TransportError,
)
from .logging_config import setup_logger

logger = setup_logger()

HTTP_TOO_MANY_REQUESTS = 429


def _status_code(ex: BaseException) -> Optional[int]:
    response = getattr(ex, "response", None)
    return getattr(response, "status_code", None)


def _rpc_error_code(ex: BaseException) -> Optional[int]:
    if not isinstance(ex, RPCException) or not ex.args:
        return None
    error = ex.args[0]
    code = error.get("code") if isinstance(error, dict) else getattr(error, "code", None)
    return code if isinstance(code, int) else None


def is_rate_limited(ex: BaseException) -> bool:
    """Walk the exception chain looking for an HTTP 429 response or a JSON-RPC 429 error."""
    seen = set()
    current: Optional[BaseException] = ex
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, RateLimitedError):
            return True
        if HTTP_TOO_MANY_REQUESTS in (_status_code(current), _rpc_error_code(current)):
            return True
        current = current.__cause__ or current.__context__
    return False


class RpcConnection:
    """
    Transport bound to a single RPC endpoint.

    Every call translates library errors into the bot's own taxonomy:
    RateLimitedError for 429 responses, TransactionExpiredError when the
    blockhash window closes, TransportError for anything else.
    """

    def __init__(self, endpoint: str, client: Optional[Client] = None, timeout: float = 10):
        self.endpoint = endpoint
        self.client = client if client is not None else Client(endpoint, timeout=timeout)

    def __repr__(self) -> str:
        return f"RpcConnection({self.endpoint!r})"

    def _call(self, operation: str, func: Callable, *args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except TransactionExpiredBlockheightExceededError as ex:
            raise TransactionExpiredError(f"Blockhash expired before confirmation: {ex}") from ex
        except (SolanaRpcException, RPCException, httpx.HTTPError) as ex:
            if is_rate_limited(ex):
                raise RateLimitedError(f"{operation} rate limited by {self.endpoint}", endpoint=self.endpoint) from ex
            raise TransportError(f"{operation} failed on {self.endpoint}: {ex}", endpoint=self.endpoint) from ex

    def get_latest_blockhash(self) -> Tuple[Hash, int]:
        """Return the latest blockhash and its last valid block height."""
        resp = self._call("getLatestBlockhash", self.client.get_latest_blockhash, Confirmed)
        return resp.value.blockhash, resp.value.last_valid_block_height

    def send_transaction(self, transaction: VersionedTransaction, max_retries: int = 3, skip_preflight: bool = False) -> str:
        opts = TxOpts(skip_preflight=skip_preflight, preflight_commitment=Confirmed, max_retries=max_retries)
        resp = self._call("sendTransaction", self.client.send_transaction, transaction, opts=opts)
        return str(resp.value)

    def confirm_transaction(
        self,
        signature: str,
        blockhash: Hash,
        last_valid_block_height: int,
        commitment: Commitment = Confirmed,
    ) -> None:
        """
        Wait until the signature reaches the requested commitment.

        The wait is bounded by the blockhash validity window rather than a
        wall-clock timer.

        Raises:
            TransactionExpiredError: if the block height passes last_valid_block_height.
            TransactionFailedError: if the transaction landed with an error.
        """
        logger.debug(
            "RpcConnection: Confirming %s (blockhash=%s, lastValidBlockHeight=%s) on %s",
            signature, blockhash, last_valid_block_height, self.endpoint,
        )
        resp = self._call(
            "confirmTransaction",
            self.client.confirm_transaction,
            Signature.from_string(signature),
            commitment,
            last_valid_block_height=last_valid_block_height,
        )
        status = resp.value[0] if resp.value else None
        if status is not None and status.err is not None:
            raise TransactionFailedError(f"Transaction {signature} failed on-chain: {status.err}")


class ConnectionSingleton:
    """
    Singleton class to manage RpcConnection creation per RPC URL
    """

    _instances: Dict[str, RpcConnection] = {}

    @staticmethod
    def get_instance(rpc_url: str) -> RpcConnection:
        if rpc_url not in ConnectionSingleton._instances:
            ConnectionSingleton._instances[rpc_url] = RpcConnection(rpc_url)

        return ConnectionSingleton._instances[rpc_url]


def setup_connection(rpc_url: str) -> RpcConnection:
    """
    Get the RpcConnection for a URL from the singleton class

    Args:
        rpc_url (str): RPC endpoint URL

    Returns:
        RpcConnection: shared connection for that URL.
    """
    return ConnectionSingleton.get_instance(rpc_url)


@dataclass
class RpcEndpointState:
    """Per-endpoint bookkeeping owned by the pool."""

    url: str
    connection: RpcConnection
    request_count: int = 0


class RpcConnectionPool:
    """
    Hands out connections endpoint by endpoint.

    The pool stays on the current endpoint until it has served
    max_requests_per_endpoint requests, then moves to the next one. Counters
    reset when the rotation wraps back to the first endpoint. With a budget of
    1 this is plain round-robin.
    """

    def __init__(
        self,
        endpoints: List[str],
        max_requests_per_endpoint: int = 9,
        connection_factory: Callable[[str], RpcConnection] = setup_connection,
    ):
        if not endpoints:
            raise ConfigError("At least one RPC endpoint is required")
        if max_requests_per_endpoint < 1:
            raise ConfigError(f"max_requests_per_endpoint must be >= 1, got {max_requests_per_endpoint}")

        self.max_requests_per_endpoint = max_requests_per_endpoint
        self._states = [RpcEndpointState(url=url, connection=connection_factory(url)) for url in endpoints]
        self._index = 0
        self._lock = threading.Lock()

        logger.info(
            "RpcConnectionPool: %s endpoints, %s requests per endpoint per rotation",
            len(self._states), max_requests_per_endpoint,
        )

    def __len__(self) -> int:
        return len(self._states)

    def next(self) -> RpcConnection:
        """Return the connection for the next request and count it against its endpoint."""
        with self._lock:
            state = self._states[self._index]
            if state.request_count >= self.max_requests_per_endpoint:
                self._index = (self._index + 1) % len(self._states)
                if self._index == 0:
                    for endpoint_state in self._states:
                        endpoint_state.request_count = 0
                    logger.debug("RpcConnectionPool: Full rotation completed, counters reset")
                state = self._states[self._index]
                logger.debug("RpcConnectionPool: Rotating to %s", state.url)

            state.request_count += 1
            return state.connection

    def snapshot(self) -> List[Tuple[str, int]]:
        with self._lock:
            return [(state.url, state.request_count) for state in self._states]
