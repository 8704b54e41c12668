from unittest.mock import MagicMock

import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from lendbot.liquidation.config_loader import BotConfig, load_bot_config
from lendbot.liquidation.models import LiquidationOpportunity, TokenInfo, VaultSnapshot
from lendbot.liquidation.rpc_pool import RpcConnectionPool

TEST_RPC_ENDPOINTS = ["https://rpc-0.example.com", "https://rpc-1.example.com"]


@pytest.fixture()
def wallet() -> Keypair:
    return Keypair()


@pytest.fixture()
def env(monkeypatch, wallet):
    monkeypatch.setenv("RPC_ENDPOINTS", ",".join(TEST_RPC_ENDPOINTS))
    monkeypatch.setenv("WALLET_PRIVATE_KEY", str(wallet))
    monkeypatch.setenv("MIN_PROFIT_USD", "10")
    monkeypatch.setenv("POLL_INTERVAL_MS", "0")
    monkeypatch.setenv("DELAY_BETWEEN_VAULTS_MS", "0")
    monkeypatch.delenv("RPC_ENDPOINT", raising=False)
    monkeypatch.delenv("NOTIFICATION_URL", raising=False)
    monkeypatch.delenv("MAX_REQUESTS_PER_RPC", raising=False)
    monkeypatch.delenv("VERBOSE", raising=False)
    return monkeypatch


@pytest.fixture()
def config(env) -> BotConfig:
    return load_bot_config()


@pytest.fixture()
def make_vault():
    """Factory for vault snapshots; amounts are raw token units."""

    def _make_vault(
        vault_id: int = 1,
        total_borrow: int = 50_000_000,
        total_supply: int = 100_000_000,
        borrow_decimals: int = 6,
        supply_decimals: int = 6,
        borrow_price: float = 1.0,
        supply_price: float = 1.0,
        address: str = None,
    ) -> VaultSnapshot:
        return VaultSnapshot(
            id=vault_id,
            address=address or str(Pubkey.new_unique()),
            borrow_token=TokenInfo(str(Pubkey.new_unique()), borrow_decimals, borrow_price, "USDC"),
            supply_token=TokenInfo(str(Pubkey.new_unique()), supply_decimals, supply_price, "SOL"),
            total_borrow=total_borrow,
            total_supply=total_supply,
        )

    return _make_vault


@pytest.fixture()
def opportunity(make_vault) -> LiquidationOpportunity:
    vault = make_vault()
    return LiquidationOpportunity(
        vault_address=vault.address,
        obligation_id=vault.address,
        debt_mint=vault.borrow_token.address,
        collateral_mint=vault.supply_token.address,
        debt_amount=50_000_000,
        collateral_amount=80_000_000,
        estimated_profit_usd=30.0,
    )


@pytest.fixture()
def fake_connection_factory():
    return lambda url: MagicMock(endpoint=url)


@pytest.fixture()
def pool(fake_connection_factory) -> RpcConnectionPool:
    return RpcConnectionPool(TEST_RPC_ENDPOINTS, 3, connection_factory=fake_connection_factory)
