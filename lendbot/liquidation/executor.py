"""
Liquidation executor - builds, signs, submits and confirms one liquidation.
"""

import logging
from typing import List, Optional

from solana.rpc.commitment import Confirmed
from solders.compute_budget import set_compute_unit_limit, set_compute_unit_price
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.transaction import VersionedTransaction

from .exceptions import TransactionBuildError, VaultNotFoundError
from .lend_client import LendClient
from .logging_config import setup_logger
from .models import LiquidationOpportunity, LiquidationResult, VaultSnapshot
from .rpc_pool import RpcConnectionPool

DEFAULT_COMPUTE_UNIT_LIMIT = 1_400_000
DEFAULT_COMPUTE_UNIT_PRICE = 100_000  # micro-lamports per compute unit


class LiquidationExecutor:
    """
    Executes liquidation opportunities.

    execute() never raises: every failure is returned as a failed
    LiquidationResult carrying a readable message.
    """

    def __init__(
        self,
        lend_client: LendClient,
        pool: RpcConnectionPool,
        wallet: Keypair,
        compute_unit_limit: int = DEFAULT_COMPUTE_UNIT_LIMIT,
        compute_unit_price: int = DEFAULT_COMPUTE_UNIT_PRICE,
        max_send_retries: int = 3,
        logger: Optional[logging.Logger] = None,
    ):
        self.lend_client = lend_client
        self.pool = pool
        self.wallet = wallet
        self.compute_unit_limit = compute_unit_limit
        self.compute_unit_price = compute_unit_price
        self.max_send_retries = max_send_retries
        self.logger = logger if logger is not None else setup_logger()

    def execute(self, opportunity: LiquidationOpportunity) -> LiquidationResult:
        try:
            signature = self._liquidate(opportunity)
            return LiquidationResult.ok(signature, opportunity.estimated_profit_usd)
        except Exception as ex:
            self.logger.error(
                "Executor: Liquidation of vault %s failed: %s", opportunity.vault_address, ex, exc_info=True
            )
            return LiquidationResult.failed(str(ex) or type(ex).__name__)

    def resolve_vault(self, vault_address: str) -> VaultSnapshot:
        """Look the vault up in a freshly fetched vault list to get its current id."""
        for vault in self.lend_client.get_vaults():
            if vault.address == vault_address:
                return vault
        raise VaultNotFoundError(f"Vault not found: {vault_address}")

    def compute_budget_instructions(self) -> List[Instruction]:
        return [
            set_compute_unit_limit(self.compute_unit_limit),
            set_compute_unit_price(self.compute_unit_price),
        ]

    def _liquidate(self, opportunity: LiquidationOpportunity) -> str:
        vault = self.resolve_vault(opportunity.vault_address)
        connection = self.pool.next()
        signer = self.wallet.pubkey()

        self.logger.debug(
            "Executor: Building liquidation instructions for vault %s, debt amount %s",
            vault.id, opportunity.debt_amount,
        )
        liquidate_ixs = self.lend_client.get_liquidate_instructions(
            vault_id=vault.id,
            debt_amount=opportunity.debt_amount,
            signer=signer,
            recipient=signer,
            connection=connection,
        )

        instructions = self.compute_budget_instructions() + list(liquidate_ixs.instructions)

        blockhash, last_valid_block_height = connection.get_latest_blockhash()
        try:
            message = MessageV0.try_compile(
                payer=signer,
                instructions=instructions,
                address_lookup_table_accounts=list(liquidate_ixs.address_lookup_tables),
                recent_blockhash=blockhash,
            )
            transaction = VersionedTransaction(message, [self.wallet])
        except Exception as ex:
            raise TransactionBuildError(f"Failed to build liquidation transaction: {ex}") from ex

        self.logger.debug("Executor: Sending liquidation transaction via %s", connection.endpoint)
        signature = connection.send_transaction(transaction, max_retries=self.max_send_retries, skip_preflight=False)
        self.logger.info("Executor: Transaction sent: %s", signature)

        connection.confirm_transaction(signature, blockhash, last_valid_block_height, Confirmed)
        self.logger.info("Executor: Transaction confirmed: %s", signature)
        return signature
