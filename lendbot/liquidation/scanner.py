"""
Opportunity scanner - walks the active vaults one by one and turns reported
liquidation candidates into priced opportunities.
"""

import logging
import time
from typing import Callable, List, Optional

from .exceptions import RateLimitedError
from .lend_client import LendClient
from .logging_config import setup_logger
from .models import LiquidationCandidate, LiquidationOpportunity, VaultSnapshot
from .rpc_pool import RpcConnectionPool


def is_active_vault(vault: VaultSnapshot, min_utilization_pct: float = 5) -> bool:
    """A vault is worth scanning when both sides are non-empty and utilization reaches the threshold."""
    if vault.borrow_amount == 0 or vault.supply_amount == 0:
        return False
    return vault.utilization >= min_utilization_pct


def price_candidate(vault: VaultSnapshot, candidate: LiquidationCandidate) -> LiquidationOpportunity:
    """Value a candidate in USD: collateral received minus debt repaid."""
    debt_value_usd = vault.borrow_token.to_human(candidate.amt_in) * vault.borrow_token.price
    collateral_value_usd = vault.supply_token.to_human(candidate.amt_out) * vault.supply_token.price
    return LiquidationOpportunity(
        vault_address=vault.address,
        obligation_id=candidate.position_id or vault.address,
        debt_mint=vault.borrow_token.address,
        collateral_mint=vault.supply_token.address,
        debt_amount=candidate.amt_in,
        collateral_amount=candidate.amt_out,
        estimated_profit_usd=collateral_value_usd - debt_value_usd,
    )


class OpportunityScanner:
    """
    Scans vaults sequentially for profitable liquidations.

    Vaults are never queried in parallel; a delay is inserted between vaults
    and a longer penalty after a rate-limit response, so the lending API and
    the RPC providers both stay within their limits.
    """

    def __init__(
        self,
        lend_client: LendClient,
        pool: RpcConnectionPool,
        inter_vault_delay_ms: int = 300,
        rate_limit_penalty_seconds: float = 2,
        min_utilization_pct: float = 5,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None,
    ):
        self.lend_client = lend_client
        self.pool = pool
        self.inter_vault_delay_ms = inter_vault_delay_ms
        self.rate_limit_penalty_seconds = rate_limit_penalty_seconds
        self.min_utilization_pct = min_utilization_pct
        self.sleep = sleep
        self.logger = logger if logger is not None else setup_logger()

    def scan(self) -> List[LiquidationOpportunity]:
        """
        Run one full scan.

        Returns:
            Opportunities with positive estimated profit, in vault-then-candidate order.
            An empty list if the vault list could not be fetched.
        """
        start_time = time.monotonic()
        try:
            vaults = self.lend_client.get_vaults()
        except Exception as ex:
            self.logger.error("Scanner: Error fetching vault list: %s", ex, exc_info=True)
            return []

        if not vaults:
            self.logger.debug("Scanner: Vault list is empty")
            return []

        active_vaults = [vault for vault in vaults if is_active_vault(vault, self.min_utilization_pct)]
        self.logger.debug(
            "Scanner: Scanning %s active vaults (%s skipped) sequentially",
            len(active_vaults), len(vaults) - len(active_vaults),
        )

        opportunities: List[LiquidationOpportunity] = []
        for position, vault in enumerate(active_vaults, start=1):
            try:
                opportunities.extend(self._scan_vault(vault))
            except RateLimitedError as ex:
                self.logger.warning(
                    "Scanner: Rate limit on vault %s (%s), backing off %ss",
                    vault.id, ex, self.rate_limit_penalty_seconds,
                )
                self.sleep(self.rate_limit_penalty_seconds)
            except Exception as ex:
                self.logger.error("Scanner: Error checking vault %s: %s", vault.id, ex, exc_info=True)

            if position < len(active_vaults) and self.inter_vault_delay_ms > 0:
                self.sleep(self.inter_vault_delay_ms / 1000)

        elapsed = time.monotonic() - start_time
        if opportunities:
            self.logger.info("Scanner: Scan complete in %.2fs - found %s opportunities", elapsed, len(opportunities))
        else:
            self.logger.debug("Scanner: Scan complete in %.2fs - no liquidations found", elapsed)
        return opportunities

    def _scan_vault(self, vault: VaultSnapshot) -> List[LiquidationOpportunity]:
        connection = self.pool.next()
        candidates = self.lend_client.get_liquidations(vault.id, connection)

        found = []
        for candidate in candidates:
            opportunity = price_candidate(vault, candidate)
            if opportunity.estimated_profit_usd <= 0:
                continue
            found.append(opportunity)
            self.logger.info(
                "Scanner: Found liquidation in vault %s: pay %.4f %s, get %.4f %s, profit $%.2f",
                vault.id,
                vault.borrow_token.to_human(candidate.amt_in), vault.borrow_token.symbol,
                vault.supply_token.to_human(candidate.amt_out), vault.supply_token.symbol,
                opportunity.estimated_profit_usd,
            )
        return found
