"""
Liquidation bot loop: scan, filter by profit, execute, record, sleep.
"""

import json
import logging
import threading
from datetime import datetime, timezone
from typing import List, Optional

from .executor import LiquidationExecutor
from .logging_config import setup_logger
from .models import LiquidationOpportunity, LiquidationResult, LiquidationStats
from .notifications import Notifier
from .scanner import OpportunityScanner


class LiquidationBot:
    """
    Drives repeated liquidation cycles.

    The bot owns its LiquidationStats; nothing else mutates them. Updates and
    get_stats() share a lock, so other threads never see a half-recorded
    attempt. Shutdown is
    requested with stop() and takes effect at the next cycle boundary, so an
    in-flight liquidation always runs to completion.
    """

    def __init__(
        self,
        scanner: OpportunityScanner,
        executor: LiquidationExecutor,
        notifier: Notifier,
        min_profit_usd: float,
        poll_interval_ms: int = 60_000,
        wallet_id: str = "",
        logger: Optional[logging.Logger] = None,
    ):
        self.scanner = scanner
        self.executor = executor
        self.notifier = notifier
        self.min_profit_usd = min_profit_usd
        self.poll_interval_ms = poll_interval_ms
        self.wallet_id = wallet_id
        self.logger = logger if logger is not None else setup_logger()

        self.stats = LiquidationStats()
        self._stats_lock = threading.Lock()
        self.cycles_completed = 0
        self._stop_event = threading.Event()

    @property
    def running(self) -> bool:
        return not self._stop_event.is_set()

    def stop(self) -> None:
        """Request shutdown. Safe to call from signal handlers and other threads."""
        self.logger.info("LiquidationBot: Stop requested, finishing current cycle.")
        self._stop_event.set()

    def get_stats(self) -> LiquidationStats:
        with self._stats_lock:
            return self.stats.snapshot()

    def run(self, max_cycles: Optional[int] = None) -> LiquidationStats:
        """
        Run cycles until stop() is called or max_cycles cycles have completed.

        Returns:
            Snapshot of the final stats.
        """
        self.logger.info(
            "LiquidationBot: Starting. Wallet: %s, min profit: $%s, poll interval: %sms",
            self.wallet_id, self.min_profit_usd, self.poll_interval_ms,
        )
        self._notify("bot_started", self.wallet_id, self.min_profit_usd)

        while self.running and (max_cycles is None or self.cycles_completed < max_cycles):
            try:
                self.run_cycle()
            except Exception as ex:
                self.logger.error("LiquidationBot: Error in liquidation cycle: %s", ex, exc_info=True)

            self.cycles_completed += 1
            if max_cycles is not None and self.cycles_completed >= max_cycles:
                break

            self._stop_event.wait(self.poll_interval_ms / 1000)

        final_stats = self.get_stats()
        self.logger.info("LiquidationBot: Stopped after %s cycles.", self.cycles_completed)
        self.log_stats(final_stats)
        self._notify("bot_stopped", final_stats)
        return final_stats

    def run_cycle(self) -> List[LiquidationResult]:
        self.logger.debug("LiquidationBot: Scanning for liquidation opportunities...")
        opportunities = self.scanner.scan()

        if not opportunities:
            self.logger.debug("LiquidationBot: No liquidation opportunities found")
            return []

        self.logger.info("LiquidationBot: Found %s liquidation opportunities", len(opportunities))

        results = []
        for opportunity in opportunities:
            result = self.process_opportunity(opportunity)
            if result is not None:
                results.append(result)
        return results

    def process_opportunity(self, opportunity: LiquidationOpportunity) -> Optional[LiquidationResult]:
        """Execute one opportunity if it clears the profit threshold; None when skipped."""
        if opportunity.estimated_profit_usd < self.min_profit_usd:
            self.logger.debug(
                "LiquidationBot: Skipping liquidation with profit $%.2f (below threshold)",
                opportunity.estimated_profit_usd,
            )
            return None

        self.logger.info(
            "LiquidationBot: Attempting liquidation with estimated profit: $%.2f", opportunity.estimated_profit_usd
        )
        self._notify("opportunity_found", opportunity)

        result = self.executor.execute(opportunity)
        self.record_result(result)

        if result.success:
            self.logger.info(
                "LiquidationBot: Liquidation successful! Signature: %s, Profit: $%.2f",
                result.signature, result.profit_usd,
            )
            self._notify("liquidation_succeeded", result, opportunity)
        else:
            self.logger.error("LiquidationBot: Liquidation failed: %s", result.error)
            self._notify("liquidation_failed", result, opportunity)

        self.log_stats(self.get_stats())
        return result

    def record_result(self, result: LiquidationResult) -> None:
        with self._stats_lock:
            self.stats.total_attempts += 1
            if result.success:
                self.stats.successful_liquidations += 1
                self.stats.total_profit_usd += result.profit_usd or 0
                self.stats.last_liquidation_time = datetime.now(timezone.utc)
            else:
                self.stats.failed_liquidations += 1

    def log_stats(self, stats: LiquidationStats) -> None:
        self.logger.info("=== LIQUIDATION STATS ===\n%s", json.dumps(stats.to_dict(), indent=2))

    def _notify(self, event: str, *args) -> None:
        try:
            getattr(self.notifier, event)(*args)
        except Exception as ex:
            self.logger.error("LiquidationBot: Failed to post %s notification: %s", event, ex, exc_info=True)
