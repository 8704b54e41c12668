"""
Wires configuration into the bot components and runs the bot loop.
"""

import signal
import sys
import threading
from typing import Optional

from dotenv import load_dotenv

from .bot import LiquidationBot
from .config_loader import BotConfig, load_bot_config
from .exceptions import ConfigError
from .executor import LiquidationExecutor
from .lend_client import JupiterLendClient
from .logging_config import global_exception_handler, setup_logger
from .models import LiquidationStats
from .notifications import Notifier
from .rpc_pool import RpcConnectionPool
from .scanner import OpportunityScanner

logger = setup_logger()


class BotManager:
    """Builds a LiquidationBot from config and runs it in the foreground or a worker thread."""

    def __init__(self, config: BotConfig, notify: bool = True):
        self.config = config
        self.logger = setup_logger(verbose=config.VERBOSE)
        self.thread: Optional[threading.Thread] = None

        self.pool = RpcConnectionPool(config.RPC_ENDPOINTS, config.MAX_REQUESTS_PER_RPC)
        self.lend_client = JupiterLendClient(
            api_url=config.LEND_API_URL,
            liquidation_api_url=config.LIQUIDATION_API_URL,
            api_key=config.LEND_API_KEY or None,
            timeout=config.API_TIMEOUT_SECONDS,
        )
        self.scanner = OpportunityScanner(
            self.lend_client,
            self.pool,
            inter_vault_delay_ms=config.DELAY_BETWEEN_VAULTS_MS,
            rate_limit_penalty_seconds=config.RATE_LIMIT_PENALTY_SECONDS,
            min_utilization_pct=config.MIN_UTILIZATION_PCT,
            logger=self.logger,
        )
        self.executor = LiquidationExecutor(
            self.lend_client,
            self.pool,
            config.WALLET,
            compute_unit_limit=config.COMPUTE_UNIT_LIMIT,
            compute_unit_price=config.COMPUTE_UNIT_PRICE_MICROLAMPORTS,
            max_send_retries=config.SEND_MAX_RETRIES,
            logger=self.logger,
        )
        self.notifier = Notifier(
            config.NOTIFICATION_URL if notify else None,
            explorer_url=config.EXPLORER_URL,
            logger=self.logger,
        )
        self.bot = LiquidationBot(
            self.scanner,
            self.executor,
            self.notifier,
            min_profit_usd=config.MIN_PROFIT_USD,
            poll_interval_ms=config.POLL_INTERVAL_MS,
            wallet_id=config.WALLET_PUBKEY,
            logger=self.logger,
        )

        self.logger.info("BotManager: Liquidation bot initialized")
        self.logger.info("BotManager: Wallet: %s", config.WALLET_PUBKEY)
        self.logger.info("BotManager: RPC endpoints: %s", len(config.RPC_ENDPOINTS))
        self.logger.info("BotManager: Delay between vaults: %sms", config.DELAY_BETWEEN_VAULTS_MS)
        if self.notifier.enabled:
            self.logger.info("BotManager: Notifications: ENABLED")

    def start(self, max_cycles: Optional[int] = None) -> LiquidationStats:
        """Run the bot loop in the calling thread until stopped."""
        return self.bot.run(max_cycles=max_cycles)

    def start_in_background(self) -> threading.Thread:
        self.thread = threading.Thread(target=self.start, name="liquidation-bot")
        self.thread.start()
        return self.thread

    def stop(self, wait: bool = False) -> None:
        self.bot.stop()
        if wait and self.thread is not None:
            self.thread.join()

    def get_stats(self) -> LiquidationStats:
        return self.bot.get_stats()


def install_signal_handlers(manager: BotManager, chain: bool = False) -> None:
    """
    Stop the bot on SIGINT and SIGTERM.

    Args:
        manager: Manager whose bot should stop.
        chain: Also hand the signal to the handler that was installed before,
            so a host process (e.g. the Flask server) shuts down too. A default
            disposition becomes SystemExit, which lets the interpreter join the
            bot thread and the bot emit its final stats.
    """

    def _install(signum):
        previous = signal.getsignal(signum)

        def _handle(sig, frame):
            logger.info("Received signal %s, shutting down after the current cycle.", sig)
            manager.stop()
            if not chain:
                return
            if callable(previous):
                previous(sig, frame)
            elif previous == signal.SIG_DFL:
                raise SystemExit(128 + sig)

        signal.signal(signum, _handle)

    _install(signal.SIGINT)
    _install(signal.SIGTERM)


def main() -> int:
    """
    Run the liquidation bot in the foreground.

    Returns:
        Process exit code: 1 on configuration errors, 0 otherwise.
    """
    load_dotenv()
    sys.excepthook = global_exception_handler

    try:
        config = load_bot_config()
        manager = BotManager(config)
    except ConfigError as ex:
        logger.critical("Configuration error: %s", ex)
        return 1

    install_signal_handlers(manager)
    logger.info("Press Ctrl+C to stop")
    final_stats = manager.start()
    logger.info("Final stats: %s", final_stats.to_dict())
    return 0


if __name__ == "__main__":
    sys.exit(main())
