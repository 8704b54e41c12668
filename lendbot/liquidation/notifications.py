"""
Notification functions for the liquidation bot.

Delivery goes through Apprise, so NOTIFICATION_URL can point at Telegram
(tgram://), Slack, Discord or any other supported service.
"""

import logging
import time
from typing import Optional

from apprise import Apprise

from .logging_config import setup_logger
from .models import LiquidationOpportunity, LiquidationResult, LiquidationStats


def setup_apprise_notification_object(notification_url: str) -> Apprise:
    """Set up the Apprise notification engine."""
    apprise = Apprise()
    apprise.add(notification_url)
    return apprise


def _short(address: str) -> str:
    return f"{address[:4]}...{address[-4:]}" if len(address) > 12 else address


class Notifier:
    """
    Posts bot lifecycle and liquidation outcome messages.

    Every method is best-effort: delivery errors are logged and reported as
    False, never raised. Without a notification URL the notifier is disabled.
    """

    def __init__(
        self,
        notification_url: Optional[str] = None,
        explorer_url: str = "https://solscan.io",
        apprise: Optional[Apprise] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.explorer_url = explorer_url.rstrip("/")
        self.logger = logger if logger is not None else setup_logger()
        if apprise is not None:
            self.apprise = apprise
        elif notification_url:
            self.apprise = setup_apprise_notification_object(notification_url)
        else:
            self.apprise = None

    @property
    def enabled(self) -> bool:
        return self.apprise is not None

    def _post(self, title: str, body: str) -> bool:
        self.logger.info("%s notification:\n%s", title, body)
        if not self.enabled:
            return False
        try:
            return bool(self.apprise.notify(body=body, title=title))
        except Exception as ex:
            self.logger.error("Notifier: Failed to deliver '%s' notification: %s", title, ex, exc_info=True)
            return False

    def bot_started(self, wallet_id: str, min_profit_usd: float) -> bool:
        message = (
            ":robot_face: *Liquidation Bot Started*\n\n"
            f"*Wallet*: `{wallet_id}`\n"
            f"*Min profit*: `${min_profit_usd:.2f}`\n"
            f"Time: {time.strftime('%Y-%m-%d %H:%M:%S')}"
        )
        return self._post("Liquidation Bot Started", message)

    def opportunity_found(self, opportunity: LiquidationOpportunity) -> bool:
        message = (
            ":rotating_light: *Liquidation Opportunity Detected* :rotating_light:\n\n"
            f"*Vault*: `{opportunity.vault_address}`\n"
            f"*Obligation*: `{opportunity.obligation_id}`\n"
            f"*Debt*: `{opportunity.debt_amount}` of `{_short(opportunity.debt_mint)}`\n"
            f"*Collateral*: `{opportunity.collateral_amount}` of `{_short(opportunity.collateral_mint)}`\n"
            f"*Estimated profit*: `${opportunity.estimated_profit_usd:.2f}`\n"
            f"Time of detection: {time.strftime('%Y-%m-%d %H:%M:%S')}"
        )
        return self._post("Liquidation Opportunity Detected", message)

    def liquidation_succeeded(self, result: LiquidationResult, opportunity: LiquidationOpportunity) -> bool:
        tx_url = f"{self.explorer_url}/tx/{result.signature}"
        message = (
            ":moneybag: *Liquidation Completed* :moneybag:\n\n"
            f"*Vault*: `{opportunity.vault_address}`\n"
            f"*Profit*: `${(result.profit_usd or 0):.2f}`\n"
            f"*Transaction*: <{tx_url}|View Transaction on Explorer>\n"
            f"Time of liquidation: {time.strftime('%Y-%m-%d %H:%M:%S')}"
        )
        return self._post("Liquidation Completed", message)

    def liquidation_failed(self, result: LiquidationResult, opportunity: LiquidationOpportunity) -> bool:
        message = (
            ":x: *Liquidation Failed*\n\n"
            f"*Vault*: `{opportunity.vault_address}`\n"
            f"*Estimated profit*: `${opportunity.estimated_profit_usd:.2f}`\n"
            f"*Error*: `{result.error}`\n"
            f"Time: {time.strftime('%Y-%m-%d %H:%M:%S')}"
        )
        return self._post("Liquidation Failed", message)

    def bot_stopped(self, stats: LiquidationStats) -> bool:
        last = stats.last_liquidation_time.strftime("%Y-%m-%d %H:%M:%S") if stats.last_liquidation_time else "never"
        message = (
            ":octagonal_sign: *Liquidation Bot Stopped*\n\n"
            f"*Attempts*: `{stats.total_attempts}`\n"
            f"*Successful*: `{stats.successful_liquidations}`\n"
            f"*Failed*: `{stats.failed_liquidations}`\n"
            f"*Total profit*: `${stats.total_profit_usd:.2f}`\n"
            f"*Last liquidation*: `{last}`"
        )
        return self._post("Liquidation Bot Stopped", message)
