"""
Creates and returns main flask app
"""

import threading

from flask import Flask, jsonify
from flask_cors import CORS

from .liquidation.bot_manager import install_signal_handlers
from .liquidation.config_loader import load_settings
from .liquidation.routes import liquidation, start_bot


def create_app(start_liquidation_bot: bool = True):
    """Create Flask app, optionally starting the liquidation bot in a worker thread that stops on SIGINT/SIGTERM"""
    app = Flask(__name__)
    CORS(app)

    settings = load_settings()
    app.config["POSITIONS_API_URL"] = settings["POSITIONS_API_URL"]
    app.config["API_TIMEOUT_SECONDS"] = settings.get("API_TIMEOUT_SECONDS", 10)

    @app.route("/health", methods=["GET"])
    def health_check():
        return jsonify({"status": "healthy"}), 200

    if start_liquidation_bot:
        manager = start_bot()
        # signal handlers can only be installed from the main thread
        if manager is not None and threading.current_thread() is threading.main_thread():
            install_signal_handlers(manager, chain=True)

    app.register_blueprint(liquidation, url_prefix="/liquidation")

    return app
