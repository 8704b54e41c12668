"""
Config Loader module - static defaults from config.yaml, secrets and
deployment values from the environment.
"""

import math
import os
from typing import Any, Dict, List, Optional

import base58
import yaml
from solders.keypair import Keypair

from .exceptions import ConfigError

TRUE_VALUES = {"1", "true", "yes", "on"}


def _split_csv(raw: str) -> List[str]:
    return [s.strip() for s in raw.split(",") if s.strip()]


class BotConfig:
    """
    Bot Config object to access config variables
    """

    required_env_vars = [
        "WALLET_PRIVATE_KEY",
    ]

    def __init__(self, global_config: Dict[str, Any]):
        self._global = global_config

        # validate env
        self.validate()

        self.RPC_ENDPOINTS = self._load_rpc_endpoints()
        self.WALLET = self._load_wallet()
        self.WALLET_PUBKEY = str(self.WALLET.pubkey())

        self.MIN_PROFIT_USD = self._env_number("MIN_PROFIT_USD", float)
        self.MAX_REQUESTS_PER_RPC = self._env_number("MAX_REQUESTS_PER_RPC", int, minimum=1)
        self.DELAY_BETWEEN_VAULTS_MS = self._env_number("DELAY_BETWEEN_VAULTS_MS", int)
        self.POLL_INTERVAL_MS = self._env_number("POLL_INTERVAL_MS", int)
        self.VERBOSE = os.environ.get("VERBOSE", str(self._global.get("VERBOSE", False))).strip().lower() in TRUE_VALUES

        self.NOTIFICATION_URL = os.environ.get("NOTIFICATION_URL", "")
        self.LEND_API_KEY = os.environ.get("LEND_API_KEY", "")

    def __getattr__(self, name: str) -> Any:
        """Look up config values in the global yaml section."""
        if name.startswith("_"):
            raise AttributeError(name)
        if name in self._global:
            return self._global[name]
        raise AttributeError(f"Config has no attribute '{name}'")

    def validate(self) -> None:
        """
        Validates that all required environment variables are set.
        Raises an error if any are missing.
        """
        missing_keys = [key for key in self.required_env_vars if not os.getenv(key)]
        if not os.getenv("RPC_ENDPOINTS") and not os.getenv("RPC_ENDPOINT"):
            missing_keys.insert(0, "RPC_ENDPOINTS")
        if missing_keys:
            raise ConfigError(f"Missing required environment variables: {', '.join(missing_keys)}")

    def _load_rpc_endpoints(self) -> List[str]:
        endpoints = _split_csv(os.environ.get("RPC_ENDPOINTS", ""))
        if not endpoints:
            endpoints = _split_csv(os.environ.get("RPC_ENDPOINT", ""))
        if not endpoints:
            raise ConfigError("No RPC endpoints configured")
        return endpoints

    @staticmethod
    def _load_wallet() -> Keypair:
        try:
            return Keypair.from_bytes(base58.b58decode(os.environ["WALLET_PRIVATE_KEY"].strip()))
        except Exception as ex:
            raise ConfigError(f"WALLET_PRIVATE_KEY is not a valid base58 keypair: {ex}") from ex

    def _env_number(self, name: str, cast, minimum: float = 0):
        raw = os.environ.get(name)
        if raw is None or raw.strip() == "":
            if name not in self._global:
                raise ConfigError(f"No value for {name} in environment or config.yaml")
            raw = self._global[name]
        try:
            value = cast(raw)
        except (TypeError, ValueError) as ex:
            raise ConfigError(f"{name} must be a number, got {raw!r}") from ex
        if not math.isfinite(value):
            raise ConfigError(f"{name} must be a finite number, got {raw!r}")
        if value < minimum:
            raise ConfigError(f"{name} must be >= {minimum}, got {value}")
        return value


def default_config_path() -> str:
    current_dir = os.path.dirname(os.path.abspath(__file__))
    return os.path.join(os.path.dirname(current_dir), "config.yaml")


def load_settings(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Read the global section of config.yaml."""
    config_path = config_path or default_config_path()
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found at {config_path}") from exc
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML file: {e}") from e

    if not isinstance(config, dict) or not isinstance(config.get("global"), dict):
        raise ConfigError(f"No 'global' section in {config_path}")

    return config["global"]


def load_bot_config(config_path: Optional[str] = None) -> BotConfig:
    return BotConfig(global_config=load_settings(config_path))
