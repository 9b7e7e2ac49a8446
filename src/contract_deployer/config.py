#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Configuration management for the Contract Deployer.

This module loads configuration from environment variables (and a .env file),
provides network presets for service endpoints, and validates the values
before a deployment run starts.
"""

import os
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import urlsplit

from dotenv import load_dotenv

from contract_deployer.models import Network, ServiceEndpointSet

# Load environment variables from .env file
load_dotenv()

# Base directories
ROOT_DIR = Path.cwd()
DEFAULT_LOGS_DIR = ROOT_DIR / "logs"
DEFAULT_MANIFEST_PATH = ROOT_DIR / "deployment.json"
DEFAULT_PRIVATE_STATE_DIR = ROOT_DIR / ".private-state"

# Seed of the pre-funded genesis wallet on a local standalone network
GENESIS_SEED = "0" * 63 + "1"
SEED_LENGTH = 64

# Log levels
LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Default service endpoints per network; hosted networks must be configured
NETWORK_PRESETS: Dict[Network, Dict[str, str]] = {
    Network.LOCAL: {
        "indexer": "http://127.0.0.1:8088/api/v1/graphql",
        "indexer_ws": "ws://127.0.0.1:8088/api/v1/graphql/ws",
        "node": "http://127.0.0.1:9944",
        "proof_server": "http://127.0.0.1:6300",
    },
    Network.TESTNET: {
        "proof_server": "http://127.0.0.1:6300",
    },
    Network.MAINNET: {
        "proof_server": "http://127.0.0.1:6300",
    },
}

ENDPOINT_ENV_VARS = {
    "indexer": "INDEXER_URL",
    "indexer_ws": "INDEXER_WS_URL",
    "node": "NODE_URL",
    "proof_server": "PROOF_SERVER_URL",
}


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _env_network() -> Network:
    value = os.getenv("DEPLOY_NETWORK", Network.LOCAL.value).lower()
    # "undeployed" is the standalone network's own name
    if value == "undeployed":
        return Network.LOCAL
    try:
        return Network(value)
    except ValueError:
        logging.warning(f"Unknown DEPLOY_NETWORK '{value}', falling back to local")
        return Network.LOCAL


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry behaviour of a single pipeline stage.

    Attributes:
        max_attempts: Attempt ceiling (None for no ceiling)
        initial_delay: First delay between attempts, in seconds
        max_delay: Cap on the delay between attempts, in seconds
        timeout: Overall deadline for the stage, in seconds (None for none)
    """
    max_attempts: Optional[int] = None
    initial_delay: float = 1.0
    max_delay: float = 30.0
    timeout: Optional[float] = None


@dataclass
class AppConfig:
    """Application configuration."""

    # Network
    network: Network = field(default_factory=_env_network)
    indexer_url: Optional[str] = field(default_factory=lambda: os.getenv("INDEXER_URL"))
    indexer_ws_url: Optional[str] = field(default_factory=lambda: os.getenv("INDEXER_WS_URL"))
    node_url: Optional[str] = field(default_factory=lambda: os.getenv("NODE_URL"))
    proof_server_url: Optional[str] = field(default_factory=lambda: os.getenv("PROOF_SERVER_URL"))
    funding_url: Optional[str] = field(default_factory=lambda: os.getenv("FUNDING_URL"))

    # Wallet
    wallet_seed: Optional[str] = field(default_factory=lambda: os.getenv("WALLET_SEED"))
    min_balance: int = field(
        default_factory=lambda: int(os.getenv("MIN_BALANCE", "1"))
    )
    funding_timeout_secs: float = field(
        default_factory=lambda: float(os.getenv("FUNDING_TIMEOUT_SECS", "300"))
    )

    # Remote calls
    request_timeout_secs: float = field(
        default_factory=lambda: float(os.getenv("REQUEST_TIMEOUT_SECS", "10"))
    )
    probe_endpoints: bool = field(
        default_factory=lambda: _env_bool("PROBE_ENDPOINTS", "true")
    )
    confirmation_timeout_secs: float = field(
        default_factory=lambda: float(os.getenv("CONFIRMATION_TIMEOUT_SECS", "180"))
    )

    # Contract
    contract_name: str = field(
        default_factory=lambda: os.getenv("CONTRACT_NAME", "age-verification")
    )
    private_state_id: str = field(
        default_factory=lambda: os.getenv("PRIVATE_STATE_ID", "contractPrivateState")
    )
    private_state_dir: Path = field(
        default_factory=lambda: Path(
            os.getenv("PRIVATE_STATE_DIR", str(DEFAULT_PRIVATE_STATE_DIR))
        )
    )

    # Manifest
    manifest_path: Path = field(
        default_factory=lambda: Path(os.getenv("MANIFEST_PATH", str(DEFAULT_MANIFEST_PATH)))
    )
    refuse_existing_manifest: bool = field(
        default_factory=lambda: os.getenv("MANIFEST_POLICY", "overwrite").lower() == "refuse"
    )

    # Logging
    log_level: int = field(
        default_factory=lambda: LOG_LEVELS.get(
            os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO
        )
    )
    log_dir: Path = field(
        default_factory=lambda: Path(os.getenv("LOG_DIR", str(DEFAULT_LOGS_DIR)))
    )
    json_logs: bool = field(
        default_factory=lambda: _env_bool("JSON_LOGS", "false")
    )

    # Per-stage retry policies
    funding_poll: RetryPolicy = field(
        default_factory=lambda: RetryPolicy(max_attempts=10, initial_delay=1.0, max_delay=30.0)
    )
    endpoint_probe: RetryPolicy = field(
        default_factory=lambda: RetryPolicy(max_attempts=3, initial_delay=0.5, max_delay=0.5)
    )
    confirmation: RetryPolicy = field(
        default_factory=lambda: RetryPolicy(initial_delay=1.0, max_delay=10.0)
    )

    def resolve_seed(self) -> Optional[str]:
        """
        Seed to deploy with.

        Falls back to the genesis wallet on a local network.
        """
        if self.wallet_seed:
            return self.wallet_seed.strip()
        if self.network == Network.LOCAL:
            return GENESIS_SEED
        return None

    def endpoints(self) -> ServiceEndpointSet:
        """
        Build the service endpoint set from overrides and network presets.

        Raises:
            KeyError: If an endpoint has neither an override nor a preset
        """
        preset = NETWORK_PRESETS[self.network]
        overrides = {
            "indexer": self.indexer_url,
            "indexer_ws": self.indexer_ws_url,
            "node": self.node_url,
            "proof_server": self.proof_server_url,
        }
        values = {}
        for name, override in overrides.items():
            value = override or preset.get(name)
            if not value:
                raise KeyError(name)
            values[name] = value
        return ServiceEndpointSet(**values)

    def resolve_funding_url(self) -> Optional[str]:
        """Funding source URL; the node answers balance queries by default."""
        if self.funding_url:
            return self.funding_url
        return self.node_url or NETWORK_PRESETS[self.network].get("node")

    def validate(self) -> List[str]:
        """
        Validate configuration values.

        Returns:
            List[str]: List of validation errors, empty if valid
        """
        errors = []

        if not self.resolve_seed():
            errors.append(f"WALLET_SEED is required on the {self.network.value} network")

        for name, env_var in ENDPOINT_ENV_VARS.items():
            override = getattr(self, f"{name}_url")
            if not override and not NETWORK_PRESETS[self.network].get(name):
                errors.append(f"{env_var} is required on the {self.network.value} network")

        funding_url = self.resolve_funding_url()
        if funding_url and not urlsplit(funding_url).netloc:
            errors.append(f"FUNDING_URL is not a valid URL: {funding_url}")

        # Validate numeric values
        if self.min_balance < 0:
            errors.append("MIN_BALANCE must not be negative")

        if self.funding_timeout_secs <= 0:
            errors.append("FUNDING_TIMEOUT_SECS must be positive")

        if self.request_timeout_secs <= 0:
            errors.append("REQUEST_TIMEOUT_SECS must be positive")

        if self.confirmation_timeout_secs <= 0:
            errors.append("CONFIRMATION_TIMEOUT_SECS must be positive")

        if not self.manifest_path.parent.exists():
            errors.append(f"Manifest directory does not exist: {self.manifest_path.parent}")

        return errors
