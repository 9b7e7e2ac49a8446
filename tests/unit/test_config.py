#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Unit tests for the configuration module.
"""

import logging
from pathlib import Path

import pytest

from contract_deployer.config import GENESIS_SEED, AppConfig, RetryPolicy
from contract_deployer.models import Network


class TestAppConfig:
    """Tests for the AppConfig class."""

    def test_load_from_env(self, mock_env_vars, tmp_path, temp_log_dir):
        """Test that config loads values from environment variables."""
        config = AppConfig()

        assert config.network == Network.LOCAL
        assert config.wallet_seed == "ab" * 32
        assert config.min_balance == 50
        assert config.funding_timeout_secs == 5.0
        assert config.manifest_path == tmp_path / "deployment.json"
        assert config.refuse_existing_manifest is True
        assert config.private_state_dir == tmp_path / "state"
        assert config.probe_endpoints is False
        assert config.log_level == logging.DEBUG
        assert config.log_dir == temp_log_dir

    def test_undeployed_network_alias(self, mock_env_vars, monkeypatch):
        """The standalone network's own name maps to local."""
        monkeypatch.setenv("DEPLOY_NETWORK", "undeployed")
        assert AppConfig().network == Network.LOCAL

    def test_endpoints_merge_presets_and_overrides(self, mock_env_vars):
        """Overrides win; the rest comes from the local preset."""
        endpoints = AppConfig().endpoints()

        assert endpoints.node == "http://node.test"
        assert endpoints.proof_server == "http://proof.test"
        assert endpoints.indexer == "http://127.0.0.1:8088/api/v1/graphql"
        assert endpoints.indexer_ws == "ws://127.0.0.1:8088/api/v1/graphql/ws"

    def test_funding_url_defaults_to_node(self, mock_env_vars, monkeypatch):
        config = AppConfig()
        assert config.resolve_funding_url() == "http://node.test"

        monkeypatch.setenv("FUNDING_URL", "http://faucet.test")
        assert AppConfig().resolve_funding_url() == "http://faucet.test"

    def test_genesis_seed_on_local_network(self, mock_env_vars, monkeypatch):
        """Without a configured seed the local network uses the genesis wallet."""
        monkeypatch.delenv("WALLET_SEED")
        config = AppConfig()

        assert config.resolve_seed() == GENESIS_SEED
        assert len(GENESIS_SEED) == 64

    def test_validate_valid_config(self, mock_env_vars):
        """Test validation with valid configuration."""
        config = AppConfig()

        errors = config.validate()
        assert len(errors) == 0

    def test_validate_testnet_requires_seed_and_endpoints(self, mock_env_vars, monkeypatch):
        """Hosted networks have no endpoint presets and no genesis wallet."""
        monkeypatch.setenv("DEPLOY_NETWORK", "testnet")
        monkeypatch.delenv("WALLET_SEED")
        monkeypatch.delenv("NODE_URL")
        config = AppConfig()

        errors = config.validate()
        assert any("WALLET_SEED is required" in error for error in errors)
        assert any("INDEXER_URL is required" in error for error in errors)
        assert any("INDEXER_WS_URL is required" in error for error in errors)
        assert any("NODE_URL is required" in error for error in errors)
        # The proof server runs locally on every network
        assert not any("PROOF_SERVER_URL" in error for error in errors)

    def test_validate_invalid_config(self, mock_env_vars):
        """Test validation with invalid configuration."""
        config = AppConfig()

        config.min_balance = -1
        config.funding_timeout_secs = 0
        config.request_timeout_secs = -5
        config.manifest_path = Path("/non/existent/path/deployment.json")
        config.funding_url = "not a url"

        errors = config.validate()
        assert any("MIN_BALANCE must not be negative" in error for error in errors)
        assert any("FUNDING_TIMEOUT_SECS must be positive" in error for error in errors)
        assert any("REQUEST_TIMEOUT_SECS must be positive" in error for error in errors)
        assert any("Manifest directory does not exist" in error for error in errors)
        assert any("FUNDING_URL is not a valid URL" in error for error in errors)

    def test_endpoints_missing_raises(self, mock_env_vars, monkeypatch):
        monkeypatch.setenv("DEPLOY_NETWORK", "mainnet")
        config = AppConfig()
        config.indexer_url = None

        with pytest.raises(KeyError):
            config.endpoints()

    def test_retry_policies_are_named_per_stage(self, mock_env_vars):
        config = AppConfig()

        assert config.funding_poll == RetryPolicy(max_attempts=10, initial_delay=1.0, max_delay=30.0)
        assert config.endpoint_probe.max_attempts == 3
        assert config.endpoint_probe.initial_delay == config.endpoint_probe.max_delay
        assert config.confirmation.max_attempts is None
