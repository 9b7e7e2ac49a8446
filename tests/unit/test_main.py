#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Unit tests for the command-line interface.
"""

from pathlib import Path

import pytest

import contract_deployer
from conftest import CONTRACT_ADDRESS
from contract_deployer.main import apply_overrides, main, setup_argparse
from contract_deployer.config import AppConfig
from contract_deployer.models import DeploymentManifest, DeploymentResult, Network
from contract_deployer.recorder import DeploymentRecorder


@pytest.fixture
def recorded_manifest(mock_env_vars, tmp_path, endpoints) -> Path:
    path = tmp_path / "deployment.json"
    result = DeploymentResult(address=CONTRACT_ADDRESS, tx_id="tx-1")
    DeploymentRecorder().record(DeploymentManifest.build(result, Network.LOCAL, endpoints), path)
    return path


class TestMain:
    """Tests for main()."""

    def test_version(self, capsys):
        assert main(["--version"]) == 0
        assert contract_deployer.__version__ in capsys.readouterr().out

    def test_show(self, recorded_manifest, capsys):
        assert main(["show"]) == 0
        out = capsys.readouterr().out
        assert f'"resourceAddress": "{CONTRACT_ADDRESS}"' in out
        assert '"endpoints"' in out

    def test_env(self, recorded_manifest, capsys):
        assert main(["env"]) == 0
        assert capsys.readouterr().out.strip() == f"VITE_CONTRACT_ADDRESS={CONTRACT_ADDRESS}"

    def test_show_missing_manifest(self, mock_env_vars, capsys):
        assert main(["show"]) == 1
        assert "No deployment manifest" in capsys.readouterr().err

    def test_env_invalid_manifest(self, mock_env_vars, tmp_path, capsys):
        (tmp_path / "deployment.json").write_text("{}")

        assert main(["env"]) == 1
        assert "Error" in capsys.readouterr().err

    def test_overrides(self, mock_env_vars, tmp_path):
        args = setup_argparse().parse_args([
            "--network", "testnet",
            "--min-balance", "7",
            "--funding-timeout", "1.5",
            "--refuse-existing",
            "--manifest", str(tmp_path / "other.json"),
            "--log-level", "WARNING",
        ])

        config = apply_overrides(AppConfig(), args)

        assert config.network == Network.TESTNET
        assert config.min_balance == 7
        assert config.funding_timeout_secs == 1.5
        assert config.refuse_existing_manifest is True
        assert config.manifest_path == tmp_path / "other.json"
        assert config.log_level == 30

    def test_default_command_is_deploy(self):
        assert setup_argparse().parse_args([]).command == "deploy"
