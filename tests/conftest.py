#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Pytest configuration file for the Contract Deployer test suite.
"""

import os
import sys
from pathlib import Path
from typing import Any, List, Optional

import httpx
import pytest

# Add the src directory to Python path for accessing contract_deployer
project_root = Path(__file__).parent.parent
src_path = os.path.join(project_root, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from contract_deployer.clients.funding import WalletConnection
from contract_deployer.models import Identity, ServiceEndpointSet

GENESIS_SEED = "0" * 63 + "1"
CONTRACT_ADDRESS = "0200f3a1c2d4e5b6a7988776655443322110ffeeddccbbaa99887766554433221100"
TX_ID = "tx-00000001"


# Define pytest markers
def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "integration: mark test as requiring running network services"
    )


class FakeFundingSource:
    """Funding source that answers from a script of balances and errors."""

    def __init__(self, balances: Optional[List[Any]] = None, final: Any = 0):
        self.script = list(balances or [])
        self.final = final
        self.calls = 0
        self.close_calls = 0

    async def get_balance(self, address: str) -> int:
        self.calls += 1
        value = self.script.pop(0) if self.script else self.final
        if isinstance(value, Exception):
            raise value
        return value

    async def close(self) -> None:
        self.close_calls += 1


class FakeLedgerServices:
    """
    Proof server and ledger node behind one httpx MockTransport.

    The proof server lives at http://proof.test, the node at http://node.test.
    """

    def __init__(
        self,
        address: str = CONTRACT_ADDRESS,
        tx_id: str = TX_ID,
        pending_polls: int = 1,
        final_status: str = "confirmed",
        prove_status: int = 200,
        submit_status: int = 202,
        submit_error: Optional[Exception] = None,
    ):
        self.address = address
        self.tx_id = tx_id
        self.pending_polls = pending_polls
        self.final_status = final_status
        self.prove_status = prove_status
        self.submit_status = submit_status
        self.submit_error = submit_error
        self.proofs = 0
        self.submissions = 0
        self.status_polls = 0
        self.submitted: List[bytes] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        host, path = request.url.host, request.url.path

        if host == "proof.test" and path == "/prove":
            self.proofs += 1
            if self.prove_status != 200:
                return httpx.Response(self.prove_status, json={"error": "proof failed"})
            return httpx.Response(200, json={"proof": "proof-bytes"})

        if host == "node.test" and request.method == "POST" and path == "/transactions":
            self.submissions += 1
            self.submitted.append(request.content)
            if self.submit_error is not None:
                raise self.submit_error
            return httpx.Response(self.submit_status, json={"txId": self.tx_id})

        if host == "node.test" and path == f"/transactions/{self.tx_id}":
            self.status_polls += 1
            if self.status_polls <= self.pending_polls:
                return httpx.Response(200, json={"status": "pending"})
            if self.final_status == "confirmed":
                return httpx.Response(200, json={
                    "status": "confirmed",
                    "contractAddress": self.address,
                    "blockHeight": 42,
                })
            return httpx.Response(200, json={"status": self.final_status, "reason": "insufficient fee"})

        return httpx.Response(404)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def endpoints() -> ServiceEndpointSet:
    """Endpoint set pointing at the fake services."""
    return ServiceEndpointSet(
        indexer="http://indexer.test/api/v1/graphql",
        indexer_ws="ws://indexer.test/api/v1/graphql/ws",
        node="http://node.test",
        proof_server="http://proof.test",
    )


@pytest.fixture
def funding_source() -> FakeFundingSource:
    return FakeFundingSource(final=100)


@pytest.fixture
def identity(funding_source) -> Identity:
    """Funded identity over a fake wallet connection."""
    return Identity(
        seed=GENESIS_SEED,
        address="a" * 64,
        connection=WalletConnection(funding_source),
        balance=100,
    )


@pytest.fixture
def ledger_services() -> FakeLedgerServices:
    return FakeLedgerServices()


@pytest.fixture(scope="function")
def temp_log_dir(tmp_path: Path) -> Path:
    """Temporary log directory for testing."""
    return tmp_path / "logs"


@pytest.fixture(scope="function")
def mock_env_vars(monkeypatch, tmp_path: Path, temp_log_dir: Path):
    """
    Set up environment variables for testing.

    Args:
        monkeypatch: Pytest monkeypatch fixture
        tmp_path: Temporary directory
        temp_log_dir: Temporary log directory
    """
    monkeypatch.setenv("DEPLOY_NETWORK", "local")
    monkeypatch.setenv("WALLET_SEED", "ab" * 32)
    monkeypatch.setenv("MIN_BALANCE", "50")
    monkeypatch.setenv("FUNDING_TIMEOUT_SECS", "5")
    monkeypatch.setenv("NODE_URL", "http://node.test")
    monkeypatch.setenv("PROOF_SERVER_URL", "http://proof.test")
    monkeypatch.setenv("MANIFEST_PATH", str(tmp_path / "deployment.json"))
    monkeypatch.setenv("MANIFEST_POLICY", "refuse")
    monkeypatch.setenv("PRIVATE_STATE_DIR", str(tmp_path / "state"))
    monkeypatch.setenv("PROBE_ENDPOINTS", "false")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("LOG_DIR", str(temp_log_dir))
    for name in ("FUNDING_URL", "INDEXER_URL", "INDEXER_WS_URL", "JSON_LOGS", "LOG_FILE_PATH"):
        monkeypatch.delenv(name, raising=False)
