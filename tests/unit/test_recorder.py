#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Unit tests for the deployment recorder.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

import pytest

from conftest import CONTRACT_ADDRESS, TX_ID
from contract_deployer.errors import PersistenceError
from contract_deployer.models import DeploymentManifest, DeploymentResult, Network
from contract_deployer.recorder import DeploymentRecorder, ManifestPolicy, atomic_write_text

DEPLOYED_AT = datetime(2026, 10, 19, 12, 30, tzinfo=timezone.utc)


@pytest.fixture
def manifest(endpoints) -> DeploymentManifest:
    result = DeploymentResult(address=CONTRACT_ADDRESS, tx_id=TX_ID, block_height=42)
    return DeploymentManifest.build(result, Network.LOCAL, endpoints, deployed_at=DEPLOYED_AT)


class TestAtomicWrite:
    """Tests for atomic_write_text()."""

    def test_replaces_contents(self, tmp_path):
        path = tmp_path / "out.json"
        path.write_text("old")

        atomic_write_text(path, "new")

        assert path.read_text() == "new"
        assert list(tmp_path.iterdir()) == [path]

    @pytest.mark.parametrize("failing", ["fsync", "replace"])
    def test_crash_keeps_previous_file(self, tmp_path, monkeypatch, failing):
        """A failure before the rename leaves the old file and no temp file."""
        path = tmp_path / "out.json"
        path.write_text("previous")

        def crash(*args, **kwargs):
            raise OSError("simulated crash")

        monkeypatch.setattr(f"contract_deployer.recorder.os.{failing}", crash)

        with pytest.raises(OSError):
            atomic_write_text(path, "half written")

        assert path.read_text() == "previous"
        assert list(tmp_path.iterdir()) == [path]


class TestDeploymentRecorder:
    """Tests for DeploymentRecorder."""

    def test_record_and_load(self, tmp_path, manifest):
        path = tmp_path / "deployment.json"
        recorder = DeploymentRecorder()

        recorder.record(manifest, path)

        data = json.loads(path.read_text())
        assert data["resourceAddress"] == CONTRACT_ADDRESS
        assert data["contractAddress"] == CONTRACT_ADDRESS
        assert data["network"] == "local"
        assert data["endpoints"]["indexerWS"] == "ws://indexer.test/api/v1/graphql/ws"
        assert data["endpoints"]["proofServer"] == "http://proof.test"
        assert data["deployedAt"].startswith("2026-10-19T12:30:00")
        assert "config" not in data

        loaded = recorder.load(path)
        assert loaded.resource_address == CONTRACT_ADDRESS
        assert loaded.endpoints == manifest.endpoints
        assert loaded == manifest

    def test_load_legacy_address_key(self, tmp_path, manifest):
        path = tmp_path / "deployment.json"
        data = json.loads(manifest.to_json())
        del data["resourceAddress"]
        path.write_text(json.dumps(data))

        loaded = DeploymentRecorder().load(path)

        assert loaded.resource_address == CONTRACT_ADDRESS

    def test_overwrite_leaves_no_stale_fields(self, tmp_path, manifest, endpoints):
        path = tmp_path / "deployment.json"
        path.write_text(json.dumps({"contractAddress": "old", "legacyField": True}, indent=2))

        DeploymentRecorder().record(manifest, path)

        data = json.loads(path.read_text())
        assert "legacyField" not in data
        assert data["resourceAddress"] == CONTRACT_ADDRESS

    def test_refuse_existing(self, tmp_path, manifest):
        path = tmp_path / "deployment.json"
        path.write_text("{}")
        recorder = DeploymentRecorder(policy=ManifestPolicy.REFUSE)

        with pytest.raises(PersistenceError) as exc_info:
            recorder.record(manifest, path)

        assert exc_info.value.contract_address == CONTRACT_ADDRESS
        assert path.read_text() == "{}"

    def test_refuse_manifest_created_after_check(self, tmp_path, manifest, monkeypatch):
        """A manifest that appears between the existence check and the write is kept."""
        path = tmp_path / "deployment.json"
        path.write_text("{}")
        monkeypatch.setattr(Path, "exists", lambda self: False)

        with pytest.raises(PersistenceError) as exc_info:
            DeploymentRecorder(policy=ManifestPolicy.REFUSE).record(manifest, path)

        assert "Refusing to overwrite" in str(exc_info.value)
        assert path.read_text() == "{}"
        assert list(tmp_path.iterdir()) == [path]

    def test_refuse_writes_new_manifest(self, tmp_path, manifest):
        path = tmp_path / "deployment.json"

        DeploymentRecorder(policy=ManifestPolicy.REFUSE).record(manifest, path)

        assert json.loads(path.read_text())["resourceAddress"] == CONTRACT_ADDRESS
        assert list(tmp_path.iterdir()) == [path]

    def test_write_failure_logs_address(self, tmp_path, manifest, caplog):
        path = tmp_path / "missing-dir" / "deployment.json"

        with caplog.at_level(logging.CRITICAL):
            with pytest.raises(PersistenceError) as exc_info:
                DeploymentRecorder().record(manifest, path)

        assert exc_info.value.contract_address == CONTRACT_ADDRESS
        assert exc_info.value.stage == "Recording"
        critical = [r for r in caplog.records if r.levelno == logging.CRITICAL]
        assert critical
        assert CONTRACT_ADDRESS in critical[0].getMessage()
        assert "DEPLOYMENT NOT RECORDED" in critical[0].getMessage()

    def test_load_missing_returns_none(self, tmp_path):
        assert DeploymentRecorder().load(tmp_path / "deployment.json") is None

    @pytest.mark.parametrize("contents", ["not json", "{}", '{"resourceAddress": ""}', '{"contractAddress": ""}'])
    def test_load_invalid_raises(self, tmp_path, contents):
        path = tmp_path / "deployment.json"
        path.write_text(contents)

        with pytest.raises(PersistenceError):
            DeploymentRecorder().load(path)
