#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Deployment Recorder

Persists the deployment manifest with a write-then-rename discipline, so a
reader of the manifest path only ever sees the previous manifest or the
complete new one.
"""

import os
import json
import logging
import tempfile
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from contract_deployer.errors import PersistenceError
from contract_deployer.models import DeploymentManifest, LifecycleState
from contract_deployer.utils.logger import get_logger, log_stage_event


class ManifestPolicy(str, Enum):
    """What to do when a manifest already exists at the target path."""
    OVERWRITE = "overwrite"
    REFUSE = "refuse"


def _fsync_directory(dir_path: Path) -> None:
    """Sync directory for crash safety."""
    try:
        fd = os.open(str(dir_path), os.O_RDONLY | os.O_DIRECTORY)
    except (OSError, AttributeError):
        # O_DIRECTORY is unavailable on some platforms
        return
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def atomic_write_text(path: Union[str, Path], text: str, exclusive: bool = False) -> None:
    """
    Atomically replace the contents of a file.

    The text goes to a temporary file in the same directory, is flushed to
    disk, then renamed over the target. The temporary file is removed if
    anything fails before the rename.

    Args:
        path: Target file
        text: New contents
        exclusive: Hard-link the temporary file into place instead of
            renaming it, so an existing target is never replaced

    Raises:
        FileExistsError: If exclusive and the target exists
        OSError: If the file cannot be written or renamed
    """
    path = Path(path)
    fd, temp_path = tempfile.mkstemp(
        suffix=".tmp",
        prefix=f".{path.stem}_",
        dir=path.parent,
    )

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())

        if exclusive:
            os.link(temp_path, path)
            os.unlink(temp_path)
        else:
            os.replace(temp_path, path)
    except BaseException:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise

    _fsync_directory(path.parent)


class DeploymentRecorder:
    """Writes deployment manifests atomically."""

    def __init__(
        self,
        policy: ManifestPolicy = ManifestPolicy.OVERWRITE,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the recorder.

        Args:
            policy: Default policy for an existing manifest. Each run is a
                fresh deployment, so the default replaces the old record.
            logger: Logger for progress events (defaults to the module logger)
        """
        self.policy = policy
        self.logger = logger or get_logger(__name__)

    def record(
        self,
        manifest: DeploymentManifest,
        path: Union[str, Path],
        policy: Optional[ManifestPolicy] = None,
    ) -> None:
        """
        Write a manifest to path.

        Args:
            manifest: Manifest to persist
            path: Target manifest path
            policy: Overrides the recorder's existing-manifest policy

        Raises:
            PersistenceError: If the manifest exists under REFUSE, or cannot be written
        """
        stage = LifecycleState.RECORDING.value
        path = Path(path)
        policy = policy or self.policy

        log_stage_event(self.logger, stage, "enter", f"Recording deployment manifest at {path}")

        refuse = policy == ManifestPolicy.REFUSE
        if path.exists():
            if refuse:
                self._refuse_existing(manifest, path)
            self.logger.info(f"Overwriting existing manifest at {path}")

        try:
            atomic_write_text(path, manifest.to_json() + "\n", exclusive=refuse)
        except FileExistsError:
            # Created by someone else after the check above
            self._refuse_existing(manifest, path)
        except OSError as e:
            self._log_unrecorded(manifest, str(e))
            raise PersistenceError(
                f"Could not write manifest to {path}: {e}",
                contract_address=manifest.resource_address,
                stage=stage,
            ) from e

        log_stage_event(self.logger, stage, "complete", f"Manifest written to {path}")

    def load(self, path: Union[str, Path]) -> Optional[DeploymentManifest]:
        """
        Read a manifest.

        Returns:
            The manifest, or None if no manifest exists at path

        Raises:
            PersistenceError: If the file exists but cannot be read or parsed
        """
        path = Path(path)
        if not path.exists():
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return DeploymentManifest.model_validate(data)
        except (OSError, ValueError, ValidationError) as e:
            raise PersistenceError(f"Could not read manifest at {path}: {e}") from e

    def _refuse_existing(self, manifest: DeploymentManifest, path: Path) -> None:
        stage = LifecycleState.RECORDING.value
        self._log_unrecorded(manifest, f"manifest already exists at {path}")
        raise PersistenceError(
            f"Refusing to overwrite existing manifest at {path}",
            contract_address=manifest.resource_address,
            stage=stage,
        )

    def _log_unrecorded(self, manifest: DeploymentManifest, reason: str) -> None:
        # The contract is live on the network; an operator has to record it by hand
        self.logger.critical(
            f"DEPLOYMENT NOT RECORDED ({reason}). Contract {manifest.resource_address} "
            f"was deployed to {manifest.network.value}; manifest contents:\n{manifest.to_json()}"
        )
