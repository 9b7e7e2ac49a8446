"""
Private State Store

File-backed key/value store for the contract's private state. One JSON file
per store; every write replaces the file atomically.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from contract_deployer.recorder import atomic_write_text

logger = logging.getLogger(__name__)

DEFAULT_STORE_NAME = "contract-private-state"


class PrivateStateStore:
    """Local store for private contract state, keyed by private-state id."""

    def __init__(self, directory: Union[str, Path], name: str = DEFAULT_STORE_NAME):
        """
        Open (or create) a store.

        Args:
            directory: Directory holding the store file
            name: Store name; the file is ``<name>.json``

        Raises:
            OSError: If the directory cannot be created or the file cannot be read
        """
        self.directory = Path(directory)
        self.name = name
        self.path = self.directory / f"{name}.json"
        self.closed = False

        self.directory.mkdir(parents=True, exist_ok=True)
        self._states: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            try:
                return json.load(f)
            except ValueError:
                logger.warning(f"Private state store {self.path} is corrupt, starting empty")
                return {}

    def get(self, state_id: str) -> Optional[Any]:
        return self._states.get(state_id)

    def set(self, state_id: str, state: Any) -> None:
        """Store the private state for state_id and persist the store."""
        if self.closed:
            raise RuntimeError(f"Private state store '{self.name}' is closed")
        self._states[state_id] = state
        atomic_write_text(self.path, json.dumps(self._states, indent=2, default=str))

    async def close(self) -> None:
        self.closed = True
