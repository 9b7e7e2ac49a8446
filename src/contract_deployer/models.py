#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Deployment Models - Values handed forward between pipeline stages.

Identity -> ProviderBundle -> DeploymentResult -> DeploymentManifest
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

if TYPE_CHECKING:
    from contract_deployer.clients.funding import WalletConnection
    from contract_deployer.state_store import PrivateStateStore


class Network(str, Enum):
    """Network a contract is deployed to."""
    LOCAL = "local"
    TESTNET = "testnet"
    MAINNET = "mainnet"


class LifecycleState(str, Enum):
    """State of a deployment run."""
    IDLE = "Idle"
    BUILDING_IDENTITY = "BuildingIdentity"
    AWAITING_FUNDS = "AwaitingFunds"
    CONFIGURING_PROVIDERS = "ConfiguringProviders"
    DEPLOYING = "Deploying"
    RECORDING = "Recording"
    SERVING = "Serving"
    SHUTTING_DOWN = "ShuttingDown"
    FAILED = "Failed"


@dataclass(frozen=True)
class ServiceEndpointSet:
    """Remote service endpoints used for a deployment."""
    indexer: str
    indexer_ws: str
    node: str
    proof_server: str

    def items(self):
        """Endpoint names and URIs, in probing order."""
        return [
            ("indexer", self.indexer),
            ("indexer_ws", self.indexer_ws),
            ("node", self.node),
            ("proof_server", self.proof_server),
        ]

    def as_dict(self) -> Dict[str, str]:
        """Endpoints in the manifest's ``endpoints`` shape."""
        return {
            "indexer": self.indexer,
            "indexerWS": self.indexer_ws,
            "node": self.node,
            "proofServer": self.proof_server,
        }


@dataclass(frozen=True)
class Identity:
    """
    Wallet identity derived from a seed.

    The balance is the value seen by the most recent poll only.
    """
    seed: str = field(repr=False)
    address: str
    connection: "WalletConnection" = field(repr=False, compare=False)
    balance: int = 0


@dataclass(frozen=True)
class ProviderBundle:
    """Everything needed to submit a deployment transaction."""
    identity: Identity
    endpoints: ServiceEndpointSet
    private_state_store: "PrivateStateStore" = field(repr=False, compare=False)


@dataclass(frozen=True)
class DeploymentResult:
    """Outcome of a confirmed deployment."""
    address: str
    tx_id: str
    block_height: Optional[int] = None
    tx_metadata: Dict[str, Any] = field(default_factory=dict, compare=False)


# Address key of manifests written before resourceAddress
LEGACY_ADDRESS_KEY = "contractAddress"


class ManifestEndpoints(BaseModel):
    """Endpoint block of a deployment manifest."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    indexer: str
    indexer_ws: str = Field(alias="indexerWS")
    node: str
    proof_server: str = Field(alias="proofServer")

    @classmethod
    def from_endpoints(cls, endpoints: ServiceEndpointSet) -> "ManifestEndpoints":
        return cls.model_validate(endpoints.as_dict())


class DeploymentManifest(BaseModel):
    """
    Durable record of a completed deployment.

    External readers (the frontend build, operators) discover the deployed
    contract address through this record. The address is written under
    ``resourceAddress`` and repeated as ``contractAddress`` for readers of the
    older layout.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    resource_address: str = Field(alias="resourceAddress", min_length=1)
    deployed_at: datetime = Field(alias="deployedAt")
    network: Network
    endpoints: ManifestEndpoints

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_address(cls, data: Any) -> Any:
        if isinstance(data, dict) and LEGACY_ADDRESS_KEY in data:
            data = dict(data)
            legacy = data.pop(LEGACY_ADDRESS_KEY)
            if "resourceAddress" not in data and "resource_address" not in data:
                data["resourceAddress"] = legacy
        return data

    @computed_field(alias=LEGACY_ADDRESS_KEY)
    @property
    def contract_address(self) -> str:
        return self.resource_address

    @classmethod
    def build(
        cls,
        result: DeploymentResult,
        network: Network,
        endpoints: ServiceEndpointSet,
        deployed_at: Optional[datetime] = None,
    ) -> "DeploymentManifest":
        """Create a manifest for a confirmed deployment."""
        return cls(
            resource_address=result.address,
            deployed_at=deployed_at or datetime.now(timezone.utc),
            network=network,
            endpoints=ManifestEndpoints.from_endpoints(endpoints),
        )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)
