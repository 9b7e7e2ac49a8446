#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Deployment error taxonomy.

Every failure the pipeline can surface is a DeploymentError. The stage the
error was raised in is attached so the top-level run can report where the
pipeline stopped.
"""

from typing import Optional


class DeploymentError(Exception):
    """Base exception for deployment pipeline errors."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage

    @property
    def kind(self) -> str:
        """Name of the error kind, as shown in failure summaries."""
        return type(self).__name__


class ConfigurationError(DeploymentError):
    """Exception raised when the run configuration is invalid."""
    pass


class InvalidSeedError(DeploymentError):
    """Exception raised when a wallet seed is malformed."""
    pass


class FundingTimeoutError(DeploymentError):
    """Exception raised when the wallet is not funded before the deadline."""

    def __init__(self, message: str, balance: int = 0, attempts: int = 0, stage: Optional[str] = None):
        super().__init__(message, stage)
        self.balance = balance
        self.attempts = attempts


class FundingSourceUnavailableError(DeploymentError):
    """Exception raised when the funding source cannot be reached."""
    pass


class EndpointUnreachableError(DeploymentError):
    """Exception raised when a service endpoint is malformed or unreachable."""

    def __init__(self, endpoint_name: str, uri: str, reason: str, stage: Optional[str] = None):
        super().__init__(f"Endpoint '{endpoint_name}' ({uri}) is unreachable: {reason}", stage)
        self.endpoint_name = endpoint_name
        self.uri = uri
        self.reason = reason


class DeploymentRejectedError(DeploymentError):
    """Exception raised when the deployment definitely did not happen."""
    pass


class DeploymentUnconfirmedError(DeploymentError):
    """Exception raised when the outcome of a submitted deployment is unknown.

    Callers must not assume the contract was not deployed.
    """

    def __init__(self, message: str, tx_id: Optional[str] = None, stage: Optional[str] = None):
        super().__init__(message, stage)
        self.tx_id = tx_id


class PersistenceError(DeploymentError):
    """Exception raised when the deployment manifest cannot be written."""

    def __init__(self, message: str, contract_address: Optional[str] = None, stage: Optional[str] = None):
        super().__init__(message, stage)
        self.contract_address = contract_address


class InterruptedError(DeploymentError):
    """Exception raised when the run is interrupted before it reaches serving."""
    pass
