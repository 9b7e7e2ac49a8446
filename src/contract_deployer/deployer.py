#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Contract Deployer

Proves the deploy transaction, submits it to the ledger node exactly once and
waits for the node to confirm it. The contract address is minted here.
"""

import uuid
import logging
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    retry_if_result,
    wait_exponential,
)

from contract_deployer.clients import MalformedResponseError
from contract_deployer.clients.ledger import (
    STATUS_CONFIRMED,
    STATUS_PENDING,
    STATUS_REJECTED,
    LedgerNodeClient,
)
from contract_deployer.clients.proof import ProofServerClient
from contract_deployer.config import RetryPolicy
from contract_deployer.errors import (
    DeploymentError,
    DeploymentRejectedError,
    DeploymentUnconfirmedError,
    PersistenceError,
)
from contract_deployer.models import DeploymentResult, LifecycleState, ProviderBundle
from contract_deployer.utils.deadline import Deadline, stop_at_deadline, wait_until_deadline
from contract_deployer.utils.logger import get_logger, log_stage_event

DEFAULT_CONTRACT_NAME = "age-verification"
DEFAULT_PRIVATE_STATE_ID = "contractPrivateState"
DEFAULT_CONFIRMATION_POLICY = RetryPolicy(initial_delay=1.0, max_delay=10.0, timeout=180.0)

# Errors while reading transaction status; the read is safe to repeat
TRANSIENT_STATUS_ERRORS = (httpx.TransportError, httpx.HTTPStatusError, MalformedResponseError)


class ContractDeployer:
    """
    Submits the one-time deploy transaction.

    Submission is at-most-once: a failed submit is surfaced, never resent,
    because the node offers no idempotency key to deduplicate on.
    """

    def __init__(
        self,
        contract_name: str = DEFAULT_CONTRACT_NAME,
        private_state_id: str = DEFAULT_PRIVATE_STATE_ID,
        policy: Optional[RetryPolicy] = None,
        request_timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the deployer.

        Args:
            contract_name: Name of the contract to deploy
            private_state_id: Key of the initial private state in the state store
            policy: Confirmation polling policy; timeout is the confirmation deadline
            request_timeout: Timeout of a single request, in seconds
            transport: Optional httpx transport (tests pass a MockTransport)
            logger: Logger for progress events (defaults to the module logger)
        """
        self.contract_name = contract_name
        self.private_state_id = private_state_id
        self.policy = policy or DEFAULT_CONFIRMATION_POLICY
        self.request_timeout = request_timeout
        self.transport = transport
        self.logger = logger or get_logger(__name__)

    async def deploy(self, bundle: ProviderBundle, initial_private_state: Any) -> DeploymentResult:
        """
        Deploy the contract and wait for confirmation.

        Args:
            bundle: Provider bundle from the configurator
            initial_private_state: Private state the contract starts with

        Returns:
            DeploymentResult: The confirmed contract address and transaction metadata

        Raises:
            DeploymentRejectedError: If the deployment definitely did not happen
            DeploymentUnconfirmedError: If the deployment may or may not have happened
        """
        stage = LifecycleState.DEPLOYING.value
        endpoints = bundle.endpoints
        transaction = self._build_transaction(bundle, initial_private_state)

        log_stage_event(
            self.logger, stage, "enter",
            f"Deploying contract '{self.contract_name}' from {bundle.identity.address}",
        )

        proof_client = ProofServerClient(
            endpoints.proof_server, timeout=self.request_timeout, transport=self.transport
        )
        node_client = LedgerNodeClient(
            endpoints.node, timeout=self.request_timeout, transport=self.transport
        )

        try:
            proof = await self._prove(proof_client, transaction)
            tx_id = await self._submit(node_client, transaction, proof)
            try:
                status = await self._await_confirmation(node_client, tx_id)
            except DeploymentError:
                raise
            except Exception as e:
                # The transaction is out; anything unexpected leaves its outcome unknown
                raise DeploymentUnconfirmedError(
                    f"Lost track of transaction {tx_id}: {e!r}", tx_id=tx_id, stage=stage
                ) from e
        finally:
            await proof_client.close()
            await node_client.close()

        address = status.get("contractAddress")
        if not address:
            raise DeploymentUnconfirmedError(
                f"Transaction {tx_id} confirmed without a contract address",
                tx_id=tx_id,
                stage=stage,
            )

        try:
            bundle.private_state_store.set(self.private_state_id, initial_private_state)
        except OSError as e:
            raise PersistenceError(
                f"Contract deployed at {address} but its private state could not be stored: {e}",
                contract_address=address,
                stage=stage,
            ) from e

        result = DeploymentResult(
            address=address,
            tx_id=tx_id,
            block_height=status.get("blockHeight"),
            tx_metadata=status,
        )
        log_stage_event(
            self.logger, stage, "complete",
            f"Contract deployed at {address} (tx {tx_id}, block {result.block_height})",
        )
        return result

    def _build_transaction(self, bundle: ProviderBundle, initial_private_state: Any) -> Dict[str, Any]:
        return {
            "type": "deploy",
            "contract": self.contract_name,
            "deployer": bundle.identity.address,
            "privateStateId": self.private_state_id,
            "initialPrivateState": initial_private_state,
            "nonce": uuid.uuid4().hex,
        }

    async def _prove(self, client: ProofServerClient, transaction: Dict[str, Any]) -> str:
        stage = LifecycleState.DEPLOYING.value
        log_stage_event(self.logger, stage, "prove", "Requesting proof for deploy transaction")
        try:
            return await client.prove(transaction)
        except (httpx.HTTPError, KeyError, ValueError) as e:
            # Nothing has been submitted yet
            raise DeploymentRejectedError(f"Proof server failed to prove deploy transaction: {e!r}", stage=stage) from e

    async def _submit(self, client: LedgerNodeClient, transaction: Dict[str, Any], proof: str) -> str:
        stage = LifecycleState.DEPLOYING.value
        log_stage_event(self.logger, stage, "submit", "Submitting deploy transaction (single attempt)")

        try:
            response = await client.submit_transaction(transaction, proof)
        except (httpx.ConnectError, httpx.ConnectTimeout) as e:
            raise DeploymentRejectedError(
                f"Ledger node refused the connection; transaction was not sent: {e!r}", stage=stage
            ) from e
        except httpx.TransportError as e:
            raise DeploymentUnconfirmedError(
                f"Submission outcome unknown, the request may have reached the node: {e!r}", stage=stage
            ) from e

        if 400 <= response.status_code < 500:
            raise DeploymentRejectedError(
                f"Ledger node rejected the deploy transaction (HTTP {response.status_code}): {response.text}",
                stage=stage,
            )
        if response.status_code >= 500:
            raise DeploymentUnconfirmedError(
                f"Ledger node failed while accepting the transaction (HTTP {response.status_code}); "
                f"outcome unknown",
                stage=stage,
            )

        try:
            tx_id = response.json()["txId"]
        except (ValueError, KeyError, TypeError) as e:
            raise DeploymentUnconfirmedError(
                f"Ledger node accepted the transaction without a transaction id: {response.text}",
                stage=stage,
            ) from e

        self.logger.info(f"Deploy transaction submitted: {tx_id}")
        return tx_id

    async def _await_confirmation(self, client: LedgerNodeClient, tx_id: str) -> Dict[str, Any]:
        stage = LifecycleState.DEPLOYING.value
        deadline = Deadline(self.policy.timeout)

        retrying = AsyncRetrying(
            stop=stop_at_deadline(deadline),
            wait=wait_until_deadline(
                wait_exponential(multiplier=self.policy.initial_delay, max=self.policy.max_delay),
                deadline,
            ),
            retry=(
                retry_if_exception_type(TRANSIENT_STATUS_ERRORS) |
                retry_if_result(lambda status: status.get("status", STATUS_PENDING) == STATUS_PENDING)
            ),
        )

        try:
            status = await retrying(self._poll_status, client, tx_id)
        except RetryError as e:
            raise DeploymentUnconfirmedError(
                f"Transaction {tx_id} not confirmed within {deadline.timeout}s; outcome unknown",
                tx_id=tx_id,
                stage=stage,
            ) from e

        state = status.get("status")
        if state == STATUS_REJECTED:
            raise DeploymentRejectedError(
                f"Transaction {tx_id} rejected by the network: {status.get('reason', 'no reason given')}",
                stage=stage,
            )
        if state != STATUS_CONFIRMED:
            raise DeploymentUnconfirmedError(
                f"Transaction {tx_id} reported unknown status '{state}'",
                tx_id=tx_id,
                stage=stage,
            )
        return status

    async def _poll_status(self, client: LedgerNodeClient, tx_id: str) -> Dict[str, Any]:
        try:
            status = await client.get_transaction(tx_id)
        except TRANSIENT_STATUS_ERRORS as e:
            self.logger.warning(f"Could not read status of {tx_id}, retrying: {e!r}")
            raise
        self.logger.debug(f"Transaction {tx_id} status: {status.get('status')}")
        return status
