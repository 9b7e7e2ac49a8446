#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Wallet Bootstrapper

Derives the deploying identity from a secret seed and waits until the
funding source reports a spendable balance for it.
"""

import re
import hashlib
import logging
from dataclasses import replace
from typing import Callable, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    retry_if_result,
    wait_exponential,
)

from contract_deployer.clients import MalformedResponseError
from contract_deployer.clients.funding import FundingSourceClient, WalletConnection
from contract_deployer.config import SEED_LENGTH, RetryPolicy
from contract_deployer.errors import (
    FundingSourceUnavailableError,
    FundingTimeoutError,
    InvalidSeedError,
)
from contract_deployer.models import Identity, LifecycleState
from contract_deployer.utils.deadline import Deadline, stop_at_deadline, wait_until_deadline
from contract_deployer.utils.logger import get_logger, log_stage_event

SEED_PATTERN = re.compile(r"^[0-9a-fA-F]{%d}$" % SEED_LENGTH)

# Errors after which the funding source is polled again
TRANSIENT_FUNDING_ERRORS = (httpx.TransportError, httpx.HTTPStatusError, MalformedResponseError)

DEFAULT_FUNDING_POLICY = RetryPolicy(max_attempts=10, initial_delay=1.0, max_delay=30.0)


def validate_seed(seed: Optional[str]) -> str:
    """
    Check that a seed is a fixed-length hexadecimal string.

    Returns:
        str: The seed, lower-cased

    Raises:
        InvalidSeedError: If the seed is missing, the wrong length or not hex
    """
    stage = LifecycleState.BUILDING_IDENTITY.value
    if not isinstance(seed, str) or not seed:
        raise InvalidSeedError("Wallet seed is missing", stage=stage)
    if len(seed) != SEED_LENGTH:
        raise InvalidSeedError(
            f"Wallet seed must be {SEED_LENGTH} hex characters, got {len(seed)}", stage=stage
        )
    if not SEED_PATTERN.match(seed):
        raise InvalidSeedError("Wallet seed contains non-hex characters", stage=stage)
    return seed.lower()


def derive_address(seed: str) -> str:
    """Derive the wallet address for a validated seed."""
    return hashlib.sha256(bytes.fromhex(seed)).hexdigest()


class WalletBootstrapper:
    """
    Builds the wallet identity and waits for it to be funded.

    The funding poll backs off exponentially with a cap so a local faucet is
    not hammered, and never sleeps past its deadline.
    """

    def __init__(
        self,
        funding_source_factory: Callable[[], FundingSourceClient],
        policy: Optional[RetryPolicy] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the bootstrapper.

        Args:
            funding_source_factory: Creates the funding source client for a new wallet connection
            policy: Funding poll policy; max_attempts caps consecutive unreachable polls
            logger: Logger for progress events (defaults to the module logger)
        """
        self.funding_source_factory = funding_source_factory
        self.policy = policy or DEFAULT_FUNDING_POLICY
        self.logger = logger or get_logger(__name__)
        self.poll_attempts = 0
        self._consecutive_failures = 0

    def bootstrap(self, seed: str) -> Identity:
        """
        Derive the identity for a seed and open its wallet connection.

        No network call is made; a malformed seed fails before the
        connection is created.

        Raises:
            InvalidSeedError: If the seed is malformed
        """
        seed = validate_seed(seed)
        address = derive_address(seed)
        connection = WalletConnection(self.funding_source_factory())
        log_stage_event(
            self.logger, LifecycleState.BUILDING_IDENTITY.value, "complete",
            f"Wallet address: {address}",
        )
        return Identity(seed=seed, address=address, connection=connection)

    async def await_funds(
        self,
        identity: Identity,
        min_balance: int,
        timeout: Optional[float] = None,
    ) -> Identity:
        """
        Poll the funding source until the balance reaches min_balance.

        Args:
            identity: Identity to wait on
            min_balance: Balance required to continue
            timeout: Seconds to wait (defaults to the policy timeout)

        Returns:
            Identity: A copy of the identity carrying the confirmed balance

        Raises:
            FundingTimeoutError: If the deadline elapses before the balance is reached
            FundingSourceUnavailableError: If the funding source stays unreachable
        """
        stage = LifecycleState.AWAITING_FUNDS.value
        deadline = Deadline(timeout if timeout is not None else self.policy.timeout)
        self.poll_attempts = 0
        self._consecutive_failures = 0

        log_stage_event(
            self.logger, stage, "enter",
            f"Waiting for balance >= {min_balance} on {identity.address}",
        )

        retrying = AsyncRetrying(
            stop=stop_at_deadline(deadline),
            wait=wait_until_deadline(
                wait_exponential(multiplier=self.policy.initial_delay, max=self.policy.max_delay),
                deadline,
            ),
            retry=(
                retry_if_exception_type(TRANSIENT_FUNDING_ERRORS) |
                retry_if_result(lambda balance: balance < min_balance)
            ),
            before_sleep=self._log_before_sleep,
        )

        try:
            balance = await retrying(self._poll_balance, identity, min_balance)
        except RetryError as e:
            last_attempt = e.last_attempt
            if last_attempt.failed:
                raise FundingSourceUnavailableError(
                    f"Funding source unreachable after {self.poll_attempts} poll attempts: "
                    f"{last_attempt.exception()}",
                    stage=stage,
                ) from last_attempt.exception()

            balance = last_attempt.result()
            log_stage_event(
                self.logger, stage, "timeout",
                f"Balance {balance} still below {min_balance} after {deadline.elapsed():.1f}s",
                level=logging.ERROR,
            )
            raise FundingTimeoutError(
                f"Wallet not funded within {deadline.timeout}s "
                f"(balance {balance}, required {min_balance})",
                balance=balance,
                attempts=self.poll_attempts,
                stage=stage,
            ) from None

        log_stage_event(
            self.logger, stage, "complete",
            f"Wallet funded with balance {balance} after {self.poll_attempts} poll attempts",
        )
        return replace(identity, balance=balance)

    async def _poll_balance(self, identity: Identity, min_balance: int) -> int:
        """Run one poll attempt."""
        stage = LifecycleState.AWAITING_FUNDS.value
        self.poll_attempts += 1
        max_attempts = self.policy.max_attempts

        try:
            balance = await identity.connection.get_balance(identity.address)
        except TRANSIENT_FUNDING_ERRORS as e:
            self._consecutive_failures += 1
            ceiling = f" of {max_attempts}" if max_attempts else ""
            log_stage_event(
                self.logger, stage, "retry",
                f"Funding source unreachable ({self._consecutive_failures}{ceiling}): {e}",
                level=logging.WARNING,
            )
            if max_attempts and self._consecutive_failures >= max_attempts:
                raise FundingSourceUnavailableError(
                    f"Funding source unreachable on {self._consecutive_failures} consecutive polls: {e}",
                    stage=stage,
                ) from e
            raise

        self._consecutive_failures = 0
        log_stage_event(
            self.logger, stage, "attempt",
            f"Poll attempt {self.poll_attempts}: balance {balance} (required {min_balance})",
        )
        return balance

    def _log_before_sleep(self, retry_state: RetryCallState) -> None:
        if retry_state.next_action is None:
            return
        self.logger.debug(
            f"Next funding poll in {retry_state.next_action.sleep:.2f}s "
            f"(attempt {retry_state.attempt_number + 1})"
        )
