#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Provider Configurator

Validates the service endpoints, probes that each one answers, and assembles
the provider bundle the deployer submits with.
"""

import re
import asyncio
import logging
import ipaddress
from pathlib import Path
from typing import Dict, Optional, Tuple, Union
from urllib.parse import SplitResult, urlsplit

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from contract_deployer.config import RetryPolicy
from contract_deployer.errors import ConfigurationError, EndpointUnreachableError
from contract_deployer.models import Identity, LifecycleState, ProviderBundle, ServiceEndpointSet
from contract_deployer.state_store import DEFAULT_STORE_NAME, PrivateStateStore
from contract_deployer.utils.logger import get_logger, log_stage_event

HTTP_SCHEMES = ("http", "https")
STREAM_SCHEMES = ("ws", "wss")

# Schemes each endpoint accepts
ENDPOINT_SCHEMES: Dict[str, Tuple[str, ...]] = {
    "indexer": HTTP_SCHEMES,
    "indexer_ws": STREAM_SCHEMES,
    "node": HTTP_SCHEMES,
    "proof_server": HTTP_SCHEMES,
}

# Dot-separated host labels; underscores allowed for container service names
HOST_LABEL = r"[A-Za-z0-9_](?:[A-Za-z0-9_-]*[A-Za-z0-9_])?"
HOST_PATTERN = re.compile(rf"^{HOST_LABEL}(?:\.{HOST_LABEL})*\.?$")

DEFAULT_PROBE_POLICY = RetryPolicy(max_attempts=3, initial_delay=0.5, max_delay=0.5)


class ProbeFailedError(Exception):
    """Exception raised when an endpoint answers a probe with a server error."""
    pass


PROBE_ERRORS = (httpx.TransportError, OSError, asyncio.TimeoutError, ProbeFailedError)


def _valid_host(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
        return True
    except ValueError:
        return bool(HOST_PATTERN.match(host))


def validate_endpoint(name: str, uri: str) -> SplitResult:
    """
    Check that an endpoint URI is well formed for its role.

    Args:
        name: Endpoint name (indexer, indexer_ws, node, proof_server)
        uri: Endpoint URI

    Returns:
        SplitResult: The parsed URI

    Raises:
        EndpointUnreachableError: If the URI is malformed
    """
    stage = LifecycleState.CONFIGURING_PROVIDERS.value
    if not isinstance(uri, str) or not uri.strip():
        raise EndpointUnreachableError(name, str(uri), "URI is empty", stage=stage)

    if any(ch.isspace() or not ch.isprintable() for ch in uri):
        raise EndpointUnreachableError(
            name, uri, "malformed URI: contains whitespace or control characters", stage=stage
        )

    try:
        parts = urlsplit(uri)
        # Accessing the port validates it
        parts.port
        httpx.URL(uri)
    except (ValueError, httpx.InvalidURL) as e:
        raise EndpointUnreachableError(name, uri, f"malformed URI: {e}", stage=stage) from e

    allowed = ENDPOINT_SCHEMES.get(name, HTTP_SCHEMES + STREAM_SCHEMES)
    if parts.scheme not in allowed:
        raise EndpointUnreachableError(
            name, uri,
            f"malformed URI: scheme must be one of {', '.join(allowed)}",
            stage=stage,
        )

    if not parts.hostname:
        raise EndpointUnreachableError(name, uri, "malformed URI: missing host", stage=stage)

    if not _valid_host(parts.hostname):
        raise EndpointUnreachableError(
            name, uri, f"malformed URI: invalid host '{parts.hostname}'", stage=stage
        )

    return parts


class ProviderConfigurator:
    """
    Assembles the provider bundle.

    Probe retries are bounded to a small fixed attempt count with a short
    fixed delay; everything else is plain composition.
    """

    def __init__(
        self,
        state_dir: Union[str, Path],
        store_name: str = DEFAULT_STORE_NAME,
        probe_endpoints: bool = True,
        policy: Optional[RetryPolicy] = None,
        request_timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the configurator.

        Args:
            state_dir: Directory of the private state store
            store_name: Private state store name
            probe_endpoints: Whether to probe endpoints for reachability
            policy: Probe retry policy (attempt count and fixed delay)
            request_timeout: Timeout of a single probe, in seconds
            transport: Optional httpx transport for HTTP probes
            logger: Logger for progress events (defaults to the module logger)
        """
        self.state_dir = Path(state_dir)
        self.store_name = store_name
        self.probe_endpoints = probe_endpoints
        self.policy = policy or DEFAULT_PROBE_POLICY
        self.request_timeout = request_timeout
        self.transport = transport
        self.logger = logger or get_logger(__name__)

    async def configure(self, identity: Identity, endpoints: ServiceEndpointSet) -> ProviderBundle:
        """
        Validate and probe the endpoints, then build the provider bundle.

        Every endpoint is validated before any is probed.

        Raises:
            EndpointUnreachableError: Naming the first malformed or unreachable endpoint
            ConfigurationError: If the private state store cannot be opened
        """
        stage = LifecycleState.CONFIGURING_PROVIDERS.value
        log_stage_event(self.logger, stage, "enter", "Configuring providers")

        for name, uri in endpoints.items():
            validate_endpoint(name, uri)

        if self.probe_endpoints:
            for name, uri in endpoints.items():
                await self.probe(name, uri)
        else:
            self.logger.info("Endpoint probing disabled, skipping reachability checks")

        try:
            store = PrivateStateStore(self.state_dir, self.store_name)
        except OSError as e:
            raise ConfigurationError(
                f"Could not open private state store in {self.state_dir}: {e}", stage=stage
            ) from e

        log_stage_event(self.logger, stage, "complete", "Providers configured")
        return ProviderBundle(identity=identity, endpoints=endpoints, private_state_store=store)

    async def probe(self, name: str, uri: str) -> None:
        """
        Check that an endpoint answers, retrying per the probe policy.

        Raises:
            EndpointUnreachableError: If every attempt fails
        """
        stage = LifecycleState.CONFIGURING_PROVIDERS.value
        max_attempts = self.policy.max_attempts or 1

        retrying = AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_fixed(self.policy.initial_delay),
            retry=retry_if_exception_type(PROBE_ERRORS),
            before_sleep=lambda state: self._log_probe_retry(name, max_attempts, state),
            reraise=True,
        )

        try:
            await retrying(self._probe_once, uri)
        except PROBE_ERRORS as e:
            log_stage_event(
                self.logger, stage, "error",
                f"Endpoint '{name}' ({uri}) unreachable after {max_attempts} attempts: {e!r}",
                level=logging.ERROR,
            )
            raise EndpointUnreachableError(name, uri, repr(e), stage=stage) from e

        self.logger.debug(f"Endpoint '{name}' ({uri}) is reachable")

    async def _probe_once(self, uri: str) -> None:
        parts = urlsplit(uri)
        if parts.scheme in STREAM_SCHEMES:
            await self._probe_stream(parts)
        else:
            await self._probe_http(uri)

    async def _probe_http(self, uri: str) -> None:
        async with httpx.AsyncClient(timeout=self.request_timeout, transport=self.transport) as client:
            response = await client.get(uri)
        # Any answer short of a server error means the service is up
        if response.status_code >= 500:
            raise ProbeFailedError(f"HTTP {response.status_code}")

    async def _probe_stream(self, parts: SplitResult) -> None:
        port = parts.port or (443 if parts.scheme == "wss" else 80)
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(parts.hostname, port),
            timeout=self.request_timeout,
        )
        writer.close()
        await writer.wait_closed()

    def _log_probe_retry(self, name: str, max_attempts: int, retry_state: RetryCallState) -> None:
        log_stage_event(
            self.logger, LifecycleState.CONFIGURING_PROVIDERS.value, "retry",
            f"Probe of '{name}' failed (attempt {retry_state.attempt_number} of {max_attempts}): "
            f"{retry_state.outcome.exception()!r}",
            level=logging.WARNING,
        )
