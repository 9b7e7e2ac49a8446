"""
Funding source client and the wallet connection that owns it.
"""

import logging
from typing import Optional

import httpx

from contract_deployer.clients import MalformedResponseError

logger = logging.getLogger(__name__)


class FundingSourceClient:
    """
    HTTP client for the funding source's balance endpoint.

    Example:
        >>> client = FundingSourceClient("http://127.0.0.1:9944")
        >>> balance = await client.get_balance("3f1c...")
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the funding source client.

        Args:
            base_url: Base URL of the funding source
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def get_balance(self, address: str) -> int:
        """
        Query the spendable balance of an address.

        Raises:
            httpx.TransportError: If the funding source cannot be reached
            httpx.HTTPStatusError: If the funding source answers with an error
            MalformedResponseError: If the answer carries no integer balance
        """
        response = await self.client.get(f"/balance/{address}")
        response.raise_for_status()
        try:
            return int(response.json()["balance"])
        except (ValueError, KeyError, TypeError) as e:
            raise MalformedResponseError(f"Unexpected balance response: {response.text[:200]!r}") from e

    async def close(self) -> None:
        """Close HTTP client."""
        await self.client.aclose()


class WalletConnection:
    """
    Wallet connection held open for the lifetime of a run.

    Closing is idempotent; the underlying client is closed once.
    """

    def __init__(self, funding_source: FundingSourceClient):
        self.funding_source = funding_source
        self.closed = False

    async def get_balance(self, address: str) -> int:
        if self.closed:
            raise RuntimeError("Wallet connection is closed")
        return await self.funding_source.get_balance(address)

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self.funding_source.close()
        logger.debug("Wallet connection closed")
