"""
Ledger node client.

Transaction submission is exposed as a single request; callers decide what a
failure means, the client never resubmits.
"""

from typing import Any, Dict, Optional

import httpx

from contract_deployer.clients import MalformedResponseError

STATUS_PENDING = "pending"
STATUS_CONFIRMED = "confirmed"
STATUS_REJECTED = "rejected"


class LedgerNodeClient:
    """HTTP client for the ledger node's transaction endpoints."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def submit_transaction(self, transaction: Dict[str, Any], proof: str) -> httpx.Response:
        """
        Submit a proven transaction once.

        Returns:
            The raw node response; status handling is left to the caller
        """
        return await self.client.post(
            "/transactions",
            json={"transaction": transaction, "proof": proof},
        )

    async def get_transaction(self, tx_id: str) -> Dict[str, Any]:
        """
        Fetch the status of a submitted transaction.

        Raises:
            httpx.HTTPError: If the node cannot be reached or answers with an error
            MalformedResponseError: If the answer is not a JSON object
        """
        response = await self.client.get(f"/transactions/{tx_id}")
        response.raise_for_status()
        try:
            status = response.json()
        except ValueError as e:
            raise MalformedResponseError(f"Unexpected status response: {response.text[:200]!r}") from e
        if not isinstance(status, dict):
            raise MalformedResponseError(f"Unexpected status response: {response.text[:200]!r}")
        return status

    async def close(self) -> None:
        await self.client.aclose()
