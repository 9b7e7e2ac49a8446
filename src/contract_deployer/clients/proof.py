"""
Proof server client.
"""

from typing import Any, Dict, Optional

import httpx


class ProofServerClient:
    """HTTP client for the proof-computation service."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def prove(self, transaction: Dict[str, Any]) -> str:
        """
        Prove an unproven deploy transaction.

        Args:
            transaction: Unproven transaction payload

        Returns:
            The proof produced by the service

        Raises:
            httpx.HTTPError: If the service cannot be reached or refuses the transaction
            KeyError: If the response carries no proof
        """
        response = await self.client.post("/prove", json={"transaction": transaction})
        response.raise_for_status()
        return response.json()["proof"]

    async def close(self) -> None:
        await self.client.aclose()
