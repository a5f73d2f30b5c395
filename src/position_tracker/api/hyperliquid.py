"""
Hyperliquid API Client

Single responsibility: fetch position snapshots from the Hyperliquid REST API.
"""

import asyncio
import logging
from typing import Any, List, Optional

import aiohttp

from ..config import config
from ..errors import ProviderError
from ..models import Position

logger = logging.getLogger(__name__)


class HyperliquidClient:
    """
    Async client for the Hyperliquid info endpoint.

    One POST per call, bounded by a total timeout. Failures raise
    ProviderError; there is no retry, the caller simply tries again on its
    next poll.
    """

    def __init__(
        self,
        url: str = None,
        timeout: float = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.url = url or config.hyperliquid_url
        self.timeout = aiohttp.ClientTimeout(total=timeout or config.request_timeout_sec)
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self):
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _ensure_session(self):
        """Create session if needed."""
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True

    async def close(self):
        """Close the HTTP session (only if this client created it)."""
        if self._session and self._owns_session:
            await self._session.close()
        self._session = None

    async def _request(self, payload: dict) -> Any:
        """
        POST a JSON payload and return the decoded body.

        Raises:
            ProviderError: on timeout, connection failure, non-2xx status
                or a body that is not JSON
        """
        await self._ensure_session()

        try:
            async with self._session.post(
                self.url,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            ) as response:
                if not 200 <= response.status < 300:
                    body = await response.text()
                    raise ProviderError(
                        f"API error {response.status}: {body[:200]}",
                        status=response.status,
                    )
                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    raise ProviderError(f"Malformed response body: {e}") from e

        except asyncio.TimeoutError as e:
            raise ProviderError(
                f"Request timed out after {self.timeout.total}s"
            ) from e
        except aiohttp.ClientError as e:
            raise ProviderError(f"Request error: {e}") from e

    # -------------------------------------------------------------------------
    # Public Methods
    # -------------------------------------------------------------------------

    async def get_user_state(self, address: str) -> dict:
        """Fetch the raw clearinghouseState object for an address."""
        response = await self._request({"type": "clearinghouseState", "user": address})
        if not isinstance(response, dict):
            raise ProviderError(
                f"Unexpected clearinghouseState body for {address}: {type(response).__name__}"
            )
        return response

    async def fetch_snapshot(self, address: str) -> List[Position]:
        """
        Get the current position snapshot for a wallet.

        Zero-size entries are kept; filtering open positions is the
        detector's job.

        Args:
            address: Wallet address (0x...)

        Returns:
            List of Position objects

        Raises:
            ProviderError: if the request or the body is unusable
        """
        state = await self.get_user_state(address)
        return self._parse_positions(state, address)

    # -------------------------------------------------------------------------
    # Private Helpers
    # -------------------------------------------------------------------------

    def _parse_positions(self, response: dict, address: str) -> List[Position]:
        """Parse clearinghouseState response into Position objects."""
        asset_positions = response.get("assetPositions")
        if not isinstance(asset_positions, list):
            raise ProviderError(f"Missing assetPositions for {address}")

        positions = []
        for item in asset_positions:
            pos_data = item.get("position") if isinstance(item, dict) else None
            if not isinstance(pos_data, dict) or not pos_data.get("coin"):
                logger.debug(f"Skipping malformed asset position for {address}: {item!r}")
                continue
            positions.append(Position.from_api(pos_data))

        return positions


# =============================================================================
# Convenience function for quick testing
# =============================================================================

async def check_client(address: str):
    """Quick test of the API client."""
    async with HyperliquidClient() as client:
        positions = await client.fetch_snapshot(address)
        print(f"Got {len(positions)} positions")
        for p in positions:
            print(f"  {p.coin}: {p.szi} @ {p.entry_px} (lev {p.leverage_value}x)")


if __name__ == "__main__":
    import sys

    logging.basicConfig(level=logging.INFO)
    asyncio.run(check_client(sys.argv[1] if len(sys.argv) > 1 else "0x" + "0" * 40))
