"""Remote signing client for relayer builder authentication."""

import asyncio
import logging
from typing import Optional

import aiohttp
import orjson

from ..errors import RelayerError

logger = logging.getLogger(__name__)

BUILDER_HEADERS = (
    "POLY_BUILDER_SIGNATURE",
    "POLY_BUILDER_TIMESTAMP",
    "POLY_BUILDER_API_KEY",
    "POLY_BUILDER_PASSPHRASE",
)


class RemoteSigningClient:
    """
    Client for the remote signing endpoint.

    The endpoint holds the builder secret; this client only ever sees the
    resulting authentication headers.
    """

    def __init__(self, url: str, timeout_seconds: float = 10.0):
        """
        Initialize the client.

        Args:
            url: Signing endpoint URL
            timeout_seconds: Request timeout
        """
        self.url = url
        self.timeout_seconds = timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def sign(self, method: str, path: str, body: str = "") -> dict[str, str]:
        """
        Request builder headers for one relayer call.

        Args:
            method: HTTP method of the relayer call
            path: Request path of the relayer call
            body: Serialized request body

        Returns:
            Dict of POLY_BUILDER_* headers

        Raises:
            RelayerError: on transport failure or an incomplete header set
        """
        if not self.enabled:
            return {}

        payload = orjson.dumps({"method": method, "path": path, "body": body})
        try:
            session = await self._get_session()
            async with session.post(
                self.url,
                data=payload,
                headers={"Content-Type": "application/json"},
            ) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise RelayerError(f"Remote signing failed: HTTP {resp.status} {text[:200]}")
                data = orjson.loads(text)
        except aiohttp.ClientError as e:
            raise RelayerError(f"Remote signing request failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise RelayerError(f"Remote signing request timed out after {self.timeout_seconds}s") from e
        except orjson.JSONDecodeError as e:
            raise RelayerError(f"Remote signing returned invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise RelayerError("Remote signing returned a non-object response")

        missing = [h for h in BUILDER_HEADERS if not data.get(h)]
        if missing:
            raise RelayerError(f"Remote signing response missing {', '.join(missing)}")

        return {h: str(data[h]) for h in BUILDER_HEADERS}
