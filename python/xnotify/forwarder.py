"""
Forward path: POST each event to another xnotify listener.

Fire-and-forget: failures are logged and the event is dropped for this path
only. Nothing is retried.
"""

import logging
from typing import Optional

import httpx

from xnotify.watcher.types import Event

logger = logging.getLogger(__name__)


class EventForwarder:
    """
    Sends events as JSON to a remote listener.

    One httpx.AsyncClient is shared by every forward; call aclose() when the
    engine shuts down.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Args:
            url: Full URL of the listener (see config.full_url)
            timeout: Seconds per request
            client: Client to use instead of creating one (tests)
        """
        self.url = url
        self._timeout = timeout
        self._client = client
        self.sent = 0
        self.failed = 0

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def forward(self, event: Event) -> bool:
        """
        POST one event.

        Returns:
            True if the listener answered with a 2xx status
        """
        try:
            response = await self._get_client().post(self.url, json=event.to_dict())
            response.raise_for_status()
        except httpx.HTTPError as e:
            self.failed += 1
            logger.error(f"Failed to forward '{event}' to {self.url}: {e}")
            return False

        self.sent += 1
        logger.debug(f"Forwarded '{event}' to {self.url}")
        return True

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
