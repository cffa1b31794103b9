"""Client for the shared remote store.

The remote is a PostgREST-style REST API (Supabase): one table per
collection, ``select`` with a ``gt`` filter on the push time in
``synced_at`` and ``upsert`` by primary key. Every call has a bounded
timeout and is retried with exponential backoff on connection errors,
timeouts and 5xx answers.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

import httpx

from ..config import RemoteConfig
from ..errors import NetworkError, RemoteError
from ..models import format_timestamp

logger = logging.getLogger(__name__)


class RemoteStore(ABC):
    """Operations the sync engine needs from the remote."""

    @abstractmethod
    async def select_since(
        self, table: str, since: datetime | None
    ) -> list[dict[str, Any]]:
        """Fetch rows pushed after ``since``.

        Rows are selected on ``synced_at``, the time the writing device
        pushed them, so a row carrying an old ``updated_at`` that reaches the
        server late is still seen. Rows without ``synced_at`` always match.

        Args:
            table: Remote table name.
            since: Exclusive lower bound on ``synced_at``; None fetches every row.

        Raises:
            NetworkError, RemoteError
        """
        pass

    @abstractmethod
    async def upsert(self, table: str, rows: list[dict[str, Any]]) -> None:
        """Insert or update ``rows`` by ``id`` in a single call.

        Raises:
            NetworkError, RemoteError
        """
        pass

    async def check_connection(self) -> bool:
        """Return True if the remote answers."""
        try:
            await self.select_since("people", None)
            return True
        except (NetworkError, RemoteError) as e:
            logger.debug(f"Connection check failed: {e}")
            return False

    async def close(self) -> None:
        pass


class PostgrestRemote(RemoteStore):
    """RemoteStore over the PostgREST HTTP API using httpx."""

    def __init__(
        self,
        config: RemoteConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            config: Endpoint, access key, timeout and retry policy.
            transport: Optional httpx transport (e.g. httpx.MockTransport).
        """
        if not config.configured:
            raise ValueError("Remote URL and key are required")
        self.config = config
        self.base_url = f"{config.url.rstrip('/')}/rest/v1"
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.config.timeout_seconds,
                transport=self._transport,
                headers={
                    "apikey": self.config.key,
                    "Authorization": f"Bearer {self.config.key}",
                    "Content-Type": "application/json",
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request_with_retry(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        json_data: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Make HTTP request with exponential backoff retry.

        Raises:
            NetworkError: Unreachable, timed out or 5xx after all retries.
            RemoteError: Non-retryable error response.
        """
        client = await self._get_client()
        backoff = self.config.retry_backoff_seconds
        last_error = "no attempt made"

        for attempt in range(self.config.max_retries):
            try:
                response = await client.request(
                    method, path, params=params, json=json_data, headers=headers
                )

                if response.status_code < 300:
                    return response

                elif response.status_code >= 500:
                    last_error = f"HTTP {response.status_code}: {response.text}"
                    logger.warning(
                        f"Server error {response.status_code} on {path}, "
                        f"attempt {attempt + 1}/{self.config.max_retries}"
                    )
                else:
                    # Client error, don't retry
                    raise RemoteError(
                        f"HTTP {response.status_code}: {response.text}",
                        status_code=response.status_code,
                    )

            except httpx.TimeoutException as e:
                last_error = f"Request timeout: {e}"
                logger.warning(
                    f"Request timeout on {path}, "
                    f"attempt {attempt + 1}/{self.config.max_retries}"
                )
            except httpx.TransportError as e:
                last_error = f"Connection failed: {e}"
                logger.warning(
                    f"Connection failed on {path}, "
                    f"attempt {attempt + 1}/{self.config.max_retries}"
                )

            # Exponential backoff
            if attempt < self.config.max_retries - 1:
                await asyncio.sleep(backoff)
                backoff *= 2

        raise NetworkError(
            f"{method} {path} failed after {self.config.max_retries} attempts: {last_error}"
        )

    async def select_since(
        self, table: str, since: datetime | None
    ) -> list[dict[str, Any]]:
        params = {"select": "*", "order": "synced_at.asc.nullsfirst"}
        if since is not None:
            params["or"] = f"(synced_at.gt.{format_timestamp(since)},synced_at.is.null)"

        response = await self._request_with_retry("GET", f"/{table}", params=params)
        try:
            rows = response.json()
        except ValueError as e:
            raise RemoteError(f"Invalid JSON from {table}: {e}") from e

        if not isinstance(rows, list):
            raise RemoteError(f"Expected a list of rows from {table}")

        logger.debug(f"Pulled {len(rows)} rows from {table}")
        return rows

    async def upsert(self, table: str, rows: list[dict[str, Any]]) -> None:
        if not rows:
            return

        await self._request_with_retry(
            "POST",
            f"/{table}",
            json_data=rows,
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )
        logger.debug(f"Upserted {len(rows)} rows to {table}")

    async def check_connection(self) -> bool:
        try:
            await self._request_with_retry(
                "GET", "/people", params={"select": "id", "limit": "1"}
            )
            return True
        except (NetworkError, RemoteError) as e:
            logger.debug(f"Connection check failed: {e}")
            return False
