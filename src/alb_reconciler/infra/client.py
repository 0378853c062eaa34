"""Shared ELBv2 client lifecycle for the infra layer."""

import asyncio
from typing import Any

import aioboto3  # type: ignore
from botocore.config import Config

DEFAULT_MAX_RETRIES = 15


class ElbClient:
    """
    Lazily opened aioboto3 ``elbv2`` client.

    The client is opened at most once, even when many convergence tasks ask
    for it concurrently on first use.

    Retries with backoff are left to botocore; ``max_retries`` is passed
    through as the standard retry mode's ``max_attempts``.

    Attributes:
        region: AWS region (default: use boto3 defaults)
        endpoint_url: Optional ELBv2 endpoint (for LocalStack)
    """

    def __init__(
        self,
        region: str | None = None,
        endpoint_url: str | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> None:
        self.region = region
        self.endpoint_url = endpoint_url
        self.max_retries = max_retries
        self._session: aioboto3.Session | None = None
        self._client: Any = None
        self._client_lock = asyncio.Lock()

    async def _get_client(self) -> Any:
        """Get or create the ELBv2 client."""
        if self._client is not None:
            return self._client

        async with self._client_lock:
            if self._client is None:
                self._client = await self._open_client()
        return self._client

    async def _open_client(self) -> Any:
        if self._session is None:
            self._session = aioboto3.Session()

        kwargs: dict[str, Any] = {
            "config": Config(retries={"max_attempts": self.max_retries, "mode": "standard"}),
        }
        if self.region:
            kwargs["region_name"] = self.region
        if self.endpoint_url:
            kwargs["endpoint_url"] = self.endpoint_url

        return await self._session.client("elbv2", **kwargs).__aenter__()

    async def close(self) -> None:
        """Close the underlying session and client."""
        if self._client is not None:
            try:
                await self._client.__aexit__(None, None, None)
            finally:
                self._client = None
        self._session = None

    async def __aenter__(self) -> "ElbClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()
