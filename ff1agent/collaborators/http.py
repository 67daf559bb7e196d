"""Shared httpx plumbing for the HTTP-backed collaborators."""

from __future__ import annotations

from typing import Any

import httpx

from ff1agent.utils.retry import RetryPolicy


class HttpCollaborator:
    """Base for adapters that talk JSON over HTTP.

    A fresh ``httpx.AsyncClient`` is opened per request.  ``transport`` lets
    tests plug in ``httpx.MockTransport``.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        self.timeout = timeout
        self._transport = transport
        self.retry_policy = retry_policy or RetryPolicy()

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """GET with rate-limit retry; raises ``httpx.HTTPStatusError`` on non-2xx."""

        async def _once() -> Any:
            async with self._client() as client:
                resp = await client.get(url, params=params, headers=headers)
                resp.raise_for_status()
                return resp.json()

        return await self.retry_policy.run(_once, description=f"GET {url}")

    async def _post(
        self,
        url: str,
        body: Any,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """POST JSON and return the raw response (status handling is the caller's)."""
        async with self._client() as client:
            return await client.post(url, json=body, headers=headers, params=params)
