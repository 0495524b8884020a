"""
Remote job source.

The core only needs ``fetch_run``; ``AgentRunAPIClient`` implements it on
top of the agent HTTP API and also exposes the create/resume/stop calls
used when a run is started from this side.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Protocol, runtime_checkable

import aiohttp

from .config.api import APIConfig
from .errors import (
    ErrorContext,
    InvalidResponseError,
    MissingAPIKeyError,
    TransportError,
    error_from_status,
)
from .logging import redact_token
from .types import AgentRun

logger = logging.getLogger(__name__)


@runtime_checkable
class JobSource(Protocol):
    """Where fresh run snapshots come from.

    ``fetch_run`` raises NotFoundError when the run is gone and
    TransportError for any other failure.
    """

    async def fetch_run(self, organization_id: int, run_id: int) -> AgentRun:
        ...


JobSourceFactory = Callable[[], JobSource]


def static_source(source: JobSource) -> JobSourceFactory:
    """Factory that always hands out the same source."""
    return lambda: source


class AgentRunAPIClient:
    """Async client for the agent run endpoints.

    Example:
        ```python
        async with AgentRunAPIClient(APIConfig(api_token="...")) as client:
            run = await client.fetch_run(7, 42)
        ```
    """

    def __init__(
        self,
        config: APIConfig,
        *,
        session: aiohttp.ClientSession | None = None,
    ):
        if not config.api_token:
            raise MissingAPIKeyError(
                "API token is required. Set RUN_TRACKER_API_TOKEN or CODEGEN_API_TOKEN."
            )
        self._config = config
        self._session = session
        self._owns_session = session is None
        logger.debug("API client for %s using token %s", config.base_url, redact_token(config.api_token))

    def __repr__(self) -> str:
        return f"AgentRunAPIClient(base_url={self._config.base_url!r}, token={redact_token(self._config.api_token)!r})"

    async def __aenter__(self) -> AgentRunAPIClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._config.api_token}",
            "Content-Type": "application/json",
        }

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        payload: dict[str, Any] | None = None,
        organization_id: int | None = None,
        run_id: int | None = None,
    ) -> dict[str, Any]:
        session = await self._get_session()
        url = f"{self._config.base_url}{path}"
        ctx = ErrorContext(organization_id=organization_id, run_id=run_id, operation=f"{method} {path}")

        try:
            async with session.request(
                method,
                url,
                json=payload,
                headers=self._headers(),
                timeout=aiohttp.ClientTimeout(total=self._config.timeout),
            ) as response:
                if response.status >= 400:
                    message = await _error_message(response)
                    raise error_from_status(
                        response.status,
                        message,
                        organization_id=organization_id,
                        run_id=run_id,
                    )
                try:
                    data = await response.json(content_type=None)
                except ValueError as exc:
                    raise InvalidResponseError(
                        f"Invalid JSON from {path}", context=ctx, cause=exc
                    ) from exc
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransportError(f"Request to {path} failed: {exc}", context=ctx, cause=exc) from exc

        if not isinstance(data, dict):
            raise InvalidResponseError(f"Expected an object from {path}", context=ctx)
        return data

    def _to_run(self, data: dict[str, Any], organization_id: int, run_id: int | None = None) -> AgentRun:
        data.setdefault("organization_id", organization_id)
        try:
            return AgentRun.from_dict(data)
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidResponseError(
                "Malformed agent run payload",
                context=ErrorContext(organization_id=organization_id, run_id=run_id),
                cause=exc,
            ) from exc

    async def fetch_run(self, organization_id: int, run_id: int) -> AgentRun:
        data = await self._request(
            "GET",
            f"/v1/organizations/{organization_id}/agent/run/{run_id}",
            organization_id=organization_id,
            run_id=run_id,
        )
        return self._to_run(data, organization_id, run_id)

    async def create_run(
        self,
        organization_id: int,
        prompt: str,
        images: list[str] | None = None,
    ) -> AgentRun:
        """Start a new agent run. ``images`` are base64 data URIs."""
        payload: dict[str, Any] = {"prompt": prompt}
        if images:
            payload["images"] = images
        data = await self._request(
            "POST",
            f"/v1/organizations/{organization_id}/agent/run",
            payload=payload,
            organization_id=organization_id,
        )
        return self._to_run(data, organization_id)

    async def resume_run(
        self,
        organization_id: int,
        run_id: int,
        prompt: str,
        images: list[str] | None = None,
    ) -> AgentRun:
        payload: dict[str, Any] = {"agent_run_id": run_id, "prompt": prompt}
        if images:
            payload["images"] = images
        data = await self._request(
            "POST",
            f"/v1/beta/organizations/{organization_id}/agent/run/resume",
            payload=payload,
            organization_id=organization_id,
            run_id=run_id,
        )
        return self._to_run(data, organization_id, run_id)

    async def stop_run(self, organization_id: int, run_id: int) -> AgentRun:
        data = await self._request(
            "POST",
            f"/v1/beta/organizations/{organization_id}/agent/run/stop",
            payload={"agent_run_id": run_id},
            organization_id=organization_id,
            run_id=run_id,
        )
        return self._to_run(data, organization_id, run_id)


async def _error_message(response: aiohttp.ClientResponse) -> str:
    default = f"Request failed with status {response.status}"
    try:
        body = await response.json(content_type=None)
    except (ValueError, aiohttp.ClientError):
        return default
    if isinstance(body, dict):
        return str(body.get("message") or body.get("detail") or default)
    return default


__all__ = [
    "JobSource",
    "JobSourceFactory",
    "static_source",
    "AgentRunAPIClient",
]
