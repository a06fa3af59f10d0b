"""
Trading 212 portfolio source.

Implements the PortfolioSource port over the REST API:
- GET {base}/equity/pies        -> pie listing (any accepted shape)
- GET {base}/equity/pies/{id}   -> {"settings": {"creationDate": ..., "name": ...}}

Every request carries the token verbatim in the Authorization header and is
bounded by the configured request timeout. Nothing is retried here; the
refresh engine's cycle is the retry loop.
"""

from __future__ import annotations

import asyncio
import logging
from types import TracebackType
from typing import Any, Optional

import aiohttp

from pietracker.config.configs import RemoteConfig
from pietracker.errors.errors import (
    RateLimitedError,
    RemoteStatusError,
    SchemaError,
    TransportError,
)
from pietracker.remote.shapes import decode_body, excerpt, parse_listing, parse_pie_meta
from pietracker.types.types import PieId, PieMeta, RawPie

logger = logging.getLogger(__name__)

PIES_PATH = "/equity/pies"


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Retry-After in seconds; HTTP-date values are ignored."""
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


class Trading212Source:
    """
    Async client for the two pie endpoints.

    The client owns its aiohttp session unless one is injected; an injected
    session is left open on close().

    Usage:
        async with Trading212Source(token, RemoteConfig()) as source:
            pies = await source.list_pies()
            meta = await source.fetch_pie_meta(pies[0].id)
    """

    def __init__(
        self,
        token: str,
        config: RemoteConfig,
        session: Optional[aiohttp.ClientSession] = None,
        name: str = "trading212",
    ) -> None:
        """
        Initialize the source.

        Args:
            token: Opaque API token, sent as-is in the Authorization header
            config: Remote configuration (base URL, request timeout)
            session: Optional externally managed aiohttp session
            name: Name for logging purposes
        """
        if not token:
            raise ValueError("API token must be a non-empty string")
        self._token = token
        self._config = config
        self._base_url = config.base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout_s)
        self._session = session
        self._owns_session = session is None
        self._name = name

    @property
    def base_url(self) -> str:
        return self._base_url

    async def __aenter__(self) -> Trading212Source:
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the session if this client created it."""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _get(self, path: str) -> tuple[Any, str]:
        """GET ``path`` and return (decoded payload, raw text)."""
        url = f"{self._base_url}{path}"
        session = self._get_session()

        try:
            async with session.get(
                url,
                headers={"Authorization": self._token},
                timeout=self._timeout,
            ) as resp:
                status = resp.status
                retry_after = resp.headers.get("Retry-After")
                body = await resp.read()
        except asyncio.TimeoutError as e:
            raise TransportError(
                f"Request timed out after {self._config.request_timeout_s}s",
                url=url,
                component=self._name,
            ) from e
        except aiohttp.ClientError as e:
            raise TransportError(
                f"Request failed: {type(e).__name__}: {e}",
                url=url,
                component=self._name,
            ) from e

        text = body.decode("utf-8", "replace")

        if status == 429:
            raise RateLimitedError(
                "Rate limited by remote",
                retry_after_s=_parse_retry_after(retry_after),
                url=url,
                component=self._name,
            )
        if not 200 <= status < 300:
            raise RemoteStatusError(
                f"Unexpected HTTP status {status}: {excerpt(text, 200)}",
                status=status,
                body=text,
                url=url,
                component=self._name,
            )

        try:
            payload = decode_body(body)
        except SchemaError as e:
            raise SchemaError(
                e.args[0],
                raw_body=text,
                url=url,
                component=self._name,
            ) from e

        logger.debug(f"[{self._name}] GET {path} -> {status} ({len(body)} bytes)")
        return payload, text

    async def list_pies(self) -> list[RawPie]:
        """Fetch and parse the pie listing."""
        payload, text = await self._get(PIES_PATH)
        return parse_listing(payload, text)

    async def fetch_pie_meta(self, pie_id: PieId) -> PieMeta:
        """Fetch creation date and name for one pie."""
        payload, text = await self._get(f"{PIES_PATH}/{pie_id}")
        return parse_pie_meta(payload, text)
