"""Reservation resource listing client."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx

from clubpos.config import (
    API_BASE_URL,
    FETCH_TIMEOUT_SECONDS,
    LISTING_BODY_EXCERPT_CHARS,
    TABLES_ENDPOINT,
)
from clubpos.constant import RESOURCE_KINDS
from clubpos.debug_log import log_debug
from clubpos.errors import InvalidResponseFormat, NetworkFailure, NetworkTimeout, excerpt
from clubpos.models import ReservationResource


class ResourceClient:
    """
    Fetch reservable tables from the backend.

    The requested kind is queried with a bounded wait. When that query fails for any
    reason other than a timeout, the unfiltered listing (`type=all`) is tried once;
    if the fallback fails too, the primary failure is raised.
    """

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = FETCH_TIMEOUT_SECONDS,
    ) -> None:
        self.listing_url = f"{base_url.rstrip('/')}/{TABLES_ENDPOINT}"
        self.timeout = timeout
        # The overall wait in `_fetch_once` is the only bound; httpx's 5 s default would cut it short.
        self._client = http_client or httpx.AsyncClient(timeout=None)
        self._owns_client = http_client is None

    async def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client:
            await self._client.aclose()

    async def fetch(self, kind: str) -> list[ReservationResource]:
        """Return resources of the given kind in backend order."""
        if kind not in RESOURCE_KINDS:
            raise ValueError(f"kind must be one of {', '.join(RESOURCE_KINDS)}")

        log_debug("tables_fetch", kind=kind)
        try:
            return await self._fetch_once(kind)
        except NetworkTimeout:
            log_debug("tables_fetch_timeout", kind=kind, timeout=self.timeout)
            raise
        except (NetworkFailure, InvalidResponseFormat) as primary_error:
            if kind == "all":
                raise
            log_debug("tables_fetch_fallback", kind=kind, error=primary_error.diagnostic())
            try:
                resources = await self._fetch_once("all")
            except (NetworkTimeout, NetworkFailure, InvalidResponseFormat) as fallback_error:
                log_debug("tables_fallback_failed", error=fallback_error.diagnostic())
                raise primary_error
            log_debug("tables_fallback_ok", rows=len(resources))
            return resources

    async def _fetch_once(self, kind: str) -> list[ReservationResource]:
        try:
            response = await asyncio.wait_for(
                self._client.get(self.listing_url, params={"type": kind}),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise NetworkTimeout(f"Request timed out after {self.timeout:g}s") from exc
        except httpx.RequestError as exc:
            raise NetworkFailure(f"Failed to load tables: {exc}") from exc

        body = response.text
        if not response.is_success:
            raise NetworkFailure(
                "Failed to load tables",
                status_code=response.status_code,
                response_body=excerpt(body, LISTING_BODY_EXCERPT_CHARS),
            )

        try:
            rows = json.loads(body or "[]")
        except ValueError as exc:
            raise InvalidResponseFormat(
                "Invalid JSON from server",
                status_code=response.status_code,
                response_body=excerpt(body, LISTING_BODY_EXCERPT_CHARS),
            ) from exc
        if not isinstance(rows, list):
            raise InvalidResponseFormat(
                "Expected a list of tables",
                status_code=response.status_code,
                response_body=excerpt(body, LISTING_BODY_EXCERPT_CHARS),
            )

        return self._normalize(rows)

    def _normalize(self, rows: list[Any]) -> list[ReservationResource]:
        resources: list[ReservationResource] = []
        for idx, row in enumerate(rows):
            if not isinstance(row, dict):
                log_debug("tables_row_skipped", index=idx, reason="not_an_object")
                continue
            resource = ReservationResource.from_row(row)
            if resource is None:
                log_debug("tables_row_skipped", index=idx, reason="missing_id")
                continue
            resources.append(resource)
        return resources
