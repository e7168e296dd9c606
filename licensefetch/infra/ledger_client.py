"""Licensing ledger API client.

Provides async access to the three ledger endpoints used by the license
service: license lookup, license acquisition, and usage logging. Every
call carries its own deadline; there is no retry loop, so a timeout or
transport failure surfaces immediately as a typed error.

Usage:
    client = LedgerClient(base_url="https://ledger.example", api_key="key")
    records = await client.lookup_licenses("https://example.com/article")
    acquired = await client.acquire({...}, timeout=8.0)
"""

import asyncio
from typing import Any

import httpx
from pydantic import ValidationError

from licensefetch.exceptions import ProtocolError, RemoteError, TransportError
from licensefetch.schemas.license import (
    LedgerAcquireResponse,
    LedgerLicenseRecord,
    UsageLogEntry,
)
from licensefetch.utils.redaction import redact_error_message

SERVICE = "ledger"

LICENSES_PATH = "/api/v1/licenses/"
ACQUIRE_PATH = "/api/v1/licenses/acquire"
USAGE_LOG_PATH = "/api/v1/usage/log"


class LedgerClient:
    """Async HTTP client for the licensing ledger.

    Handles authentication headers, per-call deadlines, and error mapping:
    transport failures become TransportError, non-2xx responses become
    RemoteError, and undecodable bodies become ProtocolError.
    """

    DEFAULT_TIMEOUT = 5.0

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the ledger client.

        Args:
            base_url: Ledger root URL, without a trailing slash.
            api_key: Ledger API key sent as X-API-Key. Lookups work without it.
            timeout: Fallback timeout in seconds for calls that don't pass one.
            transport: Optional httpx transport (tests inject MockTransport).
        """
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key or ""
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {
                "Accept": "application/json",
                "Content-Type": "application/json",
            }
            if self._api_key:
                headers["X-API-Key"] = self._api_key
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        timeout: float | None = None,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """Make a single request and decode its JSON body.

        Args:
            method: HTTP method.
            path: Endpoint path relative to the ledger base URL.
            timeout: Deadline in seconds for this call.
            params: Query parameters.
            json: JSON request body.

        Returns:
            Decoded JSON body, or None when the body is empty.

        Raises:
            TransportError: On timeout, DNS, or connection failure, or when
                the request URL cannot be encoded.
            RemoteError: On non-2xx responses.
            ProtocolError: On bodies that are not valid JSON.
        """
        client = await self._get_client()
        deadline = timeout if timeout is not None else self._timeout

        try:
            response = await asyncio.wait_for(
                client.request(method, path, params=params, json=json, timeout=deadline),
                timeout=deadline,
            )
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            raise TransportError(
                message=f"Ledger timeout on {method} {path}: {e!r}",
                service=SERVICE,
            ) from e
        except (httpx.InvalidURL, UnicodeEncodeError) as e:
            # Raised while building the request, before anything is sent
            raise TransportError(
                message=redact_error_message(f"Ledger request URL rejected on {method} {path}: {e}"),
                service=SERVICE,
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(
                message=redact_error_message(f"Ledger HTTP error on {method} {path}: {e}"),
                service=SERVICE,
            ) from e

        if not response.is_success:
            raise RemoteError(
                message=f"Ledger returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
                service=SERVICE,
            )

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise ProtocolError(
                message=f"Ledger returned non-JSON body for {method} {path}"
            ) from e

    async def lookup_licenses(self, url: str, timeout: float | None = None) -> list[LedgerLicenseRecord]:
        """Fetch every license record the ledger holds for a URL.

        A single-object body is treated as a one-record list; an empty
        or null body yields no records.
        """
        data = await self._request("GET", LICENSES_PATH, params={"url": url}, timeout=timeout)
        if data is None:
            return []
        rows = data if isinstance(data, list) else [data]

        try:
            return [LedgerLicenseRecord.model_validate(row) for row in rows]
        except ValidationError as e:
            raise ProtocolError(
                message=f"Malformed license record from ledger: {e.error_count()} error(s)",
                url=url,
            ) from e

    async def acquire(self, payload: dict[str, Any], timeout: float | None = None) -> LedgerAcquireResponse:
        """Request a license token (and payment) for a URL."""
        data = await self._request("POST", ACQUIRE_PATH, json=payload, timeout=timeout)
        if not isinstance(data, dict):
            raise ProtocolError(
                message=f"Expected acquisition object, got {type(data).__name__}",
                url=payload.get("url"),
            )

        try:
            return LedgerAcquireResponse.model_validate(data)
        except ValidationError as e:
            raise ProtocolError(
                message=f"Malformed acquisition response: {e.error_count()} error(s)",
                url=payload.get("url"),
            ) from e

    async def log_usage(self, entry: UsageLogEntry, timeout: float | None = None) -> None:
        """Post a billable usage entry."""
        await self._request("POST", USAGE_LOG_PATH, json=entry.to_payload(), timeout=timeout)
