"""Payment-aware fetcher — direct fetch with x402 challenge handling.

Per URL the fetch runs at most two GETs and at most one acquisition:

    FIRST_FETCH ─┬─ no response ............ NetworkErrorResult
                 ├─ status != 402 .......... DirectFetchResult
                 └─ 402 ─┬─ no x402 hint ... UnrecognizedChallengeResult
                         └─ ACQUIRE ─┬─ fails ............ PaymentFailedResult
                                     └─ SECOND_FETCH ─┬─ fails PaymentFailedResult
                                                      └─ any status PaidFetchResult

A second 402 is returned as-is, never retried. Every GET is bounded by a
total deadline enforced with asyncio.wait_for, which cancels the request
on expiry. Content is truncated silently to max_chars.
"""

import asyncio
from typing import Iterable, Optional

import httpx
import structlog

from licensefetch.config.settings import LedgerSettings
from licensefetch.exceptions import LicenseFetchError
from licensefetch.schemas.enums import Distribution, LicenseStage, PaymentMethod
from licensefetch.schemas.fetch import (
    AcquireMetadata,
    DirectFetchResult,
    LicensedFetchResult,
    NetworkErrorResult,
    PaidFetchResult,
    PaymentFailedResult,
    UnrecognizedChallengeResult,
    X402Challenge,
)
from licensefetch.services.license_service import LicenseService
from licensefetch.utils.redaction import redact_url

logger = structlog.get_logger()

ACCEPT_HEADER = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"

X402_TOKEN = "x402"
CHALLENGE_HEADERS = ("payment-required", "x-payment-protocol")

UNRECOGNIZED_402_ERROR = "HTTP 402 received but did not advertise x402 in payment-required header"

# Errors that mean "no usable response" for a content GET. InvalidURL and
# UnicodeError come from building the request out of an unusable URL.
_FETCH_ERRORS = (httpx.HTTPError, httpx.InvalidURL, UnicodeError, asyncio.TimeoutError)


def is_x402_challenge(headers: httpx.Headers) -> bool:
    """True if a 402 response advertises the x402 protocol."""
    return any(
        X402_TOKEN in (headers.get(name) or "").lower()
        for name in CHALLENGE_HEADERS
    )


def parse_challenge(headers: httpx.Headers) -> X402Challenge:
    """Read x402 parameters, honoring the legacy x-license-* aliases."""
    return X402Challenge(
        price=headers.get("x402-price") or headers.get("x-license-price"),
        payto=headers.get("x402-payto") or headers.get("x-license-payto"),
        stage=headers.get("x402-stage"),
        distribution=headers.get("x402-distribution") or headers.get("x-license-distribution"),
        facilitator_url=headers.get("x402-facilitator-url"),
    )


def parse_stage(value: Optional[str], fallback: LicenseStage) -> LicenseStage:
    """Stage advertised by a challenge, or fallback for missing/'default'/unknown."""
    try:
        return LicenseStage(value)
    except ValueError:
        return fallback


def parse_distribution(value: Optional[str], fallback: Distribution) -> Distribution:
    try:
        return Distribution(value)
    except ValueError:
        return fallback


def _check_max_chars(max_chars: Optional[int]) -> None:
    if max_chars is not None and max_chars < 0:
        raise ValueError(f"max_chars must be >= 0, got {max_chars}")


def _final_url(response: httpx.Response, requested: str) -> str:
    # Unredirected responses keep the caller's spelling of the URL
    return str(response.url) if response.history else requested


def _error_text(exc: BaseException, timeout: float) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return f"Fetch timed out after {timeout:g}s"
    return str(exc) or type(exc).__name__


class LicensedFetcher:
    """Fetches URLs directly, paying through the ledger when challenged.

    Args:
        license_service: Supplies acquire_license_token for the x402 path.
        settings: Fetch deadline, User-Agent, and per-call defaults.
            Defaults to the license service's settings.
        transport: Optional httpx transport (tests inject MockTransport).
    """

    def __init__(
        self,
        license_service: LicenseService,
        settings: LedgerSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._license_service = license_service
        self._settings = settings or license_service.settings
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                follow_redirects=True,
                timeout=self._settings.fetch_timeout,
                headers={
                    "User-Agent": self._settings.user_agent,
                    "Accept": ACCEPT_HEADER,
                },
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _get(self, url: str) -> httpx.Response:
        """One GET bounded by the fetch deadline, body fully read."""
        client = await self._get_client()
        return await asyncio.wait_for(client.get(url), timeout=self._settings.fetch_timeout)

    async def fetch_text(
        self,
        url: str,
        *,
        stage: LicenseStage | None = None,
        distribution: Distribution | None = None,
        estimated_tokens: int | None = None,
        payment_method: PaymentMethod | None = None,
        max_chars: int | None = None,
    ) -> LicensedFetchResult:
        """Fetch url, negotiating an x402 payment if the server asks for one.

        Args:
            url: URL to fetch.
            stage: Fallback usage stage when the challenge doesn't name one.
            distribution: Fallback distribution when the challenge doesn't name one.
            estimated_tokens: Token estimate sent with the acquisition.
            payment_method: Ledger settlement method.
            max_chars: Character budget for returned content.

        Returns:
            One of the terminal result variants. Never raises for network,
            ledger, or configuration failures.
        """
        settings = self._settings
        stage = stage or settings.default_stage
        distribution = distribution or settings.default_distribution
        estimated_tokens = (
            settings.default_estimated_tokens if estimated_tokens is None else estimated_tokens
        )
        payment_method = payment_method or settings.default_payment_method
        max_chars = settings.default_max_chars if max_chars is None else max_chars
        _check_max_chars(max_chars)

        log = logger.bind(url=redact_url(url))

        try:
            first = await self._get(url)
        except _FETCH_ERRORS as exc:
            error = _error_text(exc, settings.fetch_timeout)
            log.warning("Fetch failed", error=error)
            return NetworkErrorResult(requested_url=url, final_url=url, error=error)

        first_url = _final_url(first, url)
        content_type = first.headers.get("content-type")
        first_body = first.text[:max_chars]

        if first.status_code != 402:
            log.info("Fetched", status=first.status_code, chars=len(first_body))
            return DirectFetchResult(
                requested_url=url,
                final_url=first_url,
                status=first.status_code,
                content_type=content_type,
                content_text=first_body,
            )

        challenge = parse_challenge(first.headers)

        if not is_x402_challenge(first.headers):
            log.info("402 without x402 challenge")
            return UnrecognizedChallengeResult(
                requested_url=url,
                final_url=first_url,
                status=first.status_code,
                content_type=content_type,
                content_text=first_body,
                x402=challenge,
                error=UNRECOGNIZED_402_ERROR,
            )

        log.info("x402 challenge received", price=challenge.price, payto=challenge.payto)

        try:
            acquired = await self._license_service.acquire_license_token(
                url=url,
                stage=parse_stage(challenge.stage, stage),
                distribution=parse_distribution(challenge.distribution, distribution),
                estimated_tokens=estimated_tokens,
                payment_method=payment_method,
            )
            second = await self._get(acquired.licensed_url)
        except (LicenseFetchError, *_FETCH_ERRORS) as exc:
            error = _error_text(exc, settings.fetch_timeout)
            log.warning("x402 payment failed", error=error)
            return PaymentFailedResult(
                requested_url=url,
                final_url=first_url,
                status=first.status_code,
                content_type=content_type,
                content_text=first_body,
                x402=challenge,
                error=error,
            )

        log.info(
            "Fetched licensed URL",
            licensed_url=redact_url(acquired.licensed_url),
            status=second.status_code,
            cost=acquired.cost,
        )
        return PaidFetchResult(
            requested_url=url,
            final_url=_final_url(second, acquired.licensed_url),
            status=second.status_code,
            content_type=second.headers.get("content-type"),
            content_text=second.text[:max_chars],
            x402=challenge,
            acquire=AcquireMetadata(
                licensed_url=acquired.licensed_url,
                cost=acquired.cost,
                currency=acquired.currency,
                expires_at=acquired.expires_at,
                license_version_id=acquired.license_version_id,
                license_sig=acquired.license_sig,
            ),
        )

    async def fetch_many(
        self,
        urls: Iterable[str],
        **options,
    ) -> dict[str, LicensedFetchResult]:
        """Run fetch_text concurrently over the distinct URLs.

        Each URL's sequence is independent; results come back keyed by URL.
        A fetch that raises unexpectedly becomes a NetworkErrorResult for its
        URL instead of aborting its siblings.
        """
        _check_max_chars(options.get("max_chars"))
        unique = list(dict.fromkeys(urls))
        if not unique:
            return {}

        results = await asyncio.gather(
            *(self.fetch_text(url, **options) for url in unique),
            return_exceptions=True,
        )

        fetched: dict[str, LicensedFetchResult] = {}
        for url, result in zip(unique, results):
            if isinstance(result, Exception):
                error = str(result) or type(result).__name__
                logger.error("Fetch raised", url=redact_url(url), error=error)
                fetched[url] = NetworkErrorResult(requested_url=url, final_url=url, error=error)
            elif isinstance(result, BaseException):
                raise result
            else:
                fetched[url] = result
        return fetched
