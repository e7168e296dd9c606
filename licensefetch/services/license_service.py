"""License checker — ledger lookups, acquisition, and usage logging.

LicenseService is instantiated once per process from an immutable
LedgerSettings snapshot. It owns the in-memory license cache, the token
estimator, and the session counters.

Failure policy:
  - check_license / check_license_batch never raise; ledger failures
    degrade to LicenseInfo(found=False, action=unknown, error=...) and
    bump the error counter.
  - log_usage never raises; failures return False and bump the error counter.
  - acquire_license_token raises ConfigError without an API key and lets
    transport/remote/protocol errors propagate. The fetcher folds them
    into its terminal result.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

import structlog

from licensefetch.config.settings import LedgerSettings
from licensefetch.exceptions import ConfigError, LicenseFetchError
from licensefetch.infra.ledger_client import LedgerClient
from licensefetch.schemas.enums import (
    Distribution,
    LicenseAction,
    LicenseStage,
    OptInStatus,
    PaymentMethod,
)
from licensefetch.schemas.license import (
    CacheEntry,
    LedgerAcquireResponse,
    LedgerLicenseRecord,
    LicenseInfo,
    SessionSummary,
    UsageLogEntry,
)
from licensefetch.services.session import SessionTracker
from licensefetch.utils.redaction import redact_url
from licensefetch.utils.tokens import TokenEstimator

logger = structlog.get_logger()

# Ledger license_type of the general, stage-agnostic license
GENERIC_LICENSE_TYPE = "ai-license"


def _select_record(records: list[LedgerLicenseRecord]) -> LedgerLicenseRecord:
    """Prefer the generic license type, else the first record."""
    for record in records:
        if record.license_type == GENERIC_LICENSE_TYPE:
            return record
    return records[0]


def _action_for(opt_in_status: Optional[str]) -> LicenseAction:
    if opt_in_status == OptInStatus.OPT_IN.value:
        return LicenseAction.ALLOW
    if opt_in_status == OptInStatus.OPT_OUT.value:
        return LicenseAction.DENY
    return LicenseAction.UNKNOWN


def license_from_record(url: str, record: LedgerLicenseRecord) -> LicenseInfo:
    """Translate a ledger record into a LicenseInfo for url."""
    action = _action_for(record.opt_in_status)
    return LicenseInfo(
        url=url,
        license_found=action != LicenseAction.UNKNOWN,
        action=action,
        price=record.rate_per_token,
        payto=record.wallet_id,
        license_version_id=record.id,
        license_type=record.license_type,
    )


class LicenseService:
    """License-aware gateway to the ledger.

    Args:
        settings: Immutable configuration snapshot.
        ledger: Ledger client. Built from settings when omitted.
        estimator: Token estimator. Built from settings when omitted.
        clock: Returns the current time in epoch seconds (cache expiry).
    """

    def __init__(
        self,
        settings: LedgerSettings,
        ledger: LedgerClient | None = None,
        estimator: TokenEstimator | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._ledger = ledger or LedgerClient(
            base_url=settings.api_url,
            api_key=settings.api_key,
            timeout=settings.license_check_timeout,
        )
        self._estimator = estimator or TokenEstimator(settings.token_encoder_model)
        self._clock = clock
        self._cache: dict[str, CacheEntry] = {}
        self._session = SessionTracker(tracking_enabled=settings.enable_tracking)

        logger.info("License service initialized", **settings.summary())

    @property
    def settings(self) -> LedgerSettings:
        return self._settings

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    # ------------------------------------------------------------------
    # License lookup
    # ------------------------------------------------------------------

    async def check_license(self, url: str) -> LicenseInfo:
        """Look up usage rights for one URL.

        Never raises. Returns an unknown license when tracking is off,
        when the ledger has no record, or when the lookup fails.
        """
        if not self._settings.enable_tracking:
            return LicenseInfo.unknown(url)

        if self._settings.enable_cache:
            cached = self._cache.get(url)
            if cached is not None and cached.is_valid(self._clock()):
                logger.debug("License cache hit", url=url)
                return cached.license

        try:
            records = await self._ledger.lookup_licenses(
                url, timeout=self._settings.license_check_timeout,
            )
        except LicenseFetchError as exc:
            logger.warning("License check failed", url=redact_url(url), error=str(exc))
            self._session.record_error()
            return LicenseInfo.unknown(url, error=str(exc))

        if not records:
            logger.info("No license records", url=url)
            return LicenseInfo.unknown(url)

        license = license_from_record(url, _select_record(records))

        if self._settings.enable_cache:
            self._cache[url] = CacheEntry(
                license=license,
                expires_at=self._clock() + self._settings.cache_ttl_seconds,
            )

        self._session.record_check(license)
        logger.info(
            "License checked",
            url=url,
            action=license.action.value,
            license_found=license.license_found,
            license_type=license.license_type,
        )
        return license

    async def check_license_batch(self, urls: Iterable[str]) -> dict[str, LicenseInfo]:
        """Check every distinct URL concurrently.

        Waits for all checks to settle; a check that fails unexpectedly
        contributes a degraded result instead of aborting its siblings.
        """
        unique = list(dict.fromkeys(urls))
        if not unique:
            return {}

        logger.info("Batch checking licenses", url_count=len(unique))
        results = await asyncio.gather(
            *(self.check_license(url) for url in unique),
            return_exceptions=True,
        )

        licenses: dict[str, LicenseInfo] = {}
        for url, result in zip(unique, results):
            if isinstance(result, Exception):
                logger.error("Batch license check raised", url=redact_url(url), error=str(result))
                self._session.record_error()
                licenses[url] = LicenseInfo.unknown(url, error=str(result))
            elif isinstance(result, BaseException):
                raise result
            else:
                licenses[url] = result
        return licenses

    # ------------------------------------------------------------------
    # Acquisition
    # ------------------------------------------------------------------

    async def acquire_license_token(
        self,
        url: str,
        stage: LicenseStage,
        distribution: Distribution,
        estimated_tokens: int,
        payment_method: PaymentMethod,
        payment_proof: str | None = None,
        payment_amount: float | None = None,
    ) -> LedgerAcquireResponse:
        """Acquire a license (and settle payment) for url.

        Raises:
            ConfigError: No ledger API key configured. No request is made.
            TransportError, RemoteError, ProtocolError: From the ledger call.
        """
        if not self._settings.api_key:
            raise ConfigError(
                "LEDGER_API_KEY is required for /api/v1/licenses/acquire", url=url,
            )

        payload: dict = {
            "url": url,
            "estimated_tokens": estimated_tokens,
            "stage": LicenseStage(stage).value,
            "distribution": Distribution(distribution).value,
            "payment_method": PaymentMethod(payment_method).value,
        }
        if payment_proof is not None:
            payload["payment_proof"] = payment_proof
        if payment_amount is not None:
            payload["payment_amount"] = payment_amount

        logger.info(
            "Acquiring license",
            url=url,
            stage=payload["stage"],
            distribution=payload["distribution"],
            estimated_tokens=estimated_tokens,
            payment_method=payload["payment_method"],
        )
        acquired = await self._ledger.acquire(
            payload, timeout=self._settings.license_acquire_timeout,
        )
        logger.info(
            "License acquired",
            url=url,
            licensed_url=redact_url(acquired.licensed_url),
            cost=acquired.cost,
            currency=acquired.currency,
        )
        return acquired

    # ------------------------------------------------------------------
    # Usage
    # ------------------------------------------------------------------

    def estimate_tokens(self, content: str) -> int:
        return self._estimator.estimate(content)

    async def log_usage(
        self,
        url: str,
        tokens: int,
        license: LicenseInfo,
        stage: LicenseStage = LicenseStage.INFER,
        distribution: Distribution = Distribution.PRIVATE,
    ) -> bool:
        """Post billable usage to the ledger.

        Returns:
            True if the ledger accepted the entry. False when tracking is
            off, no API key is configured, tokens is zero, or the post failed.
        """
        if not self._settings.enable_tracking or not self._settings.api_key:
            logger.debug("Usage logging disabled", url=url)
            return False

        if tokens <= 0:
            logger.debug("Skipping usage log with zero tokens", url=url)
            return False

        entry = UsageLogEntry(
            url=url,
            tokens=tokens,
            license_version_id=license.license_version_id,
            license_sig=license.license_sig,
            stage=stage,
            distribution=distribution,
            timestamp=datetime.now(timezone.utc),
        )

        try:
            await self._ledger.log_usage(entry, timeout=self._settings.usage_log_timeout)
        except LicenseFetchError as exc:
            logger.warning("Usage logging failed", url=url, error=str(exc))
            self._session.record_error()
            return False

        self._session.record_tokens(tokens)
        logger.info("Usage logged", url=url, tokens=tokens)
        return True

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def get_session_summary(self) -> SessionSummary:
        return self._session.snapshot()

    def reset_session(self) -> None:
        self._session.reset()
        logger.info("Session reset")

    async def close(self) -> None:
        """Release the encoder, drop cached licenses, close the ledger client."""
        self._estimator.close()
        self._cache.clear()
        await self._ledger.close()
