"""Acquisition pipeline — license check, optional fetch, usage logging.

Drives one pass over a set of URLs:

  1. Batch-check licenses concurrently.
  2. If fetching, retrieve each URL through the payment-aware fetcher
     (concurrently) and size the fetched content; otherwise size the
     content the caller already has (e.g. from a search API).
  3. Log usage for every URL with a license and a non-zero token count.

Failures never abort the pass: license lookups and usage logs degrade
inside LicenseService, and fetch failures are terminal fetch results.
"""

import asyncio
from typing import Iterable, Optional, Union
from uuid import uuid4

from licensefetch.schemas.enums import (
    Distribution,
    LicenseAction,
    LicenseStage,
    PaymentMethod,
)
from licensefetch.schemas.fetch import LicensedFetchResult
from licensefetch.schemas.license import LicenseInfo
from licensefetch.schemas.pipeline import PipelineItem, PipelineResult
from licensefetch.services.license_service import LicenseService
from licensefetch.services.licensed_fetcher import LicensedFetcher
from licensefetch.utils.logging import get_logger

ACQUIRED_LICENSE_TYPE = "x402"


def usage_license(
    url: str,
    license: Optional[LicenseInfo],
    fetched: Optional[LicensedFetchResult],
) -> Optional[LicenseInfo]:
    """Pick the license usage should be billed against.

    A checked license with a version id wins. Otherwise a license acquired
    during the fetch is turned into an allow license of type 'x402'.
    Otherwise the checked license (possibly None) is used as-is.
    """
    if license is not None and license.license_version_id:
        return license

    acquire = getattr(fetched, "acquire", None)
    if acquire is not None and acquire.license_version_id:
        return LicenseInfo(
            url=url,
            license_found=True,
            action=LicenseAction.ALLOW,
            license_version_id=acquire.license_version_id,
            license_sig=acquire.license_sig,
            license_type=ACQUIRED_LICENSE_TYPE,
        )

    return license


class AcquisitionPipeline:
    """Runs the license → fetch → usage flow for a result set."""

    def __init__(self, license_service: LicenseService, fetcher: LicensedFetcher) -> None:
        self._license_service = license_service
        self._fetcher = fetcher

    @property
    def license_service(self) -> LicenseService:
        return self._license_service

    @property
    def fetcher(self) -> LicensedFetcher:
        return self._fetcher

    async def close(self) -> None:
        """Close the fetcher, then the license service (encoder, cache, ledger client)."""
        await self._fetcher.close()
        await self._license_service.close()

    async def process(
        self,
        items: Iterable[Union[PipelineItem, str]],
        *,
        fetch: bool = False,
        stage: LicenseStage | None = None,
        distribution: Distribution | None = None,
        estimated_tokens: int | None = None,
        max_chars: int | None = None,
        payment_method: PaymentMethod | None = None,
    ) -> list[PipelineResult]:
        """Process items and return one result per item, in input order.

        Args:
            items: PipelineItems or bare URLs.
            fetch: Fetch each URL directly (x402-aware) instead of using
                the item's own content.
            stage: Usage stage for acquisitions and usage logs.
            distribution: Distribution for acquisitions and usage logs.
            estimated_tokens: Token estimate sent with acquisitions.
            max_chars: Character budget per fetched document.
            payment_method: Ledger settlement method.
        """
        settings = self._license_service.settings
        stage = stage or settings.default_stage
        distribution = distribution or settings.default_distribution

        # Bare URLs stay raw strings so an unusable one degrades per item
        pairs = [
            (item.url, item.content) if isinstance(item, PipelineItem) else (item, None)
            for item in items
        ]
        if not pairs:
            return []

        urls = [url for url, _ in pairs]
        log = get_logger("pipeline", correlation_id=uuid4().hex[:12]).bind(
            url_count=len(set(urls)), fetch=fetch,
        )
        log.info("Pipeline starting")

        licenses = await self._license_service.check_license_batch(urls)

        fetched_by_url: dict[str, LicensedFetchResult] = {}
        if fetch:
            fetched_by_url = await self._fetcher.fetch_many(
                urls,
                stage=stage,
                distribution=distribution,
                estimated_tokens=estimated_tokens,
                max_chars=max_chars,
                payment_method=payment_method,
            )

        results = await asyncio.gather(
            *(
                self._account(url, content, licenses.get(url), fetched_by_url.get(url), fetch, stage, distribution)
                for url, content in pairs
            )
        )

        summary = self._license_service.get_session_summary()
        log.info(
            "Pipeline complete",
            usage_logged=sum(1 for r in results if r.usage_logged),
            total_tokens=summary.total_tokens,
            errors=summary.errors,
        )
        return list(results)

    async def _account(
        self,
        url: str,
        content: Optional[str],
        license: Optional[LicenseInfo],
        fetched: Optional[LicensedFetchResult],
        fetch: bool,
        stage: LicenseStage,
        distribution: Distribution,
    ) -> PipelineResult:
        """Size the item's content and log usage for it."""
        if fetch:
            text = fetched.content_text if fetched is not None and fetched.has_usable_content else ""
            billed = usage_license(url, license, fetched)
        else:
            text = content or ""
            billed = license

        tokens = self._license_service.estimate_tokens(text)
        logged = False
        if billed is not None and tokens > 0:
            logged = await self._license_service.log_usage(
                url, tokens, billed, stage, distribution,
            )

        return PipelineResult(
            url=url,
            license=license,
            fetched=fetched,
            tokens=tokens,
            usage_logged=logged,
        )
