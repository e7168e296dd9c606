"""Service factory — wires the license service, fetcher, and pipeline.

One settings snapshot (see licensefetch.config.settings.get_settings) is
shared by every component. A missing ledger key is warned about here, once
per build, since the pipeline still runs checks without it.
"""

from __future__ import annotations

import httpx
import structlog

from licensefetch.config.settings import LedgerSettings
from licensefetch.infra.ledger_client import LedgerClient
from licensefetch.services.license_service import LicenseService
from licensefetch.services.licensed_fetcher import LicensedFetcher
from licensefetch.services.pipeline import AcquisitionPipeline
from licensefetch.utils.tokens import TokenEstimator

logger = structlog.get_logger()


def build_pipeline(
    settings: LedgerSettings,
    *,
    ledger_transport: httpx.AsyncBaseTransport | None = None,
    fetch_transport: httpx.AsyncBaseTransport | None = None,
    estimator: TokenEstimator | None = None,
) -> AcquisitionPipeline:
    """Build a complete pipeline from a settings snapshot.

    Parameters
    ----------
    settings:
        Immutable configuration shared by every component.
    ledger_transport:
        Optional httpx transport for ledger calls (tests inject
        MockTransport here).
    fetch_transport:
        Optional httpx transport for direct content fetches.
    estimator:
        Optional token estimator. Built from settings.token_encoder_model
        when omitted.

    Returns
    -------
    AcquisitionPipeline
        Pipeline owning one LicenseService and one LicensedFetcher.
    """
    if not settings.has_api_key():
        logger.warning(
            "LEDGER_API_KEY not set: acquisition and usage logging are disabled",
        )
    ledger = LedgerClient(
        base_url=settings.api_url,
        api_key=settings.api_key,
        timeout=settings.license_check_timeout,
        transport=ledger_transport,
    )
    license_service = LicenseService(settings, ledger=ledger, estimator=estimator)
    fetcher = LicensedFetcher(license_service, settings=settings, transport=fetch_transport)
    return AcquisitionPipeline(license_service, fetcher)

