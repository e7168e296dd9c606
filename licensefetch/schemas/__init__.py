"""licensefetch schemas — typed data contracts between components."""

from licensefetch.schemas.enums import (
    Distribution,
    FetchOutcome,
    LicenseAction,
    LicenseStage,
    OptInStatus,
    PaymentMethod,
)
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
from licensefetch.schemas.license import (
    CacheEntry,
    LedgerAcquireResponse,
    LedgerLicenseRecord,
    LicenseInfo,
    SessionSummary,
    UsageLogEntry,
)
from licensefetch.schemas.pipeline import PipelineItem, PipelineResult

__all__ = [
    # Enums
    "Distribution",
    "FetchOutcome",
    "LicenseAction",
    "LicenseStage",
    "OptInStatus",
    "PaymentMethod",
    # Fetch
    "AcquireMetadata",
    "DirectFetchResult",
    "LicensedFetchResult",
    "NetworkErrorResult",
    "PaidFetchResult",
    "PaymentFailedResult",
    "UnrecognizedChallengeResult",
    "X402Challenge",
    # License
    "CacheEntry",
    "LedgerAcquireResponse",
    "LedgerLicenseRecord",
    "LicenseInfo",
    "SessionSummary",
    "UsageLogEntry",
    # Pipeline
    "PipelineItem",
    "PipelineResult",
]
