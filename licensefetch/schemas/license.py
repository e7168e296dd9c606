"""License, usage, and session schemas.

LicenseInfo is the per-URL answer of the license checker. LedgerLicenseRecord
and LedgerAcquireResponse mirror the ledger's wire format; UsageLogEntry is
what gets posted back for billing. SessionSummary is the immutable snapshot
of the session counters.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from licensefetch.schemas.enums import Distribution, LicenseAction, LicenseStage
from licensefetch.utils.redaction import encodable_url


class LicenseInfo(BaseModel):
    """Machine-readable usage rights for one URL.

    Invariant: a license that was not found always has action UNKNOWN.
    """

    model_config = ConfigDict(frozen=True)

    url: str = Field(..., description="URL the license applies to")
    license_found: bool = Field(default=False)
    action: LicenseAction = Field(default=LicenseAction.UNKNOWN)
    distribution: Optional[Distribution] = None
    price: Optional[float] = Field(
        default=None, description="Price in currency units per 1000 tokens",
    )
    payto: Optional[str] = Field(default=None, description="Payee wallet id")
    license_version_id: Optional[int] = None
    license_sig: Optional[str] = None
    license_type: Optional[str] = None
    error: Optional[str] = None

    @field_validator("url", mode="before")
    @classmethod
    def _encodable_url(cls, v: Any) -> Any:
        return encodable_url(v) if isinstance(v, str) else v

    @model_validator(mode="after")
    def _unfound_means_unknown(self) -> "LicenseInfo":
        if not self.license_found and self.action != LicenseAction.UNKNOWN:
            raise ValueError("license_found=False requires action='unknown'")
        return self

    @classmethod
    def unknown(cls, url: str, error: str | None = None) -> "LicenseInfo":
        """Degraded result used when the ledger has no answer."""
        return cls(url=url, license_found=False, action=LicenseAction.UNKNOWN, error=error)


class CacheEntry(BaseModel):
    """A cached license with its absolute expiry (epoch seconds)."""

    model_config = ConfigDict(frozen=True)

    license: LicenseInfo
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return self.expires_at > now


class LedgerLicenseRecord(BaseModel):
    """One record of GET /api/v1/licenses/. Unknown fields are ignored."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: Optional[int] = None
    license_type: Optional[str] = None
    opt_in_status: Optional[str] = None
    rate_per_token: Optional[float] = None
    wallet_id: Optional[str] = None

    @field_validator("wallet_id", mode="before")
    @classmethod
    def _wallet_as_str(cls, v: Any) -> Any:
        if v is None or isinstance(v, str):
            return v
        return str(v)


class LedgerAcquireResponse(BaseModel):
    """Body of POST /api/v1/licenses/acquire."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    licensed_url: str = Field(..., min_length=1)
    license_version_id: Optional[int] = None
    license_sig: Optional[str] = None
    expires_at: Optional[str] = None
    cost: float = 0.0
    currency: str = "USD"
    stage: Optional[LicenseStage] = None
    distribution: Optional[Distribution] = None
    estimated_tokens: Optional[int] = None
    license_status: Optional[str] = None
    rate_per_1k_tokens: Optional[float] = None


class UsageLogEntry(BaseModel):
    """Billable usage posted to /api/v1/usage/log."""

    model_config = ConfigDict(frozen=True)

    url: str
    tokens: int = Field(..., ge=0)
    license_version_id: Optional[int] = None
    license_sig: Optional[str] = None
    stage: LicenseStage = LicenseStage.INFER
    distribution: Distribution = Distribution.PRIVATE
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def must_have_timezone(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            raise ValueError("Timestamp must include timezone information")
        return v

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class SessionSummary(BaseModel):
    """Snapshot of session-wide license tracking counters."""

    model_config = ConfigDict(frozen=True)

    total_urls: int = Field(default=0, ge=0)
    licensed_content: int = Field(default=0, ge=0)
    unlicensed_content: int = Field(default=0, ge=0)
    denied_content: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)
    tracking_enabled: bool = True
    errors: int = Field(default=0, ge=0)
