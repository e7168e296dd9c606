"""Payment-aware fetch result schemas.

A fetch ends in exactly one terminal state. Each state is its own model,
tagged by ``outcome``, so callers can match on the variant instead of
probing optional fields:

    DirectFetchResult           first response was not a 402
    NetworkErrorResult          no response at all
    UnrecognizedChallengeResult 402 without an x402 challenge
    PaymentFailedResult         x402 challenge, acquisition or re-fetch failed
    PaidFetchResult             license acquired, licensed URL fetched
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from licensefetch.schemas.enums import FetchOutcome
from licensefetch.utils.redaction import encodable_url


class X402Challenge(BaseModel):
    """Parameters advertised by a 402 response's vendor headers."""

    model_config = ConfigDict(frozen=True)

    price: Optional[str] = None
    payto: Optional[str] = None
    stage: Optional[str] = None
    distribution: Optional[str] = None
    facilitator_url: Optional[str] = None


class AcquireMetadata(BaseModel):
    """The subset of a ledger acquisition attached to a paid fetch."""

    model_config = ConfigDict(frozen=True)

    licensed_url: str
    cost: float = 0.0
    currency: str = "USD"
    expires_at: Optional[str] = None
    license_version_id: Optional[int] = None
    license_sig: Optional[str] = None


class _FetchResultBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    requested_url: str
    final_url: str
    status: int = Field(..., ge=0)
    content_type: Optional[str] = None
    content_text: Optional[str] = None
    error: Optional[str] = None

    @field_validator("requested_url", "final_url", mode="before")
    @classmethod
    def _encodable_url(cls, v: Any) -> Any:
        return encodable_url(v) if isinstance(v, str) else v

    @property
    def has_usable_content(self) -> bool:
        """True for a 2xx response that carried a non-empty body."""
        return bool(self.content_text) and 200 <= self.status < 300


class DirectFetchResult(_FetchResultBase):
    outcome: Literal["direct"] = FetchOutcome.DIRECT.value
    payment_attempted: Literal[False] = False
    payment_required: Literal[False] = False


class NetworkErrorResult(_FetchResultBase):
    outcome: Literal["network_error"] = FetchOutcome.NETWORK_ERROR.value
    status: Literal[0] = 0
    payment_attempted: Literal[False] = False
    payment_required: Literal[False] = False
    error: str


class UnrecognizedChallengeResult(_FetchResultBase):
    outcome: Literal["unrecognized_402"] = FetchOutcome.UNRECOGNIZED_402.value
    payment_attempted: Literal[False] = False
    payment_required: Literal[True] = True
    x402: X402Challenge
    error: str


class PaymentFailedResult(_FetchResultBase):
    outcome: Literal["payment_failed"] = FetchOutcome.PAYMENT_FAILED.value
    payment_attempted: Literal[True] = True
    payment_required: Literal[True] = True
    x402: X402Challenge
    error: str


class PaidFetchResult(_FetchResultBase):
    outcome: Literal["paid"] = FetchOutcome.PAID.value
    payment_attempted: Literal[True] = True
    payment_required: Literal[True] = True
    x402: X402Challenge
    acquire: AcquireMetadata


LicensedFetchResult = Annotated[
    Union[
        DirectFetchResult,
        NetworkErrorResult,
        UnrecognizedChallengeResult,
        PaymentFailedResult,
        PaidFetchResult,
    ],
    Field(discriminator="outcome"),
]
