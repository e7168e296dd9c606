"""Acquisition pipeline input and output schemas."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from licensefetch.schemas.fetch import LicensedFetchResult
from licensefetch.schemas.license import LicenseInfo
from licensefetch.utils.redaction import encodable_url


class PipelineItem(BaseModel):
    """A URL to process, optionally with content an upstream search already returned."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(..., min_length=1)
    content: Optional[str] = Field(
        default=None,
        description="Search-provided content used for sizing when not fetching directly",
    )


class PipelineResult(BaseModel):
    """Per-URL outcome of one pipeline run."""

    model_config = ConfigDict(frozen=True)

    url: str
    license: Optional[LicenseInfo] = None
    fetched: Optional[LicensedFetchResult] = None
    tokens: int = Field(default=0, ge=0)
    usage_logged: bool = False

    @field_validator("url", mode="before")
    @classmethod
    def _encodable_url(cls, v: Any) -> Any:
        return encodable_url(v) if isinstance(v, str) else v
