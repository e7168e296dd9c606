"""licensefetch utilities — logging, redaction, and token estimation."""

from licensefetch.utils.logging import configure_logging, get_logger
from licensefetch.utils.redaction import (
    encodable_url,
    redact_error_message,
    redact_key,
    redact_url,
)
from licensefetch.utils.tokens import TokenEstimator, heuristic_tokens

__all__ = [
    "configure_logging",
    "get_logger",
    "encodable_url",
    "redact_error_message",
    "redact_key",
    "redact_url",
    "TokenEstimator",
    "heuristic_tokens",
]
