"""Redaction utilities for credentials in error messages and logs.

Strips API keys, payment proofs, and tokens from URLs and strings
before they are logged or surfaced in degraded results.
"""

import re
from urllib.parse import unquote_plus, urlparse, urlunparse


# URL parameters that should be redacted
SENSITIVE_PARAMS = {
    "apikey",
    "api_key",
    "key",
    "token",
    "secret",
    "password",
    "access_token",
    "payment_proof",
    "signature",
    "sig",
    "license",
}

# Regex patterns for credentials in free text
_KEY_PATTERNS = [
    re.compile(r"(api_?key=)[^\s&]+", re.IGNORECASE),
    re.compile(r"(token=)[^\s&]+", re.IGNORECASE),
    re.compile(r"(secret=)[^\s&]+", re.IGNORECASE),
    re.compile(r"(sig(?:nature)?=)[^\s&]+", re.IGNORECASE),
    # Header echoes such as "X-API-Key: abc123"
    re.compile(r"(X-API-Key:\s*)\S+", re.IGNORECASE),
    re.compile(r"(Bearer\s+)\S+", re.IGNORECASE),
]

KEY_PREFIX_CHARS = 10


def redact_key(api_key: str | None) -> str:
    """Render an API key safely for logs.

    Returns the first few characters followed by an ellipsis, or
    'MISSING' when no key is configured.
    """
    if not api_key:
        return "MISSING"
    return f"{api_key[:KEY_PREFIX_CHARS]}..."


def encodable_url(url: str) -> str:
    """Backslash-escape characters UTF-8 cannot encode, such as lone surrogates.

    Undecodable command-line bytes arrive as lone surrogates, which httpx
    refuses to send and pydantic refuses to store.
    """
    try:
        url.encode("utf-8")
    except UnicodeEncodeError:
        return url.encode("utf-8", "backslashreplace").decode("utf-8")
    return url


def redact_url(url: str) -> str:
    """Remove sensitive query parameter values from a URL.

    Redacts in place so every other byte of the URL is logged exactly as
    it was requested.

    Args:
        url: URL that may contain credentials in query parameters.

    Returns:
        URL with sensitive parameter values replaced by '[REDACTED]'.
    """
    url = encodable_url(url)
    try:
        parsed = urlparse(url)
    except ValueError:
        return redact_error_message(url)

    if not parsed.query:
        return url

    parts = []
    for part in parsed.query.split("&"):
        key, sep, _ = part.partition("=")
        if sep and unquote_plus(key).lower() in SENSITIVE_PARAMS:
            part = f"{key}=[REDACTED]"
        parts.append(part)
    return urlunparse(parsed._replace(query="&".join(parts)))


def redact_error_message(message: str) -> str:
    """Strip potential API keys and tokens from an error message.

    Args:
        message: Error string that may contain leaked credentials.

    Returns:
        Message with sensitive values replaced by '[REDACTED]'.
    """
    result = message
    for pattern in _KEY_PATTERNS:
        result = pattern.sub(r"\1[REDACTED]", result)
    return result
