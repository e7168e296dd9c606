"""Centralized environment-based settings for licensefetch.

Reads ledger, cache, fetch, and per-call default settings from environment
variables exactly once. The resulting snapshot is immutable and shared by
the license service, the fetcher, and the CLI.

Usage:
    from licensefetch.config.settings import get_settings
    settings = get_settings()
"""

import os
from dataclasses import dataclass
from typing import Any

from licensefetch.schemas.enums import Distribution, LicenseStage, PaymentMethod
from licensefetch.utils.redaction import redact_key

DEFAULT_API_URL = "https://ledger.copyright.sh"
DEFAULT_USER_AGENT = "licensefetch Licensed Fetcher (x402)"


@dataclass(frozen=True)
class LedgerSettings:
    """Immutable licensing settings loaded from environment.

    Timeouts are stored in seconds even though the environment
    variables are expressed in milliseconds.
    """

    # Ledger
    api_url: str = DEFAULT_API_URL
    api_key: str = ""
    license_check_timeout: float = 5.0
    license_acquire_timeout: float = 8.0
    usage_log_timeout: float = 3.0

    # Feature flags
    enable_tracking: bool = True
    enable_cache: bool = False
    cache_ttl_seconds: int = 300

    # Direct fetch
    fetch_timeout: float = 12.0
    user_agent: str = DEFAULT_USER_AGENT

    # Empty disables the subword encoder and forces the len/4 heuristic
    token_encoder_model: str = "gpt-4"

    # Per-call defaults
    default_stage: LicenseStage = LicenseStage.INFER
    default_distribution: Distribution = Distribution.PRIVATE
    default_estimated_tokens: int = 1500
    default_max_chars: int = 200_000
    default_payment_method: PaymentMethod = PaymentMethod.ACCOUNT_BALANCE

    # Logging
    log_level: str = "INFO"

    def has_api_key(self) -> bool:
        return bool(self.api_key)

    def summary(self) -> dict[str, Any]:
        """Return a log-safe view of the settings."""
        return {
            "api_url": self.api_url,
            "tracking_enabled": self.enable_tracking,
            "cache_enabled": self.enable_cache,
            "cache_ttl_seconds": self.cache_ttl_seconds,
            "has_api_key": self.has_api_key(),
            "api_key_prefix": redact_key(self.api_key),
        }


def get_settings() -> LedgerSettings:
    """Load settings from environment variables.

    Environment variables (all optional):
        LEDGER_API_URL: Ledger base URL (default: https://ledger.copyright.sh)
        LEDGER_API_KEY: Ledger API key (required for acquisition and usage logs)
        COPYRIGHTSH_LEDGER_API, COPYRIGHTSH_LEDGER_API_KEY: Older names, read
            when the LEDGER_ variables are unset or empty
        LICENSE_CHECK_TIMEOUT_MS: License lookup timeout (default: 5000)
        LICENSE_ACQUIRE_TIMEOUT_MS: License acquisition timeout (default: 8000)
        USAGE_LOG_TIMEOUT_MS: Usage log timeout (default: 3000)
        ENABLE_LICENSE_TRACKING: Disabled only by a false-like value (default: true)
        ENABLE_LICENSE_CACHE: Enable the in-memory license cache (default: false)
        LICENSE_CACHE_TTL_SECONDS: Cache entry lifetime (default: 300)
        FETCH_TIMEOUT_MS: Direct fetch deadline (default: 12000)
        FETCH_USER_AGENT: User-Agent for direct fetches
        TOKEN_ENCODER_MODEL: tiktoken model name, empty to disable (default: gpt-4)
        DEFAULT_STAGE: infer | embed | tune | train (default: infer)
        DEFAULT_DISTRIBUTION: private | public (default: private)
        DEFAULT_ESTIMATED_TOKENS: Token estimate for acquisitions (default: 1500)
        DEFAULT_MAX_CHARS: Max characters kept per fetched document (default: 200000)
        DEFAULT_PAYMENT_METHOD: account_balance | x402 (default: account_balance)
        LICENSEFETCH_LOG_LEVEL: Logging level (default: INFO)
    """
    def _bool(key: str, default: bool = False) -> bool:
        val = os.environ.get(key, "").lower()
        if val in ("1", "true", "yes"):
            return True
        if val in ("0", "false", "no"):
            return False
        return default

    def _seconds_from_ms(key: str, default_ms: int) -> float:
        return int(os.environ.get(key, str(default_ms))) / 1000.0

    def _enum(enum_cls, key: str, default):
        try:
            return enum_cls(os.environ.get(key, default.value).lower())
        except ValueError:
            return default

    return LedgerSettings(
        api_url=(
            os.environ.get("LEDGER_API_URL")
            or os.environ.get("COPYRIGHTSH_LEDGER_API")
            or DEFAULT_API_URL
        ).rstrip("/"),
        api_key=os.environ.get("LEDGER_API_KEY") or os.environ.get("COPYRIGHTSH_LEDGER_API_KEY", ""),
        license_check_timeout=_seconds_from_ms("LICENSE_CHECK_TIMEOUT_MS", 5000),
        license_acquire_timeout=_seconds_from_ms("LICENSE_ACQUIRE_TIMEOUT_MS", 8000),
        usage_log_timeout=_seconds_from_ms("USAGE_LOG_TIMEOUT_MS", 3000),
        enable_tracking=_bool("ENABLE_LICENSE_TRACKING", True),
        enable_cache=_bool("ENABLE_LICENSE_CACHE", False),
        cache_ttl_seconds=int(os.environ.get("LICENSE_CACHE_TTL_SECONDS", "300")),
        fetch_timeout=_seconds_from_ms("FETCH_TIMEOUT_MS", 12000),
        user_agent=os.environ.get("FETCH_USER_AGENT", DEFAULT_USER_AGENT),
        token_encoder_model=os.environ.get("TOKEN_ENCODER_MODEL", "gpt-4"),
        default_stage=_enum(LicenseStage, "DEFAULT_STAGE", LicenseStage.INFER),
        default_distribution=_enum(Distribution, "DEFAULT_DISTRIBUTION", Distribution.PRIVATE),
        default_estimated_tokens=int(os.environ.get("DEFAULT_ESTIMATED_TOKENS", "1500")),
        default_max_chars=int(os.environ.get("DEFAULT_MAX_CHARS", "200000")),
        default_payment_method=_enum(
            PaymentMethod, "DEFAULT_PAYMENT_METHOD", PaymentMethod.ACCOUNT_BALANCE
        ),
        log_level=os.environ.get("LICENSEFETCH_LOG_LEVEL", "INFO").upper(),
    )
