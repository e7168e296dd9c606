"""Shared enumerations for licensefetch schemas.

All enums used across licensefetch are defined here to ensure
consistency and avoid circular imports.
"""

from enum import Enum


class LicenseAction(str, Enum):
    """What the content owner permits for a URL."""
    ALLOW = "allow"
    DENY = "deny"
    UNKNOWN = "unknown"


class OptInStatus(str, Enum):
    """Ledger opt-in field values that count as a declared license."""
    OPT_IN = "opt-in"
    OPT_OUT = "opt-out"


class LicenseStage(str, Enum):
    """Usage purpose attached to acquisitions and usage logs."""
    INFER = "infer"
    EMBED = "embed"
    TUNE = "tune"
    TRAIN = "train"


class Distribution(str, Enum):
    """Where licensed content will be used."""
    PRIVATE = "private"
    PUBLIC = "public"


class PaymentMethod(str, Enum):
    """How the ledger should settle a license acquisition."""
    ACCOUNT_BALANCE = "account_balance"
    X402 = "x402"


class FetchOutcome(str, Enum):
    """Terminal state of a payment-aware fetch.

    DIRECT:           first response was not a 402
    NETWORK_ERROR:    no response at all (DNS, connect, deadline)
    UNRECOGNIZED_402: 402 without an x402 challenge
    PAYMENT_FAILED:   x402 challenge but acquisition or re-fetch failed
    PAID:             license acquired and licensed URL fetched
    """
    DIRECT = "direct"
    NETWORK_ERROR = "network_error"
    UNRECOGNIZED_402 = "unrecognized_402"
    PAYMENT_FAILED = "payment_failed"
    PAID = "paid"
