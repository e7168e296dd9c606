from licensefetch.infra.ledger_client import LedgerClient

__all__ = [
    "LedgerClient",
]
