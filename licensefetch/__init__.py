"""licensefetch — license-aware content acquisition.

Looks up machine-readable usage rights for URLs from a licensing ledger,
fetches content directly (paying through x402 challenges when a server
asks for it), and logs billable token usage back to the ledger.
"""

__version__ = "0.1.0"
