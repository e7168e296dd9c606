"""Session-wide license tracking counters.

Owned by LicenseService and mutated only from its check and usage-log
operations. Callers read immutable SessionSummary snapshots.

Counters are plain ints updated between awaits, which is safe under
asyncio's cooperative scheduling. Sharing one tracker across threads
would need a lock around every record_* call.
"""

from licensefetch.schemas.enums import LicenseAction
from licensefetch.schemas.license import LicenseInfo, SessionSummary


class SessionTracker:
    """Monotonic counters for one process lifetime, until reset()."""

    def __init__(self, tracking_enabled: bool = True) -> None:
        self._tracking_enabled = tracking_enabled
        self._zero()

    def _zero(self) -> None:
        self._total_urls = 0
        self._licensed = 0
        self._unlicensed = 0
        self._denied = 0
        self._total_tokens = 0
        self._errors = 0

    def record_check(self, license: LicenseInfo) -> None:
        """Count one completed license check in exactly one bucket."""
        self._total_urls += 1
        if not license.license_found:
            self._unlicensed += 1
        elif license.action == LicenseAction.DENY:
            self._denied += 1
        else:
            self._licensed += 1

    def record_tokens(self, tokens: int) -> None:
        if tokens < 0:
            raise ValueError(f"tokens must be >= 0, got {tokens}")
        self._total_tokens += tokens

    def record_error(self) -> None:
        self._errors += 1

    def snapshot(self) -> SessionSummary:
        return SessionSummary(
            total_urls=self._total_urls,
            licensed_content=self._licensed,
            unlicensed_content=self._unlicensed,
            denied_content=self._denied,
            total_tokens=self._total_tokens,
            tracking_enabled=self._tracking_enabled,
            errors=self._errors,
        )

    def reset(self) -> None:
        """Zero every counter. The tracking-enabled flag is preserved."""
        self._zero()
