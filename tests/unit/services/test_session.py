"""Tests for SessionTracker counters."""

import pytest

from licensefetch.schemas.enums import LicenseAction
from licensefetch.schemas.license import LicenseInfo, SessionSummary
from licensefetch.services.session import SessionTracker


def _license(found: bool, action: LicenseAction) -> LicenseInfo:
    return LicenseInfo(url="https://a.test", license_found=found, action=action)


class TestRecordCheck:

    def test_each_check_lands_in_one_bucket(self):
        tracker = SessionTracker()
        tracker.record_check(_license(True, LicenseAction.ALLOW))
        tracker.record_check(_license(True, LicenseAction.DENY))
        tracker.record_check(_license(False, LicenseAction.UNKNOWN))
        tracker.record_check(_license(True, LicenseAction.UNKNOWN))

        summary = tracker.snapshot()
        assert summary.total_urls == 4
        assert summary.licensed_content == 2
        assert summary.denied_content == 1
        assert summary.unlicensed_content == 1
        assert (
            summary.licensed_content + summary.denied_content + summary.unlicensed_content
            == summary.total_urls
        )


class TestTokensAndErrors:

    def test_tokens_accumulate(self):
        tracker = SessionTracker()
        tracker.record_tokens(100)
        tracker.record_tokens(0)
        tracker.record_tokens(23)
        assert tracker.snapshot().total_tokens == 123

    def test_negative_tokens_rejected(self):
        with pytest.raises(ValueError):
            SessionTracker().record_tokens(-5)

    def test_errors_accumulate(self):
        tracker = SessionTracker()
        tracker.record_error()
        tracker.record_error()
        assert tracker.snapshot().errors == 2


class TestSnapshotAndReset:

    def test_snapshot_is_detached(self):
        tracker = SessionTracker()
        before = tracker.snapshot()
        tracker.record_error()
        assert before.errors == 0
        assert isinstance(before, SessionSummary)

    def test_reset_zeroes_and_keeps_tracking_flag(self):
        tracker = SessionTracker(tracking_enabled=False)
        tracker.record_check(_license(True, LicenseAction.ALLOW))
        tracker.record_tokens(10)
        tracker.record_error()

        tracker.reset()

        assert tracker.snapshot() == SessionSummary(tracking_enabled=False)
