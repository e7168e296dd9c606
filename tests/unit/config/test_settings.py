"""Tests for LedgerSettings — environment-based configuration."""

import os
from dataclasses import FrozenInstanceError
from unittest.mock import patch

import pytest

from licensefetch.config.settings import (
    DEFAULT_API_URL,
    DEFAULT_USER_AGENT,
    LedgerSettings,
    get_settings,
)
from licensefetch.schemas.enums import Distribution, LicenseStage, PaymentMethod


class TestDefaults:
    """Test default values when no env vars are set."""

    def test_default_ledger(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = get_settings()
        assert settings.api_url == DEFAULT_API_URL
        assert settings.api_key == ""
        assert settings.has_api_key() is False

    def test_default_timeouts_in_seconds(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = get_settings()
        assert settings.license_check_timeout == 5.0
        assert settings.license_acquire_timeout == 8.0
        assert settings.usage_log_timeout == 3.0
        assert settings.fetch_timeout == 12.0

    def test_default_feature_flags(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = get_settings()
        assert settings.enable_tracking is True
        assert settings.enable_cache is False
        assert settings.cache_ttl_seconds == 300

    def test_default_call_options(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = get_settings()
        assert settings.default_stage == LicenseStage.INFER
        assert settings.default_distribution == Distribution.PRIVATE
        assert settings.default_estimated_tokens == 1500
        assert settings.default_max_chars == 200_000
        assert settings.default_payment_method == PaymentMethod.ACCOUNT_BALANCE
        assert settings.user_agent == DEFAULT_USER_AGENT
        assert settings.token_encoder_model == "gpt-4"


class TestEnvOverrides:
    """Test that environment variables override defaults."""

    def test_ledger_overrides(self):
        env = {"LEDGER_API_URL": "https://ledger.local/", "LEDGER_API_KEY": "lk_abc"}
        with patch.dict(os.environ, env, clear=True):
            settings = get_settings()
        assert settings.api_url == "https://ledger.local"
        assert settings.has_api_key() is True

    def test_older_ledger_names_are_fallbacks(self):
        env = {
            "COPYRIGHTSH_LEDGER_API": "https://ledger.legacy/",
            "COPYRIGHTSH_LEDGER_API_KEY": "lk_legacy",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = get_settings()
        assert settings.api_url == "https://ledger.legacy"
        assert settings.api_key == "lk_legacy"

    def test_current_ledger_names_win(self):
        env = {
            "LEDGER_API_URL": "https://ledger.local",
            "LEDGER_API_KEY": "lk_abc",
            "COPYRIGHTSH_LEDGER_API": "https://ledger.legacy",
            "COPYRIGHTSH_LEDGER_API_KEY": "lk_legacy",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = get_settings()
        assert settings.api_url == "https://ledger.local"
        assert settings.api_key == "lk_abc"

    def test_timeouts_converted_from_ms(self):
        env = {
            "LICENSE_CHECK_TIMEOUT_MS": "250",
            "LICENSE_ACQUIRE_TIMEOUT_MS": "1500",
            "USAGE_LOG_TIMEOUT_MS": "100",
            "FETCH_TIMEOUT_MS": "20000",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = get_settings()
        assert settings.license_check_timeout == 0.25
        assert settings.license_acquire_timeout == 1.5
        assert settings.usage_log_timeout == 0.1
        assert settings.fetch_timeout == 20.0

    @pytest.mark.parametrize("value", ["false", "FALSE", "0", "no"])
    def test_tracking_disabled(self, value):
        with patch.dict(os.environ, {"ENABLE_LICENSE_TRACKING": value}, clear=True):
            assert get_settings().enable_tracking is False

    def test_tracking_unrecognized_value_stays_enabled(self):
        with patch.dict(os.environ, {"ENABLE_LICENSE_TRACKING": "maybe"}, clear=True):
            assert get_settings().enable_tracking is True

    def test_cache_enabled(self):
        env = {"ENABLE_LICENSE_CACHE": "true", "LICENSE_CACHE_TTL_SECONDS": "60"}
        with patch.dict(os.environ, env, clear=True):
            settings = get_settings()
        assert settings.enable_cache is True
        assert settings.cache_ttl_seconds == 60

    def test_call_option_overrides(self):
        env = {
            "DEFAULT_STAGE": "train",
            "DEFAULT_DISTRIBUTION": "public",
            "DEFAULT_PAYMENT_METHOD": "x402",
            "DEFAULT_MAX_CHARS": "5000",
            "DEFAULT_ESTIMATED_TOKENS": "800",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = get_settings()
        assert settings.default_stage == LicenseStage.TRAIN
        assert settings.default_distribution == Distribution.PUBLIC
        assert settings.default_payment_method == PaymentMethod.X402
        assert settings.default_max_chars == 5000
        assert settings.default_estimated_tokens == 800

    def test_invalid_enum_falls_back(self):
        env = {"DEFAULT_STAGE": "pretrain", "DEFAULT_DISTRIBUTION": "galactic"}
        with patch.dict(os.environ, env, clear=True):
            settings = get_settings()
        assert settings.default_stage == LicenseStage.INFER
        assert settings.default_distribution == Distribution.PRIVATE

    def test_log_level_uppercased(self):
        with patch.dict(os.environ, {"LICENSEFETCH_LOG_LEVEL": "debug"}, clear=True):
            assert get_settings().log_level == "DEBUG"


class TestSettingsObject:

    def test_frozen(self):
        settings = LedgerSettings()
        with pytest.raises(FrozenInstanceError):
            settings.api_key = "changed"  # type: ignore[misc]

    def test_summary_never_contains_full_key(self):
        settings = LedgerSettings(api_key="lk_live_supersecretvalue")
        summary = settings.summary()
        assert summary["has_api_key"] is True
        assert "supersecretvalue" not in str(summary)
        assert summary["api_key_prefix"] == "lk_live_su..."
