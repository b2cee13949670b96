"""Unit tests for configuration management."""

import pytest
from pydantic import ValidationError

from communityconnect.config import Environment, Settings


class TestSettings:
    """Tests for Settings class."""

    def test_settings_defaults(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        settings = Settings(environment=Environment.TESTING)  # type: ignore[call-arg]

        assert settings.supabase_url == "http://127.0.0.1:54321"
        assert settings.media_bucket == "post-media"
        assert settings.blood_expiry_hours == 5
        assert settings.read_attempts == 1

    def test_settings_from_environment(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://abc.supabase.co/")
        monkeypatch.setenv("SUPABASE_ANON_KEY", "eyJhbGciOiJIUzI1NiJ9.anon")
        monkeypatch.setenv("MEDIA_BUCKET", "media")
        monkeypatch.setenv("COMMUNITY_EMAIL", "alice@example.org")
        monkeypatch.setenv("COMMUNITY_PASSWORD", "secret")

        settings = Settings(environment=Environment.TESTING)  # type: ignore[call-arg]

        assert settings.supabase_url == "https://abc.supabase.co"
        assert settings.rest_url == "https://abc.supabase.co/rest/v1"
        assert settings.storage_url == "https://abc.supabase.co/storage/v1"
        assert settings.auth_url == "https://abc.supabase.co/auth/v1"
        assert settings.media_bucket == "media"
        assert settings.has_credentials

    def test_invalid_url(self):
        with pytest.raises(ValidationError, match="http"):
            Settings(SUPABASE_URL="abc.supabase.co")  # type: ignore[call-arg]

    def test_short_anon_key(self):
        with pytest.raises(ValidationError, match="at least 10 characters"):
            Settings(SUPABASE_ANON_KEY="short")  # type: ignore[call-arg]

    @pytest.mark.parametrize("hours", [0, 73])
    def test_blood_expiry_bounds(self, hours):
        with pytest.raises(ValidationError):
            Settings(blood_expiry_hours=hours)  # type: ignore[call-arg]

    def test_redact_key(self, test_settings):
        assert test_settings.redact_key() == "test_ano...5678"
        assert test_settings.redact_key("short") == "***"

    def test_no_credentials(self, monkeypatch):
        monkeypatch.delenv("COMMUNITY_EMAIL", raising=False)
        monkeypatch.delenv("COMMUNITY_PASSWORD", raising=False)

        settings = Settings(environment=Environment.TESTING)  # type: ignore[call-arg]

        assert not settings.has_credentials


class TestEnvironmentProfiles:
    """Tests for environment-specific defaults."""

    def test_testing_profile(self, test_settings):
        assert test_settings.is_testing
        assert test_settings.log_level == "ERROR"
        assert test_settings.log_file is None
        assert test_settings.enable_tracing is False

    def test_development_profile(self):
        settings = Settings(environment=Environment.DEVELOPMENT)  # type: ignore[call-arg]

        assert settings.is_development
        assert settings.log_level == "DEBUG"
        assert settings.log_json is False

    def test_production_profile(self, tmp_path):
        settings = Settings(
            environment=Environment.PRODUCTION,
            log_level="DEBUG",
            data_dir=tmp_path,
        )  # type: ignore[call-arg]

        assert settings.is_production
        assert settings.log_level == "INFO"
        assert settings.log_json is True
        assert settings.enable_tracing is True
        assert settings.log_file.name == "communityconnect.log"

    def test_staging_profile(self):
        settings = Settings(environment=Environment.STAGING)  # type: ignore[call-arg]

        assert settings.log_json is True
        assert settings.enable_tracing is True
