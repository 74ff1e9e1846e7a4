"""Tests for configuration modules.

These tests verify settings defaults, environment loading and the
required-credential guard.
"""

from dataclasses import replace
from itertools import combinations

import pytest

from src.config.settings import (
    DEFAULT_BASE_URL,
    APSSettings,
    ConfigurationError,
    parse_origins,
)

REQUIRED = {
    "client_id": "APS_CLIENT_ID",
    "client_secret": "APS_CLIENT_SECRET",
    "bucket_key": "APS_BUCKET_KEY",
}


class TestAPSSettingsDefaults:
    """Tests for APSSettings defaults."""

    def test_settings_is_frozen(self):
        """Settings should be a frozen dataclass."""
        settings = APSSettings()

        with pytest.raises(AttributeError):
            settings.region = "EMEA"  # type: ignore

    def test_region_default(self):
        """Region defaults to US."""
        assert APSSettings().region == "US"

    def test_port_default(self):
        """Port defaults to 8787."""
        assert APSSettings().port == 8787

    def test_base_url_default(self):
        """Base URL points at the APS developer API."""
        assert APSSettings().base_url == "https://developer.api.autodesk.com"

    def test_allowed_origins_default(self):
        """No allow-list by default."""
        assert APSSettings().allowed_origins == ()


class TestFromEnv:
    """Tests for APSSettings.from_env."""

    def test_reads_all_values(self):
        """Should read every supported variable."""
        settings = APSSettings.from_env({
            "APS_CLIENT_ID": "id",
            "APS_CLIENT_SECRET": "secret",
            "APS_BUCKET_KEY": "Bucket",
            "APS_REGION": "EMEA",
            "APS_ALLOWED_ORIGINS": "https://a.test, https://b.test",
            "APS_BASE_URL": "https://proxy.test/",
            "PORT": "9000",
            "HOST": "127.0.0.1",
            "LOG_LEVEL": "debug",
        })

        assert settings.client_id == "id"
        assert settings.client_secret == "secret"
        assert settings.bucket_key == "Bucket"
        assert settings.region == "EMEA"
        assert settings.allowed_origins == ("https://a.test", "https://b.test")
        assert settings.base_url == "https://proxy.test"
        assert settings.port == 9000
        assert settings.host == "127.0.0.1"
        assert settings.log_level == "debug"

    def test_empty_environment(self):
        """Empty environment falls back to defaults."""
        settings = APSSettings.from_env({})

        assert settings.client_id is None
        assert settings.region == "US"
        assert settings.port == 8787
        assert settings.base_url == DEFAULT_BASE_URL

    def test_empty_strings_count_as_missing(self):
        """Blank variables should be treated as unset."""
        settings = APSSettings.from_env({
            "APS_CLIENT_ID": "",
            "APS_CLIENT_SECRET": "",
            "APS_BUCKET_KEY": "",
            "APS_REGION": "",
        })

        assert settings.missing() == list(REQUIRED.values())
        assert settings.region == "US"

    def test_reads_process_environment(self, monkeypatch):
        """Without an explicit mapping, os.environ is used."""
        monkeypatch.setenv("APS_CLIENT_ID", "from-env")
        monkeypatch.delenv("APS_REGION", raising=False)

        settings = APSSettings.from_env()

        assert settings.client_id == "from-env"
        assert settings.region == "US"


class TestParseOrigins:
    """Tests for allow-list parsing."""

    def test_none(self):
        """Should return an empty tuple for None."""
        assert parse_origins(None) == ()

    def test_blank(self):
        """Should return an empty tuple for an empty string."""
        assert parse_origins("") == ()

    def test_trims_and_drops_blanks(self):
        """Whitespace is trimmed and empty entries dropped."""
        assert parse_origins(" https://a.test ,, https://b.test ,") == (
            "https://a.test",
            "https://b.test",
        )


class TestRequire:
    """Tests for the required-credential guard."""

    @pytest.fixture
    def complete(self) -> APSSettings:
        return APSSettings(client_id="id", client_secret="secret", bucket_key="b")

    def test_complete_settings_pass(self, complete):
        """Nothing missing, nothing raised."""
        assert complete.missing() == []
        complete.require()

    @pytest.mark.parametrize(
        "fields",
        [combo for size in (1, 2, 3) for combo in combinations(REQUIRED, size)],
    )
    def test_lists_every_missing_name(self, complete, fields):
        """Every missing setting should appear in the error."""
        settings = replace(complete, **{field: None for field in fields})

        with pytest.raises(ConfigurationError) as exc_info:
            settings.require()

        error = exc_info.value
        assert error.status_code == 500
        assert error.message.startswith("Missing env vars: ")
        for field in fields:
            assert REQUIRED[field] in error.message
        assert error.missing == [REQUIRED[f] for f in REQUIRED if f in fields]

    def test_normalized_bucket_key(self):
        """Bucket key is lower-cased for APS."""
        assert APSSettings(bucket_key="My-Bucket").normalized_bucket_key == "my-bucket"
