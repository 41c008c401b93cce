"""
Unit tests for settings parsing and production validation.
"""

import pytest
from pydantic import ValidationError

from infrastructure.config.settings import Settings


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


class TestParsing:
    def test_admin_ids_are_split_and_trimmed(self):
        s = _settings(admin_ids=" ops-1, ,ops-2 ")

        assert s.admin_ids_list == ["ops-1", "ops-2"]

    def test_plain_postgres_url_uses_asyncpg(self):
        s = _settings(database_url="postgres://u:p@db:5432/paywall")

        assert s.database_url == "postgresql+asyncpg://u:p@db:5432/paywall"

    def test_cors_origins_accept_json_list(self):
        s = _settings(cors_origins='["https://news.example/", "https://app.example"]')

        assert s.cors_origins_list == ["https://news.example", "https://app.example"]

    def test_missing_secret_gets_random_development_value(self):
        assert len(_settings(identity_jwt_secret="").identity_jwt_secret) >= 32

    @pytest.mark.parametrize(
        "field,value",
        [
            ("premium_read_allowance", -1),
            ("preview_paragraphs", -2),
            ("quota_window_days", 0),
            ("billing_period_days", 0),
        ],
    )
    def test_metering_values_are_validated(self, field, value):
        with pytest.raises(ValidationError):
            _settings(**{field: value})

    def test_zero_allowance_is_allowed(self):
        assert _settings(premium_read_allowance=0).premium_read_allowance == 0


class TestProductionValidation:
    def test_short_secret_is_refused(self):
        s = _settings(environment="production", identity_jwt_secret="short", admin_ids="ops")

        with pytest.raises(ValueError, match="IDENTITY_JWT_SECRET"):
            s.validate_production_secrets()

    def test_empty_admin_list_is_refused(self):
        s = _settings(environment="staging", identity_jwt_secret="x" * 40, admin_ids="")

        with pytest.raises(ValueError, match="ADMIN_IDS"):
            s.validate_production_secrets()

    def test_sql_echo_is_refused_in_production(self):
        s = _settings(
            environment="production",
            identity_jwt_secret="x" * 40,
            admin_ids="ops",
            database_echo=True,
        )

        with pytest.raises(ValueError, match="DATABASE_ECHO"):
            s.validate_production_secrets()

    def test_development_is_not_checked(self):
        _settings(environment="development", identity_jwt_secret="short").validate_production_secrets()

    def test_unset_secret_is_generated(self, monkeypatch):
        monkeypatch.delenv("IDENTITY_JWT_SECRET", raising=False)

        assert len(_settings().identity_jwt_secret) >= 32
