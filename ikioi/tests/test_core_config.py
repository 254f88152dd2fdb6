"""
Core plumbing tests: environment validation, config warnings, JWT
verification and structured log formatting.
"""

import json
import logging
from types import SimpleNamespace

import jwt
import pytest

from ikioi.core.auth import verify_clerk_jwt
from ikioi.core.config import settings, validate_config
from ikioi.core.errors import NotAuthenticatedError
from ikioi.core.logging import JsonFormatter, PrettyFormatter, latency_bucket_ms
from ikioi.core.middleware.request_id import resolve_request_id
from ikioi.core.validation import EnvValidationError, validate_env


def cfg(**overrides):
    fields = dict(
        ENV="development",
        DATABASE_URL=None,
        TEST_DATABASE_URL=None,
        CLERK_SECRET_KEY=None,
        ALLOW_HEADER_AUTH=False,
        CONFIG_STRICT=False,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


@pytest.fixture(autouse=True)
def no_skip(monkeypatch):
    monkeypatch.delenv("SKIP_ENV_VALIDATION", raising=False)


class TestValidateEnv:
    def test_development_defaults_pass(self):
        assert validate_env(settings_obj=cfg()) is True

    def test_sqlite_url_accepted(self):
        assert validate_env(settings_obj=cfg(DATABASE_URL="sqlite:///ikioi.db")) is True

    def test_malformed_url_rejected(self):
        with pytest.raises(EnvValidationError):
            validate_env(settings_obj=cfg(DATABASE_URL="not-a-url"))

    def test_production_requires_database_and_secret(self):
        with pytest.raises(EnvValidationError):
            validate_env(env="production", settings_obj=cfg(CLERK_SECRET_KEY="sk"))
        with pytest.raises(EnvValidationError):
            validate_env(env="production", settings_obj=cfg(DATABASE_URL="postgresql://u:p@db:5432/ikioi"))

    def test_production_rejects_header_auth(self):
        settings_obj = cfg(
            DATABASE_URL="postgresql://u:p@db:5432/ikioi",
            CLERK_SECRET_KEY="sk",
            ALLOW_HEADER_AUTH=True,
        )
        with pytest.raises(EnvValidationError):
            validate_env(env="production", settings_obj=settings_obj)

    def test_production_ok(self):
        settings_obj = cfg(DATABASE_URL="postgresql://u:p@db:5432/ikioi", CLERK_SECRET_KEY="sk")
        assert validate_env(env="production", settings_obj=settings_obj) is True

    def test_test_database_only_in_test_mode(self):
        settings_obj = cfg(TEST_DATABASE_URL="sqlite://")
        with pytest.raises(EnvValidationError):
            validate_env(env="development", settings_obj=settings_obj)
        assert validate_env(env="test", settings_obj=settings_obj) is True

    def test_skip_flag(self, monkeypatch):
        monkeypatch.setenv("SKIP_ENV_VALIDATION", "1")
        assert validate_env(settings_obj=cfg(DATABASE_URL="not-a-url")) is True


class TestValidateConfig:
    def test_warns_on_missing_keys(self, caplog):
        logger = logging.getLogger("ikioi.test.config")
        with caplog.at_level(logging.WARNING, logger="ikioi.test.config"):
            assert validate_config(strict=False, settings_obj=cfg(), logger=logger) is True
        assert "DATABASE_URL" in caplog.text
        assert "CLERK_SECRET_KEY" in caplog.text

    def test_strict_raises(self):
        with pytest.raises(RuntimeError):
            validate_config(strict=True, settings_obj=cfg())

    def test_complete_config_is_silent(self, caplog):
        settings_obj = cfg(DATABASE_URL="sqlite://", CLERK_SECRET_KEY="sk")
        with caplog.at_level(logging.WARNING):
            assert validate_config(strict=True, settings_obj=settings_obj) is True
        assert caplog.text == ""


class TestVerifyJwt:
    SECRET = "unit-test-secret-that-is-long-enough"

    def test_no_secret_skips(self, monkeypatch):
        monkeypatch.setattr(settings, "CLERK_SECRET_KEY", None)
        assert verify_clerk_jwt("anything") is None

    def test_valid_token(self):
        token = jwt.encode({"sub": "user_1"}, self.SECRET, algorithm="HS256")
        assert verify_clerk_jwt(token, secret=self.SECRET) == "user_1"

    def test_wrong_secret(self):
        token = jwt.encode({"sub": "user_1"}, self.SECRET, algorithm="HS256")
        with pytest.raises(NotAuthenticatedError):
            verify_clerk_jwt(token, secret="another-secret-that-is-long-enough!")

    def test_missing_subject(self):
        token = jwt.encode({"scope": "x"}, self.SECRET, algorithm="HS256")
        with pytest.raises(NotAuthenticatedError):
            verify_clerk_jwt(token, secret=self.SECRET)


class TestLogFormatting:
    def _record(self, **extra):
        record = logging.LogRecord("ikioi", logging.INFO, __file__, 1, "goal.effort_logged", None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_json_formatter_includes_structured_fields(self):
        record = self._record(request_id="req-1", goal_id="goal_1", event_type="goal.effort_logged")
        payload = json.loads(JsonFormatter().format(record))
        assert payload["message"] == "goal.effort_logged"
        assert payload["request_id"] == "req-1"
        assert payload["goal_id"] == "goal_1"
        assert payload["event_type"] == "goal.effort_logged"
        assert payload["timestamp"].endswith("Z")

    def test_event_context_in_both_formats(self):
        record = self._record(goal_id="goal_1", context={"from_status": "active", "to_status": "paused"})
        payload = json.loads(JsonFormatter().format(record))
        assert payload["context"] == {"from_status": "active", "to_status": "paused"}
        line = PrettyFormatter().format(record)
        assert line.endswith("from_status=active to_status=paused")

    def test_pretty_formatter(self):
        line = PrettyFormatter().format(self._record(request_id="req-9", goal_id="goal_7"))
        assert "[ikioi]" in line
        assert "[rid=req-9]" in line
        assert "[goal=goal_7]" in line

    @pytest.mark.parametrize(
        "latency,bucket",
        [(None, "unknown"), (5, "<10ms"), (50, "10-100ms"), (200, "100-500ms"), (700, "500-1000ms"), (1500, ">=1000ms")],
    )
    def test_latency_buckets(self, latency, bucket):
        assert latency_bucket_ms(latency) == bucket


class TestRequestIdResolution:
    def test_reuses_plain_token(self):
        assert resolve_request_id("req-abc_1.2:3") == "req-abc_1.2:3"

    @pytest.mark.parametrize("incoming", [None, "", "has spaces", "x" * 129, "inject\nline"])
    def test_mints_uuid_otherwise(self, incoming):
        minted = resolve_request_id(incoming)
        assert minted != incoming
        assert len(minted) == 36


class TestValidateEnvServiceRules:
    def test_cooldown_must_be_positive(self):
        with pytest.raises(EnvValidationError):
            validate_env(settings_obj=cfg(COOLDOWN_HOURS=0))

    def test_wildcard_cors_rejected_in_production(self):
        settings_obj = cfg(
            DATABASE_URL="postgresql://u:p@db:5432/ikioi",
            CLERK_SECRET_KEY="sk",
            CORS_ALLOWED_ORIGINS="https://app.ikioi.dev, *",
        )
        with pytest.raises(EnvValidationError):
            validate_env(env="production", settings_obj=settings_obj)

    def test_wildcard_cors_allowed_in_development(self):
        assert validate_env(settings_obj=cfg(CORS_ALLOWED_ORIGINS="*")) is True

    def test_missing_production_keys_listed(self):
        with pytest.raises(EnvValidationError) as exc_info:
            validate_env(env="production", settings_obj=cfg())
        assert "DATABASE_URL" in str(exc_info.value)
        assert "CLERK_SECRET_KEY" in str(exc_info.value)
