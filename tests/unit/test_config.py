"""Tests for settings loading, production checks and JSON logging."""

import io
import json
import logging
import sys

import pytest

from keylock.common.config import KeylockSettings, get_settings
from keylock.common.logging import JSONFormatter, get_logger, mask_key, setup_logging


class TestSettings:
    def test_defaults(self):
        settings = KeylockSettings()
        assert settings.storage_backend == "json"
        assert settings.key_prefix == "MUSIC"
        assert settings.default_version == "1.0.0"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("KEYLOCK_KEY_PREFIX", "GAME")
        monkeypatch.setenv("KEYLOCK_STORAGE_BACKEND", "sql")
        settings = KeylockSettings()
        assert settings.key_prefix == "GAME"
        assert settings.storage_backend == "sql"

    def test_unknown_backend_rejected(self):
        with pytest.raises(ValueError):
            KeylockSettings(storage_backend="redis")

    def test_production_with_insecure_defaults_raises(self):
        settings = KeylockSettings(environment="production")
        with pytest.raises(RuntimeError, match="KEYLOCK_SECRET_KEY"):
            settings.validate_for_production()

    def test_production_with_secrets_ok(self):
        settings = KeylockSettings(
            environment="production", secret_key="s3cret", admin_password="p4ss"
        )
        settings.validate_for_production()

    def test_development_warns(self):
        with pytest.warns(UserWarning):
            KeylockSettings().validate_for_production()

    def test_get_settings_cached(self, settings_env):
        assert get_settings() is get_settings()


class TestLogging:
    def test_json_formatter(self):
        record = logging.LogRecord(
            "keylock.test", logging.INFO, __file__, 1, "hello %s", ("world",), None
        )
        entry = json.loads(JSONFormatter().format(record))
        assert entry["message"] == "hello world"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "keylock.test"

    def test_formatter_includes_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord(
                "keylock.test", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
            )
        entry = json.loads(JSONFormatter().format(record))
        assert "ValueError: boom" in entry["exception"]

    def test_setup_logging_idempotent(self):
        setup_logging("DEBUG")
        setup_logging("DEBUG")
        root = logging.getLogger("keylock")
        formatters = [h for h in root.handlers if isinstance(h.formatter, JSONFormatter)]
        assert len(formatters) == 1
        assert root.level == logging.DEBUG

    def test_setup_logging_repoints_stream(self):
        stream = io.StringIO()
        setup_logging("INFO", stream=stream)
        try:
            get_logger("test").info("hello")
            assert json.loads(stream.getvalue())["message"] == "hello"
        finally:
            setup_logging("INFO")

    def test_get_logger_scoped(self):
        assert get_logger("store").name == "keylock.store"

    def test_context_fields_mask_key(self):
        record = logging.LogRecord(
            "keylock.binding", logging.INFO, __file__, 1, "License verified", (), None
        )
        record.license_key = "MUSIC-1A2B3C4D-5E6F7A8B-9C0D1E2F"
        record.environment_id = "100"
        entry = json.loads(JSONFormatter().format(record))
        assert entry["license_key"] == "MUSIC-********-********-9C0D1E2F"
        assert entry["environment_id"] == "100"
        assert "sub_resource_id" not in entry


@pytest.mark.parametrize("key,masked", [
    ("MUSIC-AAAAAAAA-BBBBBBBB-CCCCCCCC", "MUSIC-********-********-CCCCCCCC"),
    ("LIC-ABCD-EF01", "LIC-****-EF01"),
    ("garbage", "*******"),
    ("", ""),
    (None, None),
])
def test_mask_key(key, masked):
    assert mask_key(key) == masked
