"""Tests for settings validation and logging setup."""
import json
import logging

import pytest

from autotask_tools.config import Settings, validate_settings
from autotask_tools.logging_config import JsonFormatter, setup_logging


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """No AUTOTASK_* env vars and no .env file in the working directory."""
    monkeypatch.chdir(tmp_path)
    for key in (
        "AUTOTASK_USERNAME",
        "AUTOTASK_SECRET",
        "AUTOTASK_INTEGRATION_CODE",
        "AUTOTASK_API_URL",
        "LABEL_CACHE_TTL_SECONDS",
    ):
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


class TestSettings:
    def test_defaults(self, clean_env):
        s = Settings()
        assert s.autotask_username is None
        assert s.label_cache_ttl_seconds == 3600
        assert s.default_page_size == 25
        assert s.log_format == "simple"

    def test_reads_environment(self, clean_env):
        clean_env.setenv("AUTOTASK_USERNAME", "api@example.com")
        clean_env.setenv("LABEL_CACHE_TTL_SECONDS", "60")
        s = Settings()
        assert s.autotask_username == "api@example.com"
        assert s.label_cache_ttl_seconds == 60

    def test_empty_env_var_falls_through_to_dotenv(self, clean_env, tmp_path):
        (tmp_path / ".env").write_text("AUTOTASK_SECRET=from-dotenv\n")
        clean_env.setenv("AUTOTASK_SECRET", "")
        assert Settings().autotask_secret == "from-dotenv"


class TestValidateSettings:
    def test_missing_credentials(self, clean_env):
        errors = validate_settings(Settings())
        assert errors == [
            "AUTOTASK_USERNAME is required",
            "AUTOTASK_SECRET is required",
            "AUTOTASK_INTEGRATION_CODE is required",
        ]

    def test_valid(self, test_settings):
        assert validate_settings(test_settings) == []

    def test_bad_numbers(self, test_settings):
        bad = test_settings.model_copy(
            update={"label_cache_ttl_seconds": -1, "preload_page_size": 501}
        )
        assert validate_settings(bad) == [
            "LABEL_CACHE_TTL_SECONDS must be >= 0",
            "PRELOAD_PAGE_SIZE must be between 1 and 500",
        ]


class TestLogging:
    def test_setup_is_idempotent(self):
        logger = setup_logging("DEBUG")
        setup_logging("WARNING")
        named = [h for h in logger.handlers if h.get_name() == "autotask_tools"]
        assert len(named) == 1
        assert logger.level == logging.WARNING
        setup_logging("INFO")

    def test_json_format(self):
        logger = setup_logging("INFO", "json")
        handler = next(h for h in logger.handlers if h.get_name() == "autotask_tools")
        assert isinstance(handler.formatter, JsonFormatter)

        record = logging.LogRecord(
            "autotask_tools.test", logging.INFO, __file__, 1, "loaded %d names", (3,), None
        )
        payload = json.loads(handler.formatter.format(record))
        assert payload["message"] == "loaded 3 names"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "autotask_tools.test"
        setup_logging("INFO", "simple")
