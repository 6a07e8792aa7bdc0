"""Tests for environment-driven settings and logger setup."""
import logging

import pytest
from pydantic import ValidationError

from leveling_os.config import get_ai_config, get_app_config, get_config_summary, reload_config
from leveling_os.logger import CustomFormatter, setup_logger


@pytest.fixture(autouse=True)
def fresh_config():
    reload_config()
    yield
    reload_config()


class TestSettings:

    def test_env_prefixes(self, monkeypatch):
        monkeypatch.setenv("APP_STORAGE_BACKEND", "memory")
        monkeypatch.setenv("APP_TIMEZONE", "Europe/Berlin")
        monkeypatch.setenv("AI_ENABLED", "false")
        monkeypatch.setenv("AI_MODEL_NAME", "llama3")
        reload_config()

        assert get_app_config().storage_backend == "memory"
        assert get_app_config().timezone == "Europe/Berlin"
        assert get_ai_config().enabled is False

        summary = get_config_summary()
        assert summary["ai"]["model"] == "llama3"
        assert summary["app"]["storage"] == "memory"

    def test_invalid_backend_rejected(self, monkeypatch):
        monkeypatch.setenv("APP_STORAGE_BACKEND", "sqlite")
        reload_config()
        with pytest.raises(ValidationError):
            get_app_config()


class TestLogger:

    def test_writes_rotating_file(self, tmp_path):
        logger = setup_logger("leveling_os_test_file", logs_dir=str(tmp_path))
        logger.info("hello")
        for handler in logger.handlers:
            handler.flush()
        assert "hello" in (tmp_path / "app.log").read_text()

    def test_handlers_not_duplicated(self):
        logger = setup_logger("leveling_os_test_dup", log_to_file=False)
        setup_logger("leveling_os_test_dup", log_to_file=False)
        assert len(logger.handlers) == 1
        assert logger.level == logging.INFO

    def test_console_format_is_coloured_by_level(self):
        record = logging.LogRecord("leveling_os", logging.WARNING, __file__, 10, "low gold", None, None)
        line = CustomFormatter().format(record)
        assert line.startswith("\x1b[33;20m")
        assert line.endswith("\x1b[0m")
        assert "WARNING - low gold" in line
