"""Tests for structured logging setup."""

import logging
import logging.handlers

import pytest
import structlog
from pydantic import ValidationError

from chainhopper.config import LoggingConfig
from chainhopper.logging_config import (
    DECISION_LOGGER,
    QUOTE_LOGGER,
    configure_logging,
    get_decision_logger,
)


def _file_handlers(name=None):
    return [
        h for h in logging.getLogger(name).handlers if isinstance(h, logging.handlers.RotatingFileHandler)
    ]


class TestConfigureLogging:
    @pytest.fixture
    def log_config(self, tmp_path):
        return LoggingConfig(
            level="DEBUG",
            app_log=str(tmp_path / "app" / "chainhopper.log"),
            quote_log=str(tmp_path / "quotes" / "quotes.log"),
            decision_log=str(tmp_path / "decisions" / "decisions.log"),
            console=False,
            quiet_loggers=["web3", "urllib3"],
            library_level="ERROR",
        )

    @pytest.fixture(autouse=True)
    def restore_logging(self):
        root = logging.getLogger()
        level = root.level
        yield
        for name in (None, QUOTE_LOGGER, DECISION_LOGGER):
            logger = logging.getLogger(name)
            for handler in list(logger.handlers):
                if getattr(handler, "_chainhopper_handler", False):
                    logger.removeHandler(handler)
                    handler.close()
        root.setLevel(level)
        structlog.reset_defaults()

    def test_creates_log_directories(self, log_config, tmp_path):
        configure_logging(log_config)
        for sub in ("app", "quotes", "decisions"):
            assert (tmp_path / sub).is_dir()

    def test_root_level_from_config(self, log_config):
        configure_logging(log_config)
        assert logging.getLogger().level == logging.DEBUG

    def test_quiet_loggers_from_config(self, log_config):
        configure_logging(log_config)
        assert logging.getLogger("web3").level == logging.ERROR
        assert logging.getLogger("urllib3").level == logging.ERROR

    def test_second_call_replaces_handlers(self, log_config):
        configure_logging(log_config)
        configure_logging(log_config)
        assert len(_file_handlers()) == 1
        assert len(_file_handlers(QUOTE_LOGGER)) == 1
        assert len(_file_handlers(DECISION_LOGGER)) == 1

    def test_console_handler_optional(self, log_config):
        configure_logging(log_config)
        assert not [
            h for h in logging.getLogger().handlers
            if getattr(h, "_chainhopper_handler", False) and type(h) is logging.StreamHandler
        ]

    def test_decision_records_written(self, log_config, tmp_path):
        configure_logging(log_config)
        get_decision_logger().info("planner.decision", actions=3)
        for handler in _file_handlers(DECISION_LOGGER):
            handler.flush()

        text = (tmp_path / "decisions" / "decisions.log").read_text()
        assert '"event": "planner.decision"' in text
        assert '"actions": 3' in text


class TestLoggingConfig:
    def test_defaults(self):
        config = LoggingConfig()
        assert config.level == "INFO"
        assert "web3" in config.quiet_loggers

    @pytest.mark.parametrize("field", ["level", "library_level"])
    def test_unknown_level_rejected(self, field):
        with pytest.raises(ValidationError, match="Unknown log level"):
            LoggingConfig(**{field: "LOUD"})
