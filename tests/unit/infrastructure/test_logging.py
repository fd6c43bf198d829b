"""Tests for logging setup and the logging adapter."""

import logging

import pytest

from ec2_staging.config.schemas.logging_schema import LoggingConfig
from ec2_staging.infrastructure.adapters.logging_adapter import LoggingAdapter
from ec2_staging.infrastructure.logging.logger import ROOT_LOGGER_NAME, get_logger, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)
    logger.propagate = propagate


def installed_handlers():
    return [
        h
        for h in logging.getLogger(ROOT_LOGGER_NAME).handlers
        if getattr(h, "_ec2_staging_handler", False)
    ]


@pytest.mark.unit
class TestSetupLogging:
    def test_get_logger_nests_under_package(self):
        assert get_logger("poller").name == "ec2_staging.poller"
        assert get_logger("ec2_staging.manager").name == "ec2_staging.manager"

    def test_repeated_setup_replaces_handlers(self):
        setup_logging(LoggingConfig(level="DEBUG"))
        logger = setup_logging(LoggingConfig(level="WARNING"))

        assert len(installed_handlers()) == 1
        assert logger.level == logging.WARNING
        assert logger.propagate is False

    def test_relative_file_goes_under_log_dir(self, monkeypatch, tmp_path):
        monkeypatch.setenv("STAGING_LOG_DIR", str(tmp_path / "logs"))

        logger = setup_logging(LoggingConfig(console_enabled=False, file_path="staging.log"))
        logger.warning("written")
        for handler in installed_handlers():
            handler.flush()

        assert "written" in (tmp_path / "logs" / "staging.log").read_text()

    def test_no_handlers_keeps_propagation(self):
        logger = setup_logging(LoggingConfig(console_enabled=False))

        assert installed_handlers() == []
        assert logger.propagate is True


@pytest.mark.unit
class TestLoggingAdapter:
    def test_quiet_drops_info_only(self, caplog):
        adapter = LoggingAdapter("quiet-test", quiet=True)

        with caplog.at_level(logging.DEBUG, logger=ROOT_LOGGER_NAME):
            adapter.info("progress")
            adapter.warning("careful")
            adapter.debug("detail")

        messages = [r.getMessage() for r in caplog.records]
        assert messages == ["careful", "detail"]

    def test_child_shares_quiet_flag(self):
        child = LoggingAdapter("manager", quiet=True).child("poller")

        assert child.quiet is True
        assert child._logger.name == "ec2_staging.manager.poller"

    def test_records_point_at_caller(self, caplog):
        adapter = LoggingAdapter("caller-test")

        with caplog.at_level(logging.INFO, logger=ROOT_LOGGER_NAME):
            adapter.info("from test")

        assert caplog.records[0].funcName == "test_records_point_at_caller"
