"""Unit tests for the logging setup."""

import logging
from unittest.mock import patch

import pytest

from infrastructure.logging import configure_logging, get_logger, get_module_logger
from infrastructure.logging.setup import _is_test_environment


@pytest.mark.unit
class TestLoggingConfiguration:
    def test_is_test_environment_detects_pytest(self):
        assert _is_test_environment() is True

    def test_configure_logging_in_test_environment(self):
        """Logs are suppressed while running under pytest."""
        configure_logging()
        assert logging.root.level == logging.CRITICAL + 1

    def test_configure_logging_returns_bound_logger(self):
        logger = configure_logging(log_level="DEBUG", is_production=True)
        assert hasattr(logger, "bind")

    @patch("infrastructure.logging.setup._is_test_environment", return_value=False)
    def test_non_test_environment_configures_structlog(self, _mock_env):
        with patch("structlog.configure") as mock_configure:
            logger = configure_logging(log_level="WARNING", is_production=True)
        processors = mock_configure.call_args.kwargs["processors"]
        assert type(processors[-1]).__name__ == "JSONRenderer"
        assert hasattr(logger, "info")
        configure_logging()


@pytest.mark.unit
class TestLoggerHelpers:
    def test_get_logger_with_name(self):
        logger = get_logger("membership.jobs")
        assert logger._context["logger_name"] == "membership.jobs"

    def test_get_module_logger_binds_calling_module(self):
        logger = get_module_logger()
        assert logger._context["module_path"] == __name__
        assert logger._context["component"] == __name__.split(".")[-1]
