"""Tests for diagnostic logger functionality"""

import logging
from unittest.mock import patch

from ovn_e2e.diagnostic_logger import LOG_FORMAT, DiagnosticLogger, configure_logging


class TestDiagnosticLogger:
    """Test suite for DiagnosticLogger class"""

    def test_initialization(self):
        logger = DiagnosticLogger("external-gateway")

        assert logger.start_time is not None
        assert logger.errors == []
        assert logger.warnings == []

    def test_log_with_context(self):
        logger = DiagnosticLogger("external-gateway")
        logger.log_error("ping check failed", {"step": "ping check", "target": "ns/src"})
        logger.log_warning("teardown: gw busy")

        assert logger.errors[0]["context"]["target"] == "ns/src"
        assert logger.warnings[0]["context"] == {}

    def test_generate_report(self):
        logger = DiagnosticLogger("inter-node-connectivity")
        logger.log_warning("retrying")
        logger.log_success("done")

        report = logger.generate_report()

        assert report["scenario"] == "inter-node-connectivity"
        assert report["total_errors"] == 0
        assert report["total_warnings"] == 1


@patch("ovn_e2e.diagnostic_logger.logging.basicConfig")
def test_configure_logging(mock_basic_config, tmp_path):
    log_file = tmp_path / "e2e.log"
    configure_logging("debug", str(log_file))

    kwargs = mock_basic_config.call_args.kwargs
    assert kwargs["level"] == logging.DEBUG
    assert kwargs["format"] == LOG_FORMAT
    assert len(kwargs["handlers"]) == 2
    for handler in kwargs["handlers"]:
        handler.close()
