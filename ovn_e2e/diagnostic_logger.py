#!/usr/bin/env python3
"""
Diagnostic Logger for the OVN e2e harness

Configures process-wide logging and records per-scenario warnings and
errors (with context) so that a failed scenario reports what went wrong
alongside the secondary problems seen while cleaning up.
"""

import json
import logging
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger("diagnostic")


def configure_logging(level: str = "INFO", log_file: Optional[str] = None):
    """Configure root logging once for the harness process."""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
    )


class DiagnosticLogger:
    """Collects diagnostics for a single scenario run."""

    def __init__(self, scenario: str):
        self.scenario = scenario
        self.start_time = datetime.now()
        self.errors: List[Dict[str, Any]] = []
        self.warnings: List[Dict[str, Any]] = []

    def log_error(self, error_msg: str, context: Optional[Dict[str, Any]] = None):
        """Log an error with context."""
        self.errors.append({
            "timestamp": datetime.now().isoformat(),
            "error": error_msg,
            "context": context or {},
        })
        logger.error(f"[{self.scenario}] {error_msg}")
        if context:
            logger.error(f"Context: {json.dumps(context, indent=2, default=str)}")

    def log_warning(self, warning_msg: str, context: Optional[Dict[str, Any]] = None):
        """Log a warning with context."""
        self.warnings.append({
            "timestamp": datetime.now().isoformat(),
            "warning": warning_msg,
            "context": context or {},
        })
        logger.warning(f"[{self.scenario}] {warning_msg}")
        if context:
            logger.warning(f"Context: {json.dumps(context, indent=2, default=str)}")

    def log_success(self, success_msg: str):
        logger.info(f"[{self.scenario}] SUCCESS: {success_msg}")

    def generate_report(self) -> Dict[str, Any]:
        return {
            "scenario": self.scenario,
            "start_time": self.start_time.isoformat(),
            "end_time": datetime.now().isoformat(),
            "errors": self.errors,
            "warnings": self.warnings,
            "total_errors": len(self.errors),
            "total_warnings": len(self.warnings),
        }
