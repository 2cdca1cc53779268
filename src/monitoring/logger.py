# ============================================================================
# SyncBench -- Structured Logger (src/monitoring/logger.py)
# ============================================================================
#
# WHAT THIS FILE DOES:
#   Sets up structlog for the whole harness. Every phase transition
#   (cleanup, generate, start sender, probe, start receiver, wait,
#   stop, verify, report) is logged as a JSON event with key/value fields.
#
#   Example line:
#     {"event": "phase", "phase": "generate", "files": 50000,
#      "total_mib": 1712.4, "logger": "src.core.benchmark",
#      "level": "info", "timestamp": "2026-10-18T13:01:02.345Z"}
#
# LOG FILE TYPES:
#   - console:            everything at or above logging.level
#   - app_YYYY-MM-DD.log: benchmark runs (phases + results)
#
# HOW TO USE (from other code):
#   from src.monitoring.logger import get_logger
#   log = get_logger(__name__)
#   log.info("phase", phase="generate", files=50000)
#
# DEPENDENCIES:
#   - structlog (structured events on top of stdlib logging)
# ============================================================================

import sys
import logging
from pathlib import Path
from typing import Optional, Dict, Any
import structlog
from datetime import datetime


# ============================================================================
# LOGGER CONFIGURATION
# ============================================================================

_structlog_configured = False


class LoggerSetup:
    """Initialize and configure structlog for SyncBench"""

    def __init__(self, log_dir: str = "logs", level: str = "INFO"):
        self.log_dir = Path(log_dir)
        self.level = level
        self._file_handlers: Dict[str, logging.Handler] = {}

    def setup(self) -> None:
        """Configure structlog once per process; console level on every call"""
        global _structlog_configured

        root = logging.getLogger()
        if not root.handlers:
            logging.basicConfig(format="%(message)s", stream=sys.stdout)
        root.setLevel(getattr(logging, self.level.upper(), logging.INFO))

        if _structlog_configured:
            return

        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.stdlib.PositionalArgumentsFormatter(),
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.UnicodeDecoder(),
                structlog.processors.JSONRenderer(),
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        _structlog_configured = True

    def get_logger(self, name: str) -> structlog.stdlib.BoundLogger:
        """Get a named console logger"""
        return structlog.get_logger(name)

    def get_file_logger(self, name: str, log_type: str = "app") -> structlog.stdlib.BoundLogger:
        """
        Get a logger that also writes to <log_dir>/<log_type>_YYYY-MM-DD.log.
        Calling it twice for the same name does not add a second handler.
        """
        self.log_dir.mkdir(parents=True, exist_ok=True)
        log_file = self.log_dir / f"{log_type}_{self._get_date_str()}.log"

        key = f"{name}:{log_file}"
        if key not in self._file_handlers:
            handler = logging.FileHandler(log_file, encoding="utf-8")
            handler.setFormatter(logging.Formatter("%(message)s"))
            logging.getLogger(name).addHandler(handler)
            self._file_handlers[key] = handler

        return structlog.get_logger(name)

    def close(self) -> None:
        """Detach and close every file handler added by this setup"""
        for key, handler in self._file_handlers.items():
            logging.getLogger(key.split(":", 1)[0]).removeHandler(handler)
            handler.close()
        self._file_handlers.clear()

    @staticmethod
    def _get_date_str() -> str:
        """Get current date as YYYY-MM-DD string"""
        return datetime.now().strftime("%Y-%m-%d")


# ============================================================================
# SINGLETON INSTANCE
# ============================================================================

_logger_setup: Optional[LoggerSetup] = None


def initialize_logging(log_dir: str = "logs", level: str = "INFO") -> LoggerSetup:
    """Initialize logging (call once at harness startup)"""
    global _logger_setup
    if _logger_setup is not None and (
        _logger_setup.log_dir != Path(log_dir) or _logger_setup.level != level
    ):
        _logger_setup.close()
        _logger_setup = None
    if _logger_setup is None:
        _logger_setup = LoggerSetup(log_dir, level)
        _logger_setup.setup()
    return _logger_setup


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger. Configuration is applied lazily on first use."""
    return structlog.get_logger(name)


def get_app_logger(name: str = "app") -> structlog.stdlib.BoundLogger:
    """Get app logger (writes to app_YYYY-MM-DD.log)"""
    if _logger_setup is None:
        initialize_logging()
    return _logger_setup.get_file_logger(name, "app")


# ============================================================================
# LOG ENTRY BUILDERS (for consistent structured data)
# ============================================================================

class PhaseLogEntry:
    """Builder for one orchestration phase"""

    @staticmethod
    def build(
        scenario: str,
        phase: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        entry = {"scenario": scenario, "phase": phase}
        entry.update(details or {})
        return entry


class ResultLogEntry:
    """Builder for the final benchmark result"""

    @staticmethod
    def build(
        scenario: str,
        total_bytes: int,
        file_count: int,
        duration_seconds: float,
        throughput_mib_s: float,
        usage: Optional[Dict[str, Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """Build a structured result entry"""
        return {
            "scenario": scenario,
            "total_bytes": total_bytes,
            "file_count": file_count,
            "duration_seconds": round(duration_seconds, 3),
            "throughput_mib_s": round(throughput_mib_s, 1),
            "usage": usage or {},
            "timestamp": datetime.now().isoformat(),
        }
