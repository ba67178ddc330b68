"""
Logging configuration for the Master Data Console.
Console output plus rotating app, error and performance log files.
"""

import logging
import logging.handlers
import sys
import os
from pathlib import Path
from typing import Dict, Optional
import psutil

FILE_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
MAX_LOG_BYTES = 10 * 1024 * 1024


class PerformanceLogger:
    """Memory and CPU readings of the server process."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.process = psutil.Process()

    def snapshot(self, cpu_interval: Optional[float] = None) -> Dict[str, float]:
        """
        Current memory and CPU usage.

        With ``cpu_interval=None`` the CPU figure covers the time since the
        previous call and nothing sleeps, so it is safe on the event loop.
        """
        return {
            "memory_mb": round(self.process.memory_info().rss / 1024 / 1024, 2),
            "cpu_percent": round(self.process.cpu_percent(interval=cpu_interval), 2),
        }

    def log_performance_snapshot(self, context: str = ""):
        """Log memory and CPU usage as one metric record."""
        metrics = self.snapshot()
        self.logger.info(
            f"RESOURCES - {context}",
            extra={"metric_type": "resources", "context": context, **metrics}
        )


class ContextFilter(logging.Filter):
    """Add pid and metric suffixes to log records."""

    def filter(self, record):
        record.pid = os.getpid()
        record.memory_info = f"[MEM: {record.memory_mb:.2f}MB]" if hasattr(record, 'memory_mb') else ""
        record.cpu_info = f"[CPU: {record.cpu_percent:.2f}%]" if hasattr(record, 'cpu_percent') else ""
        return True


class ColoredFormatter(logging.Formatter):
    """Colored level names when writing to a terminal."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record):
        if sys.stdout.isatty():
            record = logging.makeLogRecord(record.__dict__)
            record.levelname = f"{self.COLORS.get(record.levelname, '')}{record.levelname}{self.RESET}"
        return super().format(record)


def _rotating_handler(
    path: str,
    level: int,
    fmt: str,
    backup_count: int = 5
) -> logging.handlers.RotatingFileHandler:
    handler = logging.handlers.RotatingFileHandler(path, maxBytes=MAX_LOG_BYTES, backupCount=backup_count)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=FILE_DATE_FORMAT))
    handler.addFilter(ContextFilter())
    return handler


def setup_logging(
    log_level: str = "INFO",
    log_dir: Optional[str] = None,
    enable_file_logging: bool = True
) -> None:
    """
    Setup logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for log files (default: ./logs)
        enable_file_logging: Whether to write log files at all
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(ColoredFormatter(
        '%(asctime)s - %(name)s - [%(levelname)s] - %(message)s %(memory_info)s%(cpu_info)s',
        datefmt=FILE_DATE_FORMAT
    ))
    console_handler.addFilter(ContextFilter())
    root_logger.addHandler(console_handler)

    if enable_file_logging:
        log_dir = log_dir or "logs"
        Path(log_dir).mkdir(parents=True, exist_ok=True)

        root_logger.addHandler(_rotating_handler(
            os.path.join(log_dir, 'app.log'),
            numeric_level,
            '%(asctime)s - %(name)s - [%(levelname)s] - [PID:%(pid)s] - %(message)s'
        ))
        root_logger.addHandler(_rotating_handler(
            os.path.join(log_dir, 'error.log'),
            logging.ERROR,
            '%(asctime)s - %(name)s - [%(levelname)s] - [PID:%(pid)s] - %(message)s\n'
            'Location: %(pathname)s:%(lineno)d\n'
            'Function: %(funcName)s\n'
        ))

        perf_handler = _rotating_handler(
            os.path.join(log_dir, 'performance.log'),
            logging.INFO,
            '%(asctime)s - [PERF] - %(message)s %(memory_info)s%(cpu_info)s',
            backup_count=3
        )
        # Metric records only
        perf_handler.addFilter(lambda record: hasattr(record, 'metric_type'))
        root_logger.addHandler(perf_handler)

    for noisy in ("asyncio", "multipart", "python_multipart"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.info(f"Logging initialized - Level: {log_level}, File Logging: {enable_file_logging}")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with a ``perf`` attribute for resource snapshots.

    Args:
        name: Logger name (usually __name__)
    """
    logger = logging.getLogger(name)

    if not hasattr(logger, 'perf'):
        logger.perf = PerformanceLogger(logger)

    return logger


def log_operation_start(logger: logging.Logger, operation: str, **kwargs):
    logger.info(
        f"Starting operation: {operation}",
        extra={"operation": operation, "phase": "start", **kwargs}
    )


def log_operation_end(logger: logging.Logger, operation: str, success: bool = True, **kwargs):
    status = "completed" if success else "failed"
    level = logging.INFO if success else logging.ERROR
    logger.log(
        level,
        f"Operation {status}: {operation}",
        extra={"operation": operation, "phase": "end", "success": success, **kwargs}
    )


def log_database_query(logger: logging.Logger, query_type: str, table: str, duration_ms: float):
    logger.debug(
        f"DB Query - {query_type} on {table} - {duration_ms:.2f}ms",
        extra={"query_type": query_type, "table": table, "duration_ms": duration_ms}
    )


def log_row_rejected(logger: logging.Logger, table: str, line_number: int, reason: str):
    """One CSV record that did not make it into ``table``."""
    logger.warning(
        f"Row {line_number} rejected for {table}: {reason}",
        extra={"table": table, "line_number": line_number, "reason": reason}
    )


def log_api_request(logger: logging.Logger, method: str, path: str, status_code: int, duration_ms: float):
    level = logging.WARNING if status_code >= 500 else logging.INFO
    logger.log(
        level,
        f"API {method} {path} - {status_code} - {duration_ms:.2f}ms",
        extra={"method": method, "path": path, "status_code": status_code, "duration_ms": duration_ms}
    )
