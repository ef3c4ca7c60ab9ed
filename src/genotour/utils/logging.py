"""
Logging for the genomic data tour: structlog on top of the standard
library, with per-chunk context and timing.
"""


from pathlib import Path
from structlog.stdlib import LoggerFactory
from typing import Any, Dict, Optional

import logging
import psutil
import structlog
import sys
import time


def _build_handler(log_file: Optional[Path]) -> logging.Handler:
    if log_file is None:
        return logging.StreamHandler(sys.stdout)
    log_file = Path(log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(log_file, mode="w", encoding="utf-8")


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
    log_format: str = "json"
) -> structlog.BoundLogger:
    """
    Set up structured logging for a tutorial run.

    Calling it again replaces the root handler; a log file opened by the
    previous call is closed.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path, written instead of stdout
        log_format: Log format ("json" or "console")

    Returns:
        Logger named after the package
    """
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
            structlog.processors.JSONRenderer() if log_format == "json" else structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Rendering figures makes matplotlib chatty about fonts
    logging.getLogger('matplotlib.font_manager').setLevel(logging.WARNING)
    # force=True closes the handlers installed by an earlier call
    logging.basicConfig(
        format="%(message)s",
        handlers=[_build_handler(log_file)],
        level=getattr(logging, log_level.upper()),
        force=True,
    )

    return structlog.get_logger("genotour")


class StepLogger:
    """Logs the start, end and duration of a tutorial step."""

    def __init__(self, logger: structlog.BoundLogger, operation: str, **context):
        """
        Initialize the step logger.

        Args:
            logger: Structured logger instance
            operation: Name of the step, e.g. "execute_tutorial" or a chunk name
            **context: Values bound to every event of the step
        """
        self.logger = logger.bind(operation=operation, **context)
        self.operation = operation
        self.start_time = None
        self.duration: float = 0.0
        self.context: Dict[str, Any] = {}

    def __enter__(self):
        self.start_time = time.perf_counter()
        self.logger.info(f"Starting {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration = time.perf_counter() - self.start_time

        if exc_type is None:
            self.logger.info(
                f"Completed {self.operation}",
                duration_seconds=self.duration,
                status="success",
                **self.context
            )
        else:
            self.logger.error(
                f"Failed {self.operation}",
                duration_seconds=self.duration,
                status="error",
                error_type=exc_type.__name__,
                error_message=str(exc_val),
                **self.context
            )

    def add_context(self, **kwargs):
        """Attach values reported when the step completes."""
        self.context.update(kwargs)
        return self

    def log_progress(self, message: str, **kwargs):
        self.logger.info(message, **{**self.context, **kwargs})


class ChunkTimer:
    """Times chunk executions and reports process memory."""

    def __init__(self, logger: structlog.BoundLogger):
        self.logger = logger
        self.start_times: Dict[str, float] = {}

    def start(self, chunk: str):
        self.start_times[chunk] = time.perf_counter()

    def stop(self, chunk: str, status: str = "success") -> float:
        """Stop a chunk's timer, log its duration and return it."""
        if chunk not in self.start_times:
            raise ValueError(f"Chunk '{chunk}' is not being timed")

        duration = time.perf_counter() - self.start_times.pop(chunk)
        self.logger.debug(
            "Chunk finished",
            chunk=chunk,
            status=status,
            duration_seconds=duration
        )
        return duration

    def log_memory_usage(self, **context):
        process = psutil.Process()
        memory_info = process.memory_info()

        self.logger.info(
            "Memory usage",
            memory_rss_mb=memory_info.rss / 1024 / 1024,
            memory_vms_mb=memory_info.vms / 1024 / 1024,
            memory_percent=process.memory_percent(),
            **context
        )


def log_file_operation(logger: structlog.BoundLogger, operation: str, file_path: Path, **kwargs):
    """Log a file written or read by the tutorial."""
    logger.info(
        f"File {operation}",
        operation=operation,
        file_path=str(file_path),
        file_size_mb=file_path.stat().st_size / 1024 / 1024 if file_path.exists() else 0,
        **kwargs
    )


def log_error(logger: structlog.BoundLogger, error: Exception, chunk: Optional[str] = None):
    """Log a chunk failure."""
    logger.error(
        "Chunk failed" if chunk is not None else "Tutorial error",
        chunk=chunk,
        error_type=type(error).__name__,
        error_message=str(error),
    )
