"""
Logging configuration for VibeSnap.

This module provides centralized logging setup with:
- Structured logging via structlog
- Rich console output on stderr
- Optional rotating JSON log file (used by the background watcher)
"""

import logging
import logging.handlers
import sys
import os
import json
from pathlib import Path
from typing import Optional, Dict, Any
from datetime import datetime, timezone
import structlog
from rich.logging import RichHandler
from rich.console import Console


# Diagnostics go to stderr so command output on stdout stays clean
console = Console(file=sys.stderr)


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_obj = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
            'process': record.process,
        }

        if record.exc_info:
            log_obj['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_obj)


def setup_logging(
    app_name: str = "vibesnap",
    log_level: str = "WARNING",
    log_file: Optional[Path] = None,
    enable_json: bool = False,
) -> Dict[str, Any]:
    """
    Set up logging for the application.

    Args:
        app_name: Application name for log identification
        log_level: Console logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional rotating log file; always receives DEBUG and up
        enable_json: Render structlog events as JSON instead of key=value

    Returns:
        Dictionary with the main logger and the effective configuration
    """
    renderer = (
        structlog.processors.JSONRenderer()
        if enable_json
        else structlog.dev.ConsoleRenderer(colors=False)
    )

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
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if log_file else getattr(logging, log_level.upper()))

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = RichHandler(
        console=console,
        show_time=False,
        show_path=False,
        rich_tracebacks=True,
    )
    console_handler.setLevel(getattr(logging, log_level.upper()))
    console_handler.setFormatter(logging.Formatter('%(message)s'))
    root_logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=5 * 1024 * 1024,  # 5MB
            backupCount=3,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)

    main_logger = structlog.get_logger(app_name)
    main_logger.debug(
        "logging_initialized",
        log_level=log_level,
        log_file=str(log_file) if log_file else None,
        pid=os.getpid(),
    )

    return {
        'logger': main_logger,
        'console': console,
        'config': {
            'app_name': app_name,
            'log_level': log_level,
            'log_file': log_file,
            'enable_json': enable_json,
        }
    }


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger instance by name."""
    return structlog.get_logger(name)


__all__ = [
    'setup_logging',
    'get_logger',
    'JSONFormatter',
]
