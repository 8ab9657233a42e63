"""Structured logging infrastructure with verbosity levels and progress tracking."""

import copy
import logging
import logging.handlers
import time
from typing import Any, Dict, Optional

import colorlog

LOGGER_NAME = 'fedora_export'


def setup_logging(
    verbosity: int = 0,
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    date_format: Optional[str] = None,
    level: Optional[str] = None
) -> logging.Logger:
    """
    Set up structured logging with configurable verbosity levels.

    Args:
        verbosity: Verbosity level (0=WARNING, 1=INFO, 2+=DEBUG)
        log_file: Optional path to log file
        log_format: Optional custom log format string
        date_format: Optional custom date format string
        level: Optional explicit log level string

    Returns:
        Configured logger instance

    Raises:
        ValueError: If level is not a known log level name
    """
    if level:
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        level_upper = level.upper()
        if level_upper not in allowed_levels:
            raise ValueError(
                f"Invalid log level '{level}'. Must be one of: {sorted(allowed_levels)}"
            )
        log_level = getattr(logging, level_upper)
    else:
        if verbosity >= 2:
            log_level = logging.DEBUG
        elif verbosity >= 1:
            log_level = logging.INFO
        else:
            log_level = logging.WARNING

    if log_format is None:
        log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    if date_format is None:
        date_format = '%Y-%m-%d %H:%M:%S'

    # Root stays at WARNING to keep urllib3 and friends quiet
    logging.basicConfig(
        level=logging.WARNING,
        format=log_format,
        datefmt=date_format
    )

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)
    logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(colorlog.ColoredFormatter(
        fmt='%(log_color)s' + log_format,
        datefmt=date_format,
        log_colors={
            'DEBUG': 'cyan',
            'INFO': 'green',
            'WARNING': 'yellow',
            'ERROR': 'red',
            'CRITICAL': 'red,bg_white',
        }
    ))
    logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
                encoding='utf-8'
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(logging.Formatter(fmt=log_format, datefmt=date_format))
            logger.addHandler(file_handler)

            logger.info(f"Logging to file: {log_file}")
            logger.info(f"Log level: {logging.getLevelName(log_level)}")
        except OSError as e:
            logger.warning(f"Failed to set up file logging: {str(e)}")
    else:
        logger.info(f"Console logging only. Level: {logging.getLevelName(log_level)}")

    return logger


class ProgressTracker:
    """Context manager for tracking progress across operations."""

    def __init__(
        self,
        total_items: Optional[int] = None,
        item_type: str = "items",
        log_every: int = 10,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize progress tracker.

        Args:
            total_items: Total number of items to process, or None when the
                input is streamed and its length is unknown
            item_type: Description of item type (e.g., "UMDM objects")
            log_every: Log a progress line every this many items
            logger: Logger to report to (default: the package logger)
        """
        self.total_items = total_items
        self.item_type = item_type
        self.log_every = log_every
        self.processed_items = 0
        self.successful_items = 0
        self.failed_items = 0
        self.start_time: Optional[float] = None
        self.logger = logger or logging.getLogger(LOGGER_NAME)

    def __enter__(self) -> 'ProgressTracker':
        self.start_time = time.time()
        if self.total_items is None:
            self.logger.info(f"Starting processing of {self.item_type}")
        else:
            self.logger.info(f"Starting processing of {self.total_items} {self.item_type}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Log a summary; an exception leaving the block counts as a failed item."""
        if self.start_time is None:
            return

        if exc_type is not None:
            self.failed_items += 1

        elapsed = time.time() - self.start_time
        log_method = self.logger.warning if self.failed_items else self.logger.info

        log_method(f"=== Progress Summary: {self.item_type.upper()} ===")
        if self.total_items is not None:
            log_method(f"Total: {self.total_items}")
        log_method(f"Processed: {self.processed_items}")
        log_method(f"Successful: {self.successful_items}")
        log_method(f"Failed: {self.failed_items}")
        log_method(f"Elapsed Time: {self._format_elapsed(elapsed)}")

    def increment(self, success: bool = True) -> None:
        """
        Increment progress counter.

        Args:
            success: Whether the item was processed successfully
        """
        self.processed_items += 1

        if success:
            self.successful_items += 1
        else:
            self.failed_items += 1

        if self.processed_items % self.log_every == 0 or not success:
            status = "Success" if success else "Failed"
            if self.total_items is None:
                progress = f"{self.processed_items} {self.item_type}"
            else:
                remaining = self.total_items - self.processed_items
                progress = f"{self.processed_items}/{self.total_items} {self.item_type} ({remaining} remaining)"
            self.logger.info(f"Processed {progress} - Last: {status}")

    @staticmethod
    def _format_elapsed(seconds: float) -> str:
        """Format elapsed time in human-readable format."""
        if seconds < 60:
            return f"{seconds:.1f}s"

        minutes = int(seconds // 60)
        seconds = int(seconds % 60)

        if minutes < 60:
            return f"{minutes}m {seconds}s"

        hours = minutes // 60
        minutes = minutes % 60

        return f"{hours}h {minutes}m {seconds}s"


def log_section(title: str, logger: Optional[logging.Logger] = None) -> None:
    """
    Log a decorative section header.

    Args:
        title: Section title to display
        logger: Logger to write to (default: the package logger)
    """
    logger = logger or logging.getLogger(LOGGER_NAME)

    separator = "=" * 60
    logger.info("")
    logger.info(separator)
    logger.info(f"  {title.upper()}")
    logger.info(separator)
    logger.info("")


def log_config(config: Dict[str, Any]) -> None:
    """
    Log sanitized configuration for debugging.

    Args:
        config: Configuration dictionary to log
    """
    logger = logging.getLogger(LOGGER_NAME)

    sanitized_config = _sanitize_config(config)

    log_section("Configuration")

    migration = sanitized_config.get('migration', {})
    logger.info(f"Manifest: {migration.get('manifest', 'Not Set')}")
    logger.info(f"Dry Run: {migration.get('dry_run', False)}")
    if migration.get('report_path'):
        logger.info(f"Report Path: {migration.get('report_path')}")

    source = sanitized_config.get('source', {})
    logger.info(f"FOXML Base Directory: {source.get('foxml_base_dir') or 'Not Set'}")
    logger.info("")

    resolver = sanitized_config.get('resolver', {})
    logger.info(f"Resolver: {resolver.get('type', 'network')}")
    if resolver.get('type', 'network') == 'network':
        logger.info(f"Fedora Host: {resolver.get('fedora_host', 'Not Set')}")
        if resolver.get('url_template'):
            logger.info(f"URL Template: {resolver.get('url_template')}")
        if resolver.get('username'):
            logger.info(f"Username: {resolver.get('username')}")
        if resolver.get('password'):
            logger.info("Password: ***REDACTED***")
    else:
        logger.info(f"Datastream Root: {resolver.get('datastream_root', 'Not Set')}")
    logger.info("")

    export_settings = sanitized_config.get('export', {})
    logger.info(f"Output Directory: {export_settings.get('output_directory', './fedora-export')}")
    logger.info(f"Index File: {export_settings.get('index_file') or 'export.csv'}")
    logger.info(f"Datastream Versions: {export_settings.get('datastream_versions', 'latest')}")
    logger.info(f"Fetch External Content: {export_settings.get('fetch_external_content', True)}")
    logger.info(f"Overwrite: {export_settings.get('overwrite', False)}")


def _sanitize_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create a sanitized copy of configuration with sensitive fields masked.

    Args:
        config: Configuration dictionary

    Returns:
        Sanitized configuration copy
    """
    sanitized = copy.deepcopy(config)

    sensitive_fields = {'password', 'secret', 'token', 'auth_header'}

    def mask_sensitive(data: Any) -> Any:
        if isinstance(data, dict):
            masked = {}
            for key, value in data.items():
                is_sensitive = any(sensitive in key.lower() for sensitive in sensitive_fields)
                if is_sensitive and isinstance(value, str):
                    masked[key] = "***REDACTED***"
                else:
                    masked[key] = mask_sensitive(value)
            return masked
        elif isinstance(data, list):
            return [mask_sensitive(item) for item in data]
        else:
            return data

    return mask_sensitive(sanitized)


__all__ = [
    'LOGGER_NAME',
    'setup_logging',
    'ProgressTracker',
    'log_section',
    'log_config'
]
