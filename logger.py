"""Structured logging infrastructure with verbosity levels and progress tracking."""

import logging
import logging.handlers
import time
from typing import Any, Dict, Optional

import colorlog

LOGGER_NAME = 'vault_exporter'


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
    """
    # Determine log level
    if level:
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        level_upper = level.upper()
        if level_upper not in allowed_levels:
            raise ValueError(
                f"Invalid log level '{level}'. Must be one of: {sorted(allowed_levels)}"
            )
        log_level = getattr(logging, level_upper)
    elif verbosity >= 2:
        log_level = logging.DEBUG
    elif verbosity >= 1:
        log_level = logging.INFO
    else:
        log_level = logging.WARNING

    if log_format is None:
        log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    if date_format is None:
        date_format = '%Y-%m-%d %H:%M:%S'

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)

    # Clear existing handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

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
        logger.debug(f"Console logging only. Level: {logging.getLevelName(log_level)}")

    return logger


class ProgressTracker:
    """Context manager for tracking progress across operations."""

    def __init__(self, total_items: int, item_type: str = "items", log_every: int = 25):
        """
        Initialize progress tracker.

        Args:
            total_items: Total number of items to process
            item_type: Description of item type (e.g., "documents", "attachments")
            log_every: Emit a progress line after this many items
        """
        self.total_items = total_items
        self.item_type = item_type
        self.log_every = max(1, log_every)
        self.processed_items = 0
        self.successful_items = 0
        self.failed_items = 0
        self.start_time: Optional[float] = None
        self.logger = logging.getLogger(LOGGER_NAME)

    def __enter__(self) -> 'ProgressTracker':
        """Enter progress tracking context."""
        self.start_time = time.time()
        self.logger.info(
            f"Starting processing of {self.total_items} {self.item_type}"
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit progress tracking context and log summary."""
        if self.start_time is None:
            return

        elapsed = time.time() - self.start_time

        # Use appropriate log level based on failure rate
        if exc_type is not None or (self.failed_items > 0 and self.failed_items == self.total_items):
            log_method = self.logger.error
        elif self.failed_items > 0:
            log_method = self.logger.warning
        else:
            log_method = self.logger.info

        log_method(
            f"{self.item_type.capitalize()}: {self.processed_items}/{self.total_items} processed, "
            f"{self.successful_items} successful, {self.failed_items} failed "
            f"in {self._format_elapsed(elapsed)}"
        )

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
            remaining = max(self.total_items - self.processed_items, 0)
            status = "Success" if success else "Failed"
            self.logger.debug(
                f"Processed {self.processed_items}/{self.total_items} {self.item_type} "
                f"({remaining} remaining) - Last: {status}"
            )

    def grow(self, count: int = 1) -> None:
        """Raise the total when new work is discovered mid-run."""
        self.total_items += count

    def get_stats(self) -> Dict[str, Any]:
        """Get current progress statistics."""
        elapsed = 0.0 if self.start_time is None else time.time() - self.start_time

        return {
            'total': self.total_items,
            'processed': self.processed_items,
            'successful': self.successful_items,
            'failed': self.failed_items,
            'elapsed_time': elapsed,
            'elapsed_time_formatted': self._format_elapsed(elapsed)
        }

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


def log_section(title: str) -> None:
    """
    Log a decorative section header.

    Args:
        title: Section title to display
    """
    logger = logging.getLogger(LOGGER_NAME)

    separator = "=" * 60
    logger.info(separator)
    logger.info(f"  {title.upper()}")
    logger.info(separator)


def log_config(config: Dict[str, Any]) -> None:
    """
    Log effective configuration for debugging.

    Args:
        config: Configuration dictionary to log
    """
    logger = logging.getLogger(LOGGER_NAME)

    log_section("Configuration")

    vault = config.get('vault', {})
    logger.info(f"Vault Root: {vault.get('root', 'Not Set')}")
    logger.info(f"Global Attachments: {vault.get('attachments_directory') or 'Not Set'}")
    logger.info(f"Document Extension: {vault.get('document_extension', '.md')}")
    logger.info(f"Ignored Directories: {', '.join(vault.get('ignore_directories') or []) or 'None'}")

    export_settings = config.get('export', {})
    logger.info(f"Output Directory: {export_settings.get('output_directory') or 'Derived from input'}")
    logger.info(f"Attachments Directory: {export_settings.get('attachments_directory', 'attachments')}")
    logger.info(f"References Directory: {export_settings.get('references_directory', 'references')}")
    logger.info(f"Hash Length: {export_settings.get('hash_length', 8)}")
    logger.info(f"Link Style: {export_settings.get('link_style', 'shortest')}")
    logger.info(f"Report Path: {export_settings.get('report_path') or 'Not Set'}")


__all__ = [
    'LOGGER_NAME',
    'setup_logging',
    'ProgressTracker',
    'log_section',
    'log_config'
]
