"""
Centralized logging setup and configuration.

Provides colored console logging for the deployment run, and masks
access key secrets and security tokens before anything reaches a handler.
"""

import logging
import sys
from typing import Iterable, Optional


MASK = "****"


class ColoredFormatter(logging.Formatter):
    """
    Formatter that colors the level name (and error messages) on a TTY.
    """

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
        "RESET": "\033[0m",
    }

    def __init__(self, fmt: str = None, use_colors: bool = True):
        """
        Initialize the formatter.

        Args:
            fmt: Log format string
            use_colors: Enable colors (only applied when stdout is a TTY)
        """
        super().__init__(fmt or "%(asctime)s [%(levelname)s] %(message)s")
        self.use_colors = use_colors and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        """
        Format a record, coloring the level name when enabled.

        Args:
            record: Log record to format

        Returns:
            Formatted log line
        """
        original_levelname = record.levelname
        original_msg = record.msg

        if self.use_colors:
            color = self.COLORS.get(record.levelname, "")
            reset = self.COLORS["RESET"]
            record.levelname = f"{color}{record.levelname}{reset}"
            if original_levelname in ("WARNING", "ERROR", "CRITICAL"):
                record.msg = f"{color}{record.msg}{reset}"

        result = super().format(record)

        record.levelname = original_levelname
        record.msg = original_msg

        return result


class SecretMaskingFilter(logging.Filter):
    """
    Replaces known secret values in log records with a fixed mask.

    Secrets are registered at runtime once the configuration is known,
    so credentials passed through the environment never show up in CI logs.
    """

    def __init__(self, secrets: Optional[Iterable[str]] = None):
        """
        Initialize the filter.

        Args:
            secrets: Initial secret values to mask
        """
        super().__init__()
        self._secrets = set()
        for secret in secrets or ():
            self.add_secret(secret)

    def add_secret(self, secret: Optional[str]) -> None:
        """
        Register a value to be masked.

        Args:
            secret: Secret value (None, empty and very short values are ignored)
        """
        # Very short values would mask unrelated text
        if secret and len(secret) >= 4:
            self._secrets.add(secret)

    def sanitize(self, text: str) -> str:
        """
        Replace every registered secret in a piece of text.

        Args:
            text: Text to sanitize

        Returns:
            Text with secrets replaced by the mask
        """
        for secret in self._secrets:
            text = text.replace(secret, MASK)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        """
        Mask secrets in the message, its arguments and any traceback.

        Args:
            record: Log record to sanitize in place

        Returns:
            Always True, records are never dropped
        """
        if not self._secrets:
            return True

        # Render args first so secrets split across msg/args are caught too
        record.msg = self.sanitize(record.getMessage())
        record.args = None
        if record.exc_info and not record.exc_text:
            record.exc_text = logging.Formatter().formatException(record.exc_info)
        if record.exc_text:
            record.exc_text = self.sanitize(record.exc_text)

        return True


class StructuredLogger(logging.Logger):
    """
    Logger with a few helpers for readable pipeline output.
    """

    def section(self, title: str) -> None:
        """Log a section header."""
        self.info("")
        self.info("=" * 60)
        self.info(title)
        self.info("=" * 60)

    def success(self, message: str) -> None:
        """Log a success message."""
        self.info(f"[OK] {message}")

    def failure(self, message: str) -> None:
        """Log a failure message."""
        self.error(f"[FAIL] {message}")


_logger: Optional[StructuredLogger] = None
_secret_filter = SecretMaskingFilter()


def setup_logger(
    name: str = "CertDeploy",
    verbose: bool = False,
    use_colors: bool = True,
    log_file: Optional[str] = None,
) -> StructuredLogger:
    """
    Setup and configure the global logger.

    Args:
        name: Logger name
        verbose: Enable debug-level logging
        use_colors: Enable colored output
        log_file: Optional file path for log output

    Returns:
        Configured StructuredLogger instance
    """
    global _logger

    logging.setLoggerClass(StructuredLogger)
    logger = logging.getLogger(name)
    logger.__class__ = StructuredLogger

    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)

    logger.handlers.clear()
    logger.filters.clear()
    logger.addFilter(_secret_filter)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ColoredFormatter(use_colors=use_colors))
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(message)s"
        ))
        logger.addHandler(file_handler)

    _logger = logger
    return logger


def register_secrets(*secrets: Optional[str]) -> None:
    """
    Register values that must never appear in log output.

    Args:
        secrets: Secret values (None and empty values are ignored)
    """
    for secret in secrets:
        _secret_filter.add_secret(secret)


def get_logger() -> StructuredLogger:
    """
    Get the global logger instance, creating a default one if needed.

    Returns:
        The configured StructuredLogger instance
    """
    global _logger

    if _logger is None:
        _logger = setup_logger()

    return _logger
