"""
Error Handling and Logging Configuration for execman

Sets up console and file logging and installs a global exception hook so
uncaught errors end up in the log instead of vanishing.
"""

import sys
import logging
from pathlib import Path
from typing import Optional, Callable, Any
from functools import wraps

from ..exceptions import ExecmanError


class ErrorHandler:
    """
    Centralized error handling and logging system.
    """

    def __init__(self, verbose: bool = False, log_file: Optional[Path] = None):
        """
        Initialize the error handler.

        Args:
            verbose: Show DEBUG messages on the console
            log_file: Optional path to a detailed log file
        """
        self.verbose = verbose
        self.log_file = log_file
        self.logger = logging.getLogger(__name__)
        self.setup_logging()

    def setup_logging(self):
        """Set up logging configuration."""
        root_logger = logging.getLogger()
        root_logger.setLevel(logging.DEBUG)

        # Clear any existing handlers
        root_logger.handlers.clear()

        # Console handler goes to stderr so JSON output on stdout stays clean
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.DEBUG if self.verbose else logging.WARNING)
        console_formatter = logging.Formatter('%(levelname)s: %(message)s')
        console_handler.setFormatter(console_formatter)
        root_logger.addHandler(console_handler)

        if self.log_file is not None:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(self.log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)
            file_formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            file_handler.setFormatter(file_formatter)
            root_logger.addHandler(file_handler)
            self.logger.debug(f"Log file: {self.log_file}")

        # urllib3 is chatty at DEBUG
        logging.getLogger('urllib3').setLevel(logging.INFO)

    def handle_exception(self, exc_type, exc_value, exc_traceback):
        """
        Handle uncaught exceptions.

        Args:
            exc_type: Exception type
            exc_value: Exception value
            exc_traceback: Exception traceback
        """
        if issubclass(exc_type, KeyboardInterrupt):
            # Handle Ctrl+C gracefully
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return

        self.logger.critical(
            "Uncaught exception",
            exc_info=(exc_type, exc_value, exc_traceback)
        )


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None) -> ErrorHandler:
    """
    Configure logging and install the global exception hook.

    Returns:
        ErrorHandler: The installed handler
    """
    handler = ErrorHandler(verbose=verbose, log_file=log_file)
    sys.excepthook = handler.handle_exception
    return handler


def handle_errors(default_return: Any = 1, reporter: Optional[Callable[[ExecmanError], None]] = None):
    """
    Decorator turning execman errors raised by a command into an exit status.

    Args:
        default_return: Value returned when an ExecmanError escapes
        reporter: Optional callable that presents the error to the user
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except ExecmanError as e:
                logger = logging.getLogger(func.__module__)
                logger.debug(f"Error in {func.__name__}: {e}", exc_info=True)
                if reporter is not None:
                    reporter(e)
                return default_return
        return wrapper
    return decorator
