"""
Error Handling and Logging Infrastructure for SCM Input Preprocessing

This module provides standardized logging and error handling for the
single-column model input layer. It includes logger setup, run progress
tracking, a typed error hierarchy and an error context manager that turns
low-level failures into typed errors carrying their context.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional
from contextlib import contextmanager


def setup_scm_logging(log_level: str = "INFO",
                      log_file: Optional[str] = None,
                      console_output: bool = True) -> logging.Logger:
    """
    Setup standardized logging for SCM input processing.

    Handlers are attached to the root logger so that module loggers
    (``logging.getLogger(__name__)``) propagate to them.

    Args:
        log_level: Logging level ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')
        log_file: Optional path to log file
        console_output: Whether to output logs to console

    Returns:
        Configured logger instance
    """
    level = getattr(logging, log_level.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if log_file else level)

    # Clear any existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(logging.DEBUG)  # File logs capture everything
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    logger = logging.getLogger('scm_input')
    logger.setLevel(level)
    return logger


class ProcessingLogger:
    """
    Logger for tracking one SCM input run.

    Records the run parameters, counts warnings and errors, and prints a
    summary when the run completes.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('scm_input')
        self.processing_start_time = None
        self.current_workflow = None
        self.processing_stats = {
            'files_read': 0,
            'errors_encountered': 0,
            'warnings_issued': 0
        }

    def log_processing_start(self, experiment_name: str, parameters: Dict[str, Any]) -> None:
        """
        Log the start of a run and echo the resolved configuration.

        Args:
            experiment_name: Name of the experiment being prepared
            parameters: Resolved configuration values
        """
        self.processing_start_time = datetime.now()
        self.current_workflow = experiment_name

        self.logger.info("=" * 60)
        self.logger.info(f"Starting SCM input processing for {experiment_name} "
                         f"at {self.processing_start_time:%Y-%m-%d %H:%M:%S}")
        width = max((len(name) for name in parameters), default=0)
        for name, value in parameters.items():
            self.logger.info(f"  {name:<{width}} = {value}")
        self.logger.info("=" * 60)

    def log_file_read(self, input_file: str, description: str) -> None:
        """Log a fully consumed input file."""
        self.processing_stats['files_read'] += 1
        self.logger.info(f"Read {description}: {Path(input_file).name}")

    def log_processing_error(self, error_type: str, error_details: str, context: Optional[Dict] = None) -> None:
        """Count and log a failed operation; context keys are logged at DEBUG."""
        self.processing_stats['errors_encountered'] += 1
        self.logger.error(f"{error_type} in {self.current_workflow or 'SCM input'}: {error_details}")
        self._log_context(context)

    def log_processing_warning(self, warning_message: str, context: Optional[Dict] = None) -> None:
        """Count and log a non-fatal problem with the loaded data."""
        self.processing_stats['warnings_issued'] += 1
        self.logger.warning(warning_message)
        self._log_context(context)

    def log_processing_complete(self, summary_stats: Optional[Dict] = None) -> None:
        """
        Log the end of the run.

        Args:
            summary_stats: Sizes of what was loaded (levels, times, profile name)
        """
        elapsed = datetime.now() - self.processing_start_time if self.processing_start_time else None
        self.logger.info("=" * 60)
        self.logger.info(f"Finished SCM input for {self.current_workflow or 'unnamed run'}"
                         + (f" in {elapsed}" if elapsed is not None else ""))

        counts = ", ".join(f"{name}={value}" for name, value in self.processing_stats.items())
        self.logger.info(f"  {counts}")
        for name, value in (summary_stats or {}).items():
            self.logger.info(f"  {name}: {value}")
        self.logger.info("=" * 60)

    def _log_context(self, context: Optional[Dict]) -> None:
        for key, value in (context or {}).items():
            self.logger.debug(f"  {key}: {value}")


class SCMError(Exception):
    """Base exception class for SCM input errors"""

    def __init__(self, message: str, context: Optional[Dict] = None):
        """
        Initialize SCM error.

        Args:
            message: Error message
            context: Optional context dictionary with additional information
        """
        super().__init__(message)
        self.context = context or {}
        self.timestamp = datetime.now()

    def get_full_error_info(self) -> Dict[str, Any]:
        """Get complete error information including context"""
        return {
            'error_type': self.__class__.__name__,
            'message': str(self),
            'timestamp': self.timestamp.isoformat(),
            'context': self.context
        }


class ConfigurationError(SCMError):
    """Unrecoverable error in the case configuration"""
    pass


class ConfigurationAborted(SCMError):
    """The user declined to continue at a confirmation prompt"""
    pass


class NetCDFError(SCMError):
    """Error in NetCDF file operations"""
    pass


class InputDataError(SCMError):
    """Unreadable or malformed text input data"""
    pass


@contextmanager
def error_context(operation_name: str, logger: Optional[ProcessingLogger] = None, **context_info):
    """
    Context manager for wrapping operations with error handling.

    Args:
        operation_name: Name of operation being performed
        logger: Optional ProcessingLogger instance
        **context_info: Additional context information

    Example:
        with error_context("loading case input", logger, case_name="twpice"):
            dataset = loader.load("twpice", False)
    """
    start_time = datetime.now()

    if logger:
        logger.logger.debug(f"Starting operation: {operation_name}")

    try:
        yield
        duration = datetime.now() - start_time

        if logger:
            logger.logger.debug(f"Completed operation: {operation_name} (duration: {duration})")

    except Exception as e:
        duration = datetime.now() - start_time
        error_context_dict = {
            'operation': operation_name,
            'duration': str(duration),
            **context_info
        }

        if logger:
            logger.log_processing_error(
                error_type=type(e).__name__,
                error_details=str(e),
                context=error_context_dict
            )

        if not isinstance(e, SCMError):
            if "netcdf" in operation_name.lower():
                raise NetCDFError(str(e), error_context_dict) from e
            else:
                raise InputDataError(str(e), error_context_dict) from e
        else:
            # Keep the innermost context values
            for key, value in error_context_dict.items():
                e.context.setdefault(key, value)
            raise
