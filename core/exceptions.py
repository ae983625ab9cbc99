"""
Custom exceptions for the plate sync worker with structured error context.

This module provides the exception hierarchy used by the crawl, the
staging publisher and the finalizer. Each exception includes context
information for debugging and for the run's error summary.

Exception Hierarchy:
    SyncException (base)
    ├── ConfigurationError
    │   └── StationConfigError
    ├── BrowserError
    │   ├── NavigationError
    │   ├── BrowserTimeoutError
    │   ├── BrowserClosedError
    │   └── PaginationError
    ├── CaptchaError
    │   └── SolverError
    │       └── SolverOverloadedError
    ├── StoreError
    │   ├── DatabaseError
    │   ├── StagingError
    │   └── PublishError
    ├── FinalizerError
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any
from datetime import datetime


class SyncException(Exception):
    """
    Base exception for all sync-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (station, query, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.utcnow()

        # Add timestamp to context
        self.context["error_timestamp"] = self.timestamp.isoformat()

        # Chain original exception if provided
        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(SyncException):
    """
    Mixin for errors that should trigger retry logic.

    Use this for transient errors like:
    - Page or selector timeouts
    - Recognition service overload (HTTP 503 / 429)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        retry_delay: float = 1.0
    ):
        super().__init__(message, context, original_exception)
        self.retry_delay = retry_delay


class NonRetryableError(SyncException):
    """
    Mixin for errors that should NOT trigger retry logic.

    Use this for permanent errors like:
    - Missing or malformed configuration
    - Exhausted navigation budget
    - A closed page or crashed browser
    """
    pass


# ============================================================================
# Configuration Errors
# ============================================================================

class ConfigurationError(NonRetryableError):
    """Required configuration or credentials are missing or invalid."""
    pass


class StationConfigError(ConfigurationError):
    """
    Exception raised when the station roster cannot be loaded or parsed.

    Context should include:
        - config_key: Roster key or file path
        - department_id / station_id: Offending entry (if applicable)
        - field_errors: Validation errors for the entry
    """
    pass


# ============================================================================
# Browser Errors
# ============================================================================

class BrowserError(SyncException):
    """Base exception for browser session failures."""
    pass


class BrowserTimeoutError(RetryableError, BrowserError):
    """Navigation, selector or page-condition wait exceeded its bound."""
    pass


class NavigationError(NonRetryableError, BrowserError):
    """
    Exception raised when the query page could not be reached after all retries.

    Context should include:
        - url: Portal URL
        - attempts: Number of navigation attempts made
        - region_id / station_id / plate_type: The PlateQuery being prepared
    """
    pass


class BrowserClosedError(NonRetryableError, BrowserError):
    """The page or browser is gone; nothing else can run in this session."""
    pass


class PaginationError(BrowserError):
    """
    The result walk broke off before the last page.

    Context should include:
        - pages_read: Pages scraped before the walk stopped
        - total_pages: Page count reported by the portal (if known)
    """
    pass


# ============================================================================
# CAPTCHA Errors
# ============================================================================

class CaptchaError(SyncException):
    """Base exception for CAPTCHA handling failures."""
    pass


class SolverError(CaptchaError):
    """
    Exception raised when the recognition engine fails to produce an answer.

    Context should include:
        - engine: Solver engine name
        - status_code: HTTP status code (remote engines)
    """
    pass


class SolverOverloadedError(RetryableError, SolverError):
    """Recognition service reported overload; wait out a cooldown before retrying."""
    pass


# ============================================================================
# Store Errors
# ============================================================================

class StoreError(SyncException):
    """Base exception for data store failures."""
    pass


class DatabaseError(StoreError):
    """
    Exception raised when database operations fail.

    Context should include:
        - operation: Type of database operation (INSERT, DELETE, UPSERT, COUNT)
        - table_name: Name of the table
    """
    pass


class StagingError(StoreError):
    """
    Exception raised when writing a staging partition fails.

    Context should include:
        - region_id / station_id: The partition
        - row_count: Number of rows being written
    """
    pass


class PublishError(StoreError):
    """Exception raised when the atomic swap into the production view fails."""
    pass


# ============================================================================
# Finalizer Errors
# ============================================================================

class FinalizerError(SyncException):
    """
    Exception raised when shard workers did not all report a terminal status in time.

    Context should include:
        - pending_shards: Shards still running or never reported
        - wait_timeout: Seconds waited
    """
    pass
