"""
Custom exception classes for EZServer.

This module defines the exception hierarchy used throughout the application
for consistent error handling and reporting. Download and registry failures
carry an enumerated code so callers can translate them into messages.
"""

from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .models import ProcessOutcome


class EZServerError(Exception):
    """Base exception class for all EZServer errors."""
    
    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause
    
    def __str__(self) -> str:
        if self.cause:
            return f"{self.message} (caused by: {self.cause})"
        return self.message


class DownloadErrorCode(Enum):
    """Failure codes of the version resolution and download domain."""
    
    VERSION_NOT_FOUND = "version_not_found"
    NO_BUILDS = "no_builds"
    UNSUPPORTED_KIND = "unsupported_kind"
    DESTINATION_NOT_FOUND = "destination_not_found"


class ConfigErrorCode(Enum):
    """Failure codes of the server registry domain."""
    
    SERVER_EXISTS = "server_exists"
    SERVER_NOT_FOUND = "server_not_found"
    SAVE_ERROR = "save_error"
    LOAD_ERROR = "load_error"


class DownloadError(EZServerError):
    """Raised when a version cannot be resolved or a file cannot be fetched."""
    
    def __init__(
        self,
        message: str,
        code: DownloadErrorCode,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message, cause)
        self.code = code


class ConfigError(EZServerError):
    """Raised when the server registry cannot be read, written or updated."""
    
    def __init__(
        self,
        message: str,
        code: ConfigErrorCode,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message, cause)
        self.code = code


class ValidationError(EZServerError):
    """Raised when input validation fails."""
    pass


class APIError(EZServerError):
    """Raised when an upstream API call fails."""
    pass


class JavaError(EZServerError):
    """Raised when Java-related operations fail."""
    pass


class ServerInstallationError(EZServerError):
    """Raised when server installation fails."""
    pass


class BuildError(ServerInstallationError):
    """Raised when a build or installer subprocess does not exit cleanly."""
    
    def __init__(
        self,
        message: str,
        outcome: Optional["ProcessOutcome"] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message, cause)
        self.outcome = outcome
