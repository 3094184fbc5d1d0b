"""
LanChat - Custom Exception Classes and Error Codes

This module defines all custom exceptions and error codes used throughout
the LanChat application. Each error has a unique code for logging and debugging.

Author: lanchat contributors
Version: 1.0.0
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Enumeration of all LanChat error codes."""

    # General Errors (E001-E099)
    E002_INVALID_ARGUMENT = "E002"
    E003_FILE_NOT_FOUND = "E003"

    # Crypto Errors (E100-E199)
    E100_CRYPTO_ERROR = "E100"
    E103_INVALID_KEY = "E103"
    E108_KEY_DERIVATION_FAILED = "E108"
    E109_KEY_UNWRAP_FAILED = "E109"
    E110_UNSUPPORTED_KIND = "E110"

    # Network Errors (E200-E299)
    E200_NETWORK_ERROR = "E200"
    E201_CONNECTION_FAILED = "E201"
    E202_CONNECTION_TIMEOUT = "E202"
    E204_SEND_FAILED = "E204"
    E207_MESSAGE_TOO_LARGE = "E207"

    # Config Errors (E700-E799)
    E700_CONFIG_ERROR = "E700"
    E702_CONFIG_SAVE_FAILED = "E702"
    E703_INVALID_CONFIG = "E703"
    E704_CONFIG_PARSE_ERROR = "E704"

    # Server Errors (E800-E899)
    E800_SERVER_ERROR = "E800"
    E801_SERVER_START_FAILED = "E801"
    E802_SERVER_ALREADY_RUNNING = "E802"


class LanchatError(Exception):
    """Base exception class for all LanChat errors.

    All custom exceptions in LanChat inherit from this class.
    Provides standardized error handling and logging.

    Attributes:
        code: Error code from ErrorCode enum
        message: Human-readable error message
        details: Additional error details (optional)
    """

    def __init__(self, code: ErrorCode, message: str, details: Optional[Dict[str, Any]] = None):
        """Initialize a LanChat error.

        Args:
            code: Error code from ErrorCode enum
            message: Human-readable error message
            details: Additional error context (optional)
        """
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for serialization.

        Returns:
            Dictionary containing error information
        """
        return {"code": self.code.value, "message": self.message, "details": self.details}


class CryptoError(LanchatError):
    """Exception raised for cryptographic operation failures.

    This includes key generation, hybrid key wrapping and unwrapping,
    and session key derivation.
    """

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E100_CRYPTO_ERROR,
        message: str = "Cryptographic operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class NetworkError(LanchatError):
    """Exception raised for network operation failures.

    This includes connection errors, timeouts, write failures
    and oversized frames.
    """

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E200_NETWORK_ERROR,
        message: str = "Network operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class ValidationError(LanchatError):
    """Exception raised when an outbound message is rejected before any I/O.

    Covers empty content or destination, keys that fail the active cipher's
    validation, and kind/mode combinations the cipher cannot carry.
    """

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E002_INVALID_ARGUMENT,
        message: str = "Validation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class ConfigError(LanchatError):
    """Exception raised for configuration failures.

    This includes loading, parsing, and validating configuration files.
    """

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E700_CONFIG_ERROR,
        message: str = "Configuration operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class ServerError(LanchatError):
    """Exception raised for listener failures.

    Binding an occupied port is a fatal configuration error.
    """

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E800_SERVER_ERROR,
        message: str = "Server operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)
