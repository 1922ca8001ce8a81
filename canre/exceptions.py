"""
Custom exception classes for the CAN reverse-engineering toolkit.

The analysis core reports insufficient data and numerical degeneracy through
empty/zero results rather than exceptions. The classes here cover the
boundaries: configuration, capture files, DBC export and explicit extraction
requests.
"""

from typing import Any


class CanReException(Exception):
    """Base exception for all toolkit errors.

    All custom exceptions inherit from this class so callers can catch every
    toolkit-specific error while preserving the hierarchy.
    """
    pass


class ConfigurationError(CanReException):
    """Exception raised for invalid configuration values.

    Attributes:
        setting_name: Name of the setting that is invalid
        setting_value: The invalid value
        expected: Description of expected value
    """

    def __init__(self, message: str, setting_name: str = None, setting_value: Any = None,
                 expected: str = None):
        super().__init__(message)
        self.setting_name = setting_name
        self.setting_value = setting_value
        self.expected = expected


class LogReadError(CanReException):
    """Exception raised when a capture file cannot be read.

    Attributes:
        path: Path to the capture file
        original_error: The underlying exception that caused this error
    """

    def __init__(self, message: str, path: str = None, original_error: Exception = None):
        super().__init__(message)
        self.path = path
        self.original_error = original_error


class DbcExportError(CanReException):
    """Exception raised when detected signals cannot be rendered as a DBC.

    Attributes:
        arbitration_id: Message ID being exported when the failure happened (optional)
        original_error: The underlying exception that caused this error
    """

    def __init__(self, message: str, arbitration_id: int = None, original_error: Exception = None):
        super().__init__(message)
        self.arbitration_id = arbitration_id
        self.original_error = original_error


class SignalExtractionError(CanReException):
    """Exception raised when a bit field cannot be described for extraction.

    Attributes:
        start_bit: Requested start bit
        length: Requested bit length
    """

    def __init__(self, message: str, start_bit: int = None, length: int = None):
        super().__init__(message)
        self.start_bit = start_bit
        self.length = length
