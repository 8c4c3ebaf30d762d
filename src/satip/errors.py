"""
Error types raised by the SAT>IP discovery pipeline
"""

from enum import Enum


class ErrorType(Enum):
    """Kinds of discovery failures"""
    INVALID_ADDRESS_FORMAT = "invalid_address_format"
    COULD_NOT_BIND_SOCKET = "could_not_bind_socket"
    SEND_FAILED = "send_failed"
    RECEIVE_FAILED = "receive_failed"
    MALFORMED_RESPONSE = "malformed_response"
    INCOMPLETE_RESPONSE = "incomplete_response"
    MISSING_REQUIRED_FIELD = "missing_required_field"
    DESCRIPTION_FETCH_FAILED = "description_fetch_failed"


# Failures confined to a single reply or device; they never abort a run
NON_FATAL_ERROR_TYPES = frozenset({
    ErrorType.MALFORMED_RESPONSE,
    ErrorType.INCOMPLETE_RESPONSE,
    ErrorType.MISSING_REQUIRED_FIELD,
    ErrorType.DESCRIPTION_FETCH_FAILED,
})


class DiscoveryError(Exception):
    """
    Discovery failure tagged with an ErrorType.
    The underlying exception, if any, is chained via ``raise ... from err``.
    """

    def __init__(self, error_type: ErrorType, message: str):
        super().__init__(message)
        self.error_type = error_type
        self.message = message

    @property
    def is_fatal(self) -> bool:
        return self.error_type not in NON_FATAL_ERROR_TYPES

    def __str__(self) -> str:
        text = f"[{self.error_type.name}]: {self.message}"
        if self.__cause__ is not None:
            text += f"\nCaused by: {self.__cause__!r}"
        return text
