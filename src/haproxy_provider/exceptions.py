# Copyright 2026 Canonical Ltd.
# See LICENSE file for licensing details.

"""haproxy-provider base exceptions."""

from typing import Optional


class ProviderError(Exception):
    """Base exception for every error raised by the provider."""


class InvalidProviderConfigError(ProviderError):
    """Exception raised when the provider configuration is found to be invalid."""


class PayloadValidationError(ProviderError):
    """Exception raised when a payload does not match its model."""


class ResourceNotFoundError(ProviderError):
    """Exception raised when a required remote object does not exist."""


class OperationCancelledError(ProviderError):
    """Exception raised when the caller cancelled the operation or its deadline passed."""


class DataplaneError(ProviderError):
    """Base exception for errors talking to the Data Plane API."""


class DataplaneTransportError(DataplaneError):
    """Exception raised when a request could not be completed (connection, timeout)."""


class DataplaneAPIError(DataplaneError):
    """Exception raised when the Data Plane API answers with an error status.

    Attrs:
        status_code: HTTP status code of the response.
        message: Error message returned by the API.
        code: Error code from the JSON error body, if any.
    """

    def __init__(self, status_code: int, message: str, code: Optional[int] = None):
        """Initialize the error.

        Args:
            status_code: HTTP status code of the response.
            message: Error message returned by the API.
            code: Error code from the JSON error body.
        """
        super().__init__(f"API error {status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.code = code


class DataplaneVersionConflictError(DataplaneAPIError):
    """HTTP 409, the configuration version moved under the caller."""


class TransactionError(ProviderError):
    """Base exception for failed transactional applies.

    Attrs:
        error: The error that ended the last attempt.
        attempts: Number of transactions opened.
        retryable: Whether the last error was classified as retryable.
    """

    retryable = False

    def __init__(self, message: str, error: BaseException, attempts: int):
        """Initialize the error.

        Args:
            message: Human readable description.
            error: The error that ended the last attempt.
            attempts: Number of transactions opened.
        """
        super().__init__(message)
        self.error = error
        self.attempts = attempts


class TransactionRetryExhaustedError(TransactionError):
    """Exception raised when every attempt failed with a retryable error."""

    retryable = True


class TransactionAbortedError(TransactionError):
    """Exception raised when an attempt failed with a non-retryable error."""


class BundleError(ProviderError):
    """Exception raised when a step of a resource bundle failed.

    Attrs:
        step: Description of the failing step.
    """

    def __init__(self, step: str, error: BaseException):
        """Initialize the error.

        Args:
            step: Description of the failing step.
            error: The underlying error.
        """
        super().__init__(f"{step} failed: {error}")
        self.step = step


class ReconcileError(ProviderError):
    """Exception raised when an ordered child collection cannot be reconciled."""


class ReconcileKeyCollisionError(ReconcileError):
    """Exception raised when two children of one collection share a content key."""
