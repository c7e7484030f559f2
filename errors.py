# errors.py
"""Exceptions raised by the storefront core and mapped to HTTP responses in core.py."""


class StorefrontError(Exception):
    """Base exception for all storefront errors."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(StorefrontError):
    """Raised when input is malformed or breaks a field constraint.

    ``details`` is a list of ``{"field": ..., "message": ...}`` dicts, one per
    offending field, when the failure can be pinned to fields.
    """

    status_code = 400
    default_message = "Invalid request data"

    def __init__(self, message=None, details=None):
        self.details = details or []
        super().__init__(message)


class NotFoundError(StorefrontError):
    """Raised when a referenced id does not exist."""

    status_code = 404
    default_message = "Not found"


class AuthError(StorefrontError):
    """Raised on admin credential mismatch.

    The message never says whether the email or the password was wrong.
    """

    status_code = 401
    default_message = "Invalid credentials"


class StorageError(StorefrontError):
    """Raised when the persistence backend fails."""

    status_code = 500
    default_message = "Storage operation failed"


class OrderSubmissionError(StorageError):
    """Raised when an order submission fails at the storage layer.

    Used both when the order insert fails and when a stock update fails after
    the order was committed; callers cannot tell the two apart.
    """

    default_message = "Failed to create order"
