"""Keylock exception hierarchy.

Every error carries a stable, machine-readable ``code`` that is returned
to callers verbatim. Verification rejections are not exceptions: the
engine answers them with a verdict (see keylock.licensing.engine).
"""


class KeylockError(Exception):
    """Base exception for all Keylock errors."""

    def __init__(self, message: str = "", code: str = "keylock_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class LicenseNotFoundError(KeylockError):
    """Raised when an administrative operation targets an unknown key."""

    def __init__(self, message: str = "License not found"):
        super().__init__(message, code="not_found")


class UnauthorizedError(KeylockError):
    """Raised when an administrator credential is missing or rejected."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, code="unauthorized")


class StorageError(KeylockError):
    """Raised when the record store cannot be read or written."""

    def __init__(self, message: str = "Storage failure"):
        super().__init__(message, code="storage_failure")


class ValidationError(KeylockError):
    """Raised when an administrative request carries unusable values."""

    def __init__(self, message: str = "Invalid request"):
        super().__init__(message, code="invalid_request")
