"""
Custom Exceptions for Subie

Hierarchical exception classes for proper error handling across layers.
"""

from typing import Optional, Dict, Any


class SubieError(Exception):
    """Base exception for all Subie errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details
        }


class ValidationError(SubieError):
    """Raised when mutation input is malformed."""

    def __init__(
        self,
        message: str,
        fields: Optional[list] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if fields:
            details["fields"] = fields
        super().__init__(message, details, original_error)


class DatabaseError(SubieError):
    """Raised when database operations fail."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if table:
            details["table"] = table
        super().__init__(message, details, original_error)


class NotFoundError(DatabaseError):
    """Raised when a mutation target is absent or not owned by the caller."""
    pass


class DuplicateError(DatabaseError):
    """Raised when attempting to create a duplicate resource."""
    pass


class ConfigurationError(SubieError):
    """Raised when a provider credential is missing or a placeholder."""

    def __init__(
        self,
        message: str,
        missing_keys: Optional[list] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if missing_keys:
            details["missing_keys"] = missing_keys
        super().__init__(message, details, original_error)


class ProviderError(SubieError):
    """Raised when an entitlement provider operation fails."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if provider:
            details["provider"] = provider
        if operation:
            details["operation"] = operation
        super().__init__(message, details, original_error)


class TransientProviderError(ProviderError):
    """Network or provider failure. Retryable by an explicit user action."""
    pass


class ProviderNotInitializedError(ProviderError):
    """Raised when a purchase action hits a provider that is not ready."""
    pass


class AccessDeniedError(SubieError):
    """Raised by the HTTP layer when a role guard rejects the caller."""

    def __init__(
        self,
        message: str = "You don't have permission to access this area.",
        required: Optional[str] = None,
        redirect_to: Optional[str] = None,
    ):
        details = {}
        if required:
            details["required"] = required
        if redirect_to:
            details["redirect_to"] = redirect_to
        super().__init__(message, details)
