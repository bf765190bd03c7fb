"""
Custom exceptions for generation module.
"""

from typing import List, Optional


class GenerationException(Exception):
    """Base exception for generation module."""
    pass


class ValidationFailedException(GenerationException):
    """Exception raised when a submission is malformed. Nothing is persisted."""

    def __init__(
        self,
        message: str,
        errors: Optional[List[str]] = None,
        duplicate_correlation_ids: Optional[List[str]] = None,
        duplicate_filenames: Optional[List[str]] = None,
    ):
        self.errors = errors or []
        self.duplicate_correlation_ids = duplicate_correlation_ids or []
        self.duplicate_filenames = duplicate_filenames or []
        super().__init__(message)


class NotFoundException(GenerationException):
    """Exception raised when a referenced tenant resource does not exist."""

    def __init__(self, resource: str, resource_id: object):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found: {resource_id}")


class NoMatchingVariantException(GenerationException):
    """Exception raised when no variant satisfies the selection criteria."""
    pass


class RenderFailureException(GenerationException):
    """Exception raised when a template graph cannot be rendered."""
    pass


class ExpressionException(RenderFailureException):
    """Exception raised when an expression fails to evaluate."""
    pass


class ExpressionTimeoutException(ExpressionException):
    """Exception raised when a sandboxed script exceeds its time budget."""
    pass


class DocumentTooLargeException(RenderFailureException):
    """Exception raised when rendered output exceeds the size limit."""
    pass


class StorageFailureException(GenerationException):
    """Exception raised by content store backends."""
    pass


class ConfigurationException(GenerationException):
    """Exception raised for configuration errors."""
    pass


class JobNotFoundException(GenerationException):
    """Exception raised when generation job not found."""
    pass
