"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

Only InvalidInputException is meant to cross the drafting pipeline boundary.
Provider, retrieval and synthesis failures are absorbed by the pipeline's
fallback policies and are raised internally so that each policy is explicit.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class InvalidInputException(ValidationException):
    """Inquiry text is missing or blank; there is nothing to answer."""

    def __init__(self, message: str = "Inquiry text must not be empty", details: Optional[dict] = None):
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class ProviderUnavailableException(ExternalServiceException):
    """
    Embedding or generation service errored, timed out or returned garbage.

    Network, auth and rate-limit failures all collapse to this type at the
    client boundary.
    """

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("LLM Provider", message, details)


class VectorStoreException(ExternalServiceException):
    """Exception for vector store failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Vector Store", message, details)


class NotificationException(ExternalServiceException):
    """Exception for operator notification failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Slack", message, details)


class RetrievalDegradedException(DomainException):
    """Similarity search produced no passage usable as grounding."""

    def __init__(self, reason: str, details: Optional[dict] = None):
        self.reason = reason
        super().__init__(f"Retrieval degraded: {reason}", details or {"reason": reason})


class SynthesisFailedException(DomainException):
    """Generation errored or returned an empty completion."""

    def __init__(self, reason: str, details: Optional[dict] = None):
        self.reason = reason
        super().__init__(f"Synthesis failed: {reason}", details or {"reason": reason})
