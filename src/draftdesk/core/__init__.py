"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from draftdesk.core.exceptions import (
    ApplicationException,
    DomainException,
    ValidationException,
    InvalidInputException,
    ConfigurationException,
    ExternalServiceException,
    ProviderUnavailableException,
    VectorStoreException,
    NotificationException,
    RetrievalDegradedException,
    SynthesisFailedException,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "ValidationException",
    "InvalidInputException",
    "ConfigurationException",
    "ExternalServiceException",
    "ProviderUnavailableException",
    "VectorStoreException",
    "NotificationException",
    "RetrievalDegradedException",
    "SynthesisFailedException",
]
