"""
Core Application - Infrastructure & Base Classes

This app contains infrastructure code shared by the domain apps.
It holds no payment-specific logic.

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes
    - ValidationError: Input/configuration validation failures
    - ConflictError: State conflicts
    - ExternalServiceError: Third-party service failures
    - TransientDependencyError / FatalDependencyError / RetryExhaustedError:
      Dependency failure taxonomy

Retry (import from core.retry):
    - RetryPolicy: Immutable attempt/backoff configuration
    - ErrorClassifier: Allow-list classifier (RETRYABLE / FATAL)
    - RetryExecutor, execute: Run an operation under a policy
    - AttemptRecord: Per-attempt record for hooks

Database (import from core.database):
    - DATABASE_CLASSIFIER: Connectivity-error classifier
    - run_with_db_retry: Retry an ORM operation
    - connection_state: Connected/disconnected signal for an alias

Usage:
    from core.database import run_with_db_retry
    from core.retry import RetryExecutor, RetryPolicy

Note:
    - Business logic should NOT go here. Extend core classes in your domain apps.
    - core.retry and core.database import Django settings lazily; they are
      not re-exported here to avoid import-time configuration.
"""

# Exceptions (no Django dependencies)
from .exceptions import (
    BaseApplicationError,
    ConflictError,
    DependencyError,
    ExternalServiceError,
    FatalDependencyError,
    RetryExhaustedError,
    RetryPolicyError,
    TransientDependencyError,
    ValidationError,
)

__all__ = [
    # Exceptions
    "BaseApplicationError",
    "ValidationError",
    "ConflictError",
    "ExternalServiceError",
    "DependencyError",
    "TransientDependencyError",
    "FatalDependencyError",
    "RetryExhaustedError",
    "RetryPolicyError",
]
