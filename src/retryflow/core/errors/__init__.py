"""
Error classification and exception hierarchy.

Provides:
- ErrorCategory enum for classifying errors
- RetryFlowError hierarchy for typed exceptions
- Classification utilities used by retry policies
"""

from retryflow.core.errors.exceptions import (
    AttemptBudgetExhaustedError,
    DeadLetterHandoffError,
    InvalidStatusTransitionError,
    PermanentError,
    PolicyValidationError,
    ProcessorNotRegisteredError,
    RecordNotFoundError,
    RetryFlowError,
    RetryStoreError,
    TransientError,
    classify_exception,
    describe_error,
    is_retryable_error,
)
from retryflow.core.types import ErrorCategory

__all__ = [
    # Enums
    "ErrorCategory",
    # Base classes
    "RetryFlowError",
    "TransientError",
    "PermanentError",
    # Engine errors
    "RetryStoreError",
    "RecordNotFoundError",
    "InvalidStatusTransitionError",
    "AttemptBudgetExhaustedError",
    "PolicyValidationError",
    "ProcessorNotRegisteredError",
    "DeadLetterHandoffError",
    # Classification utilities
    "classify_exception",
    "is_retryable_error",
    "describe_error",
]
