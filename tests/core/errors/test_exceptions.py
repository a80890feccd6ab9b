"""
Tests for exception hierarchy and error classification.
"""

from retryflow.core.errors import (
    AttemptBudgetExhaustedError,
    DeadLetterHandoffError,
    ErrorCategory,
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


class TestErrorCategory:
    """Test ErrorCategory enum."""

    def test_all_categories_exist(self):
        """All expected categories are defined."""
        assert ErrorCategory.TRANSIENT.value == "transient"
        assert ErrorCategory.PERMANENT.value == "permanent"
        assert ErrorCategory.UNKNOWN.value == "unknown"


class TestRetryFlowError:
    """Test base RetryFlowError class."""

    def test_basic_error(self):
        """Can create basic error with message."""
        err = RetryFlowError("Something went wrong")
        assert err.message == "Something went wrong"
        assert err.cause is None
        assert err.context == {}
        assert err.category == ErrorCategory.UNKNOWN

    def test_error_with_cause(self):
        """Can wrap another exception."""
        cause = ValueError("Invalid value")
        err = RetryFlowError("Wrapper message", cause=cause)
        assert err.cause == cause
        assert "Caused by" in str(err)

    def test_error_with_context(self):
        err = RetryFlowError("Failed", context={"event_id": "evt-1"})
        assert err.context["event_id"] == "evt-1"

    def test_unknown_is_retryable(self):
        assert RetryFlowError("x").is_retryable


class TestDomainErrors:
    def test_transient_is_retryable(self):
        err = TransientError("Service busy")
        assert err.category == ErrorCategory.TRANSIENT
        assert err.is_retryable

    def test_permanent_is_not_retryable(self):
        err = PermanentError("Bad payload")
        assert err.category == ErrorCategory.PERMANENT
        assert not err.is_retryable


class TestEngineErrors:
    def test_record_not_found_is_store_error(self):
        err = RecordNotFoundError("evt-9")
        assert isinstance(err, RetryStoreError)
        assert err.event_id == "evt-9"
        assert "evt-9" in str(err)

    def test_invalid_transition_carries_states(self):
        err = InvalidStatusTransitionError("evt-1", "SUCCEEDED", "RETRYING")
        assert err.current == "SUCCEEDED"
        assert err.target == "RETRYING"
        assert "SUCCEEDED -> RETRYING" in str(err)

    def test_budget_exhausted(self):
        err = AttemptBudgetExhaustedError("evt-1", 3)
        assert err.max_attempts == 3
        assert not err.is_retryable

    def test_policy_validation_error_is_value_error(self):
        assert isinstance(PolicyValidationError("bad"), ValueError)

    def test_processor_not_registered(self):
        err = ProcessorNotRegisteredError("OrderPlaced")
        assert err.event_type == "OrderPlaced"
        assert "OrderPlaced" in str(err)

    def test_handoff_error_is_transient(self):
        assert DeadLetterHandoffError("sink down").category == ErrorCategory.TRANSIENT


class TestClassifyException:
    def test_library_errors_keep_their_category(self):
        assert classify_exception(PermanentError("x")) == ErrorCategory.PERMANENT
        assert classify_exception(TransientError("x")) == ErrorCategory.TRANSIENT

    def test_builtin_timeout_and_connection_are_transient(self):
        assert classify_exception(TimeoutError()) == ErrorCategory.TRANSIENT
        assert classify_exception(ConnectionResetError()) == ErrorCategory.TRANSIENT

    def test_transient_markers_in_message(self):
        assert classify_exception(Exception("HTTP 503 from upstream")) == ErrorCategory.TRANSIENT
        assert classify_exception(Exception("Rate limit exceeded")) == ErrorCategory.TRANSIENT

    def test_permanent_markers_in_message(self):
        assert classify_exception(Exception("Resource not found")) == ErrorCategory.PERMANENT
        assert classify_exception(ValueError("invalid quantity")) == ErrorCategory.PERMANENT

    def test_unmatched_is_unknown(self):
        assert classify_exception(RuntimeError("boom")) == ErrorCategory.UNKNOWN


class TestIsRetryableError:
    def test_unknown_errors_are_retried(self):
        assert is_retryable_error(RuntimeError("boom"))

    def test_permanent_errors_are_not(self):
        assert not is_retryable_error(Exception("403 Forbidden"))
        assert not is_retryable_error(PermanentError("x"))


class TestDescribeError:
    def test_type_and_message(self):
        assert describe_error(ValueError("bad sku")) == "ValueError: bad sku"

    def test_truncates_long_messages(self):
        text = describe_error(RuntimeError("x" * 1000), max_length=50)
        assert len(text) == 50
        assert text.endswith("...")
