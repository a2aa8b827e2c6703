from __future__ import annotations

import pytest

from summarize_document.errors import (
    AuthenticationError,
    ClientConfigurationError,
    RateLimitError,
    RemoteError,
    RetryExhaustedError,
    TransientError,
)
from summarize_document.summaries.retry import (
    CancellationToken,
    OperationCancelled,
    RetryPolicy,
    call_with_retry,
    is_retryable,
)


class Script:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def test_classification():
    assert is_retryable(RateLimitError("429"))
    assert is_retryable(TransientError("boom"))
    assert is_retryable(RemoteError("The service overloaded, try later"))
    assert is_retryable(RemoteError("Connection reset by peer"))
    assert not is_retryable(RemoteError("Requested entity was not found"))
    assert not is_retryable(AuthenticationError("rate limit on invalid key"))
    assert not is_retryable(ClientConfigurationError("timeout field malformed"))
    assert not is_retryable(ValueError("timeout"))


def test_default_delays_double_from_two_seconds():
    policy = RetryPolicy(jitter=False)
    assert [policy.delay_for(i) for i in range(3)] == [2.0, 4.0, 8.0]


def test_jitter_stays_within_bounds():
    policy = RetryPolicy()
    for _ in range(20):
        assert 1.0 <= policy.delay_for(0) <= 3.0


def test_succeeds_after_two_retryable_failures(policy, sleeper):
    operation = Script(TransientError("service overloaded"), RateLimitError("rate limit"), "done")
    value, attempts = call_with_retry(operation, policy=policy, sleep=sleeper)
    assert value == "done"
    assert attempts == 3
    assert sleeper.delays == [2.0, 4.0]


def test_non_retryable_error_fails_immediately(policy, sleeper):
    operation = Script(AuthenticationError("bad key"))
    with pytest.raises(AuthenticationError):
        call_with_retry(operation, policy=policy, sleep=sleeper)
    assert operation.calls == 1
    assert sleeper.delays == []


def test_exhausted_retries_wrap_last_error(policy, sleeper):
    last = TransientError("timeout 3")
    operation = Script(TransientError("timeout 1"), TransientError("timeout 2"), last)
    with pytest.raises(RetryExhaustedError) as excinfo:
        call_with_retry(operation, policy=policy, sleep=sleeper)
    assert excinfo.value.attempts == 3
    assert excinfo.value.last_error is last
    assert "after 3 attempts" in str(excinfo.value)
    assert not is_retryable(excinfo.value)


def test_total_delay_ceiling_stops_retrying(sleeper):
    policy = RetryPolicy(max_attempts=5, jitter=False, max_total_delay=5.0)
    operation = Script(TransientError("a"), TransientError("b"), TransientError("c"), "never")
    with pytest.raises(RetryExhaustedError) as excinfo:
        call_with_retry(operation, policy=policy, sleep=sleeper)
    assert excinfo.value.attempts == 2
    assert sleeper.delays == [2.0]


def test_cancelled_before_first_attempt(policy):
    token = CancellationToken()
    token.cancel()
    operation = Script("unused")
    with pytest.raises(OperationCancelled):
        call_with_retry(operation, policy=policy, cancel_token=token)
    assert operation.calls == 0


def test_cancel_during_backoff(policy):
    token = CancellationToken()

    def cancel_while_sleeping(_seconds):
        token.cancel()

    operation = Script(TransientError("overloaded"), "late")
    with pytest.raises(OperationCancelled):
        call_with_retry(operation, policy=policy, cancel_token=token, sleep=cancel_while_sleeping)
    assert operation.calls == 1


def test_result_after_cancellation_is_discarded(policy):
    token = CancellationToken()

    def operation():
        token.cancel()
        return "too late"

    with pytest.raises(OperationCancelled):
        call_with_retry(operation, policy=policy, cancel_token=token)


def test_token_wait_returns_immediately_when_cancelled():
    token = CancellationToken()
    token.cancel()
    assert token.wait(30) is True


def test_non_retryable_error_records_attempt_count(policy, sleeper):
    with pytest.raises(AuthenticationError) as excinfo:
        call_with_retry(Script(AuthenticationError("bad key")), policy=policy, sleep=sleeper)
    assert excinfo.value.attempts == 1


def test_generic_messages_outside_marker_set_are_not_retried(policy, sleeper):
    operation = Script(RemoteError("Model temporarily unavailable for this project"))
    with pytest.raises(RemoteError) as excinfo:
        call_with_retry(operation, policy=policy, sleep=sleeper)
    assert not isinstance(excinfo.value, RetryExhaustedError)
    assert operation.calls == 1
    assert sleeper.delays == []
