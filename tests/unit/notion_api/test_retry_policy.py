"""Unit tests for notion_api.retry_logic module."""

import pytest
from unittest.mock import MagicMock, Mock

from src.notion_api.errors import (
    ErrorClass,
    InvalidCredentialsError,
    ObjectNotFoundError,
    RemoteAPIError,
    RetryExhaustedError,
)
from src.notion_api.retry_logic import (
    RetryPolicy,
    as_decorator,
    classify_error,
    classify_status,
)


def rate_limit_error():
    return RemoteAPIError(429, 'rate_limited', 'Slow down', ErrorClass.RATE_LIMITED)


class TestClassifyStatus:
    """Test cases for classify_status function."""

    @pytest.mark.parametrize("status,expected", [
        (429, ErrorClass.RATE_LIMITED),
        (409, ErrorClass.CONFLICT),
        (500, ErrorClass.SERVER_ERROR),
        (502, ErrorClass.SERVER_ERROR),
        (503, ErrorClass.SERVER_ERROR),
        (400, ErrorClass.OTHER),
        (404, ErrorClass.OTHER),
    ])
    def test_maps_status_codes(self, status, expected):
        assert classify_status(status) is expected


class TestClassifyError:
    """Test cases for classify_error function."""

    def test_uses_remote_api_error_classification(self):
        error = RemoteAPIError(400, 'conflict_error', classification=ErrorClass.CONFLICT)
        assert classify_error(error) is ErrorClass.CONFLICT

    def test_detects_status_code_attribute(self):
        error = Exception("API error")
        error.status_code = 429
        assert classify_error(error) is ErrorClass.RATE_LIMITED

    def test_detects_response_status_code_attribute(self):
        error = Exception("API error")
        error.response = MagicMock()
        error.response.status_code = 503
        assert classify_error(error) is ErrorClass.SERVER_ERROR

    def test_detects_notion_error_code_attribute(self):
        error = Exception("API error")
        error.code = 'conflict_error'
        assert classify_error(error) is ErrorClass.CONFLICT

    def test_plain_exception_is_other(self):
        assert classify_error(Exception("Something went wrong")) is ErrorClass.OTHER

    def test_typed_fatal_errors_are_other(self):
        assert classify_error(ObjectNotFoundError("abc")) is ErrorClass.OTHER
        assert classify_error(InvalidCredentialsError("https://api.notion.com/v1")) is ErrorClass.OTHER


class TestRetryPolicy:
    """Test cases for RetryPolicy.call and its backoff schedule."""

    def test_success_on_first_attempt(self):
        sleep = Mock()
        mock_func = MagicMock(return_value="success")
        policy = RetryPolicy(sleep=sleep)

        result = policy.call(mock_func, "arg1", kwarg1="value1")

        assert result == "success"
        mock_func.assert_called_once_with("arg1", kwarg1="value1")
        sleep.assert_not_called()

    def test_default_schedule_doubles_from_two_seconds(self):
        assert list(RetryPolicy().delays()) == [2.0, 4.0, 8.0, 16.0]

    def test_schedule_honors_base_delay(self):
        assert list(RetryPolicy(max_attempts=3, base_delay=0.5).delays()) == [0.5, 1.0]

    def test_rate_limited_twice_then_success(self):
        """Two rate limit responses then success: two delays, result returned."""
        sleep = Mock()
        mock_func = MagicMock(side_effect=[rate_limit_error(), rate_limit_error(), "success"])
        policy = RetryPolicy(max_attempts=5, sleep=sleep)

        result = policy.call(mock_func)

        assert result == "success"
        assert mock_func.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [2.0, 4.0]

    def test_succeeds_on_last_allowed_attempt(self):
        sleep = Mock()
        errors = [rate_limit_error() for _ in range(4)]
        mock_func = MagicMock(side_effect=errors + ["success"])
        policy = RetryPolicy(max_attempts=5, sleep=sleep)

        assert policy.call(mock_func) == "success"
        assert mock_func.call_count == 5
        assert sleep.call_count == 4

    def test_raises_retry_exhausted_after_max_attempts(self):
        sleep = Mock()
        last = RemoteAPIError(503, classification=ErrorClass.SERVER_ERROR)
        mock_func = MagicMock(side_effect=last)
        policy = RetryPolicy(max_attempts=5, sleep=sleep)

        with pytest.raises(RetryExhaustedError) as exc_info:
            policy.call(mock_func)

        assert exc_info.value.attempts == 5
        assert exc_info.value.last_error is last
        assert exc_info.value.__cause__ is last
        assert mock_func.call_count == 5
        assert sleep.call_count == 4
        assert "after 5 attempts" in str(exc_info.value)

    def test_conflict_is_retried(self):
        sleep = Mock()
        conflict = RemoteAPIError(409, 'conflict_error', classification=ErrorClass.CONFLICT)
        mock_func = MagicMock(side_effect=[conflict, "ok"])

        assert RetryPolicy(sleep=sleep).call(mock_func) == "ok"
        sleep.assert_called_once_with(2.0)

    def test_fails_fast_on_fatal_error(self):
        sleep = Mock()
        error = ObjectNotFoundError("abc")
        mock_func = MagicMock(side_effect=error)

        with pytest.raises(ObjectNotFoundError) as exc_info:
            RetryPolicy(sleep=sleep).call(mock_func)

        assert exc_info.value is error
        mock_func.assert_called_once()
        sleep.assert_not_called()

    def test_single_attempt_policy_never_sleeps(self):
        sleep = Mock()
        mock_func = MagicMock(side_effect=rate_limit_error())

        with pytest.raises(RetryExhaustedError):
            RetryPolicy(max_attempts=1, sleep=sleep).call(mock_func)

        sleep.assert_not_called()

    def test_custom_classifier(self):
        sleep = Mock()
        mock_func = MagicMock(side_effect=[ValueError("flaky"), "ok"])
        policy = RetryPolicy(classify=lambda e: ErrorClass.SERVER_ERROR, sleep=sleep)

        assert policy.call(mock_func) == "ok"

    @pytest.mark.parametrize("kwargs", [{'max_attempts': 0}, {'base_delay': -1}])
    def test_rejects_invalid_settings(self, kwargs):
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)


class TestAsDecorator:
    """Test cases for as_decorator function."""

    def test_decorator_applies_policy(self):
        sleep = Mock()
        calls = []

        @as_decorator(RetryPolicy(sleep=sleep))
        def fetch(block_id):
            calls.append(block_id)
            if len(calls) < 2:
                raise rate_limit_error()
            return f"children of {block_id}"

        assert fetch("abc") == "children of abc"
        assert calls == ["abc", "abc"]
        assert fetch.__name__ == "fetch"
