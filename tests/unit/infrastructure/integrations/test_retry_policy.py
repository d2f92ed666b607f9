"""Tests for RetryPolicy, status classification and Retry-After parsing."""

from datetime import UTC, datetime, timedelta
from email.utils import format_datetime

import pytest

from previewspot.config import RetrySettings
from previewspot.infrastructure.integrations.retry_policy import (
    RetryAction,
    RetryPolicy,
    classify_status,
    parse_retry_after,
)


class TestClassifyStatus:
    """Test the status -> action table."""

    @pytest.mark.parametrize(
        ("status_code", "action"),
        [
            (200, RetryAction.SUCCESS),
            (204, RetryAction.SUCCESS),
            (401, RetryAction.REAUTH),
            (403, RetryAction.REAUTH),
            (429, RetryAction.RATE_LIMITED),
            (500, RetryAction.SERVER_ERROR),
            (503, RetryAction.SERVER_ERROR),
            (404, RetryAction.NOT_FOUND),
            (400, RetryAction.FAIL),
            (422, RetryAction.FAIL),
        ],
    )
    def test_classification(self, status_code: int, action: RetryAction) -> None:
        assert classify_status(status_code) is action


class TestParseRetryAfter:
    """Test Retry-After header parsing."""

    def test_delta_seconds(self) -> None:
        assert parse_retry_after("2") == 2.0
        assert parse_retry_after(" 1.5 ") == 1.5

    def test_missing_or_blank(self) -> None:
        assert parse_retry_after(None) is None
        assert parse_retry_after("  ") is None

    def test_malformed(self) -> None:
        assert parse_retry_after("soon") is None

    def test_zero_and_negative_are_ignored(self) -> None:
        assert parse_retry_after("0") is None
        assert parse_retry_after("-3") is None

    def test_http_date(self) -> None:
        retry_at = datetime.now(UTC) + timedelta(seconds=30)
        seconds = parse_retry_after(format_datetime(retry_at, usegmt=True))
        assert seconds is not None
        assert 25 < seconds <= 30

    def test_http_date_in_the_past(self) -> None:
        retry_at = datetime.now(UTC) - timedelta(minutes=5)
        assert parse_retry_after(format_datetime(retry_at, usegmt=True)) is None


class TestRetryPolicy:
    """Test backoff computation."""

    def test_rate_limit_honours_retry_after(self) -> None:
        policy = RetryPolicy()
        assert policy.delay_for(RetryAction.RATE_LIMITED, 1, "2") == 2.0

    def test_rate_limit_without_header_is_linear(self) -> None:
        policy = RetryPolicy()
        assert policy.delay_for(RetryAction.RATE_LIMITED, 1) == pytest.approx(0.5)
        assert policy.delay_for(RetryAction.RATE_LIMITED, 2) == pytest.approx(1.0)

    def test_server_error_is_linear(self) -> None:
        policy = RetryPolicy()
        assert policy.delay_for(RetryAction.SERVER_ERROR, 1) == pytest.approx(0.3)
        assert policy.delay_for(RetryAction.SERVER_ERROR, 2) == pytest.approx(0.6)

    def test_server_error_ignores_retry_after(self) -> None:
        policy = RetryPolicy()
        assert policy.delay_for(RetryAction.SERVER_ERROR, 1, "10") == pytest.approx(0.3)

    def test_non_retryable_actions_have_no_delay(self) -> None:
        policy = RetryPolicy()
        assert policy.delay_for(RetryAction.NOT_FOUND, 1) == 0.0

    def test_from_settings(self) -> None:
        policy = RetryPolicy.from_settings(
            RetrySettings(max_attempts=5, server_error_backoff=1.0, rate_limit_backoff=2.0)
        )
        assert policy.max_attempts == 5
        assert policy.delay_for(RetryAction.SERVER_ERROR, 2) == pytest.approx(2.0)
        assert policy.delay_for(RetryAction.RATE_LIMITED, 1) == pytest.approx(2.0)

    def test_custom_classifier(self) -> None:
        policy = RetryPolicy(classifier=lambda code: RetryAction.FAIL)
        assert policy.classify(500) is RetryAction.FAIL
