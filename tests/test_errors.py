import pytest

from advisor_mail.errors import (
    ApiResult,
    AuthError,
    ClientError,
    ForbiddenError,
    NotFoundError,
    OverloadedError,
    RateLimitError,
    ServerError,
    TransportError,
    UnexpectedError,
    classify_error,
)


class TestClassifyError:
    """Test mapping HTTP statuses to error categories."""

    @pytest.mark.parametrize(
        "status,error_class,category",
        [
            (400, ClientError, "bad_request"),
            (401, AuthError, "unauthorized"),
            (403, ForbiddenError, "forbidden"),
            (404, NotFoundError, "not_found"),
            (429, RateLimitError, "rate_limited"),
            (500, ServerError, "server_error"),
            (502, ServerError, "server_error"),
            (503, OverloadedError, "overloaded"),
            (504, ServerError, "server_error"),
            (418, UnexpectedError, "unexpected"),
        ],
    )
    def test_status_categories(self, status, error_class, category):
        error = classify_error(status)

        assert type(error) is error_class
        assert error.category == category
        assert error.status_code == status

    def test_family_relationships(self):
        """Forbidden counts as an auth failure, overloaded as a server failure."""
        assert isinstance(classify_error(403), AuthError)
        assert isinstance(classify_error(404), ClientError)
        assert isinstance(classify_error(503), ServerError)

    def test_retryable_flags(self):
        assert classify_error(429).retryable
        assert classify_error(500).retryable
        assert classify_error(503).retryable
        assert not classify_error(400).retryable
        assert not classify_error(401).retryable
        assert TransportError("boom").retryable

    def test_details_appended(self):
        body = '{"error": {"message": "No thread found with id thread_x"}}'
        error = classify_error(404, body)

        assert error.message.startswith("Not Found:")
        assert error.message.endswith(f"Details: {body}")
        assert error.details == body

    def test_unreadable_body_degrades(self):
        error = classify_error(500, read_failure="stream closed")

        assert "Failed to read error details: stream closed" in error.message
        assert error.details is None

    def test_unexpected_status_mentions_code(self):
        assert "418" in classify_error(418).message

    def test_pure_function(self):
        """Same status and body always give an equal error."""
        first = classify_error(429, "slow down")
        second = classify_error(429, "slow down")

        assert first == second
        assert first.message == second.message
        assert classify_error(429, "slow down") != classify_error(429, "other")


class TestApiResult:
    def test_success(self):
        result = ApiResult.success('{"id": "x"}')
        assert result.ok
        assert result.body == '{"id": "x"}'

    def test_failure(self):
        result = ApiResult.failure(TransportError("refused"))
        assert not result.ok
        assert result.body is None
        assert result.error.category == "transport"
