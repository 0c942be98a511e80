from dataclasses import dataclass
from typing import Optional

# ----------------------------
# Error Taxonomy
# ----------------------------

class AssistantAPIError(Exception):
    """
    Base class for every failure the assistant engine can observe.

    Attributes:
        category: Short machine-readable name of the failure kind
        status_code: HTTP status that produced the error, if any
        retryable: Whether repeating the same request may succeed
        details: Upstream error body, when it could be read
    """
    category = "error"
    retryable = False

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AssistantAPIError):
            return NotImplemented
        return (
            type(self) is type(other)
            and self.category == other.category
            and self.status_code == other.status_code
            and self.message == other.message
        )

    def __hash__(self) -> int:
        return hash((type(self), self.category, self.status_code, self.message))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(category={self.category!r}, status_code={self.status_code!r})"


class TransportError(AssistantAPIError):
    """The request failed before any HTTP status was received."""
    category = "transport"
    retryable = True


class ClientError(AssistantAPIError):
    category = "bad_request"


class NotFoundError(ClientError):
    category = "not_found"


class AuthError(AssistantAPIError):
    category = "unauthorized"


class ForbiddenError(AuthError):
    category = "forbidden"


class RateLimitError(AssistantAPIError):
    category = "rate_limited"
    retryable = True


class ServerError(AssistantAPIError):
    category = "server_error"
    retryable = True


class OverloadedError(ServerError):
    category = "overloaded"


class UnexpectedError(AssistantAPIError):
    category = "unexpected"


class ProtocolError(AssistantAPIError):
    """A successful response did not contain what the operation expected."""
    category = "protocol"


class RunTimeoutError(AssistantAPIError):
    """A run did not reach a terminal status within the polling budget."""
    category = "timeout"

# ----------------------------
# Status Classification
# ----------------------------

_UNAUTHORIZED_MESSAGE = (
    "Unauthorized: The API key is invalid or missing.\n"
    "Possible Causes:\n"
    "- Invalid Authentication: Ensure the correct API key and requesting organization are being used.\n"
    "- Incorrect API key provided: Verify the API key, clear your browser cache, or generate a new one.\n"
    "- You must be a member of an organization to use the API: Contact support to join an organization "
    "or ask your organization manager to invite you."
)

_FORBIDDEN_MESSAGE = (
    "Forbidden: You do not have permission to access this resource.\n"
    "Cause: You are accessing the API from an unsupported country, region, or territory.\n"
    "Solution: Please see the OpenAI documentation for supported regions."
)

_RATE_LIMIT_MESSAGE = (
    "Too Many Requests: You have exceeded the rate limit.\n"
    "Possible Causes:\n"
    "- Rate limit reached for requests: Pace your requests. Read the Rate limit guide.\n"
    "- You exceeded your current quota: Check your plan and billing details, or buy more credits."
)

_OVERLOADED_MESSAGE = (
    "Service Unavailable: The server is not ready to handle the request.\n"
    "Possible Causes:\n"
    "- The engine is currently overloaded: Retry your requests after a brief wait.\n"
    "- Slow Down: Reduce your request rate to its original level, maintain a consistent rate for at "
    "least 15 minutes, and then gradually increase it."
)

STATUS_CATEGORIES = {
    400: (ClientError, "Bad Request: The server could not understand the request due to invalid syntax."),
    401: (AuthError, _UNAUTHORIZED_MESSAGE),
    403: (ForbiddenError, _FORBIDDEN_MESSAGE),
    404: (NotFoundError, "Not Found: The requested resource could not be found."),
    429: (RateLimitError, _RATE_LIMIT_MESSAGE),
    500: (ServerError, (
        "Internal Server Error: The server encountered an error and could not complete your request.\n"
        "Solution: Retry your request after a brief wait and contact support if the issue persists. "
        "Check the status page."
    )),
    502: (ServerError, "Bad Gateway: The server received an invalid response from the upstream server."),
    503: (OverloadedError, _OVERLOADED_MESSAGE),
    504: (ServerError, "Gateway Timeout: The server did not receive a timely response from the upstream server."),
}


def classify_error(status_code: int, body: Optional[str] = None,
                   read_failure: Optional[str] = None) -> AssistantAPIError:
    """
    Map a non-2xx HTTP status to a categorized error.

    The result depends only on the arguments, so the same status and body always
    produce an equal error.

    Args:
        status_code: HTTP status code of the failed response
        body: Verbatim upstream error body, if it was read
        read_failure: Reason the body could not be read, if reading failed

    Returns:
        AssistantAPIError: Instance of the category class for the status
    """
    error_class, template = STATUS_CATEGORIES.get(
        status_code,
        (UnexpectedError, f"Unexpected Error: Received HTTP response code {status_code}"),
    )
    if body is not None:
        message = f"{template}\nDetails: {body}"
    elif read_failure is not None:
        message = f"{template}\nFailed to read error details: {read_failure}"
    else:
        message = template
    return error_class(message, status_code=status_code, details=body)

# ----------------------------
# Result Type
# ----------------------------

@dataclass
class ApiResult:
    """Outcome of one request: the raw body on success, the classified error otherwise."""
    body: Optional[str] = None
    error: Optional[AssistantAPIError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, body: str) -> "ApiResult":
        return cls(body=body)

    @classmethod
    def failure(cls, error: AssistantAPIError) -> "ApiResult":
        return cls(error=error)
