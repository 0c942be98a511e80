import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import openai
from openai import OpenAI

from advisor_mail.errors import ApiResult, TransportError, classify_error
from advisor_mail.response_log import ResponseLog

BETA_HEADER = {"OpenAI-Beta": "assistants=v2"}

# ----------------------------
# Client Construction
# ----------------------------

def create_openai_client(api_key: str, base_url: Optional[str] = None,
                         timeout: float = 30.0, http_client: Optional[httpx.Client] = None) -> OpenAI:
    """
    Build the OpenAI client used for every request.

    Retries are disabled so that each call performs exactly one request and the
    caller decides what to do with a classified failure.

    Args:
        api_key: OpenAI API key, sent as a bearer token
        base_url: Alternative API root, mainly for tests and proxies
        timeout: Per-request timeout in seconds
        http_client: Preconfigured httpx client to send requests through

    Returns:
        OpenAI: Client instance owned by the caller
    """
    kwargs: Dict[str, Any] = {"api_key": api_key, "max_retries": 0, "timeout": timeout}
    if base_url:
        kwargs["base_url"] = base_url
    if http_client is not None:
        kwargs["http_client"] = http_client
    return OpenAI(**kwargs)

# ----------------------------
# Transport
# ----------------------------

class AssistantTransport:
    """
    Performs single authenticated requests against the Assistants API.

    Successful bodies are appended to the response log under the caller's category
    before being returned. HTTP errors are classified; network failures become a
    ``TransportError``. Neither kind of failure is written to the response log.
    """

    def __init__(self, client: OpenAI, response_log: Optional[ResponseLog] = None) -> None:
        self.client = client
        self.response_log = response_log if response_log is not None else ResponseLog()

    def call(self, label: str, category: str, send: Callable[[], Any]) -> ApiResult:
        """
        Run one SDK ``with_raw_response`` call and return its raw body or classified error.

        Args:
            label: Short description of the request for log lines
            category: Response log category for a successful body
            send: Zero-argument callable performing the SDK call

        Returns:
            ApiResult: Raw body on success, the error otherwise
        """
        return self._perform(label, category, lambda: send().http_response)

    def request(self, method: str, path: str, category: str, body: Optional[Dict[str, Any]] = None,
                params: Optional[Dict[str, Any]] = None,
                files: Optional[List[Tuple[str, Tuple[str, bytes]]]] = None,
                beta: bool = True) -> ApiResult:
        """
        Send one request to a resource path and return its raw body or classified error.

        Args:
            method: HTTP method ('get', 'post' or 'delete')
            path: Resource path relative to the API root, e.g. '/threads'
            category: Response log category for a successful body
            body: JSON body (form fields when files are given)
            params: Query string parameters
            files: Multipart file parts as (field, (filename, bytes)) tuples
            beta: Whether to send the assistants protocol-version header

        Returns:
            ApiResult: Raw body on success, the error otherwise
        """
        headers: Dict[str, str] = dict(BETA_HEADER) if beta else {}
        if files:
            headers["Content-Type"] = "multipart/form-data"
        options: Dict[str, Any] = {"headers": headers}
        if params:
            options["params"] = params

        method = method.lower()
        if method == "get":
            send = lambda: self.client.get(path, cast_to=httpx.Response, options=options)
        elif method == "post":
            send = lambda: self.client.post(path, cast_to=httpx.Response, body=body, files=files, options=options)
        elif method == "delete":
            send = lambda: self.client.delete(path, cast_to=httpx.Response, options=options)
        else:
            raise ValueError(f"Unsupported HTTP method: {method}")
        return self._perform(f"{method.upper()} {path}", category, send)

    def _perform(self, label: str, category: str, send: Callable[[], httpx.Response]) -> ApiResult:
        try:
            response = send()
        except openai.APIStatusError as e:
            error = classify_error(e.status_code, *_read_error_body(e.response))
            logging.error(f"{label} failed: {error.message}")
            return ApiResult.failure(error)
        except openai.APIConnectionError as e:
            logging.error(f"Failed to reach OpenAI API for {label}: {str(e)}")
            return ApiResult.failure(TransportError(f"Connection error: {str(e)}"))

        try:
            text = response.text
        except (httpx.HTTPError, httpx.StreamError) as e:
            logging.error(f"Failed to read response body for {label}: {str(e)}")
            return ApiResult.failure(TransportError(f"Failed to read response body: {str(e)}"))

        self.response_log.append(category, text)
        return ApiResult.success(text)

    def test_api_key(self) -> bool:
        """Check whether the configured key is accepted by the API."""
        result = self.call("list models", "api_key_check", lambda: self.client.models.with_raw_response.list())
        return result.ok


def _read_error_body(response: httpx.Response) -> Tuple[Optional[str], Optional[str]]:
    try:
        return response.text, None
    except (httpx.HTTPError, httpx.StreamError) as e:
        return None, str(e)
