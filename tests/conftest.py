import uuid
from typing import Any, Dict, List, Tuple

import httpx
import mongomock
import pytest
from mongoengine import connect, disconnect

from advisor_mail.engine import AssistantEngine
from advisor_mail.models import Conversation, ConversationMessage
from advisor_mail.response_log import ResponseLog
from advisor_mail.transport import AssistantTransport, create_openai_client

BASE_URL = "https://api.test/v1"


class FakeAssistantsAPI:
    """
    In-memory stand-in for the Assistants API behind an httpx.MockTransport.

    Responses are queued per (method, path). The last queued response for a route
    is repeated once the queue is down to it. A response is a dict (200 JSON), a
    (status, payload) tuple, a str (200 raw text) or an exception to raise.
    """

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], List[Any]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, *responses: Any) -> None:
        self.routes.setdefault((method.upper(), path), []).extend(responses)

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method.upper() and _api_path(r) == path]

    def handle(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.requests.append(request)
        queue = self.routes.get((request.method, _api_path(request)))
        if not queue:
            return httpx.Response(404, json={"error": {"message": "No such resource."}})
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        if isinstance(response, tuple):
            status, payload = response
            if isinstance(payload, str):
                return httpx.Response(status, text=payload)
            return httpx.Response(status, json=payload)
        if isinstance(response, str):
            return httpx.Response(200, text=response)
        return httpx.Response(200, json=response)


def _api_path(request: httpx.Request) -> str:
    path = request.url.path
    return path[len("/v1"):] if path.startswith("/v1") else path


@pytest.fixture
def api() -> FakeAssistantsAPI:
    return FakeAssistantsAPI()


@pytest.fixture
def response_log() -> ResponseLog:
    return ResponseLog()


@pytest.fixture
def transport(api: FakeAssistantsAPI, response_log: ResponseLog) -> AssistantTransport:
    client = create_openai_client(
        "test-key",
        base_url=BASE_URL,
        http_client=httpx.Client(transport=httpx.MockTransport(api.handle)),
    )
    return AssistantTransport(client, response_log)


@pytest.fixture
def engine(transport: AssistantTransport) -> AssistantEngine:
    return AssistantEngine(transport)


@pytest.fixture
def mongo_db():
    connect(f"advisor_mail_test_{uuid.uuid4().hex}", host="mongodb://localhost",
            mongo_client_class=mongomock.MongoClient)
    yield
    Conversation.drop_collection()
    ConversationMessage.drop_collection()
    disconnect()
