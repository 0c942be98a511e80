import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from advisor_mail.errors import ApiResult, AssistantAPIError, ProtocolError
from advisor_mail.payloads import (
    AssistantRequest,
    AssistantUpdate,
    RunRequest,
    ThreadRequest,
    VectorStoreRequest,
    VectorStoreUpdate,
)
from advisor_mail.response_log import ResponseLog
from advisor_mail.transport import BETA_HEADER, AssistantTransport

# ----------------------------
# Run Status
# ----------------------------

class RunStatus:
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    REQUIRES_ACTION = "requires_action"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


FAILED_STATUSES = frozenset({RunStatus.FAILED, RunStatus.CANCELLED, RunStatus.EXPIRED})
TERMINAL_STATUSES = FAILED_STATUSES | {RunStatus.COMPLETED}


@dataclass
class RunState:
    """Observed state of a run: its id, status and any error the service attached."""
    id: str
    status: str
    last_error: Optional[Dict[str, Any]] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

# ----------------------------
# Response Parsing
# ----------------------------

def _parse_object(body: Optional[str]) -> Dict[str, Any]:
    try:
        data = json.loads(body or "")
    except ValueError as e:
        raise ProtocolError(f"Response is not valid JSON: {str(e)}")
    if not isinstance(data, dict):
        raise ProtocolError("Response is not a JSON object.")
    return data


def _require(data: Dict[str, Any], key: str) -> Any:
    value = data.get(key)
    if value is None:
        raise ProtocolError(f"Response is missing the '{key}' field.")
    return value


def _parse_run_state(data: Dict[str, Any]) -> RunState:
    return RunState(
        id=str(_require(data, "id")),
        status=str(_require(data, "status")),
        last_error=data.get("last_error"),
    )

# ----------------------------
# Resource Operations
# ----------------------------

class AssistantEngine:
    """
    One method per remote Assistants API action.

    Every method returns the single value its caller needs, or a sentinel
    (``None``, or ``False`` for flags) on any failure. The failure itself is kept
    in ``last_error``; nothing is raised to the caller.
    """

    def __init__(self, transport: AssistantTransport) -> None:
        self.transport = transport
        self.client = transport.client
        self.last_error: Optional[AssistantAPIError] = None
        # raw-response views of the SDK resources; bodies are parsed here
        self._files = self.client.files.with_raw_response
        self._vector_stores = self.client.vector_stores.with_raw_response
        self._assistants = self.client.beta.assistants.with_raw_response
        self._threads = self.client.beta.threads.with_raw_response
        self._messages = self.client.beta.threads.messages.with_raw_response
        self._runs = self.client.beta.threads.runs.with_raw_response

    @property
    def response_log(self) -> ResponseLog:
        return self.transport.response_log

    def _call(self, description: str, category: str, send: Callable[[], Any]) -> Optional[ApiResult]:
        return self._checked(description, self.transport.call(description, category, send))

    def _checked(self, description: str, result: ApiResult) -> Optional[ApiResult]:
        if not result.ok:
            self.last_error = result.error
            logging.error(f"Failed to {description}: [{result.error.category}] {result.error.message}")
            return None
        return result

    def _extract(self, description: str, result: Optional[ApiResult], parser) -> Any:
        if result is None:
            return None
        try:
            return parser(_parse_object(result.body))
        except ProtocolError as e:
            error = e
        except (AttributeError, KeyError, IndexError, TypeError) as e:
            error = ProtocolError(f"Response has an unexpected shape: {str(e)}")
        self.last_error = error
        logging.error(f"Unexpected response while trying to {description}: {error.message}")
        return None

    def _extract_id(self, description: str, result: Optional[ApiResult]) -> Optional[str]:
        value = self._extract(description, result, lambda data: str(_require(data, "id")))
        if value is not None:
            logging.debug(f"Succeeded to {description}; ID: {value}")
        return value

    # File management

    def upload_file(self, file: Union[str, Path], purpose: str = "assistants") -> Optional[str]:
        """
        Upload a local file and return its file ID.

        Args:
            file: Path of the file to upload
            purpose: Intended use of the file, 'assistants' for file search

        Returns:
            str: The uploaded file ID, or None on failure
        """
        path = Path(file)
        try:
            content = path.read_bytes()
        except OSError as e:
            logging.error(f"Failed to read file {path} for upload: {str(e)}")
            return None
        description = f"upload file {path.name}"
        result = self._call(description, "file_upload", lambda: self._files.create(
            file=(path.name, content), purpose=purpose, extra_headers=BETA_HEADER,
        ))
        return self._extract_id(description, result)

    def retrieve_file(self, file_id: str) -> Optional[Dict[str, Any]]:
        description = f"retrieve file {file_id}"
        result = self._call(description, "file_info", lambda: self._files.retrieve(
            file_id, extra_headers=BETA_HEADER,
        ))
        return self._extract(description, result, lambda data: data)

    # Vector stores

    def create_vector_store(self, request: VectorStoreRequest) -> Optional[str]:
        result = self._call("create vector store", "vector_store", lambda: self._vector_stores.create(
            **request.to_body(), extra_headers=BETA_HEADER,
        ))
        return self._extract_id("create vector store", result)

    def modify_vector_store(self, vector_store_id: str, update: VectorStoreUpdate) -> bool:
        description = f"modify vector store {vector_store_id}"
        result = self._call(description, "vector_store_modify", lambda: self._vector_stores.update(
            vector_store_id, **update.to_body(), extra_headers=BETA_HEADER,
        ))
        return self._extract_id(description, result) is not None

    # Assistants

    def create_assistant(self, request: AssistantRequest) -> Optional[str]:
        result = self._call("create assistant", "assistant", lambda: self._assistants.create(
            **request.to_body(), extra_headers=BETA_HEADER,
        ))
        return self._extract_id("create assistant", result)

    def retrieve_assistant(self, assistant_id: str) -> Optional[Dict[str, Any]]:
        description = f"retrieve assistant {assistant_id}"
        result = self._call(description, "assistant_retrieve", lambda: self._assistants.retrieve(
            assistant_id, extra_headers=BETA_HEADER,
        ))
        return self._extract(description, result, lambda data: data)

    def modify_assistant(self, assistant_id: str, update: AssistantUpdate) -> bool:
        description = f"update assistant {assistant_id}"
        result = self._call(description, "assistant_update", lambda: self._assistants.update(
            assistant_id, **update.to_body(), extra_headers=BETA_HEADER,
        ))
        return self._extract_id(description, result) is not None

    def list_assistants(self, after: Optional[str] = None, before: Optional[str] = None,
                        limit: int = 0, order: Optional[str] = None) -> Optional[List[str]]:
        """List assistant IDs; absent filters are left out of the query string."""
        params: Dict[str, Any] = {}
        if after is not None:
            params["after"] = after
        if before is not None:
            params["before"] = before
        if limit > 0:
            params["limit"] = min(limit, 100)
        if order is not None:
            params["order"] = order
        result = self._call("list assistants", "assistants_list", lambda: self._assistants.list(
            **params, extra_headers=BETA_HEADER,
        ))
        return self._extract(
            "list assistants", result,
            lambda data: [str(_require(item, "id")) for item in _require(data, "data")],
        )

    # Threads and messages

    def create_thread(self, request: Optional[ThreadRequest] = None) -> Optional[str]:
        request = request or ThreadRequest()
        result = self._call("create thread", "thread", lambda: self._threads.create(
            **request.to_body(), extra_headers=BETA_HEADER,
        ))
        return self._extract_id("create thread", result)

    def add_message(self, thread_id: str, content: str, role: str = "user") -> Optional[str]:
        description = f"add message to thread {thread_id}"
        result = self._call(description, "message_add", lambda: self._messages.create(
            thread_id, role=role, content=content, extra_headers=BETA_HEADER,
        ))
        return self._extract_id(description, result)

    def list_messages(self, thread_id: str, run_id: Optional[str] = None) -> Optional[List[str]]:
        """
        Return the text blocks of a thread's messages.

        Only content blocks of type 'text' are kept, in the order the service
        returned them (most recent message first).

        Args:
            thread_id: Thread to read
            run_id: Restrict the listing to messages produced by this run

        Returns:
            List[str]: Text values, or None on failure
        """
        description = f"list messages of thread {thread_id}"
        params = {"run_id": run_id} if run_id else {}
        result = self._call(description, "messages", lambda: self._messages.list(
            thread_id, **params, extra_headers=BETA_HEADER,
        ))
        return self._extract(description, result, _text_blocks)

    # Runs

    def create_run(self, thread_id: str, request: RunRequest) -> Optional[str]:
        description = f"create run on thread {thread_id}"
        result = self._call(description, "run", lambda: self._runs.create(
            thread_id, **request.to_body(), extra_headers=BETA_HEADER,
        ))
        return self._extract_id(description, result)

    def retrieve_run(self, thread_id: str, run_id: str) -> Optional[RunState]:
        description = f"retrieve run {run_id}"
        result = self._call(description, "run_status", lambda: self._runs.retrieve(
            run_id, thread_id=thread_id, extra_headers=BETA_HEADER,
        ))
        return self._extract(description, result, _parse_run_state)

    def retrieve_latest_run(self, thread_id: str) -> Optional[RunState]:
        """Return the most recent run of a thread, or None if it has none."""
        description = f"list runs of thread {thread_id}"
        result = self._call(description, "runs_list", lambda: self._runs.list(
            thread_id, extra_headers=BETA_HEADER,
        ))

        def latest(data: Dict[str, Any]) -> Optional[RunState]:
            runs = _require(data, "data")
            return _parse_run_state(runs[0]) if runs else None

        return self._extract(description, result, latest)

    def cancel_run(self, thread_id: str, run_id: str) -> Optional[RunState]:
        description = f"cancel run {run_id}"
        result = self._call(description, "run_cancel", lambda: self._runs.cancel(
            run_id, thread_id=thread_id, extra_headers=BETA_HEADER,
        ))
        return self._extract(description, result, _parse_run_state)

    # Cleanup

    def _deleter(self, resource_type: str) -> Optional[Callable[[str], Any]]:
        deleters = {
            "threads": lambda resource_id: self._threads.delete(
                resource_id, extra_headers=BETA_HEADER),
            "assistants": lambda resource_id: self._assistants.delete(
                resource_id, extra_headers=BETA_HEADER),
            "vector_stores": lambda resource_id: self._vector_stores.delete(
                resource_id, extra_headers=BETA_HEADER),
            # file deletion is the one call sent without the assistants header
            "files": lambda resource_id: self._files.delete(resource_id),
        }
        return deleters.get(resource_type)

    def delete_resource(self, resource_type: str, resource_id: str) -> bool:
        """
        Delete a remote resource such as 'threads', 'assistants', 'vector_stores' or 'files'.

        Other resource types are deleted through their plain '/{type}/{id}' path.
        Deleting something that no longer exists returns False rather than raising,
        so callers can treat a failed cleanup as noise.
        """
        description = f"delete {resource_type} {resource_id}"
        deleter = self._deleter(resource_type)
        if deleter is not None:
            result = self._call(description, "delete", lambda: deleter(resource_id))
        else:
            result = self._checked(description, self.transport.request(
                "delete", f"/{resource_type}/{resource_id}", "delete",
            ))
        if result is None:
            return False
        logging.debug(f"Deleted {resource_type} {resource_id}.")
        return True


def _text_blocks(data: Dict[str, Any]) -> List[str]:
    texts: List[str] = []
    for message in _require(data, "data"):
        for block in message.get("content") or []:
            if block.get("type") == "text":
                texts.append(str(_require(_require(block, "text"), "value")))
    return texts
