import logging
from typing import Dict, List, Optional

from advisor_mail.config import Settings
from advisor_mail.engine import AssistantEngine
from advisor_mail.payloads import (
    AssistantRequest,
    AssistantUpdate,
    RunRequest,
    ThreadRequest,
    VectorStoreRequest,
    file_search_resources,
)
from advisor_mail.poller import DEFAULT_POLL_INTERVAL_SECONDS, DEFAULT_TIMEOUT_SECONDS, wait_for_run
from advisor_mail.utils import clean_response

THREAD_FAILED_MESSAGE = "Failed to create thread for processing message."
MESSAGE_FAILED_MESSAGE = "Failed to add message to thread."
RUN_FAILED_MESSAGE = "Failed to create run for processing message."
PROCESSING_FAILED_MESSAGE = "The assistant encountered an issue while processing the message."
NO_RESPONSE_MESSAGE = "No response received from the assistant."

FAILURE_MESSAGES = frozenset({
    THREAD_FAILED_MESSAGE,
    MESSAGE_FAILED_MESSAGE,
    RUN_FAILED_MESSAGE,
    PROCESSING_FAILED_MESSAGE,
    NO_RESPONSE_MESSAGE,
})

# ----------------------------
# Conversational Turn
# ----------------------------

def _thread_context(history: Optional[List[Dict[str, str]]]) -> List[Dict[str, str]]:
    """Keep only history entries that carry both a role and content."""
    return [
        {"role": msg["role"], "content": msg["content"]}
        for msg in history or []
        if msg.get("role") and msg.get("content")
    ]


def _delete_thread(engine: AssistantEngine, thread_id: str) -> None:
    if not engine.delete_resource("threads", thread_id):
        logging.warning(f"Failed to clean up thread {thread_id}.")


def process_user_message(engine: AssistantEngine, assistant_id: str,
                         history: Optional[List[Dict[str, str]]], user_message: str,
                         timeout: float = DEFAULT_TIMEOUT_SECONDS,
                         poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
                         cancel_on_timeout: bool = False,
                         additional_instructions: Optional[str] = None) -> str:
    """
    Get one answer from the assistant for a user message.

    A new thread is seeded with the prior conversation, the message is added and
    a run is started and awaited. The thread is deleted afterwards on every path
    where one was created.

    Args:
        engine: Engine performing the remote calls
        assistant_id: Assistant that should answer
        history: Previous messages as {'role', 'content'} dicts, oldest first
        user_message: New message to answer
        timeout: Seconds to wait for the run
        poll_interval: Seconds between run status checks
        cancel_on_timeout: Cancel the run if it is still active at the deadline
        additional_instructions: Extra instructions appended for this run only

    Returns:
        str: The answer, or a fixed message naming the step that failed
    """
    thread_id = engine.create_thread(ThreadRequest(messages=_thread_context(history)))
    if thread_id is None:
        return THREAD_FAILED_MESSAGE

    try:
        if engine.add_message(thread_id, user_message or "") is None:
            return MESSAGE_FAILED_MESSAGE

        run_id = engine.create_run(thread_id, RunRequest(
            assistant_id=assistant_id,
            additional_instructions=additional_instructions,
        ))
        if run_id is None:
            return RUN_FAILED_MESSAGE

        outcome = wait_for_run(engine, thread_id, run_id, timeout=timeout, poll_interval=poll_interval)
        if not outcome.succeeded:
            if outcome.timed_out and cancel_on_timeout:
                if engine.cancel_run(thread_id, run_id) is None:
                    logging.warning(f"Failed to cancel run {run_id} after timeout.")
            return PROCESSING_FAILED_MESSAGE

        messages = engine.list_messages(thread_id, run_id)
        if not messages:
            return NO_RESPONSE_MESSAGE
        return clean_response(messages[0])
    finally:
        _delete_thread(engine, thread_id)


def is_answer(response: Optional[str]) -> bool:
    """True for a real answer, False for None or one of the fixed failure messages."""
    return response is not None and response not in FAILURE_MESSAGES


def remember_turn(history: List[Dict[str, str]], user_message: str, response: Optional[str], limit: int) -> None:
    """
    Append a question and its answer to an in-memory history.

    Turns that did not produce an answer are left out, and the history is trimmed
    to its ``limit`` most recent messages.
    """
    if not is_answer(response):
        return
    history.append({"role": "user", "content": user_message})
    history.append({"role": "assistant", "content": response})
    if limit > 0:
        del history[:-limit]

# ----------------------------
# Assistant Session
# ----------------------------

class Chatbot:
    """
    Owns one assistant for the length of a session.

    The assistant, its vector store and uploaded knowledge file are created by
    ``setup_assistant`` and removed by ``close``. Each ``ask`` is an independent
    turn on a fresh thread.
    """

    def __init__(self, engine: AssistantEngine, settings: Optional[Settings] = None) -> None:
        self.engine = engine
        self.settings = settings or Settings()
        self.assistant_id: Optional[str] = None
        self.vector_store_id: Optional[str] = None
        self.file_id: Optional[str] = None

    def __enter__(self) -> "Chatbot":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def setup_assistant(self) -> Optional[str]:
        """
        Create the assistant, attaching the knowledge file through a vector store.

        Reuses the assistant if one was already set up for this session.

        Returns:
            str: The assistant ID, or None if any step failed
        """
        if self.assistant_id:
            logging.debug(f"Reusing existing assistant with ID: {self.assistant_id}")
            return self.assistant_id

        assistant_id = self.engine.create_assistant(AssistantRequest(
            model=self.settings.model,
            name=self.settings.assistant_name,
            instructions=self.settings.instructions,
            tool_names=["file_search"],
            temperature=self.settings.temperature,
            top_p=self.settings.top_p,
        ))
        if assistant_id is None:
            logging.error("Failed to create assistant.")
            return None
        self.assistant_id = assistant_id

        if self.settings.knowledge_file and not self._attach_knowledge_file(self.settings.knowledge_file):
            self.close()
            return None

        logging.info(f"Assistant set up with ID: {assistant_id}")
        return assistant_id

    def _attach_knowledge_file(self, knowledge_file: str) -> bool:
        self.file_id = self.engine.upload_file(knowledge_file, "assistants")
        if self.file_id is None:
            logging.error(f"Failed to upload knowledge file {knowledge_file}.")
            return False

        self.vector_store_id = self.engine.create_vector_store(VectorStoreRequest(
            name=f"{self.settings.assistant_name} Files",
            file_ids=[self.file_id],
        ))
        if self.vector_store_id is None:
            logging.error("Failed to create vector store.")
            return False

        updated = self.engine.modify_assistant(self.assistant_id, AssistantUpdate(
            tool_resources=file_search_resources([self.vector_store_id]),
            tools=[{"type": "file_search"}],
        ))
        if not updated:
            logging.error("Failed to update assistant with vector store.")
        return updated

    def ask(self, message: str, history: Optional[List[Dict[str, str]]] = None,
            user_name: Optional[str] = None) -> Optional[str]:
        """Answer one message, or return None if no assistant could be set up."""
        assistant_id = self.setup_assistant()
        if assistant_id is None:
            return None
        additional_instructions = None
        if user_name:
            additional_instructions = f"Address the student as {user_name} for all responses."
        return process_user_message(
            self.engine,
            assistant_id,
            history,
            message,
            timeout=self.settings.run_timeout_seconds,
            poll_interval=self.settings.poll_interval,
            cancel_on_timeout=self.settings.cancel_on_timeout,
            additional_instructions=additional_instructions,
        )

    def close(self) -> None:
        """Delete the session's assistant, vector store and file. Failures are only logged."""
        for resource_type, attr in (("assistants", "assistant_id"),
                                    ("vector_stores", "vector_store_id"),
                                    ("files", "file_id")):
            resource_id = getattr(self, attr)
            if resource_id is None:
                continue
            if not self.engine.delete_resource(resource_type, resource_id):
                logging.warning(f"Failed to delete {resource_type} {resource_id} during cleanup.")
            setattr(self, attr, None)
