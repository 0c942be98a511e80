import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from advisor_mail.chatbot import Chatbot, is_answer
from advisor_mail.config import Settings
from advisor_mail.conversations import ConversationStore
from advisor_mail.email_service import EmailService, IncomingEmail
from advisor_mail.utils import extract_name_from_email, format_email_content, reply_subject

PREVIEW_LENGTH = 100


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds')


def _preview(response: str) -> str:
    return response[:PREVIEW_LENGTH] + "..." if len(response) > PREVIEW_LENGTH else response


def process_email(incoming: IncomingEmail, email_service: EmailService, store: ConversationStore,
                  chatbot: Chatbot, settings: Settings) -> Dict[str, Any]:
    """
    Answer one unread email and reply to its sender.

    Args:
        incoming: The email to answer
        email_service: Mail collaborator used to mark the email read and reply
        store: Conversation persistence keyed by sender address
        chatbot: Session holding the assistant
        settings: Provides the history limit and wrap width

    Returns:
        Dict describing what was done for the email
    """
    email_data: Dict[str, Any] = {"id": incoming.id, "from": incoming.sender, "subject": incoming.subject}

    conversation = store.get_or_create_conversation(incoming.sender)
    user_name = store.get_user_name(incoming.sender)
    if not user_name:
        user_name = extract_name_from_email(incoming.sender)
        store.set_user_name(incoming.sender, user_name)
    email_data["userName"] = user_name

    history = store.get_conversation_history(incoming.sender, settings.history_limit)
    email_data["historyCount"] = len(history)

    response = chatbot.ask(incoming.body, store.format_history_for_assistant(history), user_name=user_name)
    if response is None:
        email_data["error"] = "Assistant is unavailable."
        email_data["replySent"] = False
        return email_data

    email_data["responsePreview"] = _preview(response)

    email_data["replySent"] = email_service.reply_to_email(
        incoming.message_id,
        incoming.sender,
        reply_subject(incoming.subject),
        format_email_content(response, settings.wrap_width),
    )
    if not email_data["replySent"]:
        email_data["error"] = "Failed to send reply."
        return email_data

    # the exchange is stored only after the reply went out and the email is marked read
    email_service.mark_as_read(incoming.id)
    if is_answer(response):
        store.add_message(conversation, incoming.body, is_user=True)
        store.add_message(conversation, response, is_user=False)
    return email_data


def process_emails(email_service: EmailService, store: ConversationStore, chatbot: Chatbot,
                   settings: Optional[Settings] = None) -> Dict[str, Any]:
    """
    Answer every unread email in the mailbox, one at a time.

    A failure while handling one email is recorded in its entry and the batch
    moves on to the next one.

    Returns:
        Summary dict with status, timestamp, totalEmails, processedEmails and message
    """
    settings = settings or Settings()
    result: Dict[str, Any] = {"status": "success", "timestamp": _timestamp()}

    emails = email_service.get_new_emails()
    if not emails:
        result["message"] = "No new emails found."
        return result

    result["totalEmails"] = len(emails)
    processed = []
    for incoming in emails:
        try:
            processed.append(process_email(incoming, email_service, store, chatbot, settings))
        except Exception as e:
            logging.exception(f"Failed to process email {incoming.id} from {incoming.sender}.")
            processed.append({"id": incoming.id, "from": incoming.sender, "error": str(e), "replySent": False})

    result["processedEmails"] = processed
    result["message"] = "Email processing complete."
    return result
