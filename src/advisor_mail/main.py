import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from advisor_mail.chatbot import Chatbot, remember_turn
from advisor_mail.config import (
    EmailSettings,
    Settings,
    configure_logging,
    get_and_validate_env,
    load_environment,
    load_settings,
)
from advisor_mail.conversations import ConversationStore
from advisor_mail.db_setup import initialize_db
from advisor_mail.email_processor import process_emails
from advisor_mail.email_service import EmailService
from advisor_mail.engine import AssistantEngine
from advisor_mail.response_log import ResponseLog
from advisor_mail.transport import AssistantTransport, create_openai_client

EXIT_COMMANDS = {"exit", "quit"}


def build_chatbot(settings: Settings) -> Optional[Chatbot]:
    """Wire the OpenAI client, transport and engine into a chatbot session."""
    api_key = get_and_validate_env("OPENAI_API_KEY", "OpenAI API key")
    if not api_key:
        return None
    transport = AssistantTransport(
        create_openai_client(api_key),
        ResponseLog(settings.max_responses_per_category),
    )
    logging.debug("OpenAI API key loaded successfully.")
    return Chatbot(AssistantEngine(transport), settings)


def process_inbox() -> int:
    """
    Answer all unread emails once and print a JSON summary.

    Returns:
        int: Process exit code
    """
    configure_logging()
    load_environment()
    try:
        settings = load_settings()
        chatbot = build_chatbot(settings)
        mongo_uri = get_and_validate_env("MONGO_CONNECTION_STRING", "MongoDB connection string")
        if chatbot is None or not mongo_uri:
            raise RuntimeError("Missing required configuration.")
        initialize_db(mongo_uri)

        with chatbot, EmailService(EmailSettings.from_env()) as email_service:
            result = process_emails(email_service, ConversationStore(), chatbot, settings)
    except Exception as e:
        logging.exception("Email processing failed.")
        result = {
            "status": "error",
            "timestamp": datetime.now(timezone.utc).isoformat(timespec='milliseconds'),
            "message": str(e),
        }
    print(json.dumps(result, indent=4, default=str))
    return 0 if result["status"] == "success" else 1


def chat() -> int:
    """Interactive prompt loop against one assistant session."""
    configure_logging(logging.WARNING)
    load_environment()
    settings = load_settings()
    chatbot = build_chatbot(settings)
    if chatbot is None:
        return 1

    history = []
    with chatbot:
        if chatbot.setup_assistant() is None:
            print("Failed to set up assistant")
            return 1
        print("Type your question, or 'exit' to quit.")
        for line in sys.stdin:
            message = line.strip()
            if not message:
                continue
            if message.lower() in EXIT_COMMANDS:
                break
            response = chatbot.ask(message, history)
            if response is None:
                print("Assistant is unavailable.")
                continue
            print(f"\n{response}\n")
            remember_turn(history, message, response, settings.history_limit)
    return 0


if __name__ == "__main__":
    sys.exit(process_inbox())
