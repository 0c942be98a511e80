import logging
from typing import Any, Dict, List, Optional

from advisor_mail.models import Conversation, ConversationMessage, utc_now


class ConversationStore:
    """Stores and replays the conversation held with each sender address."""

    def get_or_create_conversation(self, email_address: str) -> Conversation:
        conversation = Conversation.objects(email_address=email_address).first()
        if conversation:
            return conversation
        conversation = Conversation(email_address=email_address)
        conversation.save()
        logging.debug(f"Conversation created for {email_address}.")
        return conversation

    def add_message(self, conversation: Conversation, content: str, is_user: bool) -> ConversationMessage:
        """
        Store a message and bump the conversation's last update time.

        Args:
            conversation: Conversation the message belongs to
            content: Text of the message
            is_user: True if the sender wrote it, False for assistant answers

        Returns:
            ConversationMessage: The stored message
        """
        message = ConversationMessage(conversation=conversation, is_user=is_user, content=content)
        message.save()
        conversation.updated_at = utc_now()
        conversation.save()
        logging.debug(f"Message saved to conversation with {conversation.email_address}")
        return message

    def get_conversation_history(self, email_address: str, limit: int = 10) -> List[Dict[str, Any]]:
        """
        Return the most recent messages exchanged with a sender, oldest first.

        Args:
            email_address: Sender the conversation is keyed by
            limit: Maximum number of messages to return

        Returns:
            List of dicts with 'role', 'content' and 'timestamp' keys
        """
        conversation = Conversation.objects(email_address=email_address).first()
        if not conversation:
            return []
        recent = ConversationMessage.objects(conversation=conversation).order_by('-timestamp', '-id').limit(limit)
        return [
            {"role": message.role, "content": message.content, "timestamp": message.timestamp}
            for message in reversed(list(recent))
        ]

    @staticmethod
    def format_history_for_assistant(history: List[Dict[str, Any]]) -> List[Dict[str, str]]:
        return [{"role": msg["role"], "content": msg["content"]} for msg in history]

    def get_user_name(self, email_address: str) -> Optional[str]:
        conversation = Conversation.objects(email_address=email_address).first()
        return conversation.user_name if conversation else None

    def set_user_name(self, email_address: str, name: str) -> None:
        if not name:
            return
        conversation = self.get_or_create_conversation(email_address)
        conversation.user_name = name
        conversation.save()
