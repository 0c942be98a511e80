from datetime import datetime, timezone

from mongoengine import CASCADE, BooleanField, DateTimeField, Document, ReferenceField, StringField


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Conversation(Document):
    """
    Conversation model holding everything exchanged with one sender.

    Attributes:
        email_address: Sender address the conversation is keyed by
        user_name: Name the assistant addresses the sender with
        created_at: Timestamp when the conversation was created
        updated_at: Timestamp of the last stored message
    """
    email_address = StringField(required=True, unique=True)
    user_name = StringField()
    created_at = DateTimeField(default=utc_now)
    updated_at = DateTimeField(default=utc_now)

    meta = {'indexes': ['email_address']}


class ConversationMessage(Document):
    """
    A single message of a conversation.

    Attributes:
        conversation: Reference to the conversation this message belongs to
        is_user: True for messages from the sender, False for assistant answers
        content: Text content of the message
        timestamp: Timestamp when the message was stored
    """
    conversation = ReferenceField(Conversation, required=True, reverse_delete_rule=CASCADE)
    is_user = BooleanField(required=True)
    content = StringField(required=True)
    timestamp = DateTimeField(default=utc_now)

    meta = {'indexes': ['conversation', 'timestamp']}

    @property
    def role(self) -> str:
        return "user" if self.is_user else "assistant"
