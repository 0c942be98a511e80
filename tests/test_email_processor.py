import pytest

from advisor_mail.chatbot import PROCESSING_FAILED_MESSAGE
from advisor_mail.config import Settings
from advisor_mail.conversations import ConversationStore
from advisor_mail.email_processor import process_email, process_emails
from advisor_mail.email_service import IncomingEmail


class FakeEmailService:
    def __init__(self, emails, fail_mark_for=(), reply_succeeds=True):
        self.emails = emails
        self.fail_mark_for = set(fail_mark_for)
        self.reply_succeeds = reply_succeeds
        self.read = []
        self.replies = []

    def get_new_emails(self):
        return list(self.emails)

    def mark_as_read(self, uid):
        if uid in self.fail_mark_for:
            raise RuntimeError(f"cannot mark {uid}")
        self.read.append(uid)

    def reply_to_email(self, message_id, recipient, subject, body):
        self.replies.append((message_id, recipient, subject, body))
        return self.reply_succeeds


class FakeChatbot:
    def __init__(self, answer="CS 330 is Database Management Systems."):
        self.answer = answer
        self.asked = []

    def ask(self, message, history=None, user_name=None):
        self.asked.append((message, history, user_name))
        return self.answer


def _email(uid, sender="john.doe@acu.edu", body="What is CS 330?", subject="Courses"):
    return IncomingEmail(id=uid, message_id=f"<{uid}@acu.edu>", sender=sender, subject=subject, body=body)


@pytest.fixture
def store(mongo_db):
    return ConversationStore()


class TestProcessEmail:
    """Test answering a single email."""

    def test_reply_sent(self, store):
        service, chatbot = FakeEmailService([]), FakeChatbot()

        entry = process_email(_email("7"), service, store, chatbot, Settings())

        assert entry["userName"] == "John Doe"
        assert entry["historyCount"] == 0
        assert entry["replySent"] is True
        assert service.read == ["7"]
        assert service.replies[0][:3] == ("<7@acu.edu>", "john.doe@acu.edu", "Re: Courses")
        assert chatbot.asked == [("What is CS 330?", [], "John Doe")]

    def test_history_passed_on_follow_up(self, store):
        service, chatbot = FakeEmailService([]), FakeChatbot()
        process_email(_email("7"), service, store, chatbot, Settings())

        entry = process_email(_email("8", body="Tell me more"), service, store, chatbot, Settings())

        assert entry["historyCount"] == 2
        assert chatbot.asked[1][1] == [
            {"role": "user", "content": "What is CS 330?"},
            {"role": "assistant", "content": "CS 330 is Database Management Systems."},
        ]

    def test_stored_name_reused(self, store):
        store.set_user_name("john.doe@acu.edu", "Johnny")

        entry = process_email(_email("7"), FakeEmailService([]), store, FakeChatbot(), Settings())

        assert entry["userName"] == "Johnny"

    def test_long_answer_preview_and_wrap(self, store):
        answer = " ".join(["course"] * 30)
        service = FakeEmailService([])

        entry = process_email(_email("7"), service, store, FakeChatbot(answer), Settings(wrap_width=40))

        assert entry["responsePreview"] == answer[:100] + "..."
        assert all(len(line) <= 40 for line in service.replies[0][3].split("\n"))

    def test_unavailable_assistant_leaves_email_unread(self, store):
        service = FakeEmailService([])

        entry = process_email(_email("7"), service, store, FakeChatbot(answer=None), Settings())

        assert entry["replySent"] is False
        assert "error" in entry
        assert service.read == []
        assert service.replies == []

    def test_retry_after_unavailable_assistant_stores_question_once(self, store):
        process_email(_email("7"), FakeEmailService([]), store, FakeChatbot(answer=None), Settings())
        chatbot = FakeChatbot()

        process_email(_email("7"), FakeEmailService([]), store, chatbot, Settings())

        assert chatbot.asked[0][1] == []
        assert [(m["role"], m["content"]) for m in store.get_conversation_history("john.doe@acu.edu")] == [
            ("user", "What is CS 330?"),
            ("assistant", "CS 330 is Database Management Systems."),
        ]

    def test_failed_reply_leaves_email_unread(self, store):
        service = FakeEmailService([], reply_succeeds=False)

        entry = process_email(_email("7"), service, store, FakeChatbot(), Settings())

        assert entry["replySent"] is False
        assert entry["error"] == "Failed to send reply."
        assert service.read == []
        assert store.get_conversation_history("john.doe@acu.edu") == []

    def test_failed_mark_as_read_stores_nothing(self, store):
        service = FakeEmailService([], fail_mark_for={"7"})

        with pytest.raises(RuntimeError):
            process_email(_email("7"), service, store, FakeChatbot(), Settings())

        assert store.get_conversation_history("john.doe@acu.edu") == []

    def test_failure_message_is_sent_but_not_stored(self, store):
        service = FakeEmailService([])

        entry = process_email(_email("7"), service, store, FakeChatbot(PROCESSING_FAILED_MESSAGE), Settings())

        assert entry["replySent"] is True
        assert service.read == ["7"]
        assert store.get_conversation_history("john.doe@acu.edu") == []


class TestProcessEmails:
    def test_no_new_emails(self, store):
        result = process_emails(FakeEmailService([]), store, FakeChatbot())

        assert result["status"] == "success"
        assert result["message"] == "No new emails found."
        assert "processedEmails" not in result

    def test_batch(self, store):
        service = FakeEmailService([_email("7"), _email("8", sender="jane@acu.edu")])

        result = process_emails(service, store, FakeChatbot())

        assert result["totalEmails"] == 2
        assert [e["from"] for e in result["processedEmails"]] == ["john.doe@acu.edu", "jane@acu.edu"]
        assert all(e["replySent"] for e in result["processedEmails"])
        assert result["message"] == "Email processing complete."

    def test_failed_email_does_not_stop_batch(self, store):
        service = FakeEmailService([_email("7"), _email("8", sender="jane@acu.edu")], fail_mark_for={"7"})

        result = process_emails(service, store, FakeChatbot())

        first, second = result["processedEmails"]
        assert first["error"] == "cannot mark 7"
        assert first["replySent"] is False
        assert second["replySent"] is True
        assert service.read == ["8"]
