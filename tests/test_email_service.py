import smtplib

import pytest

from advisor_mail.config import EmailSettings
from advisor_mail.email_service import EmailService, parse_message

RAW_PLAIN = (
    b"From: John Doe <john.doe@acu.edu>\r\n"
    b"To: advisor@acu.edu\r\n"
    b"Subject: Degree plan\r\n"
    b"Message-ID: <abc123@acu.edu>\r\n"
    b"Date: Mon, 01 Apr 2024 10:30:00 +0000\r\n"
    b"Content-Type: text/plain; charset=utf-8\r\n"
    b"\r\n"
    b"What classes do I need next semester?\r\n"
)

RAW_MULTIPART = (
    b"From: jane@acu.edu\r\n"
    b"Subject: Hello\r\n"
    b"MIME-Version: 1.0\r\n"
    b"Content-Type: multipart/alternative; boundary=XYZ\r\n"
    b"\r\n"
    b"--XYZ\r\n"
    b"Content-Type: text/html; charset=utf-8\r\n"
    b"\r\n"
    b"<p>Hi there</p>\r\n"
    b"--XYZ\r\n"
    b"Content-Type: text/plain; charset=utf-8\r\n"
    b"\r\n"
    b"Hi there\r\n"
    b"--XYZ--\r\n"
)


class FakeIMAP:
    def __init__(self, messages):
        self.messages = messages
        self.stored = []

    def uid(self, command, *args):
        if command == 'search':
            return 'OK', [b" ".join(uid.encode() for uid in self.messages)]
        if command == 'fetch':
            return 'OK', [(b"1 (BODY[] {100}", self.messages[args[0]]), b")"]
        if command == 'store':
            self.stored.append(args)
            return 'OK', [b""]
        raise AssertionError(f"unexpected IMAP command {command}")

    def logout(self):
        return 'BYE', [b""]


class FakeSMTP:
    instances = []

    def __init__(self, host, port):
        self.host, self.port = host, port
        self.sent = []
        self.tls = False
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def starttls(self, context=None):
        self.tls = True

    def login(self, user, password):
        self.user = user

    def send_message(self, message):
        self.sent.append(message)


@pytest.fixture
def settings():
    return EmailSettings(imap_host="imap.acu.edu", account="advisor@acu.edu", password="secret",
                         smtp_host="smtp.acu.edu", smtp_port=587)


class TestParseMessage:
    def test_plain_message(self):
        parsed = parse_message("7", RAW_PLAIN)

        assert parsed.id == "7"
        assert parsed.sender == "john.doe@acu.edu"
        assert parsed.subject == "Degree plan"
        assert parsed.message_id == "<abc123@acu.edu>"
        assert parsed.body == "What classes do I need next semester?"
        assert parsed.date == "2024-04-01 10:30:00"

    def test_prefers_plain_part(self):
        parsed = parse_message("8", RAW_MULTIPART)

        assert parsed.body == "Hi there"
        assert parsed.message_id == ""
        assert parsed.date is None


class TestEmailService:
    """Test the mailbox collaborator against fake IMAP and SMTP servers."""

    def test_get_new_emails(self, settings):
        service = EmailService(settings)
        service._imap = FakeIMAP({"7": RAW_PLAIN, "8": RAW_MULTIPART})

        emails = service.get_new_emails()

        assert [e.id for e in emails] == ["7", "8"]
        assert emails[0].sender == "john.doe@acu.edu"

    def test_mark_as_read(self, settings):
        service = EmailService(settings)
        service._imap = imap = FakeIMAP({})

        service.mark_as_read("7")

        assert imap.stored == [("7", '+FLAGS', '(\\Seen)')]

    def test_not_connected(self, settings):
        with pytest.raises(RuntimeError):
            EmailService(settings).get_new_emails()

    def test_reply(self, settings, monkeypatch):
        FakeSMTP.instances = []
        monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)

        sent = EmailService(settings).reply_to_email(
            "<abc123@acu.edu>", "john.doe@acu.edu", "Re: Degree plan", "CS 330 is..."
        )

        assert sent
        smtp = FakeSMTP.instances[0]
        assert (smtp.host, smtp.port, smtp.tls) == ("smtp.acu.edu", 587, True)
        message = smtp.sent[0]
        assert message["To"] == "john.doe@acu.edu"
        assert message["In-Reply-To"] == "<abc123@acu.edu>"
        assert message.get_content().strip() == "CS 330 is..."

    def test_reply_failure(self, settings, monkeypatch):
        def refuse(host, port):
            raise ConnectionRefusedError("refused")

        monkeypatch.setattr(smtplib, "SMTP", refuse)

        assert not EmailService(settings).reply_to_email(None, "john.doe@acu.edu", "Re: Hi", "Hello")
