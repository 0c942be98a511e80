import email
import email.policy
import imaplib
import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import parseaddr, parsedate_to_datetime
from typing import List, Optional

from advisor_mail.config import EmailSettings


@dataclass
class IncomingEmail:
    """
    An unread message fetched from the mailbox.

    Attributes:
        id: Mailbox UID, used to mark the message as read
        message_id: Value of the Message-ID header, used for reply threading
        sender: Bare sender address
    """
    id: str
    message_id: str
    sender: str
    subject: str
    body: str
    date: Optional[str] = None


def parse_message(uid: str, raw: bytes) -> IncomingEmail:
    """Build an IncomingEmail from raw RFC 822 bytes, preferring the text/plain part."""
    message = email.message_from_bytes(raw, policy=email.policy.default)
    body_part = message.get_body(preferencelist=('plain', 'html'))
    body = body_part.get_content() if body_part is not None else ""

    date = None
    if message['Date']:
        try:
            date = parsedate_to_datetime(message['Date']).strftime("%Y-%m-%d %H:%M:%S")
        except (TypeError, ValueError):
            logging.warning(f"Unparseable Date header on message {uid}: {message['Date']}")

    return IncomingEmail(
        id=uid,
        message_id=(message['Message-ID'] or "").strip(),
        sender=parseaddr(message['From'] or "")[1],
        subject=message['Subject'] or "(No Subject)",
        body=body.strip(),
        date=date,
    )


class EmailService:
    """IMAP retrieval and SMTP delivery for one mailbox."""

    def __init__(self, settings: EmailSettings) -> None:
        self.settings = settings
        self._imap: Optional[imaplib.IMAP4_SSL] = None

    def __enter__(self) -> "EmailService":
        self.connect()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def connect(self) -> None:
        try:
            self._imap = imaplib.IMAP4_SSL(
                self.settings.imap_host, self.settings.imap_port, ssl_context=ssl.create_default_context()
            )
            self._imap.login(self.settings.account, self.settings.password)
            self._imap.select(self.settings.folder)
            logging.debug(f"Connected to mailbox {self.settings.account} on {self.settings.imap_host}.")
        except (imaplib.IMAP4.error, OSError) as e:
            logging.error(f"Cannot connect to email: {str(e)}")
            raise

    def close(self) -> None:
        if self._imap is None:
            return
        try:
            self._imap.logout()
        except (imaplib.IMAP4.error, OSError) as e:
            logging.warning(f"Error closing email connection: {str(e)}")
        self._imap = None

    @property
    def imap(self) -> imaplib.IMAP4_SSL:
        if self._imap is None:
            raise RuntimeError("EmailService is not connected.")
        return self._imap

    def get_new_emails(self) -> List[IncomingEmail]:
        """Fetch unread messages without marking them as read."""
        status, data = self.imap.uid('search', None, 'UNSEEN')
        if status != 'OK':
            logging.error(f"IMAP search failed: {status}")
            return []

        emails = []
        for uid in (data[0] or b"").split():
            uid = uid.decode()
            status, fetched = self.imap.uid('fetch', uid, '(BODY.PEEK[])')
            if status != 'OK' or not fetched or not isinstance(fetched[0], tuple):
                logging.warning(f"Failed to fetch message {uid}.")
                continue
            emails.append(parse_message(uid, fetched[0][1]))
        logging.debug(f"Fetched {len(emails)} unread message(s).")
        return emails

    def mark_as_read(self, uid: str) -> None:
        status, _ = self.imap.uid('store', uid, '+FLAGS', '(\\Seen)')
        if status != 'OK':
            raise imaplib.IMAP4.error(f"Failed to mark message {uid} as read: {status}")

    def reply_to_email(self, message_id: Optional[str], recipient: str, subject: str, body: str) -> bool:
        """
        Send a plain-text reply.

        Args:
            message_id: Message-ID of the message being answered, if known
            recipient: Address to send the reply to
            subject: Subject line of the reply
            body: Formatted reply body

        Returns:
            bool: True if the message was accepted by the SMTP server
        """
        reply = EmailMessage()
        reply['From'] = self.settings.account
        reply['To'] = recipient
        reply['Subject'] = subject
        if message_id:
            reply['In-Reply-To'] = message_id
            reply['References'] = message_id
        reply.set_content(body)

        try:
            with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port) as smtp:
                smtp.starttls(context=ssl.create_default_context())
                smtp.login(self.settings.account, self.settings.password)
                smtp.send_message(reply)
        except (smtplib.SMTPException, OSError) as e:
            logging.error(f"Failed to send reply to {recipient}: {str(e)}")
            return False
        logging.info(f"Reply sent to {recipient}.")
        return True
