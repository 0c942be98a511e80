import re
import textwrap
from typing import Optional

DEFAULT_WRAP_WIDTH = 70

# File-search citation markers, e.g. "【4:0†source】"
CITATION_PATTERN = re.compile(r"【\d+:\d+†[^】]*】")

# ----------------------------
# Helper Functions
# ----------------------------

def extract_name_from_email(email_address: str) -> str:
    """
    Guess a display name from the local part of an email address.

    'john.doe42@example.edu' becomes 'John Doe'. Dots, underscores and dashes
    separate words and digits are dropped.

    Args:
        email_address: Address to derive the name from

    Returns:
        str: Title-cased name, or an empty string if nothing usable remains
    """
    local_part = email_address.split("@")[0]
    local_part = re.sub(r"[._-]", " ", local_part)
    local_part = re.sub(r"[0-9]+", "", local_part)
    words = local_part.split()
    return " ".join(word[0].upper() + word[1:].lower() for word in words)


def word_wrap(text: str, width: int = DEFAULT_WRAP_WIDTH) -> str:
    """Wrap a single line on spaces; words longer than the width are split."""
    if len(text) <= width:
        return text
    return "\n".join(textwrap.wrap(text, width=width, break_long_words=True, break_on_hyphens=False))


def format_email_content(content: Optional[str], max_length: int = DEFAULT_WRAP_WIDTH) -> str:
    """
    Format a reply body for plain-text email.

    Line endings are normalised, paragraphs (separated by a blank line) are kept
    and every line is wrapped to ``max_length`` columns.
    """
    if content is None:
        return ""
    content = content.replace("\r\n", "\n").replace("\r", "\n")
    paragraphs = []
    for paragraph in content.split("\n\n"):
        if not paragraph.strip():
            paragraphs.append("")
            continue
        paragraphs.append("\n".join(word_wrap(line, max_length) for line in paragraph.split("\n")))
    return "\n\n".join(paragraphs)


def clean_response(response: str) -> str:
    """Remove citation markers from an answer; keep the original if nothing else is left."""
    cleaned = CITATION_PATTERN.sub("", response)
    if not cleaned.strip():
        return response
    return cleaned.strip()


def reply_subject(subject: Optional[str]) -> str:
    subject = subject or "(No Subject)"
    return subject if subject.lower().startswith("re:") else f"Re: {subject}"
