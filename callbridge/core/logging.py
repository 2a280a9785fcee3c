"""Logging configuration."""
import logging
import re
import sys
from typing import List, Optional, Pattern, Tuple

from callbridge.core.config import settings

# Order matters: account SIDs must be replaced before the bare hex pattern.
REDACTION_PATTERNS: List[Tuple[Pattern[str], str]] = [
    (re.compile(r"sk-[a-zA-Z0-9_-]{20,}"), "[API_KEY]"),
    (re.compile(r"key-[a-zA-Z0-9]{32}"), "[API_KEY]"),
    (re.compile(r"\bAC[0-9a-fA-F]{32}\b"), "[ACCOUNT_SID]"),
    (re.compile(r"\bsid_[a-zA-Z0-9-]{20,}"), "[SID]"),
    (re.compile(r"\b[0-9a-fA-F]{32}\b"), "[TOKEN]"),
    (re.compile(r"\+\d{10,}"), "[PHONE]"),
    (re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"), "[EMAIL]"),
]


def redact(text: str) -> str:
    """Replace credentials, phone numbers and emails in text."""
    for pattern, replacement in REDACTION_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class RedactingFilter(logging.Filter):
    """
    Scrub secrets from a record before any handler sees it.

    The message is rendered and redacted in place, so host applications that
    attach their own handlers and formatters still get clean text.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = redact(record.getMessage())
        record.args = None
        if record.exc_info and not record.exc_text:
            record.exc_text = redact(logging.Formatter().formatException(record.exc_info))
        return True


_redacting_filter = RedactingFilter()


def get_logger(name: str) -> logging.Logger:
    """Get a logger whose records are redacted at the source."""
    logger = logging.getLogger(name)
    if _redacting_filter not in logger.filters:
        logger.addFilter(_redacting_filter)
    return logger


class RedactingFormatter(logging.Formatter):
    """Formatter that scrubs secrets from the rendered record, tracebacks included."""

    def format(self, record: logging.LogRecord) -> str:
        return redact(super().format(record))


def setup_logging(debug: Optional[bool] = None) -> None:
    """Configure application logging."""
    if debug is None:
        debug = settings.debug

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        RedactingFormatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        handlers=[handler],
        force=True,
    )

    # Set third-party loggers to WARNING
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("twilio").setLevel(logging.WARNING)


logger = get_logger(__name__)
