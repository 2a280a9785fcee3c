"""Text shaping helpers for spoken and SMS replies."""
import re

from callbridge.services.voice.constants import GOODBYE_PHRASES

ELLIPSIS = "..."

# A terminator only ends a sentence when whitespace or the end of text follows it
_SENTENCE_END = re.compile(r"[.!?](?=\s|$)")
_BRACKETED_LEADING = re.compile(r"^\s*[\[(][^)\]]*[\])]\s*")
_BRACKETED_ANYWHERE = re.compile(r"\s*[\[(][^)\]]*[\])]\s*")
_WHITESPACE = re.compile(r"\s+")


def truncate_to_complete_sentence(text: str, max_length: int) -> str:
    """
    Shorten text so it fits in max_length characters.

    Prefers cutting right after the last sentence end at or before the limit;
    a period inside a number such as 3.50 is not a sentence end. Falls back
    to the last word boundary (with an ellipsis), and only hard-cuts when the
    text holds a single overlong word. The result never exceeds max_length.
    """
    if len(text) <= max_length:
        return text

    ends = [m.start() for m in _SENTENCE_END.finditer(text[: max_length + 1]) if m.start() < max_length]
    if ends:
        truncated = text[: ends[-1] + 1].strip()
        if truncated:
            return truncated

    budget = max_length - len(ELLIPSIS)
    if budget <= 0:
        return text[:max_length]

    # A space at index `budget` means the word before it ends within budget.
    last_space = text.rfind(" ", 0, budget + 1)
    if last_space > 0:
        truncated = text[:last_space].rstrip()
        if truncated:
            return truncated + ELLIPSIS

    return text[:budget].strip() + ELLIPSIS


def clean_response_text(text: str) -> str:
    """Strip [reactions] and (stage directions) from generated text."""
    text = _BRACKETED_LEADING.sub("", text)
    text = _BRACKETED_ANYWHERE.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()


def is_goodbye(speech: str) -> bool:
    """Check whether the caller said one of the fixed goodbye phrases."""
    normalized = speech.lower().strip()
    return any(phrase in normalized for phrase in GOODBYE_PHRASES)
