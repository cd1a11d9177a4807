"""Text normalization for keyword comparison and embedding submission."""

import re

MAX_TEXT_LENGTH = 8000

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_text(text: str | None, max_length: int = MAX_TEXT_LENGTH) -> str:
    """Collapse whitespace runs to single spaces, trim, and truncate.

    Empty or whitespace-only input normalizes to the empty string.
    """
    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", text).strip()[:max_length]
