"""Profile text clean-up applied before any AI call."""

import re
from typing import Optional

MAX_TEXT_LENGTH = 2048

_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^\w\s.,!?-]")


def normalize(text: Optional[str]) -> str:
    """
    Normalize raw profile text.

    Trims, lowercases, collapses whitespace runs, strips characters outside
    word characters, whitespace and ``. , ! ? -``, then truncates to
    MAX_TEXT_LENGTH characters.

    Example:
        >>> normalize("  Hello   WORLD!! ")
        'hello world!!'
    """
    if not text:
        return ""

    cleaned = text.strip().lower()
    cleaned = _WHITESPACE.sub(" ", cleaned)
    cleaned = _DISALLOWED.sub("", cleaned)
    return cleaned[:MAX_TEXT_LENGTH]
