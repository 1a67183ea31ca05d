import re

_PUNCTUATION = re.compile(r"[.,!?;:'\"()\[\]{}]")
_WHITESPACE = re.compile(r"\s+")


def normalize_answer(text) -> str:
    """Canonical form used by every evaluation tier."""
    if not text:
        return ""
    lowered = text.lower()
    stripped = _PUNCTUATION.sub("", lowered)
    return _WHITESPACE.sub(" ", stripped).strip()
