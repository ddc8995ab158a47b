"""Translation key syntax checks."""

import re
from typing import Optional

MAX_KEY_LENGTH = 160

KEY_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._:/-]*$")
FORBIDDEN_CHARS = re.compile(r"[+;,{}()\[\]\\]")
WHITESPACE = re.compile(r"\s")


def is_likely_key(raw: str) -> bool:
    """Fast shape check used while extracting keys from source.

    Never raises; anything that is not a plausible key string returns False.
    """
    if not isinstance(raw, str):
        return False

    key = raw.strip()
    if not key or len(key) > MAX_KEY_LENGTH:
        return False
    if WHITESPACE.search(key):
        return False
    if FORBIDDEN_CHARS.search(key):
        return False
    if "://" in key:
        return False

    return KEY_PATTERN.match(key) is not None


def explain_invalid(raw: str) -> Optional[str]:
    """Return a human readable reason why ``raw`` is not a usable key.

    Segment problems are reported before the generic character check so a
    key like ``a..b`` gets a specific message.

    Args:
        raw: Candidate key, surrounding whitespace is ignored

    Returns:
        The reason, or None when the key is acceptable
    """
    key = raw.strip() if isinstance(raw, str) else ""

    if not key:
        return "Key is empty"
    if key.startswith(".") or key.endswith("."):
        return "Key cannot start or end with a dot"
    if ".." in key:
        return "Key cannot contain consecutive dots"
    if any(not segment.strip() for segment in key.split(".")):
        return "Key contains an empty segment"
    if not is_likely_key(key):
        return "Key contains unsupported characters"
    return None


def is_valid_key(raw: str) -> bool:
    """Both the shape check and the segment check pass."""
    return is_likely_key(raw) and explain_invalid(raw) is None
