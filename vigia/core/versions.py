import re
from typing import Optional

from vigia.core.model import UNKNOWN_VERSION

# Range operators and the whitespace around them: ^1.2.3, ~> 7.0, >= 1.1
_RANGE_PREFIX = re.compile(r"^[\^~>=<\s]+")

# Compound constraints keep only their first member: "^8.0|^9.0", ">=2.0,<3.0"
_CONSTRAINT_SPLIT = re.compile(r"\s*(?:\|\||\||,)\s*|\s+")

_COMMIT_HASH = re.compile(r"^[0-9a-fA-F]{7,}$")
_LEADING_NUMBER = re.compile(r"^(\d+)")
_VERSION_CORE = re.compile(r"^(?:\d+|[xX*])(?:\.(?:\d+|[xX*]))*")

_WILDCARDS = {"x", "X", "*"}
_MAX_MAJOR_DIGITS = 9


def normalize_version(version: Optional[str]) -> str:
    """
    Turns a manifest version constraint into a concrete version string.

    "^1.2.3" -> "1.2.3", "1.2" -> "1.2.0", "1.x" -> "1.0.0".
    Commit hashes and hash-like numbers become "unknown".
    Applying it twice gives the same result as applying it once.
    """
    if version is None:
        return UNKNOWN_VERSION

    text = str(version).strip()
    if not text or text == UNKNOWN_VERSION:
        return UNKNOWN_VERSION

    text = _RANGE_PREFIX.sub("", text)
    text = _CONSTRAINT_SPLIT.split(text, maxsplit=1)[0]
    if not text or text == UNKNOWN_VERSION:
        return UNKNOWN_VERSION

    if _COMMIT_HASH.match(text):
        return UNKNOWN_VERSION

    leading = _LEADING_NUMBER.match(text)
    if leading and len(leading.group(1)) > _MAX_MAJOR_DIGITS:
        return UNKNOWN_VERSION

    core = _VERSION_CORE.match(text)
    if not core:
        return text

    rest = text[core.end():]
    # 2.0rc1, xyz: not a dotted numeric version, leave untouched
    if rest[:1].isalnum():
        return text

    parts = ["0" if part in _WILDCARDS else part for part in core.group(0).split(".")]
    while len(parts) < 3:
        parts.append("0")

    return ".".join(parts) + rest
