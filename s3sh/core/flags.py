"""
Boolean-like command-line tokens.

Every yes/no option (--status, --public, --versioning) accepts the same
words, case-insensitively.
"""

from typing import Optional

TRUE_TOKENS = frozenset({"true", "enabled", "enable", "yes", "y", "on", "1"})
FALSE_TOKENS = frozenset({"false", "disabled", "disable", "no", "n", "off", "0"})


def parse_flag(raw: str) -> Optional[bool]:
    """True or False for a recognized token, None otherwise."""
    token = raw.strip().lower()
    if token in TRUE_TOKENS:
        return True
    if token in FALSE_TOKENS:
        return False
    return None
