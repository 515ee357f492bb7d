"""Coarse screening of query parameters for injection-looking values.

This is a heuristic, not a parser: legitimate text containing one of these
sequences is rejected too.
"""

import re
from typing import Iterable, List, Optional, Pattern, Tuple

_SQL_KEYWORDS = r"(OR|AND|UNION|SELECT|DROP|INSERT|UPDATE|DELETE)"

SUSPICIOUS_PATTERNS: List[Pattern[str]] = [
    # 'x' OR ...
    re.compile(r"(['\"])(.*?)\1\s*" + _SQL_KEYWORDS + r"\s", re.IGNORECASE),
    # '; DROP ...  /  ' OR 1=1
    re.compile(r"['\"]\s*;?\s*" + _SQL_KEYWORDS + r"\b", re.IGNORECASE),
    # Path traversal, raw or percent-encoded
    re.compile(r"(\.\./|\.\.\\|%2e%2e%2f|%2e%2e%5c)", re.IGNORECASE),
    # Script tags and inline handlers
    re.compile(r"(<script|javascript:|vbscript:|onload=|onerror=)", re.IGNORECASE),
]


def is_suspicious(value: str) -> bool:
    return any(pattern.search(value) for pattern in SUSPICIOUS_PATTERNS)


def find_suspicious_value(params: Iterable[Tuple[str, str]]) -> Optional[str]:
    """Return the name of the first parameter with a suspicious value.

    Args:
        params: (name, value) pairs; repeated names are all checked

    Returns:
        The offending parameter name, or None when every value is clean
    """
    for name, value in params:
        if is_suspicious(value):
            return name
    return None
