"""
Sanitizers for values headed to PostgREST or to the logs.

Provider payloads occasionally carry lone UTF-16 surrogates (U+D800-U+DFFF),
which ``json.dumps`` accepts but PostgreSQL rejects. Any code point in that
range is necessarily unpaired in a Python ``str``, so removing the range never
touches valid characters.
"""

import re
from typing import Any

_SURROGATE_RE = re.compile("[\ud800-\udfff]")


def sanitize_string(value: str) -> str:
    """Remove unpaired surrogate code points from a string."""
    return _SURROGATE_RE.sub("", value)


def sanitize_value(value: Any) -> Any:
    """Recursively sanitize every string (including dict keys) in a value tree.

    Non-string scalars are returned unchanged. The operation is idempotent.
    """
    if isinstance(value, str):
        return sanitize_string(value)
    if isinstance(value, dict):
        return {
            sanitize_string(key) if isinstance(key, str) else key: sanitize_value(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [sanitize_value(item) for item in value]
    if isinstance(value, tuple):
        return tuple(sanitize_value(item) for item in value)
    return value


def sanitize_for_logging(value: Any) -> str:
    """Sanitize remote-controlled strings for safe logging.

    Removes newlines and NUL bytes that could be used to forge log entries.
    """
    if value is None:
        return ""
    if not isinstance(value, str):
        value = str(value)
    return sanitize_string(value).replace("\n", " ").replace("\r", " ").replace("\x00", "")
