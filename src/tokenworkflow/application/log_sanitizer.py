"""Sanitising of caller-supplied values before they reach log lines."""

import re

MAX_LOG_VALUE_LENGTH = 200

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def sanitize_log_input(value: object, max_length: int = MAX_LOG_VALUE_LENGTH) -> str:
    """
    Make a caller-supplied value safe to interpolate into a log message.

    Control characters (including CR/LF, which allow forged log lines) are
    replaced with "_" and the result is truncated to max_length.
    """
    if value is None:
        return "(none)"
    text = _CONTROL_CHARS.sub("_", str(value))
    if len(text) > max_length:
        return text[:max_length] + "..."
    return text
