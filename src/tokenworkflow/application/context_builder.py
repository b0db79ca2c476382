"""
Context construction at the service boundary.

Turns caller-supplied identifiers (usually HTTP headers) into a fresh
OrchestrationContext, and turns a result back into the response headers the
boundary layer should echo.
"""

import re
import uuid
from collections.abc import Mapping
from typing import Any

from tokenworkflow.domain.models import OrchestrationContext, OrchestrationResult

CORRELATION_ID_HEADER = "X-Correlation-ID"
IDEMPOTENCY_KEY_HEADER = "Idempotency-Key"
IDEMPOTENCY_HIT_HEADER = "X-Idempotency-Hit"

MAX_IDEMPOTENCY_KEY_LENGTH = 256

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def _check_idempotency_key(key: str) -> None:
    if len(key) > MAX_IDEMPOTENCY_KEY_LENGTH:
        raise ValueError(
            f"Idempotency key exceeds {MAX_IDEMPOTENCY_KEY_LENGTH} characters"
        )
    if _CONTROL_CHARS.search(key):
        raise ValueError("Idempotency key contains control characters")


def build_context(
    operation_type: str,
    correlation_id: str | None = None,
    idempotency_key: str | None = None,
    user_id: str | None = None,
) -> OrchestrationContext:
    """
    Create a fresh context for one execution.

    Args:
        operation_type: Workflow variant, e.g. "ERC20_MINTABLE_CREATE"
        correlation_id: Caller correlation id; a UUID4 is generated if blank
        idempotency_key: Caller key; blank means none
        user_id: Authenticated user, if any

    Returns:
        OrchestrationContext in NotStarted

    Raises:
        ValueError: If the idempotency key is too long or malformed
    """
    key = _clean(idempotency_key)
    if key is not None:
        _check_idempotency_key(key)
    return OrchestrationContext(
        correlation_id=_clean(correlation_id) or str(uuid.uuid4()),
        operation_type=operation_type,
        idempotency_key=key,
        user_id=_clean(user_id),
    )


def _header(headers: Mapping[str, str], name: str) -> str | None:
    wanted = name.lower()
    for k, v in headers.items():
        if k.lower() == wanted:
            return v
    return None


def context_from_headers(
    operation_type: str,
    headers: Mapping[str, str],
    user_id: str | None = None,
) -> OrchestrationContext:
    """Build a context from request headers (names matched case-insensitively)."""
    return build_context(
        operation_type,
        correlation_id=_header(headers, CORRELATION_ID_HEADER),
        idempotency_key=_header(headers, IDEMPOTENCY_KEY_HEADER),
        user_id=user_id,
    )


def response_headers(result: OrchestrationResult[Any]) -> dict[str, str]:
    headers = {CORRELATION_ID_HEADER: result.correlation_id}
    if result.idempotency_key is not None:
        headers[IDEMPOTENCY_HIT_HEADER] = (
            "true" if result.is_idempotent_replay else "false"
        )
    return headers
