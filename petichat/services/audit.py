from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import Request

from petichat.domain.models import AuditEvent, MetricsEvent
from petichat.persistence.db import SessionLocal


logger = logging.getLogger(__name__)

# Legal text is client-confidential; audit rows keep only sizes and ids.
_SENSITIVE_KEY_PATTERNS = ["api_key", "authorization", "token", "secret", "password", "text", "content", "facts"]
_REDACTED_VALUE = "[REDACTED]"


def _is_sensitive_key(key: str) -> bool:
    lowered = key.lower()
    if lowered.endswith(("_length", "_chars", "_tokens")):
        return False
    return any(pattern in lowered for pattern in _SENSITIVE_KEY_PATTERNS)


def sanitize_metadata(value: Any) -> Any:
    # Recursively scrub sensitive fields while preserving safe structure.
    if isinstance(value, dict):
        sanitized: dict[str, Any] = {}
        for raw_key, raw_value in value.items():
            key = str(raw_key)
            if _is_sensitive_key(key):
                sanitized[key] = _REDACTED_VALUE
            else:
                sanitized[key] = sanitize_metadata(raw_value)
        return sanitized
    if isinstance(value, list):
        return [sanitize_metadata(item) for item in value]
    return value


def get_request_id(request: Request | None) -> str | None:
    if request is None:
        return None
    return getattr(request.state, "request_id", None) or request.headers.get("X-Request-Id")


def estimate_tokens(chars: int) -> int:
    # Coarse usage estimate; providers do not all report token counts.
    return max(0, chars) // 4


async def record_event(
    *,
    session: AsyncSession | None = None,
    tenant_id: str | None,
    actor_type: str,
    actor_id: str | None,
    event_type: str,
    outcome: str,
    resource_type: str | None = None,
    resource_id: str | None = None,
    request_id: str | None = None,
    metadata: dict[str, Any] | None = None,
    error_code: str | None = None,
    commit: bool = False,
    best_effort: bool = True,
) -> None:
    # Write audit rows in a best-effort manner to avoid breaking user flows.
    event = AuditEvent(
        occurred_at=datetime.now(timezone.utc),
        tenant_id=tenant_id,
        actor_type=actor_type,
        actor_id=actor_id,
        event_type=event_type,
        outcome=outcome,
        resource_type=resource_type,
        resource_id=resource_id,
        request_id=request_id,
        metadata_json=sanitize_metadata(metadata or {}),
        error_code=error_code,
    )

    if session is None:
        async with SessionLocal() as audit_session:
            try:
                audit_session.add(event)
                await audit_session.commit()
            except SQLAlchemyError as exc:
                await audit_session.rollback()
                if not best_effort:
                    raise
                logger.warning("audit_event_write_failed event_type=%s request_id=%s", event_type, request_id, exc_info=exc)
        return

    try:
        session.add(event)
        if commit:
            await session.commit()
    except SQLAlchemyError as exc:
        if commit:
            await session.rollback()
        if not best_effort:
            raise
        logger.warning("audit_event_write_failed event_type=%s request_id=%s", event_type, request_id, exc_info=exc)


async def record_ai_usage(
    session: AsyncSession,
    *,
    tenant_id: str,
    actor_id: str | None,
    operation: str,
    provider: str,
    model: str,
    input_chars: int,
    output_chars: int,
    resource_type: str | None = None,
    resource_id: str | None = None,
    request_id: str | None = None,
) -> None:
    # AI usage rides on the audit trail so billing and review share one source.
    await record_event(
        session=session,
        tenant_id=tenant_id,
        actor_type="user",
        actor_id=actor_id,
        event_type=operation,
        outcome="success",
        resource_type=resource_type,
        resource_id=resource_id,
        request_id=request_id,
        metadata={
            "provider": provider,
            "model": model,
            "input_length": input_chars,
            "output_length": output_chars,
            "estimated_tokens": estimate_tokens(input_chars + output_chars),
        },
    )


def record_metric(
    session: AsyncSession,
    *,
    tenant_id: str,
    user_id: str | None,
    event_type: str,
    metadata: dict[str, Any] | None = None,
) -> MetricsEvent:
    # Product metrics join the caller's transaction so they commit with the change they count.
    event = MetricsEvent(
        tenant_id=tenant_id,
        user_id=user_id,
        event_type=event_type,
        metadata_json=sanitize_metadata(metadata or {}),
    )
    session.add(event)
    return event
