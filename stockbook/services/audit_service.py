"""
Audit trail for stock changes.

The ledger hands each committed movement to an `AuditSink`. Sinks are best-effort:
`emit` never raises, so inventory writes never depend on the audit store being up.
"""
import json
import logging
import uuid
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from sqlalchemy.orm import Session

from stockbook.models.audit_log import AuditLog

logger = logging.getLogger("stockbook.audit")


@dataclass(frozen=True)
class AuditEvent:
    action: str
    entity_type: str
    entity_id: str
    business_id: str
    performed_by_id: str
    old_value: dict[str, Any] | None = None
    new_value: dict[str, Any] | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def metadata(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"old_value": self.old_value, "new_value": self.new_value}
        payload.update(self.extra)
        return payload


class AuditSink(Protocol):
    def emit(self, event: AuditEvent) -> None: ...


def log_audit_event(
    db: Session,
    *,
    business_id: str,
    actor_user_id: str,
    action: str,
    target_type: str,
    target_id: str | None = None,
    metadata_json: dict[str, Any] | None = None,
) -> AuditLog:
    event = AuditLog(
        id=str(uuid.uuid4()),
        business_id=business_id,
        actor_user_id=actor_user_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        metadata_json=metadata_json,
    )
    db.add(event)
    return event


def log_emit_failure(event: AuditEvent, exc: BaseException) -> None:
    logger.warning(
        json.dumps(
            {
                "event": "audit_emit_failed",
                "action": event.action,
                "entity_type": event.entity_type,
                "entity_id": event.entity_id,
                "business_id": event.business_id,
                "error": str(exc),
            }
        )
    )


class SessionAuditSink:
    """Writes events to `audit_logs` in a session of its own, separate from the ledger transaction."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def emit(self, event: AuditEvent) -> None:
        try:
            db = self._session_factory()
            try:
                log_audit_event(
                    db,
                    business_id=event.business_id,
                    actor_user_id=event.performed_by_id,
                    action=event.action,
                    target_type=event.entity_type,
                    target_id=event.entity_id,
                    metadata_json=event.metadata(),
                )
                db.commit()
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()
        except Exception as exc:
            log_emit_failure(event, exc)


class BackgroundAuditSink:
    """Hands events to a bounded worker pool so the caller never waits on the audit write."""

    def __init__(self, inner: AuditSink, executor: Executor | None = None, *, max_workers: int = 2):
        self._inner = inner
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="audit"
        )

    def emit(self, event: AuditEvent) -> None:
        try:
            future = self._executor.submit(self._inner.emit, event)
        except RuntimeError as exc:
            # Executor already shut down.
            log_emit_failure(event, exc)
            return

        def _on_done(done: Future) -> None:
            if done.cancelled():
                return
            exc = done.exception()
            if exc is not None:
                log_emit_failure(event, exc)

        future.add_done_callback(_on_done)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
