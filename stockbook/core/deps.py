from collections.abc import Generator

from fastapi import Request
from sqlalchemy.orm import Session

from stockbook.db.session import SessionLocal
from stockbook.services.audit_service import AuditSink


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_audit_sink(request: Request) -> AuditSink:
    return request.app.state.audit_sink
