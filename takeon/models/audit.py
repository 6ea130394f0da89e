"""
Internal audit logging model - NOT a user-facing domain object.

This model exists to provide immutable, append-only audit trails
for workflow actions and refusals. It is not exposed in user-facing APIs.
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, JSON
from sqlalchemy.orm import Session
from takeon.database import Base


class AuditEvent(Base):
    """
    Immutable audit event for reconstructing who did what to a take-on sheet.

    Invariants:
    - Once written, never edited or deleted
    - Append-only
    - Records all mutations and refusals
    """
    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    event_type = Column(String, nullable=False, index=True)  # e.g., "transition_refused"
    entity_type = Column(String, nullable=False)  # e.g., "TakeOnSheet", "Employee"
    entity_id = Column(String, nullable=False, index=True)
    company_id = Column(String, nullable=True, index=True)
    user_id = Column(String, nullable=True)  # Nullable for system events
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    payload_json = Column(JSON, nullable=True)  # Minimal contextual data


class AuditEventType:
    """Enumeration of audit event types."""
    # Take-on sheet lifecycle
    TAKE_ON_SHEET_CREATED = "take_on_sheet_created"
    TAKE_ON_SHEET_UPDATED = "take_on_sheet_updated"
    TAKE_ON_SHEET_DELETED = "take_on_sheet_deleted"
    STATUS_CHANGED = "status_changed"

    # Documents
    DOCUMENT_UPLOADED = "document_uploaded"
    DOCUMENT_DELETED = "document_deleted"
    DOCUMENTS_TRANSFERRED = "documents_transferred"

    # Conversion
    EMPLOYEE_CREATED = "employee_created"
    EMPLOYEE_LINKED = "employee_linked"

    # Refusal events
    TRANSITION_REFUSED = "transition_refused"
    CREATION_REFUSED = "creation_refused"
    UPDATE_REFUSED = "update_refused"
    DELETION_REFUSED = "deletion_refused"
    DOCUMENT_REFUSED = "document_refused"
    EMPLOYEE_CREATION_REFUSED = "employee_creation_refused"
    LINK_REFUSED = "link_refused"


def record_event(
    db: Session,
    event_type: str,
    entity_type: str,
    entity_id,
    user_id=None,
    company_id=None,
    payload=None
) -> AuditEvent:
    """Stage an audit event on the session. The caller owns the commit."""
    audit = AuditEvent(
        event_type=event_type,
        entity_type=entity_type,
        entity_id=str(entity_id),
        company_id=company_id,
        user_id=user_id,
        payload_json=payload or {}
    )
    db.add(audit)
    return audit


def record_refusal(
    db: Session,
    event_type: str,
    entity_type: str,
    entity_id,
    user_id=None,
    company_id=None,
    payload=None
) -> AuditEvent:
    """
    Write a refusal event in its own transaction.

    Whatever the refused operation had pending on the session is rolled back
    first, so only the refusal itself is committed.
    """
    db.rollback()
    audit = record_event(db, event_type, entity_type, entity_id, user_id, company_id, payload)
    db.commit()
    return audit
