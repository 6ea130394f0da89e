"""
State machine that enforces the take-on sheet workflow order.

This is the only mutation path for TakeOnSheet.status - every transition MUST go through here.
"""
import logging
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from takeon.models.audit import AuditEventType, record_event, record_refusal
from takeon.models.domain import StatusChange, TakeOnSheet
from takeon.models.enums import TakeOnSheetStatus
from takeon.services.errors import InvalidTransition, Unauthorized
from takeon.services.permissions import coerce, role_may_execute

logger = logging.getLogger(__name__)

# Strict total order: draft < pending_hr_review < pending_it_setup < complete
STATUS_ORDER: Tuple[TakeOnSheetStatus, ...] = tuple(TakeOnSheetStatus)


def next_status(status) -> Optional[TakeOnSheetStatus]:
    """The single legal successor of status, or None for the terminal status."""
    position = STATUS_ORDER.index(TakeOnSheetStatus(status))
    if position + 1 == len(STATUS_ORDER):
        return None
    return STATUS_ORDER[position + 1]


def can_transition_status(role, from_status, to_status) -> bool:
    """
    Definitive transition check.

    True only if to_status is the successor of from_status AND the role may
    execute that edge. Backward, skipping and self transitions are always False.
    """
    from_status = coerce(TakeOnSheetStatus, from_status)
    to_status = coerce(TakeOnSheetStatus, to_status)
    if from_status is None or to_status is None:
        return False
    successor = next_status(from_status)
    if successor is None or to_status != successor:
        return False
    return role_may_execute(role, (from_status, to_status))


class StateMachine:
    """Enforces status transition invariants for take-on sheets."""

    def __init__(self, db: Session):
        self.db = db

    def transition(
        self,
        sheet: TakeOnSheet,
        to_status,
        acting_user_id: str,
        role,
        notes: Optional[str] = None
    ) -> TakeOnSheet:
        """
        Move a sheet to its next status.

        Refusal invariants:
        - to_status must be next_status(current); anything else is InvalidTransition
        - the role must be allowed to execute the edge; otherwise Unauthorized
        - every refusal is written to the audit trail before raising

        On success exactly one StatusChange is appended to the history.
        """
        current = sheet.status
        target = coerce(TakeOnSheetStatus, to_status)
        successor = next_status(current)

        if target is None or target != successor:
            valid = successor.value if successor else "none"
            message = (
                f"Invalid status transition from '{current.value}' to '{getattr(target, 'value', to_status)}'. "
                f"Valid transitions from '{current.value}': {valid}"
            )
            self._refuse(sheet, acting_user_id, role, to_status, "invalid_transition")
            raise InvalidTransition(message)

        if not role_may_execute(role, (current, target)):
            self._refuse(sheet, acting_user_id, role, to_status, "role_not_permitted")
            raise Unauthorized(
                f"Role '{getattr(role, 'value', role)}' may not move a take-on sheet "
                f"from '{current.value}' to '{target.value}'."
            )

        now = datetime.utcnow()
        sheet.status_history.append(StatusChange(
            from_status=current,
            to_status=target,
            changed_by=acting_user_id,
            changed_at=now,
            notes=notes
        ))
        sheet.status = target
        sheet.updated_by = acting_user_id
        sheet.updated_at = now

        record_event(
            self.db,
            AuditEventType.STATUS_CHANGED,
            "TakeOnSheet",
            sheet.id,
            user_id=acting_user_id,
            company_id=sheet.company_id,
            payload={
                "from_status": current.value,
                "to_status": target.value,
                "role": getattr(role, "value", role),
                "notes": notes
            }
        )
        self.db.commit()
        self.db.refresh(sheet)

        logger.info(
            "Take-on sheet %s moved %s -> %s by %s",
            sheet.id, current.value, target.value, acting_user_id
        )
        return sheet

    def _refuse(self, sheet: TakeOnSheet, acting_user_id: str, role, to_status, reason: str) -> None:
        """Record a refused transition attempt. Refusal must not be silent."""
        sheet_id, company_id, from_status = sheet.id, sheet.company_id, sheet.status.value
        attempted = getattr(to_status, "value", to_status)
        record_refusal(
            self.db,
            AuditEventType.TRANSITION_REFUSED,
            "TakeOnSheet",
            sheet_id,
            user_id=acting_user_id,
            company_id=company_id,
            payload={
                "from_status": from_status,
                "attempted_status": attempted,
                "role": getattr(role, "value", role),
                "reason": reason
            }
        )
        logger.warning(
            "Refused transition of take-on sheet %s from %s to %s by %s (%s)",
            sheet_id, from_status, attempted, acting_user_id, reason
        )
