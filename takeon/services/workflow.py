"""
WorkflowService - the single entry point for take-on sheet operations.

Every operation looks the sheet up inside its tenant, runs the relevant
guard or gate, applies the mutation and persists it.
"""
import copy
import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from takeon.models.audit import AuditEventType, record_event, record_refusal
from takeon.models.domain import Employee, TakeOnSheet
from takeon.models.enums import Section, TakeOnSheetStatus
from takeon.services.documents import TakeOnDocumentService, check_completeness
from takeon.services.employee_conversion import CreationCheck, EmployeeConversionService, can_create_employee
from takeon.services.errors import NotFound, PreconditionFailed, Unauthorized
from takeon.services.permissions import can_convert_to_employee, can_edit_section
from takeon.services.state_machine import StateMachine
from takeon.storage import BlobStore

logger = logging.getLogger(__name__)

SYSTEM_ACCESS_FLAGS = (
    "ess", "mss", "zoho", "lms", "sophos", "msOffice", "bizvoip", "email", "teams", "mimecast"
)

EMPTY_ADDRESS = {
    "line1": "",
    "city": "",
    "province": "",
    "postalCode": "",
    "country": "South Africa",
}

DEFAULT_PERSONAL_DETAILS = {
    "title": "Mr",
    "firstName": "",
    "lastName": "",
    "race": "African",
    "physicalAddress": EMPTY_ADDRESS,
    "postalAddress": EMPTY_ADDRESS,
    "postalSameAsPhysical": True,
    "idNumber": "",
    "contactNumber": "",
    "hasDisability": False,
    "employeeAcknowledgement": False,
}

# Section -> sheet column
SECTION_COLUMNS = {
    Section.EMPLOYMENT: "employment_info",
    Section.PERSONAL: "personal_details",
    Section.SYSTEM_ACCESS: "system_access",
}


def _role_name(role) -> str:
    return getattr(role, "value", role)


def merge_section(current: Optional[dict], patch: dict) -> dict:
    """
    Shallow merge of a section patch, except that nested objects such as the
    addresses are merged key by key instead of replaced.
    """
    merged = dict(current or {})
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


class WorkflowService:
    """Composes the permission matrix, state machine and conversion gate."""

    def __init__(self, db: Session, blob_store: Optional[BlobStore] = None):
        self.db = db
        self.blob_store = blob_store
        self.state_machine = StateMachine(db)
        self.conversion = EmployeeConversionService(db)

    # Reads

    def get(self, company_id: str, sheet_id: int) -> TakeOnSheet:
        """Tenant-scoped lookup. Another tenant's sheet is reported as missing."""
        sheet = self.db.query(TakeOnSheet).filter(
            TakeOnSheet.id == sheet_id,
            TakeOnSheet.company_id == company_id
        ).first()
        if sheet is None:
            raise NotFound("Take-on sheet not found.")
        return sheet

    def list_for_company(
        self,
        company_id: str,
        status: Optional[TakeOnSheetStatus] = None,
        created_by: Optional[str] = None
    ) -> List[TakeOnSheet]:
        query = self.db.query(TakeOnSheet).filter(TakeOnSheet.company_id == company_id)
        if status is not None:
            query = query.filter(TakeOnSheet.status == TakeOnSheetStatus(status))
        if created_by is not None:
            query = query.filter(TakeOnSheet.created_by == created_by)
        return query.order_by(TakeOnSheet.created_at.desc(), TakeOnSheet.id.desc()).all()

    def list_by_status(self, company_id: str, status) -> List[TakeOnSheet]:
        return self.list_for_company(company_id, status=status)

    def list_by_creator(self, company_id: str, user_id: str) -> List[TakeOnSheet]:
        return self.list_for_company(company_id, created_by=user_id)

    def get_by_access_request(self, company_id: str, access_request_id: str) -> Optional[TakeOnSheet]:
        return self.db.query(TakeOnSheet).filter(
            TakeOnSheet.company_id == company_id,
            TakeOnSheet.access_request_id == access_request_id
        ).first()

    def counts_by_status(self, company_id: str) -> Dict[TakeOnSheetStatus, int]:
        counts = {status: 0 for status in TakeOnSheetStatus}
        for sheet in self.list_for_company(company_id):
            counts[sheet.status] += 1
        return counts

    def check_employee_creation(self, company_id: str, sheet_id: int) -> CreationCheck:
        return can_create_employee(self.get(company_id, sheet_id))

    def document_completeness(self, company_id: str, sheet_id: int):
        return check_completeness(self.get(company_id, sheet_id))

    # Mutations

    def create(
        self,
        company_id: str,
        created_by: str,
        role,
        employment_info: dict,
        access_request_id: Optional[str] = None
    ) -> TakeOnSheet:
        """
        Start a new sheet in Draft with an empty history.

        Only roles that may edit the employment section of a draft can start one.
        """
        if not company_id:
            self._refuse(
                AuditEventType.CREATION_REFUSED, "Company", company_id, created_by, None, role, "missing_company"
            )
            raise PreconditionFailed("A company is required to create a take-on sheet.")
        if not can_edit_section(role, Section.EMPLOYMENT, TakeOnSheetStatus.DRAFT):
            self._refuse(
                AuditEventType.CREATION_REFUSED, "Company", company_id, created_by, company_id, role,
                "role_not_permitted"
            )
            raise Unauthorized(f"Role '{_role_name(role)}' may not create take-on sheets.")

        now = datetime.utcnow()
        sheet = TakeOnSheet(
            company_id=company_id,
            status=TakeOnSheetStatus.DRAFT,
            employment_info=dict(employment_info or {}),
            personal_details=copy.deepcopy(DEFAULT_PERSONAL_DETAILS),
            system_access={flag: False for flag in SYSTEM_ACCESS_FLAGS},
            documents={},
            created_by=created_by,
            created_at=now,
            updated_by=created_by,
            updated_at=now,
            access_request_id=access_request_id
        )
        self.db.add(sheet)
        self.db.flush()
        record_event(
            self.db,
            AuditEventType.TAKE_ON_SHEET_CREATED,
            "TakeOnSheet",
            sheet.id,
            user_id=created_by,
            company_id=company_id,
            payload={"role": _role_name(role), "access_request_id": access_request_id}
        )
        self.db.commit()
        self.db.refresh(sheet)

        logger.info("Created take-on sheet %s for company %s", sheet.id, company_id)
        return sheet

    def update(
        self,
        company_id: str,
        sheet_id: int,
        updated_by: str,
        role,
        employment_info: Optional[dict] = None,
        personal_details: Optional[dict] = None,
        system_access: Optional[dict] = None
    ) -> TakeOnSheet:
        """
        Partial update: only the supplied sections are merged.

        Every supplied section is checked against the permission matrix before
        anything is written; one refused section refuses the whole update.
        """
        sheet = self.get(company_id, sheet_id)
        supplied = {
            section: patch
            for section, patch in (
                (Section.EMPLOYMENT, employment_info),
                (Section.PERSONAL, personal_details),
                (Section.SYSTEM_ACCESS, system_access),
            )
            if patch is not None
        }
        if not supplied:
            self._refuse_sheet(AuditEventType.UPDATE_REFUSED, sheet, updated_by, role, "nothing_supplied")
            raise PreconditionFailed("Nothing to update: supply at least one section.")

        refused = [section for section in supplied if not can_edit_section(role, section, sheet.status)]
        if refused:
            names = ", ".join(section.value for section in refused)
            status = sheet.status.value
            self._refuse_sheet(
                AuditEventType.UPDATE_REFUSED, sheet, updated_by, role, "role_not_permitted",
                sections=[section.value for section in refused]
            )
            raise Unauthorized(
                f"Role '{_role_name(role)}' may not edit {names} "
                f"while the take-on sheet is '{status}'."
            )

        if system_access is not None:
            unknown = sorted(set(system_access) - set(SYSTEM_ACCESS_FLAGS))
            if unknown:
                self._refuse_sheet(
                    AuditEventType.UPDATE_REFUSED, sheet, updated_by, role, "unknown_system_access_flags"
                )
                raise PreconditionFailed(f"Unknown system access flags: {', '.join(unknown)}.")

        for section, patch in supplied.items():
            column = SECTION_COLUMNS[section]
            setattr(sheet, column, merge_section(getattr(sheet, column), patch))
        sheet.updated_by = updated_by
        sheet.updated_at = datetime.utcnow()

        record_event(
            self.db,
            AuditEventType.TAKE_ON_SHEET_UPDATED,
            "TakeOnSheet",
            sheet.id,
            user_id=updated_by,
            company_id=company_id,
            payload={"sections": [section.value for section in supplied]}
        )
        self.db.commit()
        self.db.refresh(sheet)
        return sheet

    def delete(self, company_id: str, sheet_id: int, acting_user_id: str, role) -> None:
        """Drafts only; anything further along is part of the audit record."""
        sheet = self.get(company_id, sheet_id)
        if sheet.status != TakeOnSheetStatus.DRAFT:
            self._refuse_sheet(AuditEventType.DELETION_REFUSED, sheet, acting_user_id, role, "not_draft")
            raise PreconditionFailed("Can only delete take-on sheets in draft status.")
        if not can_edit_section(role, Section.EMPLOYMENT, sheet.status):
            self._refuse_sheet(AuditEventType.DELETION_REFUSED, sheet, acting_user_id, role, "role_not_permitted")
            raise Unauthorized(f"Role '{_role_name(role)}' may not delete take-on sheets.")

        if self.blob_store is not None:
            for document in (sheet.documents or {}).values():
                self.blob_store.delete(document["storagePath"])

        self.db.delete(sheet)
        record_event(
            self.db,
            AuditEventType.TAKE_ON_SHEET_DELETED,
            "TakeOnSheet",
            sheet_id,
            user_id=acting_user_id,
            company_id=company_id
        )
        self.db.commit()
        logger.info("Deleted draft take-on sheet %s", sheet_id)

    def transition_status(
        self,
        company_id: str,
        sheet_id: int,
        to_status,
        acting_user_id: str,
        role,
        notes: Optional[str] = None
    ) -> TakeOnSheet:
        sheet = self.get(company_id, sheet_id)
        return self.state_machine.transition(sheet, to_status, acting_user_id, role, notes=notes)

    def create_employee_from_take_on_sheet(
        self,
        company_id: str,
        sheet_id: int,
        acting_user_id: str,
        role
    ) -> Employee:
        sheet = self.get(company_id, sheet_id)
        if not can_convert_to_employee(role):
            self._refuse_sheet(
                AuditEventType.EMPLOYEE_CREATION_REFUSED, sheet, acting_user_id, role, "role_not_permitted"
            )
            raise Unauthorized(f"Role '{_role_name(role)}' may not create employees.")
        return self.conversion.create_employee_from_take_on_sheet(sheet, acting_user_id)

    def link_to_employee(
        self,
        company_id: str,
        sheet_id: int,
        employee_id: int,
        acting_user_id: str,
        role
    ) -> TakeOnSheet:
        sheet = self.get(company_id, sheet_id)
        if not can_convert_to_employee(role):
            self._refuse_sheet(AuditEventType.LINK_REFUSED, sheet, acting_user_id, role, "role_not_permitted")
            raise Unauthorized(f"Role '{_role_name(role)}' may not link employees.")
        return self.conversion.link_to_employee(sheet, employee_id, acting_user_id)

    def _documents(self, sheet: TakeOnSheet, acting_user_id: str, role) -> TakeOnDocumentService:
        if self.blob_store is None:
            self._refuse_sheet(AuditEventType.DOCUMENT_REFUSED, sheet, acting_user_id, role, "no_blob_store")
            raise PreconditionFailed("No blob store is configured for document uploads.")
        return TakeOnDocumentService(self.db, self.blob_store)

    def upload_document(
        self,
        company_id: str,
        sheet_id: int,
        document_type,
        file_name: str,
        content: bytes,
        mime_type: str,
        acting_user_id: str,
        role
    ) -> dict:
        sheet = self.get(company_id, sheet_id)
        return self._documents(sheet, acting_user_id, role).upload(
            sheet, document_type, file_name, content, mime_type, acting_user_id, role
        )

    def delete_document(self, company_id: str, sheet_id: int, document_type, acting_user_id: str, role) -> None:
        sheet = self.get(company_id, sheet_id)
        self._documents(sheet, acting_user_id, role).delete(sheet, document_type, acting_user_id, role)

    # Refusals

    def _refuse(self, event_type: str, entity_type: str, entity_id, user_id, company_id, role, reason, **extra):
        payload = {"role": _role_name(role), "reason": reason}
        payload.update(extra)
        record_refusal(
            self.db,
            event_type,
            entity_type,
            entity_id,
            user_id=user_id,
            company_id=company_id,
            payload=payload
        )
        logger.warning(
            "Refused %s on %s %s by %s (%s): %s",
            event_type, entity_type, entity_id, user_id, _role_name(role), reason
        )

    def _refuse_sheet(self, event_type: str, sheet: TakeOnSheet, user_id, role, reason, **extra):
        self._refuse(
            event_type, "TakeOnSheet", sheet.id, user_id, sheet.company_id, role, reason,
            status=sheet.status.value, **extra
        )
